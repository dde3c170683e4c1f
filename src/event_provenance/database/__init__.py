"""Database module exports."""

from .connection import (
    Base,
    Database,
    create_db_engine,
)
from .models import (
    ChainLinkDB,
    EventRecordDB,
)

__all__ = [
    "Base",
    "Database",
    "create_db_engine",
    "ChainLinkDB",
    "EventRecordDB",
]
