"""Storage layer exports."""

from .chain_store import ChainStore
from .event_store import EventStore, MAX_PAGE_SIZE

__all__ = ["ChainStore", "EventStore", "MAX_PAGE_SIZE"]
