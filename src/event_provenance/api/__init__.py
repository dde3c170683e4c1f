"""HTTP API routers."""

from . import events, status, verification

__all__ = ["events", "status", "verification"]
