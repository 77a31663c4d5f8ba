"""Store protocol and bundled store implementations."""

from .base import EventStore, Table
from .memory import InMemoryStore
from .sqlite import SqliteStore

__all__ = ["EventStore", "InMemoryStore", "SqliteStore", "Table"]
