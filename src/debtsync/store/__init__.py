"""Remote store layer.

The store is the system of record. Everything above it (cache,
mutations) holds derived copies only.
"""

from debtsync.store.base import OrderBy, RemoteStore, Row
from debtsync.store.memory import MemoryStore
from debtsync.store.rest import RestStore

__all__ = ["MemoryStore", "OrderBy", "RemoteStore", "RestStore", "Row"]
