"""Storage backends for benchmark histories.

This module provides storage protocols and implementations for
persisting benchmark histories.

Example:
    >>> from benchkeeper.history.storage import JSONHistoryStore
    >>> store = JSONHistoryStore(".benchkeeper/data.json")
    >>> await store.append("soci-perf", record)
"""

from __future__ import annotations

from benchkeeper.history.storage.base import StorageProtocol
from benchkeeper.history.storage.json_store import JSONHistoryStore
from benchkeeper.history.storage.lock import StoreLock

__all__ = [
    "JSONHistoryStore",
    "StorageProtocol",
    "StoreLock",
]
