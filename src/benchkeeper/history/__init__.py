"""Benchmark history module for benchkeeper.

This module provides the record schema and the append-only history
store that every CI run reports into.

Example:
    >>> from benchkeeper.history import JSONHistoryStore
    >>>
    >>> store = JSONHistoryStore(".benchkeeper/data.json")
    >>> await store.append("soci-perf", record)
    >>> history = await store.load("soci-perf")
    >>> len(history)
    1
"""

from __future__ import annotations

from benchkeeper.history.models import (
    Aggregation,
    AggregationKind,
    CommitIdentity,
    ComparisonDirection,
    Measurement,
    Person,
    Record,
    RejectedEntry,
    SuiteHistory,
)
from benchkeeper.history.retention import RetentionPolicy
from benchkeeper.history.storage import JSONHistoryStore, StorageProtocol

__all__ = [
    "Aggregation",
    "AggregationKind",
    "CommitIdentity",
    "ComparisonDirection",
    "JSONHistoryStore",
    "Measurement",
    "Person",
    "Record",
    "RejectedEntry",
    "RetentionPolicy",
    "StorageProtocol",
    "SuiteHistory",
]
