"""Base protocol for benchmark history storage backends.

This module defines the StorageProtocol that all storage backends must implement.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from benchkeeper.history.models import Record, SuiteHistory
    from benchkeeper.history.retention import RetentionPolicy


@runtime_checkable
class StorageProtocol(Protocol):
    """Protocol for benchmark history storage backends.

    All storage backends must implement these async methods. Histories
    are append-only and ordered by append time.

    Example:
        >>> class MyStorage:
        ...     async def load(self, suite_id: str) -> SuiteHistory: ...
        ...     # ... implement other methods
        >>> isinstance(MyStorage(), StorageProtocol)
        True
    """

    async def load(self, suite_id: str) -> SuiteHistory:
        """Load the history of a suite.

        Args:
            suite_id: The benchmark suite identifier.

        Returns:
            The suite history in append order. Empty if the store or the
            suite does not exist yet.
        """
        ...

    async def append(self, suite_id: str, record: Record, *, replace: bool = False) -> int:
        """Append a record to the tail of a suite's history.

        Args:
            suite_id: The benchmark suite identifier.
            record: The record to append.
            replace: Explicit operator override for an already-recorded commit.

        Returns:
            The new length of the suite's history.

        Raises:
            DuplicateCommitError: If the commit is already recorded and replace is False.
        """
        ...

    async def prune(self, suite_id: str, policy: RetentionPolicy) -> int:
        """Destructively apply a retention policy to a suite.

        Args:
            suite_id: The benchmark suite identifier.
            policy: The retention policy to apply.

        Returns:
            The new length of the suite's history.
        """
        ...

    async def suites(self) -> list[str]:
        """List the suites present in the store."""
        ...
