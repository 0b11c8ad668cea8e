"""Retention policy for benchmark histories.

A RetentionPolicy bounds the working set read by the regression
detector without touching the store. The same policy drives the
destructive ``prune`` operation when an operator asks for it.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from benchkeeper.core.exceptions import ConfigurationError
from benchkeeper.history.models import Record, RejectedEntry


@dataclass(frozen=True)
class RetentionPolicy:
    """Bounds on how much history is kept.

    Attributes:
        max_records: Keep at most this many of the newest entries (None = unlimited).
        max_age: Drop records whose run date is older than this (None = unlimited).
        version: Policy version, recorded alongside prune results.

    Example:
        >>> policy = RetentionPolicy.from_days(max_records=500, max_age_days=730)
        >>> recent = policy.apply(history.entries)
    """

    max_records: int | None = None
    max_age: timedelta | None = None
    version: str = "1"

    def __post_init__(self) -> None:
        if self.max_records is not None and self.max_records < 1:
            raise ConfigurationError(f"max_records must be at least 1, got {self.max_records}")
        if self.max_age is not None and self.max_age <= timedelta(0):
            raise ConfigurationError(f"max_age must be positive, got {self.max_age}")

    @classmethod
    def from_days(cls, max_records: int | None = None, max_age_days: float | None = None) -> RetentionPolicy:
        max_age = timedelta(days=max_age_days) if max_age_days is not None else None
        return cls(max_records=max_records, max_age=max_age)

    @property
    def is_unbounded(self) -> bool:
        return self.max_records is None and self.max_age is None

    def keeps(self, entries: Sequence[Record | RejectedEntry], now: datetime | None = None) -> list[bool]:
        """Compute which entries the policy retains.

        Rejected entries have no trustworthy date, so only the count
        bound applies to them.

        Args:
            entries: Entries in append order.
            now: Reference time for the age bound (default: now, UTC).

        Returns:
            One flag per entry, True if retained.
        """
        mask = [True] * len(entries)

        if self.max_age is not None:
            cutoff = (now or datetime.now(timezone.utc)) - self.max_age
            for index, entry in enumerate(entries):
                if isinstance(entry, Record) and entry.date < cutoff:
                    mask[index] = False

        if self.max_records is not None:
            remaining = self.max_records
            for index in range(len(entries) - 1, -1, -1):
                if not mask[index]:
                    continue
                if remaining > 0:
                    remaining -= 1
                else:
                    mask[index] = False

        return mask

    def apply(
        self,
        entries: Sequence[Record | RejectedEntry],
        now: datetime | None = None,
    ) -> list[Record | RejectedEntry]:
        """Return the retained entries, preserving order."""
        if self.is_unbounded:
            return list(entries)
        mask = self.keeps(entries, now=now)
        return [entry for entry, keep in zip(entries, mask) if keep]
