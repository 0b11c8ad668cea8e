"""Custom exceptions for benchkeeper.

This module defines the exception hierarchy used throughout the library.
All exceptions inherit from BenchkeeperError for easy catching.
"""

from __future__ import annotations


class BenchkeeperError(Exception):
    """Base exception for all benchkeeper errors.

    Example:
        >>> try:
        ...     # benchkeeper operations
        ...     pass
        ... except BenchkeeperError as e:
        ...     print(f"benchkeeper error: {e}")
    """


class RecordValidationError(BenchkeeperError):
    """Raised when a benchmark record is malformed.

    Raised before anything is persisted. The ``field`` attribute holds
    the dotted path of the offending field (e.g. ``benches[2].value``).

    Example:
        >>> raise RecordValidationError("benches[0].value", "value must be a number")
    """

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(f"{field}: {message}")


class MissingCommitHashError(RecordValidationError):
    """Raised when the commit hash is missing or empty."""


class InvalidTimestampError(RecordValidationError):
    """Raised when a commit or run timestamp cannot be parsed."""


class InvalidMeasurementError(RecordValidationError):
    """Raised when a measurement has a bad name, value or unit."""


class EmptyMeasurementsError(RecordValidationError):
    """Raised when a record carries no measurements."""


class InvalidToolError(RecordValidationError):
    """Raised when the comparison direction identifier is unknown."""


class RunOutputError(RecordValidationError):
    """Raised when raw benchmark output cannot be turned into measurements.

    Example:
        >>> raise RunOutputError("output", "expected a list of benches or benchmarkTests")
    """


class DuplicateCommitError(BenchkeeperError):
    """Raised when a commit hash is already present in a suite's history.

    Example:
        >>> raise DuplicateCommitError("soci-perf", "a1b2c3d")
    """

    def __init__(self, suite_id: str, commit_hash: str) -> None:
        self.suite_id = suite_id
        self.commit_hash = commit_hash
        super().__init__(f"Commit {commit_hash} already recorded for suite '{suite_id}'")


class StoreIOError(BenchkeeperError):
    """Raised when reading or writing the history store fails.

    These failures are retryable and say nothing about benchmark
    performance.
    """


class StoreTimeoutError(StoreIOError):
    """Raised when a store read or write exceeds its timeout."""


class StoreCorruptedError(StoreIOError):
    """Raised when the store document itself cannot be parsed."""


class ConcurrentWriteError(BenchkeeperError):
    """Raised when the store lock cannot be acquired within the retry budget.

    Example:
        >>> raise ConcurrentWriteError("Store locked by another writer after 8 retries")
    """


class InsufficientDataError(BenchkeeperError):
    """Raised when no samples remain after warm-up exclusion.

    Example:
        >>> raise InsufficientDataError("pull-duration: 4 samples, 4 excluded as warm-up")
    """


class ConfigurationError(BenchkeeperError):
    """Raised when configuration is invalid or missing.

    Example:
        >>> raise ConfigurationError("percentile must be in (0, 100], got 120")
    """


class RecordNotFoundError(BenchkeeperError):
    """Raised when a commit has no valid record in a suite's history.

    Example:
        >>> raise RecordNotFoundError("soci-perf", "a1b2c3d")
    """

    def __init__(self, suite_id: str, commit_hash: str) -> None:
        self.suite_id = suite_id
        self.commit_hash = commit_hash
        super().__init__(f"No valid record for commit {commit_hash} in suite '{suite_id}'")
