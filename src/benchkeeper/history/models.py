"""Models for benchmark history records.

This module provides the immutable record types stored in a suite's
history, together with the validation that decides whether a candidate
record is safe to persist. Validation never coerces: a malformed field
raises the RecordValidationError subclass for that field.
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from benchkeeper.core.exceptions import (
    EmptyMeasurementsError,
    InvalidMeasurementError,
    InvalidTimestampError,
    InvalidToolError,
    MissingCommitHashError,
    RecordValidationError,
)


def parse_timestamp(value: Any, field_name: str) -> datetime:
    """Parse an ISO-8601 timestamp.

    A trailing ``Z`` is accepted. Naive timestamps are taken as UTC so
    that timestamps from different sources stay comparable.

    Args:
        value: A datetime or an ISO-8601 string.
        field_name: Dotted field path used in the error.

    Returns:
        Timezone-aware datetime.

    Raises:
        InvalidTimestampError: If the value is not a parseable timestamp.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text[-1] in "Zz":
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as e:
            raise InvalidTimestampError(field_name, f"not an ISO-8601 timestamp: {value!r}") from e
    else:
        raise InvalidTimestampError(field_name, f"expected an ISO-8601 timestamp, got {value!r}")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def is_finite_number(value: Any) -> bool:
    """Check that a value is an int or float with a finite float value.

    JSON integers have no size limit; one too large for a float counts
    as non-finite instead of raising OverflowError.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        return False


def _describe_non_finite(value: int | float) -> str:
    if isinstance(value, float):
        return f"got {value!r}"
    return "integer is too large for a float"


def parse_run_date(value: Any, field_name: str = "date") -> datetime:
    """Parse a run date given as epoch milliseconds or an ISO-8601 string."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if not is_finite_number(value):
            raise InvalidTimestampError(field_name, f"epoch milliseconds must be finite, {_describe_non_finite(value)}")
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as e:
            raise InvalidTimestampError(field_name, f"epoch milliseconds out of range: {value!r}") from e
    return parse_timestamp(value, field_name)


def to_epoch_ms(moment: datetime) -> int:
    """Convert a datetime to integer epoch milliseconds."""
    return int(round(moment.timestamp() * 1000))


def _ensure_aware(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


class ComparisonDirection(str, Enum):
    """Which direction of change counts as an improvement."""

    SMALLER_IS_BETTER = "smaller-is-better"
    LARGER_IS_BETTER = "larger-is-better"

    @classmethod
    def parse(cls, value: Any, field_name: str = "tool") -> ComparisonDirection:
        """Parse a direction identifier.

        Besides the canonical values, the custom tool names used by
        continuous-benchmarking actions are accepted.

        Raises:
            InvalidToolError: If the identifier is unknown.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            direction = _TOOL_ALIASES.get(value.strip().lower())
            if direction is not None:
                return direction
        raise InvalidToolError(field_name, f"unknown comparison direction {value!r}")

    @property
    def smaller_is_better(self) -> bool:
        return self is ComparisonDirection.SMALLER_IS_BETTER


_TOOL_ALIASES: dict[str, ComparisonDirection] = {
    "smaller-is-better": ComparisonDirection.SMALLER_IS_BETTER,
    "smallerisbetter": ComparisonDirection.SMALLER_IS_BETTER,
    "customsmallerisbetter": ComparisonDirection.SMALLER_IS_BETTER,
    "larger-is-better": ComparisonDirection.LARGER_IS_BETTER,
    "bigger-is-better": ComparisonDirection.LARGER_IS_BETTER,
    "largerisbetter": ComparisonDirection.LARGER_IS_BETTER,
    "custombiggerisbetter": ComparisonDirection.LARGER_IS_BETTER,
}


class AggregationKind(str, Enum):
    """Aggregation already applied to a measurement by the benchmark tool."""

    NONE = "none"
    MEAN = "mean"
    MIN = "min"
    MAX = "max"
    STDDEV = "stddev"
    P25 = "p25"
    P50 = "p50"
    P75 = "p75"
    P90 = "p90"
    P95 = "p95"
    P99 = "p99"
    UNKNOWN = "unknown"


_NAMED_KINDS: dict[str, AggregationKind] = {
    "mean": AggregationKind.MEAN,
    "avg": AggregationKind.MEAN,
    "average": AggregationKind.MEAN,
    "min": AggregationKind.MIN,
    "max": AggregationKind.MAX,
    "stddev": AggregationKind.STDDEV,
    "stdev": AggregationKind.STDDEV,
    "std": AggregationKind.STDDEV,
    "median": AggregationKind.P50,
}

_PERCENTILE_KINDS: dict[int, AggregationKind] = {
    25: AggregationKind.P25,
    50: AggregationKind.P50,
    75: AggregationKind.P75,
    90: AggregationKind.P90,
    95: AggregationKind.P95,
    99: AggregationKind.P99,
}

_PERCENTILE_LABEL = re.compile(r"^(?:p|pct)\s*(\d{1,2})$|^(\d{1,2})(?:th)?\s+percentile$")


@dataclass(frozen=True)
class Aggregation:
    """Parsed form of a measurement's ``extra`` label.

    Known labels map to an AggregationKind. Anything else becomes
    ``UNKNOWN`` and keeps its original label, so it is written back
    unchanged.

    Example:
        >>> Aggregation.parse("P90").kind
        <AggregationKind.P90: 'p90'>
        >>> Aggregation.parse("trimmed mean").label
        'trimmed mean'
    """

    kind: AggregationKind = AggregationKind.NONE
    label: str = ""

    @classmethod
    def parse(cls, label: str | None) -> Aggregation:
        if label is None:
            return cls()
        text = label.strip()
        lowered = text.lower()
        if not lowered:
            return cls(AggregationKind.NONE, text)
        if lowered in _NAMED_KINDS:
            return cls(_NAMED_KINDS[lowered], text)

        match = _PERCENTILE_LABEL.match(lowered)
        if match:
            kind = _PERCENTILE_KINDS.get(int(match.group(1) or match.group(2)))
            if kind is not None:
                return cls(kind, text)
        return cls(AggregationKind.UNKNOWN, text)

    @classmethod
    def for_percentile(cls, percentile: float) -> Aggregation:
        """Aggregation label for a percentile computed by the reducer."""
        return cls.parse(f"P{percentile:g}")

    def __str__(self) -> str:
        return self.label


@dataclass(frozen=True)
class Person:
    """Author or committer of a commit."""

    name: str
    email: str
    username: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name, "email": self.email}
        if self.username:
            data["username"] = self.username
        return data

    @classmethod
    def from_dict(cls, data: Any, field_name: str) -> Person:
        if not isinstance(data, Mapping):
            raise RecordValidationError(field_name, f"expected an object, got {data!r}")
        name = data.get("name")
        email = data.get("email", "")
        username = data.get("username")
        if not isinstance(name, str):
            raise RecordValidationError(f"{field_name}.name", f"expected a string, got {name!r}")
        if not isinstance(email, str):
            raise RecordValidationError(f"{field_name}.email", f"expected a string, got {email!r}")
        if username is not None and not isinstance(username, str):
            raise RecordValidationError(f"{field_name}.username", f"expected a string, got {username!r}")
        return cls(name=name, email=email, username=username or None)


@dataclass(frozen=True)
class CommitIdentity:
    """Identity of the change that triggered a benchmark run.

    Attributes:
        hash: Commit hash, unique within a suite's history.
        author: Commit author.
        committer: Commit committer.
        timestamp: When the commit was made.
        url: Link to the commit.
        message: Optional commit message.
    """

    hash: str
    author: Person
    committer: Person
    timestamp: datetime
    url: str = ""
    message: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.hash, str) or not self.hash.strip():
            raise MissingCommitHashError("commit.hash", "commit hash is required")
        object.__setattr__(self, "hash", self.hash.strip())
        object.__setattr__(self, "timestamp", parse_timestamp(self.timestamp, "commit.timestamp"))

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "hash": self.hash,
            "author": self.author.to_dict(),
            "committer": self.committer.to_dict(),
            "timestamp": self.timestamp.isoformat(),
            "url": self.url,
        }
        if self.message is not None:
            data["message"] = self.message
        return data

    @classmethod
    def from_dict(cls, data: Any) -> CommitIdentity:
        """Create a commit identity from a dictionary.

        ``id`` is accepted as an alias of ``hash``, which is how
        GitHub payloads and older history files name it.

        Raises:
            RecordValidationError: If any field is malformed.
        """
        if not isinstance(data, Mapping):
            raise MissingCommitHashError("commit", f"expected a commit object, got {data!r}")

        commit_hash = data.get("hash", data.get("id"))
        if not isinstance(commit_hash, str) or not commit_hash.strip():
            raise MissingCommitHashError("commit.hash", "commit hash is required")

        author = Person.from_dict(data.get("author"), "commit.author")
        committer_data = data.get("committer")
        committer = author if committer_data is None else Person.from_dict(committer_data, "commit.committer")

        url = data.get("url", "")
        if not isinstance(url, str):
            raise RecordValidationError("commit.url", f"expected a string, got {url!r}")
        message = data.get("message")
        if message is not None and not isinstance(message, str):
            raise RecordValidationError("commit.message", f"expected a string, got {message!r}")

        return cls(
            hash=commit_hash,
            author=author,
            committer=committer,
            timestamp=parse_timestamp(data.get("timestamp"), "commit.timestamp"),
            url=url,
            message=message,
        )

    @classmethod
    def from_github_event(cls, payload: Mapping[str, Any]) -> CommitIdentity:
        """Create a commit identity from a GitHub event payload.

        Uses the ``head_commit`` of push events; a bare commit object is
        accepted as well.
        """
        commit = payload.get("head_commit") or payload.get("commit") or payload
        return cls.from_dict(commit)


def _validate_measurement(name: Any, value: Any, unit: Any, path: str) -> None:
    if not isinstance(name, str) or not name.strip():
        raise InvalidMeasurementError(f"{path}.name", "measurement name must be a non-empty string")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidMeasurementError(f"{path}.value", f"expected a number, got {value!r}")
    if not is_finite_number(value):
        raise InvalidMeasurementError(f"{path}.value", f"value must be finite, {_describe_non_finite(value)}")
    if value < 0:
        raise InvalidMeasurementError(f"{path}.value", f"value must be non-negative, got {value!r}")
    if not isinstance(unit, str) or not unit.strip():
        raise InvalidMeasurementError(f"{path}.unit", "unit must be a non-empty string")


@dataclass(frozen=True)
class Measurement:
    """A named metric within a run.

    Example:
        >>> Measurement("ffmpeg-pullDuration", 1.84, "Seconds", Aggregation.parse("P90"))
    """

    name: str
    value: float
    unit: str
    extra: Aggregation = field(default_factory=Aggregation)

    def __post_init__(self) -> None:
        _validate_measurement(self.name, self.value, self.unit, "measurement")
        object.__setattr__(self, "value", float(self.value))
        if isinstance(self.extra, str):
            object.__setattr__(self, "extra", Aggregation.parse(self.extra))

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "value": self.value, "unit": self.unit, "extra": self.extra.label}

    @classmethod
    def from_dict(cls, data: Any, path: str = "measurement") -> Measurement:
        if not isinstance(data, Mapping):
            raise InvalidMeasurementError(path, f"expected an object, got {data!r}")
        name, value, unit = data.get("name"), data.get("value"), data.get("unit")
        _validate_measurement(name, value, unit, path)
        extra = data.get("extra")
        if extra is not None and not isinstance(extra, str):
            raise InvalidMeasurementError(f"{path}.extra", f"expected a string, got {extra!r}")
        return cls(name=name, value=value, unit=unit, extra=Aggregation.parse(extra))


@dataclass(frozen=True)
class Record:
    """One benchmark run stored in a suite's history.

    Attributes:
        commit: Identity of the triggering change.
        date: When CI executed the run (not when the commit landed).
        tool: Comparison direction applied to every measurement.
        benches: Ordered measurements, names unique within the run.

    Example:
        >>> record = Record(
        ...     commit=commit,
        ...     date=datetime.now(timezone.utc),
        ...     tool=ComparisonDirection.SMALLER_IS_BETTER,
        ...     benches=(Measurement("pull", 1.2, "Seconds"),),
        ... )
    """

    commit: CommitIdentity
    date: datetime
    tool: ComparisonDirection
    benches: tuple[Measurement, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "benches", tuple(self.benches))
        object.__setattr__(self, "tool", ComparisonDirection.parse(self.tool))
        if not isinstance(self.date, datetime):
            raise InvalidTimestampError("date", f"expected a datetime, got {self.date!r}")
        object.__setattr__(self, "date", _ensure_aware(self.date))

        if not self.benches:
            raise EmptyMeasurementsError("benches", "at least one measurement is required")
        seen: set[str] = set()
        for index, bench in enumerate(self.benches):
            if bench.name in seen:
                raise InvalidMeasurementError(f"benches[{index}].name", f"duplicate measurement name '{bench.name}'")
            seen.add(bench.name)

    @property
    def commit_hash(self) -> str:
        return self.commit.hash

    @property
    def names(self) -> list[str]:
        return [bench.name for bench in self.benches]

    def measurement(self, name: str) -> Measurement | None:
        """Get a measurement by name, or None if the run lacks it."""
        for bench in self.benches:
            if bench.name == name:
                return bench
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert record to dictionary for serialization.

        The run date is written as epoch milliseconds.
        """
        return {
            "commit": self.commit.to_dict(),
            "date": to_epoch_ms(self.date),
            "tool": self.tool.value,
            "benches": [bench.to_dict() for bench in self.benches],
        }

    @classmethod
    def from_dict(cls, data: Any) -> Record:
        """Create a record from a dictionary, validating every field.

        Raises:
            RecordValidationError: The subclass for the first invalid field.
        """
        if not isinstance(data, Mapping):
            raise RecordValidationError("record", f"expected an object, got {type(data).__name__}")

        commit = CommitIdentity.from_dict(data.get("commit"))
        date = parse_run_date(data.get("date"), "date")
        tool = ComparisonDirection.parse(data.get("tool"))

        raw_benches = data.get("benches")
        if raw_benches is None or (isinstance(raw_benches, list) and not raw_benches):
            raise EmptyMeasurementsError("benches", "at least one measurement is required")
        if not isinstance(raw_benches, list):
            raise RecordValidationError("benches", f"expected a list, got {type(raw_benches).__name__}")

        benches = tuple(Measurement.from_dict(bench, f"benches[{i}]") for i, bench in enumerate(raw_benches))
        return cls(commit=commit, date=date, tool=tool, benches=benches)


def raw_commit_hash(raw: Any) -> str | None:
    """Best-effort commit hash of a raw stored entry, used for duplicate checks."""
    if isinstance(raw, Mapping):
        commit = raw.get("commit")
        if isinstance(commit, Mapping):
            value = commit.get("hash", commit.get("id"))
            if isinstance(value, str) and value.strip():
                return value.strip()
    return None


@dataclass(frozen=True)
class RejectedEntry:
    """A stored entry that failed validation on read.

    Kept in place so that positions and append order are preserved, and
    so that the raw data is written back untouched on the next append.
    """

    position: int
    raw: Any
    error: RecordValidationError

    @property
    def commit_hash(self) -> str | None:
        return raw_commit_hash(self.raw)


@dataclass
class SuiteHistory:
    """Ordered history of one benchmark suite, in append order.

    Attributes:
        suite_id: The benchmark suite identifier.
        entries: Valid records and rejected entries, in append order.
    """

    suite_id: str
    entries: list[Record | RejectedEntry] = field(default_factory=list)

    @property
    def records(self) -> list[Record]:
        return [entry for entry in self.entries if isinstance(entry, Record)]

    @property
    def rejected(self) -> list[RejectedEntry]:
        return [entry for entry in self.entries if isinstance(entry, RejectedEntry)]

    @property
    def hashes(self) -> set[str]:
        result: set[str] = set()
        for entry in self.entries:
            commit_hash = entry.commit_hash
            if commit_hash is not None:
                result.add(commit_hash)
        return result

    def get(self, commit_hash: str) -> Record | None:
        """Get the valid record for a commit hash, or None."""
        for record in self.records:
            if record.commit_hash == commit_hash:
                return record
        return None

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[Record | RejectedEntry]:
        return iter(self.entries)
