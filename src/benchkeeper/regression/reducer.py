"""Sample reduction for benchmark measurements.

This module turns the raw repetitions of a benchmark into one summary
value. The first ``warmup`` samples are dropped before anything is
computed: early repetitions run against cold caches and registries and
are systematically slower.

Two percentile methods are available:

- nearest-rank (default): the smallest sample such that at least ``p``
  percent of the samples are less than or equal to it. No interpolation
  is done, so every result is one of the observed samples.
- midpoint: the method behind the benchmark framework's own pct
  statistics. When the rank ``p/100 * n`` is whole, that sample is
  returned; otherwise the two neighbouring samples are averaged. Use it
  when the history was produced by the framework's reported statistics.

Both are deterministic, so a decision can be reproduced from the raw
data alone.
"""

from __future__ import annotations

import math
import statistics
from collections.abc import Sequence
from dataclasses import asdict, dataclass
from typing import Any

from benchkeeper.core.config import PercentileMethod
from benchkeeper.core.exceptions import ConfigurationError, InsufficientDataError, InvalidMeasurementError
from benchkeeper.history.models import Aggregation, is_finite_number

# Ranks within this distance of a whole number are treated as whole
_RANK_TOLERANCE = 1e-9


def nearest_rank(samples: Sequence[float], percent: float) -> float:
    """Nearest-rank percentile of a non-empty sample set.

    Args:
        samples: Sample values (any order).
        percent: Percentile in (0, 100].

    Returns:
        The percentile value.

    Example:
        >>> nearest_rank([1.0, 2.0, 3.0, 4.0], 50)
        2.0
    """
    ordered = sorted(samples)
    rank = max(1, math.ceil(percent * len(ordered) / 100))
    return ordered[rank - 1]


def midpoint_rank(samples: Sequence[float], percent: float) -> float:
    """Percentile averaging the two neighbours of a fractional rank.

    A rank below one is clamped to the smallest sample.

    Example:
        >>> midpoint_rank([1.0, 2.0, 3.0, 4.0, 5.0], 90)
        4.5
    """
    ordered = sorted(samples)
    index = percent * len(ordered) / 100
    whole = round(index)
    if abs(index - whole) <= _RANK_TOLERANCE:
        return ordered[max(1, whole) - 1]

    lower = int(index)
    if lower < 1:
        return ordered[0]
    return (ordered[lower - 1] + ordered[lower]) / 2


_METHODS = {
    PercentileMethod.NEAREST_RANK: nearest_rank,
    PercentileMethod.MIDPOINT: midpoint_rank,
}


@dataclass(frozen=True)
class SampleSummary:
    """Descriptive statistics over the post-warm-up samples.

    Attributes:
        count: Number of samples used.
        excluded: Number of warm-up samples dropped.
    """

    count: int
    excluded: int
    mean: float
    stddev: float
    min: float
    p25: float
    p50: float
    p75: float
    p90: float
    max: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class SampleReducer:
    """Reduce raw samples to a percentile after warm-up exclusion.

    Attributes:
        percentile: Target percentile in (0, 100] (default 90).
        warmup: Number of leading samples to drop (default 0).
        method: Percentile method (default nearest-rank).

    Example:
        >>> reducer = SampleReducer(percentile=90, warmup=1)
        >>> reducer.reduce([10.0, 2.0, 2.0, 2.0])
        2.0
    """

    def __init__(
        self,
        percentile: float = 90.0,
        warmup: int = 0,
        method: PercentileMethod | str = PercentileMethod.NEAREST_RANK,
    ) -> None:
        if not 0 < percentile <= 100:
            raise ConfigurationError(f"percentile must be in (0, 100], got {percentile}")
        if warmup < 0:
            raise ConfigurationError(f"warmup must be non-negative, got {warmup}")
        try:
            self.method = PercentileMethod(method)
        except ValueError as e:
            raise ConfigurationError(f"Unknown percentile method: {method!r}") from e
        self.percentile = percentile
        self.warmup = warmup
        self._pick = _METHODS[self.method]

    @property
    def aggregation(self) -> Aggregation:
        """The aggregation label for values produced by this reducer."""
        return Aggregation.for_percentile(self.percentile)

    def _steady_state(self, samples: Sequence[float], metric: str) -> list[float]:
        label = metric or "samples"
        values: list[float] = []
        for index, value in enumerate(samples):
            if not is_finite_number(value):
                raise InvalidMeasurementError(f"{label}[{index}]", f"expected a finite number, got {value!r}")
            values.append(float(value))

        remaining = values[self.warmup :]
        if not remaining:
            raise InsufficientDataError(
                f"{label}: {len(values)} samples, {min(self.warmup, len(values))} excluded as warm-up, none left"
            )
        return remaining

    def reduce(self, samples: Sequence[float], metric: str = "") -> float:
        """Compute the target percentile over the post-warm-up samples.

        Args:
            samples: Raw samples in chronological order.
            metric: Metric name, used in error messages.

        Returns:
            The summary value.

        Raises:
            InsufficientDataError: If no samples remain after warm-up exclusion.
            InvalidMeasurementError: If a sample is not a finite number.
        """
        return self._pick(self._steady_state(samples, metric), self.percentile)

    def summarize(self, samples: Sequence[float], metric: str = "") -> SampleSummary:
        """Compute descriptive statistics over the post-warm-up samples."""
        values = self._steady_state(samples, metric)
        return SampleSummary(
            count=len(values),
            excluded=len(samples) - len(values),
            mean=statistics.fmean(values),
            stddev=statistics.pstdev(values),
            min=min(values),
            p25=self._pick(values, 25),
            p50=self._pick(values, 50),
            p75=self._pick(values, 75),
            p90=self._pick(values, 90),
            max=max(values),
        )
