"""Tests for the sample reducer."""

from __future__ import annotations

import pytest

from benchkeeper.core.config import PercentileMethod
from benchkeeper.core.exceptions import ConfigurationError, InsufficientDataError, InvalidMeasurementError
from benchkeeper.history.models import AggregationKind
from benchkeeper.regression.reducer import SampleReducer, midpoint_rank, nearest_rank


class TestNearestRank:
    """Tests for the nearest-rank percentile."""

    def test_median_of_even_count(self) -> None:
        """No interpolation: the lower middle sample is returned."""
        assert nearest_rank([4.0, 1.0, 3.0, 2.0], 50) == 2.0

    def test_p90_of_ten(self) -> None:
        """P90 of ten samples is the ninth smallest."""
        assert nearest_rank([float(i) for i in range(1, 11)], 90) == 9.0

    def test_p70_has_no_float_drift(self) -> None:
        """An exact rank is not pushed to the next sample."""
        assert nearest_rank([float(i) for i in range(1, 11)], 70) == 7.0

    def test_p100_is_max(self) -> None:
        """P100 is the maximum."""
        assert nearest_rank([3.0, 9.0, 1.0], 100) == 9.0

    def test_tiny_percentile_is_min(self) -> None:
        """The rank is at least one."""
        assert nearest_rank([3.0, 9.0, 1.0], 0.1) == 1.0

    def test_result_is_a_sample(self) -> None:
        """The result is always one of the observed samples."""
        samples = [1.7, 2.3, 9.4, 0.2, 5.5]
        for percent in (10, 25, 50, 75, 90, 99):
            assert nearest_rank(samples, percent) in samples


class TestMidpointRank:
    """Tests for the midpoint percentile used by the benchmark framework."""

    def test_p90_of_five_averages_top_two(self) -> None:
        """P90 of five samples averages the fourth and fifth smallest."""
        assert midpoint_rank([5.0, 1.0, 4.0, 2.0, 3.0], 90) == 4.5

    def test_p50_of_five(self) -> None:
        """A fractional median rank averages its neighbours."""
        assert midpoint_rank([1.0, 2.0, 3.0, 4.0, 5.0], 50) == 2.5

    def test_whole_rank_returns_sample(self) -> None:
        """A whole rank returns that sample without drifting to the next."""
        assert midpoint_rank([float(i) for i in range(1, 11)], 70) == 7.0
        assert midpoint_rank([float(i) for i in range(1, 11)], 90) == 9.0

    def test_p100_is_max(self) -> None:
        """P100 is the maximum."""
        assert midpoint_rank([3.0, 9.0, 1.0], 100) == 9.0

    def test_tiny_percentile_is_min(self) -> None:
        """A rank below one is clamped to the smallest sample."""
        assert midpoint_rank([3.0, 9.0, 1.0], 10) == 1.0

    def test_differs_from_nearest_rank(self) -> None:
        """Nearest-rank returns an observed sample where midpoint averages."""
        samples = [1.0, 2.0, 3.0, 4.0, 5.0]

        assert nearest_rank(samples, 90) == 5.0
        assert midpoint_rank(samples, 90) == 4.5


class TestSampleReducer:
    """Tests for SampleReducer."""

    def test_warmup_exclusion(self) -> None:
        """The warm-up sample is dropped before the percentile."""
        reducer = SampleReducer(percentile=90, warmup=1)

        assert reducer.reduce([10.0, 2.0, 2.0, 2.0]) == 2.0

    def test_without_warmup_outlier_dominates(self) -> None:
        """Without exclusion the cold sample is the P90."""
        reducer = SampleReducer(percentile=90, warmup=0)

        assert reducer.reduce([10.0, 2.0, 2.0, 2.0]) == 10.0

    def test_all_samples_excluded(self) -> None:
        """Excluding every sample raises InsufficientDataError."""
        reducer = SampleReducer(percentile=90, warmup=4)

        with pytest.raises(InsufficientDataError):
            reducer.reduce([10.0, 2.0, 2.0, 2.0], metric="pull-duration")

    def test_empty_samples(self) -> None:
        """No samples at all raises InsufficientDataError."""
        with pytest.raises(InsufficientDataError):
            SampleReducer().reduce([])

    def test_non_numeric_sample(self) -> None:
        """Non-numeric samples are rejected with their index."""
        with pytest.raises(InvalidMeasurementError) as exc_info:
            SampleReducer().reduce([1.0, "slow"], metric="pull")  # type: ignore[list-item]

        assert exc_info.value.field == "pull[1]"

    @pytest.mark.parametrize(("percentile", "warmup"), [(0, 0), (101, 0), (90, -1)])
    def test_invalid_configuration(self, percentile: float, warmup: int) -> None:
        """Out-of-range settings are rejected."""
        with pytest.raises(ConfigurationError):
            SampleReducer(percentile=percentile, warmup=warmup)

    def test_aggregation_label(self) -> None:
        """The reducer labels its values with its percentile."""
        assert SampleReducer(percentile=90).aggregation.kind is AggregationKind.P90
        assert SampleReducer(percentile=50).aggregation.label == "P50"

    def test_summarize(self) -> None:
        """summarize reports statistics over the steady-state samples."""
        summary = SampleReducer(warmup=1).summarize([100.0, 1.0, 2.0, 3.0, 4.0])

        assert summary.count == 4
        assert summary.excluded == 1
        assert summary.mean == pytest.approx(2.5)
        assert summary.min == 1.0
        assert summary.max == 4.0
        assert summary.p50 == 2.0
        assert summary.p90 == 4.0

    def test_summarize_midpoint(self) -> None:
        """summarize follows the reducer's percentile method."""
        summary = SampleReducer(warmup=1, method="midpoint").summarize([100.0, 1.0, 2.0, 3.0, 4.0])

        assert summary.p25 == 1.0
        assert summary.p50 == 2.0
        assert summary.p75 == 3.0
        assert summary.p90 == 3.5

    def test_midpoint_method(self) -> None:
        """The midpoint method reproduces the framework's P90 of five repetitions."""
        reducer = SampleReducer(percentile=90, warmup=0, method=PercentileMethod.MIDPOINT)

        assert reducer.method is PercentileMethod.MIDPOINT
        assert reducer.reduce([5.0, 1.0, 4.0, 2.0, 3.0]) == 4.5

    def test_default_method_is_nearest_rank(self) -> None:
        """Without a method the reducer keeps nearest-rank."""
        assert SampleReducer().method is PercentileMethod.NEAREST_RANK
        assert SampleReducer(warmup=0).reduce([5.0, 1.0, 4.0, 2.0, 3.0]) == 5.0

    def test_unknown_method(self) -> None:
        """An unknown percentile method is a configuration error."""
        with pytest.raises(ConfigurationError):
            SampleReducer(method="linear")

    def test_integer_too_large_for_float(self) -> None:
        """A sample beyond float range is rejected, not overflowed."""
        with pytest.raises(InvalidMeasurementError) as exc_info:
            SampleReducer().reduce([1.0, 10**400], metric="pull")

        assert exc_info.value.field == "pull[1]"
