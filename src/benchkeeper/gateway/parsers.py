"""Parsers for raw benchmark run output.

Two shapes of output are understood:

- a list of benches ``[{"name", "value", "unit", "extra"}, ...]``, possibly
  wrapped as ``{"benches": [...]}``; values are taken as given;
- benchmark framework results ``{"benchmarkTests": [...]}``, where every
  test carries raw repetition times per stage; each stage is reduced
  with the suite's SampleReducer.
"""

from __future__ import annotations

import json
from collections.abc import Iterator, Mapping
from typing import Any

from benchkeeper.core.exceptions import RunOutputError
from benchkeeper.history.models import Measurement
from benchkeeper.regression.reducer import SampleReducer, SampleSummary

# Stage statistics reported per test, and the measurement suffix for each
STAGE_LABELS: dict[str, str] = {
    "fullRunStats": "fullRunDuration",
    "pullStats": "pullDuration",
    "lazyTaskStats": "lazyTaskDuration",
    "localTaskStats": "localTaskDuration",
}

FRAMEWORK_UNIT = "Seconds"


def decode_run_output(raw: Any) -> Any:
    """Decode JSON text; already-decoded data is returned unchanged."""
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise RunOutputError("output", f"not UTF-8 text: {e}") from e
    if isinstance(raw, str):
        try:
            return json.loads(raw)
        except (ValueError, RecursionError) as e:
            raise RunOutputError("output", f"not valid JSON: {e}") from e
    return raw


def parse_benches(items: list[Any]) -> list[Measurement]:
    """Parse a list of bench objects into measurements."""
    return [Measurement.from_dict(item, f"benches[{index}]") for index, item in enumerate(items)]


def _stage_samples(data: Mapping[str, Any]) -> Iterator[tuple[str, list[Any]]]:
    """Yield ``(measurement name, raw samples)`` for every stage with samples.

    Raises:
        RunOutputError: If the document is malformed or a test has no samples.
    """
    tests = data.get("benchmarkTests")
    if not isinstance(tests, list):
        raise RunOutputError("benchmarkTests", "expected a list of tests")

    for index, test in enumerate(tests):
        path = f"benchmarkTests[{index}]"
        if not isinstance(test, Mapping):
            raise RunOutputError(path, "expected an object")
        test_name = test.get("testName")
        if not isinstance(test_name, str) or not test_name.strip():
            raise RunOutputError(f"{path}.testName", "test name is required")

        produced = 0
        for key, label in STAGE_LABELS.items():
            stats = test.get(key)
            if stats is None:
                continue
            if not isinstance(stats, Mapping):
                raise RunOutputError(f"{path}.{key}", "expected an object")
            times = stats.get("BenchmarkTimes")
            if not times:
                continue
            if not isinstance(times, list):
                raise RunOutputError(f"{path}.{key}.BenchmarkTimes", "expected a list of samples")
            yield f"{test_name}-{label}", times
            produced += 1

        if not produced:
            raise RunOutputError(path, f"test '{test_name}' has no benchmark samples")


def parse_framework_results(data: Mapping[str, Any], reducer: SampleReducer) -> list[Measurement]:
    """Reduce benchmark framework results into measurements.

    Each test produces one measurement per stage that has samples, named
    ``<testName>-<stage>``.

    Args:
        data: Decoded results document with a ``benchmarkTests`` list.
        reducer: Reducer applied to each stage's ``BenchmarkTimes``.

    Returns:
        Measurements in test order, then stage order.

    Raises:
        RunOutputError: If the document is malformed or a test has no samples.
        InsufficientDataError: If warm-up exclusion leaves a stage without samples.
    """
    return [
        Measurement(
            name=name,
            value=reducer.reduce(times, metric=name),
            unit=FRAMEWORK_UNIT,
            extra=reducer.aggregation,
        )
        for name, times in _stage_samples(data)
    ]


def summarize_run_output(raw: Any, reducer: SampleReducer | None = None) -> dict[str, SampleSummary]:
    """Describe the raw repetitions behind each measurement of a run.

    Only framework results carry repetitions; a list of benches has
    nothing to describe and yields an empty mapping.

    Args:
        raw: JSON text, bytes, or decoded data.
        reducer: Reducer whose warm-up and percentile method apply.

    Returns:
        Statistics per measurement name, in output order.
    """
    data = decode_run_output(raw)
    if not isinstance(data, Mapping) or "benchmarkTests" not in data:
        return {}
    reducer = reducer or SampleReducer()
    return {name: reducer.summarize(times, metric=name) for name, times in _stage_samples(data)}


def parse_run_output(raw: Any, reducer: SampleReducer | None = None) -> list[Measurement]:
    """Parse raw run output into measurements.

    Args:
        raw: JSON text, bytes, or decoded data.
        reducer: Reducer for raw repetitions (default: SampleReducer()).

    Returns:
        Measurements in output order.

    Raises:
        RunOutputError: If the output has an unknown shape.
        RecordValidationError: If a bench is malformed.
    """
    data = decode_run_output(raw)

    if isinstance(data, Mapping):
        if "benchmarkTests" in data:
            return parse_framework_results(data, reducer or SampleReducer())
        if "benches" in data:
            data = data["benches"]

    if isinstance(data, list):
        return parse_benches(data)
    raise RunOutputError("output", "expected a list of benches or a benchmarkTests document")
