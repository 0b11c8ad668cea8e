"""Tests for console and JSON reporters."""

from __future__ import annotations

import io
import json
from datetime import datetime, timezone
from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from pathlib import Path

from benchkeeper.core.exceptions import InvalidMeasurementError
from benchkeeper.core.gating import decide
from benchkeeper.history.models import (
    CommitIdentity,
    ComparisonDirection,
    Measurement,
    Person,
    Record,
    RejectedEntry,
    SuiteHistory,
)
from benchkeeper.regression.models import MetricEvaluation, MetricStatus, RegressionVerdict
from benchkeeper.regression.reducer import SampleReducer
from benchkeeper.reporters import ConsoleReporter, JSONReporter

# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def verdict() -> RegressionVerdict:
    """A verdict with one flagged and one inconclusive metric."""
    return RegressionVerdict(
        suite_id="soci-perf",
        commit_hash="a1b2c3d4e5f6a7b8",
        direction=ComparisonDirection.SMALLER_IS_BETTER,
        status=MetricStatus.FLAGGED,
        metrics=[
            MetricEvaluation(
                name="ubuntu-pullDuration",
                unit="Seconds",
                status=MetricStatus.FLAGGED,
                new_value=1.48,
                baseline_value=1.21,
                delta_percent=22.31,
                threshold_percent=10.0,
                samples=5,
            ),
            MetricEvaluation(
                name="ubuntu-lazyTaskDuration",
                unit="Seconds",
                status=MetricStatus.INCONCLUSIVE,
                new_value=0.5,
                threshold_percent=10.0,
                reason="no baseline history",
            ),
        ],
        baseline_records=5,
        excluded=1,
    )


@pytest.fixture
def history() -> SuiteHistory:
    author = Person(name="Jane", email="jane@example.com")
    record = Record(
        commit=CommitIdentity(
            hash="a1b2c3d4e5f6a7b8",
            author=author,
            committer=author,
            timestamp=datetime(2024, 3, 1, tzinfo=timezone.utc),
        ),
        date=datetime(2024, 3, 1, 0, 5, tzinfo=timezone.utc),
        tool=ComparisonDirection.SMALLER_IS_BETTER,
        benches=(Measurement("pull", 1.0, "Seconds"), Measurement("lazy", 2.0, "Seconds")),
    )
    rejected = RejectedEntry(
        position=1,
        raw={"commit": {"id": "deadbeef"}},
        error=InvalidMeasurementError("benches[0].value", "expected a number"),
    )
    return SuiteHistory("soci-perf", [record, rejected])


# ============================================================================
# Console Reporter Tests
# ============================================================================


class TestConsoleReporter:
    """Tests for ConsoleReporter."""

    def test_no_colors_for_non_tty(self) -> None:
        """Colors are disabled when the stream is not a terminal."""
        reporter = ConsoleReporter(output=io.StringIO())

        assert reporter.use_colors is False

    def test_report_verdict_table(self, verdict: RegressionVerdict) -> None:
        """The verdict table shows baseline, new value, delta and status."""
        output = io.StringIO()
        ConsoleReporter(use_colors=False, output=output).report_verdict(verdict)

        text = output.getvalue()
        assert "Suite 'soci-perf' @ a1b2c3d4e5f6: FLAGGED" in text
        assert "ubuntu-pullDuration" in text
        assert "1.21" in text
        assert "1.48" in text
        assert "+22.31%" in text
        assert "INCONCLUSIVE" in text
        assert "5 records, 1 excluded" in text
        assert "\033[" not in text

    def test_inconclusive_caveat(self, verdict: RegressionVerdict) -> None:
        """A non-blocking inconclusive metric is called out."""
        inconclusive = verdict.model_copy(update={"status": MetricStatus.INCONCLUSIVE, "metrics": verdict.metrics[1:]})
        output = io.StringIO()

        ConsoleReporter(use_colors=False, output=output).report_verdict(inconclusive, decide(inconclusive))

        text = output.getvalue()
        assert "do not block" in text
        assert "not evaluated: no baseline history" in text
        assert "Check passed" in text

    def test_flagged_decision(self, verdict: RegressionVerdict) -> None:
        """A blocking decision reports its exit code."""
        output = io.StringIO()

        ConsoleReporter(use_colors=False, output=output).report_verdict(verdict, decide(verdict))

        assert "Check failed (exit code 1)" in output.getvalue()

    def test_report_history(self, history: SuiteHistory) -> None:
        """History lists valid and malformed entries."""
        output = io.StringIO()

        ConsoleReporter(use_colors=False, output=output).report_history(history)

        text = output.getvalue()
        assert "Suite 'soci-perf' (2 entries)" in text
        assert "a1b2c3d4e5f6" in text
        assert "malformed" in text
        assert "deadbeef" in text

    def test_report_history_limit(self, history: SuiteHistory) -> None:
        """limit keeps only the newest entries."""
        output = io.StringIO()

        ConsoleReporter(use_colors=False, output=output).report_history(history, limit=1)

        text = output.getvalue()
        assert "deadbeef" in text
        assert "a1b2c3d4e5f6" not in text

    def test_empty_history(self) -> None:
        output = io.StringIO()

        ConsoleReporter(use_colors=False, output=output).report_history(SuiteHistory("soci-perf"))

        assert "No entries recorded." in output.getvalue()

    def test_report_samples(self) -> None:
        """Repetition statistics are printed per metric."""
        output = io.StringIO()
        summary = SampleReducer(warmup=1).summarize([5.0, 1.0, 1.1, 1.2])

        ConsoleReporter(use_colors=False, output=output).report_samples({"ffmpeg-pullDuration": summary})

        text = output.getvalue()
        assert "Repetitions" in text
        assert "ffmpeg-pullDuration" in text
        assert "3 (+1)" in text
        assert "1.2" in text

    def test_report_samples_empty(self) -> None:
        output = io.StringIO()

        ConsoleReporter(use_colors=False, output=output).report_samples({})

        assert output.getvalue() == ""


# ============================================================================
# JSON Reporter Tests
# ============================================================================


class TestJSONReporter:
    """Tests for JSONReporter."""

    def test_report(self, verdict: RegressionVerdict) -> None:
        """The report wraps the verdict with a timestamp."""
        data = json.loads(JSONReporter().report(verdict, decide(verdict), metadata={"duplicate": False}))

        assert "generated_at" in data
        assert data["verdict"]["status"] == "flagged"
        assert data["verdict"]["metrics"][0]["delta_percent"] == 22.31
        assert data["gating"]["exit_code"] == 1
        assert data["metadata"] == {"duplicate": False}

    def test_compact(self, verdict: RegressionVerdict) -> None:
        """indent=None gives a single line."""
        assert "\n" not in JSONReporter(indent=None).report(verdict)

    def test_report_to_file(self, verdict: RegressionVerdict, tmp_path: Path) -> None:
        path = tmp_path / "out" / "verdict.json"

        JSONReporter().report_to_file(verdict, path)

        assert json.loads(path.read_text())["verdict"]["suite"] == "soci-perf"

    def test_report_history(self, history: SuiteHistory) -> None:
        """Malformed entries are listed with their error."""
        data = json.loads(JSONReporter().report_history(history))

        assert data["total"] == 2
        assert data["entries"][0]["valid"] is True
        assert data["entries"][0]["commit"]["hash"] == "a1b2c3d4e5f6a7b8"
        assert data["entries"][1] == {
            "valid": False,
            "position": 1,
            "commit": "deadbeef",
            "error": "benches[0].value: expected a number",
        }
