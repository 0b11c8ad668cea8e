"""Tests for CI gating module."""

from __future__ import annotations

import pytest

from benchkeeper.core.exceptions import (
    ConcurrentWriteError,
    ConfigurationError,
    DuplicateCommitError,
    InsufficientDataError,
    MissingCommitHashError,
    RecordNotFoundError,
    RunOutputError,
    StoreCorruptedError,
    StoreTimeoutError,
)
from benchkeeper.core.gating import ExitCode, decide, exit_code_for, exit_code_for_error
from benchkeeper.history.models import ComparisonDirection
from benchkeeper.regression.models import MetricEvaluation, MetricStatus, RegressionVerdict


def make_verdict(*statuses: MetricStatus) -> RegressionVerdict:
    """Create a verdict whose metrics have the given statuses."""
    metrics = [
        MetricEvaluation(
            name=f"metric{i}",
            unit="Seconds",
            status=status,
            new_value=1.0,
            baseline_value=None if status == MetricStatus.INCONCLUSIVE else 1.0,
            delta_percent=None if status == MetricStatus.INCONCLUSIVE else 0.0,
            threshold_percent=10.0,
            reason="no baseline history" if status == MetricStatus.INCONCLUSIVE else None,
        )
        for i, status in enumerate(statuses)
    ]
    if MetricStatus.FLAGGED in statuses:
        overall = MetricStatus.FLAGGED
    elif MetricStatus.INCONCLUSIVE in statuses:
        overall = MetricStatus.INCONCLUSIVE
    else:
        overall = MetricStatus.PASS
    return RegressionVerdict(
        suite_id="soci-perf",
        commit_hash="a1b2c3d",
        direction=ComparisonDirection.SMALLER_IS_BETTER,
        status=overall,
        metrics=metrics,
    )


class TestExitCodes:
    """Tests for the exit code values."""

    def test_codes_are_stable(self) -> None:
        """CI depends on these exact values."""
        assert ExitCode.PASS == 0
        assert ExitCode.FLAGGED == 1
        assert ExitCode.USAGE_ERROR == 2
        assert ExitCode.INCONCLUSIVE == 3
        assert ExitCode.STORE_ERROR == 4
        assert ExitCode.INVALID_RUN == 5
        assert ExitCode.CONFIG_ERROR == 6


class TestExitCodeForVerdict:
    """Tests for mapping verdicts to exit codes."""

    def test_pass(self) -> None:
        assert exit_code_for(make_verdict(MetricStatus.PASS)) == ExitCode.PASS

    def test_flagged(self) -> None:
        assert exit_code_for(make_verdict(MetricStatus.PASS, MetricStatus.FLAGGED)) == ExitCode.FLAGGED

    def test_inconclusive_does_not_block_by_default(self) -> None:
        """Inconclusive passes unless the suite blocks on it."""
        verdict = make_verdict(MetricStatus.INCONCLUSIVE)

        assert exit_code_for(verdict) == ExitCode.PASS
        assert exit_code_for(verdict, inconclusive_blocks=True) == ExitCode.INCONCLUSIVE

    def test_flagged_wins_over_inconclusive(self) -> None:
        verdict = make_verdict(MetricStatus.INCONCLUSIVE, MetricStatus.FLAGGED)

        assert exit_code_for(verdict, inconclusive_blocks=True) == ExitCode.FLAGGED


class TestDecide:
    """Tests for GatingDecision."""

    def test_pass_decision(self) -> None:
        decision = decide(make_verdict(MetricStatus.PASS))

        assert decision.blocking is False
        assert decision.to_dict()["exit_code"] == 0
        assert decision.status == "pass"

    def test_inconclusive_note(self) -> None:
        """A non-blocking inconclusive verdict carries a caveat."""
        decision = decide(make_verdict(MetricStatus.INCONCLUSIVE))

        assert decision.blocking is False
        assert "do not block" in decision.summary

    def test_blocking_inconclusive(self) -> None:
        decision = decide(make_verdict(MetricStatus.INCONCLUSIVE), inconclusive_blocks=True)

        assert decision.blocking is True
        assert decision.exit_code == ExitCode.INCONCLUSIVE


class TestExitCodeForError:
    """Tests for mapping failures to exit codes."""

    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            (MissingCommitHashError("commit.hash", "required"), ExitCode.INVALID_RUN),
            (RunOutputError("output", "bad"), ExitCode.INVALID_RUN),
            (InsufficientDataError("no samples"), ExitCode.INVALID_RUN),
            (RecordNotFoundError("soci-perf", "abc"), ExitCode.INVALID_RUN),
            (StoreTimeoutError("slow"), ExitCode.STORE_ERROR),
            (StoreCorruptedError("broken"), ExitCode.STORE_ERROR),
            (ConcurrentWriteError("locked"), ExitCode.STORE_ERROR),
            (ConfigurationError("bad"), ExitCode.CONFIG_ERROR),
            (FileNotFoundError("missing.yaml"), ExitCode.CONFIG_ERROR),
        ],
    )
    def test_known_errors(self, error: Exception, expected: ExitCode) -> None:
        assert exit_code_for_error(error) == expected

    def test_unknown_error(self) -> None:
        """Errors outside the hierarchy are not mapped."""
        assert exit_code_for_error(ValueError("boom")) is None
        assert exit_code_for_error(DuplicateCommitError("soci-perf", "abc")) is None
