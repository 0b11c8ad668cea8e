"""Regression detector for benchmark histories.

This module provides the RegressionDetector class, which compares a
newly recorded run against a baseline window of earlier runs of the
same suite.
"""

from __future__ import annotations

import logging
from datetime import datetime

from benchkeeper.core.config import BaselineOrder, SuiteConfig
from benchkeeper.history.models import ComparisonDirection, Measurement, Record, RejectedEntry, SuiteHistory
from benchkeeper.regression.models import (
    DetectionState,
    MetricEvaluation,
    MetricStatus,
    RegressionVerdict,
)

logger = logging.getLogger(__name__)

# Absorbs float error so that a change of exactly the threshold is not flagged
BOUNDARY_TOLERANCE = 1e-9


class RegressionDetector:
    """Detect regressions of a record against its suite's history.

    The baseline window is the last ``window_size`` entries of the
    history, excluding the evaluated commit. Each metric's baseline is
    the ``baseline_percentile`` of its values across the window. A
    metric is flagged when its regression, relative to the baseline,
    is strictly greater than its threshold.

    Metrics without enough baseline samples are reported inconclusive,
    never as passing. Malformed historical entries are excluded from
    the window and logged; they do not stop the evaluation.

    Attributes:
        config: Sensitivity settings for the suite.

    Example:
        >>> detector = RegressionDetector(SuiteConfig(threshold_percent=10))
        >>> verdict = detector.evaluate(record, history)
        >>> if verdict.has_regressions:
        ...     for metric in verdict.flagged:
        ...         print(metric.message(verdict.direction))
    """

    def __init__(self, config: SuiteConfig | None = None) -> None:
        """Initialize detector.

        Args:
            config: Suite configuration. Defaults to SuiteConfig().
        """
        self.config = config or SuiteConfig()
        self._baseline_reducer = self.config.baseline_reducer()
        self._retention = self.config.retention_policy()

    def _enter(self, transitions: list[DetectionState], state: DetectionState, commit_hash: str) -> None:
        logger.debug(f"Evaluation of {commit_hash}: {transitions[-1].value} -> {state.value}")
        transitions.append(state)

    def select_window(
        self,
        record: Record,
        history: SuiteHistory,
        now: datetime | None = None,
    ) -> tuple[list[Record], list[RejectedEntry]]:
        """Select the baseline window for a record.

        Args:
            record: The record being evaluated (excluded from its own baseline).
            history: The suite history.
            now: Reference time for read-time retention.

        Returns:
            Valid records of the window in baseline order, and the
            malformed entries excluded from it.
        """
        candidates = [entry for entry in history.entries if entry.commit_hash != record.commit_hash]

        if self.config.baseline_order == BaselineOrder.COMMIT_TIME:
            # Malformed entries have no usable commit time, so they cannot be placed
            rejected = [entry for entry in candidates if isinstance(entry, RejectedEntry)]
            records = sorted(
                (entry for entry in candidates if isinstance(entry, Record)),
                key=lambda r: r.commit.timestamp,
            )
            window = self._retention.apply(records, now=now)[-self.config.window_size :]
        else:
            window = self._retention.apply(candidates, now=now)[-self.config.window_size :]
            rejected = [entry for entry in window if isinstance(entry, RejectedEntry)]

        for entry in rejected:
            logger.warning(
                f"Excluding malformed entry {entry.position} of suite '{history.suite_id}' from baseline: {entry.error}"
            )
        return [entry for entry in window if isinstance(entry, Record)], rejected

    def _baseline_samples(self, record: Record, window: list[Record]) -> dict[str, list[float]]:
        samples: dict[str, list[float]] = {bench.name: [] for bench in record.benches}
        for previous in window:
            for bench in record.benches:
                old = previous.measurement(bench.name)
                if old is None:
                    continue
                if old.unit != bench.unit:
                    logger.debug(
                        f"Skipping {bench.name} of {previous.commit_hash}: unit {old.unit!r} != {bench.unit!r}"
                    )
                    continue
                samples[bench.name].append(old.value)
        return samples

    def _compare(
        self,
        bench: Measurement,
        samples: list[float],
        direction: ComparisonDirection,
    ) -> MetricEvaluation:
        threshold = self.config.threshold_for(bench.name)
        common = {
            "name": bench.name,
            "unit": bench.unit,
            "new_value": bench.value,
            "threshold_percent": threshold * 100,
            "samples": len(samples),
        }

        if len(samples) < self.config.min_baseline:
            if samples:
                reason = f"only {len(samples)} baseline samples, {self.config.min_baseline} required"
            else:
                reason = "no baseline history"
            return MetricEvaluation(status=MetricStatus.INCONCLUSIVE, reason=reason, **common)

        baseline = self._baseline_reducer.reduce(samples, bench.name)
        if baseline == 0:
            return MetricEvaluation(
                status=MetricStatus.INCONCLUSIVE,
                baseline_value=baseline,
                reason="baseline value is zero",
                **common,
            )

        delta = (bench.value - baseline) / baseline
        regression = delta if direction.smaller_is_better else -delta
        status = MetricStatus.FLAGGED if regression - threshold > BOUNDARY_TOLERANCE else MetricStatus.PASS

        return MetricEvaluation(
            status=status,
            baseline_value=baseline,
            delta_percent=delta * 100,
            **common,
        )

    def evaluate(
        self,
        record: Record,
        history: SuiteHistory,
        now: datetime | None = None,
    ) -> RegressionVerdict:
        """Evaluate a record against its suite's history.

        Args:
            record: The record to evaluate, usually the one just appended.
            history: The suite history (may contain the record itself).
            now: Reference time for read-time retention.

        Returns:
            RegressionVerdict with per-metric evaluations.
        """
        transitions = [DetectionState.PENDING]

        self._enter(transitions, DetectionState.COMPUTING_BASELINE, record.commit_hash)
        window, rejected = self.select_window(record, history, now=now)
        samples = self._baseline_samples(record, window)

        self._enter(transitions, DetectionState.COMPARING, record.commit_hash)
        evaluations = [self._compare(bench, samples[bench.name], record.tool) for bench in record.benches]

        statuses = {evaluation.status for evaluation in evaluations}
        if MetricStatus.FLAGGED in statuses:
            status = MetricStatus.FLAGGED
        elif MetricStatus.INCONCLUSIVE in statuses:
            status = MetricStatus.INCONCLUSIVE
        else:
            status = MetricStatus.PASS
        self._enter(transitions, DetectionState(status.value), record.commit_hash)

        return RegressionVerdict(
            suite_id=history.suite_id,
            commit_hash=record.commit_hash,
            direction=record.tool,
            status=status,
            metrics=evaluations,
            baseline_records=len(window),
            excluded=len(rejected),
            transitions=transitions,
        )
