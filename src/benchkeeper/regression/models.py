"""Models for regression detection.

This module provides the verdict types produced by the regression
detector, for the whole run and for each metric.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from benchkeeper.history.models import ComparisonDirection


class MetricStatus(str, Enum):
    """Outcome of evaluating a metric, or a whole run."""

    PASS = "pass"
    FLAGGED = "flagged"
    INCONCLUSIVE = "inconclusive"


class DetectionState(str, Enum):
    """States of one evaluation.

    PENDING -> COMPUTING_BASELINE -> COMPARING -> PASS | FLAGGED | INCONCLUSIVE
    """

    PENDING = "pending"
    COMPUTING_BASELINE = "computing_baseline"
    COMPARING = "comparing"
    PASS = "pass"
    FLAGGED = "flagged"
    INCONCLUSIVE = "inconclusive"


class MetricEvaluation(BaseModel):
    """Evaluation of one measurement against its baseline.

    Attributes:
        name: Measurement name.
        unit: Measurement unit.
        status: Pass, flagged or inconclusive.
        new_value: Value in the evaluated record.
        baseline_value: Reduced baseline value (None when no baseline).
        delta_percent: Signed change vs baseline, in percent (None when not compared).
        threshold_percent: Threshold applied, in percent.
        samples: Number of baseline samples used.
        reason: Why the metric is inconclusive, if it is.
    """

    model_config = {"frozen": True}

    name: str = Field(..., description="Measurement name")
    unit: str = Field(..., description="Measurement unit")
    status: MetricStatus = Field(..., description="Evaluation result")
    new_value: float = Field(..., description="Value in the evaluated record")
    baseline_value: float | None = Field(default=None, description="Reduced baseline value")
    delta_percent: float | None = Field(default=None, description="Signed change vs baseline in percent")
    threshold_percent: float = Field(..., description="Threshold in percent")
    samples: int = Field(default=0, ge=0, description="Baseline samples used")
    reason: str | None = Field(default=None, description="Why the metric was not evaluated")

    def message(self, direction: ComparisonDirection) -> str:
        """Human-readable description of the evaluation.

        Example:
            >>> evaluation.message(ComparisonDirection.SMALLER_IS_BETTER)
            'pull-duration increased by 12.0% (threshold: 10.0%)'
        """
        if self.delta_percent is None or self.baseline_value is None:
            return f"{self.name} not evaluated: {self.reason}"

        if self.delta_percent == 0:
            return f"{self.name} unchanged (threshold: {self.threshold_percent:.1f}%)"
        direction_word = "increased" if self.delta_percent > 0 else "decreased"
        message = f"{self.name} {direction_word} by {abs(self.delta_percent):.1f}% (threshold: {self.threshold_percent:.1f}%)"
        if self.status == MetricStatus.FLAGGED:
            better = "smaller" if direction.smaller_is_better else "larger"
            message += f", {better} is better"
        return message


class RegressionVerdict(BaseModel):
    """Result of evaluating one record against its history.

    Attributes:
        suite_id: The benchmark suite.
        commit_hash: The evaluated commit.
        direction: Comparison direction of the evaluated record.
        status: Overall result.
        metrics: Per-metric evaluations, in the record's measurement order.
        baseline_records: Valid records in the baseline window.
        excluded: Malformed entries excluded from the baseline window.
        transitions: States visited by the evaluation.
        timestamp: When the evaluation was performed.
    """

    model_config = {"frozen": True}

    suite_id: str = Field(..., description="Benchmark suite")
    commit_hash: str = Field(..., description="Evaluated commit")
    direction: ComparisonDirection = Field(..., description="Comparison direction")
    status: MetricStatus = Field(..., description="Overall result")
    metrics: list[MetricEvaluation] = Field(default_factory=list, description="Per-metric evaluations")
    baseline_records: int = Field(default=0, ge=0, description="Valid records in the baseline window")
    excluded: int = Field(default=0, ge=0, description="Malformed entries excluded from the baseline")
    transitions: list[DetectionState] = Field(default_factory=list, description="States visited")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def flagged(self) -> list[MetricEvaluation]:
        return [m for m in self.metrics if m.status == MetricStatus.FLAGGED]

    @property
    def inconclusive(self) -> list[MetricEvaluation]:
        return [m for m in self.metrics if m.status == MetricStatus.INCONCLUSIVE]

    @property
    def has_regressions(self) -> bool:
        return self.status == MetricStatus.FLAGGED

    def summary(self) -> str:
        """Generate a human-readable summary.

        Returns:
            Multi-line summary string.
        """
        header = f"Suite '{self.suite_id}' @ {self.commit_hash[:12]}: {self.status.value.upper()}"
        lines = [header, f"  Baseline: {self.baseline_records} records, {self.excluded} excluded"]

        for metric in self.flagged:
            lines.append(f"  [FLAGGED] {metric.message(self.direction)}")
        for metric in self.inconclusive:
            lines.append(f"  [INCONCLUSIVE] {metric.message(self.direction)}")
        if self.status == MetricStatus.PASS:
            lines.append(f"  All {len(self.metrics)} metrics within threshold.")

        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "suite": self.suite_id,
            "commit": self.commit_hash,
            "direction": self.direction.value,
            "status": self.status.value,
            "baseline_records": self.baseline_records,
            "excluded": self.excluded,
            "transitions": [state.value for state in self.transitions],
            "timestamp": self.timestamp.isoformat(),
            "metrics": [
                {
                    "name": m.name,
                    "unit": m.unit,
                    "status": m.status.value,
                    "new_value": m.new_value,
                    "baseline_value": m.baseline_value,
                    "delta_percent": m.delta_percent,
                    "threshold_percent": m.threshold_percent,
                    "samples": m.samples,
                    "reason": m.reason,
                }
                for m in self.metrics
            ],
        }
