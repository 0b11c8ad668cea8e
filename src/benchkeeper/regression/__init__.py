"""Regression detection module for benchkeeper.

This module provides the sample reducer and the regression detector
that evaluate a benchmark run against its suite's history.

Example:
    >>> from benchkeeper.regression import RegressionDetector
    >>> from benchkeeper.core.config import SuiteConfig
    >>>
    >>> detector = RegressionDetector(SuiteConfig(threshold_percent=10))
    >>> verdict = detector.evaluate(record, history)
    >>> if verdict.has_regressions:
    ...     print(verdict.summary())
"""

from __future__ import annotations

from benchkeeper.regression.detector import BOUNDARY_TOLERANCE, RegressionDetector
from benchkeeper.regression.models import (
    DetectionState,
    MetricEvaluation,
    MetricStatus,
    RegressionVerdict,
)
from benchkeeper.regression.reducer import SampleReducer, SampleSummary, midpoint_rank, nearest_rank

__all__ = [
    "BOUNDARY_TOLERANCE",
    "DetectionState",
    "MetricEvaluation",
    "MetricStatus",
    "RegressionDetector",
    "RegressionVerdict",
    "SampleReducer",
    "SampleSummary",
    "midpoint_rank",
    "nearest_rank",
]
