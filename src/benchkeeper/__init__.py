"""benchkeeper: Benchmark history store with regression detection for CI."""

from __future__ import annotations

from benchkeeper.core.config import Settings, SuiteConfig, SuiteConfigFile
from benchkeeper.core.gating import ExitCode, exit_code_for
from benchkeeper.gateway import IngestionGateway, ReportOutcome, parse_run_output
from benchkeeper.history import (
    CommitIdentity,
    ComparisonDirection,
    JSONHistoryStore,
    Measurement,
    Person,
    Record,
    RetentionPolicy,
    SuiteHistory,
)
from benchkeeper.regression import RegressionDetector, RegressionVerdict, SampleReducer

__version__ = "0.3.0"
__all__ = [
    # Configuration
    "Settings",
    "SuiteConfig",
    "SuiteConfigFile",
    # Gating
    "ExitCode",
    "exit_code_for",
    # Ingestion
    "IngestionGateway",
    "ReportOutcome",
    "parse_run_output",
    # History
    "CommitIdentity",
    "ComparisonDirection",
    "JSONHistoryStore",
    "Measurement",
    "Person",
    "Record",
    "RetentionPolicy",
    "SuiteHistory",
    # Regression detection
    "RegressionDetector",
    "RegressionVerdict",
    "SampleReducer",
    # Version
    "__version__",
]
