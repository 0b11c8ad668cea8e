"""Core module for benchkeeper.

This module contains the exceptions, configuration and CI gating used
throughout the library.
"""

from __future__ import annotations

from benchkeeper.core.config import BaselineOrder, PercentileMethod, Settings, SuiteConfig, SuiteConfigFile
from benchkeeper.core.exceptions import (
    BenchkeeperError,
    ConcurrentWriteError,
    ConfigurationError,
    DuplicateCommitError,
    EmptyMeasurementsError,
    InsufficientDataError,
    InvalidMeasurementError,
    InvalidTimestampError,
    InvalidToolError,
    MissingCommitHashError,
    RecordNotFoundError,
    RecordValidationError,
    RunOutputError,
    StoreCorruptedError,
    StoreIOError,
    StoreTimeoutError,
)
from benchkeeper.core.gating import ExitCode, GatingDecision, decide, exit_code_for, exit_code_for_error

__all__ = [
    "BaselineOrder",
    "BenchkeeperError",
    "ConcurrentWriteError",
    "ConfigurationError",
    "DuplicateCommitError",
    "EmptyMeasurementsError",
    "ExitCode",
    "GatingDecision",
    "InsufficientDataError",
    "InvalidMeasurementError",
    "InvalidTimestampError",
    "InvalidToolError",
    "MissingCommitHashError",
    "PercentileMethod",
    "RecordNotFoundError",
    "RecordValidationError",
    "RunOutputError",
    "Settings",
    "StoreCorruptedError",
    "StoreIOError",
    "StoreTimeoutError",
    "SuiteConfig",
    "SuiteConfigFile",
    "decide",
    "exit_code_for",
    "exit_code_for_error",
]
