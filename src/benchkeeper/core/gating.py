"""CI gating for benchkeeper.

This module maps verdicts and failures to process exit codes. The codes
are part of the public interface: CI configuration depends on them, so
they never change meaning.

Exit codes:
- 0: Pass (also inconclusive, when the suite does not block on it)
- 1: Flagged, one or more metrics regressed
- 2: Command-line usage error
- 3: Inconclusive, when the suite blocks on it
- 4: Could not evaluate: store I/O, timeout, corruption or lock conflict
- 5: Current run rejected: malformed output or insufficient samples
- 6: Invalid configuration
"""

from __future__ import annotations

from enum import IntEnum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from benchkeeper.core.exceptions import (
    ConcurrentWriteError,
    ConfigurationError,
    InsufficientDataError,
    RecordNotFoundError,
    RecordValidationError,
    StoreIOError,
)

if TYPE_CHECKING:
    from benchkeeper.regression.models import RegressionVerdict


class ExitCode(IntEnum):
    """Process exit codes of the regression check."""

    PASS = 0
    FLAGGED = 1
    USAGE_ERROR = 2
    INCONCLUSIVE = 3
    STORE_ERROR = 4
    INVALID_RUN = 5
    CONFIG_ERROR = 6


class GatingDecision(BaseModel):
    """Decision taken for CI from a verdict.

    Attributes:
        status: Verdict status (pass, flagged, inconclusive).
        exit_code: Exit code for CI.
        blocking: Whether the decision fails the CI job.
        summary: Human-readable summary.
    """

    model_config = {"frozen": True}

    status: str = Field(..., description="Verdict status")
    exit_code: ExitCode = Field(..., description="Exit code for CI")
    blocking: bool = Field(..., description="Whether CI should fail")
    summary: str = Field(..., description="Human-readable summary")

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "exit_code": int(self.exit_code),
            "blocking": self.blocking,
            "summary": self.summary,
        }


def exit_code_for(verdict: RegressionVerdict, inconclusive_blocks: bool = False) -> ExitCode:
    """Map a verdict to its exit code.

    Args:
        verdict: The regression verdict.
        inconclusive_blocks: Whether an inconclusive verdict fails CI.

    Returns:
        The exit code.
    """
    from benchkeeper.regression.models import MetricStatus

    if verdict.status == MetricStatus.FLAGGED:
        return ExitCode.FLAGGED
    if verdict.status == MetricStatus.INCONCLUSIVE and inconclusive_blocks:
        return ExitCode.INCONCLUSIVE
    return ExitCode.PASS


def decide(verdict: RegressionVerdict, inconclusive_blocks: bool = False) -> GatingDecision:
    """Build the CI decision for a verdict."""
    exit_code = exit_code_for(verdict, inconclusive_blocks)
    summary = verdict.summary()
    if verdict.inconclusive and exit_code == ExitCode.PASS:
        summary += "\n  Note: inconclusive metrics do not block this suite."
    return GatingDecision(
        status=verdict.status.value,
        exit_code=exit_code,
        blocking=exit_code != ExitCode.PASS,
        summary=summary,
    )


def exit_code_for_error(error: Exception) -> ExitCode | None:
    """Map a failure to its exit code.

    Returns:
        The exit code, or None if the error is not a known failure.
    """
    if isinstance(error, (RecordValidationError, InsufficientDataError, RecordNotFoundError)):
        return ExitCode.INVALID_RUN
    if isinstance(error, (StoreIOError, ConcurrentWriteError)):
        return ExitCode.STORE_ERROR
    if isinstance(error, (ConfigurationError, FileNotFoundError)):
        return ExitCode.CONFIG_ERROR
    return None
