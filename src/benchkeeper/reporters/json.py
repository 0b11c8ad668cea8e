"""JSON reporter for benchkeeper.

This module provides JSON output for verdicts and histories,
suitable for CI/CD pipelines and machine processing.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

from benchkeeper.history.models import Record

if TYPE_CHECKING:
    from benchkeeper.core.gating import GatingDecision
    from benchkeeper.history.models import SuiteHistory
    from benchkeeper.regression.models import RegressionVerdict


class JSONReporter:
    """Reporter that outputs verdicts as JSON.

    Attributes:
        indent: JSON indentation level (None for compact).

    Example:
        >>> reporter = JSONReporter()
        >>> print(reporter.report(verdict))
        {
          "generated_at": "2026-01-15T10:30:00+00:00",
          "verdict": {
            "suite": "soci-perf",
            "status": "pass",
            ...
          }
        }
    """

    def __init__(self, indent: int | None = 2) -> None:
        """Initialize JSONReporter.

        Args:
            indent: JSON indentation level. Defaults to 2. Use None for compact output.
        """
        self.indent = indent

    def _get_timestamp(self) -> str:
        """Get current timestamp in ISO 8601 format."""
        return datetime.now(timezone.utc).isoformat(timespec="seconds")

    def _verdict_to_dict(
        self,
        verdict: RegressionVerdict,
        decision: GatingDecision | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        data: dict[str, Any] = {
            "generated_at": self._get_timestamp(),
            "verdict": verdict.to_dict(),
        }
        if decision is not None:
            data["gating"] = decision.to_dict()
        data["metadata"] = metadata or {}
        return data

    def report(
        self,
        verdict: RegressionVerdict,
        decision: GatingDecision | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Generate a JSON report for a verdict.

        Args:
            verdict: The verdict to report.
            decision: Optional CI decision to include.
            metadata: Optional metadata to include in the report.

        Returns:
            JSON string.
        """
        return json.dumps(self._verdict_to_dict(verdict, decision, metadata), indent=self.indent)

    def report_to_file(
        self,
        verdict: RegressionVerdict,
        path: Path | str,
        decision: GatingDecision | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Write a JSON report to a file.

        Example:
            >>> reporter.report_to_file(verdict, Path("verdict.json"))
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.report(verdict, decision, metadata))

    def report_history(self, history: SuiteHistory, limit: int | None = None) -> str:
        """Generate a JSON listing of a suite history.

        Malformed entries are listed with their error instead of their content.
        """
        entries = list(history.entries)
        if limit is not None:
            entries = entries[-limit:] if limit > 0 else []

        items: list[dict[str, Any]] = []
        for entry in entries:
            if isinstance(entry, Record):
                items.append({"valid": True, **entry.to_dict()})
            else:
                items.append(
                    {
                        "valid": False,
                        "position": entry.position,
                        "commit": entry.commit_hash,
                        "error": str(entry.error),
                    }
                )

        return json.dumps(
            {
                "generated_at": self._get_timestamp(),
                "suite": history.suite_id,
                "total": len(history),
                "entries": items,
            },
            indent=self.indent,
        )
