"""Console reporter for benchkeeper.

This module provides terminal output for regression verdicts and
suite histories, with colored tables and status indicators.
"""

from __future__ import annotations

import os
import sys
from typing import TYPE_CHECKING, TextIO

from benchkeeper.history.models import Record
from benchkeeper.regression.models import MetricStatus

if TYPE_CHECKING:
    from collections.abc import Mapping

    from benchkeeper.core.gating import GatingDecision
    from benchkeeper.history.models import SuiteHistory
    from benchkeeper.regression.models import MetricEvaluation, RegressionVerdict
    from benchkeeper.regression.reducer import SampleSummary


# ANSI color codes
class Colors:
    """ANSI color codes for terminal output."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    RED = "\033[31m"
    BLUE = "\033[34m"
    CYAN = "\033[36m"


STATUS_STYLES: dict[MetricStatus, tuple[str, str]] = {
    MetricStatus.PASS: ("PASS", Colors.GREEN),
    MetricStatus.FLAGGED: ("FLAGGED", Colors.RED),
    MetricStatus.INCONCLUSIVE: ("INCONCLUSIVE", Colors.YELLOW),
}


def _format_value(value: float | None) -> str:
    if value is None:
        return "-"
    return f"{value:.4g}"


def _format_delta(delta: float | None) -> str:
    if delta is None:
        return "-"
    return f"{delta:+.2f}%"


class ConsoleReporter:
    """Reporter that outputs verdicts to the terminal.

    Attributes:
        use_colors: Whether to use ANSI colors in output.
        output: Output stream (defaults to stdout).

    Example:
        >>> reporter = ConsoleReporter()
        >>> reporter.report_verdict(verdict)
          Suite 'soci-perf' @ a1b2c3d: FLAGGED
        ┌───────────────────────────┬──────────┬──────────┬──────────┬──────────────┐
        │ Metric                    │ Baseline │ New      │ Delta    │ Status       │
        ├───────────────────────────┼──────────┼──────────┼──────────┼──────────────┤
        │ ubuntu-pullDuration       │ 1.21     │ 1.48     │ +22.31%  │ FLAGGED      │
        └───────────────────────────┴──────────┴──────────┴──────────┴──────────────┘
    """

    def __init__(self, use_colors: bool = True, output: TextIO | None = None) -> None:
        """Initialize ConsoleReporter.

        Args:
            use_colors: Whether to use ANSI colors. Defaults to True.
            output: Output stream. Defaults to sys.stdout.
        """
        self.use_colors = use_colors and _supports_color(output or sys.stdout)
        self.output = output or sys.stdout

    def _color(self, text: str, color: str) -> str:
        """Apply color to text if colors are enabled."""
        if self.use_colors:
            return f"{color}{text}{Colors.RESET}"
        return text

    def _print(self, text: str = "") -> None:
        print(text, file=self.output)

    def _print_table(self, headers: list[str], rows: list[tuple[list[str], str | None]]) -> None:
        """Print a box-drawn table.

        Args:
            headers: Column headers.
            rows: Cells of each row, with an optional color for the last cell.
        """
        widths = [len(header) + 2 for header in headers]
        for cells, _ in rows:
            for index, cell in enumerate(cells):
                widths[index] = max(widths[index], len(cell) + 2)

        def border(left: str, middle: str, right: str) -> str:
            return "  " + left + middle.join("─" * width for width in widths) + right

        def line(cells: list[str], color: str | None = None) -> str:
            rendered = []
            for index, cell in enumerate(cells):
                padded = f" {cell:<{widths[index] - 1}}"
                if color is not None and index == len(cells) - 1:
                    padded = self._color(padded, color)
                rendered.append(padded)
            return "  │" + "│".join(rendered) + "│"

        self._print(border("┌", "┬", "┐"))
        self._print(line(headers, Colors.BOLD if self.use_colors else None))
        self._print(border("├", "┼", "┤"))
        for cells, color in rows:
            self._print(line(cells, color))
        self._print(border("└", "┴", "┘"))

    def _metric_row(self, metric: MetricEvaluation) -> tuple[list[str], str | None]:
        label, color = STATUS_STYLES[metric.status]
        cells = [
            metric.name,
            _format_value(metric.baseline_value),
            _format_value(metric.new_value),
            _format_delta(metric.delta_percent),
            label,
        ]
        return cells, color

    def report_verdict(self, verdict: RegressionVerdict, decision: GatingDecision | None = None) -> None:
        """Report a regression verdict.

        Args:
            verdict: The verdict to report.
            decision: Optional CI decision, reported below the table.
        """
        label, color = STATUS_STYLES[verdict.status]
        self._print()
        self._print(
            self._color(f"  Suite '{verdict.suite_id}' @ {verdict.commit_hash[:12]}: ", Colors.BOLD)
            + self._color(label, color)
        )
        self._print(
            self._color(
                f"  Baseline: {verdict.baseline_records} records, {verdict.excluded} excluded"
                f" ({verdict.direction.value})",
                Colors.DIM,
            )
        )

        self._print_table(
            ["Metric", "Baseline", "New", "Delta", "Status"],
            [self._metric_row(metric) for metric in verdict.metrics],
        )

        for metric in verdict.flagged:
            self.print_error(metric.message(verdict.direction))
        for metric in verdict.inconclusive:
            self.print_warning(metric.message(verdict.direction))

        if decision is not None:
            if verdict.inconclusive and not decision.blocking:
                self.print_info("Inconclusive metrics do not block this suite.")
            if decision.blocking:
                self.print_error(f"Check failed (exit code {int(decision.exit_code)})")
            else:
                self.print_success("Check passed")
        self._print()

    def report_history(self, history: SuiteHistory, limit: int | None = None) -> None:
        """Report the entries of a suite history, oldest first.

        Args:
            history: The suite history.
            limit: Show only the last N entries.
        """
        entries = list(history.entries)
        if limit is not None:
            entries = entries[-limit:] if limit > 0 else []

        self.print_header(f"Suite '{history.suite_id}' ({len(history)} entries)")
        if not entries:
            self._print("  No entries recorded.")
            return

        rows: list[tuple[list[str], str | None]] = []
        for entry in entries:
            if isinstance(entry, Record):
                rows.append(
                    (
                        [
                            entry.commit_hash[:12],
                            entry.date.isoformat(timespec="seconds"),
                            entry.tool.value,
                            str(len(entry.benches)),
                        ],
                        None,
                    )
                )
            else:
                rows.append(
                    (
                        [entry.commit_hash[:12] if entry.commit_hash else "?", "-", "malformed", str(entry.error)],
                        Colors.YELLOW,
                    )
                )
        self._print_table(["Commit", "Date", "Tool", "Benches"], rows)
        self._print()

    def report_samples(self, samples: Mapping[str, SampleSummary]) -> None:
        """Report the raw repetition statistics behind each measurement.

        Args:
            samples: Statistics per measurement name.
        """
        if not samples:
            return

        self.print_header("Repetitions")
        rows: list[tuple[list[str], str | None]] = [
            (
                [
                    name,
                    f"{summary.count} (+{summary.excluded})",
                    _format_value(summary.mean),
                    _format_value(summary.stddev),
                    _format_value(summary.min),
                    _format_value(summary.p50),
                    _format_value(summary.p90),
                    _format_value(summary.max),
                ],
                None,
            )
            for name, summary in samples.items()
        ]
        self._print_table(["Metric", "N (warm-up)", "Mean", "Stddev", "Min", "P50", "P90", "Max"], rows)
        self._print()

    def print_header(self, text: str) -> None:
        """Print a section header."""
        self._print()
        self._print(self._color(f"{'=' * 50}", Colors.DIM))
        self._print(self._color(f"  {text}", Colors.BOLD + Colors.CYAN))
        self._print(self._color(f"{'=' * 50}", Colors.DIM))

    def print_success(self, text: str) -> None:
        self._print(self._color(f"  ✅ {text}", Colors.GREEN))

    def print_warning(self, text: str) -> None:
        self._print(self._color(f"  ⚠️  {text}", Colors.YELLOW))

    def print_error(self, text: str) -> None:
        self._print(self._color(f"  ❌ {text}", Colors.RED))

    def print_info(self, text: str) -> None:
        self._print(self._color(f"  [i] {text}", Colors.BLUE))


def _supports_color(stream: TextIO) -> bool:
    """Check if the output stream supports ANSI colors.

    Args:
        stream: Output stream to check.

    Returns:
        True if colors are supported, False otherwise.
    """
    if not hasattr(stream, "isatty"):
        return False
    if not stream.isatty():
        return False

    if os.environ.get("NO_COLOR"):
        return False

    return os.environ.get("TERM") != "dumb"
