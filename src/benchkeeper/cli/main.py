"""Main CLI entry point for benchkeeper.

This module defines the Typer application and all CLI commands.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Annotated, Any, NoReturn

import typer
from pydantic import ValidationError

from benchkeeper import __version__
from benchkeeper.core.config import PercentileMethod, Settings
from benchkeeper.core.exceptions import BenchkeeperError, ConfigurationError, RecordValidationError, RunOutputError
from benchkeeper.core.gating import ExitCode, decide, exit_code_for_error
from benchkeeper.gateway import IngestionGateway
from benchkeeper.history.models import CommitIdentity, Person, parse_timestamp
from benchkeeper.history.retention import RetentionPolicy
from benchkeeper.reporters import ConsoleReporter, JSONReporter

logger = logging.getLogger(__name__)

# Create the main Typer app
app = typer.Typer(
    name="benchkeeper",
    help="benchkeeper: Benchmark history store with regression detection for CI.",
    add_completion=False,
    no_args_is_help=True,
)

# Global state for options
state: dict[str, Any] = {
    "json": False,
    "no_color": False,
    "store": None,
    "config": None,
}


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"benchkeeper v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[  # noqa: ARG001
        bool | None,
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output results in JSON format.",
        ),
    ] = False,
    no_color: Annotated[
        bool,
        typer.Option(
            "--no-color",
            help="Disable colored output.",
        ),
    ] = False,
    store: Annotated[
        Path | None,
        typer.Option(
            "--store",
            help="History store file (overrides BENCHKEEPER_STORE_PATH).",
        ),
    ] = None,
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            help="YAML file with per-suite settings (overrides BENCHKEEPER_SUITE_CONFIG).",
        ),
    ] = None,
) -> None:
    """benchkeeper: Benchmark history store with regression detection.

    Record every CI benchmark run and flag the runs that regress
    against their suite's recent history.
    """
    state["json"] = json_output
    state["no_color"] = no_color
    state["store"] = store
    state["config"] = config


# =============================================================================
# Helpers
# =============================================================================


def _load_settings() -> Settings:
    """Load settings from the environment, applying global options."""
    overrides: dict[str, Any] = {}
    if state["store"] is not None:
        overrides["store_path"] = state["store"]
    if state["config"] is not None:
        overrides["suite_config"] = state["config"]
    try:
        settings = Settings(**overrides)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid settings: {e}") from e

    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        raise ConfigurationError(f"Unknown log level: {settings.log_level!r}")
    logging.basicConfig(level=level, stream=sys.stderr, format="%(levelname)s %(name)s: %(message)s")
    return settings


def _build_gateway(settings: Settings) -> IngestionGateway:
    return IngestionGateway(
        store=settings.build_store(),
        config=settings.suite_defaults(),
        suite_configs=settings.suite_config_file(),
    )


def _fail(error: Exception) -> NoReturn:
    """Report a failure on stderr and exit with its code."""
    code = exit_code_for_error(error)
    if code is None:
        raise error
    logger.debug(f"Command failed: {error!r}")
    if state["json"]:
        typer.echo(json.dumps({"error": type(error).__name__, "message": str(error), "exit_code": int(code)}))
    else:
        typer.echo(f"Error: {error}", err=True)
    raise typer.Exit(int(code))


def _usage_error(message: str) -> NoReturn:
    typer.echo(f"Error: {message}", err=True)
    raise typer.Exit(int(ExitCode.USAGE_ERROR))


def _read_input(source: str) -> str:
    """Read raw run output from a file, or stdin for ``-``."""
    try:
        if source == "-":
            return sys.stdin.read()
        return Path(source).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise RunOutputError("input", f"cannot read {source}: {e}") from e


def _read_event(event_path: Path) -> CommitIdentity:
    """Read the triggering commit from a GitHub event payload."""
    try:
        payload = json.loads(event_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise RecordValidationError("event", f"cannot read event payload {event_path}: {e}") from e
    if not isinstance(payload, dict):
        raise RecordValidationError("event", f"{event_path}: expected a JSON object")
    return CommitIdentity.from_github_event(payload)


def _output_verdict(verdict: Any, decision: Any, metadata: dict[str, Any] | None = None) -> None:
    if state["json"]:
        typer.echo(JSONReporter().report(verdict, decision, metadata))
    else:
        ConsoleReporter(use_colors=not state["no_color"]).report_verdict(verdict, decision)


# =============================================================================
# Commands
# =============================================================================


@app.command()
def version() -> None:
    """Show the current version."""
    typer.echo(f"benchkeeper v{__version__}")


@app.command()
def report(
    suite: Annotated[str, typer.Argument(help="Benchmark suite identifier.")],
    input_path: Annotated[
        str,
        typer.Option("--input", "-i", help="Run output file (JSON), or - for stdin."),
    ] = "-",
    tool: Annotated[
        str,
        typer.Option("--tool", help="Comparison direction (customSmallerIsBetter, customBiggerIsBetter, ...)."),
    ] = "customSmallerIsBetter",
    commit_hash: Annotated[
        str | None,
        typer.Option("--commit-hash", help="Commit hash of the run."),
    ] = None,
    author_name: Annotated[str, typer.Option("--author-name", help="Commit author name.")] = "unknown",
    author_email: Annotated[str, typer.Option("--author-email", help="Commit author email.")] = "",
    author_username: Annotated[
        str | None,
        typer.Option("--author-username", help="Commit author username."),
    ] = None,
    committer_name: Annotated[
        str | None,
        typer.Option("--committer-name", help="Committer name (default: the author)."),
    ] = None,
    committer_email: Annotated[str, typer.Option("--committer-email", help="Committer email.")] = "",
    committer_username: Annotated[
        str | None,
        typer.Option("--committer-username", help="Committer username."),
    ] = None,
    commit_timestamp: Annotated[
        str | None,
        typer.Option("--commit-timestamp", help="Commit timestamp, ISO-8601 (default: now)."),
    ] = None,
    commit_url: Annotated[str, typer.Option("--commit-url", help="Link to the commit.")] = "",
    commit_message: Annotated[
        str | None,
        typer.Option("--commit-message", help="Commit message."),
    ] = None,
    event_path: Annotated[
        Path | None,
        typer.Option(
            "--event-path",
            envvar="GITHUB_EVENT_PATH",
            help="GitHub event payload to read the commit from when --commit-hash is not given.",
        ),
    ] = None,
    threshold: Annotated[
        float | None,
        typer.Option("--threshold", help="Regression threshold in percent."),
    ] = None,
    window: Annotated[
        int | None,
        typer.Option("--window", help="Number of prior records in the baseline."),
    ] = None,
    warmup: Annotated[
        int | None,
        typer.Option("--warmup", help="Warm-up repetitions to exclude."),
    ] = None,
    percentile: Annotated[
        float | None,
        typer.Option("--percentile", help="Percentile used to reduce repetitions."),
    ] = None,
    percentile_method: Annotated[
        PercentileMethod | None,
        typer.Option("--percentile-method", help="Percentile method: nearest-rank or midpoint."),
    ] = None,
    min_baseline: Annotated[
        int | None,
        typer.Option("--min-baseline", help="Minimum baseline samples per metric."),
    ] = None,
    inconclusive_blocks: Annotated[
        bool,
        typer.Option("--inconclusive-blocks", help="Fail when the verdict is inconclusive."),
    ] = False,
    replace: Annotated[
        bool,
        typer.Option("--replace", help="Replace the record of an already-recorded commit."),
    ] = False,
) -> None:
    """Record a benchmark run and check it for regressions.

    Examples:
        benchkeeper report soci-perf --input results.json --commit-hash a1b2c3d
        benchkeeper report soci-perf --input - --event-path $GITHUB_EVENT_PATH
        benchkeeper --json report soci-perf --input results.json --threshold 15
    """
    overrides: dict[str, Any] = {
        "threshold_percent": threshold,
        "window_size": window,
        "warmup_samples": warmup,
        "percentile": percentile,
        "percentile_method": percentile_method,
        "min_baseline": min_baseline,
        "inconclusive_blocks": True if inconclusive_blocks else None,
    }

    try:
        if commit_hash is not None:
            author = Person(name=author_name, email=author_email, username=author_username)
            if committer_name is None:
                committer = author
            else:
                committer = Person(name=committer_name, email=committer_email, username=committer_username)
            commit = CommitIdentity(
                hash=commit_hash,
                author=author,
                committer=committer,
                timestamp=(
                    parse_timestamp(commit_timestamp, "commit.timestamp")
                    if commit_timestamp
                    else datetime.now(timezone.utc)
                ),
                url=commit_url,
                message=commit_message,
            )
        elif event_path is not None:
            commit = _read_event(event_path)
        else:
            _usage_error("either --commit-hash or --event-path (GITHUB_EVENT_PATH) is required")

        raw_output = _read_input(input_path)
        settings = _load_settings()
        gateway = _build_gateway(settings)
        config = gateway.config_for(suite, overrides)
        outcome = asyncio.run(gateway.report(suite, raw_output, commit, tool=tool, replace=replace, overrides=overrides))
    except (BenchkeeperError, FileNotFoundError) as e:
        _fail(e)

    decision = decide(outcome.verdict, config.inconclusive_blocks)
    if not state["json"]:
        if outcome.duplicate:
            typer.echo(f"  [i] Commit {outcome.record.commit_hash} was already recorded; history unchanged.")
        ConsoleReporter(use_colors=not state["no_color"]).report_samples(outcome.samples)
    _output_verdict(
        outcome.verdict,
        decision,
        metadata={
            "duplicate": outcome.duplicate,
            "history_length": outcome.history_length,
            "samples": {name: summary.to_dict() for name, summary in outcome.samples.items()},
        },
    )
    raise typer.Exit(int(decision.exit_code))


@app.command()
def check(
    suite: Annotated[str, typer.Argument(help="Benchmark suite identifier.")],
    commit: Annotated[str, typer.Argument(help="Commit hash of a recorded run.")],
    threshold: Annotated[
        float | None,
        typer.Option("--threshold", help="Regression threshold in percent."),
    ] = None,
    inconclusive_blocks: Annotated[
        bool,
        typer.Option("--inconclusive-blocks", help="Fail when the verdict is inconclusive."),
    ] = False,
) -> None:
    """Check a recorded run for regressions without writing.

    Example:
        benchkeeper check soci-perf a1b2c3d
    """
    overrides: dict[str, Any] = {
        "threshold_percent": threshold,
        "inconclusive_blocks": True if inconclusive_blocks else None,
    }
    try:
        gateway = _build_gateway(_load_settings())
        config = gateway.config_for(suite, overrides)
        verdict = asyncio.run(gateway.check(suite, commit, overrides=overrides))
    except (BenchkeeperError, FileNotFoundError) as e:
        _fail(e)

    decision = decide(verdict, config.inconclusive_blocks)
    _output_verdict(verdict, decision)
    raise typer.Exit(int(decision.exit_code))


@app.command()
def history(
    suite: Annotated[str, typer.Argument(help="Benchmark suite identifier.")],
    limit: Annotated[
        int | None,
        typer.Option("--limit", "-n", help="Show only the last N entries."),
    ] = None,
) -> None:
    """List the recorded runs of a suite, oldest first.

    Example:
        benchkeeper history soci-perf --limit 10
    """
    try:
        store = _load_settings().build_store()
        suite_history = asyncio.run(store.load(suite))
    except (BenchkeeperError, FileNotFoundError) as e:
        _fail(e)

    if state["json"]:
        typer.echo(JSONReporter().report_history(suite_history, limit=limit))
    else:
        ConsoleReporter(use_colors=not state["no_color"]).report_history(suite_history, limit=limit)


@app.command()
def prune(
    suite: Annotated[str, typer.Argument(help="Benchmark suite identifier.")],
    max_records: Annotated[
        int | None,
        typer.Option("--max-records", help="Keep at most the newest N entries."),
    ] = None,
    max_age_days: Annotated[
        float | None,
        typer.Option("--max-age-days", help="Drop records older than this many days."),
    ] = None,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Confirm deletion of history entries."),
    ] = False,
) -> None:
    """Delete old entries from a suite's history.

    Example:
        benchkeeper prune soci-perf --max-records 500 --yes
    """
    if max_records is None and max_age_days is None:
        _usage_error("--max-records or --max-age-days is required")
    if not yes:
        _usage_error("pruning deletes history entries; pass --yes to confirm")

    try:
        policy = RetentionPolicy.from_days(max_records=max_records, max_age_days=max_age_days)
        store = _load_settings().build_store()
        before = len(asyncio.run(store.load(suite)))
        remaining = asyncio.run(store.prune(suite, policy))
    except (BenchkeeperError, FileNotFoundError) as e:
        _fail(e)

    if state["json"]:
        typer.echo(json.dumps({"suite": suite, "removed": before - remaining, "remaining": remaining}))
    else:
        typer.echo(f"  Pruned {before - remaining} entries from '{suite}', {remaining} remain.")


@app.command()
def export(
    output: Annotated[
        Path,
        typer.Option("--output", "-o", help="Output file; a .js suffix writes window.BENCHMARK_DATA."),
    ],
) -> None:
    """Export the whole store for chart rendering.

    Example:
        benchkeeper export --output gh-pages/dev/bench/data.js
    """
    try:
        store = _load_settings().build_store()
        count = asyncio.run(store.export(output))
    except (BenchkeeperError, FileNotFoundError) as e:
        _fail(e)

    if state["json"]:
        typer.echo(json.dumps({"output": str(output), "entries": count}))
    else:
        typer.echo(f"  Exported {count} entries to {output}")


if __name__ == "__main__":
    app()
