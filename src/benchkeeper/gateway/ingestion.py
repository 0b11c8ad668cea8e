"""Ingestion gateway for benchmark runs.

This module provides IngestionGateway, the single entry point used by
CI: it turns a finished run into a record, appends it to the suite's
history, and returns the regression verdict.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from benchkeeper.core.config import SuiteConfig, SuiteConfigFile
from benchkeeper.core.exceptions import ConfigurationError, DuplicateCommitError, RecordNotFoundError
from benchkeeper.gateway.parsers import decode_run_output, parse_run_output, summarize_run_output
from benchkeeper.history.models import CommitIdentity, ComparisonDirection, Record
from benchkeeper.history.storage import JSONHistoryStore, StorageProtocol
from benchkeeper.regression.detector import RegressionDetector
from benchkeeper.regression.models import RegressionVerdict
from benchkeeper.regression.reducer import SampleSummary

logger = logging.getLogger(__name__)


@dataclass
class ReportOutcome:
    """Result of reporting a run.

    Attributes:
        verdict: Regression verdict for the run.
        record: The record built from the run.
        history_length: Length of the suite's history after the append.
        duplicate: True if the commit was already recorded and nothing was written.
        samples: Statistics of the raw repetitions behind each measurement
            (framework results only).
    """

    verdict: RegressionVerdict
    record: Record
    history_length: int
    duplicate: bool = False
    samples: dict[str, SampleSummary] = field(default_factory=dict)


class IngestionGateway:
    """Entry point for reporting benchmark runs.

    Example:
        >>> gateway = IngestionGateway(JSONHistoryStore("data.json"))
        >>> outcome = await gateway.report("soci-perf", raw_output, commit)
        >>> outcome.verdict.status
        <MetricStatus.PASS: 'pass'>
    """

    def __init__(
        self,
        store: StorageProtocol | None = None,
        config: SuiteConfig | None = None,
        suite_configs: SuiteConfigFile | None = None,
    ) -> None:
        """Initialize the gateway.

        Args:
            store: History store (default: JSONHistoryStore()).
            config: Default suite configuration.
            suite_configs: Per-suite overrides.
        """
        self._store: StorageProtocol = store or JSONHistoryStore()
        self._defaults = config or SuiteConfig()
        self._suite_configs = suite_configs or SuiteConfigFile()

    @property
    def store(self) -> StorageProtocol:
        return self._store

    def config_for(self, suite_id: str, overrides: Mapping[str, Any] | None = None) -> SuiteConfig:
        """Resolve the configuration for a suite, then apply overrides."""
        config = self._suite_configs.resolve(suite_id, self._defaults)
        return config.with_overrides(overrides) if overrides else config

    def build_record(
        self,
        raw_output: Any,
        commit: CommitIdentity,
        tool: ComparisonDirection | str,
        config: SuiteConfig,
        run_date: datetime | None = None,
    ) -> Record:
        """Build a record from raw run output.

        Raises:
            RecordValidationError: If the output or the resulting record is malformed.
            InsufficientDataError: If warm-up exclusion leaves a stage without samples.
        """
        measurements = parse_run_output(raw_output, config.reducer())
        return Record(
            commit=commit,
            date=run_date or datetime.now(timezone.utc),
            tool=ComparisonDirection.parse(tool),
            benches=tuple(measurements),
        )

    async def report(
        self,
        suite_id: str,
        raw_output: Any,
        commit: CommitIdentity,
        *,
        tool: ComparisonDirection | str = ComparisonDirection.SMALLER_IS_BETTER,
        run_date: datetime | None = None,
        replace: bool = False,
        overrides: Mapping[str, Any] | None = None,
    ) -> ReportOutcome:
        """Record a finished run and evaluate it against history.

        A commit that is already recorded is treated as a CI re-run:
        nothing is written and the new measurements are still evaluated,
        unless replace is set.

        Args:
            suite_id: The benchmark suite identifier.
            raw_output: Raw run output (JSON text or decoded data).
            commit: Identity of the triggering commit.
            tool: Comparison direction of the run's measurements.
            run_date: When the run executed (default: now).
            replace: Replace an already-recorded commit (operator override).
            overrides: Per-call configuration overrides.

        Returns:
            ReportOutcome with the verdict.

        Raises:
            RecordValidationError: If the run is malformed; nothing is written.
            StoreIOError: If the store cannot be read or written.
            ConcurrentWriteError: If the store stays locked.
        """
        if not suite_id or not suite_id.strip():
            raise ConfigurationError("Suite identifier is required")

        config = self.config_for(suite_id, overrides)
        data = decode_run_output(raw_output)
        record = self.build_record(data, commit, tool, config, run_date=run_date)
        samples = summarize_run_output(data, config.reducer())

        duplicate = False
        try:
            await self._store.append(suite_id, record, replace=replace)
        except DuplicateCommitError:
            logger.info(f"Commit {record.commit_hash} already recorded for suite '{suite_id}', not appending again")
            duplicate = True

        history = await self._store.load(suite_id)
        verdict = RegressionDetector(config).evaluate(record, history)
        return ReportOutcome(
            verdict=verdict,
            record=record,
            history_length=len(history),
            duplicate=duplicate,
            samples=samples,
        )

    async def check(
        self,
        suite_id: str,
        commit_hash: str,
        overrides: Mapping[str, Any] | None = None,
    ) -> RegressionVerdict:
        """Evaluate an already-recorded commit without writing.

        Raises:
            RecordNotFoundError: If the commit has no valid record in the suite.
        """
        history = await self._store.load(suite_id)
        record = history.get(commit_hash)
        if record is None:
            raise RecordNotFoundError(suite_id, commit_hash)
        return RegressionDetector(self.config_for(suite_id, overrides)).evaluate(record, history)
