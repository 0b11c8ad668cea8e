"""Configuration management for benchkeeper.

This module provides configuration classes using pydantic-settings
for environment variable management and validation, plus per-suite
overrides loaded from YAML.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from benchkeeper.core.exceptions import ConfigurationError

if TYPE_CHECKING:
    from benchkeeper.history.retention import RetentionPolicy
    from benchkeeper.history.storage import JSONHistoryStore
    from benchkeeper.regression.reducer import SampleReducer


class BaselineOrder(str, Enum):
    """Order in which history is walked to select the baseline window."""

    APPEND = "append"
    COMMIT_TIME = "commit-time"


class PercentileMethod(str, Enum):
    """How a percentile is picked from a sorted sample set.

    ``nearest-rank`` always returns an observed sample. ``midpoint``
    matches the benchmark framework's own statistics: when the rank
    p/100 * n is fractional, the two neighbouring samples are averaged.
    """

    NEAREST_RANK = "nearest-rank"
    MIDPOINT = "midpoint"


class SuiteConfig(BaseModel):
    """Sensitivity settings for one benchmark suite.

    Attributes:
        window_size: Number of prior records in the baseline window (N).
        warmup_samples: Leading repetitions dropped before reduction (k).
        percentile: Percentile used to reduce a run's repetitions.
        baseline_percentile: Percentile used to reduce the baseline window.
        percentile_method: How percentiles are picked (nearest-rank or midpoint).
        threshold_percent: Allowed regression, in percent of the baseline.
        metric_thresholds: Per-metric overrides of threshold_percent.
        min_baseline: Minimum baseline samples for a metric to be evaluated.
        baseline_order: Append order or commit-timestamp order.
        inconclusive_blocks: Whether an inconclusive verdict fails CI.
        retention_max_records: Read-time cap on the records considered.
        retention_max_age_days: Read-time cap on record age, in days.

    Example:
        >>> config = SuiteConfig(threshold_percent=15.0, window_size=10)
        >>> config.threshold_for("pull-duration")
        0.15
    """

    model_config = {"frozen": True, "extra": "forbid"}

    window_size: int = Field(default=20, ge=1, description="Baseline window size")
    warmup_samples: int = Field(default=1, ge=0, description="Warm-up samples to exclude")
    percentile: float = Field(default=90.0, gt=0, le=100, description="Run reduction percentile")
    baseline_percentile: float = Field(default=50.0, gt=0, le=100, description="Baseline reduction percentile")
    percentile_method: PercentileMethod = Field(
        default=PercentileMethod.NEAREST_RANK, description="Percentile selection method"
    )
    threshold_percent: float = Field(default=10.0, ge=0, description="Regression threshold in percent")
    metric_thresholds: dict[str, float] = Field(default_factory=dict, description="Per-metric thresholds")
    min_baseline: int = Field(default=3, ge=1, description="Minimum baseline samples")
    baseline_order: BaselineOrder = Field(default=BaselineOrder.APPEND, description="Baseline ordering")
    inconclusive_blocks: bool = Field(default=False, description="Fail CI on inconclusive verdicts")
    retention_max_records: int | None = Field(default=None, ge=1, description="Read-time record cap")
    retention_max_age_days: float | None = Field(default=None, gt=0, description="Read-time age cap")

    def threshold_for(self, metric: str) -> float:
        """Get the regression threshold for a metric, as a fraction."""
        return self.metric_thresholds.get(metric, self.threshold_percent) / 100

    def retention_policy(self) -> RetentionPolicy:
        from benchkeeper.history.retention import RetentionPolicy

        return RetentionPolicy.from_days(
            max_records=self.retention_max_records,
            max_age_days=self.retention_max_age_days,
        )

    def reducer(self) -> SampleReducer:
        """Reducer applied to the raw repetitions of a run."""
        from benchkeeper.regression.reducer import SampleReducer

        return SampleReducer(percentile=self.percentile, warmup=self.warmup_samples, method=self.percentile_method)

    def baseline_reducer(self) -> SampleReducer:
        """Reducer applied to a metric's values across the baseline window."""
        from benchkeeper.regression.reducer import SampleReducer

        return SampleReducer(percentile=self.baseline_percentile, warmup=0, method=self.percentile_method)

    def with_overrides(self, overrides: Mapping[str, Any], *, skip_none: bool = True) -> SuiteConfig:
        """Return a copy with the given fields replaced.

        Args:
            overrides: Field values to replace.
            skip_none: Ignore None values (unset command-line flags).

        Raises:
            ConfigurationError: If a value is invalid or a field is unknown.
        """
        updates = {key: value for key, value in overrides.items() if not (skip_none and value is None)}
        if not updates:
            return self
        try:
            return SuiteConfig.model_validate({**self.model_dump(), **updates})
        except ValidationError as e:
            raise ConfigurationError(f"Invalid suite configuration: {e}") from e


class SuiteConfigFile(BaseModel):
    """Per-suite overrides loaded from YAML.

    Example YAML:
        defaults:
          threshold_percent: 10
        suites:
          soci-perf:
            threshold_percent: 15
            window_size: 10
    """

    model_config = {"frozen": True}

    defaults: dict[str, Any] = Field(default_factory=dict, description="Overrides for every suite")
    suites: dict[str, dict[str, Any]] = Field(default_factory=dict, description="Overrides per suite")

    @classmethod
    def from_yaml(cls, path: Path | str) -> SuiteConfigFile:
        """Load suite configuration from a YAML file.

        Args:
            path: Path to the YAML configuration file.

        Returns:
            SuiteConfigFile loaded from the file.

        Raises:
            FileNotFoundError: If the file doesn't exist.
            ConfigurationError: If the YAML is invalid.
        """
        import yaml

        path = Path(path)
        if not path.exists():
            msg = f"Configuration file not found: {path}"
            raise FileNotFoundError(msg)

        try:
            data = yaml.safe_load(path.read_text())
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ConfigurationError(f"{path}: expected a mapping at top level")

        try:
            return cls(defaults=data.get("defaults") or {}, suites=data.get("suites") or {})
        except ValidationError as e:
            raise ConfigurationError(f"Invalid suite configuration in {path}: {e}") from e

    def to_yaml(self, path: Path | str) -> None:
        """Save suite configuration to a YAML file."""
        import yaml

        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        data = {"defaults": dict(self.defaults), "suites": {k: dict(v) for k, v in self.suites.items()}}
        path.write_text(yaml.dump(data, default_flow_style=False, sort_keys=False))

    def resolve(self, suite_id: str, base: SuiteConfig | None = None) -> SuiteConfig:
        """Resolve the configuration for a suite.

        Args:
            suite_id: The benchmark suite identifier.
            base: Defaults to start from (default: SuiteConfig()).

        Returns:
            base, then YAML defaults, then the suite's own overrides.
        """
        config = (base or SuiteConfig()).with_overrides(self.defaults, skip_none=False)
        return config.with_overrides(self.suites.get(suite_id, {}), skip_none=False)


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be configured via environment variables with
    the BENCHKEEPER_ prefix.

    Example:
        >>> # export BENCHKEEPER_THRESHOLD_PERCENT=15
        >>> # export BENCHKEEPER_STORE_PATH=gh-pages/dev/bench/data.js
        >>> settings = Settings()
        >>> settings.suite_defaults().threshold_percent
        15.0

    Environment Variables:
        BENCHKEEPER_STORE_PATH: History store file (default: .benchkeeper/data.json)
        BENCHKEEPER_REPO_URL: Repository URL recorded in the store (optional)
        BENCHKEEPER_LOG_LEVEL: Logging level (default: WARNING)
        BENCHKEEPER_SUITE_CONFIG: YAML file with per-suite overrides (optional)
        BENCHKEEPER_WINDOW_SIZE, BENCHKEEPER_WARMUP_SAMPLES, BENCHKEEPER_PERCENTILE,
        BENCHKEEPER_BASELINE_PERCENTILE, BENCHKEEPER_PERCENTILE_METHOD,
        BENCHKEEPER_THRESHOLD_PERCENT,
        BENCHKEEPER_MIN_BASELINE, BENCHKEEPER_BASELINE_ORDER,
        BENCHKEEPER_INCONCLUSIVE_BLOCKS, BENCHKEEPER_RETENTION_MAX_RECORDS,
        BENCHKEEPER_RETENTION_MAX_AGE_DAYS: Suite defaults (see SuiteConfig)
        BENCHKEEPER_IO_TIMEOUT_SECONDS: Timeout per store read/write (default: 30.0)
        BENCHKEEPER_LOCK_MAX_RETRIES: Store lock retries (default: 8)
        BENCHKEEPER_LOCK_RETRY_DELAY: First lock retry delay in seconds (default: 0.2)
        BENCHKEEPER_LOCK_BACKOFF: Lock retry backoff multiplier (default: 2.0)
        BENCHKEEPER_STALE_LOCK_SECONDS: Age after which a lock is abandoned (default: 600)
    """

    model_config = SettingsConfigDict(
        env_prefix="BENCHKEEPER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Store settings
    store_path: Path = Field(default=Path(".benchkeeper/data.json"), description="History store file")
    repo_url: str | None = Field(default=None, description="Repository URL recorded in the store")
    io_timeout_seconds: float = Field(default=30.0, gt=0, description="Timeout per store read/write")
    lock_max_retries: int = Field(default=8, ge=0, description="Store lock retries")
    lock_retry_delay: float = Field(default=0.2, gt=0, description="First lock retry delay in seconds")
    lock_backoff: float = Field(default=2.0, ge=1, description="Lock retry backoff multiplier")
    stale_lock_seconds: float | None = Field(default=600.0, gt=0, description="Stale lock age in seconds")

    # Suite defaults
    suite_config: Path | None = Field(default=None, description="YAML file with per-suite overrides")
    window_size: int = Field(default=20, ge=1)
    warmup_samples: int = Field(default=1, ge=0)
    percentile: float = Field(default=90.0, gt=0, le=100)
    baseline_percentile: float = Field(default=50.0, gt=0, le=100)
    percentile_method: PercentileMethod = Field(default=PercentileMethod.NEAREST_RANK)
    threshold_percent: float = Field(default=10.0, ge=0)
    min_baseline: int = Field(default=3, ge=1)
    baseline_order: BaselineOrder = Field(default=BaselineOrder.APPEND)
    inconclusive_blocks: bool = Field(default=False)
    retention_max_records: int | None = Field(default=None, ge=1)
    retention_max_age_days: float | None = Field(default=None, gt=0)

    # General settings
    log_level: str = Field(default="WARNING", description="Logging level (DEBUG, INFO, WARNING, ERROR)")

    def suite_defaults(self) -> SuiteConfig:
        """Build the suite defaults from these settings."""
        return SuiteConfig(
            window_size=self.window_size,
            warmup_samples=self.warmup_samples,
            percentile=self.percentile,
            baseline_percentile=self.baseline_percentile,
            percentile_method=self.percentile_method,
            threshold_percent=self.threshold_percent,
            min_baseline=self.min_baseline,
            baseline_order=self.baseline_order,
            inconclusive_blocks=self.inconclusive_blocks,
            retention_max_records=self.retention_max_records,
            retention_max_age_days=self.retention_max_age_days,
        )

    def suite_config_file(self) -> SuiteConfigFile:
        if self.suite_config is None:
            return SuiteConfigFile()
        return SuiteConfigFile.from_yaml(self.suite_config)

    def build_store(self) -> JSONHistoryStore:
        from benchkeeper.history.storage import JSONHistoryStore

        return JSONHistoryStore(
            self.store_path,
            repo_url=self.repo_url,
            io_timeout=self.io_timeout_seconds,
            lock_max_retries=self.lock_max_retries,
            lock_retry_delay=self.lock_retry_delay,
            lock_backoff=self.lock_backoff,
            stale_lock_seconds=self.stale_lock_seconds,
        )
