"""Runtime configuration — env-driven, captured once at startup.

Settings are read from ``TESTSTREAM_*`` environment variables or a ``.env``
file.  Everything that depends on the process environment (terminal width,
metric tag sources) is resolved here and passed to formatters, aggregation
and the rerun loop as explicit, frozen values.
"""

from __future__ import annotations

from datetime import timedelta

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from rich.console import Console

from teststream.core.rerun import RerunConfig
from teststream.metrics.produce import MetricConfig


class Settings(BaseSettings):
    """teststream settings with environment variable overrides.

    Examples
    --------
    Override via environment::

        export TESTSTREAM_FORMAT=dots
        export TESTSTREAM_LOG_LEVEL=DEBUG
        export TESTSTREAM_MAX_FAILURES_THRESHOLD=5
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="TESTSTREAM_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = "INFO"
    debug: bool = False

    # Rendering
    format: str = "short"
    terminal_width: int = 0  # 0 means detect from the console

    # Aggregation
    slow_test_threshold_ms: int = 100
    max_slow_tests: int = 10
    max_failures_threshold: int = 10
    tag_source: str = "auto"

    # Reruns
    rerun_max_attempts: int = 2
    rerun_max_failures: int = 20

    def formatter_config(self, console: Console | None = None) -> FormatterConfig:
        """Resolve the terminal width once, for the formatter constructors."""
        width = self.terminal_width or detect_terminal_width(console or Console())
        return FormatterConfig(terminal_width=width)

    def metric_config(self) -> MetricConfig:
        return MetricConfig(
            max_failures_threshold=self.max_failures_threshold,
            slow_test_threshold=timedelta(milliseconds=self.slow_test_threshold_ms),
            max_slow_tests=self.max_slow_tests,
        )

    def rerun_config(self) -> RerunConfig:
        return RerunConfig(
            max_attempts=self.rerun_max_attempts,
            max_failures=self.rerun_max_failures,
        )


class FormatterConfig(BaseModel):
    """Environment-derived values a formatter needs."""

    model_config = ConfigDict(frozen=True)

    # 0 when output is not an interactive terminal
    terminal_width: int = Field(default=0, ge=0)
    # Import path prefix stripped from package names for display
    package_prefix: str = ""


def detect_terminal_width(console: Console) -> int:
    """Width of the console, or 0 when it is not an interactive terminal."""
    if not console.is_terminal:
        return 0
    return console.width
