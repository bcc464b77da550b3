"""Produce test metrics from one or more test2json streams.

The metrics are handed to an external ``MetricsEmitter``, which owns wire
encoding and transport.  A run with too many failures produces no metrics:
mass failure usually means a broken build or infrastructure, and per-test
failure metrics from such a run would be noise.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import timedelta
from typing import IO, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from teststream.core.scanner import ScanConfig, build_execution
from teststream.errors import TooManyFailuresError
from teststream.metrics.slowest import slowest_test_cases
from teststream.models.execution import Execution, TestCase

logger = logging.getLogger(__name__)


class MetricConfig(BaseModel):
    """Thresholds for metric aggregation."""

    model_config = ConfigDict(frozen=True)

    # More failures than this and no metrics are emitted.
    max_failures_threshold: int = Field(default=10, ge=0)
    # Tests faster than this are left out of Metrics.slowest.
    slow_test_threshold: timedelta = timedelta(seconds=1)
    max_slow_tests: int = Field(default=10, ge=0)


class Metrics(BaseModel):
    """Aggregated metrics for a test run."""

    model_config = ConfigDict(frozen=True)

    slowest: list[TestCase] = []
    failed: list[TestCase] = []
    tags: dict[str, str] = {}


@runtime_checkable
class MetricsEmitter(Protocol):
    """Encodes and sends ``Metrics`` to a metrics backend."""

    def emit(self, metrics: Metrics) -> None:
        ...


def metrics_from_execution(config: MetricConfig, execution: Execution) -> Metrics:
    """Reduce an Execution to its slowest and failed tests.

    Raises
    ------
    TooManyFailuresError
        If the run has more than ``max_failures_threshold`` failures.
    """
    failed = execution.failed()
    if len(failed) > config.max_failures_threshold:
        raise TooManyFailuresError(len(failed), config.max_failures_threshold)

    slowest = slowest_test_cases(
        execution, config.slow_test_threshold, limit=config.max_slow_tests
    )
    return Metrics(slowest=slowest, failed=failed)


def produce(
    config: MetricConfig,
    streams: Iterable[IO[bytes]],
    emitter: MetricsEmitter,
    *,
    tags: dict[str, str] | None = None,
    scan_config: ScanConfig | None = None,
) -> Metrics:
    """Scan *streams* into one Execution and emit its metrics.

    All streams are closed.  Scan, threshold and emitter errors propagate.
    """
    logger.info("Scanning test output")
    execution = build_execution(streams, config=scan_config)

    metrics = metrics_from_execution(config, execution)
    if tags:
        metrics = metrics.model_copy(update={"tags": dict(tags)})

    logger.info(
        "Emitting metrics: %d slow tests, %d failed",
        len(metrics.slowest),
        len(metrics.failed),
    )
    emitter.emit(metrics)
    return metrics
