"""Cross-run aggregation: slow-test ranking, failure gating, and tags.

Modules
-------
slowest
    ``slowest_test_cases`` ranks tests by (median) elapsed time.
produce
    ``metrics_from_execution`` and ``produce`` build a ``Metrics`` value and
    hand it to an external ``MetricsEmitter``.
tags
    Resolve metric tags from a captured environment.
"""

from teststream.metrics.produce import (
    MetricConfig,
    Metrics,
    MetricsEmitter,
    metrics_from_execution,
    produce,
)
from teststream.metrics.slowest import aggregate_test_cases, median, slowest_test_cases
from teststream.metrics.tags import TagSource, Tags, tags_from_env

__all__ = [
    "MetricConfig",
    "Metrics",
    "MetricsEmitter",
    "TagSource",
    "Tags",
    "aggregate_test_cases",
    "median",
    "metrics_from_execution",
    "produce",
    "slowest_test_cases",
    "tags_from_env",
]
