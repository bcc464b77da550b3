"""Core engine: event application, stream scanning, and the rerun loop."""

from teststream.core.builder import ExecutionBuilder
from teststream.core.rerun import (
    FailedTestRunner,
    RerunConfig,
    RerunCoordinator,
    RerunResult,
    rerun_filters,
)
from teststream.core.scanner import (
    MalformedPolicy,
    ScanConfig,
    build_execution,
    scan_test_output,
)

__all__ = [
    "ExecutionBuilder",
    "FailedTestRunner",
    "MalformedPolicy",
    "RerunConfig",
    "RerunCoordinator",
    "RerunResult",
    "ScanConfig",
    "build_execution",
    "rerun_filters",
    "scan_test_output",
]
