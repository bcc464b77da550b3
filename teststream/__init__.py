"""teststream — scan, render and aggregate ``go test -json`` event streams.

Quick reference::

    from teststream import scan_test_output, new_event_formatter
    from rich.console import Console

    formatter = new_event_formatter("dots", Console())
    with open("test.json", "rb") as stream:
        execution = scan_test_output(stream, handler=formatter)
    formatter.close()
    print(execution.total(), len(execution.failed()))
"""

__version__ = "0.1.0"

from teststream.core import (
    ExecutionBuilder,
    RerunConfig,
    RerunCoordinator,
    ScanConfig,
    build_execution,
    scan_test_output,
)
from teststream.formatters import EventHandler, new_event_formatter
from teststream.models import Action, Execution, Package, TestCase, TestEvent, parse_event

__all__ = [
    "Action",
    "EventHandler",
    "Execution",
    "ExecutionBuilder",
    "Package",
    "RerunConfig",
    "RerunCoordinator",
    "ScanConfig",
    "TestCase",
    "TestEvent",
    "__version__",
    "build_execution",
    "new_event_formatter",
    "parse_event",
    "scan_test_output",
]
