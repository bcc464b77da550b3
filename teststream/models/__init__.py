"""teststream data models — test events and the execution aggregate."""

from teststream.models.events import Action, TestEvent, parse_event, parse_timestamp
from teststream.models.execution import Execution, Package, TestCase

__all__ = [
    # events
    "Action",
    "TestEvent",
    "parse_event",
    "parse_timestamp",
    # execution
    "Execution",
    "Package",
    "TestCase",
]
