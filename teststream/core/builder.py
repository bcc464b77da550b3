"""ExecutionBuilder — applies test events, in stream order, to an Execution.

Events from different packages may interleave arbitrarily; stream order is
the only ordering the builder relies on.  After each event is applied the
registered handler observes the updated Execution.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from teststream.models.events import Action, TestEvent
from teststream.models.execution import (
    CACHED_MARKER,
    COVERAGE_PATTERN,
    Execution,
    Package,
    TestCase,
)

if TYPE_CHECKING:
    from teststream.formatters import EventHandler

logger = logging.getLogger(__name__)

# Module download chatter printed by the go command; not a build error.
_GO_MODULE_PREFIXES = ("go: downloading ", "go: finding ", "go: extracting ")


def is_go_module_output(text: str) -> bool:
    return text.startswith(_GO_MODULE_PREFIXES)


class ExecutionBuilder:
    """Builds an ``Execution`` from a sequence of ``TestEvent`` records.

    Parameters
    ----------
    execution:
        An existing Execution to keep adding to, so that several streams
        can be merged.  A fresh one is created if not provided.
    handler:
        Optional ``EventHandler`` invoked once per applied event and once
        per diagnostic line.
    """

    def __init__(
        self,
        execution: Execution | None = None,
        handler: EventHandler | None = None,
    ) -> None:
        self.execution = execution if execution is not None else Execution()
        self.handler = handler

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def apply(self, event: TestEvent) -> None:
        """Apply one event, then notify the handler."""
        self.record(event)
        self.notify(event)

    def notify(self, event: TestEvent) -> None:
        """Pass an already recorded event to the handler."""
        if self.handler is not None:
            self.handler.on_event(event, self.execution)

    def record(self, event: TestEvent) -> None:
        """Apply one event to the Execution without notifying the handler."""
        if not event.package:
            # Output outside any package is toolchain chatter, e.g. a build error.
            if event.action == Action.OUTPUT and event.output.strip():
                self.execution.add_error(event.output.rstrip("\n"))
            else:
                logger.debug("Ignoring %s event without a package", event.action.value)
            return

        pkg = self.execution.ensure_package(event.package)

        if event.package_event:
            self._apply_package_event(pkg, event)
            return

        if event.action == Action.RUN:
            pkg.start_test(event.test, self.execution.next_test_id(), event.time)
        elif event.action == Action.OUTPUT:
            pkg.add_output(self._test_id(pkg, event.test), event.output)
        elif event.action.is_terminal:
            self._finish_test(pkg, event)
        # pause, cont and bench carry no state

    def _apply_package_event(self, pkg: Package, event: TestEvent) -> None:
        if event.action == Action.OUTPUT:
            pkg.add_output(0, event.output)
            coverage = COVERAGE_PATTERN.search(event.output)
            if coverage is not None:
                pkg.coverage = coverage.group(0)
            if CACHED_MARKER in event.output:
                pkg.cached = True
            return

        if event.action.is_terminal:
            pkg.action = event.action
            elapsed = event.elapsed_duration
            if elapsed is not None:
                pkg.elapsed = elapsed

    def _finish_test(self, pkg: Package, event: TestEvent) -> None:
        started = pkg.running.pop(event.test, None)
        if started is None:
            # No matching run event, or a repeated terminal event for a test
            # that already finished. Either way it is a new instance.
            logger.debug(
                "Terminal %s for %s.%s without a running test",
                event.action.value,
                event.package,
                event.test,
            )
            test_id = self._test_id(pkg, event.test)
            started_at = None
        else:
            test_id = started.id
            started_at = started.time

        test_case = TestCase(
            package=event.package,
            test=event.test,
            elapsed=_elapsed(event, started_at),
            time=event.time,
            id=test_id,
        )
        pkg.add_test_case(event.action, test_case)

        if event.action == Action.PASS and not test_case.is_subtest:
            pkg.release_output(test_case)

    def _test_id(self, pkg: Package, test: str) -> int:
        """Id for *test*, allocating one for a test that never had a run event."""
        test_id = pkg.test_id(test)
        if not test_id:
            test_id = self.execution.next_test_id()
            pkg.assign_test_id(test, test_id)
        return test_id

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def add_error_line(self, text: str) -> None:
        """Record a free-standing diagnostic line, then notify the handler."""
        self.record_error_line(text)
        self.notify_error_line(text)

    def record_error_line(self, text: str) -> None:
        if text and not is_go_module_output(text):
            self.execution.add_error(text)

    def notify_error_line(self, text: str) -> None:
        if self.handler is not None:
            self.handler.on_error(text)


def _elapsed(event: TestEvent, started_at: datetime | None) -> timedelta:
    """Prefer the reported elapsed time, else derive it from the run event."""
    reported = event.elapsed_duration
    if reported is not None:
        return reported
    if started_at is None or event.time is None:
        return timedelta(0)
    return max(event.time - started_at, timedelta(0))
