"""Bounded rerun loop for failed tests.

Each iteration scans the current stream; if tests failed, only those tests
are run again (by an external ``FailedTestRunner``) to produce the next stream.
The loop ends when nothing fails, or when the attempt budget is spent.
"""

from __future__ import annotations

import logging
import re
from typing import IO, TYPE_CHECKING, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from teststream.core.scanner import ScanConfig, scan_test_output
from teststream.errors import PersistentFailuresError, TooManyFailuresError
from teststream.models.execution import Execution, TestCase

if TYPE_CHECKING:
    from teststream.formatters import EventHandler

logger = logging.getLogger(__name__)


@runtime_checkable
class FailedTestRunner(Protocol):
    """Runs a subset of tests again and returns their test2json output."""

    def run(self, failed: list[TestCase]) -> IO[bytes]:
        """Rerun *failed* and return a readable stream of events."""
        ...


class RerunConfig(BaseModel):
    """Limits for the rerun loop."""

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=2, ge=0)
    # Do not rerun anything when more tests than this failed.
    max_failures: int = Field(default=20, ge=0)


class RerunResult(BaseModel):
    """Outcome of a rerun loop that converged."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    iterations: int
    attempts: int
    executions: list[Execution]

    @property
    def final(self) -> Execution:
        return self.executions[-1]


class RerunCoordinator:
    """Re-scan and rerun failed tests until they pass or attempts run out.

    Parameters
    ----------
    runner:
        Collaborator that reruns a list of failed tests.
    config:
        Attempt and failure limits.
    handler:
        Optional ``EventHandler`` used for every scan.
    """

    def __init__(
        self,
        runner: FailedTestRunner,
        config: RerunConfig | None = None,
        *,
        handler: EventHandler | None = None,
        scan_config: ScanConfig | None = None,
    ) -> None:
        self._runner = runner
        self._config = config or RerunConfig()
        self._handler = handler
        self._scan_config = scan_config

    def run(self, stream: IO[bytes]) -> RerunResult:
        """Run the loop starting from the output of the initial test run.

        Raises
        ------
        TooManyFailuresError
            If a scan reports more failures than ``max_failures``.
        PersistentFailuresError
            If tests still fail after ``max_attempts`` reruns, or a package
            failed without a named test that could be rerun.
        """
        attempts = 0
        executions: list[Execution] = []
        while True:
            try:
                execution = scan_test_output(
                    stream, handler=self._handler, config=self._scan_config
                )
            finally:
                # streams produced by the runner are ours to close
                if attempts:
                    stream.close()
            executions.append(execution)
            failed = execution.failed()
            logger.info(
                "Iteration %d: %d tests, %d failed",
                len(executions),
                execution.total(),
                len(failed),
            )
            if not failed:
                return RerunResult(
                    iterations=len(executions),
                    attempts=attempts,
                    executions=executions,
                )

            if len(failed) > self._config.max_failures:
                raise TooManyFailuresError(len(failed), self._config.max_failures)

            unnamed = [tc for tc in failed if not tc.test]
            if unnamed:
                logger.warning(
                    "Cannot rerun %d packages that failed outside a test",
                    len(unnamed),
                )
                raise PersistentFailuresError(failed, attempts)

            if attempts >= self._config.max_attempts:
                raise PersistentFailuresError(failed, attempts)

            attempts += 1
            logger.info("Rerun attempt %d of %d", attempts, self._config.max_attempts)
            stream = self._runner.run(failed)


def rerun_filters(failed: list[TestCase]) -> dict[str, str]:
    """Map each package to a ``-run`` pattern selecting its failed tests.

    A failing subtest also fails its parent, so rerunning the root test is
    enough and subtest names collapse onto it.

    >>> rerun_filters([TestCase(package="p", test="TestA/sub"), TestCase(package="p", test="TestB")])
    {'p': '^(TestA|TestB)$'}
    """
    roots: dict[str, list[str]] = {}
    for tc in failed:
        if not tc.test:
            continue
        names = roots.setdefault(tc.package, [])
        if tc.root not in names:
            names.append(tc.root)
    return {
        pkg: "^(" + "|".join(re.escape(name) for name in names) + ")$"
        for pkg, names in roots.items()
    }
