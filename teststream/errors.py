"""Error taxonomy for teststream.

Decode-level problems are reported per line so a renderer can keep going.
Aggregate-level problems abort the whole operation.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from teststream.models.execution import Execution, TestCase


class MalformedEventError(ValueError):
    """Raised when a line cannot be decoded as a test event."""

    def __init__(self, line: bytes | str, reason: str) -> None:
        self.line = line
        self.reason = reason
        super().__init__(f"failed to parse test event: {reason}: {line!r}")


class ScanError(RuntimeError):
    """Raised when a scan stops early or a handler reported errors.

    The partially built ``execution`` is kept for diagnostics.
    """

    def __init__(
        self,
        message: str,
        execution: Execution | None = None,
        errors: list[Exception] | None = None,
    ) -> None:
        self.execution = execution
        self.errors = list(errors or [])
        super().__init__(message)


class TooManyFailuresError(RuntimeError):
    """Raised when a run has more failures than a configured threshold."""

    def __init__(self, failed: int, threshold: int) -> None:
        self.failed = failed
        self.threshold = threshold
        super().__init__(
            f"failures ({failed}) exceeded threshold ({threshold})"
        )


class PersistentFailuresError(RuntimeError):
    """Raised when tests are still failing after every rerun attempt."""

    def __init__(self, failed: list[TestCase], attempts: int) -> None:
        self.failed = list(failed)
        self.attempts = attempts
        names = ", ".join(
            f"{tc.package}.{tc.test}" if tc.test else tc.package
            for tc in self.failed
        )
        super().__init__(
            f"{len(self.failed)} tests still failing after {attempts} reruns: {names}"
        )
