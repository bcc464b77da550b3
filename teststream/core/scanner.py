"""Scan test2json byte streams into an Execution.

The structured stream is consumed one line at a time, so a live formatter
can render while a long test run is still producing output.  An optional
second stream carries free-text diagnostics (compiler errors and the like).
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator
from contextlib import closing
from enum import Enum
from functools import partial
from typing import IO, TYPE_CHECKING, AnyStr

from pydantic import BaseModel, ConfigDict

from teststream.core.builder import ExecutionBuilder
from teststream.errors import MalformedEventError, ScanError
from teststream.models.events import parse_event
from teststream.models.execution import Execution

if TYPE_CHECKING:
    from teststream.formatters import EventHandler

logger = logging.getLogger(__name__)


class MalformedPolicy(str, Enum):
    """What to do with a line that is not a well-formed event."""

    SKIP = "skip"  # report it to the handler as an error line and continue
    ABORT = "abort"  # stop the scan


class ScanConfig(BaseModel):
    """Policy knobs for a single scan."""

    model_config = ConfigDict(frozen=True)

    malformed: MalformedPolicy = MalformedPolicy.SKIP
    stop_on_handler_error: bool = False


def scan_test_output(
    stdout: IO[AnyStr],
    stderr: IO[AnyStr] | None = None,
    *,
    handler: EventHandler | None = None,
    execution: Execution | None = None,
    config: ScanConfig | None = None,
) -> Execution:
    """Read events from *stdout* and diagnostics from *stderr*.

    Pass an existing *execution* to merge this stream into it.

    Returns
    -------
    Execution
        The execution built from the streams.

    Raises
    ------
    ScanError
        If the scan was aborted, or the handler raised while rendering.
        The partial execution is available as ``ScanError.execution``.
    """
    config = config or ScanConfig()
    builder = ExecutionBuilder(execution=execution, handler=handler)
    handler_errors: list[Exception] = []

    def notify(call: Callable[[], None], where: str) -> None:
        # Only the handler call is guarded; builder errors propagate.
        try:
            call()
        except Exception as exc:  # noqa: BLE001
            logger.error("Handler failed on %s: %s", where, exc)
            handler_errors.append(exc)
            if config.stop_on_handler_error:
                raise ScanError(
                    f"handler failed on {where}: {exc}",
                    builder.execution,
                    handler_errors,
                ) from exc

    for lineno, raw in enumerate(_read_lines(stdout), start=1):
        if not raw.strip():
            continue
        try:
            event = parse_event(raw)
        except MalformedEventError as exc:
            if config.malformed == MalformedPolicy.ABORT:
                raise ScanError(
                    f"line {lineno}: {exc}", builder.execution, [exc]
                ) from exc
            logger.debug("Skipping malformed line %d: %s", lineno, exc.reason)
            text = _as_text(raw)
            builder.record_error_line(text)
            notify(partial(builder.notify_error_line, text), f"line {lineno}")
            continue

        builder.record(event)
        notify(partial(builder.notify, event), f"line {lineno}")

    if stderr is not None:
        for lineno, raw in enumerate(_read_lines(stderr), start=1):
            text = _as_text(raw)
            builder.record_error_line(text)
            notify(partial(builder.notify_error_line, text), f"stderr line {lineno}")

    if handler_errors:
        raise ScanError(
            f"{len(handler_errors)} handler errors during scan, last: {handler_errors[-1]}",
            builder.execution,
            handler_errors,
        )
    return builder.execution


def build_execution(
    streams: Iterable[IO[AnyStr]],
    *,
    handler: EventHandler | None = None,
    config: ScanConfig | None = None,
) -> Execution:
    """Scan several streams, one after another, into a single Execution.

    Every stream is closed before returning.  Packages accumulate across
    streams, which is how reruns and CI artifacts from several jobs are
    combined.

    Raises
    ------
    ScanError
        After all streams were scanned, if any of them failed to scan.
    """
    execution = Execution()
    last_error: ScanError | None = None
    count = 0
    for stream in streams:
        count += 1
        with closing(stream):
            try:
                scan_test_output(
                    stream, handler=handler, execution=execution, config=config
                )
            except ScanError as exc:
                logger.warning("Failed to scan stream %d: %s", count, exc)
                last_error = exc

    logger.debug("Scanned %d streams, %d tests", count, execution.total())
    if last_error is not None:
        raise ScanError(
            f"failed to scan test output: {last_error}", execution, [last_error]
        ) from last_error
    return execution


def _read_lines(stream: IO[AnyStr]) -> Iterator[AnyStr]:
    """Yield lines until EOF.  A stream closed mid-read also ends the scan."""
    while True:
        try:
            line = stream.readline()
        except ValueError:
            if getattr(stream, "closed", False):
                logger.debug("Input stream closed, ending scan")
                return
            raise
        if not line:
            return
        yield line


def _as_text(raw: bytes | str) -> str:
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    return raw.rstrip("\r\n")
