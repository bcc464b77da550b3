"""Event handlers that render a test2json stream for a human reader.

Every formatter implements ``EventHandler`` and is driven by the scanner:
``on_event`` after each event has been applied to the Execution, and
``on_error`` for every non-JSON line.  ``new_event_formatter`` builds one
by name.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from rich.console import Console

from teststream.config import FormatterConfig
from teststream.formatters.dots import DotFormatter, SimpleDotFormatter
from teststream.formatters.line import (
    LineFormat,
    LineFormatter,
    pkgname_format,
    standard_quiet_format,
    standard_verbose_format,
    testname_format,
)
from teststream.models.events import TestEvent
from teststream.models.execution import Execution

logger = logging.getLogger(__name__)


@runtime_checkable
class EventHandler(Protocol):
    """Receives every event and every non-JSON line of a scan."""

    def on_event(self, event: TestEvent, execution: Execution) -> None:
        ...

    def on_error(self, text: str) -> None:
        ...


@runtime_checkable
class EventFormatter(EventHandler, Protocol):
    """An EventHandler that may hold terminal state until closed."""

    def close(self) -> None:
        ...


LINE_FORMATS: dict[str, LineFormat] = {
    "standard-verbose": standard_verbose_format,
    "standard-quiet": standard_quiet_format,
    "testname": testname_format,
    "pkgname": pkgname_format,
}

# Alternate names accepted for compatibility with other tools.
FORMAT_ALIASES: dict[str, str] = {
    "short": "pkgname",
    "short-verbose": "testname",
    "dots-v2": "dots",
}

FORMATS: tuple[str, ...] = (*LINE_FORMATS, "dots")


def new_event_formatter(
    name: str,
    console: Console,
    config: FormatterConfig | None = None,
    err_console: Console | None = None,
) -> EventFormatter:
    """Build the formatter registered under *name*.

    Parameters
    ----------
    name:
        A format name from ``FORMATS`` or an alias.
    console:
        Console for rendered output.
    config:
        Formatter configuration.  ``dots`` falls back to a simple,
        non-redrawing renderer when ``terminal_width`` is 0.
    err_console:
        Console for non-JSON lines.  Defaults to *console*.

    Raises
    ------
    ValueError
        If *name* is not a known format.
    """
    config = config or FormatterConfig()
    key = FORMAT_ALIASES.get(name, name)

    if key == "dots":
        if not config.terminal_width:
            logger.warning("Failed to detect terminal width for dots format")
            return SimpleDotFormatter(console, config)
        return DotFormatter(console, config)

    line_format = LINE_FORMATS.get(key)
    if line_format is None:
        raise ValueError(
            f"unknown format {name!r}; expected one of: {', '.join(FORMATS)}"
        )
    return LineFormatter(line_format, console, config, err_console=err_console)


__all__ = [
    "DotFormatter",
    "EventFormatter",
    "EventHandler",
    "FORMATS",
    "LineFormatter",
    "SimpleDotFormatter",
    "new_event_formatter",
]
