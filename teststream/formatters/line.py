"""Line-oriented formatters: one piece of text per event, written in order.

Each format is a plain function ``(event, execution, config) -> Text``; an
empty Text means the event renders nothing.  ``LineFormatter`` adapts a
format function to the ``EventHandler`` protocol.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import timedelta

from rich.console import Console
from rich.text import Text

from teststream.config import FormatterConfig
from teststream.models.events import Action, TestEvent
from teststream.models.execution import Execution

LineFormat = Callable[[TestEvent, Execution, FormatterConfig], Text]

# ---------------------------------------------------------------------------
# Action -> Rich style mapping
# ---------------------------------------------------------------------------

_ACTION_STYLES: dict[Action, str] = {
    Action.PASS: "green",
    Action.FAIL: "red",
    Action.SKIP: "yellow",
}

DOT_GLYPHS: dict[Action, str] = {
    Action.PASS: "·",
    Action.FAIL: "✖",
    Action.SKIP: "↷",
}


def styled(event: TestEvent, text: str) -> Text:
    """Text colored by the outcome of *event*."""
    return Text(text, style=_ACTION_STYLES.get(event.action, ""))


def dot(event: TestEvent) -> Text | None:
    """The glyph for a test outcome, or ``None`` for other actions."""
    glyph = DOT_GLYPHS.get(event.action)
    if glyph is None:
        return None
    return styled(event, glyph)


def relative_package_path(package: str, prefix: str = "") -> str:
    """Strip the module *prefix* from a package import path."""
    if not prefix:
        return package
    if package == prefix:
        return "."
    if package.startswith(prefix + "/"):
        return package[len(prefix) + 1 :]
    return package


def format_duration(elapsed: timedelta) -> str:
    """Render a duration compactly, e.g. ``150ms``, ``1.5s``, ``2m3s``."""
    seconds = elapsed.total_seconds()
    if seconds <= 0:
        return "0s"
    if seconds < 0.001:
        return f"{round(seconds * 1_000_000)}µs"
    if seconds < 1:
        return _trim(f"{seconds * 1000:.3f}") + "ms"
    if seconds < 60:
        return _trim(f"{seconds:.3f}") + "s"
    minutes, rest = divmod(int(seconds), 60)
    return f"{minutes}m{rest}s"


def _trim(number: str) -> str:
    return number.rstrip("0").rstrip(".")


# ---------------------------------------------------------------------------
# Formats
# ---------------------------------------------------------------------------


def standard_verbose_format(
    event: TestEvent, execution: Execution, config: FormatterConfig
) -> Text:
    """All output, as ``go test -v`` would print it."""
    if event.action == Action.OUTPUT:
        return Text(event.output)
    return Text()


def standard_quiet_format(
    event: TestEvent, execution: Execution, config: FormatterConfig
) -> Text:
    """Package-level output only, as ``go test`` would print it."""
    if event.package_event and event.action == Action.OUTPUT:
        return Text(event.output)
    return Text()


def testname_format(
    event: TestEvent, execution: Execution, config: FormatterConfig
) -> Text:
    """One line per finished test; failed tests replay their captured output."""
    if not event.action.is_terminal:
        return Text()

    pkg = execution.package(event.package)
    if event.package_event:
        label = event.action.value.upper()
        if pkg is not None and (
            event.action == Action.SKIP or (event.action == Action.PASS and pkg.total == 0)
        ):
            label = "EMPTY"
        return styled(event, label) + " " + package_line(event, execution, config)

    path = relative_package_path(event.package, config.package_prefix)
    line = Text()
    if event.action == Action.FAIL and pkg is not None and pkg.failed:
        line.append("".join(pkg.output(pkg.failed[-1].id)))
    line.append_text(styled(event, event.action.value.upper()))
    line.append(f" {path}.{event.test}")
    if event.elapsed is not None:
        line.append(f" ({max(event.elapsed, 0.0):.2f}s)")
    line.append("\n")
    return line


def pkgname_format(
    event: TestEvent, execution: Execution, config: FormatterConfig
) -> Text:
    """One line per finished package."""
    if not (event.package_event and event.action.is_terminal):
        return Text()

    pkg = execution.package(event.package)
    if event.action == Action.FAIL:
        glyph = "✖"
    elif event.action == Action.SKIP or pkg is None or pkg.total == 0:
        glyph = "∅"
    else:
        glyph = "✓"
    return styled(event, glyph) + "  " + package_line(event, execution, config)


def package_line(event: TestEvent, execution: Execution, config: FormatterConfig) -> Text:
    """``path (elapsed) (coverage)`` for a package-level terminal event."""
    pkg = execution.package(event.package)
    line = Text(relative_package_path(event.package, config.package_prefix))
    if pkg is not None and pkg.cached:
        line.append(" (cached)")
    elif event.elapsed_duration:
        line.append(f" ({format_duration(event.elapsed_duration)})")
    if pkg is not None and pkg.coverage:
        line.append(f" ({pkg.coverage})")
    line.append("\n")
    return line


# ---------------------------------------------------------------------------
# Handler adapter
# ---------------------------------------------------------------------------


class LineFormatter:
    """Writes the text produced by a ``LineFormat`` for every event.

    Parameters
    ----------
    format:
        The format function.
    console:
        Rich Console for rendered events.
    config:
        Formatter configuration.
    err_console:
        Console for diagnostic lines.  Defaults to *console*.
    """

    def __init__(
        self,
        format: LineFormat,
        console: Console,
        config: FormatterConfig | None = None,
        err_console: Console | None = None,
    ) -> None:
        self._format = format
        self._console = console
        self._err_console = err_console or console
        self._config = config or FormatterConfig()

    def on_event(self, event: TestEvent, execution: Execution) -> None:
        text = self._format(event, execution, self._config)
        if text.plain:
            self._console.print(text, end="", soft_wrap=True, highlight=False)

    def on_error(self, text: str) -> None:
        self._err_console.print(Text(text), soft_wrap=True, highlight=False)

    def close(self) -> None:
        """Nothing is buffered; present for the formatter interface."""
