"""Dot formatters: one glyph per finished test.

``DotFormatter`` keeps one line per package and redraws the whole block in
place (Rich ``Live``) after every test result.  Lines are ordered by their
last update, so packages that are still running sink to the bottom and
finished packages keep their first-seen order at the top.  A line that
reaches the terminal width gets a wrap marker and stops growing.

``SimpleDotFormatter`` is the fallback when the terminal width is unknown:
it appends glyphs in stream order with no redraw and no width management.
"""

from __future__ import annotations

from datetime import timedelta

from rich.console import Console, Group
from rich.live import Live
from rich.text import Text

from teststream.config import FormatterConfig
from teststream.formatters.line import dot, relative_package_path
from teststream.models.events import Action, TestEvent
from teststream.models.execution import Execution, Package

WRAP_MARKER = "↲"
CACHED_GLYPH = "🖴"

# "%6s " time column plus the space after the package path, and one more
# column of padding.
_PREFIX_FIXED = 8


class DotLine:
    """The accumulating glyphs of one package."""

    def __init__(self) -> None:
        self.glyphs = 0
        self.text = Text()
        self.last_update = 0
        self.full = False

    def update(self, glyph: Text | None) -> None:
        if self.full or glyph is None:
            return
        self.text.append_text(glyph)
        self.glyphs += 1

    def check_width(self, prefix: int, terminal: int) -> None:
        """Mark the line full once it reaches the terminal width."""
        # padding for the wrap marker itself
        padding = 1
        if not self.full and prefix + self.glyphs + padding >= terminal:
            self.text.append(WRAP_MARKER)
            self.full = True


def format_package_time(pkg: Package | None) -> str:
    """Elapsed time column for a package line."""
    if pkg is None:
        return ""
    if pkg.cached:
        return CACHED_GLYPH
    elapsed = pkg.elapsed_total()
    if elapsed <= timedelta(0):
        return ""
    # truncated, not rounded
    millis = elapsed // timedelta(milliseconds=1)
    if elapsed < timedelta(seconds=1):
        return f"{millis}ms"
    if elapsed < timedelta(seconds=10):
        seconds, millis = divmod(millis, 1000)
        return f"{seconds}.{millis:03d}".rstrip("0").rstrip(".") + "s"
    if elapsed < timedelta(minutes=1):
        return f"{elapsed // timedelta(seconds=1)}s"
    return ""


def package_prefix(path: str, pkg: Package | None) -> tuple[str, int]:
    """The fixed-width prefix of a package line, and its width."""
    return f"{format_package_time(pkg):>6} {path} ", len(path) + _PREFIX_FIXED


class DotFormatter:
    """Live, width-aware, multi-package dot renderer.

    Parameters
    ----------
    console:
        Rich Console to draw on.  Must be an interactive terminal.
    config:
        Formatter configuration; ``terminal_width`` must be non-zero.
    """

    def __init__(self, console: Console, config: FormatterConfig) -> None:
        if not config.terminal_width:
            raise ValueError("DotFormatter requires a known terminal width")
        self._console = console
        self._config = config
        self.lines: dict[str, DotLine] = {}
        self.order: list[str] = []
        self._updates = 0
        self._live = Live(
            console=console,
            auto_refresh=False,
            transient=False,
            redirect_stdout=False,
            redirect_stderr=False,
            vertical_overflow="visible",
        )
        self._started = False

    @property
    def terminal_width(self) -> int:
        return self._config.terminal_width

    def on_event(self, event: TestEvent, execution: Execution) -> None:
        line = self.lines.get(event.package)
        if line is None:
            line = DotLine()
            self.lines[event.package] = line
            self.order.append(event.package)
        self._updates += 1
        line.last_update = self._updates

        if not event.package_event:
            line.update(dot(event))
        if event.action in (Action.OUTPUT, Action.BENCH):
            return

        self.order.sort(key=lambda name: self.lines[name].last_update)
        self._redraw(execution)

    def render(self, execution: Execution) -> Group:
        """Build the block of package lines, applying the width policy."""
        rendered: list[Text] = []
        for name in self.order:
            line = self.lines[name]
            path = relative_package_path(name, self._config.package_prefix)
            prefix, width = package_prefix(path, execution.package(name))
            line.check_width(width, self.terminal_width)
            rendered.append(Text(prefix, no_wrap=True, overflow="crop") + line.text)
        return Group(*rendered)

    def _redraw(self, execution: Execution) -> None:
        if not self._started:
            self._live.start()
            self._started = True
        self._live.update(self.render(execution), refresh=True)

    def on_error(self, text: str) -> None:
        # Printed above the live block while it is active.
        self._console.print(Text(text), soft_wrap=True, highlight=False)

    def close(self) -> None:
        """Stop redrawing; the last frame stays on screen."""
        if self._started:
            self._live.stop()
            self._started = False


class SimpleDotFormatter:
    """Dots without width management, for non-interactive output."""

    def __init__(self, console: Console, config: FormatterConfig | None = None) -> None:
        self._console = console
        self._config = config or FormatterConfig()
        self._written = False
        self._seen: set[str] = set()

    def on_event(self, event: TestEvent, execution: Execution) -> None:
        if event.package_event:
            return
        # The first test event of a package, of any action, starts its line.
        if event.package not in self._seen:
            self._seen.add(event.package)
            path = relative_package_path(event.package, self._config.package_prefix)
            self._write(Text(("\n" if self._written else "") + f"[{path}] "))
        if event.action == Action.RUN:
            return
        glyph = dot(event)
        if glyph is not None:
            self._write(glyph)

    def on_error(self, text: str) -> None:
        self._console.print(Text(text), soft_wrap=True, highlight=False)

    def close(self) -> None:
        if self._written:
            self._write(Text("\n"))

    def _write(self, text: Text) -> None:
        self._console.print(text, end="", soft_wrap=True, highlight=False)
        self._written = True
