"""End-of-run summary: counts, failed-test output replay, and errors."""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum

from rich.console import Console
from rich.text import Text

from teststream.formatters.line import format_duration, relative_package_path
from teststream.models.execution import Execution, TestCase


class SummarySection(str, Enum):
    """Parts of the summary that can be turned off."""

    SKIPPED = "skipped"
    FAILED = "failed"
    ERRORS = "errors"


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def done_line(execution: Execution) -> Text:
    """``DONE 12 tests, 1 skipped, 2 failures, 1 error in 3.2s``"""
    failed = len(execution.failed())
    skipped = len(execution.skipped())
    errors = len(execution.errors)

    line = Text("DONE ", style="bold")
    line.append(_plural(execution.total(), "test"))
    if skipped:
        line.append(f", {skipped} skipped", style="yellow")
    if failed:
        line.append(", " + _plural(failed, "failure"), style="red")
    if errors:
        line.append(", " + _plural(errors, "error"), style="red")
    line.append(f" in {format_duration(execution.elapsed())}")
    return line


def print_summary(
    console: Console,
    execution: Execution,
    *,
    package_prefix: str = "",
    hide: Iterable[SummarySection] = (),
) -> None:
    """Print the summary of *execution* to *console*.

    Failed tests replay the output that was captured for them; a package
    whose test binary failed without a failing test replays its
    package-level output instead.
    """
    hidden = set(hide)

    if SummarySection.SKIPPED not in hidden:
        _print_cases(
            console, execution, "Skipped", "SKIP", "yellow", execution.skipped(), package_prefix
        )
    if SummarySection.FAILED not in hidden:
        _print_cases(
            console, execution, "Failed", "FAIL", "red", execution.failed(), package_prefix
        )
    if SummarySection.ERRORS not in hidden and execution.errors:
        console.print(Text(f"\n=== {_plural(len(execution.errors), 'Error')}", style="bold red"))
        for error in execution.errors:
            console.print(Text(error), soft_wrap=True, highlight=False)

    console.print()
    console.print(done_line(execution), highlight=False)


def _print_cases(
    console: Console,
    execution: Execution,
    title: str,
    label: str,
    style: str,
    cases: list[TestCase],
    package_prefix: str,
) -> None:
    if not cases:
        return
    console.print(Text(f"\n=== {title}", style=f"bold {style}"))
    for tc in cases:
        path = relative_package_path(tc.package, package_prefix)
        pkg = execution.package(tc.package)
        if not tc.test:
            header = f"=== {label}: {path} (test main)"
        else:
            header = f"=== {label}: {path} {tc.test} ({format_duration(tc.elapsed)})"
        console.print(Text(header, style=style), highlight=False)
        if pkg is None:
            continue
        # Build failures and TestMain exits keep their output at id 0.
        lines = pkg.output_lines(tc) if tc.test else pkg.output(0)
        if lines:
            console.print(Text("".join(lines)), end="", soft_wrap=True, highlight=False)
