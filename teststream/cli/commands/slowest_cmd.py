"""``teststream slowest [JSONFILE...]`` — list the slowest tests of a run."""

from __future__ import annotations

from datetime import timedelta
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from teststream.cli.commands import open_inputs
from teststream.config import Settings
from teststream.core.scanner import build_execution
from teststream.errors import ScanError
from teststream.formatters.line import format_duration
from teststream.metrics.slowest import slowest_test_cases

console = Console()


def slowest_cmd(
    jsonfiles: Optional[List[str]] = typer.Argument(
        None,
        help="Files of test2json events, merged in order; omitted reads stdin.",
    ),
    threshold_ms: Optional[int] = typer.Option(
        None,
        "--threshold-ms",
        "-t",
        help="Only list tests at least this slow. Defaults to TESTSTREAM_SLOW_TEST_THRESHOLD_MS.",
    ),
    max_tests: Optional[int] = typer.Option(
        None,
        "--max",
        "-n",
        help="List at most this many tests. Defaults to TESTSTREAM_MAX_SLOW_TESTS.",
    ),
) -> None:
    """Show tests slower than a threshold, slowest first.

    Tests that ran more than once are listed with their median time.
    """
    settings = Settings()
    threshold = timedelta(
        milliseconds=settings.slow_test_threshold_ms if threshold_ms is None else threshold_ms
    )
    limit = settings.max_slow_tests if max_tests is None else max_tests

    try:
        execution = build_execution(open_inputs(jsonfiles, console))
    except ScanError as exc:
        console.print(f"[bold red]Scan failed:[/bold red] {exc}")
        raise typer.Exit(code=1)

    cases = slowest_test_cases(execution, threshold, limit=limit)
    if not cases:
        console.print(f"[dim]No tests slower than {format_duration(threshold)}.[/dim]")
        return

    table = Table(title="Slowest Tests")
    table.add_column("Elapsed", justify="right", style="yellow")
    table.add_column("Package", style="cyan")
    table.add_column("Test")
    for tc in cases:
        table.add_row(format_duration(tc.elapsed), tc.package, tc.test)
    console.print(table)
