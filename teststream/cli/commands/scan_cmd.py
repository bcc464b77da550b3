"""``teststream scan [JSONFILE]`` — render a ``go test -json`` stream.

Events are rendered as they are read, so piping a running ``go test -json``
into this command shows progress live.  A summary with the output of every
failed test is printed at the end.
"""

from __future__ import annotations

from contextlib import closing
from typing import Optional

import typer
from rich.console import Console

from teststream.cli.commands import open_input
from teststream.config import Settings
from teststream.core.scanner import MalformedPolicy, ScanConfig, scan_test_output
from teststream.errors import ScanError
from teststream.formatters import FORMATS, new_event_formatter
from teststream.formatters.summary import print_summary

console = Console()
err_console = Console(stderr=True)


def scan_cmd(
    jsonfile: Optional[str] = typer.Argument(
        None,
        help="File of test2json events; '-' or omitted reads stdin.",
    ),
    stderr_file: Optional[str] = typer.Option(
        None,
        "--stderr",
        help="File holding the stderr of 'go test', e.g. build errors.",
    ),
    output_format: Optional[str] = typer.Option(
        None,
        "--format",
        "-f",
        help=f"Output format: {', '.join(FORMATS)}. Defaults to TESTSTREAM_FORMAT.",
    ),
    skip_malformed: bool = typer.Option(
        True,
        "--skip-malformed/--abort-malformed",
        help="Report lines that are not JSON events and continue, or stop the scan.",
    ),
    package_prefix: str = typer.Option(
        "",
        "--package-prefix",
        help="Module path stripped from package names for display.",
    ),
) -> None:
    """Render test events as they arrive and print a summary."""
    settings = Settings()
    formatter_config = settings.formatter_config(console).model_copy(
        update={"package_prefix": package_prefix}
    )
    try:
        formatter = new_event_formatter(
            output_format or settings.format, console, formatter_config, err_console
        )
    except ValueError as exc:
        err_console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(code=1)

    scan_config = ScanConfig(
        malformed=MalformedPolicy.SKIP if skip_malformed else MalformedPolicy.ABORT
    )
    stdout = open_input(jsonfile, err_console)
    stderr = open_input(stderr_file, err_console) if stderr_file else None

    failed_scan: ScanError | None = None
    try:
        with closing(stdout):
            execution = scan_test_output(
                stdout, stderr, handler=formatter, config=scan_config
            )
    except ScanError as exc:
        failed_scan = exc
        execution = exc.execution
    finally:
        formatter.close()
        if stderr is not None:
            stderr.close()

    if execution is not None:
        print_summary(console, execution, package_prefix=package_prefix)
    if failed_scan is not None:
        err_console.print(f"[bold red]Scan failed:[/bold red] {failed_scan}")
        raise typer.Exit(code=1)
    if execution.failed() or execution.errors:
        raise typer.Exit(code=1)
