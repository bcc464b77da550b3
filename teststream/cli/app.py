"""Main Typer application — imports and registers all CLI commands.

Entry point: ``teststream`` (configured via pyproject.toml scripts).

Commands: scan, slowest, metrics.
"""

from __future__ import annotations

import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

from teststream import __version__
from teststream.cli.commands.metrics_cmd import metrics_cmd
from teststream.cli.commands.scan_cmd import scan_cmd
from teststream.cli.commands.slowest_cmd import slowest_cmd
from teststream.config import Settings

app = typer.Typer(
    name="teststream",
    help="teststream: render and aggregate 'go test -json' event streams.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.command(name="scan", help="Render a test2json stream and print a summary.")(scan_cmd)
app.command(name="slowest", help="List the slowest tests of a run.")(slowest_cmd)
app.command(name="metrics", help="Print run metrics as JSON.")(metrics_cmd)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"teststream {__version__}")
        raise typer.Exit()


@app.callback()
def root(
    debug: bool = typer.Option(
        False, "--debug", help="Log at DEBUG level."
    ),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
) -> None:
    """Configure logging before any command runs."""
    settings = Settings()
    level = logging.DEBUG if debug or settings.debug else settings.log_level.upper()
    logging.basicConfig(
        level=level,
        format="%(name)s: %(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
