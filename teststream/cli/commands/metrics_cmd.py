"""``teststream metrics [JSONFILE...]`` — print the metrics of a run as JSON.

The JSON is a debugging view of the ``Metrics`` value that a metrics
emitter would receive; it is not a wire format for any backend.
"""

from __future__ import annotations

import os
from typing import List, Optional

import typer
from rich.console import Console

from teststream.cli.commands import open_inputs
from teststream.config import Settings
from teststream.errors import ScanError, TooManyFailuresError
from teststream.metrics.produce import Metrics, produce
from teststream.metrics.tags import tags_from_env

console = Console()


class ConsoleEmitter:
    """MetricsEmitter that pretty-prints the metrics as JSON."""

    def __init__(self, console: Console) -> None:
        self._console = console

    def emit(self, metrics: Metrics) -> None:
        self._console.print_json(metrics.model_dump_json())


def metrics_cmd(
    jsonfiles: Optional[List[str]] = typer.Argument(
        None,
        help="Files of test2json events, merged in order; omitted reads stdin.",
    ),
    tag_source: Optional[str] = typer.Option(
        None,
        "--tag-source",
        help="Where to read tags from: auto, env or circleci. Defaults to TESTSTREAM_TAG_SOURCE.",
    ),
) -> None:
    """Aggregate slow and failed tests and print them with run tags."""
    settings = Settings()
    try:
        tags = tags_from_env(tag_source or settings.tag_source, dict(os.environ))
        produce(
            settings.metric_config(),
            open_inputs(jsonfiles, console),
            ConsoleEmitter(console),
            tags=tags.as_dict(),
        )
    except (ValueError, ScanError, TooManyFailuresError) as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(code=1)
