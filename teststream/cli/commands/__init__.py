"""Helpers shared by the CLI commands."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import IO

import typer
from rich.console import Console

STDIN = "-"


def _check_input(path: str, console: Console) -> None:
    if path != STDIN and not Path(path).is_file():
        console.print(f"[bold red]File not found:[/bold red] {path}")
        raise typer.Exit(code=1)


def open_input(path: str | None, console: Console) -> IO[bytes]:
    """Open *path* for binary reading; ``-`` or ``None`` means stdin."""
    path = path or STDIN
    _check_input(path, console)
    if path == STDIN:
        return sys.stdin.buffer
    return Path(path).open("rb")


def open_inputs(paths: list[str] | None, console: Console) -> list[IO[bytes]]:
    """Open every path in order; no paths means stdin.

    All paths are checked before any file is opened.
    """
    paths = paths or [STDIN]
    for path in paths:
        _check_input(path, console)
    return [open_input(path, console) for path in paths]
