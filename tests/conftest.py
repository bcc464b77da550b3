"""Shared test fixtures for teststream."""

from __future__ import annotations

import io
import json
from collections.abc import Callable
from typing import Any

import pytest
from rich.console import Console

from teststream.models.execution import Execution

PKG = "example.com/mod/pkg"


def event_line(action: str, package: str = PKG, test: str = "", **fields: Any) -> bytes:
    """Encode one test2json event the way ``go test -json`` writes it."""
    record: dict[str, Any] = {"Action": action}
    if "time" in fields:
        record["Time"] = fields.pop("time")
    if package:
        record["Package"] = package
    if test:
        record["Test"] = test
    if "output" in fields:
        record["Output"] = fields.pop("output")
    if "elapsed" in fields:
        record["Elapsed"] = fields.pop("elapsed")
    assert not fields, f"unknown event fields: {sorted(fields)}"
    return json.dumps(record).encode() + b"\n"


def stream_of(*lines: bytes) -> io.BytesIO:
    return io.BytesIO(b"".join(lines))


# ---------------------------------------------------------------------------
# Event factories — shared across test modules
# ---------------------------------------------------------------------------


@pytest.fixture
def make_line() -> Callable[..., bytes]:
    """Factory fixture: encode a single event line."""
    return event_line


@pytest.fixture
def make_stream() -> Callable[..., io.BytesIO]:
    """Factory fixture: a binary stream over the given event lines."""
    return stream_of


@pytest.fixture
def scenario_lines() -> list[bytes]:
    """One package: TestA passes in 5ms, TestB fails in 3ms, 80% coverage."""
    return [
        event_line("run", test="TestA"),
        event_line("output", test="TestA", output="=== RUN   TestA\n"),
        event_line("pass", test="TestA", elapsed=0.005),
        event_line("run", test="TestB"),
        event_line("output", test="TestB", output="=== RUN   TestB\n"),
        event_line("output", test="TestB", output="    b_test.go:9: boom\n"),
        event_line("fail", test="TestB", elapsed=0.003),
        event_line("output", output="coverage: 80.0% of statements\n"),
        event_line("fail", elapsed=0.01),
    ]


@pytest.fixture
def execution() -> Execution:
    """Provide a fresh, empty Execution."""
    return Execution()


@pytest.fixture
def console() -> Console:
    """A non-interactive Rich Console that records into memory."""
    return Console(file=io.StringIO(), width=80, color_system=None, force_terminal=False)

