"""Test event records as emitted by ``go test -json`` (test2json).

One JSON object per line.  Keys use the test2json spelling (``Time``,
``Action``, ``Package``, ``Test``, ``Output``, ``Elapsed``).
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from teststream.errors import MalformedEventError

logger = logging.getLogger(__name__)


class Action(str, Enum):
    """The action vocabulary of a test event."""

    START = "start"
    RUN = "run"
    PAUSE = "pause"
    CONT = "cont"
    PASS = "pass"
    FAIL = "fail"
    SKIP = "skip"
    OUTPUT = "output"
    BENCH = "bench"

    @property
    def is_terminal(self) -> bool:
        """Whether the action ends a test or package."""
        return self in _TERMINAL_ACTIONS


_TERMINAL_ACTIONS = frozenset({Action.PASS, Action.FAIL, Action.SKIP})

# datetime.fromisoformat accepts at most microseconds; test2json writes nanoseconds.
_EXTRA_FRACTION = re.compile(r"(\.\d{6})\d+")


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an RFC 3339 timestamp, returning ``None`` for unset or garbage values."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = _EXTRA_FRACTION.sub(r"\1", value.strip())
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            logger.debug("Ignoring unparseable event time %r", value)
            return None
    else:
        logger.debug("Ignoring event time of type %s", type(value).__name__)
        return None

    # Go's zero time means "unset".
    if parsed.year <= 1:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class TestEvent(BaseModel):
    """A single structured record describing one test-framework action."""

    __test__ = False  # not a pytest test class

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    time: datetime | None = Field(default=None, alias="Time")
    action: Action = Field(alias="Action")
    package: str = Field(default="", alias="Package")
    test: str = Field(default="", alias="Test")
    output: str = Field(default="", alias="Output")
    elapsed: float | None = Field(default=None, alias="Elapsed")  # seconds

    @field_validator("time", mode="before")
    @classmethod
    def _lenient_time(cls, value: Any) -> datetime | None:
        return parse_timestamp(value)

    @field_validator("package", "test", "output", mode="before")
    @classmethod
    def _null_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @property
    def package_event(self) -> bool:
        """True when the event describes the package itself, not a test."""
        return self.test == ""

    @property
    def elapsed_duration(self) -> timedelta | None:
        """The reported elapsed time, clamped to zero, or ``None`` if absent."""
        if self.elapsed is None:
            return None
        return timedelta(seconds=max(self.elapsed, 0.0))


def parse_event(raw: bytes | str) -> TestEvent:
    """Decode one line of test2json output.

    Raises
    ------
    MalformedEventError
        If the line is not a well-formed event record.
    """
    line = raw.strip()
    if not line:
        raise MalformedEventError(raw, "empty line")
    try:
        return TestEvent.model_validate_json(line)
    except ValidationError as exc:
        errors = exc.errors()
        reason = errors[0]["msg"] if errors else str(exc)
        raise MalformedEventError(raw, reason) from exc
