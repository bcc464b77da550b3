"""Slow-test ranking across every run instance in an Execution."""

from __future__ import annotations

from bisect import bisect_right
from collections.abc import Iterable
from datetime import timedelta

from teststream.models.execution import Execution, TestCase


def slowest_test_cases(
    execution: Execution, threshold: timedelta, limit: int | None = None
) -> list[TestCase]:
    """Return finished tests slower than *threshold*, slowest first.

    A test that ran more than once (reruns, ``-count``) is represented by a
    single case with the median elapsed time of its runs.  A zero threshold
    disables the ranking and returns an empty list.  *limit* caps the number
    of cases returned.
    """
    if threshold <= timedelta(0):
        return []

    cases = aggregate_test_cases(
        tc for pkg in execution.packages.values() for tc in pkg.test_cases()
    )
    cases.sort(key=lambda tc: tc.elapsed, reverse=True)

    # Sorted descending by elapsed, so negated elapsed is ascending.
    end = bisect_right(cases, -threshold, key=lambda tc: -tc.elapsed)
    if limit is not None:
        end = min(end, max(limit, 0))
    return cases[:end]


def aggregate_test_cases(cases: Iterable[TestCase]) -> list[TestCase]:
    """Collapse repeated runs of the same ``(package, test)`` to their median.

    Order follows the first appearance of each test.
    """
    groups: dict[tuple[str, str], list[TestCase]] = {}
    for tc in cases:
        groups.setdefault((tc.package, tc.test), []).append(tc)
    return [runs[0] if len(runs) == 1 else median(runs) for runs in groups.values()]


def median(runs: list[TestCase]) -> TestCase:
    """The run with the median elapsed time.

    For an even number of runs this is the lower of the two middle values,
    not an interpolated one.
    """
    ordered = sorted(runs, key=lambda tc: tc.elapsed)
    return ordered[(len(ordered) - 1) // 2]
