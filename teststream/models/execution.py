"""The execution model reconstructed from a stream of test events.

``Execution`` owns every ``Package`` seen during a scan; each ``Package``
owns its finished ``TestCase`` records, its running tests, and the output
captured for tests that may need to be replayed.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone

from pydantic import BaseModel, ConfigDict

from teststream.models.events import Action

COVERAGE_PATTERN = re.compile(r"coverage: \d+(?:\.\d+)?% of statements(?: in \S+)?")
CACHED_MARKER = "\t(cached)"


class TestCase(BaseModel):
    """One finished test instance.

    ``id`` is the sequence number assigned when the test started running,
    and keys the test's captured output in its ``Package``.
    """

    __test__ = False  # not a pytest test class

    model_config = ConfigDict(frozen=True)

    package: str
    test: str = ""
    elapsed: timedelta = timedelta(0)
    time: datetime | None = None
    id: int = 0

    @property
    def root(self) -> str:
        """Name of the top-level test, for ``Parent/Child`` subtests."""
        return self.test.split("/", 1)[0]

    @property
    def is_subtest(self) -> bool:
        return "/" in self.test


class Package:
    """Mutable aggregate of everything known about one package."""

    def __init__(self, name: str = "") -> None:
        self.name = name
        self.total = 0
        self.passed: list[TestCase] = []
        self.failed: list[TestCase] = []
        self.skipped: list[TestCase] = []
        self.running: dict[str, TestCase] = {}
        self.action: Action | None = None
        self.coverage = ""
        self.cached = False
        self.elapsed: timedelta | None = None
        # test id -> captured output lines; id 0 holds package-level output
        self._output: dict[int, list[str]] = {}
        # root test name -> ids of subtests started beneath it
        self._subtests: dict[str, list[int]] = {}
        # last id assigned to each test name, for output after a terminal event
        self._last_id: dict[str, int] = {}

    def __repr__(self) -> str:
        return (
            f"Package(name={self.name!r}, total={self.total}, passed={len(self.passed)}, "
            f"failed={len(self.failed)}, skipped={len(self.skipped)}, "
            f"action={self.action!r})"
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def test_cases(self) -> list[TestCase]:
        """All finished test cases, in outcome order (passed, failed, skipped)."""
        return [*self.passed, *self.failed, *self.skipped]

    def output(self, test_id: int) -> list[str]:
        """Captured output lines for a test id (0 for package-level output)."""
        return list(self._output.get(test_id, []))

    def output_lines(self, test_case: TestCase) -> list[str]:
        """Captured output for a test case followed by that of its subtests."""
        lines = self.output(test_case.id)
        if test_case.id and not test_case.is_subtest:
            for sub_id in self._subtests.get(test_case.test, []):
                lines.extend(self._output.get(sub_id, []))
        return lines

    def subtests(self, root: str) -> list[int]:
        """Ids of subtests started under the root test *root*."""
        return list(self._subtests.get(root, []))

    def elapsed_total(self) -> timedelta:
        """Package elapsed time as reported, or the sum of its test cases."""
        if self.elapsed is not None:
            return self.elapsed
        return sum((tc.elapsed for tc in self.test_cases()), timedelta(0))

    def test_main_failed(self) -> bool:
        """True when the package failed without a failing test.

        This happens on build failures, panics in ``TestMain``, or when the
        test binary exits non-zero after all tests pass.
        """
        return self.action == Action.FAIL and not self.failed

    def result(self) -> Action:
        """The overall outcome of the package."""
        if self.failed or self.test_main_failed():
            return Action.FAIL
        if self.action is not None:
            return self.action
        return Action.PASS

    # ------------------------------------------------------------------
    # Mutation (used by ExecutionBuilder)
    # ------------------------------------------------------------------

    def start_test(self, test: str, test_id: int, started: datetime | None) -> None:
        self.running[test] = TestCase(package=self.name, test=test, time=started, id=test_id)
        self.assign_test_id(test, test_id)

    def assign_test_id(self, test: str, test_id: int) -> None:
        """Make *test_id* the id that output and results for *test* belong to."""
        self._last_id[test] = test_id
        if "/" in test:
            root = test.split("/", 1)[0]
            self._subtests.setdefault(root, []).append(test_id)

    def test_id(self, test: str) -> int:
        """Id that output for *test* belongs to right now."""
        running = self.running.get(test)
        if running is not None:
            return running.id
        return self._last_id.get(test, 0)

    def add_output(self, test_id: int, line: str) -> None:
        self._output.setdefault(test_id, []).append(line)

    def add_test_case(self, action: Action, test_case: TestCase) -> None:
        bucket = {
            Action.PASS: self.passed,
            Action.FAIL: self.failed,
            Action.SKIP: self.skipped,
        }[action]
        bucket.append(test_case)
        self.total += 1

    def release_output(self, test_case: TestCase) -> None:
        """Drop captured output for a passing root test and its subtests."""
        self._output.pop(test_case.id, None)
        for sub_id in self._subtests.pop(test_case.test, []):
            self._output.pop(sub_id, None)


class Execution:
    """The run-wide aggregate for one scan, possibly spanning several streams."""

    def __init__(self, started: datetime | None = None) -> None:
        self.started = started or datetime.now(timezone.utc)
        self._packages: dict[str, Package] = {}
        self._errors: list[str] = []
        self._next_id = 0

    def __repr__(self) -> str:
        return (
            f"Execution(packages={len(self._packages)}, total={self.total()}, "
            f"errors={len(self._errors)})"
        )

    @property
    def packages(self) -> dict[str, Package]:
        """Packages keyed by path, in first-seen order."""
        return self._packages

    @property
    def errors(self) -> list[str]:
        """Build and diagnostic errors seen outside any test, in order."""
        return list(self._errors)

    def package(self, name: str) -> Package | None:
        return self._packages.get(name)

    def package_names(self) -> list[str]:
        """Package paths in first-seen order."""
        return list(self._packages)

    def ensure_package(self, name: str) -> Package:
        pkg = self._packages.get(name)
        if pkg is None:
            pkg = Package(name)
            self._packages[name] = pkg
        return pkg

    def next_test_id(self) -> int:
        self._next_id += 1
        return self._next_id

    def add_error(self, text: str) -> None:
        # Build errors start with a "# package" header line
        if text.startswith("# "):
            return
        self._errors.append(text)

    def total(self) -> int:
        return sum(pkg.total for pkg in self._packages.values())

    def failed(self) -> list[TestCase]:
        """Failed test cases, plus one entry per package whose test main failed."""
        result: list[TestCase] = []
        for name, pkg in self._packages.items():
            if pkg.test_main_failed():
                result.append(TestCase(package=name))
            result.extend(pkg.failed)
        return result

    def skipped(self) -> list[TestCase]:
        return [tc for pkg in self._packages.values() for tc in pkg.skipped]

    def passed(self) -> list[TestCase]:
        return [tc for pkg in self._packages.values() for tc in pkg.passed]

    def elapsed(self) -> timedelta:
        """Wall time since the execution was created."""
        return datetime.now(timezone.utc) - self.started
