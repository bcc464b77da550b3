"""Unit tests for ExecutionBuilder — applying events to an Execution."""

from __future__ import annotations

from datetime import timedelta

from teststream.core.builder import ExecutionBuilder, is_go_module_output
from teststream.models.events import Action, parse_event

PKG = "example.com/mod/pkg"


class RecordingHandler:
    """EventHandler that records what it was told."""

    def __init__(self):
        self.events = []
        self.errors = []
        self.totals = []

    def on_event(self, event, execution):
        self.events.append(event)
        self.totals.append(execution.total())

    def on_error(self, text):
        self.errors.append(text)


def _build(lines, handler=None):
    builder = ExecutionBuilder(handler=handler)
    for line in lines:
        builder.apply(parse_event(line))
    return builder.execution


# ---------------------------------------------------------------------------
# Test: test lifecycle
# ---------------------------------------------------------------------------


class TestLifecycle:
    """Run and terminal events move tests from running to finished."""

    def test_run_registers_running(self, make_line):
        execution = _build([make_line("run", test="TestA")])
        pkg = execution.package(PKG)
        assert "TestA" in pkg.running
        assert pkg.total == 0

    def test_terminal_event_finishes(self, make_line):
        execution = _build([make_line("run", test="TestA"), make_line("pass", test="TestA", elapsed=0.2)])
        pkg = execution.package(PKG)
        assert pkg.running == {}
        assert pkg.total == 1
        assert [tc.test for tc in pkg.passed] == ["TestA"]
        assert pkg.passed[0].elapsed == timedelta(milliseconds=200)

    def test_outcome_buckets(self, make_line):
        execution = _build(
            [
                make_line("pass", test="TestP"),
                make_line("fail", test="TestF"),
                make_line("skip", test="TestS"),
            ]
        )
        pkg = execution.package(PKG)
        assert [tc.test for tc in pkg.passed] == ["TestP"]
        assert [tc.test for tc in pkg.failed] == ["TestF"]
        assert [tc.test for tc in pkg.skipped] == ["TestS"]

    def test_total_counts_every_terminal_event(self, make_line):
        lines = [
            make_line("run", test="TestA"),
            make_line("run", test="TestA/sub"),
            make_line("pass", test="TestA/sub"),
            make_line("pass", test="TestA"),
            make_line("skip", test="TestB"),
        ]
        execution = _build(lines)
        pkg = execution.package(PKG)
        assert pkg.total == len(pkg.passed) + len(pkg.failed) + len(pkg.skipped) == 3
        assert execution.total() == 3

    def test_duplicate_terminal_events_are_additive(self, make_line):
        execution = _build(
            [
                make_line("run", test="TestA"),
                make_line("fail", test="TestA"),
                make_line("fail", test="TestA"),
            ]
        )
        assert execution.package(PKG).total == 2
        assert len(execution.failed()) == 2

    def test_terminal_without_run(self, make_line):
        execution = _build([make_line("pass", test="TestLate", elapsed=0.01)])
        pkg = execution.package(PKG)
        assert pkg.total == 1
        assert pkg.passed[0].id > 0

    def test_pause_cont_bench_carry_no_state(self, make_line):
        execution = _build(
            [
                make_line("run", test="TestA"),
                make_line("pause", test="TestA"),
                make_line("cont", test="TestA"),
                make_line("bench", test="TestA"),
            ]
        )
        pkg = execution.package(PKG)
        assert pkg.total == 0
        assert "TestA" in pkg.running

    def test_ids_are_unique_across_packages(self, make_line):
        execution = _build(
            [
                make_line("run", package="a", test="TestA"),
                make_line("run", package="b", test="TestA"),
            ]
        )
        ids = {execution.package("a").running["TestA"].id, execution.package("b").running["TestA"].id}
        assert len(ids) == 2
        assert 0 not in ids


class TestElapsed:
    """Elapsed time prefers the reported value and is never negative."""

    def test_reported_negative_clamped(self, make_line):
        execution = _build([make_line("pass", test="TestA", elapsed=-0.5)])
        assert execution.package(PKG).passed[0].elapsed == timedelta(0)

    def test_derived_from_run_time(self, make_line):
        execution = _build(
            [
                make_line("run", test="TestA", time="2024-01-01T00:00:00Z"),
                make_line("pass", test="TestA", time="2024-01-01T00:00:02Z"),
            ]
        )
        assert execution.package(PKG).passed[0].elapsed == timedelta(seconds=2)

    def test_derived_negative_clamped(self, make_line):
        execution = _build(
            [
                make_line("run", test="TestA", time="2024-01-01T00:00:05Z"),
                make_line("pass", test="TestA", time="2024-01-01T00:00:02Z"),
            ]
        )
        assert execution.package(PKG).passed[0].elapsed == timedelta(0)

    def test_missing_time_is_zero(self, make_line):
        execution = _build([make_line("run", test="TestA"), make_line("pass", test="TestA")])
        assert execution.package(PKG).passed[0].elapsed == timedelta(0)


# ---------------------------------------------------------------------------
# Test: package-level events
# ---------------------------------------------------------------------------


class TestPackageEvents:
    """Package events set coverage, cached, action and elapsed."""

    def test_coverage_captured(self, make_line):
        execution = _build([make_line("output", output="coverage: 80.0% of statements\n")])
        assert execution.package(PKG).coverage == "coverage: 80.0% of statements"

    def test_coverage_with_packages(self, make_line):
        execution = _build(
            [make_line("output", output="ok  \tp\t0.1s\tcoverage: 7% of statements in ./...\n")]
        )
        assert execution.package(PKG).coverage == "coverage: 7% of statements in ./..."

    def test_cached(self, make_line):
        execution = _build([make_line("output", output="ok  \texample.com/mod/pkg\t(cached)\n")])
        assert execution.package(PKG).cached

    def test_package_result(self, make_line):
        execution = _build([make_line("pass", elapsed=1.5)])
        pkg = execution.package(PKG)
        assert pkg.action == Action.PASS
        assert pkg.elapsed == timedelta(seconds=1.5)
        assert pkg.total == 0

    def test_start_registers_package(self, make_line):
        execution = _build([make_line("start")])
        assert execution.package_names() == [PKG]

    def test_test_main_failure(self, make_line):
        execution = _build([make_line("output", output="panic: boom\n"), make_line("fail")])
        failed = execution.failed()
        assert len(failed) == 1
        assert failed[0].package == PKG
        assert failed[0].test == ""

    def test_output_without_package_is_error(self, make_line):
        execution = _build(
            [
                make_line("output", package="", output="# example.com/mod/pkg\n"),
                make_line("output", package="", output="pkg/a.go:3:1: syntax error\n"),
            ]
        )
        assert execution.errors == ["pkg/a.go:3:1: syntax error"]


# ---------------------------------------------------------------------------
# Test: output capture and release
# ---------------------------------------------------------------------------


class TestOutput:
    """Output is kept for failed tests and released for passing roots."""

    def test_failed_output_kept(self, make_line):
        execution = _build(
            [
                make_line("run", test="TestB"),
                make_line("output", test="TestB", output="boom\n"),
                make_line("fail", test="TestB"),
            ]
        )
        pkg = execution.package(PKG)
        assert pkg.output_lines(pkg.failed[0]) == ["boom\n"]

    def test_output_without_run_is_attributed(self, make_line):
        """A test that never reported ``run`` still owns its output."""
        execution = _build(
            [
                make_line("output", test="TestB", output="boom\n"),
                make_line("fail", test="TestB"),
                make_line("fail"),
            ]
        )
        pkg = execution.package(PKG)
        assert pkg.failed[0].id != 0
        assert pkg.output_lines(pkg.failed[0]) == ["boom\n"]
        assert pkg.output(0) == []

    def test_passing_root_releases_subtests(self, make_line):
        execution = _build(
            [
                make_line("run", test="TestA"),
                make_line("run", test="TestA/sub"),
                make_line("output", test="TestA/sub", output="sub out\n"),
                make_line("pass", test="TestA/sub"),
                make_line("output", test="TestA", output="root out\n"),
                make_line("pass", test="TestA"),
            ]
        )
        pkg = execution.package(PKG)
        for tc in pkg.passed:
            assert pkg.output(tc.id) == []
        assert pkg.subtests("TestA") == []

    def test_failed_root_includes_subtest_output(self, make_line):
        execution = _build(
            [
                make_line("run", test="TestA"),
                make_line("output", test="TestA", output="=== RUN TestA\n"),
                make_line("run", test="TestA/sub"),
                make_line("output", test="TestA/sub", output="sub failed\n"),
                make_line("fail", test="TestA/sub"),
                make_line("fail", test="TestA"),
            ]
        )
        pkg = execution.package(PKG)
        root = next(tc for tc in pkg.failed if tc.test == "TestA")
        assert pkg.output_lines(root) == ["=== RUN TestA\n", "sub failed\n"]

    def test_package_output_under_id_zero(self, make_line):
        execution = _build([make_line("output", output="PASS\n")])
        assert execution.package(PKG).output(0) == ["PASS\n"]


class TestHandlerNotification:
    """The handler sees each event after it has been applied."""

    def test_called_after_apply(self, make_line):
        handler = RecordingHandler()
        _build([make_line("run", test="TestA"), make_line("pass", test="TestA")], handler)
        assert [e.action for e in handler.events] == [Action.RUN, Action.PASS]
        assert handler.totals == [0, 1]

    def test_error_lines(self):
        handler = RecordingHandler()
        builder = ExecutionBuilder(handler=handler)
        builder.add_error_line("go: downloading example.com/dep v1.0.0")
        builder.add_error_line("# example.com/mod/pkg")
        builder.add_error_line("pkg/a.go:1: undefined: x")
        assert builder.execution.errors == ["pkg/a.go:1: undefined: x"]
        assert len(handler.errors) == 3

    def test_module_output_detection(self):
        assert is_go_module_output("go: finding example.com/x v1")
        assert not is_go_module_output("go: build failed")
