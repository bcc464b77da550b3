"""End-to-end integration tests — stream to rendering, metrics, and reruns.

These tests exercise the scanner, ExecutionBuilder, formatters, aggregation
and RerunCoordinator working together on realistic test2json streams.
"""

from __future__ import annotations

import io
from datetime import timedelta

import pytest
from rich.console import Console

from teststream.config import FormatterConfig
from teststream.core.rerun import RerunConfig, RerunCoordinator, rerun_filters
from teststream.core.scanner import build_execution, scan_test_output
from teststream.formatters import new_event_formatter
from teststream.metrics.produce import MetricConfig, metrics_from_execution
from teststream.models.events import Action

PKG = "example.com/mod/pkg"


class TestCoverageScenario:
    """One package with a pass, a failure and coverage output."""

    def test_execution(self, make_stream, scenario_lines):
        execution = scan_test_output(make_stream(*scenario_lines))
        pkg = execution.package(PKG)

        assert execution.total() == 2
        assert [tc.test for tc in pkg.passed] == ["TestA"]
        assert pkg.passed[0].elapsed == timedelta(milliseconds=5)
        assert [tc.test for tc in pkg.failed] == ["TestB"]
        assert pkg.failed[0].elapsed == timedelta(milliseconds=3)
        assert pkg.coverage == "coverage: 80.0% of statements"
        assert pkg.result() == Action.FAIL
        assert not pkg.test_main_failed()

    def test_metrics(self, make_stream, scenario_lines):
        execution = scan_test_output(make_stream(*scenario_lines))
        config = MetricConfig(slow_test_threshold=timedelta(milliseconds=4))
        metrics = metrics_from_execution(config, execution)
        assert [tc.test for tc in metrics.slowest] == ["TestA"]
        assert [tc.test for tc in metrics.failed] == ["TestB"]


class TestDeterminism:
    """Replaying the same stream yields the same state and the same rendering."""

    @pytest.mark.parametrize("name", ["standard-verbose", "testname", "pkgname", "dots"])
    def test_replay(self, name, make_stream, scenario_lines):
        renders = []
        states = []
        for _ in range(2):
            console = Console(file=io.StringIO(), width=80, color_system=None)
            formatter = new_event_formatter(name, console, FormatterConfig())
            execution = scan_test_output(make_stream(*scenario_lines), handler=formatter)
            formatter.close()
            renders.append(console.file.getvalue())
            states.append(
                [
                    (tc.package, tc.test, tc.elapsed, tc.id)
                    for pkg in execution.packages.values()
                    for tc in pkg.test_cases()
                ]
            )
        assert renders[0] == renders[1]
        assert states[0] == states[1]


class TestMultiStreamMerge:
    """CI artifacts from several jobs merge into one Execution."""

    def test_merge(self, make_line, make_stream):
        job1 = make_stream(
            make_line("run", package="a", test="TestA"),
            make_line("pass", package="a", test="TestA", elapsed=1.0),
            make_line("pass", package="a"),
        )
        job2 = make_stream(
            make_line("run", package="a", test="TestA"),
            make_line("pass", package="a", test="TestA", elapsed=3.0),
            make_line("run", package="b", test="TestB"),
            make_line("fail", package="b", test="TestB"),
            make_line("fail", package="b"),
        )
        job3 = make_stream(make_line("pass", package="a", test="TestA", elapsed=2.0))
        execution = build_execution([job1, job2, job3])

        assert execution.package_names() == ["a", "b"]
        assert execution.total() == 4
        metrics = metrics_from_execution(
            MetricConfig(slow_test_threshold=timedelta(milliseconds=1)), execution
        )
        # median of 1s, 3s, 2s
        assert [(tc.test, tc.elapsed) for tc in metrics.slowest] == [
            ("TestA", timedelta(seconds=2)),
        ]


class TestRerunScenario:
    """A flaky test is rerun once and passes."""

    def test_two_iterations(self, make_line, make_stream):
        initial = make_stream(
            make_line("run", test="TestFlaky"),
            make_line("output", test="TestFlaky", output="flake\n"),
            make_line("fail", test="TestFlaky"),
            make_line("run", test="TestSolid"),
            make_line("pass", test="TestSolid"),
            make_line("fail"),
        )
        requested = []

        class Runner:
            def run(self, failed):
                requested.append(rerun_filters(failed))
                return make_stream(
                    make_line("run", test="TestFlaky"),
                    make_line("pass", test="TestFlaky"),
                    make_line("pass"),
                )

        result = RerunCoordinator(Runner(), RerunConfig(max_attempts=2)).run(initial)
        assert result.iterations == 2
        assert requested == [{PKG: "^(TestFlaky)$"}]
        assert result.executions[0].total() == 2
        assert result.final.failed() == []
