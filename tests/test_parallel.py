"""
Tests for parallel steps — fan-out, aggregation, timeouts, and retries.
"""

import time

from crossrun.core.models.builders import parallel_step, simple_step, template_step
from crossrun.core.models.result import CommandOutcome, StepResult


def _children(*ids: str):
    return [simple_step(i, f"Child {i}", f"run-{i}") for i in ids]


class TestParallelStep:
    def test_all_children_succeed(self, retry_executor, mock_runner):
        for i in ("a", "b", "c"):
            mock_runner.set_response(f"run-{i}", CommandOutcome.ok(f"out-{i}"))
        result = retry_executor.execute(parallel_step("p", "P", _children("a", "b", "c")))
        assert isinstance(result, StepResult)
        assert result.success
        assert result.output == "[a] out-a\n[b] out-b\n[c] out-c"
        assert [c.operation_id for c in result.child_results] == ["a", "b", "c"]
        assert mock_runner.call_count == 3

    def test_one_failing_child_names_it(self, retry_executor, mock_runner):
        mock_runner.set_failure("run-b", "disk full")
        result = retry_executor.execute(parallel_step("p", "P", _children("a", "b", "c")))
        assert not result.success
        assert result.error == "1 of 3 parallel steps failed: Child b (b): disk full"
        assert [c.success for c in result.child_results] == [True, False, True]

    def test_waits_for_all_children_after_failure(self, retry_executor, mock_runner):
        mock_runner.set_failure("run-a", "fast failure")
        mock_runner.set_delay("run-b", 0.1)
        result = retry_executor.execute(parallel_step("p", "P", _children("a", "b")))
        assert not result.success
        assert result.child_results[1].success
        assert mock_runner.calls_for("run-b") == 1

    def test_several_failures_listed(self, retry_executor, mock_runner):
        mock_runner.set_failure("run-a", "x")
        mock_runner.set_failure("run-c", "y")
        result = retry_executor.execute(parallel_step("p", "P", _children("a", "b", "c")))
        assert result.error == "2 of 3 parallel steps failed: Child a (a): x; Child c (c): y"

    def test_wall_clock_is_slowest_child(self, retry_executor, mock_runner):
        for i, delay in (("a", 0.2), ("b", 0.3), ("c", 0.25)):
            mock_runner.set_delay(f"run-{i}", delay)
        start = time.monotonic()
        result = retry_executor.execute(parallel_step("p", "P", _children("a", "b", "c")))
        elapsed = time.monotonic() - start
        assert result.success
        assert 0.3 <= elapsed < 0.6

    def test_children_run_on_separate_threads(self, retry_executor, mock_runner):
        for i in ("a", "b"):
            mock_runner.set_delay(f"run-{i}", 0.05)
        retry_executor.execute(parallel_step("p", "P", _children("a", "b")))
        threads = {c.thread for c in mock_runner.call_log}
        assert len(threads) == 2

    def test_children_retry_independently(self, retry_executor, mock_runner, sleeps):
        mock_runner.set_sequence("run-a", [CommandOutcome.failure("once"), CommandOutcome.ok()])
        children = [
            simple_step("a", "A", "run-a", max_retries=1),
            simple_step("b", "B", "run-b"),
        ]
        result = retry_executor.execute(parallel_step("p", "P", children))
        assert result.success
        assert result.retry_count == 0
        assert result.child_results[0].retry_count == 1
        assert sleeps.calls == [2.0]

    def test_parent_retry_reruns_all_children(self, retry_executor, mock_runner, sleeps):
        mock_runner.set_sequence("run-b", [CommandOutcome.failure("flaky"), CommandOutcome.ok()])
        result = retry_executor.execute(
            parallel_step("p", "P", _children("a", "b"), max_retries=1)
        )
        assert result.success
        assert result.retry_count == 1
        assert mock_runner.calls_for("run-a") == 2
        assert mock_runner.calls_for("run-b") == 2
        assert sleeps.calls == [2.0]

    def test_timeout_bounds_fan_out(self, retry_executor, mock_runner):
        mock_runner.set_delay("run-slow", 0.5)
        children = [simple_step("fast", "Fast", "run-fast"), simple_step("slow", "Slow", "run-slow")]
        start = time.monotonic()
        result = retry_executor.execute(parallel_step("p", "P", children, timeout_ms=100))
        elapsed = time.monotonic() - start
        assert not result.success
        assert result.error == "Parallel step timed out after 100ms (unfinished: slow)"
        assert [c.operation_id for c in result.child_results] == ["fast"]
        assert elapsed < 0.4

    def test_children_not_platform_filtered(self, pipeline_executor, mock_runner):
        from crossrun.core.models.run import Run

        children = [
            simple_step("a", "A", "run-a", platform="windows"),
            simple_step("b", "B", "run-b", platform="mac"),
        ]
        run = Run(id="r", name="R", steps=[parallel_step("p", "P", children)])
        result = pipeline_executor.execute_run(run, "fedora")
        assert result.success
        assert mock_runner.calls_for("run-a") == 1
        assert mock_runner.calls_for("run-b") == 1

    def test_missing_child_parameter_fails_parent_before_fan_out(self, retry_executor, mock_runner):
        children = [template_step("a", "A", "echo $who"), simple_step("b", "B", "run-b")]
        result = retry_executor.execute(parallel_step("p", "P", children))
        assert result.error == "Missing required parameters: who"
        assert mock_runner.call_count == 0

    def test_nested_parallel(self, retry_executor, mock_runner):
        inner = parallel_step("inner", "Inner", _children("x", "y"))
        outer = parallel_step("outer", "Outer", [simple_step("a", "A", "run-a"), inner])
        result = retry_executor.execute(outer)
        assert result.success
        assert result.child_results[1].child_results[0].operation_id == "x"
        assert mock_runner.call_count == 3

    def test_child_events_published(self, retry_executor, bus):
        retry_executor.execute(parallel_step("p", "P", _children("a", "b")))
        started = [e["key"] for e in bus.recent(event_type="operation:started")]
        assert started[0] == "p"
        assert sorted(started[1:]) == ["a", "b"]
        seqs = [e["seq"] for e in bus.recent()]
        assert seqs == sorted(seqs)
        assert len(set(seqs)) == len(seqs)
