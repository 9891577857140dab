"""
Tests for the pipeline executor — phases, filtering, and aggregation.
"""

from datetime import timedelta

from crossrun.core.engine.executor import PipelineExecutor
from crossrun.core.models.builders import simple_step, template_step
from crossrun.core.models.operation import PreCondition, Step, Test
from crossrun.core.models.result import CommandOutcome
from crossrun.core.models.run import Run


def _run(**kwargs) -> Run:
    kwargs.setdefault("id", "run-1")
    kwargs.setdefault("name", "Test run")
    return Run(**kwargs)


# ── Happy path ───────────────────────────────────────────────────────


class TestExecuteRun:
    def test_all_phases_succeed(self, pipeline_executor, mock_runner):
        run = _run(
            pre_conditions=[PreCondition(id="pre", name="Docker present", command="docker --version")],
            steps=[simple_step("s1", "Build", "make"), simple_step("s2", "Ship", "make ship")],
            tests=[Test(id="t1", name="Smoke", command="curl localhost")],
        )
        result = pipeline_executor.execute_run(run, "fedora")
        assert result.success
        assert result.error is None
        assert result.run_id == "run-1"
        assert [r.operation_id for r in result.all_results] == ["pre", "s1", "s2", "t1"]
        assert [c.command for c in mock_runner.call_log] == [
            "docker --version", "make", "make ship", "curl localhost",
        ]

    def test_timestamps_and_duration(self, pipeline_executor):
        result = pipeline_executor.execute_run(_run(steps=[simple_step("s", "S", "x")]), "mac")
        assert result.start_time.utcoffset() == timedelta(0)
        assert result.end_time >= result.start_time
        assert result.total_duration_ms >= 0

    def test_no_steps_declared_is_fine(self, pipeline_executor):
        result = pipeline_executor.execute_run(_run(), "ubuntu")
        assert result.success
        assert result.step_results == []

    def test_platform_argument_overrides_run(self, pipeline_executor, mock_runner):
        run = _run(
            platform="mac",
            steps=[simple_step("a", "A", "brew x", platform="mac"),
                   simple_step("b", "B", "dnf x", platform="fedora")],
        )
        result = pipeline_executor.execute_run(run, "fedora")
        assert [r.operation_id for r in result.step_results] == ["b"]

    def test_run_platform_used_when_no_argument(self, pipeline_executor):
        run = _run(platform="mac", steps=[simple_step("a", "A", "brew x", platform="mac")])
        assert pipeline_executor.execute_run(run).success

    def test_no_platform_at_all_fails(self, pipeline_executor, mock_runner):
        result = pipeline_executor.execute_run(_run(steps=[simple_step("a", "A", "x")]))
        assert not result.success
        assert result.error == "No target platform given for run"
        assert mock_runner.call_count == 0

    def test_unknown_platform_fails(self, pipeline_executor):
        result = pipeline_executor.execute_run(_run(steps=[simple_step("a", "A", "x")]), "beos")
        assert not result.success
        assert result.error == "Unknown platform: beos"


# ── Platform filtering ───────────────────────────────────────────────


class TestPlatformFiltering:
    def test_fedora_filter_yields_one_result(self, pipeline_executor):
        run = _run(steps=[
            simple_step("f", "Fedora only", "dnf x", platform="fedora"),
            simple_step("u", "Ubuntu only", "apt x", platform="ubuntu"),
            simple_step("m", "Mac only", "brew x", platform="mac"),
        ])
        result = pipeline_executor.execute_run(run, "fedora")
        assert result.success
        assert len(result.step_results) == 1
        assert result.step_results[0].operation_id == "f"

    def test_family_tags_included(self, pipeline_executor):
        run = _run(steps=[
            simple_step("l", "Linux", "x", platform="linux"),
            simple_step("u", "Unix", "y", platform="unix"),
            simple_step("w", "Windows", "z", platform="windows"),
        ])
        result = pipeline_executor.execute_run(run, "rhel")
        assert [r.operation_id for r in result.step_results] == ["l", "u"]

    def test_no_matching_steps_fails(self, pipeline_executor, mock_runner):
        run = _run(
            steps=[simple_step("m", "Mac only", "brew x", platform="mac")],
            tests=[Test(id="t", name="T", command="true")],
        )
        result = pipeline_executor.execute_run(run, "windows")
        assert not result.success
        assert result.error == "No steps found for platform: windows"
        assert result.test_results == []
        assert mock_runner.call_count == 0

    def test_pre_conditions_and_tests_filtered(self, pipeline_executor, mock_runner):
        run = _run(
            pre_conditions=[PreCondition(id="p", name="P", command="mac-check", platform="mac")],
            steps=[simple_step("s", "S", "x")],
            tests=[Test(id="t", name="T", command="win-check", platform="windows")],
        )
        result = pipeline_executor.execute_run(run, "debian")
        assert result.success
        assert result.pre_condition_results == []
        assert result.test_results == []
        assert mock_runner.calls_for("mac-check") == 0


# ── Failure handling ─────────────────────────────────────────────────


class TestFailures:
    def test_pre_condition_failure_aborts(self, pipeline_executor, mock_runner):
        mock_runner.set_failure("docker --version", "docker: not found")
        run = _run(
            pre_conditions=[
                PreCondition(id="p1", name="Docker present", command="docker --version"),
                PreCondition(id="p2", name="Never checked", command="other"),
            ],
            steps=[simple_step("s", "S", "make")],
        )
        result = pipeline_executor.execute_run(run, "fedora")
        assert not result.success
        assert result.error == "Pre-condition 'Docker present' failed: docker: not found"
        assert [r.operation_id for r in result.pre_condition_results] == ["p1"]
        assert result.step_results == []
        assert mock_runner.calls_for("make") == 0

    def test_step_failure_aborts(self, pipeline_executor, mock_runner):
        mock_runner.set_failure("make", "compile error")
        run = _run(
            steps=[simple_step("s1", "Build", "make"), simple_step("s2", "Ship", "ship")],
            tests=[Test(id="t", name="T", command="check")],
        )
        result = pipeline_executor.execute_run(run, "fedora")
        assert not result.success
        assert result.error == "Step 'Build' failed: compile error"
        assert [r.operation_id for r in result.step_results] == ["s1"]
        assert result.test_results == []

    def test_continue_on_failure_runs_later_steps(self, pipeline_executor, mock_runner):
        mock_runner.set_failure("optional", "meh")
        run = _run(
            steps=[
                simple_step("s1", "Optional", "optional", continue_on_failure=True),
                simple_step("s2", "Required", "required"),
            ],
            tests=[Test(id="t", name="T", command="check")],
        )
        result = pipeline_executor.execute_run(run, "fedora")
        assert not result.success
        assert result.error == "Step 'Optional' failed: meh"
        assert [r.operation_id for r in result.step_results] == ["s1", "s2"]
        assert result.step_results[1].success
        # failure is sticky: tests are skipped
        assert result.test_results == []
        assert mock_runner.calls_for("check") == 0

    def test_first_continued_failure_message_kept(self, pipeline_executor, mock_runner):
        mock_runner.set_failure("a", "first")
        mock_runner.set_failure("b", "second")
        run = _run(steps=[
            simple_step("s1", "A", "a", continue_on_failure=True),
            simple_step("s2", "B", "b", continue_on_failure=True),
        ])
        result = pipeline_executor.execute_run(run, "fedora")
        assert result.error == "Step 'A' failed: first"
        assert len(result.step_results) == 2

    def test_hard_failure_after_continued_failure(self, pipeline_executor, mock_runner):
        mock_runner.set_failure("a", "first")
        mock_runner.set_failure("b", "second")
        run = _run(steps=[
            simple_step("s1", "A", "a", continue_on_failure=True),
            simple_step("s2", "B", "b"),
            simple_step("s3", "C", "c"),
        ])
        result = pipeline_executor.execute_run(run, "fedora")
        assert result.error == "Step 'A' failed: first"
        assert [r.operation_id for r in result.step_results] == ["s1", "s2"]

    def test_test_failure_aborts(self, pipeline_executor, mock_runner):
        mock_runner.set_failure("t1", "404")
        run = _run(
            steps=[simple_step("s", "S", "x")],
            tests=[Test(id="a", name="Health", command="t1"), Test(id="b", name="B", command="t2")],
        )
        result = pipeline_executor.execute_run(run, "fedora")
        assert result.error == "Test 'Health' failed: 404"
        assert [r.operation_id for r in result.test_results] == ["a"]

    def test_missing_parameter_step(self, pipeline_executor, mock_runner, sleeps):
        run = _run(steps=[template_step("s", "Deploy", "deploy $env", max_retries=3)])
        result = pipeline_executor.execute_run(run, "fedora")
        step_result = result.step_results[0]
        assert step_result.retry_count == 0
        assert step_result.duration_ms == 0
        assert mock_runner.call_count == 0
        assert sleeps.calls == []
        assert result.error == "Step 'Deploy' failed: Missing required parameters: env"

    def test_retries_within_run(self, pipeline_executor, mock_runner, sleeps):
        mock_runner.set_sequence("flaky", [CommandOutcome.failure("x"), CommandOutcome.ok()])
        run = _run(steps=[simple_step("s", "S", "flaky", max_retries=2)])
        result = pipeline_executor.execute_run(run, "fedora")
        assert result.success
        assert result.step_results[0].retry_count == 1
        assert sleeps.calls == [2.0]

    def test_engine_error_becomes_failed_result(self, mock_runner, sleeps):
        executor = PipelineExecutor(mock_runner, sleep=sleeps)

        def broken(*args, **kwargs):
            raise RuntimeError("engine bug")

        executor.retry.execute = broken
        result = executor.execute_run(_run(steps=[simple_step("s", "S", "x")]), "fedora")
        assert not result.success
        assert result.error == "engine bug"


# ── Events ───────────────────────────────────────────────────────────


class TestRunEvents:
    def test_event_sequence(self, pipeline_executor, bus):
        run = _run(
            pre_conditions=[PreCondition(id="p", name="P", command="x")],
            steps=[simple_step("s", "S", "y")],
        )
        pipeline_executor.execute_run(run, "fedora")
        assert [e["type"] for e in bus.recent()] == [
            "run:started",
            "phase:started",
            "operation:started",
            "operation:succeeded",
            "phase:started",
            "operation:started",
            "operation:succeeded",
            "phase:started",
            "run:finished",
        ]
        finished = bus.recent(event_type="run:finished")[0]
        assert finished["data"]["success"] is True

    def test_failing_subscriber_does_not_affect_run(self, pipeline_executor, bus):
        def bad_subscriber(event):
            raise ValueError("subscriber bug")

        bus.subscribe(bad_subscriber)
        result = pipeline_executor.execute_run(_run(steps=[simple_step("s", "S", "x")]), "fedora")
        assert result.success

    def test_executor_without_bus(self, mock_runner, sleeps):
        executor = PipelineExecutor(mock_runner, sleep=sleeps)
        assert executor.execute_run(_run(steps=[Step(id="s", name="S", command="x")]), "mac").success
