"""
Engine executor — the pipeline orchestration loop.

Takes a run, filters its operations to the target platform, and drives
them through the retry executor phase by phase:

    pre-conditions → steps → tests → RunResult

Top-level operations run strictly one after another. The only
concurrency is inside a parallel step's attempt.

The executor never renders anything. Progress goes to the event bus;
the outcome is the returned ``RunResult``.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import UTC, datetime

from crossrun.adapters.base import CommandRunner
from crossrun.core.engine.retry import RetryExecutor
from crossrun.core.errors import RunAbort
from crossrun.core.models.operation import OperationKind
from crossrun.core.models.platform import Platform, filter_compatible
from crossrun.core.models.result import (
    PreConditionResult,
    RunResult,
    StepResult,
    TestResult,
)
from crossrun.core.models.run import Run
from crossrun.core.reliability.backoff import DEFAULT_BACKOFF, BackoffPolicy
from crossrun.core.services.event_bus import EventBus

logger = logging.getLogger(__name__)


class _RunState:
    """Mutable bookkeeping for one ``execute_run`` call."""

    def __init__(self) -> None:
        self.success = True
        self.error: str | None = None
        self.pre_condition_results: list[PreConditionResult] = []
        self.step_results: list[StepResult] = []
        self.test_results: list[TestResult] = []

    def fail(self, message: str) -> None:
        """Mark the run failed. The first message wins."""
        self.success = False
        if self.error is None:
            self.error = message


class PipelineExecutor:
    """Executes a ``Run`` against one target platform.

    Args:
        runner: Executes shell commands.
        bus: Receives progress events. Optional.
        backoff: Delay policy between retry attempts.
        sleep: Blocking sleep, injectable for tests.
    """

    def __init__(
        self,
        runner: CommandRunner,
        bus: EventBus | None = None,
        backoff: BackoffPolicy = DEFAULT_BACKOFF,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.bus = bus
        self.retry = RetryExecutor(runner, bus=bus, backoff=backoff, sleep=sleep)

    def execute_run(self, run: Run, platform: Platform | str | None = None) -> RunResult:
        """Execute ``run`` and return its aggregate result.

        Args:
            run: The pipeline to execute.
            platform: Target platform. Overrides ``run.platform``.

        Returns:
            RunResult, also when execution stopped early or the engine
            itself hit an unexpected error.
        """
        start_time = datetime.now(UTC)
        start = time.monotonic()
        state = _RunState()

        try:
            target = Platform(platform) if platform else run.platform
        except ValueError:
            target = None
            state.fail(f"Unknown platform: {platform}")
        self._publish(
            "run:started", run.id,
            data={
                "name": run.name,
                "platform": target.value if target else None,
                "total_operations": run.total_operations,
            },
        )
        logger.info("Run '%s' started (platform=%s)", run.id, target or "-")

        try:
            if target is None:
                state.fail("No target platform given for run")
            else:
                self._execute_phases(run, target, state)
        except Exception as e:
            logger.error("Run '%s' crashed: %s", run.id, e, exc_info=True)
            state.fail(str(e) or type(e).__name__)

        result = RunResult(
            run_id=run.id,
            success=state.success,
            pre_condition_results=state.pre_condition_results,
            step_results=state.step_results,
            test_results=state.test_results,
            total_duration_ms=max(0, int((time.monotonic() - start) * 1000)),
            start_time=start_time,
            end_time=datetime.now(UTC),
            error=state.error,
        )

        logger.info(
            "Run '%s' finished: %s in %dms",
            run.id, result.status, result.total_duration_ms,
        )
        self._publish(
            "run:finished", run.id,
            data={"success": result.success, "status": result.status},
            error=result.error,
            duration_ms=result.total_duration_ms,
        )
        return result

    # ── Phases ──────────────────────────────────────────────────

    def _execute_phases(self, run: Run, target: Platform, state: _RunState) -> None:
        try:
            self._run_pre_conditions(run, target, state)
            self._run_steps(run, target, state)
            if state.success:
                self._run_tests(run, target, state)
            else:
                logger.info("Run '%s': skipping tests after step failure", run.id)
        except RunAbort as abort:
            logger.warning("Run '%s' aborted: %s", run.id, abort)
            state.fail(str(abort))

    def _run_pre_conditions(self, run: Run, target: Platform, state: _RunState) -> None:
        pre_conditions = filter_compatible(run.pre_conditions, target)
        self._phase_started(run, OperationKind.PRE_CONDITION, len(pre_conditions))

        for pre in pre_conditions:
            result = self.retry.execute(pre)
            state.pre_condition_results.append(result)
            if result.failed:
                raise RunAbort.operation_failed(pre.kind.label, pre.name, result.error)

    def _run_steps(self, run: Run, target: Platform, state: _RunState) -> None:
        steps = filter_compatible(run.steps, target)
        if run.steps and not steps:
            raise RunAbort.no_steps(target.value)
        self._phase_started(run, OperationKind.STEP, len(steps))

        for step in steps:
            result = self.retry.execute(step)
            state.step_results.append(result)
            if result.success:
                continue
            abort = RunAbort.operation_failed(step.kind.label, step.name, result.error)
            if not step.continue_on_failure:
                raise abort
            logger.warning("Run '%s': continuing after failed step '%s'", run.id, step.id)
            state.fail(str(abort))

    def _run_tests(self, run: Run, target: Platform, state: _RunState) -> None:
        tests = filter_compatible(run.tests, target)
        self._phase_started(run, OperationKind.TEST, len(tests))

        for test in tests:
            result = self.retry.execute(test)
            state.test_results.append(result)
            if result.failed:
                raise RunAbort.operation_failed(test.kind.label, test.name, result.error)

    # ── Internal helpers ────────────────────────────────────────

    def _phase_started(self, run: Run, kind: OperationKind, count: int) -> None:
        logger.debug("Run '%s': %s phase, %d operations", run.id, kind.value, count)
        self._publish("phase:started", run.id, data={"phase": kind.value, "count": count})

    def _publish(self, event_type: str, key: str, **fields) -> None:
        if self.bus is not None:
            self.bus.publish(event_type, key=key, **fields)
