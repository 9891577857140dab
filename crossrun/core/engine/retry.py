"""
Retry executor — the per-operation state machine.

Written once for every operation kind; the kind only selects the result
class and the labels in events.

    Validating ──missing──▶ Failed
        │
        ▼
    Attempting ──ok──▶ Succeeded
        │  ▲
     fail  │ sleep backoff.delay(n)
        ▼  │
    Retrying   (while retry_count < max_retries, else Failed)

Missing parameters fail immediately: no attempt, no backoff,
``retry_count=0`` and ``duration_ms=0``.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import cast

from crossrun.adapters.base import CommandRunner
from crossrun.core.engine.parallel import run_parallel
from crossrun.core.errors import TimeoutFailure, ValidationFailure
from crossrun.core.models.operation import ExecutionMode, Operation, Step
from crossrun.core.models.result import (
    RESULT_TYPES,
    AttemptOutcome,
    CommandOutcome,
    OperationResult,
    StepResult,
)
from crossrun.core.reliability.backoff import DEFAULT_BACKOFF, BackoffPolicy
from crossrun.core.services.event_bus import EventBus

logger = logging.getLogger(__name__)

GENERIC_ATTEMPT_ERROR = "Attempt failed without an error message"


class RetryExecutor:
    """Runs one operation to a final result, retrying failed attempts.

    Args:
        runner: Executes shell commands.
        bus: Receives progress events. Optional.
        backoff: Delay policy between attempts.
        sleep: Blocking sleep, injectable for tests.
        clock: Monotonic clock in seconds, injectable for tests.
    """

    def __init__(
        self,
        runner: CommandRunner,
        bus: EventBus | None = None,
        backoff: BackoffPolicy = DEFAULT_BACKOFF,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.runner = runner
        self.bus = bus
        self.backoff = backoff
        self._sleep = sleep
        self._clock = clock

    def execute(self, operation: Operation) -> OperationResult:
        """Run ``operation`` through validation, attempts and retries."""
        result_cls = RESULT_TYPES[operation.kind]

        # ── Validating ──────────────────────────────────────────
        missing = operation.validate_parameters()
        if missing:
            error = str(ValidationFailure(operation.id, missing))
            logger.warning("%s '%s': %s", operation.kind.label, operation.id, error)
            self._publish(
                "operation:failed", operation,
                error=error, duration_ms=0, retry_count=0,
            )
            return result_cls(operation_id=operation.id, success=False, error=error)

        start = self._clock()
        retry_count = 0
        self._publish("operation:started", operation, command=operation.get_command())

        # ── Attempting / Retrying ───────────────────────────────
        while True:
            outcome = self.attempt(operation)
            if outcome.success:
                break
            if retry_count >= operation.max_retries:
                break

            retry_count += 1
            delay = self.backoff.delay(retry_count)
            logger.info(
                "%s '%s' failed (%s), retry %d/%d in %.1fs",
                operation.kind.label, operation.id, outcome.error,
                retry_count, operation.max_retries, delay,
            )
            self._publish(
                "operation:retrying", operation,
                error=outcome.error, retry=retry_count,
                max_retries=operation.max_retries, delay_s=delay,
            )
            self._sleep(delay)

        duration_ms = self._elapsed_ms(start)
        fields = {
            "operation_id": operation.id,
            "success": outcome.success,
            "output": outcome.output,
            "duration_ms": duration_ms,
            "retry_count": retry_count,
        }
        if not outcome.success:
            fields["error"] = outcome.error or GENERIC_ATTEMPT_ERROR
        if result_cls is StepResult and isinstance(outcome, AttemptOutcome):
            fields["child_results"] = outcome.child_results
        result = result_cls(**fields)

        if result.success:
            logger.debug("%s '%s' succeeded in %dms", operation.kind.label, operation.id, duration_ms)
            self._publish(
                "operation:succeeded", operation,
                duration_ms=duration_ms, retry_count=retry_count,
            )
        else:
            logger.warning(
                "%s '%s' failed after %d retries: %s",
                operation.kind.label, operation.id, retry_count, result.error,
            )
            self._publish(
                "operation:failed", operation,
                error=result.error, duration_ms=duration_ms, retry_count=retry_count,
            )
        return result

    def attempt(self, operation: Operation) -> CommandOutcome:
        """One attempt in the operation's execution mode. Never raises."""
        try:
            if operation.mode == ExecutionMode.PARALLEL_COMPOSITE:
                return run_parallel(cast(Step, operation), self.execute)
            if operation.mode == ExecutionMode.IN_PROCESS_ROUTINE:
                return self._call_routine(cast(Step, operation))
            return self.runner.run(operation.get_command(), operation.timeout_ms)
        except Exception as e:
            logger.error(
                "%s '%s' attempt raised: %s", operation.kind.label, operation.id, e,
                exc_info=True,
            )
            return CommandOutcome.failure(str(e) or type(e).__name__)

    # ── Internal helpers ────────────────────────────────────────

    def _call_routine(self, step: Step) -> CommandOutcome:
        if step.timeout_ms is None:
            return CommandOutcome.coerce(step.routine())

        pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"crossrun-{step.id}")
        future = pool.submit(step.routine)
        try:
            value = future.result(timeout=step.timeout_ms / 1000)
        except FutureTimeout:
            return CommandOutcome.failure(str(TimeoutFailure(step.timeout_ms, "Routine")))
        finally:
            pool.shutdown(wait=False)
        return CommandOutcome.coerce(value)

    def _elapsed_ms(self, start: float) -> int:
        return max(0, int((self._clock() - start) * 1000))

    def _publish(self, event_type: str, operation: Operation, **fields) -> None:
        if self.bus is None:
            return
        self.bus.publish(
            event_type,
            key=operation.id,
            data={"kind": operation.kind.value, "name": operation.name},
            **fields,
        )
