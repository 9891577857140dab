"""
Parallel step composite — one attempt of a fan-out step.

Every child is submitted to a thread pool (one worker per child) and
runs through the normal retry executor with its own retry budget. The
attempt waits for all children; it does not return on the first
failure. Children are never platform-filtered.

The parent's ``timeout_ms`` bounds the whole fan-out. When it elapses
the attempt fails and the pool is abandoned: children still running
are not killed and finish in the background.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor, wait

from crossrun.core.errors import TimeoutFailure
from crossrun.core.models.operation import Step
from crossrun.core.models.result import AttemptOutcome, StepResult

logger = logging.getLogger(__name__)

ChildExecutor = Callable[[Step], StepResult]


def run_parallel(step: Step, execute_child: ChildExecutor) -> AttemptOutcome:
    """Run all of ``step``'s children concurrently and fold their results.

    Args:
        step: A step in parallel mode.
        execute_child: Runs one child to completion (retries included).

    Returns:
        AttemptOutcome carrying the children's results in declaration order.
    """
    children = step.children
    logger.debug("Parallel step '%s': starting %d children", step.id, len(children))

    pool = ThreadPoolExecutor(
        max_workers=len(children),
        thread_name_prefix=f"crossrun-{step.id}",
    )
    futures = [pool.submit(execute_child, child) for child in children]
    timeout_s = step.timeout_ms / 1000 if step.timeout_ms else None

    done, not_done = wait(futures, timeout=timeout_s)

    if not_done:
        pool.shutdown(wait=False, cancel_futures=True)
        finished = [
            _child_result(child, future)
            for child, future in zip(children, futures)
            if future in done
        ]
        unfinished = [child.id for child, future in zip(children, futures) if future in not_done]
        error = f"{TimeoutFailure(step.timeout_ms, 'Parallel step')} (unfinished: {', '.join(unfinished)})"
        logger.warning("Parallel step '%s': %s", step.id, error)
        return AttemptOutcome(
            success=False,
            output=_format_output(finished),
            error=error,
            child_results=finished,
        )

    pool.shutdown(wait=True)
    results = [_child_result(child, future) for child, future in zip(children, futures)]
    return _fold(step, results)


def _child_result(child: Step, future: Future[StepResult]) -> StepResult:
    try:
        return future.result()
    except Exception as e:
        logger.error("Parallel child '%s' raised: %s", child.id, e, exc_info=True)
        return StepResult(operation_id=child.id, success=False, error=str(e) or type(e).__name__)


def _fold(step: Step, results: list[StepResult]) -> AttemptOutcome:
    output = _format_output(results)
    failed = [(child, r) for child, r in zip(step.children, results) if r.failed]

    if not failed:
        logger.debug("Parallel step '%s': all %d children succeeded", step.id, len(results))
        return AttemptOutcome(success=True, output=output, child_results=results)

    details = "; ".join(f"{child.name} ({child.id}): {r.error}" for child, r in failed)
    error = f"{len(failed)} of {len(results)} parallel steps failed: {details}"
    return AttemptOutcome(success=False, output=output, error=error, child_results=results)


def _format_output(results: list[StepResult]) -> str:
    return "\n".join(f"[{r.operation_id}] {r.output}".rstrip() for r in results)
