"""
Outcome and result models — the execution contract.

``CommandOutcome`` is what one attempt produces: command runners,
in-process routines and parallel fan-outs all return one. The engine
folds attempts into one ``OperationResult`` per operation and the
results of a whole pipeline into a ``RunResult``.

Runners and routines never raise into the engine: failures are
captured in outcomes, and outcomes are captured in results.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any, ClassVar

from pydantic import BaseModel, Field

from crossrun.core.models.operation import OperationKind


class CommandOutcome(BaseModel):
    """Result of one attempt: a shell command, a routine call, or a fan-out."""

    success: bool
    output: str = ""
    error: str | None = None

    @classmethod
    def ok(cls, output: str = "", **kwargs: Any) -> CommandOutcome:
        """Create a success outcome."""
        return cls(success=True, output=output, **kwargs)

    @classmethod
    def failure(cls, error: str, output: str = "", **kwargs: Any) -> CommandOutcome:
        """Create a failure outcome."""
        return cls(success=False, output=output, error=error, **kwargs)

    @classmethod
    def coerce(cls, value: Any) -> CommandOutcome:
        """Normalise whatever an in-process routine returned.

        Accepts an outcome, a mapping with ``success``/``output``/``error``
        keys, or a bare bool.
        """
        if isinstance(value, CommandOutcome):
            return value
        if isinstance(value, bool):
            return cls(success=value)
        if isinstance(value, Mapping):
            return cls(
                success=bool(value.get("success")),
                output=str(value.get("output") or ""),
                error=value.get("error"),
            )
        raise TypeError(
            f"Routine returned {type(value).__name__}; expected CommandOutcome, mapping or bool"
        )


class AttemptOutcome(CommandOutcome):
    """An attempt outcome that may carry the results of parallel children."""

    child_results: list[StepResult] = Field(default_factory=list)


class OperationResult(BaseModel):
    """Final outcome of one operation across all of its attempts.

    ``retry_count`` is the number of retries actually consumed: 0 when
    the first attempt succeeded or validation failed before any attempt.
    """

    kind: ClassVar[OperationKind]

    operation_id: str
    success: bool
    output: str = ""
    error: str | None = None
    duration_ms: int = Field(default=0, ge=0)
    retry_count: int = Field(default=0, ge=0)

    @property
    def failed(self) -> bool:
        return not self.success

    def to_dict(self) -> dict[str, Any]:
        data = self.model_dump(mode="json")
        data["kind"] = self.kind.value
        return data


class PreConditionResult(OperationResult):
    kind: ClassVar[OperationKind] = OperationKind.PRE_CONDITION


class StepResult(OperationResult):
    """Result of a step. Parallel steps also report their children."""

    kind: ClassVar[OperationKind] = OperationKind.STEP

    child_results: list[StepResult] = Field(default_factory=list)


class TestResult(OperationResult):
    __test__ = False  # not a pytest test class

    kind: ClassVar[OperationKind] = OperationKind.TEST


RESULT_TYPES: dict[OperationKind, type[OperationResult]] = {
    OperationKind.PRE_CONDITION: PreConditionResult,
    OperationKind.STEP: StepResult,
    OperationKind.TEST: TestResult,
}

AttemptOutcome.model_rebuild()


class RunResult(BaseModel):
    """Aggregate result of executing a pipeline run.

    Built once when ``execute_run`` finishes and not modified afterwards.
    Per-operation results stay fully populated wherever the run stopped.
    """

    run_id: str
    success: bool
    pre_condition_results: list[PreConditionResult] = Field(default_factory=list)
    step_results: list[StepResult] = Field(default_factory=list)
    test_results: list[TestResult] = Field(default_factory=list)
    total_duration_ms: int = Field(default=0, ge=0)
    start_time: datetime
    end_time: datetime
    error: str | None = None

    @property
    def all_results(self) -> list[OperationResult]:
        """Every operation result in execution order."""
        return [*self.pre_condition_results, *self.step_results, *self.test_results]

    @property
    def failed_results(self) -> list[OperationResult]:
        return [r for r in self.all_results if r.failed]

    @property
    def status(self) -> str:
        return "ok" if self.success else "failed"

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "status": self.status,
            "success": self.success,
            "error": self.error,
            "total_duration_ms": self.total_duration_ms,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "pre_conditions": [r.to_dict() for r in self.pre_condition_results],
            "steps": [r.to_dict() for r in self.step_results],
            "tests": [r.to_dict() for r in self.test_results],
        }
