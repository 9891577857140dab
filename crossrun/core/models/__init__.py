"""
Domain models — Pydantic types for pipelines and their results.

All models are re-exported here for convenient access:

    from crossrun.core.models import Run, Step, PreCondition, Test, RunResult
"""

from crossrun.core.models.operation import (
    ExecutionMode,
    Operation,
    OperationKind,
    PreCondition,
    Step,
    Test,
)
from crossrun.core.models.platform import Platform, filter_compatible, is_compatible
from crossrun.core.models.result import (
    AttemptOutcome,
    CommandOutcome,
    OperationResult,
    PreConditionResult,
    RunResult,
    StepResult,
    TestResult,
)
from crossrun.core.models.run import Run

__all__ = [
    # operation.py
    "ExecutionMode",
    "Operation",
    "OperationKind",
    "PreCondition",
    "Step",
    "Test",
    # platform.py
    "Platform",
    "filter_compatible",
    "is_compatible",
    # result.py
    "AttemptOutcome",
    "CommandOutcome",
    "OperationResult",
    "PreConditionResult",
    "RunResult",
    "StepResult",
    "TestResult",
    # run.py
    "Run",
]
