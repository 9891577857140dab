"""
Operation models — pre-conditions, steps, and tests.

Every operation exposes the same capability interface to the engine:
``id``, ``name``, ``kind``, ``mode``, ``get_command()`` and
``validate_parameters()``. The retry executor is written once against
that interface; the kind only selects the result type and a few labels.

Operations are immutable. All execution state lives in the results the
executor returns.

A step runs in exactly one execution mode, resolved at construction:

    shell_command        run ``get_command()`` through the command runner
    in_process_routine   call ``routine()`` instead of spawning a shell
    parallel_composite   run ``children`` concurrently as one retryable unit
"""

from __future__ import annotations

from collections.abc import Callable
from enum import StrEnum
from typing import Any, ClassVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from crossrun.core.engine.parameters import ParamValue, is_valid_name, substitute, validate
from crossrun.core.models.platform import Platform

Routine = Callable[[], Any]


class OperationKind(StrEnum):
    """The three phases an operation can belong to."""

    PRE_CONDITION = "pre_condition"
    STEP = "step"
    TEST = "test"

    @property
    def label(self) -> str:
        """Capitalised label used in run-level messages."""
        return _KIND_LABELS[self]


_KIND_LABELS = {
    OperationKind.PRE_CONDITION: "Pre-condition",
    OperationKind.STEP: "Step",
    OperationKind.TEST: "Test",
}


class ExecutionMode(StrEnum):
    """How an operation's attempt is carried out."""

    SHELL_COMMAND = "shell_command"
    IN_PROCESS_ROUTINE = "in_process_routine"
    PARALLEL_COMPOSITE = "parallel_composite"


class Operation(BaseModel):
    """Fields and behaviour shared by every operation kind.

    ``parameters`` and ``defaults`` turn ``command`` into a template.
    When neither is given the command is used verbatim and never
    validated, so plain commands can reference shell variables freely.
    """

    model_config = ConfigDict(frozen=True)

    kind: ClassVar[OperationKind]

    id: str = Field(min_length=1)
    name: str
    description: str | None = None
    platform: Platform | None = None
    timeout_ms: int | None = Field(default=None, gt=0)
    max_retries: int = Field(
        default=0,
        ge=0,
        validation_alias=AliasChoices("max_retries", "retries"),
    )
    command: str = ""
    parameters: dict[str, ParamValue] | None = None
    defaults: dict[str, ParamValue] | None = None
    mode: ExecutionMode = ExecutionMode.SHELL_COMMAND

    @field_validator("parameters", "defaults")
    @classmethod
    def _check_parameter_names(
        cls, value: dict[str, ParamValue] | None
    ) -> dict[str, ParamValue] | None:
        bad = [name for name in value or {} if not is_valid_name(name)]
        if bad:
            raise ValueError(f"Invalid parameter names: {', '.join(map(repr, bad))}")
        return value

    @model_validator(mode="before")
    @classmethod
    def _resolve_mode(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = {**data, "mode": cls._derive_mode(data)}
        return data

    @classmethod
    def _derive_mode(cls, data: dict[str, Any]) -> ExecutionMode:
        return ExecutionMode.SHELL_COMMAND

    @model_validator(mode="after")
    def _check_command(self) -> Operation:
        if self.mode == ExecutionMode.SHELL_COMMAND and not self.command.strip():
            raise ValueError(f"{self.kind.label} '{self.id}' requires a command")
        return self

    @property
    def is_templated(self) -> bool:
        return self.parameters is not None or self.defaults is not None

    def get_command(self) -> str:
        """The command with parameters substituted."""
        if self.is_templated:
            return substitute(self.command, self.parameters, self.defaults)
        return self.command

    def validate_parameters(self) -> list[str]:
        """Names the command references but no parameter or default provides."""
        if self.is_templated:
            return validate(self.command, self.parameters, self.defaults)
        return []

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "kind": self.kind.value,
            "mode": self.mode.value,
            "command": self.get_command(),
            "description": self.description,
            "platform": self.platform.value if self.platform else None,
            "timeout_ms": self.timeout_ms,
            "max_retries": self.max_retries,
        }


class PreCondition(Operation):
    """A check that must pass before any step runs."""

    kind: ClassVar[OperationKind] = OperationKind.PRE_CONDITION


class Test(Operation):
    """A verification run after all steps succeeded."""

    __test__ = False  # not a pytest test class

    kind: ClassVar[OperationKind] = OperationKind.TEST


class Step(Operation):
    """A unit of pipeline work.

    Besides a shell command, a step can run an in-process ``routine``
    (a zero-argument callable returning a ``CommandOutcome``, a mapping
    with ``success``/``output``/``error``, or a bool), or fan out to
    ``children`` that run concurrently.
    """

    kind: ClassVar[OperationKind] = OperationKind.STEP

    continue_on_failure: bool = False
    routine: Routine | None = Field(default=None, repr=False, exclude=True)
    children: tuple[Step, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def _parallel_command(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("children"):
            data = {**data, "command": f"parallel execution of {len(data['children'])} steps"}
        return data

    @classmethod
    def _derive_mode(cls, data: dict[str, Any]) -> ExecutionMode:
        if data.get("children"):
            return ExecutionMode.PARALLEL_COMPOSITE
        if data.get("routine") is not None:
            return ExecutionMode.IN_PROCESS_ROUTINE
        return ExecutionMode.SHELL_COMMAND

    @model_validator(mode="after")
    def _check_single_mode(self) -> Step:
        if self.routine is not None and self.children:
            raise ValueError(
                f"Step '{self.id}' cannot have both a routine and parallel children"
            )
        return self

    @property
    def is_parallel(self) -> bool:
        return self.mode == ExecutionMode.PARALLEL_COMPOSITE

    def validate_parameters(self) -> list[str]:
        if not self.is_parallel:
            return super().validate_parameters()
        missing: dict[str, None] = {}
        for child in self.children:
            for name in child.validate_parameters():
                missing.setdefault(name, None)
        return list(missing)

    def iter_tree(self):
        """This step followed by every nested child, depth first."""
        yield self
        for child in self.children:
            yield from child.iter_tree()

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["continue_on_failure"] = self.continue_on_failure
        if self.is_parallel:
            data["children"] = [child.to_dict() for child in self.children]
        return data
