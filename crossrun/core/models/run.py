"""
Run model — a declarative pipeline.

A run is a flat, ordered list of pre-conditions, steps and tests. It is
not a dependency graph: order of declaration is order of execution.
"""

from __future__ import annotations

from collections.abc import Iterator

from pydantic import BaseModel, Field, model_validator

from crossrun.core.models.operation import Operation, PreCondition, Step, Test
from crossrun.core.models.platform import Platform


class Run(BaseModel):
    """A pipeline to execute against one target platform.

    ``platform`` may be left unset and supplied when the run is
    executed (e.g. from detection on the host).
    """

    id: str = Field(min_length=1)
    name: str
    description: str | None = None
    platform: Platform | None = None
    pre_conditions: list[PreCondition] = Field(default_factory=list)
    steps: list[Step] = Field(default_factory=list)
    tests: list[Test] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_ids(self) -> Run:
        seen: set[str] = set()
        for op in self.iter_operations():
            if op.id in seen:
                raise ValueError(f"Duplicate operation id '{op.id}' in run '{self.id}'")
            seen.add(op.id)
        return self

    def iter_operations(self) -> Iterator[Operation]:
        """All operations, including nested parallel children."""
        yield from self.pre_conditions
        for step in self.steps:
            yield from step.iter_tree()
        yield from self.tests

    @property
    def total_operations(self) -> int:
        return len(self.pre_conditions) + len(self.steps) + len(self.tests)
