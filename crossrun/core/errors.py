"""
Error taxonomy — how operations and runs fail.

The engine reports failures through results, never by raising: these
classes name the failure kinds and build the messages that end up in
``OperationResult.error`` and ``RunResult.error``.

    ValidationFailure   missing parameters, detected before any attempt
    ExecutionFailure    an attempt returned non-success (retried)
    TimeoutFailure      an attempt exceeded its bound (retried the same way)
    RunAbort            a phase decided to stop the run
"""

from __future__ import annotations


class CrossrunError(Exception):
    """Base exception for all crossrun errors."""


class ValidationFailure(CrossrunError):
    """An operation references parameters that are not provided."""

    def __init__(self, operation_id: str, missing: list[str]) -> None:
        self.operation_id = operation_id
        self.missing = list(missing)
        super().__init__(f"Missing required parameters: {', '.join(self.missing)}")


class ExecutionFailure(CrossrunError):
    """A single attempt failed."""


class TimeoutFailure(ExecutionFailure):
    """A single attempt exceeded its time bound."""

    def __init__(self, timeout_ms: int, what: str = "Command") -> None:
        self.timeout_ms = timeout_ms
        super().__init__(f"{what} timed out after {timeout_ms}ms")


class RunAbort(CrossrunError):
    """A phase stopped the run. The message becomes ``RunResult.error``."""

    @classmethod
    def operation_failed(cls, label: str, name: str, error: str | None) -> RunAbort:
        """Abort because the operation ``name`` failed."""
        return cls(f"{label} '{name}' failed: {error}")

    @classmethod
    def no_steps(cls, platform: str) -> RunAbort:
        """Abort because no declared step applies to ``platform``."""
        return cls(f"No steps found for platform: {platform}")
