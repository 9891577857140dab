"""
Command runner base — the contract between engine and shell.

The engine never spawns processes itself: every shell-backed attempt
goes through a ``CommandRunner``. Swapping the runner (real shell,
mock, remote executor) changes nothing else in the engine.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from crossrun.core.models.result import CommandOutcome


class CommandRunner(ABC):
    """Abstract base class for command runners.

    Runners execute one command string and return an outcome.
    They NEVER raise exceptions — failures are captured in the outcome:
    a non-zero exit, a launch failure, or a timeout all yield
    ``success=False`` with a non-empty ``error``.

    Runners must be safe to call from several threads at once: a
    parallel step runs its children concurrently through the same
    runner.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The runner identifier (e.g., 'shell', 'mock')."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the runner can execute commands on this host.

        Should be fast and never raise.
        """

    @abstractmethod
    def run(self, command: str, timeout_ms: int | None = None) -> CommandOutcome:
        """Execute ``command`` and return its outcome.

        Args:
            command: Fully resolved command string.
            timeout_ms: Optional bound on the execution, in milliseconds.
        """

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
