"""
Mock runner — universal test double for command execution.

Returns success for every command unless told otherwise. Responses can
be fixed per command, or scripted as a sequence (fail, fail, succeed)
to exercise retries. Optional per-command delays make concurrency
observable in tests.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass

from crossrun.adapters.base import CommandRunner
from crossrun.core.models.result import CommandOutcome


@dataclass(frozen=True)
class MockCall:
    """One recorded ``run`` invocation."""

    command: str
    timeout_ms: int | None
    thread: str


class MockRunner(CommandRunner):
    """Scriptable command runner for tests.

    Thread-safe: parallel steps call it from several worker threads.
    """

    def __init__(
        self,
        runner_name: str = "mock",
        available: bool = True,
        default_output: str = "[mock] executed",
    ):
        self._name = runner_name
        self._available = available
        self._default_output = default_output
        self._responses: dict[str, CommandOutcome] = {}
        self._sequences: dict[str, deque[CommandOutcome]] = {}
        self._delays: dict[str, float] = {}
        self._call_log: list[MockCall] = []
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_log(self) -> list[MockCall]:
        """All calls this mock has received, in arrival order."""
        with self._lock:
            return list(self._call_log)

    @property
    def call_count(self) -> int:
        with self._lock:
            return len(self._call_log)

    def calls_for(self, command: str) -> int:
        """Number of times ``command`` was run."""
        with self._lock:
            return sum(1 for c in self._call_log if c.command == command)

    def is_available(self) -> bool:
        return self._available

    def set_response(self, command: str, outcome: CommandOutcome) -> None:
        """Always answer ``command`` with ``outcome``."""
        self._responses[command] = outcome

    def set_failure(self, command: str, error: str = "Mock failure") -> None:
        """Configure ``command`` to always fail."""
        self._responses[command] = CommandOutcome.failure(error)

    def set_sequence(self, command: str, outcomes: list[CommandOutcome]) -> None:
        """Answer successive runs of ``command`` with ``outcomes`` in order.

        Once the sequence is used up, the last outcome repeats.
        """
        self._sequences[command] = deque(outcomes)

    def set_delay(self, command: str, seconds: float) -> None:
        """Block for ``seconds`` whenever ``command`` runs."""
        self._delays[command] = seconds

    def run(self, command: str, timeout_ms: int | None = None) -> CommandOutcome:
        with self._lock:
            self._call_log.append(
                MockCall(command, timeout_ms, threading.current_thread().name)
            )
            outcome = self._next_outcome(command)

        delay = self._delays.get(command)
        if delay:
            time.sleep(delay)
        return outcome

    def _next_outcome(self, command: str) -> CommandOutcome:
        sequence = self._sequences.get(command)
        if sequence:
            return sequence.popleft() if len(sequence) > 1 else sequence[0]
        if command in self._responses:
            return self._responses[command]
        return CommandOutcome.ok(self._default_output)

    def reset(self) -> None:
        """Clear call log and scripted responses."""
        with self._lock:
            self._call_log.clear()
            self._responses.clear()
            self._sequences.clear()
            self._delays.clear()
