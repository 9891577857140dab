"""
Backoff policy — delay between retry attempts.

Exponential without jitter so retry timing is deterministic:
``delay(n) = base ** n`` seconds before the n-th retry, optionally
capped at ``max_delay``.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class BackoffPolicy:
    """Exponential backoff.

    With the default base of 2 the waits are 2s, 4s, 8s, ...
    """

    base: float = 2.0
    max_delay: float | None = None

    def __post_init__(self) -> None:
        if self.base < 0:
            raise ValueError(f"Backoff base must be >= 0, got {self.base}")
        if self.max_delay is not None and self.max_delay < 0:
            raise ValueError(f"max_delay must be >= 0, got {self.max_delay}")

    def delay(self, retry_number: int) -> float:
        """Seconds to wait before retry number ``retry_number`` (1-based)."""
        if retry_number < 1:
            return 0.0
        delay = float(self.base**retry_number)
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        return delay

    def schedule(self, retries: int) -> list[float]:
        """All delays for ``retries`` retries, in order."""
        return [self.delay(n) for n in range(1, retries + 1)]


DEFAULT_BACKOFF = BackoffPolicy()
