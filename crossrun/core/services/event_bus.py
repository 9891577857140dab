"""
EventBus — thread-safe, in-process pub/sub with bounded replay.

The engine publishes progress here and never renders anything itself.
Terminal output, metrics and tests are all just subscribers.

Thread safety model
───────────────────
- ``_lock`` protects ``_seq``, ``_buffer`` and ``_subscribers``.
- ``publish()`` assigns the sequence number and appends to the buffer
  under the lock, then calls subscribers outside it, so a slow
  subscriber never blocks another publishing thread's bookkeeping.
- Parallel children publish from worker threads; every event still
  gets a unique, monotonic ``seq``.

Message standard (v1)
─────────────────────
Every event is a dict with these fields::

    {
        "v": 1,                        # schema version (immutable)
        "ts": 1739648400.123,          # timestamp (immutable)
        "seq": 47,                     # monotonic sequence (immutable)
        "type": "operation:retrying",  # <domain>:<action> (stable)
        "key": "install-deps",         # operation or run id (stable)
        "data": { ... },               # event-specific payload (varies)
    }

Event types: ``run:started``, ``run:finished``, ``phase:started``,
``operation:started``, ``operation:retrying``, ``operation:succeeded``,
``operation:failed``.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

_SCHEMA_VERSION = 1

Subscriber = Callable[[dict[str, Any]], None]


class EventBus:
    """Thread-safe, in-process pub/sub with bounded replay buffer.

    Parameters
    ----------
    buffer_size : int
        Maximum number of events kept for ``recent()``.
        Older events are silently discarded.
    """

    def __init__(self, *, buffer_size: int = 500) -> None:
        self._lock = threading.Lock()
        self._seq: int = 0
        self._buffer: deque[dict] = deque(maxlen=buffer_size)
        self._subscribers: list[Subscriber] = []

    # ── Properties ──────────────────────────────────────────────

    @property
    def seq(self) -> int:
        """Current sequence number (monotonically increasing)."""
        with self._lock:
            return self._seq

    # ── Publishing ──────────────────────────────────────────────

    def publish(
        self,
        event_type: str,
        *,
        key: str = "",
        data: dict[str, Any] | None = None,
        **kw: Any,
    ) -> dict:
        """Broadcast an event to every subscriber.

        Parameters
        ----------
        event_type : str
            Event type in ``<domain>:<action>`` format.
        key : str
            Operation or run id.  Empty for bus-level events.
        data : dict | None
            Event-specific payload.
        **kw :
            Additional top-level fields (``error``, ``duration_ms``).

        Returns
        -------
        dict
            The full event dict with ``seq`` assigned.
        """
        with self._lock:
            self._seq += 1
            event: dict[str, Any] = {
                "v": _SCHEMA_VERSION,
                "ts": time.time(),
                "seq": self._seq,
                "type": event_type,
                "key": key,
                "data": data or {},
                **kw,
            }
            self._buffer.append(event)
            subscribers = list(self._subscribers)

        for subscriber in subscribers:
            try:
                subscriber(event)
            except Exception as e:
                logger.warning(
                    "Event subscriber %r failed on %s: %s",
                    subscriber, event_type, e,
                )

        extra = ""
        if "duration_ms" in kw:
            extra = f" ({kw['duration_ms']}ms)"
        elif kw.get("error"):
            extra = f" error={kw['error'][:80]}"
        logger.debug("event %s key=%s%s", event_type, key or "-", extra)

        return event

    # ── Subscribing ─────────────────────────────────────────────

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Register ``subscriber``; returns a function that unsubscribes it."""
        with self._lock:
            self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            with self._lock:
                if subscriber in self._subscribers:
                    self._subscribers.remove(subscriber)

        return unsubscribe

    # ── Replay ──────────────────────────────────────────────────

    def recent(self, since: int = 0, event_type: str | None = None) -> list[dict]:
        """Buffered events with ``seq > since``, optionally of one type."""
        with self._lock:
            events = [e for e in self._buffer if e["seq"] > since]
        if event_type:
            events = [e for e in events if e["type"] == event_type]
        return events

    def clear(self) -> None:
        """Drop buffered events. Subscribers stay registered."""
        with self._lock:
            self._buffer.clear()
