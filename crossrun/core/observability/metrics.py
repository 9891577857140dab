"""
Metrics — lightweight counters, gauges, and histograms.

No external dependencies. In-process only, with JSON export for
``crossrun run --json``. Fed from engine events by
``attach_run_metrics``; purely observational.
"""

from __future__ import annotations

import builtins
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from crossrun.core.services.event_bus import EventBus


@dataclass
class Counter:
    """Monotonically increasing counter."""

    name: str
    value: int = 0
    labels: dict[str, str] = field(default_factory=dict)

    def inc(self, n: int = 1) -> None:
        self.value += n

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "type": "counter", "value": self.value, "labels": self.labels}


@dataclass
class Gauge:
    """Value that can go up and down."""

    name: str
    value: float = 0.0
    labels: dict[str, str] = field(default_factory=dict)

    def set(self, v: float) -> None:
        self.value = v

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "type": "gauge", "value": self.value, "labels": self.labels}


@dataclass
class Histogram:
    """Keeps every observation; reports count, sum, mean, min, max, p95."""

    name: str
    values: list[float] = field(default_factory=list)
    labels: dict[str, str] = field(default_factory=dict)

    def observe(self, value: float) -> None:
        self.values.append(value)

    @property
    def count(self) -> int:
        return len(self.values)

    @property
    def total(self) -> float:
        return sum(self.values)

    @property
    def mean(self) -> float:
        return self.total / self.count if self.values else 0.0

    @property
    def p95(self) -> float:
        if not self.values:
            return 0.0
        ordered = sorted(self.values)
        return ordered[min(int(len(ordered) * 0.95), len(ordered) - 1)]

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": "histogram",
            "count": self.count,
            "total": self.total,
            "mean": round(self.mean, 2),
            "min": builtins.min(self.values, default=0.0),
            "max": builtins.max(self.values, default=0.0),
            "p95": self.p95,
            "labels": self.labels,
        }


class MetricsRegistry:
    """Get-or-create store for metrics, keyed by name and labels.

    Thread-safe: parallel children report from worker threads.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: dict[str, Counter] = {}
        self._gauges: dict[str, Gauge] = {}
        self._histograms: dict[str, Histogram] = {}

    @staticmethod
    def _key(name: str, labels: dict[str, str]) -> str:
        if not labels:
            return name
        return name + "{" + ",".join(f"{k}={v}" for k, v in sorted(labels.items())) + "}"

    def counter(self, name: str, **labels: str) -> Counter:
        with self._lock:
            return self._counters.setdefault(
                self._key(name, labels), Counter(name=name, labels=labels)
            )

    def gauge(self, name: str, **labels: str) -> Gauge:
        with self._lock:
            return self._gauges.setdefault(
                self._key(name, labels), Gauge(name=name, labels=labels)
            )

    def histogram(self, name: str, **labels: str) -> Histogram:
        with self._lock:
            return self._histograms.setdefault(
                self._key(name, labels), Histogram(name=name, labels=labels)
            )

    def record(self, fn: Callable[[], None]) -> None:
        """Apply an update to one or more metrics atomically."""
        with self._lock:
            fn()

    def to_dict(self) -> dict[str, list[dict]]:
        with self._lock:
            return {
                "counters": [c.to_dict() for c in self._counters.values()],
                "gauges": [g.to_dict() for g in self._gauges.values()],
                "histograms": [h.to_dict() for h in self._histograms.values()],
            }

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._gauges.clear()
            self._histograms.clear()


# ── Engine event hook ───────────────────────────────────────────


def attach_run_metrics(bus: EventBus, registry: MetricsRegistry) -> Callable[[], None]:
    """Count engine events into ``registry``.

    Records:
        operations_total{kind,outcome}     one per finished operation
        retries_total{kind}                one per retry scheduled
        operations_in_flight               currently attempting operations
        operation_duration_ms{kind}        wall-clock per finished operation

    Returns the unsubscribe function.
    """
    in_flight: set[str] = set()
    gauge = registry.gauge("operations_in_flight")

    def on_event(event: dict[str, Any]) -> None:
        event_type = event["type"]
        key = event["key"]
        kind = event["data"].get("kind", "")

        if event_type == "operation:started":

            def started() -> None:
                in_flight.add(key)
                gauge.set(len(in_flight))

            registry.record(started)
        elif event_type == "operation:retrying":
            registry.record(registry.counter("retries_total", kind=kind).inc)
        elif event_type in ("operation:succeeded", "operation:failed"):
            outcome = event_type.split(":", 1)[1]
            counter = registry.counter("operations_total", kind=kind, outcome=outcome)
            histogram = registry.histogram("operation_duration_ms", kind=kind)

            def finished() -> None:
                counter.inc()
                histogram.observe(float(event.get("duration_ms", 0)))
                in_flight.discard(key)
                gauge.set(len(in_flight))

            registry.record(finished)

    return bus.subscribe(on_event)
