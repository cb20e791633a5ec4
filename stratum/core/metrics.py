"""
Stratum Core - Engine metrics.

In-memory metrics for the executor and retry loop. No external backend;
the CLI prints a summary in verbose mode.

Metrics:
- stratum_operations_total: Provider operations by kind/operation/status
- stratum_operation_duration_seconds: Provider operation duration
- stratum_retry_attempts_total: Retries of transient provider failures by operation
- stratum_inflight_operations: Entries being executed, with the peak since reset
"""

from __future__ import annotations

import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from threading import Lock
from typing import Any

from loguru import logger

DURATION_BUCKETS = (0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0, 30.0, 60.0, 300.0)

LabelSet = tuple[tuple[str, str], ...]


def _labels(labels: dict[str, str]) -> LabelSet:
    return tuple(sorted(labels.items()))


def _format(labels: LabelSet) -> str:
    return ",".join(f"{k}={v}" for k, v in labels)


@dataclass
class Counter:
    """Counts keyed by label set; ``()`` is the unlabelled series."""

    name: str
    series: dict[LabelSet, int] = field(default_factory=dict)
    _lock: Lock = field(default_factory=Lock, repr=False)

    def inc(self, amount: int = 1, **labels: str) -> None:
        key = _labels(labels)
        with self._lock:
            self.series[key] = self.series.get(key, 0) + amount

    def get(self, **labels: str) -> int:
        with self._lock:
            return self.series.get(_labels(labels), 0)

    def total(self) -> int:
        with self._lock:
            return sum(self.series.values())

    def by(self, label: str) -> dict[str, int]:
        """
        Totals grouped by the value of one label.

        Example:
            ops.by("status") -> {"applied": 17, "failed": 1}
        """
        grouped: dict[str, int] = {}
        with self._lock:
            for key, count in self.series.items():
                value = dict(key).get(label)
                if value is not None:
                    grouped[value] = grouped.get(value, 0) + count
        return grouped

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {
                "total": sum(self.series.values()),
                "labels": {_format(key): count for key, count in sorted(self.series.items()) if key},
            }

    def reset(self) -> None:
        with self._lock:
            self.series.clear()


@dataclass
class Histogram:
    """Running count, sum and extremes with cumulative duration buckets."""

    name: str
    buckets: tuple[float, ...] = DURATION_BUCKETS
    count: int = 0
    total: float = 0.0
    low: float | None = None
    high: float | None = None
    bucket_counts: list[int] = field(default_factory=lambda: [0] * len(DURATION_BUCKETS))
    _lock: Lock = field(default_factory=Lock, repr=False)

    def observe(self, value: float) -> None:
        with self._lock:
            self.count += 1
            self.total += value
            self.low = value if self.low is None else min(self.low, value)
            self.high = value if self.high is None else max(self.high, value)
            for i, bound in enumerate(self.buckets):
                if value <= bound:
                    self.bucket_counts[i] += 1

    def get_stats(self) -> dict[str, Any]:
        """Count, sum, min, max, avg and cumulative bucket counts."""
        with self._lock:
            return {
                "count": self.count,
                "sum": self.total,
                "min": self.low or 0.0,
                "max": self.high or 0.0,
                "avg": self.total / self.count if self.count else 0.0,
                "buckets": {str(b): n for b, n in zip(self.buckets, self.bucket_counts)},
            }

    def reset(self) -> None:
        with self._lock:
            self.count = 0
            self.total = 0.0
            self.low = self.high = None
            self.bucket_counts = [0] * len(self.buckets)


@dataclass
class Gauge:
    """Current value and the highest value seen since the last reset."""

    name: str
    value: float = 0.0
    peak: float = 0.0
    _lock: Lock = field(default_factory=Lock, repr=False)

    def inc(self, amount: float = 1.0) -> None:
        with self._lock:
            self.value += amount
            self.peak = max(self.peak, self.value)

    def dec(self, amount: float = 1.0) -> None:
        with self._lock:
            self.value -= amount

    def get(self) -> float:
        with self._lock:
            return self.value

    def reset(self) -> None:
        with self._lock:
            self.value = 0.0
            self.peak = 0.0


class MetricsRegistry:
    """Named counters, histograms and gauges, created on first use."""

    def __init__(self) -> None:
        self._counters: dict[str, Counter] = {}
        self._histograms: dict[str, Histogram] = {}
        self._gauges: dict[str, Gauge] = {}
        self._lock = Lock()

    def counter(self, name: str) -> Counter:
        with self._lock:
            return self._counters.setdefault(name, Counter(name=name))

    def histogram(self, name: str) -> Histogram:
        with self._lock:
            return self._histograms.setdefault(name, Histogram(name=name))

    def gauge(self, name: str) -> Gauge:
        with self._lock:
            return self._gauges.setdefault(name, Gauge(name=name))

    def get_all(self) -> dict[str, Any]:
        with self._lock:
            counters = dict(self._counters)
            histograms = dict(self._histograms)
            gauges = dict(self._gauges)
        return {
            "counters": {name: c.snapshot() for name, c in counters.items()},
            "histograms": {name: h.get_stats() for name, h in histograms.items()},
            "gauges": {name: {"value": g.value, "peak": g.peak} for name, g in gauges.items()},
        }

    def reset(self) -> None:
        with self._lock:
            metrics = [*self._counters.values(), *self._histograms.values(), *self._gauges.values()]
        for metric in metrics:
            metric.reset()


_registry = MetricsRegistry()


def get_registry() -> MetricsRegistry:
    return _registry


def reset_metrics() -> None:
    _registry.reset()


def track_operation(kind: str, operation: str, duration: float, status: str = "applied") -> None:
    """
    Track one executed change-set entry.

    Args:
        kind: Resource kind (e.g., "aws:ec2/Vpc")
        operation: Change-set operation (e.g., "create", "replace")
        duration: Duration in seconds, retries and backoff included
        status: Terminal node status (e.g., "applied", "failed")
    """
    _registry.counter("stratum_operations_total").inc(kind=kind, operation=operation, status=status)
    _registry.histogram("stratum_operation_duration_seconds").observe(duration)


def track_retry(name: str, attempt: int) -> None:
    """Track a retry of ``name`` (e.g., "create vpc") after a transient failure."""
    operation = name.split(" ", 1)[0]
    _registry.counter("stratum_retry_attempts_total").inc(operation=operation)
    logger.trace(f"Retry {attempt} of {name}")


@contextmanager
def track_inflight() -> Iterator[Gauge]:
    """Count an entry as in flight for the duration of the block."""
    gauge = _registry.gauge("stratum_inflight_operations")
    gauge.inc()
    try:
        yield gauge
    finally:
        gauge.dec()


class timing:
    """
    Context manager for timing operations.

    Example:
        with timing("apply", node_id="vpc") as t:
            await provider.create(kind, attrs)
        logger.debug(f"create took {t.duration:.2f}s")
    """

    def __init__(self, operation: str, **labels: str) -> None:
        self.operation = operation
        self.labels = labels
        self.start_time: float = 0.0
        self.duration: float = 0.0

    def __enter__(self) -> timing:
        self.start_time = time.monotonic()
        return self

    def __exit__(self, *args: Any) -> None:
        self.duration = time.monotonic() - self.start_time
        logger.trace(f"⏱️ {self.operation} {self.labels} took {self.duration:.3f}s")


def get_metrics_summary() -> str:
    """Human readable summary of the last run, printed by the CLI in verbose mode."""
    lines = ["Metrics summary"]

    ops = _registry.counter("stratum_operations_total")
    if ops.total():
        lines.append(f"Operations: {ops.total()} total")
        for operation, count in sorted(ops.by("operation").items()):
            lines.append(f"  - {operation}: {count}")
        for status, count in sorted(ops.by("status").items()):
            lines.append(f"  - {status}: {count}")

    durations = _registry.histogram("stratum_operation_duration_seconds").get_stats()
    if durations["count"]:
        lines.append(f"Duration: avg={durations['avg']:.2f}s, max={durations['max']:.2f}s")

    retries = _registry.counter("stratum_retry_attempts_total")
    if retries.total():
        by_operation = ", ".join(f"{op}={n}" for op, n in sorted(retries.by("operation").items()))
        lines.append(f"Retries: {retries.total()} ({by_operation})")

    inflight = _registry.gauge("stratum_inflight_operations")
    if inflight.peak:
        lines.append(f"Peak concurrency: {int(inflight.peak)}")

    return "\n".join(lines)
