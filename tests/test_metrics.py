"""
Tests for the in-memory metrics registry.

Tests:
- Counter, Histogram and Gauge primitives
- Engine helpers (track_operation, track_retry, track_inflight)
- timing context manager and summary text
"""

import time

import pytest

from stratum.core.metrics import (
    Counter,
    Gauge,
    Histogram,
    MetricsRegistry,
    get_metrics_summary,
    get_registry,
    timing,
    track_inflight,
    track_operation,
    track_retry,
)


class TestPrimitives:
    """Tests for metric primitives."""

    def test_counter_labels(self):
        """Test label order does not matter and series add up."""
        counter = Counter(name="c")
        counter.inc()
        counter.inc(2, kind="a", status="applied")
        counter.inc(status="applied", kind="a")
        counter.inc(kind="b", status="failed")
        assert counter.get() == 1
        assert counter.get(kind="a", status="applied") == 3
        assert counter.total() == 5
        assert counter.by("status") == {"applied": 3, "failed": 1}
        assert counter.snapshot()["labels"] == {"kind=a,status=applied": 3, "kind=b,status=failed": 1}
        counter.reset()
        assert counter.total() == 0

    def test_histogram_stats(self):
        """Test running statistics and cumulative buckets."""
        histogram = Histogram(name="h")
        for value in (0.02, 0.2, 2.0):
            histogram.observe(value)
        stats = histogram.get_stats()
        assert stats["count"] == 3
        assert stats["min"] == 0.02
        assert stats["max"] == 2.0
        assert stats["buckets"]["0.05"] == 1
        assert stats["buckets"]["5.0"] == 3
        histogram.reset()
        assert histogram.get_stats()["buckets"]["5.0"] == 0

    def test_histogram_empty(self):
        """Test stats of an empty histogram."""
        stats = Histogram(name="h").get_stats()
        assert stats["count"] == 0
        assert stats["avg"] == 0.0

    def test_gauge_peak(self):
        """Test the gauge keeps its highest value."""
        gauge = Gauge(name="g")
        gauge.inc()
        gauge.inc()
        gauge.dec()
        assert gauge.get() == 1.0
        assert gauge.peak == 2.0

    def test_registry_reuses_metrics(self):
        """Test the registry returns the same metric per name."""
        registry = MetricsRegistry()
        assert registry.counter("x") is registry.counter("x")
        registry.counter("x").inc(kind="a")
        assert registry.get_all()["counters"]["x"]["total"] == 1
        registry.reset()
        assert registry.get_all()["counters"]["x"]["total"] == 0


class TestEngineMetrics:
    """Tests for engine tracking helpers."""

    def test_track_operation(self):
        """Test operations are counted by kind, operation and status."""
        track_operation("aws:ec2/Vpc", "create", 0.5)
        track_operation("aws:ec2/Vpc", "create", 1.5, status="failed")

        ops = get_registry().counter("stratum_operations_total")
        assert ops.get(kind="aws:ec2/Vpc", operation="create", status="applied") == 1
        assert ops.get(kind="aws:ec2/Vpc", operation="create", status="failed") == 1
        assert get_registry().histogram("stratum_operation_duration_seconds").get_stats()["count"] == 2

    def test_track_retry(self):
        """Test retries are counted per operation."""
        track_retry("create vpc", 1)
        track_retry("create vpc", 2)
        track_retry("delete subnet", 1)
        retries = get_registry().counter("stratum_retry_attempts_total")
        assert retries.total() == 3
        assert retries.by("operation") == {"create": 2, "delete": 1}

    def test_track_inflight(self):
        """Test the in-flight gauge is released on errors."""
        gauge = get_registry().gauge("stratum_inflight_operations")
        with pytest.raises(ValueError), track_inflight(), track_inflight():
            assert gauge.get() == 2
            raise ValueError("boom")
        assert gauge.get() == 0
        assert gauge.peak == 2

    def test_summary(self):
        """Test the human readable summary."""
        track_operation("aws:ec2/Vpc", "create", 0.5)
        track_retry("create vpc", 1)
        with track_inflight():
            pass
        summary = get_metrics_summary()
        assert "Operations: 1 total" in summary
        assert "Retries: 1" in summary
        assert "Peak concurrency: 1" in summary

    def test_summary_empty(self):
        """Test an empty registry prints only the title."""
        assert get_metrics_summary() == "Metrics summary"


def test_timing():
    """Test the timing context manager measures duration."""
    with timing("create", node_id="vpc") as timer:
        time.sleep(0.01)
    assert timer.duration >= 0.01
