"""
Tests for performance monitoring.
"""
import asyncio
import pytest
import time
from studio.core.performance import PerformanceMonitor, track_performance


@pytest.fixture(autouse=True)
def clean_metrics():
    PerformanceMonitor.clear_metrics()
    yield
    PerformanceMonitor.clear_metrics()


@pytest.mark.unit
def test_performance_monitor_record():
    PerformanceMonitor.record_metric("test_metric", 1.5, {"test": "data"})
    PerformanceMonitor.record_metric("test_metric", 2.0)
    PerformanceMonitor.record_metric("test_metric", 0.5)

    stats = PerformanceMonitor.get_stats("test_metric")

    assert stats["count"] == 3
    assert stats["min"] == 0.5
    assert stats["max"] == 2.0
    assert stats["mean"] == pytest.approx(1.333, rel=0.01)
    assert stats["p50"] == 1.5
    assert stats["p99"] == 2.0


@pytest.mark.unit
def test_unknown_metric_has_no_stats():
    assert PerformanceMonitor.get_stats("never_recorded") is None


@pytest.mark.unit
def test_performance_decorator_sync():
    @track_performance("test_function")
    def double(x: int) -> int:
        time.sleep(0.01)
        return x * 2

    assert double(5) == 10

    stats = PerformanceMonitor.get_stats("test_function")
    assert stats["count"] == 1
    assert stats["mean"] > 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_performance_decorator_async():
    @track_performance("test_async_function")
    async def double(x: int) -> int:
        await asyncio.sleep(0.01)
        return x * 2

    assert await double(5) == 10

    stats = PerformanceMonitor.get_stats("test_async_function")
    assert stats["count"] == 1
    assert stats["mean"] > 0


@pytest.mark.unit
def test_failed_calls_are_recorded_and_reraised():
    @track_performance("failing")
    def fail():
        raise ValueError("boom")

    with pytest.raises(ValueError):
        fail()

    assert PerformanceMonitor.get_stats("failing")["count"] == 1


@pytest.mark.unit
def test_get_all_metrics():
    PerformanceMonitor.record_metric("a", 1.0)
    PerformanceMonitor.record_metric("b", 2.0)

    metrics = PerformanceMonitor.get_all_metrics()
    assert set(metrics) == {"a", "b"}
    assert metrics["b"]["max"] == 2.0
