"""
Timing metrics for pipeline stages and requests.
"""
import time
import inspect
import logging
import threading
from collections import defaultdict, deque
from functools import wraps
from typing import Any, Deque, Dict, Optional

logger = logging.getLogger(__name__)

# Samples kept per metric
MAX_SAMPLES = 1000

_metrics_lock = threading.Lock()
_metrics: Dict[str, Deque[Dict[str, Any]]] = defaultdict(lambda: deque(maxlen=MAX_SAMPLES))


def _percentile(ordered: list, fraction: float) -> float:
    index = min(int(len(ordered) * fraction), len(ordered) - 1)
    return ordered[index]


class PerformanceMonitor:
    """Process-wide store of duration samples."""

    @staticmethod
    def record_metric(name: str, value: float, metadata: Optional[Dict[str, Any]] = None):
        with _metrics_lock:
            _metrics[name].append({
                "value": value,
                "timestamp": time.time(),
                "metadata": metadata or {},
            })

    @staticmethod
    def get_stats(metric_name: str) -> Optional[Dict[str, float]]:
        """Summary statistics for one metric, or None if nothing was recorded."""
        with _metrics_lock:
            samples = _metrics.get(metric_name)
            if not samples:
                return None
            values = sorted(sample["value"] for sample in samples)
        return {
            "count": len(values),
            "min": values[0],
            "max": values[-1],
            "mean": sum(values) / len(values),
            "p50": _percentile(values, 0.5),
            "p95": _percentile(values, 0.95),
            "p99": _percentile(values, 0.99),
        }

    @staticmethod
    def get_all_metrics() -> Dict[str, Dict[str, float]]:
        with _metrics_lock:
            names = list(_metrics.keys())
        return {name: PerformanceMonitor.get_stats(name) for name in names}

    @staticmethod
    def clear_metrics():
        with _metrics_lock:
            _metrics.clear()


def _finish(metric_name: str, started: float, error: Optional[Exception] = None):
    duration = time.perf_counter() - started
    metadata = {"status": "success"} if error is None else {"status": "error", "error": str(error)}
    PerformanceMonitor.record_metric(metric_name, duration, metadata)
    if error is None:
        logger.debug(f"{metric_name} completed in {duration:.3f}s", extra={"metric": metric_name, "duration": duration})
    else:
        logger.warning(f"{metric_name} failed after {duration:.3f}s: {error}", extra={"metric": metric_name, "duration": duration})


def track_performance(metric_name: str):
    """
    Record the wall time of every call to the decorated function.

    Works for plain and async functions. Exceptions are recorded with
    status "error" and re-raised unchanged.
    """
    def decorator(func):
        if inspect.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                started = time.perf_counter()
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    _finish(metric_name, started, e)
                    raise
                _finish(metric_name, started)
                return result
            return async_wrapper

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _finish(metric_name, started, e)
                raise
            _finish(metric_name, started)
            return result
        return sync_wrapper

    return decorator
