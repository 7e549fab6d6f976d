"""
Metrics endpoint for performance monitoring.
"""
from fastapi import APIRouter
from studio.core.performance import PerformanceMonitor
from studio.core.cache import get_rows_cache

router = APIRouter()


@router.get("/metrics")
async def get_metrics():
    """Timing statistics per tracked operation plus parsed-rows cache size."""
    return {
        "performance": PerformanceMonitor.get_all_metrics(),
        "cache": {"rows_cache": get_rows_cache().get_stats()},
    }
