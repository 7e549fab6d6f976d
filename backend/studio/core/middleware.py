"""
Request middleware: correlation ids, request timing and request timeouts.
"""
import uuid
import time
import asyncio
import logging
from contextvars import ContextVar
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from fastapi import status
from fastapi.responses import JSONResponse
from studio.core.errors import ErrorCodes, get_error_response
from studio.core.performance import PerformanceMonitor

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="system")

_base_factory = logging.getLogRecordFactory()


def _record_factory(*args, **kwargs):
    record = _base_factory(*args, **kwargs)
    record.correlation_id = correlation_id_var.get()
    return record


logging.setLogRecordFactory(_record_factory)


def get_correlation_id(request: Request) -> str:
    return getattr(request.state, "correlation_id", "unknown")


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """Tag each request, its log records and its response with a correlation id."""

    async def dispatch(self, request: Request, call_next):
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        request.state.correlation_id = correlation_id
        token = correlation_id_var.set(correlation_id)
        started = time.perf_counter()
        try:
            try:
                response = await call_next(request)
            except Exception as e:
                logger.error(f"Request failed: {request.method} {request.url.path} - {e}", exc_info=True)
                response = JSONResponse(
                    status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                    content={**get_error_response(ErrorCodes.UNKNOWN_ERROR), "correlation_id": correlation_id},
                )

            duration = time.perf_counter() - started
            PerformanceMonitor.record_metric(
                "request_duration",
                duration,
                {"method": request.method, "path": request.url.path, "status_code": response.status_code},
            )
            response.headers[CORRELATION_HEADER] = correlation_id
            response.headers["X-Response-Time"] = f"{duration:.3f}"
            logger.info(
                f"{request.method} {request.url.path} - {response.status_code} ({duration:.3f}s)",
                extra={"method": request.method, "path": request.url.path, "status_code": response.status_code},
            )
            return response
        finally:
            correlation_id_var.reset(token)


class TimeoutMiddleware(BaseHTTPMiddleware):
    """Abort requests that run longer than the configured timeout."""

    def __init__(self, app, timeout_seconds: float):
        super().__init__(app)
        self.timeout_seconds = timeout_seconds

    async def dispatch(self, request: Request, call_next):
        try:
            return await asyncio.wait_for(call_next(request), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            correlation_id = get_correlation_id(request)
            logger.error(f"Request timeout after {self.timeout_seconds} seconds: {request.url.path}")
            return JSONResponse(
                status_code=status.HTTP_504_GATEWAY_TIMEOUT,
                content={**get_error_response(ErrorCodes.TIMEOUT), "correlation_id": correlation_id},
                headers={CORRELATION_HEADER: correlation_id},
            )
