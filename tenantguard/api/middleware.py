"""API middleware: correlation ID, request logging and latency."""

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from tenantguard.core.context import correlation_id_ctx

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Generate or preserve correlation ID; attach to request.state, response header, and logging context."""

    async def dispatch(self, request: Request, call_next) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        request.state.correlation_id = correlation_id
        correlation_id_ctx.set(correlation_id)

        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = correlation_id
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """After response: structured request log (path, method, status, principal) and latency metric."""

    def __init__(self, app, metrics=None) -> None:
        super().__init__(app)
        self._metrics = metrics

    async def dispatch(self, request: Request, call_next) -> Response:
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        principal = getattr(request.state, "principal", None)
        logger.info(
            "request_completed",
            extra={
                "correlation_id": getattr(request.state, "correlation_id", None),
                "request_principal_id": principal.principal_id if principal else None,
                "path": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
                "latency_ms": round(elapsed_ms, 2),
            },
        )
        if self._metrics is not None:
            self._metrics.observe_latency("http_request_latency", elapsed_ms, route=request.url.path)
        return response
