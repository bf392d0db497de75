"""
Trap Hunter — Request Logger Middleware

Structured request/response logging via structlog. Binds a request ID to
the log context and echoes it in the ``X-Request-ID`` header.
"""

from __future__ import annotations

import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

log = structlog.get_logger(__name__)

_SKIP_PATHS = frozenset({"/health", "/metrics", "/favicon.ico"})


class RequestLoggerMiddleware(BaseHTTPMiddleware):
    """Log every request with method, path, status, and latency."""

    async def dispatch(self, request: Request, call_next):
        if request.url.path in _SKIP_PATHS:
            return await call_next(request)

        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        start = time.perf_counter()

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        log.info("request.start", method=request.method, path=request.url.path)

        try:
            response = await call_next(request)
        except Exception:
            log.error(
                "request.error",
                method=request.method,
                path=request.url.path,
                latency_ms=round((time.perf_counter() - start) * 1000, 1),
            )
            raise

        log.info(
            "request.complete",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            latency_ms=round((time.perf_counter() - start) * 1000, 1),
        )

        response.headers["X-Request-ID"] = request_id
        return response
