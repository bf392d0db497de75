"""
Trap Hunter — Global Exception Handlers

Consistent, structured error responses for the API. Every error response
follows the same JSON schema; malformed bars report the offending index.
"""

from __future__ import annotations

import traceback

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

import structlog

from trap_hunter.utils.validators import MalformedBarError

log = structlog.get_logger(__name__)


def _error_body(request: Request, status_code: int, detail: str, **extra) -> dict:
    return {
        "error": True,
        "status_code": status_code,
        "detail": detail,
        "request_id": getattr(request.state, "request_id", None),
        **extra,
    }


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(request, exc.status_code, exc.detail),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Pydantic validation errors → 422 with field details."""
        errors = [
            {
                "field": " → ".join(str(loc) for loc in err.get("loc", [])),
                "message": err.get("msg", ""),
                "type": err.get("type", ""),
            }
            for err in exc.errors()
        ]
        log.warning("validation_error", path=str(request.url.path), errors=errors)
        return JSONResponse(
            status_code=422,
            content=_error_body(request, 422, "Validation error", errors=errors),
        )

    @app.exception_handler(MalformedBarError)
    async def malformed_bar_handler(request: Request, exc: MalformedBarError):
        """Bars violating OHLC ordering, volume or timestamp rules → 422."""
        log.warning(
            "malformed_bar",
            path=str(request.url.path),
            index=exc.index,
            reason=exc.reason,
        )
        return JSONResponse(
            status_code=422,
            content=_error_body(request, 422, str(exc), index=exc.index, reason=exc.reason),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        """Catch-all for unhandled exceptions → 500 with safe details."""
        log.error(
            "unhandled_exception",
            path=str(request.url.path),
            method=request.method,
            error=str(exc),
            traceback=traceback.format_exc(),
        )
        return JSONResponse(
            status_code=500,
            content=_error_body(request, 500, "Internal server error"),
        )
