"""
Trap Hunter — FastAPI Application Entry Point

Serves the trap detector over HTTP, plus health and metrics endpoints.
"""

import time as _time
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from trap_hunter.config import get_settings
from trap_hunter.routes import health_router, trap_router

log = structlog.get_logger("trap_hunter.startup")

APP_START_TIME: float = _time.monotonic()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle hooks."""
    settings = get_settings()
    log.info(
        "startup",
        env=settings.app_env,
        validate_bars=settings.validate_bars,
        max_bars_per_scan=settings.max_bars_per_scan,
        params=settings.default_params().model_dump(),
    )
    yield
    log.info("shutdown")


def create_app() -> FastAPI:
    """Application factory."""
    settings = get_settings()

    app = FastAPI(
        title="Trap Hunter",
        description="""# Trap Hunter API

Bull/bear trap detection over OHLCV bar series.

## Features
- **Trap scans** — false-breakout reversals with a 0-1 composite score
- **Normal markers** — debounced calm/stable state signals
- **Metrics** — Prometheus-compatible exposition
""",
        version="1.0.0",
        debug=settings.app_debug,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_tags=[
            {"name": "Health", "description": "Service health checks"},
            {"name": "Traps", "description": "Trap detection scans"},
            {"name": "Metrics", "description": "Prometheus-compatible metrics exposition"},
        ],
    )

    # ── Global Error Handlers ──
    from trap_hunter.error_handlers import register_error_handlers
    register_error_handlers(app)

    # ── CORS (configurable from settings) ──
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Custom Middleware ──
    from trap_hunter.middleware.request_logger import RequestLoggerMiddleware
    app.add_middleware(RequestLoggerMiddleware)

    # ── Metrics Collection (outermost → captures full lifecycle) ──
    from trap_hunter.metrics import MetricsMiddleware
    app.add_middleware(MetricsMiddleware)

    # ── Routes (unversioned) ──
    app.include_router(health_router, tags=["Health"])

    # ── Routes (v1 API) ──
    API_V1 = "/v1/api"
    app.include_router(trap_router, prefix=API_V1, tags=["Traps"])

    # ── Metrics (unversioned) ──
    from trap_hunter.metrics import metrics_router
    app.include_router(metrics_router, tags=["Metrics"])

    @app.middleware("http")
    async def add_api_version_header(request, call_next):
        response = await call_next(request)
        response.headers["X-API-Version"] = "v1"
        return response

    return app


app = create_app()
