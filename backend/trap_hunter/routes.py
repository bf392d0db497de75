"""
Trap Hunter — API Routes

Thin HTTP layer over the trap engine. Bars arrive in the request body;
no market data is fetched here.
"""

from __future__ import annotations

import time as _time

from fastapi import APIRouter, HTTPException
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from trap_hunter.config import get_settings
from trap_hunter.engines.trap_engine import TrapEngine
from trap_hunter.metrics import record_scan
from trap_hunter.models import (
    CALC_PARAM_ORDER,
    HealthCheck,
    TrapParams,
    TrapScanRequest,
    TrapScanResponse,
)
from trap_hunter.utils.validators import validate_bar_count

_trap_engine = TrapEngine()

# ──────────────────────────────────────────────
# Health
# ──────────────────────────────────────────────

health_router = APIRouter()


@health_router.get("/health", response_model=HealthCheck)
async def health_check():
    """Liveness and uptime."""
    from trap_hunter.main import APP_START_TIME

    settings = get_settings()
    return HealthCheck(
        status="ok",
        environment=settings.app_env,
        uptime_seconds=round(_time.monotonic() - APP_START_TIME, 1),
    )


# ──────────────────────────────────────────────
# Trap Scans
# ──────────────────────────────────────────────

trap_router = APIRouter()


def _resolve_params(body: TrapScanRequest) -> TrapParams:
    if body.params is not None:
        return body.params
    if body.calc_params is not None:
        return TrapParams.from_calc_params(body.calc_params)
    return get_settings().default_params()


@trap_router.post("/traps/scan", response_model=TrapScanResponse)
def scan_traps(body: TrapScanRequest):
    """Scan a bar series for bull/bear traps and normal-state markers.

    Returns the sparse event list (empty indices omitted).
    """
    settings = get_settings()
    try:
        validate_bar_count(len(body.bars), settings.max_bars_per_scan)
    except ValueError as e:
        raise HTTPException(status_code=413, detail=str(e))

    try:
        params = _resolve_params(body)
    except ValidationError as e:
        # calc_params is only mapped onto TrapParams here, after request parsing
        raise RequestValidationError(e.errors())

    scan = _trap_engine.scan(body.bars, params, validate=settings.validate_bars)
    record_scan(scan)

    return TrapScanResponse(
        bar_count=scan.bar_count,
        params=params,
        events=scan.events,
        bull_count=scan.bull_count,
        bear_count=scan.bear_count,
        normal_count=scan.normal_count,
        elapsed_ms=scan.elapsed_ms,
    )


@trap_router.get("/traps/params")
async def get_trap_params():
    """Default detector parameters and the positional parameter order."""
    defaults = get_settings().default_params()
    return {
        "defaults": defaults.model_dump(),
        "calc_param_order": list(CALC_PARAM_ORDER),
        "calc_params": defaults.to_calc_params(),
    }
