"""
Trap Hunter — Prometheus-Compatible Metrics

Lightweight metrics collection and exposition:
- http_requests_total{method, path, status} — request counter
- http_request_duration_seconds{method, path} — response time summary
- trap_scans_total / trap_bars_scanned_total — detector throughput
- trap_events_total{kind} — emitted events by kind
- GET /metrics — text/plain Prometheus exposition format
"""

from __future__ import annotations

import time
from collections import defaultdict

from fastapi import APIRouter
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response

from trap_hunter.models import TrapScanResult

# ────────────────────────────────────────────────
# In-Memory Metric Store
# ────────────────────────────────────────────────

_request_counts: dict[tuple[str, str, int], int] = defaultdict(int)
_request_durations: dict[tuple[str, str], list[float]] = defaultdict(list)
_scan_counters: dict[str, int] = defaultdict(int)
_event_counts: dict[str, int] = defaultdict(int)

# Max stored durations per path
_MAX_DURATION_SAMPLES = 1000


def record_request(method: str, path: str, status_code: int, duration: float) -> None:
    """Record a single request's metrics."""
    _request_counts[(method, path, status_code)] += 1

    durations = _request_durations[(method, path)]
    durations.append(duration)
    if len(durations) > _MAX_DURATION_SAMPLES:
        _request_durations[(method, path)] = durations[-_MAX_DURATION_SAMPLES:]


def record_scan(scan: TrapScanResult) -> None:
    """Accumulate detector counters from a completed scan."""
    _scan_counters["scans"] += 1
    _scan_counters["bars"] += scan.bar_count
    _event_counts["bull_trap"] += scan.bull_count
    _event_counts["bear_trap"] += scan.bear_count
    _event_counts["normal"] += scan.normal_count


def reset_metrics() -> None:
    """Clear all stores."""
    _request_counts.clear()
    _request_durations.clear()
    _scan_counters.clear()
    _event_counts.clear()


# ────────────────────────────────────────────────
# Metrics Collection Middleware
# ────────────────────────────────────────────────


class MetricsMiddleware(BaseHTTPMiddleware):
    """Collects per-request metrics for Prometheus exposition."""

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        start = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start

        record_request(
            method=request.method,
            path=str(request.url.path),
            status_code=response.status_code,
            duration=duration,
        )

        return response


# ────────────────────────────────────────────────
# Prometheus Exposition Endpoint
# ────────────────────────────────────────────────

metrics_router = APIRouter()


def _format_prometheus() -> str:
    """Format metrics in Prometheus text exposition format."""
    lines: list[str] = []

    # ── Request Count ──
    lines.append("# HELP http_requests_total Total HTTP requests processed.")
    lines.append("# TYPE http_requests_total counter")
    for (method, path, status), count in sorted(_request_counts.items()):
        lines.append(
            f'http_requests_total{{method="{method}",path="{path}",status="{status}"}} {count}'
        )

    # ── Request Duration ──
    lines.append("")
    lines.append("# HELP http_request_duration_seconds HTTP request duration in seconds.")
    lines.append("# TYPE http_request_duration_seconds summary")
    for (method, path), durations in sorted(_request_durations.items()):
        if not durations:
            continue
        count = len(durations)
        sorted_d = sorted(durations)
        label = f'method="{method}",path="{path}"'
        for q in (0.5, 0.95, 0.99):
            value = sorted_d[min(int(count * q), count - 1)]
            lines.append(f'http_request_duration_seconds{{{label},quantile="{q}"}} {value:.6f}')
        lines.append(f"http_request_duration_seconds_sum{{{label}}} {sum(durations):.6f}")
        lines.append(f"http_request_duration_seconds_count{{{label}}} {count}")

    # ── Detector ──
    lines.append("")
    lines.append("# HELP trap_scans_total Completed trap scans.")
    lines.append("# TYPE trap_scans_total counter")
    lines.append(f"trap_scans_total {_scan_counters['scans']}")
    lines.append("# HELP trap_bars_scanned_total Bars evaluated across all scans.")
    lines.append("# TYPE trap_bars_scanned_total counter")
    lines.append(f"trap_bars_scanned_total {_scan_counters['bars']}")
    lines.append("# HELP trap_events_total Events emitted by kind.")
    lines.append("# TYPE trap_events_total counter")
    for kind in ("bull_trap", "bear_trap", "normal"):
        lines.append(f'trap_events_total{{kind="{kind}"}} {_event_counts[kind]}')

    lines.append("")
    return "\n".join(lines)


@metrics_router.get("/metrics", include_in_schema=False)
async def get_metrics():
    """Prometheus-compatible metrics endpoint."""
    return PlainTextResponse(
        content=_format_prometheus(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
