"""
Trap Hunter — API Route Tests

Tests for the health, trap scan, parameter and metrics endpoints using
FastAPI's TestClient.
"""

import pytest
from fastapi.testclient import TestClient

from trap_hunter.config import get_settings
from trap_hunter.main import app
from trap_hunter.metrics import reset_metrics

client = TestClient(app)

MINUTE = 60_000


def _calm_bars(n: int = 30) -> list[dict]:
    return [
        {"timestamp": i * MINUTE, "open": 99.92, "high": 100.1, "low": 99.9, "close": 100.08, "volume": 1000}
        for i in range(n)
    ]


def _trap_bars() -> list[dict]:
    bars = _calm_bars()
    bars[25] = {"timestamp": 25 * MINUTE, "open": 99.9, "high": 101.5, "low": 99.85, "close": 100.05, "volume": 1800}
    return bars


# ──────────────────────────────────────────────
# Health
# ──────────────────────────────────────────────

class TestHealth:

    def test_health(self):
        resp = client.get("/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert data["version"] == "1.0.0"
        assert data["uptime_seconds"] >= 0

    def test_api_version_header(self):
        resp = client.get("/health")
        assert resp.headers["X-API-Version"] == "v1"


# ──────────────────────────────────────────────
# Trap Scans
# ──────────────────────────────────────────────

class TestTrapScan:

    def test_scan_bull_trap(self):
        resp = client.post("/v1/api/traps/scan", json={"bars": _trap_bars()})
        assert resp.status_code == 200
        data = resp.json()
        assert data["indicator"] == "TRAP_HUNTER"
        assert data["bar_count"] == 30
        assert data["bull_count"] == 1
        assert data["bear_count"] == 0
        trap = data["events"][-1]
        assert trap["kind"] == "bull_trap"
        assert trap["index"] == 25
        assert trap["breakout_level"] == pytest.approx(100.1)
        assert trap["reversal_close"] == pytest.approx(100.05)
        assert 0.5 <= trap["score"] <= 1

    def test_events_are_sparse(self):
        resp = client.post("/v1/api/traps/scan", json={"bars": _calm_bars()})
        data = resp.json()
        assert [e["index"] for e in data["events"]] == [1, 9, 17, 25]
        assert all(e["kind"] == "normal" for e in data["events"])

    def test_params_body(self):
        body = {"bars": _trap_bars(), "params": {"min_trap_score": 0.9, "enable_normal_signal": False}}
        data = client.post("/v1/api/traps/scan", json=body).json()
        assert data["events"] == []
        assert data["params"]["min_trap_score"] == 0.9

    def test_calc_params_vector(self):
        body = {"bars": _calm_bars(), "calc_params": [20, 20, 3, 5, 20, 1.3, 0.0007, 0.35, 0.5, 0, 5]}
        data = client.post("/v1/api/traps/scan", json=body).json()
        assert data["normal_count"] == 0
        assert data["params"]["enable_normal_signal"] is False

    def test_fractional_calc_params(self):
        body = {"bars": _trap_bars(), "calc_params": [20, 20, 2.5, 5, 20, 1.3, 0.0007, 0.35, 0.5, 1, 5]}
        resp = client.post("/v1/api/traps/scan", json=body)
        assert resp.status_code == 200
        data = resp.json()
        assert data["params"]["confirmation_bars"] == 2
        assert data["bull_count"] == 1

    def test_fractional_params_body(self):
        body = {"bars": _calm_bars(), "params": {"confirmation_bars": 2.5, "normal_quiet_bars": 0.5}}
        resp = client.post("/v1/api/traps/scan", json=body)
        assert resp.status_code == 200
        assert resp.json()["params"]["confirmation_bars"] == 2
        assert resp.json()["params"]["normal_quiet_bars"] == 1

    def test_non_finite_calc_params(self):
        # Parses as a float vector, fails only when mapped onto TrapParams
        resp = client.post(
            "/v1/api/traps/scan",
            content='{"bars": [], "calc_params": [20, 20, Infinity]}',
            headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 422
        data = resp.json()
        assert data["error"] is True
        assert "confirmation_bars" in data["errors"][0]["field"]

    def test_empty_bars(self):
        data = client.post("/v1/api/traps/scan", json={"bars": []}).json()
        assert data["bar_count"] == 0
        assert data["events"] == []

    def test_malformed_bar(self):
        bars = _calm_bars(10)
        bars[4]["low"] = 100.0
        resp = client.post("/v1/api/traps/scan", json={"bars": bars})
        assert resp.status_code == 422
        data = resp.json()
        assert data["error"] is True
        assert data["index"] == 4
        assert data["reason"] == "low is above the candle body"

    def test_schema_error(self):
        resp = client.post("/v1/api/traps/scan", json={"bars": [{"timestamp": 0, "open": "x"}]})
        assert resp.status_code == 422
        assert resp.json()["errors"]

    def test_too_many_bars(self):
        settings = get_settings()
        saved = settings.max_bars_per_scan
        settings.max_bars_per_scan = 5
        try:
            resp = client.post("/v1/api/traps/scan", json={"bars": _calm_bars(6)})
        finally:
            settings.max_bars_per_scan = saved
        assert resp.status_code == 413
        assert "exceeds maximum" in resp.json()["detail"]

    def test_request_id_echoed(self):
        resp = client.post(
            "/v1/api/traps/scan",
            json={"bars": _calm_bars(3)},
            headers={"X-Request-ID": "abc-123"},
        )
        assert resp.headers["X-Request-ID"] == "abc-123"


# ──────────────────────────────────────────────
# Parameters
# ──────────────────────────────────────────────

class TestTrapParams:

    def test_defaults(self):
        resp = client.get("/v1/api/traps/params")
        assert resp.status_code == 200
        data = resp.json()
        assert data["defaults"]["resistance_lookback"] == 20
        assert data["calc_param_order"][0] == "resistance_lookback"
        assert len(data["calc_params"]) == 11
        assert data["calc_params"][9] == 1


# ──────────────────────────────────────────────
# Metrics
# ──────────────────────────────────────────────

class TestMetrics:

    def test_scan_counters(self):
        reset_metrics()
        client.post("/v1/api/traps/scan", json={"bars": _trap_bars()})
        text = client.get("/metrics").text
        assert "trap_scans_total 1" in text
        assert "trap_bars_scanned_total 30" in text
        assert 'trap_events_total{kind="bull_trap"} 1' in text
        assert 'http_requests_total{method="POST",path="/v1/api/traps/scan",status="200"} 1' in text

    def test_unknown_route_404(self):
        resp = client.get("/v1/api/nope")
        assert resp.status_code == 404
        assert resp.json()["status_code"] == 404
