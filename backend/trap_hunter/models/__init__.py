"""
Trap Hunter — Pydantic Models

All I/O schemas for the detector. Engines return these, the API and CLI
serialize these.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Any, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ──────────────────────────────────────────────
# Enums
# ──────────────────────────────────────────────

class TrapKind(str, Enum):
    """Direction of a false breakout."""
    BULL = "bull"
    BEAR = "bear"


class EventKind(str, Enum):
    """Kind tag of a per-bar signal."""
    BULL_TRAP = "bull_trap"
    BEAR_TRAP = "bear_trap"
    NORMAL = "normal"


# ──────────────────────────────────────────────
# Market Data Models
# ──────────────────────────────────────────────

class OHLCV(BaseModel):
    """Single OHLCV bar. ``timestamp`` is epoch milliseconds."""
    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0


# ──────────────────────────────────────────────
# Detector Parameters
# ──────────────────────────────────────────────

# Positional order of the chart indicator's parameter vector.
CALC_PARAM_ORDER: tuple[str, ...] = (
    "resistance_lookback",
    "support_lookback",
    "confirmation_bars",
    "max_trap_bars",
    "volume_ma_period",
    "min_volume_spike",
    "min_breakout_factor",
    "min_wick_ratio",
    "min_trap_score",
    "enable_normal_signal",
    "normal_quiet_bars",
)


def _whole_bars(v: Any) -> Any:
    """Truncate a numeric bar count (``2.5`` → ``2``); other types are left to pydantic."""
    if isinstance(v, bool) or not isinstance(v, (int, float, str)):
        return v
    value = float(v)
    if not math.isfinite(value):
        raise ValueError("bar counts must be finite")
    return int(value)


class TrapParams(BaseModel):
    """Tunable detector parameters.

    Fractional bar counts are truncated and out-of-range values are clamped
    to their floor instead of rejected, so no combination of numeric
    parameters can make a scan fail.
    """
    resistance_lookback: int = Field(20, description="Bars examined for the recent high")
    support_lookback: int = Field(20, description="Bars examined for the recent low")
    confirmation_bars: int = Field(3, description="Max bars after a breakout to await a reversal close")
    max_trap_bars: int = Field(5, description="Max bars after a breakout scanned for rejection evidence")
    volume_ma_period: int = Field(20, description="Volume baseline SMA period")
    min_volume_spike: float = Field(1.3, description="Required multiple of the volume baseline")
    min_breakout_factor: float = Field(0.0007, description="Fractional breakout beyond the level")
    min_wick_ratio: float = Field(0.35, description="Fraction of the range that must be rejection wick")
    min_trap_score: float = Field(0.5, description="Acceptance threshold in [0, 1]")
    enable_normal_signal: bool = True
    normal_quiet_bars: int = Field(5, description="Min bars since the last trap before a normal signal")

    @field_validator("resistance_lookback", "support_lookback", mode="before")
    @classmethod
    def truncate_lookback(cls, v: Any) -> Any:
        return _whole_bars(v)

    @field_validator(
        "confirmation_bars", "max_trap_bars", "volume_ma_period", "normal_quiet_bars",
        mode="before",
    )
    @classmethod
    def clamp_to_one(cls, v: Any) -> Any:
        v = _whole_bars(v)
        return max(1, v) if isinstance(v, int) else v

    @classmethod
    def from_calc_params(cls, values: Sequence[Any]) -> "TrapParams":
        """Build params from the indicator's positional parameter vector.

        Missing or ``None`` entries fall back to defaults; the normal-signal
        flag is on for any value greater than zero.
        """
        kwargs: dict[str, Any] = {}
        for name, value in zip(CALC_PARAM_ORDER, values):
            if value is None:
                continue
            if name == "enable_normal_signal":
                value = float(value) > 0
            kwargs[name] = value
        return cls(**kwargs)

    def to_calc_params(self) -> list[float]:
        """Inverse of :meth:`from_calc_params`."""
        out: list[float] = []
        for name in CALC_PARAM_ORDER:
            value = getattr(self, name)
            out.append(int(value) if isinstance(value, bool) else value)
        return out


# ──────────────────────────────────────────────
# Detection Results
# ──────────────────────────────────────────────

class TrapEvent(BaseModel):
    """An accepted bull or bear trap at its confirming bar."""
    model_config = ConfigDict(frozen=True)

    kind: TrapKind
    index: int
    score: float = Field(ge=0, le=1)
    breakout_level: float
    reversal_close: float
    timestamp: int


class NormalEvent(BaseModel):
    """A calm/stable state marker."""
    model_config = ConfigDict(frozen=True)

    index: int
    timestamp: int


class EventRecord(BaseModel):
    """Flat, sparse encoding of one event for persistence and transport."""
    index: int
    kind: EventKind
    score: Optional[float] = None
    breakout_level: Optional[float] = None
    reversal_close: Optional[float] = None
    timestamp: int


class TrapResult(BaseModel):
    """Per-bar slot: empty, a trap, or a normal marker, never more than one."""
    model_config = ConfigDict(frozen=True)

    trap: Optional[TrapEvent] = None
    normal: Optional[NormalEvent] = None

    @property
    def is_empty(self) -> bool:
        return self.trap is None and self.normal is None

    @property
    def bull_trap(self) -> bool:
        return self.trap is not None and self.trap.kind is TrapKind.BULL

    @property
    def bear_trap(self) -> bool:
        return self.trap is not None and self.trap.kind is TrapKind.BEAR

    @property
    def is_normal(self) -> bool:
        return self.normal is not None

    @property
    def kind(self) -> Optional[EventKind]:
        if self.bull_trap:
            return EventKind.BULL_TRAP
        if self.bear_trap:
            return EventKind.BEAR_TRAP
        if self.normal is not None:
            return EventKind.NORMAL
        return None

    def to_record(self) -> Optional[EventRecord]:
        if self.trap is not None:
            return EventRecord(
                index=self.trap.index,
                kind=self.kind,
                score=self.trap.score,
                breakout_level=self.trap.breakout_level,
                reversal_close=self.trap.reversal_close,
                timestamp=self.trap.timestamp,
            )
        if self.normal is not None:
            return EventRecord(
                index=self.normal.index,
                kind=EventKind.NORMAL,
                timestamp=self.normal.timestamp,
            )
        return None


class TrapScanResult(BaseModel):
    """Full scan: aligned per-bar results plus the sparse event list."""
    indicator: str = "TRAP_HUNTER"
    bar_count: int = 0
    results: list[TrapResult] = Field(default_factory=list)
    events: list[EventRecord] = Field(default_factory=list)
    bull_count: int = 0
    bear_count: int = 0
    normal_count: int = 0
    elapsed_ms: float = 0.0


# ──────────────────────────────────────────────
# API Models
# ──────────────────────────────────────────────

class TrapScanRequest(BaseModel):
    """Body of ``POST /traps/scan``."""
    bars: list[OHLCV] = Field(default_factory=list)
    params: Optional[TrapParams] = None
    calc_params: Optional[list[Optional[float]]] = Field(
        None, description="Positional parameter vector; used when params is omitted",
    )


class TrapScanResponse(BaseModel):
    """Sparse scan result returned by the API."""
    indicator: str = "TRAP_HUNTER"
    bar_count: int
    params: TrapParams
    events: list[EventRecord] = []
    bull_count: int = 0
    bear_count: int = 0
    normal_count: int = 0
    elapsed_ms: float = 0.0


class HealthCheck(BaseModel):
    """Health check response."""
    status: str = "ok"
    version: str = "1.0.0"
    environment: str = "development"
    uptime_seconds: float = 0.0
