"""
Trap Hunter — Level Tracker

Rolling reference levels for the trap detector: recent high/low over a
lookback window (excluding the current bar), a trailing volume baseline,
and candle anatomy (body and wick ratios).

Pure functions of the bar series; nothing is carried across calls.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from trap_hunter.models import OHLCV, TrapParams


@dataclass(frozen=True)
class CandleAnatomy:
    """Body and wick decomposition of a single bar."""
    range: float
    body: float
    upper_wick: float
    lower_wick: float
    upper_wick_ratio: float
    lower_wick_ratio: float
    body_ratio: float


@dataclass(frozen=True)
class ReferenceLevels:
    """Resistance/support reference for one bar index."""
    recent_high: float
    recent_low: float


def recent_high(bars: Sequence[OHLCV], i: int, lookback: int) -> float:
    """Max ``high`` over ``[max(0, i - lookback), i)``; 0 when the window is empty."""
    start = max(0, i - lookback)
    if start >= i:
        return 0.0
    return max(bars[k].high for k in range(start, i))


def recent_low(bars: Sequence[OHLCV], i: int, lookback: int) -> float:
    """Min ``low`` over ``[max(0, i - lookback), i)``; 0 when the window is empty."""
    start = max(0, i - lookback)
    if start >= i:
        return 0.0
    return min(bars[k].low for k in range(start, i))


def volume_baseline(volumes: Sequence[float], period: int) -> list[float]:
    """Trailing simple moving average of volume, inclusive of the current bar.

    Uses a running sum. Returns a list the same length as ``volumes``; the
    first ``period - 1`` positions are 0 (no baseline yet). A period of 1 or
    less returns the volumes unchanged.
    """
    if period <= 1:
        return [float(v) for v in volumes]

    result = [0.0] * len(volumes)
    running = 0.0
    for i, v in enumerate(volumes):
        running += v
        if i >= period:
            running -= volumes[i - period]
        if i >= period - 1:
            result[i] = running / period
    return result


def bar_anatomy(bar: OHLCV) -> CandleAnatomy:
    """Decompose a bar into range, body and wicks.

    Ratios are relative to the high-low range and are 0 for zero-range bars.
    """
    rng = max(0.0, bar.high - bar.low)
    body = abs(bar.close - bar.open)
    upper = max(0.0, bar.high - max(bar.open, bar.close))
    lower = max(0.0, min(bar.open, bar.close) - bar.low)
    if rng > 0:
        return CandleAnatomy(rng, body, upper, lower, upper / rng, lower / rng, body / rng)
    return CandleAnatomy(rng, body, upper, lower, 0.0, 0.0, 0.0)


class LevelTracker:
    """Binds a bar series to lookback settings and a precomputed volume baseline.

    Usage:
        tracker = LevelTracker(bars, params)
        levels = tracker.levels_at(i)      # None on insufficient history
        spike = tracker.volume_spike(i)
    """

    def __init__(self, bars: Sequence[OHLCV], params: TrapParams):
        self.bars = bars
        self.resistance_lookback = params.resistance_lookback
        self.support_lookback = params.support_lookback
        self.baseline = volume_baseline([b.volume for b in bars], params.volume_ma_period)

    def levels_at(self, i: int) -> Optional[ReferenceLevels]:
        if i <= 0:
            return None
        high = recent_high(self.bars, i, self.resistance_lookback)
        low = recent_low(self.bars, i, self.support_lookback)
        if high == 0 or low == 0:
            return None
        return ReferenceLevels(recent_high=high, recent_low=low)

    def volume_spike(self, i: int) -> float:
        """Bar volume over the baseline; 0 while the baseline is warming up."""
        base = self.baseline[i]
        if base <= 0:
            return 0.0
        return self.bars[i].volume / base
