"""
Trap Hunter — Stability Engine

Debounced "calm/normal" detector. Shares the level tracker with the trap
engine and cross-references the trap timeline so a normal marker never
follows a trap too closely.
"""

from __future__ import annotations

from typing import Optional

from trap_hunter.engines.heuristics import DEFAULT_HEURISTICS, TrapHeuristics
from trap_hunter.engines.level_tracker import CandleAnatomy, ReferenceLevels
from trap_hunter.engines.scan_state import ScanState, bars_since
from trap_hunter.models import OHLCV, NormalEvent, TrapParams


class StabilityEngine:
    """Classify quiet bars and emit spaced normal markers."""

    def __init__(self, heuristics: TrapHeuristics = DEFAULT_HEURISTICS):
        self.h = heuristics

    def is_calm(
        self,
        bar: OHLCV,
        anatomy: CandleAnatomy,
        volume_spike: float,
        levels: ReferenceLevels,
        params: TrapParams,
    ) -> bool:
        """Low relative volume, small wicks, and a close inside the recent range."""
        h = self.h
        vol_thresh = max(h.calm_volume_floor, params.min_volume_spike * h.calm_volume_mult)
        wick_thresh = max(h.calm_wick_floor, params.min_wick_ratio * h.calm_wick_mult)
        band = params.min_breakout_factor * h.calm_band_mult

        inside_range = (
            bar.close <= levels.recent_high * (1 + band)
            and bar.close >= levels.recent_low * (1 - band)
        )
        return (
            volume_spike <= vol_thresh
            and anatomy.upper_wick_ratio <= wick_thresh
            and anatomy.lower_wick_ratio <= wick_thresh
            and inside_range
        )

    def evaluate(
        self,
        index: int,
        bar: OHLCV,
        anatomy: CandleAnatomy,
        volume_spike: float,
        levels: ReferenceLevels,
        params: TrapParams,
        state: ScanState,
    ) -> tuple[Optional[NormalEvent], ScanState]:
        """Return a normal marker for ``index`` (or None) and the next state."""
        if not params.enable_normal_signal:
            return None, state
        if not self.is_calm(bar, anatomy, volume_spike, levels, params):
            return None, state

        debounce = max(self.h.normal_debounce_floor, params.normal_quiet_bars)
        if bars_since(index, state.last_trap) < params.normal_quiet_bars:
            return None, state
        if bars_since(index, state.last_normal) < debounce:
            return None, state

        return NormalEvent(index=index, timestamp=bar.timestamp), state.with_normal(index)
