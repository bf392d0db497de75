"""
Trap Hunter — Heuristic Constants

Every tuning constant used by the trap and stability engines, grouped in
one frozen surface so it can be overridden per engine instance without
touching control flow.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class TrapHeuristics:
    """Fixed heuristics of the trap detector (not user parameters)."""

    # Composite score weights (sum to 1)
    weight_breakout: float = 0.3
    weight_volume: float = 0.3
    weight_wick: float = 0.2
    weight_reversal: float = 0.2

    # Breakout strength saturates at this multiple of the breakout factor
    breakout_strength_scale: float = 3.0
    # Volume strength saturates at this multiple of the spike requirement
    volume_strength_scale: float = 2.0

    # Close within this fraction of the range from the extreme counts as "near"
    close_near_extreme_ratio: float = 0.4
    # Body/range ratio of a strongly directional candle
    strong_body_ratio: float = 0.45

    # Bear branch leniency, applied to the breakout factor and spike requirement
    bear_breakout_leniency: float = 0.85
    bear_volume_leniency: float = 0.9

    # Minimum index distance between two traps of the same kind
    min_trap_spacing: int = 2

    # Stability (normal) state
    calm_volume_mult: float = 0.85
    calm_volume_floor: float = 1.0
    calm_wick_mult: float = 0.8
    calm_wick_floor: float = 0.1
    calm_band_mult: float = 0.5
    normal_debounce_floor: int = 8

    # Floor for denominators derived from prices or parameters
    epsilon: float = 1e-8


DEFAULT_HEURISTICS = TrapHeuristics()
