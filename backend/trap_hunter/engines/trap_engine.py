"""
Trap Hunter — Trap Detection Engine

Detects bull traps (false upside breakouts that reverse back below the
recent high) and bear traps (false breakdowns that reverse back above the
recent low) over an OHLCV series, in one forward pass.

Per bar:
  1. Breakout test against the recent high / low
  2. Initiation filter (candle direction, close location, lower wick on the bear side)
  3. Volume spike filter against the trailing baseline
  4. Bounded confirmation search for a reversal close
  5. Evidence window: max rejection wick, strongly opposing candle
  6. Composite score (breakout, volume, wick, reversal)
  7. Acceptance with per-kind spacing

The bear branch is intentionally more lenient (breakout factor x0.85,
volume requirement x0.9, lower-wick initiation path).

Pure domain logic, no I/O.
"""

from __future__ import annotations

import time
from typing import Callable, Optional, Sequence

import pandas as pd
import structlog

from trap_hunter.engines.heuristics import DEFAULT_HEURISTICS, TrapHeuristics
from trap_hunter.engines.level_tracker import (
    CandleAnatomy,
    LevelTracker,
    ReferenceLevels,
    bar_anatomy,
)
from trap_hunter.engines.scan_state import ScanState, bars_since
from trap_hunter.engines.stability_engine import StabilityEngine
from trap_hunter.models import (
    OHLCV,
    EventKind,
    EventRecord,
    TrapEvent,
    TrapKind,
    TrapParams,
    TrapResult,
    TrapScanResult,
)
from trap_hunter.utils.validators import validate_bars

log = structlog.get_logger(__name__)

_EMPTY = TrapResult()


def _clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    return max(lo, min(hi, value))


class TrapEngine:
    """Bull/bear trap detector with debounced normal-state markers.

    Usage:
        engine = TrapEngine()
        results = engine.detect(bars)            # one TrapResult per bar
        scan = engine.scan(bars, params)         # results + sparse events
    """

    def __init__(self, heuristics: TrapHeuristics = DEFAULT_HEURISTICS):
        self.h = heuristics
        self.stability = StabilityEngine(heuristics)

    # ──────────────────────────────────────────
    # Public API
    # ──────────────────────────────────────────

    def detect(
        self,
        bars: Sequence[OHLCV],
        params: Optional[TrapParams] = None,
    ) -> list[TrapResult]:
        """Classify every bar. The result is index-aligned with ``bars``.

        Bars are assumed well-formed (see ``validate_bars``); the input is
        never mutated.
        """
        params = params or TrapParams()
        n = len(bars)
        slots: list[TrapResult] = [_EMPTY] * n
        if n == 0:
            return slots

        tracker = LevelTracker(bars, params)
        state = ScanState()
        for i in range(1, n):
            state = self._step(bars, i, tracker, params, state, slots)
        return slots

    def scan(
        self,
        bars: Sequence[OHLCV],
        params: Optional[TrapParams] = None,
        validate: bool = False,
    ) -> TrapScanResult:
        """Run :meth:`detect` and summarize the sparse event list.

        Raises:
            MalformedBarError: when ``validate`` is set and a bar breaks the
                OHLC ordering, volume, or timestamp preconditions.
        """
        start = time.perf_counter()
        if validate:
            validate_bars(bars)

        results = self.detect(bars, params)
        events = [r.to_record() for r in results if not r.is_empty]
        elapsed_ms = round((time.perf_counter() - start) * 1000, 2)

        bull = sum(1 for e in events if e.kind is EventKind.BULL_TRAP)
        bear = sum(1 for e in events if e.kind is EventKind.BEAR_TRAP)
        normal = sum(1 for e in events if e.kind is EventKind.NORMAL)

        log.info(
            "trap_scan.complete",
            bars=len(bars),
            bull=bull,
            bear=bear,
            normal=normal,
            elapsed_ms=elapsed_ms,
        )

        return TrapScanResult(
            bar_count=len(bars),
            results=results,
            events=events,
            bull_count=bull,
            bear_count=bear,
            normal_count=normal,
            elapsed_ms=elapsed_ms,
        )

    # ──────────────────────────────────────────
    # Forward pass
    # ──────────────────────────────────────────

    def _step(
        self,
        bars: Sequence[OHLCV],
        i: int,
        tracker: LevelTracker,
        params: TrapParams,
        state: ScanState,
        slots: list[TrapResult],
    ) -> ScanState:
        """Evaluate bar ``i``: bull branch, then bear branch, then stability."""
        levels = tracker.levels_at(i)
        if levels is None:
            return state

        bar = bars[i]
        spike = tracker.volume_spike(i)
        anatomy = bar_anatomy(bar)
        spacing = self.h.min_trap_spacing

        bull = self._evaluate_bull(bars, i, levels, anatomy, spike, params)
        if bull is not None and bars_since(bull.index, state.last_bull) >= spacing:
            self._write(slots, bull)
            state = state.with_bull(bull.index)

        bear = self._evaluate_bear(bars, i, levels, anatomy, spike, params)
        if bear is not None and bars_since(bear.index, state.last_bear) >= spacing:
            self._write(slots, bear)
            state = state.with_bear(bear.index)

        if slots[i].is_empty:
            normal, state = self.stability.evaluate(i, bar, anatomy, spike, levels, params, state)
            if normal is not None:
                slots[i] = TrapResult(normal=normal)

        return state

    @staticmethod
    def _write(slots: list[TrapResult], event: TrapEvent) -> None:
        """Last writer wins: a later trap at the same index replaces the earlier one."""
        previous = slots[event.index].trap
        if previous is not None:
            log.debug(
                "trap_scan.slot_overwritten",
                index=event.index,
                previous=previous.kind.value,
                previous_score=round(previous.score, 4),
                current=event.kind.value,
                current_score=round(event.score, 4),
            )
        slots[event.index] = TrapResult(trap=event)

    # ──────────────────────────────────────────
    # Bull trap branch
    # ──────────────────────────────────────────

    def _evaluate_bull(
        self,
        bars: Sequence[OHLCV],
        i: int,
        levels: ReferenceLevels,
        anatomy: CandleAnatomy,
        spike: float,
        params: TrapParams,
    ) -> Optional[TrapEvent]:
        """Score a bull-trap candidate at ``i``; None if it fails any gate.

        Spacing against earlier bull traps is applied by the caller.
        """
        h = self.h
        bar = bars[i]
        level = levels.recent_high
        factor = params.min_breakout_factor

        if bar.high < level * (1 + factor):
            return None

        close_near_high = (
            anatomy.range > 0
            and (bar.high - bar.close) / anatomy.range < h.close_near_extreme_ratio
        )
        if not (bar.close > bar.open or close_near_high):
            return None

        if spike < params.min_volume_spike:
            return None

        confirmed = self._find_confirmation(
            bars, i, params.confirmation_bars, lambda b: b.close < level,
        )
        if confirmed is None:
            return None

        # Evidence: longest upper wick, any strongly bearish candle
        window_end = min(confirmed, i + params.max_trap_bars)
        max_wick = anatomy.upper_wick_ratio
        strong_bearish = False
        for k in range(i, window_end + 1):
            parts = bar_anatomy(bars[k])
            max_wick = max(max_wick, parts.upper_wick_ratio)
            if bars[k].close < bars[k].open and self._is_strong_body(parts):
                strong_bearish = True

        confirm_close = bars[confirmed].close
        eps = h.epsilon
        score = self._composite_score(
            breakout=((bar.high - level) / max(eps, level)) / max(eps, factor * h.breakout_strength_scale),
            volume=spike / max(eps, params.min_volume_spike * h.volume_strength_scale),
            wick=max_wick,
            reversal=(bar.high - confirm_close) / max(eps, bar.high),
        )

        if not (max_wick >= params.min_wick_ratio or strong_bearish):
            return None
        if score < params.min_trap_score:
            return None

        return TrapEvent(
            kind=TrapKind.BULL,
            index=confirmed,
            score=score,
            breakout_level=level,
            reversal_close=confirm_close,
            timestamp=bars[confirmed].timestamp,
        )

    # ──────────────────────────────────────────
    # Bear trap branch
    # ──────────────────────────────────────────

    def _evaluate_bear(
        self,
        bars: Sequence[OHLCV],
        i: int,
        levels: ReferenceLevels,
        anatomy: CandleAnatomy,
        spike: float,
        params: TrapParams,
    ) -> Optional[TrapEvent]:
        """Mirror of the bull branch with looser breakdown and volume gates."""
        h = self.h
        bar = bars[i]
        level = levels.recent_low
        factor = params.min_breakout_factor * h.bear_breakout_leniency
        min_spike = params.min_volume_spike * h.bear_volume_leniency

        if bar.low > level * (1 - factor):
            return None

        # Breakdown candle, close near the lows, or a hammer-style lower wick
        close_near_low = (
            anatomy.range > 0
            and (bar.close - bar.low) / anatomy.range < h.close_near_extreme_ratio
        )
        if not (
            bar.close < bar.open
            or close_near_low
            or anatomy.lower_wick_ratio >= params.min_wick_ratio
        ):
            return None

        if spike < min_spike:
            return None

        confirmed = self._find_confirmation(
            bars, i, params.confirmation_bars, lambda b: b.close > level,
        )
        if confirmed is None:
            return None

        window_end = min(confirmed, i + params.max_trap_bars)
        max_wick = anatomy.lower_wick_ratio
        strong_bullish = False
        for k in range(i, window_end + 1):
            parts = bar_anatomy(bars[k])
            max_wick = max(max_wick, parts.lower_wick_ratio)
            if bars[k].close > bars[k].open and self._is_strong_body(parts):
                strong_bullish = True

        confirm_close = bars[confirmed].close
        eps = h.epsilon
        score = self._composite_score(
            breakout=((level - bar.low) / max(eps, level)) / max(eps, factor * h.breakout_strength_scale),
            volume=spike / max(eps, min_spike * h.volume_strength_scale),
            wick=max_wick,
            reversal=(confirm_close - bar.low) / max(eps, confirm_close),
        )

        if not (max_wick >= params.min_wick_ratio or strong_bullish):
            return None
        if score < params.min_trap_score:
            return None

        return TrapEvent(
            kind=TrapKind.BEAR,
            index=confirmed,
            score=score,
            breakout_level=level,
            reversal_close=confirm_close,
            timestamp=bars[confirmed].timestamp,
        )

    # ──────────────────────────────────────────
    # Helpers
    # ──────────────────────────────────────────

    @staticmethod
    def _find_confirmation(
        bars: Sequence[OHLCV],
        i: int,
        confirmation_bars: int,
        reversed_close: Callable[[OHLCV], bool],
    ) -> Optional[int]:
        """First index in ``[i, i + confirmation_bars]`` whose close is back inside the level."""
        last = min(len(bars) - 1, i + confirmation_bars)
        for j in range(i, last + 1):
            if reversed_close(bars[j]):
                return j
        return None

    def _is_strong_body(self, parts: CandleAnatomy) -> bool:
        return parts.range > 0 and parts.body_ratio >= self.h.strong_body_ratio

    def _composite_score(
        self,
        breakout: float,
        volume: float,
        wick: float,
        reversal: float,
    ) -> float:
        """Weighted sum of the four clamped strengths, clamped to [0, 1]."""
        h = self.h
        return _clamp(
            h.weight_breakout * _clamp(breakout)
            + h.weight_volume * _clamp(volume)
            + h.weight_wick * _clamp(wick)
            + h.weight_reversal * _clamp(reversal)
        )

    # ──────────────────────────────────────────
    # DataFrame bridges
    # ──────────────────────────────────────────

    @staticmethod
    def bars_from_dataframe(df: pd.DataFrame) -> list[OHLCV]:
        """Convert an OHLCV DataFrame to bars.

        Accepts a DatetimeIndex or a ``timestamp`` column (datetimes or
        epoch milliseconds). Column names are matched case-insensitively;
        a missing ``volume`` column is treated as zero volume.
        """
        frame = df.copy()
        frame.columns = [str(c).strip().lower() for c in frame.columns]
        if "timestamp" not in frame.columns:
            if not isinstance(frame.index, pd.DatetimeIndex):
                raise ValueError("DataFrame must have a DatetimeIndex or 'timestamp' column")
            frame = frame.rename_axis("timestamp").reset_index()

        missing = [c for c in ("open", "high", "low", "close") if c not in frame.columns]
        if missing:
            raise ValueError(f"DataFrame is missing columns: {', '.join(missing)}")

        ts = frame["timestamp"]
        if pd.api.types.is_numeric_dtype(ts):
            epoch_ms = ts.astype("int64")
        else:
            ts = pd.to_datetime(ts, utc=True)
            epoch_ms = (ts - pd.Timestamp(0, tz="UTC")) // pd.Timedelta(milliseconds=1)

        volume = frame["volume"] if "volume" in frame.columns else pd.Series(0.0, index=frame.index)

        return [
            OHLCV(
                timestamp=int(t),
                open=float(o),
                high=float(hi),
                low=float(lo),
                close=float(c),
                volume=float(v),
            )
            for t, o, hi, lo, c, v in zip(
                epoch_ms.to_numpy(),
                frame["open"].to_numpy(),
                frame["high"].to_numpy(),
                frame["low"].to_numpy(),
                frame["close"].to_numpy(),
                volume.to_numpy(),
            )
        ]

    @staticmethod
    def records_to_dataframe(records: Sequence[EventRecord]) -> pd.DataFrame:
        """Flat event table: index, kind, score, breakout_level, reversal_close, timestamp."""
        rows = [r.model_dump(mode="json") for r in records]
        return pd.DataFrame(rows, columns=list(EventRecord.model_fields))


_default_engine = TrapEngine()


def detect(bars: Sequence[OHLCV], params: Optional[TrapParams] = None) -> list[TrapResult]:
    """Module-level shortcut for ``TrapEngine().detect``."""
    return _default_engine.detect(bars, params)
