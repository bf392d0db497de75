"""
Trap Hunter — Models, Validators & Formatters Test Suite
"""

import math

import pytest
from pydantic import ValidationError

from trap_hunter.models import (
    CALC_PARAM_ORDER,
    OHLCV,
    EventKind,
    EventRecord,
    NormalEvent,
    TrapEvent,
    TrapKind,
    TrapParams,
    TrapResult,
)
from trap_hunter.utils import (
    MalformedBarError,
    format_epoch_ms,
    format_event_label,
    format_event_row,
    format_price,
    format_score_pct,
    validate_bar_count,
    validate_bars,
)


def _bar(i, o=10.0, h=11.0, lo=9.0, c=10.5, v=100.0):
    return OHLCV(timestamp=i * 1000, open=o, high=h, low=lo, close=c, volume=v)


def _bull_event(**overrides):
    data = dict(
        kind=TrapKind.BULL, index=25, score=0.734,
        breakout_level=100.1, reversal_close=100.05, timestamp=0,
    )
    data.update(overrides)
    return TrapEvent(**data)


# ═══════════════════════════════════════════════
#  PARAMETERS
# ═══════════════════════════════════════════════

class TestTrapParams:
    """Defaults, clamping, and the positional vector."""

    def test_defaults(self):
        p = TrapParams()
        assert p.to_calc_params() == [20, 20, 3, 5, 20, 1.3, 0.0007, 0.35, 0.5, 1, 5]

    def test_integer_params_clamped(self):
        p = TrapParams(confirmation_bars=0, max_trap_bars=-3, volume_ma_period=0, normal_quiet_bars=0)
        assert p.confirmation_bars == 1
        assert p.max_trap_bars == 1
        assert p.volume_ma_period == 1
        assert p.normal_quiet_bars == 1

    def test_from_calc_params(self):
        p = TrapParams.from_calc_params([30, 25, 2, 4, 10, 1.5, 0.001, 0.4, 0.6, 0, 7])
        assert p.resistance_lookback == 30
        assert p.support_lookback == 25
        assert p.min_volume_spike == 1.5
        assert p.enable_normal_signal is False
        assert p.normal_quiet_bars == 7

    def test_fractional_bar_counts_truncated(self):
        p = TrapParams.from_calc_params([20.9, 14.2, 2.5, 0.4, 19.99, 1.3, 0.0007, 0.35, 0.5, 1, 5.5])
        assert p.resistance_lookback == 20
        assert p.support_lookback == 14
        assert p.confirmation_bars == 2
        assert p.max_trap_bars == 1
        assert p.volume_ma_period == 19
        assert p.normal_quiet_bars == 5

    def test_fractional_keyword_params(self):
        p = TrapParams(confirmation_bars=2.5, max_trap_bars=-0.5, resistance_lookback="12.8")
        assert p.confirmation_bars == 2
        assert p.max_trap_bars == 1
        assert p.resistance_lookback == 12

    def test_non_finite_bar_count_rejected(self):
        with pytest.raises(ValidationError, match="finite"):
            TrapParams.from_calc_params([20, 20, float("inf")])

    def test_from_calc_params_partial(self):
        p = TrapParams.from_calc_params([10, None, 2])
        assert p.resistance_lookback == 10
        assert p.support_lookback == 20
        assert p.confirmation_bars == 2
        assert p.min_trap_score == 0.5

    def test_round_trip(self):
        p = TrapParams(min_trap_score=0.7, enable_normal_signal=False)
        assert TrapParams.from_calc_params(p.to_calc_params()) == p

    def test_order_length(self):
        assert len(CALC_PARAM_ORDER) == 11
        assert CALC_PARAM_ORDER[9] == "enable_normal_signal"


# ═══════════════════════════════════════════════
#  RESULTS
# ═══════════════════════════════════════════════

class TestTrapResult:
    """Per-bar slot semantics."""

    def test_empty(self):
        r = TrapResult()
        assert r.is_empty
        assert r.kind is None
        assert r.to_record() is None

    def test_bull(self):
        r = TrapResult(trap=_bull_event())
        assert r.bull_trap and not r.bear_trap and not r.is_normal
        record = r.to_record()
        assert record.kind is EventKind.BULL_TRAP
        assert record.score == 0.734

    def test_normal(self):
        r = TrapResult(normal=NormalEvent(index=3, timestamp=3000))
        assert r.kind is EventKind.NORMAL
        record = r.to_record()
        assert record.score is None
        assert record.breakout_level is None

    def test_score_bounds(self):
        with pytest.raises(ValidationError):
            _bull_event(score=1.2)

    def test_frozen(self):
        event = _bull_event()
        with pytest.raises(ValidationError):
            event.score = 0.1


# ═══════════════════════════════════════════════
#  VALIDATORS
# ═══════════════════════════════════════════════

class TestValidators:
    """Malformed-bar detection."""

    def test_valid_series(self):
        validate_bars([_bar(i) for i in range(5)])

    def test_empty_series(self):
        validate_bars([])

    def test_low_above_body(self):
        bars = [_bar(i) for i in range(5)]
        bars[3] = _bar(3, lo=10.2)
        with pytest.raises(MalformedBarError) as exc:
            validate_bars(bars)
        assert exc.value.index == 3
        assert exc.value.reason == "low is above the candle body"

    def test_high_below_body(self):
        bars = [_bar(i) for i in range(5)]
        bars[2] = _bar(2, h=10.4)
        with pytest.raises(MalformedBarError) as exc:
            validate_bars(bars)
        assert exc.value.index == 2

    def test_negative_volume(self):
        bars = [_bar(i) for i in range(3)]
        bars[1] = _bar(1, v=-1.0)
        with pytest.raises(MalformedBarError, match="negative volume"):
            validate_bars(bars)

    def test_non_finite(self):
        bars = [_bar(i) for i in range(3)]
        bars[2] = _bar(2, c=math.nan)
        with pytest.raises(MalformedBarError, match="non-finite"):
            validate_bars(bars)

    def test_timestamps_strictly_increasing(self):
        bars = [_bar(0), _bar(1), _bar(1)]
        with pytest.raises(MalformedBarError) as exc:
            validate_bars(bars)
        assert exc.value.index == 2

    def test_earliest_index_reported(self):
        bars = [_bar(i) for i in range(6)]
        bars[4] = _bar(4, v=-5.0)
        bars[1] = _bar(1, lo=10.9)
        with pytest.raises(MalformedBarError) as exc:
            validate_bars(bars)
        assert exc.value.index == 1

    def test_is_value_error(self):
        assert issubclass(MalformedBarError, ValueError)

    def test_bar_count(self):
        assert validate_bar_count(10, 100) == 10
        with pytest.raises(ValueError, match="exceeds maximum"):
            validate_bar_count(101, 100)


# ═══════════════════════════════════════════════
#  FORMATTERS
# ═══════════════════════════════════════════════

class TestFormatters:
    """Human-readable output helpers."""

    def test_score_pct(self):
        assert format_score_pct(0.734) == "73%"
        assert format_score_pct(1.0) == "100%"
        assert format_score_pct(None) == "—"
        assert format_score_pct(float("nan")) == "—"

    def test_price(self):
        assert format_price(100.1234) == "100.12"
        assert format_price(100.1234, precision=4) == "100.1234"
        assert format_price(None) == "—"

    def test_epoch_ms(self):
        assert format_epoch_ms(0) == "1970-01-01 00:00:00"
        assert format_epoch_ms(1_704_067_200_000) == "2024-01-01 00:00:00"

    def test_labels(self):
        bull = TrapResult(trap=_bull_event()).to_record()
        bear = TrapResult(trap=_bull_event(kind=TrapKind.BEAR, score=0.61)).to_record()
        normal = EventRecord(index=3, kind=EventKind.NORMAL, timestamp=0)
        assert format_event_label(bull) == "Bull Trap 73%"
        assert format_event_label(bear) == "Bear Trap 61%"
        assert format_event_label(normal) == "Stable"

    def test_event_row(self):
        record = TrapResult(trap=_bull_event()).to_record()
        row = format_event_row(record)
        assert "Bull Trap 73%" in row
        assert "100.10" in row
        assert "100.05" in row
        assert row.lstrip().startswith("25")
