"""
Trap Hunter — Input Validators

Precondition checks for bar series. The detector itself does not validate;
callers that accept untrusted input (API, CLI) run these first.
Raise ValueError subclasses so callers can map them to 4xx responses.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

from trap_hunter.models import OHLCV


class MalformedBarError(ValueError):
    """A bar violates the OHLCV preconditions."""

    def __init__(self, index: int, reason: str):
        self.index = index
        self.reason = reason
        super().__init__(f"Malformed bar at index {index}: {reason}")


def validate_bars(bars: Sequence[OHLCV]) -> None:
    """Fail fast on the first bar that breaks the series contract.

    Checks, per bar: finite prices and volume,
    ``low <= min(open, close) <= max(open, close) <= high``, ``volume >= 0``,
    and strictly increasing timestamps across the series.

    Raises:
        MalformedBarError: with the offending index and a reason.
    """
    if not bars:
        return

    o = np.array([b.open for b in bars], dtype=float)
    h = np.array([b.high for b in bars], dtype=float)
    lo = np.array([b.low for b in bars], dtype=float)
    c = np.array([b.close for b in bars], dtype=float)
    v = np.array([b.volume for b in bars], dtype=float)
    ts = np.array([b.timestamp for b in bars], dtype=np.int64)

    body_top = np.maximum(o, c)
    body_bot = np.minimum(o, c)

    # Ordered so the reported reason is the most basic one at that index
    checks = [
        (~np.isfinite(np.stack([o, h, lo, c, v])).all(axis=0), "non-finite price or volume"),
        (lo > body_bot, "low is above the candle body"),
        (h < body_top, "high is below the candle body"),
        (v < 0, "negative volume"),
    ]
    ts_bad = np.zeros(len(bars), dtype=bool)
    ts_bad[1:] = np.diff(ts) <= 0
    checks.append((ts_bad, "timestamp is not strictly increasing"))

    first_index = None
    first_reason = ""
    for mask, reason in checks:
        hits = np.flatnonzero(mask)
        if hits.size and (first_index is None or hits[0] < first_index):
            first_index = int(hits[0])
            first_reason = reason

    if first_index is not None:
        raise MalformedBarError(first_index, first_reason)


def validate_bar_count(count: int, max_bars: int) -> int:
    """Reject series longer than ``max_bars``.

    >>> validate_bar_count(10, 100)
    10
    """
    if count > max_bars:
        raise ValueError(f"Series of {count} bars exceeds maximum of {max_bars} bars")
    return count
