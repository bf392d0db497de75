"""
Trap Hunter — Shared Formatters

Human-readable formatting for scores, prices, timestamps and event rows.
Used by the CLI table output.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Optional

from trap_hunter.models import EventKind, EventRecord

_KIND_LABELS = {
    EventKind.BULL_TRAP: "Bull Trap",
    EventKind.BEAR_TRAP: "Bear Trap",
    EventKind.NORMAL: "Stable",
}


def format_score_pct(score: Optional[float]) -> str:
    """Format a [0, 1] score as a whole percentage.

    >>> format_score_pct(0.734)
    '73%'
    >>> format_score_pct(None)
    '—'
    """
    if score is None or (isinstance(score, float) and math.isnan(score)):
        return "—"
    return f"{score * 100:.0f}%"


def format_price(value: Optional[float], precision: int = 2) -> str:
    """Fixed-precision price, or a dash when absent.

    >>> format_price(100.1234)
    '100.12'
    """
    if value is None:
        return "—"
    return f"{value:.{precision}f}"


def format_epoch_ms(ms: int) -> str:
    """Format an epoch-millisecond timestamp as UTC.

    >>> format_epoch_ms(0)
    '1970-01-01 00:00:00'
    """
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def format_event_label(record: EventRecord) -> str:
    """Short label, e.g. ``'Bull Trap 73%'`` or ``'Stable'``."""
    label = _KIND_LABELS[record.kind]
    if record.kind is EventKind.NORMAL:
        return label
    return f"{label} {format_score_pct(record.score)}"


def format_event_row(record: EventRecord, precision: int = 2) -> str:
    """One aligned text-table row for an event."""
    return (
        f"{record.index:>6}  {format_epoch_ms(record.timestamp)}  "
        f"{format_event_label(record):<14}  "
        f"level={format_price(record.breakout_level, precision):>10}  "
        f"reversal={format_price(record.reversal_close, precision):>10}"
    )
