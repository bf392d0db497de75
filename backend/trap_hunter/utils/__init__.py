# Shared utilities — formatters, validators
from trap_hunter.utils.formatters import (
    format_epoch_ms,
    format_event_label,
    format_event_row,
    format_price,
    format_score_pct,
)
from trap_hunter.utils.validators import MalformedBarError, validate_bar_count, validate_bars

__all__ = [
    "MalformedBarError",
    "format_epoch_ms",
    "format_event_label",
    "format_event_row",
    "format_price",
    "format_score_pct",
    "validate_bar_count",
    "validate_bars",
]
