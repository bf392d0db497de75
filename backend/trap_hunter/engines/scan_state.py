"""
Trap Hunter — Scan State

The only state carried across the forward pass: the index of the last
accepted event of each kind. Immutable; every step returns a new state.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Optional


@dataclass(frozen=True)
class ScanState:
    """Last accepted event indices; ``None`` means no prior event."""
    last_bull: Optional[int] = None
    last_bear: Optional[int] = None
    last_trap: Optional[int] = None
    last_normal: Optional[int] = None

    def with_bull(self, index: int) -> "ScanState":
        return replace(self, last_bull=index, last_trap=self._latest_trap(index))

    def with_bear(self, index: int) -> "ScanState":
        return replace(self, last_bear=index, last_trap=self._latest_trap(index))

    def with_normal(self, index: int) -> "ScanState":
        return replace(self, last_normal=index)

    def _latest_trap(self, index: int) -> int:
        # Confirmations can land ahead of later-evaluated bars; keep the furthest.
        if self.last_trap is None:
            return index
        return max(self.last_trap, index)


def bars_since(index: int, last: Optional[int]) -> float:
    """Distance from ``last`` to ``index``; infinite when there was no prior event."""
    if last is None:
        return math.inf
    return index - last
