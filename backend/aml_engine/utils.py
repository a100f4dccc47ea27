"""
utils.py – Small numeric and time helpers shared by the scorer and analyzers.
"""
from __future__ import annotations

import math
from datetime import datetime, timezone


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positives (2.5 → 3), unlike built-in round()."""
    return int(math.floor(value + 0.5))


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(value, high))


def percentage(count: int, total: int) -> int:
    """``count / total`` as an integer percentage in [0, 100]; 0 when total is 0."""
    if total <= 0:
        return 0
    return round_half_up(clamp(count / total * 100.0))


def to_utc(ts: datetime) -> datetime:
    """Naive timestamps are read as UTC; aware ones are converted."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)
