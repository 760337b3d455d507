"""Epoch-millisecond timestamps as stored in SQLite."""

from __future__ import annotations

import time
from datetime import datetime, timezone


def now_ms() -> int:
    return time.time_ns() // 1_000_000


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def from_ms(value: int) -> datetime:
    """Convert a stored ``created_at`` column back to an aware UTC datetime."""
    return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)


__all__ = ["from_ms", "now_ms", "utc_now"]
