"""
Tally Core Time — Injectable Clock
====================================
Ledger timestamps and stats buckets read time through a Clock,
never through datetime.now() directly. Tests inject FixedClock.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Protocol


class Clock(Protocol):
    """Injectable time source."""

    def now_utc(self) -> datetime:
        """Return current UTC time."""
        ...  # pragma: no cover


class SystemClock:
    """Production clock: real system time."""

    def now_utc(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """
    Test clock. Returns a fixed timestamp until advanced.

    Usage:
        clock = FixedClock(datetime(2026, 1, 1, tzinfo=timezone.utc))
        clock.advance(60)
    """

    def __init__(self, fixed_dt: datetime) -> None:
        if fixed_dt.tzinfo is None:
            raise ValueError("FixedClock requires timezone-aware datetime.")
        self._fixed_dt = fixed_dt
        self._lock = Lock()

    def now_utc(self) -> datetime:
        with self._lock:
            return self._fixed_dt

    def advance(self, seconds: float) -> None:
        with self._lock:
            self._fixed_dt = self._fixed_dt + timedelta(seconds=seconds)
