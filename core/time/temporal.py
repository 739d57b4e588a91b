"""
Tally Core Time — Buckets & Deadlines
=======================================
Pure helpers for stats time buckets, plus the monotonic Deadline
used by the transaction coordinator for lock acquisition.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Callable, Optional


BUCKET_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


# ══════════════════════════════════════════════════════════════
# TIME BUCKETS
# ══════════════════════════════════════════════════════════════

def bucket_start(dt: datetime, bucket_seconds: int) -> datetime:
    """Floor a timezone-aware datetime to its bucket boundary (UTC)."""
    if dt.tzinfo is None:
        raise ValueError("bucket_start requires timezone-aware datetime.")
    if bucket_seconds <= 0:
        raise ValueError("bucket_seconds must be positive.")
    epoch = int(dt.timestamp())
    floored = epoch - (epoch % bucket_seconds)
    return datetime.fromtimestamp(floored, tz=timezone.utc)


def bucket_label(dt: datetime, bucket_seconds: int) -> str:
    """Label of the bucket containing dt, e.g. '2026-10-18T12:34:00Z'."""
    return bucket_start(dt, bucket_seconds).strftime(BUCKET_FORMAT)


def parse_bucket_label(label: str) -> datetime:
    return datetime.strptime(label, BUCKET_FORMAT).replace(tzinfo=timezone.utc)


# ══════════════════════════════════════════════════════════════
# DEADLINE
# ══════════════════════════════════════════════════════════════

class Deadline:
    """
    Point on the monotonic clock after which work must not start.

    Deadline(None) never expires.
    """

    def __init__(
        self,
        seconds: Optional[float],
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        if seconds is not None and seconds < 0:
            raise ValueError("deadline seconds cannot be negative.")
        self._monotonic = monotonic
        self._expires_at = None if seconds is None else monotonic() + seconds

    @classmethod
    def never(cls) -> Deadline:
        return cls(None)

    @property
    def is_bounded(self) -> bool:
        return self._expires_at is not None

    def remaining(self) -> Optional[float]:
        """Seconds left (never below zero), or None when unbounded."""
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - self._monotonic())

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def cap(self, timeout: float) -> float:
        """Shorten a timeout so it does not outlive this deadline."""
        remaining = self.remaining()
        if remaining is None:
            return timeout
        return min(timeout, remaining)
