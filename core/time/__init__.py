"""
Tally Core Time — Public API
==============================
Injectable clock, stats time buckets and monotonic deadlines.
"""

from core.time.clock import Clock, FixedClock, SystemClock
from core.time.temporal import (
    BUCKET_FORMAT,
    Deadline,
    bucket_label,
    bucket_start,
    parse_bucket_label,
)

__all__ = [
    "Clock",
    "FixedClock",
    "SystemClock",
    "BUCKET_FORMAT",
    "Deadline",
    "bucket_label",
    "bucket_start",
    "parse_bucket_label",
]
