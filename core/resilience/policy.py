"""
Tally Core Resilience — Ledger Health Policy
==============================================
Counts consecutive ledger append failures reported by the
transaction coordinator.

    failures >= threshold  →  DEGRADED (logged at ERROR once)
    next successful append →  NORMAL   (logged at WARNING)
"""

from __future__ import annotations

import logging
from threading import Lock

from core.resilience.modes import SystemHealth

logger = logging.getLogger("tally.resilience")


class LedgerHealthMonitor:

    def __init__(self, health: SystemHealth, failure_threshold: int = 3) -> None:
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1.")
        self._health = health
        self._threshold = failure_threshold
        self._consecutive_failures = 0
        self._lock = Lock()

    @property
    def health(self) -> SystemHealth:
        return self._health

    @property
    def consecutive_failures(self) -> int:
        with self._lock:
            return self._consecutive_failures

    def record_failure(self, reason: str) -> None:
        with self._lock:
            self._consecutive_failures += 1
            count = self._consecutive_failures
            crossed = count == self._threshold

        if crossed:
            self._health.set_degraded(
                f"{count} consecutive ledger failures; last: {reason}"
            )
            logger.error(
                f"Ledger DEGRADED after {count} consecutive failures: {reason}"
            )

    def record_success(self) -> None:
        with self._lock:
            had_failures = self._consecutive_failures > 0
            self._consecutive_failures = 0

        if had_failures and self._health.is_degraded:
            self._health.recover()
            logger.warning("Ledger recovered; system health back to NORMAL")
