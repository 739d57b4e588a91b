"""
Tally Core Resilience — System Health Modes
=============================================
Models degradation of the ledger's durability medium:
  NORMAL ⇄ DEGRADED

Health never blocks writes. A ledger failure is retryable, so the
caller decides whether to try again; DEGRADED only tells operators
that appends keep failing.
"""

from __future__ import annotations

from enum import Enum
from threading import Lock
from typing import Optional


# ══════════════════════════════════════════════════════════════
# RESILIENCE MODE ENUM
# ══════════════════════════════════════════════════════════════

class ResilienceMode(Enum):
    """System operational modes."""
    NORMAL = "NORMAL"       # Ledger appends succeeding
    DEGRADED = "DEGRADED"   # Repeated ledger failures


# ══════════════════════════════════════════════════════════════
# SYSTEM HEALTH STATE
# ══════════════════════════════════════════════════════════════

class SystemHealth:
    """
    Current system health state.

    Tracks the operational mode and the reason for any degradation.
    """

    def __init__(self, mode: ResilienceMode = ResilienceMode.NORMAL) -> None:
        self._mode = mode
        self._reason: Optional[str] = None
        self._lock = Lock()

    @property
    def mode(self) -> ResilienceMode:
        with self._lock:
            return self._mode

    @property
    def reason(self) -> Optional[str]:
        with self._lock:
            return self._reason

    @property
    def is_degraded(self) -> bool:
        return self.mode == ResilienceMode.DEGRADED

    def set_degraded(self, reason: str) -> None:
        """Transition to DEGRADED mode."""
        with self._lock:
            self._mode = ResilienceMode.DEGRADED
            self._reason = reason

    def recover(self) -> None:
        """Recover to NORMAL mode."""
        with self._lock:
            self._mode = ResilienceMode.NORMAL
            self._reason = None

    def to_dict(self) -> dict:
        with self._lock:
            return {"mode": self._mode.value, "reason": self._reason}
