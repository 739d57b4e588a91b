"""
Tally Core Resilience — Public API
====================================
Ledger health monitoring and degradation reporting.
"""

from core.resilience.modes import ResilienceMode, SystemHealth
from core.resilience.policy import LedgerHealthMonitor

__all__ = [
    "ResilienceMode",
    "SystemHealth",
    "LedgerHealthMonitor",
]
