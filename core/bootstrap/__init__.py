"""
Tally Bootstrap — Startup Self-Check
======================================
Ensures Tally never serves requests over a damaged ledger.
"""

from core.bootstrap.errors import SystemBootstrapError

__all__ = [
    "SystemBootstrapError",
]
