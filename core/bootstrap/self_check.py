"""
Tally Bootstrap — Self-Check Orchestrator
===========================================
Runs every invariant check once, at startup. The first failure is
logged and re-raised; nothing is repaired.

Check order:
1. Entity store and ledger tables exist
2. Ledger immutability guards active
3. Ledger sequence and hash chain intact
"""

import logging

from core.bootstrap.errors import SystemBootstrapError
from core.bootstrap.invariants import (
    check_immutability_guards,
    check_ledger_chain,
    check_tables,
)

logger = logging.getLogger("tally.bootstrap")

CHECKS = (
    check_tables,
    check_immutability_guards,
    check_ledger_chain,
)


def run_bootstrap_checks(checks=CHECKS):
    """Called once from BootstrapConfig.ready()."""
    logger.info("Tally bootstrap self-check starting")
    for check in checks:
        try:
            check()
        except SystemBootstrapError as exc:
            logger.critical(
                f"Bootstrap check {check.__name__} failed: {exc.to_dict()}"
            )
            raise
    logger.info(f"Tally bootstrap self-check passed ({len(checks)} checks)")
