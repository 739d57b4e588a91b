"""
Tally Bootstrap — Invariant Checks
====================================
Each function verifies one system law.
If any check fails → SystemBootstrapError is raised.

These checks do NOT:
- Auto-fix anything
- Run migrations
- Create tables
"""

import logging

from django.db import connection

from core.bootstrap.errors import SystemBootstrapError

logger = logging.getLogger("tally.bootstrap")

REQUIRED_TABLES = ("tally_entity_store", "tally_ledger")


# ══════════════════════════════════════════════════════════════
# CHECK 1: Tables Exist
# ══════════════════════════════════════════════════════════════

def check_tables():
    """
    Verify the entity store and ledger tables exist.
    If missing → refuse start. No auto-migration.
    """
    table_names = set(connection.introspection.table_names())
    missing = [name for name in REQUIRED_TABLES if name not in table_names]

    if missing:
        raise SystemBootstrapError(
            invariant="TABLES_MISSING",
            detail=(
                f"Table(s) {missing} do not exist. "
                f"Run migrations before starting Tally."
            ),
        )

    logger.info("✓ Entity store and ledger tables exist.")


# ══════════════════════════════════════════════════════════════
# CHECK 2: Ledger Immutability Guards Active
# ══════════════════════════════════════════════════════════════

def check_immutability_guards():
    """
    Verify LedgerRecord.save() blocks updates and delete() raises.
    Uses a non-persisted instance; the database is not touched.
    """
    from datetime import datetime, timezone
    from core.ledger.models import LedgerRecord

    sample = LedgerRecord(
        sequence_number=1,
        operation_id="bootstrap-guard-sample",
        operation_type="bootstrap.guard.sample",
        affected_keys=[],
        before={},
        after={},
        payload={},
        timestamp=datetime.now(timezone.utc),
        previous_hash="",
        entry_hash="",
    )
    # looks like a loaded row
    sample._state.adding = False

    try:
        sample.save()
    except PermissionError:
        pass
    else:
        raise SystemBootstrapError(
            invariant="IMMUTABILITY_GUARD_SAVE",
            detail="LedgerRecord.save() did NOT block an update.",
        )

    try:
        sample.delete()
    except PermissionError:
        pass
    else:
        raise SystemBootstrapError(
            invariant="IMMUTABILITY_GUARD_DELETE",
            detail="LedgerRecord.delete() did NOT raise PermissionError.",
        )

    logger.info("✓ Ledger immutability guards active (save/delete blocked).")


# ══════════════════════════════════════════════════════════════
# CHECK 3: Ledger Sequence & Hash Chain
# ══════════════════════════════════════════════════════════════

def check_ledger_chain(ledger=None):
    """
    Full walk of the ledger: gap-free sequence numbers, intact hash
    links, and recomputed hashes.
    """
    from core.ledger.repository import DjangoLedger
    from core.ledger.verifier import verify_ledger

    ledger = ledger or DjangoLedger()
    result = verify_ledger(ledger.read_range())

    if not result.ok:
        raise SystemBootstrapError(
            invariant=f"LEDGER_{result.code}",
            detail=f"at #{result.sequence_number}: {result.message}",
            sequence_number=result.sequence_number,
        )

    logger.info(f"✓ Ledger chain intact ({result.entries_checked} entries).")
