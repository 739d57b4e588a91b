"""
Tally Ledger — Public API
===========================
Django-free pieces only; the durable ledger is
core.ledger.repository.DjangoLedger.
"""

from core.ledger.base import Ledger, LedgerRange
from core.ledger.entry import LedgerDraft, LedgerEntry
from core.ledger.hashing import GENESIS_HASH, canonical_serialize, compute_entry_hash
from core.ledger.memory import InMemoryLedger
from core.ledger.verifier import LedgerIntegrityCode, LedgerVerification, verify_ledger

__all__ = [
    "Ledger",
    "LedgerRange",
    "LedgerDraft",
    "LedgerEntry",
    "GENESIS_HASH",
    "canonical_serialize",
    "compute_entry_hash",
    "InMemoryLedger",
    "LedgerIntegrityCode",
    "LedgerVerification",
    "verify_ledger",
]
