"""
Tally Ledger — Chain Verifier
===============================
Walks a ledger range and checks, for every entry:
1. sequence_number is exactly previous + 1 (gap-free, increasing)
2. previous_hash equals the preceding entry's entry_hash
   (GENESIS for sequence 1)
3. entry_hash matches the recomputed hash

The verifier never repairs anything. It reports the first break.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from core.ledger.entry import LedgerEntry
from core.ledger.hashing import GENESIS_HASH


class LedgerIntegrityCode:
    SEQUENCE_GAP = "SEQUENCE_GAP"
    HASH_CHAIN_BROKEN = "HASH_CHAIN_BROKEN"
    HASH_COMPUTATION_MISMATCH = "HASH_COMPUTATION_MISMATCH"


@dataclass(frozen=True)
class LedgerVerification:
    ok: bool
    entries_checked: int
    code: Optional[str] = None
    message: Optional[str] = None
    sequence_number: Optional[int] = None


def _broken(
    code: str, message: str, entry: LedgerEntry, checked: int,
) -> LedgerVerification:
    return LedgerVerification(
        ok=False,
        entries_checked=checked,
        code=code,
        message=message,
        sequence_number=entry.sequence_number,
    )


def verify_ledger(entries: Iterable[LedgerEntry]) -> LedgerVerification:
    """
    Verify a contiguous run of entries.

    The run may start anywhere; the first entry's predecessor link is
    only checked against GENESIS when it is sequence 1.
    """
    previous: Optional[LedgerEntry] = None
    checked = 0

    for entry in entries:
        if previous is None:
            if entry.sequence_number == 1 and entry.previous_hash != GENESIS_HASH:
                return _broken(
                    LedgerIntegrityCode.HASH_CHAIN_BROKEN,
                    f"First entry must link to {GENESIS_HASH}, "
                    f"got '{entry.previous_hash}'.",
                    entry, checked,
                )
        else:
            if entry.sequence_number != previous.sequence_number + 1:
                return _broken(
                    LedgerIntegrityCode.SEQUENCE_GAP,
                    f"Expected sequence {previous.sequence_number + 1}, "
                    f"got {entry.sequence_number}.",
                    entry, checked,
                )
            if entry.previous_hash != previous.entry_hash:
                return _broken(
                    LedgerIntegrityCode.HASH_CHAIN_BROKEN,
                    f"Entry #{entry.sequence_number} does not link to "
                    f"entry #{previous.sequence_number}.",
                    entry, checked,
                )

        if entry.computed_hash() != entry.entry_hash:
            return _broken(
                LedgerIntegrityCode.HASH_COMPUTATION_MISMATCH,
                f"Entry #{entry.sequence_number} content does not match "
                f"its entry_hash.",
                entry, checked,
            )

        previous = entry
        checked += 1

    return LedgerVerification(ok=True, entries_checked=checked)
