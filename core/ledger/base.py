"""
Tally Ledger — Contract
=========================
Append-only, strictly ordered record of committed operations.

Operations:
    append(draft)                 → sealed LedgerEntry
    read_range(from_seq, to_seq)  → LedgerRange (lazy, restartable)
    find_by_operation(op_id)      → LedgerEntry | None

append is the LAST step of a successful transaction. If it raises
LedgerUnavailableError the operation is not committed, whatever
the entity store already holds (the coordinator reverts it).
"""

from __future__ import annotations

from typing import Callable, Iterator, Optional, Protocol

from core.ledger.entry import LedgerDraft, LedgerEntry


class Ledger(Protocol):

    def append(self, draft: LedgerDraft) -> LedgerEntry:
        """Raises LedgerUnavailableError or DuplicateOperationError."""
        ...  # pragma: no cover

    def read_range(
        self, from_seq: int = 1, to_seq: Optional[int] = None,
    ) -> LedgerRange:
        ...  # pragma: no cover

    def find_by_operation(self, operation_id: str) -> Optional[LedgerEntry]:
        ...  # pragma: no cover

    def last_sequence_number(self) -> int:
        ...  # pragma: no cover

    def head_hash(self) -> str:
        ...  # pragma: no cover


class LedgerRange:
    """
    Lazy view over [from_seq, to_seq] (inclusive).

    Nothing is read until iteration. Every iter() starts a fresh read,
    so a range can be consumed more than once. An open upper bound is
    fixed to the last sequence number when iteration starts, which
    keeps each pass finite.
    """

    def __init__(
        self,
        fetch: Callable[[int, int], Iterator[LedgerEntry]],
        last_sequence: Callable[[], int],
        from_seq: int = 1,
        to_seq: Optional[int] = None,
    ) -> None:
        if from_seq < 1:
            raise ValueError("from_seq starts at 1.")
        if to_seq is not None and to_seq < 0:
            raise ValueError("to_seq cannot be negative.")
        self._fetch = fetch
        self._last_sequence = last_sequence
        self.from_seq = from_seq
        self.to_seq = to_seq

    def __iter__(self) -> Iterator[LedgerEntry]:
        upper = self._last_sequence() if self.to_seq is None else self.to_seq
        if upper < self.from_seq:
            return iter(())
        return self._fetch(self.from_seq, upper)

    def __repr__(self) -> str:
        return f"LedgerRange({self.from_seq}, {self.to_seq})"
