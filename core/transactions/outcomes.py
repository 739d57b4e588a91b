"""
Tally Transactions — Mutations & Outcomes
===========================================
Every execute() produces exactly one TransactionOutcome.

COMMITTED → entry is the ledger record (new or replayed), no error
ABORTED   → error is mandatory, no entry, no effect survives
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Tuple, Union

from core.errors import TransactionError
from core.ledger.entry import LedgerEntry
from core.transactions.states import TransactionState


MutationResult = Union[Any, TransactionError]


@dataclass(frozen=True)
class Mutation:
    """
    One per-key step of an operation.

    apply(current_value) must be pure: it returns the new value, or a
    TransactionError to abort the whole operation.
    """
    key: str
    apply: Callable[[Any], MutationResult]

    def __post_init__(self):
        if not self.key or not isinstance(self.key, str):
            raise ValueError("Mutation key must be a non-empty string.")
        if not callable(self.apply):
            raise TypeError("Mutation apply must be callable.")


@dataclass(frozen=True)
class TransactionOutcome:
    """
    Fields:
        operation_id: Idempotency key of the operation
        state:        COMMITTED or ABORTED
        entry:        Ledger entry (COMMITTED only)
        error:        Triggering error (ABORTED only)
        replayed:     True when an earlier commit was returned unchanged
        path:         States visited, for diagnostics
    """
    operation_id: str
    state: TransactionState
    entry: Optional[LedgerEntry] = None
    error: Optional[TransactionError] = None
    replayed: bool = False
    path: Tuple[TransactionState, ...] = field(default=(), compare=False)

    def __post_init__(self):
        if not self.state.is_terminal:
            raise ValueError(
                f"Outcome state must be terminal, got {self.state.value}."
            )
        if self.state == TransactionState.COMMITTED:
            if self.entry is None or self.error is not None:
                raise ValueError("COMMITTED outcome carries an entry and no error.")
        else:
            if self.error is None or self.entry is not None:
                raise ValueError("ABORTED outcome carries an error and no entry.")
            if self.replayed:
                raise ValueError("Only COMMITTED outcomes can be replays.")

    @property
    def committed(self) -> bool:
        return self.state == TransactionState.COMMITTED

    @property
    def aborted(self) -> bool:
        return self.state == TransactionState.ABORTED
