"""
Tally Transactions — State Machine
====================================
    INITIATED → VALIDATING → LOCKED → APPLYING → COMMITTING → COMMITTED
        └────────────┴──────────┴─────────┴───────────┴──────→ ABORTED

Replays of an already committed operation short-circuit to
COMMITTED from VALIDATING, LOCKED or COMMITTING.

COMMITTED and ABORTED are terminal.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, FrozenSet, List, Tuple

logger = logging.getLogger("tally.transactions")


class TransactionState(Enum):
    INITIATED = "INITIATED"
    VALIDATING = "VALIDATING"
    LOCKED = "LOCKED"
    APPLYING = "APPLYING"
    COMMITTING = "COMMITTING"
    COMMITTED = "COMMITTED"
    ABORTED = "ABORTED"

    @property
    def is_terminal(self) -> bool:
        return self in (TransactionState.COMMITTED, TransactionState.ABORTED)


_VALID_TRANSITIONS: Dict[TransactionState, FrozenSet[TransactionState]] = {
    TransactionState.INITIATED: frozenset({
        TransactionState.VALIDATING,
        TransactionState.ABORTED,
    }),
    TransactionState.VALIDATING: frozenset({
        TransactionState.LOCKED,
        TransactionState.COMMITTED,
        TransactionState.ABORTED,
    }),
    TransactionState.LOCKED: frozenset({
        TransactionState.APPLYING,
        TransactionState.COMMITTED,
        TransactionState.ABORTED,
    }),
    TransactionState.APPLYING: frozenset({
        TransactionState.COMMITTING,
        TransactionState.ABORTED,
    }),
    TransactionState.COMMITTING: frozenset({
        TransactionState.COMMITTED,
        TransactionState.ABORTED,
    }),
    TransactionState.COMMITTED: frozenset(),  # terminal
    TransactionState.ABORTED: frozenset(),    # terminal
}


def can_transition(current: TransactionState, target: TransactionState) -> bool:
    return target in _VALID_TRANSITIONS[current]


class IllegalTransitionError(Exception):

    def __init__(self, current: TransactionState, target: TransactionState):
        self.current = current
        self.target = target
        super().__init__(
            f"Illegal transaction transition {current.value} → {target.value}."
        )


class TransactionLifecycle:
    """Tracks one operation's state and the path it took."""

    def __init__(self, operation_id: str) -> None:
        self.operation_id = operation_id
        self._state = TransactionState.INITIATED
        self._history: List[TransactionState] = [TransactionState.INITIATED]

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def history(self) -> Tuple[TransactionState, ...]:
        return tuple(self._history)

    def transition(self, target: TransactionState) -> None:
        if not can_transition(self._state, target):
            raise IllegalTransitionError(self._state, target)
        logger.debug(
            f"Operation {self.operation_id}: "
            f"{self._state.value} → {target.value}"
        )
        self._state = target
        self._history.append(target)
