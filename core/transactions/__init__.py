"""
Tally Transactions — Public API
=================================
All-or-nothing execution of multi-key operations.
"""

from core.transactions.coordinator import TransactionCoordinator
from core.transactions.outcomes import Mutation, TransactionOutcome
from core.transactions.retry import RetryPolicy, execute_with_retry
from core.transactions.states import (
    IllegalTransitionError,
    TransactionLifecycle,
    TransactionState,
    can_transition,
)

__all__ = [
    "TransactionCoordinator",
    "Mutation",
    "TransactionOutcome",
    "RetryPolicy",
    "execute_with_retry",
    "IllegalTransitionError",
    "TransactionLifecycle",
    "TransactionState",
    "can_transition",
]
