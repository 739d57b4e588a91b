"""
Tally Commit Bus — Public API
===============================
The ledger seals an operation; the bus tells listeners about it.
Nothing is heard before it is committed.
"""

from core.events.dispatcher import dispatch
from core.events.errors import (
    CommitBusError,
    DuplicateSubscriberError,
    InvalidOperationTypeFormat,
)
from core.events.registry import ALL_OPERATIONS, SubscriberRegistry

__all__ = [
    "dispatch",
    "ALL_OPERATIONS",
    "SubscriberRegistry",
    "CommitBusError",
    "DuplicateSubscriberError",
    "InvalidOperationTypeFormat",
]
