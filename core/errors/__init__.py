"""
Tally Core — Error Taxonomy
=============================
One closed set of error kinds shared by the store, the ledger,
the transaction coordinator and the reservation engine.

Two shapes carry a kind:
- TallyError (exception): raised by persistence layers
  (EntityStore, Ledger). The coordinator catches them.
- TransactionError (frozen value): returned to callers inside
  outcomes. Business results (insufficient balance, bad input)
  are NEVER raised.

Retry guidance:
    retryable     → VERSION_CONFLICT, LOCK_TIMEOUT, LEDGER_UNAVAILABLE,
                    STORE_UNAVAILABLE
    non-retryable → everything else (caller input must change)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


# ══════════════════════════════════════════════════════════════
# ERROR KIND
# ══════════════════════════════════════════════════════════════

class ErrorKind(Enum):
    """Machine-readable error kinds. Stable across layers."""
    NOT_FOUND = "NOT_FOUND"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    VERSION_CONFLICT = "VERSION_CONFLICT"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"
    INVALID_OPERATION = "INVALID_OPERATION"
    LOCK_TIMEOUT = "LOCK_TIMEOUT"
    LEDGER_UNAVAILABLE = "LEDGER_UNAVAILABLE"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"

    @property
    def retryable(self) -> bool:
        return self in _RETRYABLE_KINDS


_RETRYABLE_KINDS = frozenset({
    ErrorKind.VERSION_CONFLICT,
    ErrorKind.LOCK_TIMEOUT,
    ErrorKind.LEDGER_UNAVAILABLE,
    ErrorKind.STORE_UNAVAILABLE,
})


# ══════════════════════════════════════════════════════════════
# TRANSACTION ERROR (returned, never raised)
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TransactionError:
    """
    Structured reason an operation did not commit.

    Fields:
        kind:    ErrorKind of the triggering failure.
        message: Human-readable explanation.
        key:     Entity key involved, if any.
    """

    kind: ErrorKind
    message: str
    key: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.kind, ErrorKind):
            raise ValueError("kind must be an ErrorKind.")
        if not self.message or not isinstance(self.message, str):
            raise ValueError("message must be a non-empty string.")

    @property
    def retryable(self) -> bool:
        return self.kind.retryable

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "key": self.key,
            "retryable": self.retryable,
        }

    @classmethod
    def from_dict(cls, data: dict) -> TransactionError:
        return cls(
            kind=ErrorKind(data["kind"]),
            message=data["message"],
            key=data.get("key"),
        )


# ══════════════════════════════════════════════════════════════
# EXCEPTIONS (persistence layers)
# ══════════════════════════════════════════════════════════════

class TallyError(Exception):
    """Base error for store and ledger operations."""

    kind: ErrorKind = ErrorKind.INVALID_OPERATION

    def __init__(self, message: str, key: Optional[str] = None):
        self.key = key
        super().__init__(message)

    def to_error(self) -> TransactionError:
        """Convert into the returned error shape."""
        return TransactionError(kind=self.kind, message=str(self), key=self.key)


class NotFoundError(TallyError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, key: str):
        super().__init__(f"Entity '{key}' does not exist.", key=key)


class AlreadyExistsError(TallyError):
    kind = ErrorKind.ALREADY_EXISTS

    def __init__(self, key: str):
        super().__init__(f"Entity '{key}' already exists.", key=key)


class VersionConflictError(TallyError):
    """Expected version did not match the stored version."""

    kind = ErrorKind.VERSION_CONFLICT

    def __init__(self, key: str, expected_version: int, actual_version: int):
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Version conflict on '{key}': expected {expected_version}, "
            f"found {actual_version}.",
            key=key,
        )


class LedgerUnavailableError(TallyError):
    """The ledger could not durably record an entry."""

    kind = ErrorKind.LEDGER_UNAVAILABLE


class StoreUnavailableError(TallyError):
    """The entity store backend failed to read or write."""

    kind = ErrorKind.STORE_UNAVAILABLE


class DuplicateOperationError(TallyError):
    """An entry for this operation_id is already in the ledger."""

    kind = ErrorKind.ALREADY_EXISTS

    def __init__(self, operation_id: str):
        self.operation_id = operation_id
        super().__init__(
            f"Operation '{operation_id}' is already recorded in the ledger."
        )


__all__ = [
    "ErrorKind",
    "TransactionError",
    "TallyError",
    "NotFoundError",
    "AlreadyExistsError",
    "VersionConflictError",
    "LedgerUnavailableError",
    "StoreUnavailableError",
    "DuplicateOperationError",
]
