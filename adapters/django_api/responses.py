"""
Tally Django Adapter — Response Envelope
==========================================
Every response is {"ok": true, "data": ...} or
{"ok": false, "error": {"code", "message", "details"}}.

Error kinds map to stable HTTP statuses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from django.http import JsonResponse

from core.errors import ErrorKind, TransactionError


KIND_TO_STATUS = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.ALREADY_EXISTS: 409,
    ErrorKind.VERSION_CONFLICT: 409,
    ErrorKind.INSUFFICIENT_BALANCE: 422,
    ErrorKind.INSUFFICIENT_STOCK: 422,
    ErrorKind.INVALID_OPERATION: 400,
    ErrorKind.LOCK_TIMEOUT: 503,
    ErrorKind.LEDGER_UNAVAILABLE: 503,
    ErrorKind.STORE_UNAVAILABLE: 503,
}


@dataclass(frozen=True)
class ErrorBody:
    code: str
    message: str
    details: dict = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": dict(self.details),
        }


def status_for(error: TransactionError) -> int:
    return KIND_TO_STATUS.get(error.kind, 500)


def success(data: Any, status: int = 200) -> JsonResponse:
    return JsonResponse({"ok": True, "data": data}, status=status)


def failure(
    code: str,
    message: str,
    status: int = 400,
    details: Optional[dict[str, Any]] = None,
) -> JsonResponse:
    body = ErrorBody(code=code, message=message, details=details or {})
    return JsonResponse({"ok": False, "error": body.to_dict()}, status=status)


def transaction_failure(
    error: TransactionError, details: Optional[dict[str, Any]] = None,
) -> JsonResponse:
    merged = {"key": error.key, "retryable": error.retryable}
    merged.update(details or {})
    return failure(
        code=error.kind.value,
        message=error.message,
        status=status_for(error),
        details=merged,
    )
