"""
Tally Ledger — Entry Model
============================
A LedgerEntry records one committed operation: which keys it
touched, their before/after snapshots, and the operation's result
payload. Entries are immutable once appended.

Snapshot shape (per key):
    {"value": <entity dict>, "version": <int>}
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from core.ledger.hashing import compute_entry_hash


Snapshot = Dict[str, Dict[str, Any]]


def _validate_operation(operation_id: str, operation_type: str) -> None:
    if not operation_id or not isinstance(operation_id, str):
        raise ValueError("operation_id must be a non-empty string.")
    if not operation_type or len(operation_type.split(".")) < 3:
        raise ValueError(
            f"operation_type '{operation_type}' must follow "
            f"engine.domain.action format."
        )


# ══════════════════════════════════════════════════════════════
# DRAFT (what the coordinator hands to Ledger.append)
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class LedgerDraft:
    operation_id: str
    operation_type: str
    affected_keys: Tuple[str, ...]
    before: Snapshot
    after: Snapshot
    payload: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        _validate_operation(self.operation_id, self.operation_type)
        if not isinstance(self.affected_keys, tuple) or not self.affected_keys:
            raise ValueError("affected_keys must be a non-empty tuple.")
        if set(self.before) != set(self.affected_keys):
            raise ValueError("before snapshot must cover every affected key.")
        if set(self.after) != set(self.affected_keys):
            raise ValueError("after snapshot must cover every affected key.")


# ══════════════════════════════════════════════════════════════
# LEDGER ENTRY
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class LedgerEntry:
    """
    Committed operation record.

    Fields:
        sequence_number: Gap-free, strictly increasing from 1
        operation_id:    Idempotency key (unique in the ledger)
        operation_type:  engine.domain.action (e.g. reservation.order.committed)
        affected_keys:   Sorted tuple of entity keys
        before / after:  Per-key value + version snapshots
        payload:         Operation result data
        timestamp:       Commit time (UTC)
        previous_hash:   entry_hash of the preceding entry, or GENESIS
        entry_hash:      SHA-256 over content + previous_hash
    """
    sequence_number: int
    operation_id: str
    operation_type: str
    affected_keys: Tuple[str, ...]
    before: Snapshot
    after: Snapshot
    payload: Dict[str, Any]
    timestamp: datetime
    previous_hash: str
    entry_hash: str

    def __post_init__(self):
        if isinstance(self.sequence_number, bool) or not isinstance(
            self.sequence_number, int
        ):
            raise TypeError("sequence_number must be int.")
        if self.sequence_number < 1:
            raise ValueError("sequence_number starts at 1.")
        _validate_operation(self.operation_id, self.operation_type)
        if self.timestamp.tzinfo is None:
            raise ValueError("timestamp must be timezone-aware.")

    def hash_content(self) -> Dict[str, Any]:
        return entry_hash_content(
            sequence_number=self.sequence_number,
            operation_id=self.operation_id,
            operation_type=self.operation_type,
            affected_keys=self.affected_keys,
            before=self.before,
            after=self.after,
            payload=self.payload,
            timestamp=self.timestamp,
        )

    def computed_hash(self) -> str:
        return compute_entry_hash(self.hash_content(), self.previous_hash)

    def value_after(self, key: str) -> Optional[Dict[str, Any]]:
        snapshot = self.after.get(key)
        return None if snapshot is None else snapshot["value"]

    def value_before(self, key: str) -> Optional[Dict[str, Any]]:
        snapshot = self.before.get(key)
        return None if snapshot is None else snapshot["value"]

    def to_dict(self) -> dict:
        return {
            "sequence_number": self.sequence_number,
            "operation_id": self.operation_id,
            "operation_type": self.operation_type,
            "affected_keys": list(self.affected_keys),
            "before": copy.deepcopy(self.before),
            "after": copy.deepcopy(self.after),
            "payload": copy.deepcopy(self.payload),
            "timestamp": self.timestamp.isoformat(),
            "previous_hash": self.previous_hash,
            "entry_hash": self.entry_hash,
        }

    @classmethod
    def from_dict(cls, data: dict) -> LedgerEntry:
        return cls(
            sequence_number=data["sequence_number"],
            operation_id=data["operation_id"],
            operation_type=data["operation_type"],
            affected_keys=tuple(data["affected_keys"]),
            before=data["before"],
            after=data["after"],
            payload=data.get("payload", {}),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            previous_hash=data["previous_hash"],
            entry_hash=data["entry_hash"],
        )


def entry_hash_content(
    *,
    sequence_number: int,
    operation_id: str,
    operation_type: str,
    affected_keys: Tuple[str, ...],
    before: Snapshot,
    after: Snapshot,
    payload: Dict[str, Any],
    timestamp: datetime,
) -> Dict[str, Any]:
    return {
        "sequence_number": sequence_number,
        "operation_id": operation_id,
        "operation_type": operation_type,
        "affected_keys": list(affected_keys),
        "before": before,
        "after": after,
        "payload": payload,
        "timestamp": timestamp.astimezone(timezone.utc).isoformat(),
    }


def seal_entry(
    draft: LedgerDraft,
    *,
    sequence_number: int,
    timestamp: datetime,
    previous_hash: str,
) -> LedgerEntry:
    """Turn a draft into an immutable, hash-linked entry."""
    before = copy.deepcopy(draft.before)
    after = copy.deepcopy(draft.after)
    payload = copy.deepcopy(draft.payload)
    content = entry_hash_content(
        sequence_number=sequence_number,
        operation_id=draft.operation_id,
        operation_type=draft.operation_type,
        affected_keys=draft.affected_keys,
        before=before,
        after=after,
        payload=payload,
        timestamp=timestamp,
    )
    return LedgerEntry(
        sequence_number=sequence_number,
        operation_id=draft.operation_id,
        operation_type=draft.operation_type,
        affected_keys=draft.affected_keys,
        before=before,
        after=after,
        payload=payload,
        timestamp=timestamp,
        previous_hash=previous_hash,
        entry_hash=compute_entry_hash(content, previous_hash),
    )
