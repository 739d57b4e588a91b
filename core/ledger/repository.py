"""
Tally Ledger — Django ORM Implementation
==========================================
Durable ledger over tally_ledger.

Append flow:
    1. In-process append lock (sequence counter is one resource)
    2. transaction.atomic(): lock the head row, check idempotency,
       seal the entry against the head hash, INSERT
    3. Any database failure → LedgerUnavailableError (not committed)

Unique constraints on operation_id and previous_hash are the
database-level fallback for writers in other processes.
"""

from __future__ import annotations

import logging
from threading import Lock
from typing import Iterator, Optional

from django.db import DatabaseError, IntegrityError, transaction

from core.errors import DuplicateOperationError, LedgerUnavailableError
from core.ledger.base import LedgerRange
from core.ledger.entry import LedgerDraft, LedgerEntry, seal_entry
from core.ledger.hashing import GENESIS_HASH
from core.ledger.models import LedgerRecord
from core.time.clock import Clock, SystemClock

logger = logging.getLogger("tally.ledger")


def _to_entry(record: LedgerRecord) -> LedgerEntry:
    return LedgerEntry(
        sequence_number=record.sequence_number,
        operation_id=record.operation_id,
        operation_type=record.operation_type,
        affected_keys=tuple(record.affected_keys),
        before=record.before,
        after=record.after,
        payload=record.payload,
        timestamp=record.timestamp,
        previous_hash=record.previous_hash,
        entry_hash=record.entry_hash,
    )


class DjangoLedger:

    def __init__(self, clock: Optional[Clock] = None, chunk_size: int = 500):
        self._clock = clock or SystemClock()
        self._chunk_size = chunk_size
        self._append_lock = Lock()

    def append(self, draft: LedgerDraft) -> LedgerEntry:
        with self._append_lock:
            try:
                with transaction.atomic():
                    head = (
                        LedgerRecord.objects.select_for_update()
                        .order_by("-sequence_number")
                        .first()
                    )
                    if LedgerRecord.objects.filter(
                        operation_id=draft.operation_id
                    ).exists():
                        raise DuplicateOperationError(draft.operation_id)

                    entry = seal_entry(
                        draft,
                        sequence_number=1 if head is None else head.sequence_number + 1,
                        timestamp=self._clock.now_utc(),
                        previous_hash=GENESIS_HASH if head is None else head.entry_hash,
                    )
                    LedgerRecord.objects.create(
                        sequence_number=entry.sequence_number,
                        operation_id=entry.operation_id,
                        operation_type=entry.operation_type,
                        affected_keys=list(entry.affected_keys),
                        before=entry.before,
                        after=entry.after,
                        payload=entry.payload,
                        timestamp=entry.timestamp,
                        previous_hash=entry.previous_hash,
                        entry_hash=entry.entry_hash,
                    )
            except IntegrityError as exc:
                if LedgerRecord.objects.filter(
                    operation_id=draft.operation_id
                ).exists():
                    raise DuplicateOperationError(draft.operation_id) from exc
                logger.error(
                    f"Ledger append conflict for operation "
                    f"{draft.operation_id}: {exc}",
                    exc_info=True,
                )
                raise LedgerUnavailableError(
                    f"Concurrent ledger append conflict: {exc}"
                ) from exc
            except DatabaseError as exc:
                logger.error(
                    f"Ledger append failed for operation "
                    f"{draft.operation_id}: {exc}",
                    exc_info=True,
                )
                raise LedgerUnavailableError(
                    f"Ledger could not record operation "
                    f"'{draft.operation_id}': {exc}"
                ) from exc

        logger.debug(
            f"Appended #{entry.sequence_number} {entry.operation_type} "
            f"(operation {entry.operation_id})"
        )
        return entry

    def _fetch(self, from_seq: int, to_seq: int) -> Iterator[LedgerEntry]:
        rows = (
            LedgerRecord.objects.filter(
                sequence_number__gte=from_seq,
                sequence_number__lte=to_seq,
            )
            .order_by("sequence_number")
            .iterator(chunk_size=self._chunk_size)
        )
        for record in rows:
            yield _to_entry(record)

    def read_range(
        self, from_seq: int = 1, to_seq: Optional[int] = None,
    ) -> LedgerRange:
        return LedgerRange(
            self._fetch, self.last_sequence_number, from_seq, to_seq,
        )

    def find_by_operation(self, operation_id: str) -> Optional[LedgerEntry]:
        try:
            record = LedgerRecord.objects.filter(operation_id=operation_id).first()
        except DatabaseError as exc:
            raise LedgerUnavailableError(
                f"Ledger lookup failed for operation '{operation_id}': {exc}"
            ) from exc
        return None if record is None else _to_entry(record)

    def last_sequence_number(self) -> int:
        head = (
            LedgerRecord.objects.order_by("-sequence_number")
            .values_list("sequence_number", flat=True)
            .first()
        )
        return head or 0

    def head_hash(self) -> str:
        head = (
            LedgerRecord.objects.order_by("-sequence_number")
            .values_list("entry_hash", flat=True)
            .first()
        )
        return head or GENESIS_HASH
