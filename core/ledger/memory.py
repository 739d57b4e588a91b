"""
Tally Ledger — In-Memory Implementation
=========================================
Single list guarded by one lock; the lock is held only for the
append step itself, never across entity-store work.

durable_writer (optional) is called with the sealed entry before it
becomes visible. It models the durability medium: an OSError raised
there means the entry was NOT recorded and surfaces as
LedgerUnavailableError.
"""

from __future__ import annotations

import logging
from threading import Lock
from typing import Callable, Dict, Iterator, List, Optional

from core.errors import DuplicateOperationError, LedgerUnavailableError
from core.ledger.base import LedgerRange
from core.ledger.entry import LedgerDraft, LedgerEntry, seal_entry
from core.ledger.hashing import GENESIS_HASH
from core.time.clock import Clock, SystemClock

logger = logging.getLogger("tally.ledger")


class InMemoryLedger:

    def __init__(
        self,
        clock: Optional[Clock] = None,
        durable_writer: Optional[Callable[[LedgerEntry], None]] = None,
    ) -> None:
        self._clock = clock or SystemClock()
        self._durable_writer = durable_writer
        self._entries: List[LedgerEntry] = []
        self._by_operation: Dict[str, LedgerEntry] = {}
        self._lock = Lock()

    def append(self, draft: LedgerDraft) -> LedgerEntry:
        with self._lock:
            if draft.operation_id in self._by_operation:
                raise DuplicateOperationError(draft.operation_id)

            previous_hash = (
                self._entries[-1].entry_hash if self._entries else GENESIS_HASH
            )
            entry = seal_entry(
                draft,
                sequence_number=len(self._entries) + 1,
                timestamp=self._clock.now_utc(),
                previous_hash=previous_hash,
            )

            if self._durable_writer is not None:
                try:
                    self._durable_writer(entry)
                except OSError as exc:
                    logger.error(
                        f"Ledger write failed for operation "
                        f"{draft.operation_id}: {exc}",
                        exc_info=True,
                    )
                    raise LedgerUnavailableError(
                        f"Ledger could not record operation "
                        f"'{draft.operation_id}': {exc}"
                    ) from exc

            self._entries.append(entry)
            self._by_operation[entry.operation_id] = entry

        logger.debug(
            f"Appended #{entry.sequence_number} {entry.operation_type} "
            f"(operation {entry.operation_id})"
        )
        return entry

    def _fetch(self, from_seq: int, to_seq: int) -> Iterator[LedgerEntry]:
        index = from_seq - 1
        while index < to_seq:
            with self._lock:
                if index >= len(self._entries):
                    return
                entry = self._entries[index]
            yield entry
            index += 1

    def read_range(
        self, from_seq: int = 1, to_seq: Optional[int] = None,
    ) -> LedgerRange:
        return LedgerRange(
            self._fetch, self.last_sequence_number, from_seq, to_seq,
        )

    def find_by_operation(self, operation_id: str) -> Optional[LedgerEntry]:
        with self._lock:
            return self._by_operation.get(operation_id)

    def last_sequence_number(self) -> int:
        with self._lock:
            return len(self._entries)

    def head_hash(self) -> str:
        with self._lock:
            return self._entries[-1].entry_hash if self._entries else GENESIS_HASH

    def __len__(self) -> int:
        return self.last_sequence_number()
