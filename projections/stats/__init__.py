"""
Tally Projections — Commit Statistics
=======================================
Per time bucket order and transfer aggregates, built from committed
ledger entries.

Built from:
- reservation.order.committed     → orders, revenue
- reservation.transfer.committed  → transfers, transfer_volume

Writers never wait on this read model:
- on_commit() only enqueues onto a bounded queue. When the queue is
  full the oldest pending entry is dropped and the model is marked
  degraded until rebuild() replays the ledger.
- A single worker thread applies entries.
- Readers see an immutable bucket map that the worker replaces
  wholesale, so snapshot() takes no lock.

Stats are eventually consistent and never authoritative.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Deque, Dict, Iterable, Mapping, Optional, Union

from core.ledger.entry import LedgerEntry
from core.time.temporal import bucket_label, parse_bucket_label
from engines.reservation.events import ORDER_COMMITTED, TRANSFER_COMMITTED

logger = logging.getLogger("tally.stats")


@dataclass(frozen=True)
class StatsSnapshot:
    bucket: str
    orders: int = 0
    revenue: int = 0
    transfers: int = 0
    transfer_volume: int = 0
    last_sequence_number: int = 0
    degraded: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bucket": self.bucket,
            "orders": self.orders,
            "revenue": self.revenue,
            "transfers": self.transfers,
            "transfer_volume": self.transfer_volume,
            "last_sequence_number": self.last_sequence_number,
            "degraded": self.degraded,
        }


def _apply(snapshot: StatsSnapshot, entry: LedgerEntry) -> StatsSnapshot:
    payload = entry.payload
    if entry.operation_type == ORDER_COMMITTED:
        snapshot = replace(
            snapshot,
            orders=snapshot.orders + 1,
            revenue=snapshot.revenue + payload.get("total_amount", 0),
        )
    elif entry.operation_type == TRANSFER_COMMITTED:
        snapshot = replace(
            snapshot,
            transfers=snapshot.transfers + 1,
            transfer_volume=snapshot.transfer_volume + payload.get("amount", 0),
        )
    return replace(
        snapshot,
        last_sequence_number=max(
            snapshot.last_sequence_number, entry.sequence_number,
        ),
    )


class StatsAggregator:

    projection_name = "stats_aggregator"

    def __init__(self, bucket_seconds: int = 60, queue_size: int = 1024) -> None:
        if bucket_seconds < 1:
            raise ValueError("bucket_seconds must be at least 1.")
        if queue_size < 1:
            raise ValueError("queue_size must be at least 1.")
        self._bucket_seconds = bucket_seconds
        self._queue_size = queue_size

        self._queue: Deque[LedgerEntry] = deque()
        self._cond = threading.Condition()
        self._in_flight = False
        self._running = False
        self._worker: Optional[threading.Thread] = None

        # replaced, never mutated in place
        self._buckets: Mapping[str, StatsSnapshot] = {}
        self._apply_lock = threading.Lock()

        self._degraded = False
        self._dropped = 0
        # entries at or below this sequence are already in a rebuild
        self._rebuilt_through = 0

    @property
    def bucket_seconds(self) -> int:
        return self._bucket_seconds

    @property
    def degraded(self) -> bool:
        return self._degraded

    @property
    def dropped_count(self) -> int:
        return self._dropped

    def label_for(self, when: Union[str, datetime]) -> str:
        if isinstance(when, datetime):
            return bucket_label(when, self._bucket_seconds)
        return bucket_label(parse_bucket_label(when), self._bucket_seconds)

    # ══════════════════════════════════════════════════════════
    # WRITE SIDE
    # ══════════════════════════════════════════════════════════

    def on_commit(self, entry: LedgerEntry) -> None:
        """Enqueue a committed entry. Never blocks on the worker."""
        with self._cond:
            if len(self._queue) >= self._queue_size:
                dropped = self._queue.popleft()
                self._dropped += 1
                if not self._degraded:
                    self._degraded = True
                    logger.warning(
                        f"Stats queue full ({self._queue_size}); dropped "
                        f"#{dropped.sequence_number}, stats degraded until rebuild"
                    )
            self._queue.append(entry)
            self._cond.notify_all()

    def start(self) -> None:
        with self._cond:
            if self._running:
                return
            self._running = True
            self._worker = threading.Thread(
                target=self._run, name="tally-stats", daemon=True,
            )
            self._worker.start()
        logger.info("Stats aggregator started")

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop the worker after it drains what is already queued."""
        with self._cond:
            if not self._running:
                return
            self._running = False
            self._cond.notify_all()
            worker = self._worker
        if worker is not None:
            worker.join(timeout)
        logger.info("Stats aggregator stopped")

    def flush(self, timeout: Optional[float] = None) -> bool:
        """
        Wait until every queued entry is applied. Without a running
        worker the queue is drained on the calling thread.

        Returns False if the timeout expired first.
        """
        with self._cond:
            running = self._running
        if not running:
            self._drain()
            return True
        with self._cond:
            return self._cond.wait_for(
                lambda: not self._queue and not self._in_flight, timeout,
            )

    def _run(self) -> None:
        while True:
            with self._cond:
                self._cond.wait_for(lambda: self._queue or not self._running)
                if not self._queue:
                    return
                entry = self._queue.popleft()
                self._in_flight = True
            try:
                self._apply_entry(entry)
            except Exception as exc:
                logger.error(
                    f"Stats apply failed for #{entry.sequence_number}: {exc}",
                    exc_info=True,
                )
            finally:
                with self._cond:
                    self._in_flight = False
                    self._cond.notify_all()

    def _drain(self) -> None:
        while True:
            with self._cond:
                if not self._queue:
                    return
                entry = self._queue.popleft()
            self._apply_entry(entry)

    def _apply_entry(self, entry: LedgerEntry) -> None:
        label = self.label_for(entry.timestamp)
        with self._apply_lock:
            if entry.sequence_number <= self._rebuilt_through:
                return
            current = self._buckets.get(label) or StatsSnapshot(bucket=label)
            buckets = dict(self._buckets)
            buckets[label] = _apply(current, entry)
            self._buckets = buckets

    def rebuild(self, entries: Iterable[LedgerEntry]) -> int:
        """
        Recompute every bucket from the ledger and clear the degraded
        flag. entries must start at sequence 1; queued entries already
        covered by the replay are skipped when the worker reaches them.
        Returns the number of entries replayed.
        """
        count = 0
        highest = 0
        buckets: Dict[str, StatsSnapshot] = {}
        with self._apply_lock:
            for entry in entries:
                label = self.label_for(entry.timestamp)
                current = buckets.get(label) or StatsSnapshot(bucket=label)
                buckets[label] = _apply(current, entry)
                highest = max(highest, entry.sequence_number)
                count += 1
            self._buckets = buckets
            self._rebuilt_through = highest
            self._degraded = False
        logger.info(f"Stats rebuilt from {count} ledger entries")
        return count

    # ══════════════════════════════════════════════════════════
    # READ SIDE
    # ══════════════════════════════════════════════════════════

    def snapshot(self, bucket: Union[str, datetime]) -> StatsSnapshot:
        """
        Best-effort aggregate for one bucket. Accepts a bucket label
        or any datetime inside the bucket.
        """
        label = self.label_for(bucket)
        current = self._buckets.get(label) or StatsSnapshot(bucket=label)
        return replace(current, degraded=self._degraded)

    def buckets(self) -> Dict[str, StatsSnapshot]:
        buckets = self._buckets
        return {
            label: replace(snap, degraded=self._degraded)
            for label, snap in sorted(buckets.items())
        }
