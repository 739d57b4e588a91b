"""
Tally Entity Store — Per-Key Lock Manager
===========================================
Mutual exclusion per entity key, with timeouts.

Deadlock freedom relies on every caller acquiring keys in the
same canonical order. acquire_all() sorts keys itself, so callers
cannot get the order wrong.
"""

from __future__ import annotations

import logging
from threading import Lock
from typing import Dict, Iterable, List, Optional

from core.time.temporal import Deadline

logger = logging.getLogger("tally.store")


def canonical_order(keys: Iterable[str]) -> List[str]:
    """The single global lock order: lexicographic on key."""
    return sorted(set(keys))


class KeyLockManager:
    """
    Lazily creates one lock per key. Lock objects are never removed,
    so two threads always contend on the same lock for a key.
    """

    def __init__(self) -> None:
        self._locks: Dict[str, Lock] = {}
        self._table_lock = Lock()

    def _lock_for(self, key: str) -> Lock:
        with self._table_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = Lock()
                self._locks[key] = lock
            return lock

    def acquire(self, key: str, timeout: float) -> bool:
        """Try to lock one key; False when the timeout expires."""
        if timeout <= 0:
            return self._lock_for(key).acquire(blocking=False)
        return self._lock_for(key).acquire(timeout=timeout)

    def release(self, key: str) -> None:
        self._lock_for(key).release()

    def is_locked(self, key: str) -> bool:
        return self._lock_for(key).locked()

    def acquire_all(
        self,
        keys: Iterable[str],
        timeout: float,
        deadline: Optional[Deadline] = None,
    ) -> Optional[List[str]]:
        """
        Lock every key in canonical order.

        Each key waits at most timeout, shortened to whatever is left
        of deadline when one is given.

        Returns the acquired keys (acquisition order) on success.
        On the first failure all locks taken so far are released in
        reverse order and None is returned.
        """
        acquired: List[str] = []
        for key in canonical_order(keys):
            wait = timeout if deadline is None else deadline.cap(timeout)
            if not self.acquire(key, wait):
                logger.debug(f"Lock timeout on '{key}' after {wait:.3f}s")
                self.release_all(acquired)
                return None
            acquired.append(key)
        return acquired

    def release_all(self, acquired: List[str]) -> None:
        """Release in reverse acquisition order."""
        for key in reversed(acquired):
            self.release(key)
