"""
Tally Entity Store — In-Memory Implementation
===============================================
Thread-safe dictionary store. Used by tests and by single-process
deployments that do not need the Django-backed store.
"""

from __future__ import annotations

from threading import Lock
from typing import Any, Dict, List, Tuple

from core.errors import AlreadyExistsError, NotFoundError, VersionConflictError
from core.store.base import Versioned


class InMemoryEntityStore:

    def __init__(self) -> None:
        self._rows: Dict[str, Tuple[Any, int]] = {}
        self._lock = Lock()

    def get(self, key: str) -> Versioned:
        with self._lock:
            row = self._rows.get(key)
        if row is None:
            raise NotFoundError(key)
        return Versioned(value=row[0], version=row[1])

    def compare_and_swap(
        self, key: str, expected_version: int, new_value: Any,
    ) -> int:
        with self._lock:
            row = self._rows.get(key)
            if row is None:
                raise NotFoundError(key)
            if row[1] != expected_version:
                raise VersionConflictError(key, expected_version, row[1])
            new_version = row[1] + 1
            self._rows[key] = (new_value, new_version)
            return new_version

    def create(self, key: str, initial_value: Any) -> int:
        with self._lock:
            if key in self._rows:
                raise AlreadyExistsError(key)
            self._rows[key] = (initial_value, 1)
            return 1

    def revert(
        self, key: str, expected_version: int, value: Any, version: int,
    ) -> None:
        with self._lock:
            row = self._rows.get(key)
            if row is None:
                raise NotFoundError(key)
            if row[1] != expected_version:
                raise VersionConflictError(key, expected_version, row[1])
            self._rows[key] = (value, version)

    def exists(self, key: str) -> bool:
        with self._lock:
            return key in self._rows

    def keys(self, prefix: str = "") -> List[str]:
        with self._lock:
            return sorted(k for k in self._rows if k.startswith(prefix))
