"""
Tally Entity Store — Contract
===============================
Versioned key → value storage with optimistic concurrency.

Operations:
    get(key)                               → Versioned
    compare_and_swap(key, expected, value) → new version
    create(key, value)                     → version 1
    revert(key, expected, value, version)  → compensating write

Rules (NON-NEGOTIABLE):
- Every successful create/compare_and_swap moves version by exactly 1
- No silent retries; conflicts are raised to the caller
- revert is reserved for the transaction coordinator, which holds
  the key's lock while undoing its own write
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Protocol


@dataclass(frozen=True)
class Versioned:
    """A stored value together with its current version."""
    value: Any
    version: int


class EntityStore(Protocol):

    def get(self, key: str) -> Versioned:
        """Raises NotFoundError if the key is absent."""
        ...  # pragma: no cover

    def compare_and_swap(
        self, key: str, expected_version: int, new_value: Any,
    ) -> int:
        """Raises VersionConflictError or NotFoundError."""
        ...  # pragma: no cover

    def create(self, key: str, initial_value: Any) -> int:
        """Raises AlreadyExistsError if the key is present."""
        ...  # pragma: no cover

    def revert(
        self, key: str, expected_version: int, value: Any, version: int,
    ) -> None:
        """Restore a recorded value and version. Raises VersionConflictError."""
        ...  # pragma: no cover

    def exists(self, key: str) -> bool:
        ...  # pragma: no cover

    def keys(self, prefix: str = "") -> List[str]:
        ...  # pragma: no cover
