"""
Tally Entity Store — Public API
=================================
Only the Django-free pieces are exported here. The ORM-backed
store lives in core.store.repository and needs django configured.
"""

from core.store.base import EntityStore, Versioned
from core.store.locks import KeyLockManager, canonical_order
from core.store.memory import InMemoryEntityStore

__all__ = [
    "EntityStore",
    "Versioned",
    "KeyLockManager",
    "canonical_order",
    "InMemoryEntityStore",
]
