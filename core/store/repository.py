"""
Tally Entity Store — Django ORM Implementation
================================================
Same contract as InMemoryEntityStore, backed by tally_entity_store.

compare_and_swap is a single conditional UPDATE:
    UPDATE ... SET value=?, version=version+1 WHERE key=? AND version=?
Zero rows updated means either a missing key or a stale version;
a follow-up read tells the two apart.

Any other database failure surfaces as StoreUnavailableError
(retryable), never as a raw DatabaseError.
"""

from __future__ import annotations

import logging
from typing import Any, List

from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import F

from core.errors import (
    AlreadyExistsError,
    NotFoundError,
    StoreUnavailableError,
    VersionConflictError,
)
from core.primitives.entities import entity_from_dict, entity_to_dict
from core.store.base import Versioned
from core.store.models import EntityRecord

logger = logging.getLogger("tally.store")


def _unavailable(action: str, key: str, exc: DatabaseError) -> StoreUnavailableError:
    logger.error(f"Entity store {action} failed for '{key}': {exc}", exc_info=True)
    return StoreUnavailableError(
        f"Entity store could not {action} '{key}': {exc}", key=key,
    )


class DjangoEntityStore:

    def get(self, key: str) -> Versioned:
        try:
            row = (
                EntityRecord.objects.filter(key=key)
                .values_list("value", "version")
                .first()
            )
        except DatabaseError as exc:
            raise _unavailable("read", key, exc) from exc
        if row is None:
            raise NotFoundError(key)
        value, version = row
        return Versioned(value=entity_from_dict(key, value), version=version)

    def _raise_for_missed_update(self, key: str, expected_version: int) -> None:
        try:
            actual = (
                EntityRecord.objects.filter(key=key)
                .values_list("version", flat=True)
                .first()
            )
        except DatabaseError as exc:
            raise _unavailable("read", key, exc) from exc
        if actual is None:
            raise NotFoundError(key)
        raise VersionConflictError(key, expected_version, actual)

    def compare_and_swap(
        self, key: str, expected_version: int, new_value: Any,
    ) -> int:
        try:
            updated = EntityRecord.objects.filter(
                key=key, version=expected_version,
            ).update(
                value=entity_to_dict(new_value),
                version=F("version") + 1,
            )
        except DatabaseError as exc:
            raise _unavailable("update", key, exc) from exc
        if updated == 0:
            self._raise_for_missed_update(key, expected_version)
        return expected_version + 1

    def create(self, key: str, initial_value: Any) -> int:
        # validates the key prefix before touching the database
        entity_from_dict(key, entity_to_dict(initial_value))
        try:
            with transaction.atomic():
                EntityRecord.objects.create(
                    key=key,
                    value=entity_to_dict(initial_value),
                    version=1,
                )
        except IntegrityError:
            raise AlreadyExistsError(key) from None
        except DatabaseError as exc:
            raise _unavailable("create", key, exc) from exc
        logger.debug(f"Created entity '{key}'")
        return 1

    def revert(
        self, key: str, expected_version: int, value: Any, version: int,
    ) -> None:
        try:
            updated = EntityRecord.objects.filter(
                key=key, version=expected_version,
            ).update(value=entity_to_dict(value), version=version)
        except DatabaseError as exc:
            raise _unavailable("revert", key, exc) from exc
        if updated == 0:
            self._raise_for_missed_update(key, expected_version)

    def exists(self, key: str) -> bool:
        try:
            return EntityRecord.objects.filter(key=key).exists()
        except DatabaseError as exc:
            raise _unavailable("read", key, exc) from exc

    def keys(self, prefix: str = "") -> List[str]:
        query = EntityRecord.objects.all()
        if prefix:
            query = query.filter(key__startswith=prefix)
        try:
            return list(query.order_by("key").values_list("key", flat=True))
        except DatabaseError as exc:
            raise _unavailable("list", prefix or "*", exc) from exc
