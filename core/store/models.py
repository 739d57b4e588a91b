"""
Tally Entity Store — Entity Record Model
==========================================
One row per entity key. The row's version column is the
optimistic-concurrency token; every write goes through a
conditional UPDATE on (key, version).

Rows are never deleted.
"""

from django.db import models


class EntityRecord(models.Model):

    key = models.CharField(
        max_length=255,
        primary_key=True,
        help_text="Prefixed entity key (account:<id>, item:<id>).",
    )

    value = models.JSONField(
        help_text="Serialized entity value (Account / InventoryItem).",
    )

    version = models.PositiveBigIntegerField(
        help_text="Incremented by exactly 1 on every successful mutation.",
    )

    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "tally_entity_store"
        ordering = ["key"]

    def delete(self, *args, **kwargs):
        raise PermissionError(
            "Entity records are never deleted."
        )

    def __str__(self):
        return f"{self.key} v{self.version}"
