"""
Tally Ledger — Ledger Record Model
====================================
Durable form of LedgerEntry.

RULES (NON-NEGOTIABLE):
- INSERT only; no updates, no deletes
- sequence_number is the primary key (gap-free, from 1)
- operation_id is unique (idempotency at database level)
- previous_hash is unique (two entries can never claim the same
  predecessor, so concurrent appends cannot fork the chain)
"""

from django.db import models


class LedgerRecord(models.Model):

    sequence_number = models.PositiveBigIntegerField(primary_key=True)

    operation_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Caller-supplied idempotency key.",
    )

    operation_type = models.CharField(
        max_length=255,
        help_text="engine.domain.action, e.g. reservation.transfer.committed.",
    )

    affected_keys = models.JSONField()

    before = models.JSONField()

    after = models.JSONField()

    payload = models.JSONField(default=dict, blank=True)

    timestamp = models.DateTimeField()

    previous_hash = models.CharField(max_length=64, unique=True)

    entry_hash = models.CharField(max_length=64)

    class Meta:
        db_table = "tally_ledger"
        ordering = ["sequence_number"]
        indexes = [
            models.Index(fields=["timestamp"], name="idx_ledger_timestamp"),
            models.Index(fields=["operation_type"], name="idx_ledger_op_type"),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise PermissionError(
                "Ledger records are immutable. Cannot update a persisted entry."
            )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise PermissionError("Ledger records are never deleted.")

    def __str__(self):
        return f"#{self.sequence_number} {self.operation_type} ({self.operation_id})"
