"""
Tally Core — Ledger App Configuration
=======================================
Registers the durable ledger table (tally_ledger).

The ledger is the system's source of truth for audit and recovery:
rows are inserted once and never updated or deleted.
"""

from django.apps import AppConfig


class LedgerConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "core.ledger"
    label = "ledger"
    verbose_name = "Tally Ledger"
