"""
Tally Core — Entity Store App Configuration
=============================================
Registers the Django-backed entity table. The in-memory store in
core.store.memory needs no Django at all.
"""

from django.apps import AppConfig


class EntityStoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "core.store"
    label = "entity_store"
    verbose_name = "Tally Entity Store"
