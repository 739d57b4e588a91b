"""
Tally Django Adapter Wiring
=============================
Builds the ReservationService over the Django-backed entity store
and ledger, once per process.

This module is adapter-only glue: the core never looks up a
global service.

Deployment constraint: ONE process per database.
    KeyLockManager serializes writers inside this process only.
    A second worker process sharing the database has its own locks,
    so its compare_and_swap can land between another process's write
    and that process's compensating revert. The revert then fails
    with a version conflict and the earlier write stays in place.
    Run the adapter as a single process (threads are fine), e.g.
    gunicorn --workers 1 --threads N, or runserver.
"""

from __future__ import annotations

import threading

from core.config.settings import load_engine_settings
from core.ledger.repository import DjangoLedger
from core.store.repository import DjangoEntityStore
from engines.reservation.services import ReservationService, build_reservation_service

_SERVICE_LOCK = threading.Lock()
_SERVICE: ReservationService | None = None


def _create_service() -> ReservationService:
    return build_reservation_service(
        DjangoEntityStore(),
        DjangoLedger(),
        load_engine_settings(),
    )


def build_dependencies() -> ReservationService:
    """
    Lazy singleton wiring for adapter runtime.
    """
    global _SERVICE
    with _SERVICE_LOCK:
        if _SERVICE is None:
            _SERVICE = _create_service()
        return _SERVICE


def reset_dependencies() -> None:
    """Drop the cached service (stopping its stats worker)."""
    global _SERVICE
    with _SERVICE_LOCK:
        if _SERVICE is not None and _SERVICE.aggregator is not None:
            _SERVICE.aggregator.stop(timeout=1.0)
        _SERVICE = None
