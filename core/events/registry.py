"""
Tally Commit Bus — Subscriber Registry
========================================
Controls which handlers hear about which committed operations.

Rules:
- Operation types follow engine.domain.action format
- ALL_OPERATIONS ("*") subscribes a handler to every commit
- Duplicate handler for the same operation type is rejected
- In-memory only, thread-safe
"""

import logging
from threading import Lock
from typing import Callable

from core.events.errors import (
    CommitBusError,
    DuplicateSubscriberError,
    InvalidOperationTypeFormat,
)

logger = logging.getLogger("tally.events")

ALL_OPERATIONS = "*"


class SubscriberRegistry:
    """
    Maps an operation_type to a list of (handler, subscriber_name).
    """

    def __init__(self):
        self._subscribers: dict[str, list[tuple[Callable, str]]] = {}
        self._lock = Lock()

    @staticmethod
    def _validate_operation_type(operation_type: str) -> None:
        if operation_type == ALL_OPERATIONS:
            return
        if not operation_type or not isinstance(operation_type, str):
            raise InvalidOperationTypeFormat(operation_type or "")
        if len(operation_type.strip().split(".")) < 3:
            raise InvalidOperationTypeFormat(operation_type)

    def register_subscriber(
        self,
        operation_type: str,
        handler: Callable,
        subscriber_name: str,
    ) -> None:
        """
        Register a handler for committed entries of one operation type.

        Raises:
            InvalidOperationTypeFormat: bad operation type format
            DuplicateSubscriberError:   handler already registered
        """
        self._validate_operation_type(operation_type)

        if not callable(handler):
            raise CommitBusError(
                f"Handler must be callable, got {type(handler)}."
            )

        handler_name = getattr(handler, "__qualname__", str(handler))

        with self._lock:
            handlers = self._subscribers.setdefault(operation_type, [])
            for existing_handler, _ in handlers:
                if existing_handler == handler:
                    raise DuplicateSubscriberError(operation_type, handler_name)
            handlers.append((handler, subscriber_name))

        logger.info(
            f"Subscriber registered: {handler_name} → {operation_type} "
            f"(subscriber: {subscriber_name})"
        )

    def get_subscribers(self, operation_type: str) -> list[tuple[Callable, str]]:
        """Specific subscribers first, then catch-all subscribers."""
        with self._lock:
            return (
                list(self._subscribers.get(operation_type, []))
                + list(self._subscribers.get(ALL_OPERATIONS, []))
            )

    def subscriber_count(self, operation_type: str) -> int:
        return len(self.get_subscribers(operation_type))
