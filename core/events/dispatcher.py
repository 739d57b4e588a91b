"""
Tally Commit Bus — Dispatcher
===============================
Routes committed ledger entries to registered subscribers.

Dispatch behavior:
1. Look up subscribers by operation_type (plus catch-all)
2. Call handlers sequentially
3. Catch and log each handler failure
4. Continue with the next subscriber

Subscribers are expected to return quickly (the stats aggregator
only enqueues). Dispatch runs after the coordinator has released
its locks, so a slow subscriber never extends a lock scope.
"""

import logging
from typing import Any, Dict

from core.events.registry import SubscriberRegistry
from core.ledger.entry import LedgerEntry

logger = logging.getLogger("tally.events")


def dispatch(entry: LedgerEntry, registry: SubscriberRegistry) -> Dict[str, Any]:
    """
    Notify all subscribers of a committed entry.

    Returns:
        {
            'operation_type': str,
            'sequence_number': int,
            'subscribers_notified': int,
            'subscribers_failed': int,
            'failures': list[dict]
        }

    Never raises.
    """
    operation_type = entry.operation_type
    subscribers = registry.get_subscribers(operation_type)

    result = {
        "operation_type": operation_type,
        "sequence_number": entry.sequence_number,
        "subscribers_notified": 0,
        "subscribers_failed": 0,
        "failures": [],
    }

    for handler, subscriber_name in subscribers:
        handler_name = getattr(handler, "__qualname__", str(handler))
        try:
            handler(entry)
            result["subscribers_notified"] += 1
        except Exception as exc:
            result["subscribers_failed"] += 1
            result["failures"].append({
                "handler": handler_name,
                "subscriber": subscriber_name,
                "error": str(exc),
                "error_type": type(exc).__name__,
            })
            logger.error(
                f"Subscriber failed: {handler_name} for {operation_type} "
                f"(#{entry.sequence_number}): {exc}",
                exc_info=True,
            )

    logger.debug(
        f"Dispatch complete: {operation_type} (#{entry.sequence_number}): "
        f"{result['subscribers_notified']} notified, "
        f"{result['subscribers_failed']} failed"
    )
    return result
