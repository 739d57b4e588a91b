"""
Tally Reservation Engine — Operation Types
============================================
Operation types recorded in the ledger, and the payload each one
carries. Payloads are what read models (stats, order book) rebuild
from, so they hold results, not requests.
"""

# ── Operation Types ───────────────────────────────────────────

TRANSFER_COMMITTED = "reservation.transfer.committed"
ORDER_COMMITTED = "reservation.order.committed"
DEPOSIT_COMMITTED = "reservation.account.deposited"
RESTOCK_COMMITTED = "reservation.item.restocked"

ALL_OPERATION_TYPES = (
    TRANSFER_COMMITTED,
    ORDER_COMMITTED,
    DEPOSIT_COMMITTED,
    RESTOCK_COMMITTED,
)


# ── Payload Builders ──────────────────────────────────────────

def transfer_payload(request) -> dict:
    return {
        "from_account_id": request.from_account_id,
        "to_account_id": request.to_account_id,
        "amount": request.amount,
    }


def order_payload(order) -> dict:
    return {
        "order_id": order.order_id,
        "account_id": order.account_id,
        "line_items": [line.to_dict() for line in order.line_items],
        "total_amount": order.total_amount,
    }


def deposit_payload(request) -> dict:
    return {
        "account_id": request.account_id,
        "amount": request.amount,
    }


def restock_payload(request) -> dict:
    return {
        "item_id": request.item_id,
        "quantity": request.quantity,
    }
