"""
Tally Order Primitive — Order Lifecycle
=========================================
An order is created PENDING and ends in exactly one terminal
state: COMMITTED or FAILED. Terminal orders are immutable records.

    PENDING ──commit()──▶ COMMITTED
       └─────fail()─────▶ FAILED

order_id is derived from operation_id, so replaying the same
operation reproduces the same order.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Tuple

from core.errors import TransactionError


ORDER_NAMESPACE = uuid.UUID("5f0c9a52-6a1e-4f43-9a1b-6b0d3c2e7a10")


class OrderStatus(Enum):
    PENDING = "PENDING"
    COMMITTED = "COMMITTED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self is not OrderStatus.PENDING


class InvalidOrderTransition(Exception):
    """Raised when a terminal order is asked to change state."""

    def __init__(self, order_id: str, current: OrderStatus, target: OrderStatus):
        self.order_id = order_id
        self.current = current
        self.target = target
        super().__init__(
            f"Order {order_id} cannot move from {current.value} "
            f"to {target.value}."
        )


def order_id_for(operation_id: str) -> str:
    """Deterministic order identifier for an operation."""
    return str(uuid.uuid5(ORDER_NAMESPACE, operation_id))


# ══════════════════════════════════════════════════════════════
# LINE ITEM
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class LineItem:
    item_id: str
    quantity: int
    unit_price: int

    def __post_init__(self):
        if not self.item_id or not isinstance(self.item_id, str):
            raise ValueError("item_id must be a non-empty string.")
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise TypeError("quantity must be int.")
        if self.quantity <= 0:
            raise ValueError(f"quantity must be positive, got {self.quantity}.")
        if isinstance(self.unit_price, bool) or not isinstance(self.unit_price, int):
            raise TypeError("unit_price must be int (minor units).")
        if self.unit_price < 0:
            raise ValueError("unit_price cannot be negative.")

    @property
    def subtotal(self) -> int:
        return self.quantity * self.unit_price

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
        }

    @classmethod
    def from_dict(cls, data: dict) -> LineItem:
        return cls(
            item_id=data["item_id"],
            quantity=data["quantity"],
            unit_price=data["unit_price"],
        )


# ══════════════════════════════════════════════════════════════
# ORDER
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Order:
    """
    Customer order.

    Fields:
        order_id:        Derived from operation_id
        account_id:      Account charged for the order
        line_items:      Ordered tuple of LineItem
        operation_id:    Idempotency key of the creating operation
        status:          PENDING | COMMITTED | FAILED
        error:           Why the order failed (FAILED only)
        sequence_number: Ledger position of the commit (COMMITTED only)
    """
    order_id: str
    account_id: str
    line_items: Tuple[LineItem, ...]
    operation_id: str
    status: OrderStatus = OrderStatus.PENDING
    error: Optional[TransactionError] = None
    sequence_number: Optional[int] = None

    def __post_init__(self):
        if not isinstance(self.line_items, tuple):
            raise TypeError("line_items must be a tuple of LineItem.")
        if not self.line_items:
            raise ValueError("An order needs at least one line item.")
        if self.status == OrderStatus.FAILED and self.error is None:
            raise ValueError("FAILED order must carry its error.")
        if self.status != OrderStatus.FAILED and self.error is not None:
            raise ValueError("Only FAILED orders carry an error.")

    @property
    def total_amount(self) -> int:
        return sum(line.subtotal for line in self.line_items)

    def commit(self, sequence_number: int) -> Order:
        self._assert_pending(OrderStatus.COMMITTED)
        return replace(
            self,
            status=OrderStatus.COMMITTED,
            sequence_number=sequence_number,
        )

    def fail(self, error: TransactionError) -> Order:
        self._assert_pending(OrderStatus.FAILED)
        return replace(self, status=OrderStatus.FAILED, error=error)

    def _assert_pending(self, target: OrderStatus) -> None:
        if self.status.is_terminal:
            raise InvalidOrderTransition(self.order_id, self.status, target)

    def to_dict(self) -> dict:
        return {
            "order_id": self.order_id,
            "account_id": self.account_id,
            "line_items": [line.to_dict() for line in self.line_items],
            "total_amount": self.total_amount,
            "operation_id": self.operation_id,
            "status": self.status.value,
            "error": self.error.to_dict() if self.error else None,
            "sequence_number": self.sequence_number,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Order:
        error = data.get("error")
        return cls(
            order_id=data["order_id"],
            account_id=data["account_id"],
            line_items=tuple(LineItem.from_dict(l) for l in data["line_items"]),
            operation_id=data["operation_id"],
            status=OrderStatus(data["status"]),
            error=TransactionError.from_dict(error) if error else None,
            sequence_number=data.get("sequence_number"),
        )
