"""
Tally Reservation Engine — Requests
=====================================
Validated caller input. Construction raises ValueError/TypeError on
bad input; the service turns that into an INVALID_OPERATION result.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Tuple

from core.primitives.entities import account_key, item_key


def _require_amount(value: Any, field_name: str, *, positive: bool) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(
            f"{field_name} must be int (minor units), "
            f"got {type(value).__name__}."
        )
    if positive and value <= 0:
        raise ValueError(f"{field_name} must be > 0, got {value}.")
    if value < 0:
        raise ValueError(f"{field_name} must be >= 0, got {value}.")


@dataclass(frozen=True)
class TransferRequest:
    """Move amount from one account to another."""
    from_account_id: str
    to_account_id: str
    amount: int

    def __post_init__(self):
        account_key(self.from_account_id)
        account_key(self.to_account_id)
        if self.from_account_id == self.to_account_id:
            raise ValueError("Source and destination account must differ.")
        _require_amount(self.amount, "amount", positive=True)


@dataclass(frozen=True)
class OrderLineRequest:
    """
    One requested order line. unit_price is optional; when given it
    must match the catalogue price at commit time.
    """
    item_id: str
    quantity: int
    unit_price: Optional[int] = None

    def __post_init__(self):
        item_key(self.item_id)
        _require_amount(self.quantity, "quantity", positive=True)
        if self.unit_price is not None:
            _require_amount(self.unit_price, "unit_price", positive=False)

    @classmethod
    def from_value(cls, value: Any) -> OrderLineRequest:
        if isinstance(value, OrderLineRequest):
            return value
        if isinstance(value, Mapping):
            unknown = set(value) - {"item_id", "quantity", "unit_price"}
            if unknown:
                raise ValueError(f"Unknown line item fields: {sorted(unknown)}.")
            return cls(
                item_id=value.get("item_id"),
                quantity=value.get("quantity"),
                unit_price=value.get("unit_price"),
            )
        raise TypeError(
            f"Line item must be a mapping or OrderLineRequest, "
            f"got {type(value).__name__}."
        )


@dataclass(frozen=True)
class CreateOrderRequest:
    """
    Reserve stock and charge an account in one operation.

    Lines for the same item are merged into one, keeping the
    position of the first occurrence.
    """
    account_id: str
    lines: Tuple[OrderLineRequest, ...]

    def __post_init__(self):
        account_key(self.account_id)
        if not isinstance(self.lines, tuple) or not self.lines:
            raise ValueError("An order needs at least one line item.")

    @classmethod
    def build(cls, account_id: str, line_items: Iterable[Any]) -> CreateOrderRequest:
        if isinstance(line_items, (str, bytes, Mapping)) or line_items is None:
            raise TypeError("line_items must be a list of line items.")
        merged: dict = {}
        for raw in line_items:
            line = OrderLineRequest.from_value(raw)
            previous = merged.get(line.item_id)
            if previous is None:
                merged[line.item_id] = line
                continue
            if (
                previous.unit_price is not None
                and line.unit_price is not None
                and previous.unit_price != line.unit_price
            ):
                raise ValueError(
                    f"Conflicting unit_price for item '{line.item_id}'."
                )
            merged[line.item_id] = OrderLineRequest(
                item_id=line.item_id,
                quantity=previous.quantity + line.quantity,
                unit_price=(
                    previous.unit_price
                    if previous.unit_price is not None
                    else line.unit_price
                ),
            )
        return cls(account_id=account_id, lines=tuple(merged.values()))


@dataclass(frozen=True)
class OpenAccountRequest:
    account_id: str
    initial_balance: int = 0

    def __post_init__(self):
        account_key(self.account_id)
        _require_amount(self.initial_balance, "initial_balance", positive=False)


@dataclass(frozen=True)
class RegisterItemRequest:
    item_id: str
    stock_count: int
    unit_price: int

    def __post_init__(self):
        item_key(self.item_id)
        _require_amount(self.stock_count, "stock_count", positive=False)
        _require_amount(self.unit_price, "unit_price", positive=False)


@dataclass(frozen=True)
class DepositRequest:
    account_id: str
    amount: int

    def __post_init__(self):
        account_key(self.account_id)
        _require_amount(self.amount, "amount", positive=True)


@dataclass(frozen=True)
class RestockRequest:
    item_id: str
    quantity: int

    def __post_init__(self):
        item_key(self.item_id)
        _require_amount(self.quantity, "quantity", positive=True)
