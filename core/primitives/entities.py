"""
Tally Entity Primitives — Accounts & Inventory Items
=====================================================
Value objects stored in the EntityStore.

RULES (NON-NEGOTIABLE):
- All amounts are integer minor units (cents), never floats
- balance >= 0 and stock_count >= 0 at all times
- Values are immutable; a mutation produces a new value
- Versions are owned by the store, not by the value

Keyspace is partitioned by entity type prefix:
    account:<id>    item:<id>
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, Tuple, Union


ACCOUNT_PREFIX = "account"
ITEM_PREFIX = "item"
KEY_SEPARATOR = ":"


def _require_int(value: Any, field_name: str) -> None:
    # bool is an int subclass; it is never a valid amount
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(
            f"{field_name} must be int (minor units), "
            f"got {type(value).__name__}."
        )


def _require_id(value: Any, field_name: str) -> None:
    if not value or not isinstance(value, str):
        raise ValueError(f"{field_name} must be a non-empty string.")
    if KEY_SEPARATOR in value:
        raise ValueError(f"{field_name} must not contain '{KEY_SEPARATOR}'.")


# ══════════════════════════════════════════════════════════════
# KEYS
# ══════════════════════════════════════════════════════════════

def account_key(account_id: str) -> str:
    _require_id(account_id, "account_id")
    return f"{ACCOUNT_PREFIX}{KEY_SEPARATOR}{account_id}"


def item_key(item_id: str) -> str:
    _require_id(item_id, "item_id")
    return f"{ITEM_PREFIX}{KEY_SEPARATOR}{item_id}"


def split_key(key: str) -> Tuple[str, str]:
    """Split 'account:A' into ('account', 'A')."""
    prefix, sep, entity_id = key.partition(KEY_SEPARATOR)
    if not sep or not entity_id or prefix not in (ACCOUNT_PREFIX, ITEM_PREFIX):
        raise ValueError(f"Malformed entity key '{key}'.")
    return prefix, entity_id


# ══════════════════════════════════════════════════════════════
# ACCOUNT
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Account:
    """
    Monetary account.

    account_id: opaque identifier
    balance:    minor units, never negative (no overdraft)
    """
    account_id: str
    balance: int = 0

    def __post_init__(self):
        _require_id(self.account_id, "account_id")
        _require_int(self.balance, "balance")
        if self.balance < 0:
            raise ValueError(
                f"Account '{self.account_id}' balance cannot be negative, "
                f"got {self.balance}."
            )

    @property
    def key(self) -> str:
        return account_key(self.account_id)

    def with_balance(self, balance: int) -> Account:
        return replace(self, balance=balance)

    def to_dict(self) -> dict:
        return {"account_id": self.account_id, "balance": self.balance}

    @classmethod
    def from_dict(cls, data: dict) -> Account:
        return cls(account_id=data["account_id"], balance=data["balance"])


# ══════════════════════════════════════════════════════════════
# INVENTORY ITEM
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class InventoryItem:
    """
    Stock-keeping item with its catalogue price.

    stock_count: units on hand, never negative
    unit_price:  minor units charged per unit
    """
    item_id: str
    stock_count: int = 0
    unit_price: int = 0

    def __post_init__(self):
        _require_id(self.item_id, "item_id")
        _require_int(self.stock_count, "stock_count")
        _require_int(self.unit_price, "unit_price")
        if self.stock_count < 0:
            raise ValueError(
                f"Item '{self.item_id}' stock_count cannot be negative, "
                f"got {self.stock_count}."
            )
        if self.unit_price < 0:
            raise ValueError("unit_price cannot be negative.")

    @property
    def key(self) -> str:
        return item_key(self.item_id)

    def with_stock(self, stock_count: int) -> InventoryItem:
        return replace(self, stock_count=stock_count)

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "stock_count": self.stock_count,
            "unit_price": self.unit_price,
        }

    @classmethod
    def from_dict(cls, data: dict) -> InventoryItem:
        return cls(
            item_id=data["item_id"],
            stock_count=data["stock_count"],
            unit_price=data.get("unit_price", 0),
        )


Entity = Union[Account, InventoryItem]

_CODECS: Dict[str, type] = {
    ACCOUNT_PREFIX: Account,
    ITEM_PREFIX: InventoryItem,
}


def entity_to_dict(value: Entity) -> dict:
    """Serialize an entity value for snapshots and persistence."""
    if not isinstance(value, (Account, InventoryItem)):
        raise TypeError(f"Unsupported entity type {type(value).__name__}.")
    return value.to_dict()


def entity_from_dict(key: str, data: dict) -> Entity:
    """Rebuild an entity value; the key prefix selects its type."""
    prefix, _ = split_key(key)
    return _CODECS[prefix].from_dict(data)
