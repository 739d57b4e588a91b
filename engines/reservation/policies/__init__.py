"""
Tally Reservation Engine — Mutation Policies
==============================================
Builders for the per-key mutations the coordinator applies.

Each builder returns a pure function (current_value) → new value,
or a TransactionError that aborts the whole operation. They run
while the coordinator holds the key's lock, so the checks here see
the committed state.
"""

from typing import Any, Callable, Union

from core.errors import ErrorKind, TransactionError
from core.primitives.entities import Account, InventoryItem

MutationFn = Callable[[Any], Union[Any, TransactionError]]


def _wrong_type(value: Any, expected: type) -> TransactionError:
    return TransactionError(
        kind=ErrorKind.INVALID_OPERATION,
        message=(
            f"Expected {expected.__name__}, "
            f"found {type(value).__name__}."
        ),
        key=getattr(value, "key", None),
    )


def debit_balance(amount: int) -> MutationFn:
    """Take amount from an account. No overdraft."""

    def apply(account):
        if not isinstance(account, Account):
            return _wrong_type(account, Account)
        if account.balance < amount:
            return TransactionError(
                kind=ErrorKind.INSUFFICIENT_BALANCE,
                message=(
                    f"Account '{account.account_id}' balance "
                    f"{account.balance}, needs {amount}."
                ),
                key=account.key,
            )
        return account.with_balance(account.balance - amount)

    return apply


def credit_balance(amount: int) -> MutationFn:
    """Add amount to an account."""

    def apply(account):
        if not isinstance(account, Account):
            return _wrong_type(account, Account)
        return account.with_balance(account.balance + amount)

    return apply


def decrement_stock(quantity: int, expected_unit_price: int) -> MutationFn:
    """
    Reserve quantity units of an item.

    The order was priced before locking; if the catalogue price has
    changed since, the operation aborts with VERSION_CONFLICT so the
    caller can re-price and retry.
    """

    def apply(item):
        if not isinstance(item, InventoryItem):
            return _wrong_type(item, InventoryItem)
        if item.unit_price != expected_unit_price:
            return TransactionError(
                kind=ErrorKind.VERSION_CONFLICT,
                message=(
                    f"Item '{item.item_id}' price changed from "
                    f"{expected_unit_price} to {item.unit_price}."
                ),
                key=item.key,
            )
        if item.stock_count < quantity:
            return TransactionError(
                kind=ErrorKind.INSUFFICIENT_STOCK,
                message=(
                    f"Item '{item.item_id}' has {item.stock_count} "
                    f"in stock, needs {quantity}."
                ),
                key=item.key,
            )
        return item.with_stock(item.stock_count - quantity)

    return apply


def increment_stock(quantity: int) -> MutationFn:
    """Add quantity units of an item."""

    def apply(item):
        if not isinstance(item, InventoryItem):
            return _wrong_type(item, InventoryItem)
        return item.with_stock(item.stock_count + quantity)

    return apply
