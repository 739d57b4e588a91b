"""
Tally Reservation Engine — Service Layer
==========================================
Business operations over accounts and inventory. Every balance or
stock change goes through the TransactionCoordinator as one
operation; nothing here writes the store directly except creation
of new entities.

Outcomes are returned, never raised:
    TransferResult(entry, error, replayed)
    OrderResult(order, error, replayed)
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from threading import Lock
from typing import Any, Dict, Iterable, List, Optional, Union

from core.config.settings import EngineSettings
from core.errors import ErrorKind, TallyError, TransactionError
from core.events.registry import ALL_OPERATIONS, SubscriberRegistry
from core.ledger.base import Ledger
from core.ledger.entry import LedgerEntry
from core.primitives.entities import Account, InventoryItem, account_key, item_key
from core.primitives.order import LineItem, Order, OrderStatus, order_id_for
from core.resilience.modes import SystemHealth
from core.resilience.policy import LedgerHealthMonitor
from core.store.base import EntityStore
from core.store.locks import KeyLockManager
from core.time.temporal import Deadline
from core.transactions.coordinator import TransactionCoordinator
from core.transactions.outcomes import Mutation, TransactionOutcome
from engines.reservation.commands import (
    CreateOrderRequest,
    DepositRequest,
    OpenAccountRequest,
    RegisterItemRequest,
    RestockRequest,
    TransferRequest,
)
from engines.reservation.events import (
    DEPOSIT_COMMITTED,
    ORDER_COMMITTED,
    RESTOCK_COMMITTED,
    TRANSFER_COMMITTED,
    deposit_payload,
    order_payload,
    restock_payload,
    transfer_payload,
)
from engines.reservation.policies import (
    credit_balance,
    debit_balance,
    decrement_stock,
    increment_stock,
)
from projections.stats import StatsAggregator, StatsSnapshot

logger = logging.getLogger("tally.reservation")


def _invalid(exc: Exception) -> TransactionError:
    return TransactionError(ErrorKind.INVALID_OPERATION, str(exc) or type(exc).__name__)


def _new_operation_id() -> str:
    return str(uuid.uuid4())


def _resolve_operation_id(operation_id: Optional[str]) -> str:
    """A caller-supplied id must be a non-empty string; None mints one."""
    if operation_id is None:
        return _new_operation_id()
    if not isinstance(operation_id, str) or not operation_id:
        raise ValueError("operation_id must be a non-empty string.")
    return operation_id


# ══════════════════════════════════════════════════════════════
# RESULTS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TransferResult:
    entry: Optional[LedgerEntry] = None
    error: Optional[TransactionError] = None
    replayed: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def from_outcome(cls, outcome: TransactionOutcome) -> TransferResult:
        return cls(entry=outcome.entry, error=outcome.error, replayed=outcome.replayed)


@dataclass(frozen=True)
class OrderResult:
    """
    order is None only when the request could not be priced
    (malformed input, unknown item, price mismatch).
    """
    order: Optional[Order] = None
    error: Optional[TransactionError] = None
    replayed: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class EntityResult:
    value: Optional[Union[Account, InventoryItem]] = None
    error: Optional[TransactionError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


# ══════════════════════════════════════════════════════════════
# ORDER BOOK
# ══════════════════════════════════════════════════════════════

class OrderBook:
    """
    Orders by order_id. A COMMITTED order is never replaced; a FAILED
    one is replaced when the same operation is retried.
    """

    def __init__(self) -> None:
        self._orders: Dict[str, Order] = {}
        self._lock = Lock()

    def record(self, order: Order) -> Order:
        with self._lock:
            current = self._orders.get(order.order_id)
            if current is not None and current.status == OrderStatus.COMMITTED:
                return current
            self._orders[order.order_id] = order
            return order

    def get(self, order_id: str) -> Optional[Order]:
        with self._lock:
            return self._orders.get(order_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._orders)

    def load(self, entries: Iterable[LedgerEntry]) -> int:
        """Record every committed order found in a ledger range."""
        count = 0
        for entry in entries:
            if entry.operation_type == ORDER_COMMITTED:
                self.record(order_from_entry(entry))
                count += 1
        return count


def order_from_entry(entry: LedgerEntry) -> Order:
    """Rebuild the COMMITTED order recorded by a ledger entry."""
    payload = entry.payload
    return Order(
        order_id=payload["order_id"],
        account_id=payload["account_id"],
        line_items=tuple(LineItem.from_dict(l) for l in payload["line_items"]),
        operation_id=entry.operation_id,
        status=OrderStatus.COMMITTED,
        sequence_number=entry.sequence_number,
    )


# ══════════════════════════════════════════════════════════════
# SERVICE
# ══════════════════════════════════════════════════════════════

class ReservationService:

    def __init__(
        self,
        coordinator: TransactionCoordinator,
        aggregator: Optional[StatsAggregator] = None,
        order_book: Optional[OrderBook] = None,
    ) -> None:
        self._coordinator = coordinator
        self._store = coordinator.store
        self._ledger = coordinator.ledger
        self._aggregator = aggregator
        self._orders = order_book or OrderBook()

    @property
    def coordinator(self) -> TransactionCoordinator:
        return self._coordinator

    @property
    def aggregator(self) -> Optional[StatsAggregator]:
        return self._aggregator

    @property
    def order_book(self) -> OrderBook:
        return self._orders

    # ── Entity creation ───────────────────────────────────────

    def open_account(self, account_id: str, initial_balance: int = 0) -> EntityResult:
        try:
            request = OpenAccountRequest(account_id, initial_balance)
        except (TypeError, ValueError) as exc:
            return EntityResult(error=_invalid(exc))
        account = Account(request.account_id, request.initial_balance)
        return self._create(account)

    def register_item(
        self, item_id: str, stock_count: int, unit_price: int,
    ) -> EntityResult:
        try:
            request = RegisterItemRequest(item_id, stock_count, unit_price)
        except (TypeError, ValueError) as exc:
            return EntityResult(error=_invalid(exc))
        item = InventoryItem(
            request.item_id, request.stock_count, request.unit_price,
        )
        return self._create(item)

    def _create(self, value: Union[Account, InventoryItem]) -> EntityResult:
        try:
            self._store.create(value.key, value)
        except TallyError as exc:
            return EntityResult(error=exc.to_error())
        logger.info(f"Created {value.key}")
        return EntityResult(value=value)

    # ── Transfers & adjustments ───────────────────────────────

    def transfer(
        self,
        from_account_id: str,
        to_account_id: str,
        amount: int,
        operation_id: Optional[str] = None,
        deadline: Optional[Deadline] = None,
    ) -> TransferResult:
        try:
            operation_id = _resolve_operation_id(operation_id)
            request = TransferRequest(from_account_id, to_account_id, amount)
        except (TypeError, ValueError) as exc:
            return TransferResult(error=_invalid(exc))

        outcome = self._coordinator.execute(
            operation_id=operation_id,
            operation_type=TRANSFER_COMMITTED,
            mutations=[
                Mutation(account_key(request.from_account_id), debit_balance(request.amount)),
                Mutation(account_key(request.to_account_id), credit_balance(request.amount)),
            ],
            payload=transfer_payload(request),
            deadline=deadline,
        )
        return TransferResult.from_outcome(outcome)

    def deposit(
        self,
        account_id: str,
        amount: int,
        operation_id: Optional[str] = None,
        deadline: Optional[Deadline] = None,
    ) -> TransferResult:
        try:
            operation_id = _resolve_operation_id(operation_id)
            request = DepositRequest(account_id, amount)
        except (TypeError, ValueError) as exc:
            return TransferResult(error=_invalid(exc))

        outcome = self._coordinator.execute(
            operation_id=operation_id,
            operation_type=DEPOSIT_COMMITTED,
            mutations=[
                Mutation(account_key(request.account_id), credit_balance(request.amount)),
            ],
            payload=deposit_payload(request),
            deadline=deadline,
        )
        return TransferResult.from_outcome(outcome)

    def restock(
        self,
        item_id: str,
        quantity: int,
        operation_id: Optional[str] = None,
        deadline: Optional[Deadline] = None,
    ) -> TransferResult:
        try:
            operation_id = _resolve_operation_id(operation_id)
            request = RestockRequest(item_id, quantity)
        except (TypeError, ValueError) as exc:
            return TransferResult(error=_invalid(exc))

        outcome = self._coordinator.execute(
            operation_id=operation_id,
            operation_type=RESTOCK_COMMITTED,
            mutations=[
                Mutation(item_key(request.item_id), increment_stock(request.quantity)),
            ],
            payload=restock_payload(request),
            deadline=deadline,
        )
        return TransferResult.from_outcome(outcome)

    # ── Orders ────────────────────────────────────────────────

    def create_order(
        self,
        account_id: str,
        line_items: Iterable[Any],
        operation_id: Optional[str] = None,
        deadline: Optional[Deadline] = None,
    ) -> OrderResult:
        try:
            operation_id = _resolve_operation_id(operation_id)
            request = CreateOrderRequest.build(account_id, line_items)
        except (TypeError, ValueError) as exc:
            return OrderResult(error=_invalid(exc))

        # a committed operation is answered from the ledger, even if
        # catalogue prices have moved since
        try:
            existing = self._ledger.find_by_operation(operation_id)
        except TallyError as exc:
            return OrderResult(error=exc.to_error())
        if existing is not None:
            if existing.operation_type != ORDER_COMMITTED:
                return OrderResult(error=TransactionError(
                    ErrorKind.INVALID_OPERATION,
                    f"Operation '{operation_id}' was already committed as "
                    f"{existing.operation_type}.",
                ))
            order = self._orders.record(order_from_entry(existing))
            return OrderResult(order=order, replayed=True)

        priced = self._price(request)
        if isinstance(priced, TransactionError):
            return OrderResult(error=priced)

        order = Order(
            order_id=order_id_for(operation_id),
            account_id=request.account_id,
            line_items=priced,
            operation_id=operation_id,
        )
        mutations = [
            Mutation(item_key(line.item_id), decrement_stock(line.quantity, line.unit_price))
            for line in order.line_items
        ]
        mutations.append(
            Mutation(account_key(order.account_id), debit_balance(order.total_amount))
        )

        outcome = self._coordinator.execute(
            operation_id=operation_id,
            operation_type=ORDER_COMMITTED,
            mutations=mutations,
            payload=order_payload(order),
            deadline=deadline,
        )

        if outcome.aborted:
            failed = self._orders.record(order.fail(outcome.error))
            return OrderResult(order=failed, error=outcome.error)

        if outcome.replayed:
            committed = order_from_entry(outcome.entry)
        else:
            committed = order.commit(outcome.entry.sequence_number)
        committed = self._orders.record(committed)
        logger.info(
            f"Order {committed.order_id} {committed.status.value} "
            f"(total {committed.total_amount}, account {committed.account_id})"
        )
        return OrderResult(order=committed, replayed=outcome.replayed)

    def _price(self, request: CreateOrderRequest):
        """LineItems at catalogue price, or the error that stops pricing."""
        lines: List[LineItem] = []
        for line in request.lines:
            key = item_key(line.item_id)
            try:
                item = self._store.get(key).value
            except TallyError as exc:
                return exc.to_error()
            if not isinstance(item, InventoryItem):
                return TransactionError(
                    ErrorKind.INVALID_OPERATION,
                    f"'{key}' is not an inventory item.",
                    key,
                )
            if line.unit_price is not None and line.unit_price != item.unit_price:
                return TransactionError(
                    ErrorKind.INVALID_OPERATION,
                    f"Requested unit_price {line.unit_price} for item "
                    f"'{line.item_id}' does not match catalogue price "
                    f"{item.unit_price}.",
                    key,
                )
            lines.append(LineItem(line.item_id, line.quantity, item.unit_price))
        return tuple(lines)

    # ── Reads ─────────────────────────────────────────────────

    def get_account(self, account_id: str) -> Optional[Account]:
        return self._get(account_key(account_id))

    def get_item(self, item_id: str) -> Optional[InventoryItem]:
        return self._get(item_key(item_id))

    def _get(self, key: str):
        try:
            return self._store.get(key).value
        except TallyError as exc:
            if exc.kind == ErrorKind.NOT_FOUND:
                return None
            raise

    def get_order(self, order_id: str) -> Optional[Order]:
        return self._orders.get(order_id)

    def get_stats(self, bucket: Union[str, datetime]) -> StatsSnapshot:
        if self._aggregator is None:
            raise RuntimeError("No stats aggregator is attached to this service.")
        return self._aggregator.snapshot(bucket)


# ══════════════════════════════════════════════════════════════
# ASSEMBLY
# ══════════════════════════════════════════════════════════════

def build_reservation_service(
    store: EntityStore,
    ledger: Ledger,
    settings: Optional[EngineSettings] = None,
    *,
    start_stats: bool = True,
) -> ReservationService:
    """
    Wire coordinator, ledger health, commit bus and stats aggregator
    around the given store and ledger.

    Existing ledger history is replayed into the order book and the
    stats aggregator before the service is returned.
    """
    settings = settings or EngineSettings()

    aggregator = StatsAggregator(
        bucket_seconds=settings.stats_bucket_seconds,
        queue_size=settings.stats_queue_size,
    )
    subscribers = SubscriberRegistry()
    subscribers.register_subscriber(ALL_OPERATIONS, aggregator.on_commit, "stats")

    coordinator = TransactionCoordinator(
        store,
        ledger,
        locks=KeyLockManager(),
        settings=settings,
        subscribers=subscribers,
        health_monitor=LedgerHealthMonitor(
            SystemHealth(), settings.ledger_failure_threshold,
        ),
    )

    order_book = OrderBook()
    order_book.load(ledger.read_range())
    aggregator.rebuild(ledger.read_range())
    if start_stats:
        aggregator.start()

    return ReservationService(coordinator, aggregator, order_book)
