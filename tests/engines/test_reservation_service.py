"""
Tests for the reservation engine service — transfers, orders,
deposits and restocks over the in-memory store and ledger.
"""

from datetime import datetime, timezone

import pytest

from core.config import EngineSettings
from core.errors import ErrorKind
from core.ledger import InMemoryLedger, verify_ledger
from core.primitives.order import OrderStatus, order_id_for
from core.store import InMemoryEntityStore
from core.time.clock import FixedClock
from engines.reservation.events import (
    DEPOSIT_COMMITTED,
    ORDER_COMMITTED,
    RESTOCK_COMMITTED,
    TRANSFER_COMMITTED,
)
from engines.reservation.services import (
    OrderBook,
    ReservationService,
    build_reservation_service,
    order_from_entry,
)


T0 = datetime(2026, 3, 14, 12, 0, 30, tzinfo=timezone.utc)


@pytest.fixture
def ledger():
    return InMemoryLedger(clock=FixedClock(T0))


@pytest.fixture
def service(ledger):
    svc = build_reservation_service(
        InMemoryEntityStore(),
        ledger,
        EngineSettings(lock_timeout_seconds=0.5),
        start_stats=False,
    )
    svc.open_account("A", 1000)
    svc.open_account("B", 0)
    svc.register_item("item1", 5, 100)
    svc.register_item("item2", 10, 25)
    return svc


def balance(service, account_id):
    return service.get_account(account_id).balance


def stock(service, item_id):
    return service.get_item(item_id).stock_count


# ══════════════════════════════════════════════════════════════
# ENTITY CREATION & READS
# ══════════════════════════════════════════════════════════════

class TestEntities:
    def test_open_account_twice(self, service):
        result = service.open_account("A", 5)
        assert result.error.kind == ErrorKind.ALREADY_EXISTS
        assert balance(service, "A") == 1000

    def test_open_account_negative_balance(self, service):
        result = service.open_account("C", -1)
        assert result.error.kind == ErrorKind.INVALID_OPERATION

    def test_register_item_bad_price(self, service):
        assert service.register_item("item3", 1, "cheap").error.kind == ErrorKind.INVALID_OPERATION

    def test_unknown_entities_read_as_none(self, service):
        assert service.get_account("nobody") is None
        assert service.get_item("nothing") is None
        assert service.get_order("no-order") is None

    def test_creation_is_not_ledgered(self, service, ledger):
        assert ledger.last_sequence_number() == 0


# ══════════════════════════════════════════════════════════════
# TRANSFERS
# ══════════════════════════════════════════════════════════════

class TestTransfer:
    def test_transfer_moves_funds(self, service, ledger):
        result = service.transfer("A", "B", 500, operation_id="op1")
        assert result.ok
        assert (balance(service, "A"), balance(service, "B")) == (500, 500)
        assert ledger.last_sequence_number() == 1
        entry = result.entry
        assert entry.operation_type == TRANSFER_COMMITTED
        assert entry.payload == {"from_account_id": "A", "to_account_id": "B", "amount": 500}

    def test_insufficient_balance(self, service, ledger):
        service.transfer("A", "B", 500, operation_id="op1")
        result = service.transfer("A", "B", 2000, operation_id="op2")
        assert result.error.kind == ErrorKind.INSUFFICIENT_BALANCE
        assert result.error.key == "account:A"
        assert balance(service, "A") == 500
        assert ledger.last_sequence_number() == 1

    def test_replay(self, service):
        first = service.transfer("A", "B", 100, operation_id="op1")
        again = service.transfer("A", "B", 100, operation_id="op1")
        assert again.replayed
        assert again.entry == first.entry
        assert balance(service, "A") == 900

    def test_unknown_account(self, service):
        result = service.transfer("A", "Z", 10)
        assert result.error.kind == ErrorKind.NOT_FOUND
        assert balance(service, "A") == 1000

    @pytest.mark.parametrize("amount", [0, -5, 1.5, True])
    def test_invalid_amount(self, service, amount):
        assert service.transfer("A", "B", amount).error.kind == ErrorKind.INVALID_OPERATION

    def test_same_account(self, service):
        assert service.transfer("A", "A", 1).error.kind == ErrorKind.INVALID_OPERATION

    def test_generates_operation_id(self, service):
        first = service.transfer("A", "B", 1)
        second = service.transfer("A", "B", 1)
        assert first.entry.operation_id != second.entry.operation_id

    @pytest.mark.parametrize("operation_id", ["", 7, b"op-1"])
    def test_malformed_operation_id(self, service, ledger, operation_id):
        result = service.transfer("A", "B", 1, operation_id=operation_id)
        assert result.error.kind == ErrorKind.INVALID_OPERATION
        assert balance(service, "A") == 1000
        assert ledger.last_sequence_number() == 0


class TestAdjustments:
    def test_deposit(self, service):
        result = service.deposit("B", 250, operation_id="dep-1")
        assert result.ok
        assert result.entry.operation_type == DEPOSIT_COMMITTED
        assert balance(service, "B") == 250

    def test_restock(self, service):
        result = service.restock("item1", 7)
        assert result.entry.operation_type == RESTOCK_COMMITTED
        assert stock(service, "item1") == 12

    def test_restock_unknown_item(self, service):
        assert service.restock("ghost", 1).error.kind == ErrorKind.NOT_FOUND


# ══════════════════════════════════════════════════════════════
# ORDERS
# ══════════════════════════════════════════════════════════════

class TestCreateOrder:
    def test_order_reserves_stock_and_charges(self, service):
        service.transfer("A", "B", 500, operation_id="op1")
        result = service.create_order("A", [{"item_id": "item1", "quantity": 3}], operation_id="op3")
        assert result.ok
        order = result.order
        assert order.status == OrderStatus.COMMITTED
        assert order.order_id == order_id_for("op3")
        assert order.total_amount == 300
        assert order.sequence_number == 2
        assert stock(service, "item1") == 2
        assert balance(service, "A") == 200
        assert service.get_order(order.order_id) == order

    def test_repeat_returns_identical_order(self, service, ledger):
        first = service.create_order("A", [{"item_id": "item1", "quantity": 3}], operation_id="op3")
        again = service.create_order("A", [{"item_id": "item1", "quantity": 3}], operation_id="op3")
        assert again.replayed
        assert again.order == first.order
        assert stock(service, "item1") == 2
        assert balance(service, "A") == 700
        assert ledger.last_sequence_number() == 1

    def test_replay_ignores_later_price_change(self, service, ledger):
        first = service.create_order("A", [{"item_id": "item1", "quantity": 1}], operation_id="op3")
        item = service.get_item("item1")
        service.coordinator.store.compare_and_swap(
            "item:item1", 2, item.__class__(item.item_id, item.stock_count, 999),
        )
        again = service.create_order("A", [{"item_id": "item1", "quantity": 1}], operation_id="op3")
        assert again.replayed
        assert again.order.total_amount == first.order.total_amount == 100

    def test_insufficient_stock_changes_nothing(self, service, ledger):
        result = service.create_order("A", [
            {"item_id": "item2", "quantity": 2},
            {"item_id": "item1", "quantity": 6},
        ], operation_id="op4")
        assert result.error.kind == ErrorKind.INSUFFICIENT_STOCK
        assert result.error.key == "item:item1"
        assert result.order.status == OrderStatus.FAILED
        assert service.get_order(result.order.order_id).status == OrderStatus.FAILED
        assert stock(service, "item2") == 10
        assert balance(service, "A") == 1000
        assert ledger.last_sequence_number() == 0

    def test_insufficient_balance_restores_stock(self, service):
        result = service.create_order("B", [{"item_id": "item1", "quantity": 1}])
        assert result.error.kind == ErrorKind.INSUFFICIENT_BALANCE
        assert stock(service, "item1") == 5
        assert service.coordinator.store.get("item:item1").version == 1

    def test_failed_order_replaced_by_successful_retry(self, service):
        failed = service.create_order("B", [{"item_id": "item2", "quantity": 2}], operation_id="op5")
        assert failed.order.status == OrderStatus.FAILED
        service.deposit("B", 100)
        retried = service.create_order("B", [{"item_id": "item2", "quantity": 2}], operation_id="op5")
        assert retried.ok
        assert service.get_order(retried.order.order_id).status == OrderStatus.COMMITTED

    def test_repeated_lines_are_merged(self, service):
        result = service.create_order("A", [
            {"item_id": "item2", "quantity": 1},
            {"item_id": "item1", "quantity": 1},
            {"item_id": "item2", "quantity": 2},
        ])
        assert [(l.item_id, l.quantity) for l in result.order.line_items] == [
            ("item2", 3), ("item1", 1),
        ]
        assert stock(service, "item2") == 7

    def test_unknown_item_is_not_priced(self, service):
        result = service.create_order("A", [{"item_id": "ghost", "quantity": 1}])
        assert result.order is None
        assert result.error.kind == ErrorKind.NOT_FOUND

    def test_caller_price_must_match_catalogue(self, service):
        result = service.create_order("A", [{"item_id": "item1", "quantity": 1, "unit_price": 90}])
        assert result.order is None
        assert result.error.kind == ErrorKind.INVALID_OPERATION

    def test_empty_order(self, service):
        assert service.create_order("A", []).error.kind == ErrorKind.INVALID_OPERATION

    def test_reused_operation_id(self, service):
        service.transfer("A", "B", 1, operation_id="shared")
        result = service.create_order("A", [{"item_id": "item1", "quantity": 1}], operation_id="shared")
        assert result.error.kind == ErrorKind.INVALID_OPERATION

    @pytest.mark.parametrize("operation_id", ["", 7, ["order-1"]])
    def test_malformed_operation_id_is_rejected_not_raised(self, service, ledger, operation_id):
        result = service.create_order(
            "A", [{"item_id": "item1", "quantity": 1}], operation_id=operation_id,
        )
        assert result.order is None
        assert result.error.kind == ErrorKind.INVALID_OPERATION
        assert "operation_id" in result.error.message
        assert stock(service, "item1") == 5
        assert ledger.last_sequence_number() == 0

    def test_ledger_payload_rebuilds_order(self, service, ledger):
        result = service.create_order("A", [{"item_id": "item1", "quantity": 2}])
        entry = ledger.find_by_operation(result.order.operation_id)
        assert entry.operation_type == ORDER_COMMITTED
        assert order_from_entry(entry) == result.order


# ══════════════════════════════════════════════════════════════
# ASSEMBLY
# ══════════════════════════════════════════════════════════════

class TestBuildService:
    def test_rebuilds_history_from_ledger(self, service, ledger):
        order = service.create_order("A", [{"item_id": "item1", "quantity": 1}]).order
        service.transfer("A", "B", 50)

        restarted = build_reservation_service(
            service.coordinator.store, ledger, start_stats=False,
        )
        assert restarted.get_order(order.order_id) == order
        snapshot = restarted.get_stats(T0)
        assert (snapshot.orders, snapshot.revenue) == (1, 100)
        assert (snapshot.transfers, snapshot.transfer_volume) == (1, 50)

    def test_stats_follow_commits(self, service):
        service.create_order("A", [{"item_id": "item2", "quantity": 4}])
        service.transfer("A", "B", 10)
        service.aggregator.flush()
        snapshot = service.get_stats("2026-03-14T12:00:00Z")
        assert snapshot.orders == 1
        assert snapshot.revenue == 100
        assert snapshot.last_sequence_number == 2
        assert not snapshot.degraded

    def test_ledger_stays_verifiable(self, service, ledger):
        service.transfer("A", "B", 10)
        service.create_order("A", [{"item_id": "item1", "quantity": 1}])
        service.restock("item1", 1)
        assert verify_ledger(ledger.read_range()).ok

    def test_stats_worker_lifecycle(self, ledger):
        svc = build_reservation_service(InMemoryEntityStore(), ledger)
        try:
            svc.open_account("X", 10)
            svc.open_account("Y", 0)
            svc.transfer("X", "Y", 10)
            assert svc.aggregator.flush(timeout=5)
            assert svc.get_stats(T0).transfers == 1
        finally:
            svc.aggregator.stop(timeout=5)

    def test_stats_without_aggregator(self, service):
        bare = ReservationService(service.coordinator)
        with pytest.raises(RuntimeError):
            bare.get_stats(T0)


class TestOrderBook:
    def test_committed_order_is_never_replaced(self, service):
        result = service.create_order("A", [{"item_id": "item1", "quantity": 1}])
        book = OrderBook()
        book.record(result.order)
        stale = result.order.__class__(
            order_id=result.order.order_id,
            account_id="A",
            line_items=result.order.line_items,
            operation_id=result.order.operation_id,
        )
        assert book.record(stale) == result.order
        assert len(book) == 1
