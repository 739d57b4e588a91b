"""
Tally Invariant Tests
=======================
Cross-cutting tests that verify Tally's architectural rules hold
across the codebase. These are laws that must never be violated.
"""

import importlib
import inspect
from dataclasses import FrozenInstanceError
from datetime import datetime, timezone

import pytest


# ══════════════════════════════════════════════════════════════
# INVARIANT 1: Value objects are frozen (immutable)
# ══════════════════════════════════════════════════════════════

FROZEN_MODELS = [
    "core.errors.TransactionError",
    "core.primitives.entities.Account",
    "core.primitives.entities.InventoryItem",
    "core.primitives.order.LineItem",
    "core.primitives.order.Order",
    "core.store.base.Versioned",
    "core.ledger.entry.LedgerDraft",
    "core.ledger.entry.LedgerEntry",
    "core.config.settings.EngineSettings",
    "core.transactions.outcomes.Mutation",
    "core.transactions.outcomes.TransactionOutcome",
    "engines.reservation.commands.TransferRequest",
    "engines.reservation.commands.CreateOrderRequest",
    "projections.stats.StatsSnapshot",
]


@pytest.mark.parametrize("model_path", FROZEN_MODELS)
def test_value_objects_are_frozen(model_path):
    module_path, class_name = model_path.rsplit(".", 1)
    cls = getattr(importlib.import_module(module_path), class_name)

    assert hasattr(cls, "__dataclass_fields__"), f"{model_path} is not a dataclass"
    assert cls.__dataclass_params__.frozen, f"{model_path} is not frozen"


# ══════════════════════════════════════════════════════════════
# INVARIANT 2: Core packages declare __all__
# ══════════════════════════════════════════════════════════════

CORE_MODULES = [
    "core.errors",
    "core.time",
    "core.config",
    "core.store",
    "core.ledger",
    "core.events",
    "core.resilience",
    "core.transactions",
]


@pytest.mark.parametrize("module_path", CORE_MODULES)
def test_core_modules_have_all_exports(module_path):
    module = importlib.import_module(module_path)
    assert hasattr(module, "__all__"), f"{module_path} missing __all__"
    assert len(module.__all__) > 0, f"{module_path} has empty __all__"
    for name in module.__all__:
        assert hasattr(module, name), f"{module_path}.{name} is not defined"


# ══════════════════════════════════════════════════════════════
# INVARIANT 3: Engine logic never touches Django
# ══════════════════════════════════════════════════════════════

DJANGO_FREE_MODULES = [
    "core.errors",
    "core.time.clock",
    "core.time.temporal",
    "core.primitives.entities",
    "core.primitives.order",
    "core.store.memory",
    "core.store.locks",
    "core.ledger.entry",
    "core.ledger.memory",
    "core.ledger.verifier",
    "core.events.dispatcher",
    "core.transactions.coordinator",
    "engines.reservation.services",
    "projections.stats",
]


@pytest.mark.parametrize("module_path", DJANGO_FREE_MODULES)
def test_engine_modules_do_not_import_django(module_path):
    source = inspect.getsource(importlib.import_module(module_path))
    assert "import django" not in source
    assert "from django" not in source


# ══════════════════════════════════════════════════════════════
# INVARIANT 4: Errors always carry kind and message
# ══════════════════════════════════════════════════════════════

def test_transaction_error_requires_kind_and_message():
    from core.errors import ErrorKind, TransactionError

    error = TransactionError(ErrorKind.NOT_FOUND, "missing", "account:A")
    assert error.kind == ErrorKind.NOT_FOUND

    with pytest.raises(ValueError):
        TransactionError("NOT_FOUND", "missing")
    with pytest.raises(ValueError):
        TransactionError(ErrorKind.NOT_FOUND, "")


def test_only_contention_and_backend_outages_are_retryable():
    from core.errors import ErrorKind

    retryable = {kind for kind in ErrorKind if kind.retryable}
    assert retryable == {
        ErrorKind.VERSION_CONFLICT,
        ErrorKind.LOCK_TIMEOUT,
        ErrorKind.LEDGER_UNAVAILABLE,
        ErrorKind.STORE_UNAVAILABLE,
    }


# ══════════════════════════════════════════════════════════════
# INVARIANT 5: Clock protocol: FixedClock is deterministic
# ══════════════════════════════════════════════════════════════

def test_fixed_clock_determinism():
    from core.time.clock import FixedClock

    fixed_dt = datetime(2026, 1, 1, 0, 0, 0, tzinfo=timezone.utc)
    clock = FixedClock(fixed_dt)
    assert all(clock.now_utc() == fixed_dt for _ in range(100))


# ══════════════════════════════════════════════════════════════
# INVARIANT 6: Ledger entries cannot be altered after sealing
# ══════════════════════════════════════════════════════════════

def test_ledger_entry_immutability():
    from core.ledger.entry import LedgerDraft, seal_entry
    from core.ledger.hashing import GENESIS_HASH

    entry = seal_entry(
        LedgerDraft(
            operation_id="op-1",
            operation_type="reservation.account.deposited",
            affected_keys=("account:A",),
            before={"account:A": {"value": {}, "version": 1}},
            after={"account:A": {"value": {}, "version": 2}},
        ),
        sequence_number=1,
        timestamp=datetime(2026, 1, 1, tzinfo=timezone.utc),
        previous_hash=GENESIS_HASH,
    )
    with pytest.raises((AttributeError, FrozenInstanceError)):
        entry.sequence_number = 2
    with pytest.raises((AttributeError, FrozenInstanceError)):
        entry.entry_hash = "forged"


# ══════════════════════════════════════════════════════════════
# INVARIANT 7: Ledger health degrades and recovers
# ══════════════════════════════════════════════════════════════

def test_ledger_health_mode_transitions():
    from core.resilience import LedgerHealthMonitor, ResilienceMode, SystemHealth

    health = SystemHealth()
    monitor = LedgerHealthMonitor(health, failure_threshold=1)

    assert health.mode == ResilienceMode.NORMAL
    monitor.record_failure("disk full")
    assert health.mode == ResilienceMode.DEGRADED
    monitor.record_success()
    assert health.mode == ResilienceMode.NORMAL
