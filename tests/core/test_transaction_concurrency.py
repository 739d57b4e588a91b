"""
Concurrency tests — many threads transferring between a small set of
accounts through one coordinator.
"""

import random
import threading

import pytest

from core.config import EngineSettings
from core.errors import ErrorKind
from core.ledger import InMemoryLedger, verify_ledger
from core.primitives.entities import Account
from core.store import InMemoryEntityStore
from engines.reservation.services import build_reservation_service


ACCOUNTS = ["a", "b", "c", "d", "e"]
INITIAL = 1_000


@pytest.fixture
def service():
    store = InMemoryEntityStore()
    for account_id in ACCOUNTS:
        store.create(f"account:{account_id}", Account(account_id, INITIAL))
    svc = build_reservation_service(
        store,
        InMemoryLedger(),
        EngineSettings(lock_timeout_seconds=5.0),
        start_stats=False,
    )
    yield svc


def _run_threads(target, count):
    errors = []

    def wrapped(index):
        try:
            target(index)
        except Exception as exc:  # surfaced below
            errors.append(exc)

    threads = [threading.Thread(target=wrapped, args=(i,)) for i in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(30)
    assert not any(thread.is_alive() for thread in threads), "deadlock"
    assert errors == []


class TestConcurrentTransfers:
    THREADS = 8
    PER_THREAD = 50

    def test_money_is_conserved_and_ledger_is_gap_free(self, service):
        results = []
        results_lock = threading.Lock()

        def worker(index):
            rng = random.Random(index)
            for _ in range(self.PER_THREAD):
                source, target = rng.sample(ACCOUNTS, 2)
                result = service.transfer(source, target, rng.randint(1, 300))
                with results_lock:
                    results.append(result)

        _run_threads(worker, self.THREADS)

        committed = [r for r in results if r.ok]
        for result in results:
            if not result.ok:
                assert result.error.kind == ErrorKind.INSUFFICIENT_BALANCE

        balances = [service.get_account(a).balance for a in ACCOUNTS]
        assert all(balance >= 0 for balance in balances)
        assert sum(balances) == INITIAL * len(ACCOUNTS)

        ledger = service.coordinator.ledger
        entries = list(ledger.read_range())
        assert [e.sequence_number for e in entries] == list(range(1, len(committed) + 1))
        assert verify_ledger(entries).ok

    def test_opposite_direction_transfers_do_not_deadlock(self, service):
        def worker(index):
            source, target = ("a", "b") if index % 2 == 0 else ("b", "a")
            for _ in range(100):
                service.transfer(source, target, 1)

        _run_threads(worker, 6)
        total = service.get_account("a").balance + service.get_account("b").balance
        assert total == 2 * INITIAL

    def test_same_operation_id_commits_once(self, service):
        results = []
        results_lock = threading.Lock()

        def worker(index):
            result = service.transfer("a", "b", 10, operation_id="shared-op")
            with results_lock:
                results.append(result)

        _run_threads(worker, 8)

        assert all(r.ok for r in results)
        assert sum(1 for r in results if not r.replayed) == 1
        assert len({r.entry.sequence_number for r in results}) == 1
        assert service.get_account("a").balance == INITIAL - 10
        assert service.coordinator.ledger.last_sequence_number() == 1

    def test_ledger_replays_to_current_balances(self, service):
        def worker(index):
            rng = random.Random(100 + index)
            for _ in range(30):
                source, target = rng.sample(ACCOUNTS, 2)
                service.transfer(source, target, rng.randint(1, 50))

        _run_threads(worker, 4)

        replayed = {f"account:{a}": INITIAL for a in ACCOUNTS}
        for entry in service.coordinator.ledger.read_range():
            for key in entry.affected_keys:
                assert entry.before[key]["value"]["balance"] == replayed[key]
                replayed[key] = entry.after[key]["value"]["balance"]

        for account_id in ACCOUNTS:
            assert replayed[f"account:{account_id}"] == service.get_account(account_id).balance
