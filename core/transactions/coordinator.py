"""
Tally Transactions — Coordinator
==================================
Executes a multi-key operation so that either every mutation and the
ledger entry become visible, or nothing does.

Execution order (NON-NEGOTIABLE):
1. Validate the request; short-circuit replays of committed operations
2. Lock every key in canonical (lexicographic) order, with timeouts
3. Re-check idempotency under lock
4. get → apply → compare_and_swap per key, in canonical order
5. Append the ledger entry (LAST write of the operation)
6. Release locks in reverse order
7. Notify commit subscribers (outside every lock)

Any failure in 4 or 5 reverts the keys already written, while all
locks are still held, so a failed operation leaves every value and
version exactly as it found them.

A caller deadline is honoured up to lock acquisition. Once mutations
start they run to commit or to full rollback.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from core.config.settings import EngineSettings
from core.errors import (
    DuplicateOperationError,
    ErrorKind,
    LedgerUnavailableError,
    TallyError,
    TransactionError,
)
from core.events.dispatcher import dispatch
from core.events.registry import SubscriberRegistry
from core.ledger.base import Ledger
from core.ledger.entry import LedgerDraft, LedgerEntry
from core.primitives.entities import entity_to_dict
from core.resilience.policy import LedgerHealthMonitor
from core.store.base import EntityStore, Versioned
from core.store.locks import KeyLockManager, canonical_order
from core.time.temporal import Deadline
from core.transactions.outcomes import Mutation, TransactionOutcome
from core.transactions.states import TransactionLifecycle, TransactionState

logger = logging.getLogger("tally.transactions")


@dataclass(frozen=True)
class _AppliedWrite:
    key: str
    before: Versioned
    after_value: Any
    after_version: int


def _invalid(message: str, key: Optional[str] = None) -> TransactionError:
    return TransactionError(ErrorKind.INVALID_OPERATION, message, key)


class TransactionCoordinator:
    """
    Sole serialization point for entity keys.

    All collaborators are injected; nothing here is a module-level
    singleton.
    """

    def __init__(
        self,
        store: EntityStore,
        ledger: Ledger,
        *,
        locks: Optional[KeyLockManager] = None,
        settings: Optional[EngineSettings] = None,
        subscribers: Optional[SubscriberRegistry] = None,
        health_monitor: Optional[LedgerHealthMonitor] = None,
        serialize: Callable[[Any], Dict[str, Any]] = entity_to_dict,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._locks = locks or KeyLockManager()
        self._settings = settings or EngineSettings()
        self._subscribers = subscribers
        self._health_monitor = health_monitor
        self._serialize = serialize

    @property
    def store(self) -> EntityStore:
        return self._store

    @property
    def ledger(self) -> Ledger:
        return self._ledger

    @property
    def settings(self) -> EngineSettings:
        return self._settings

    @property
    def health_monitor(self) -> Optional[LedgerHealthMonitor]:
        return self._health_monitor

    # ══════════════════════════════════════════════════════════
    # EXECUTE
    # ══════════════════════════════════════════════════════════

    def execute(
        self,
        operation_id: str,
        operation_type: str,
        mutations: Sequence[Mutation],
        payload: Optional[Dict[str, Any]] = None,
        deadline: Optional[Deadline] = None,
    ) -> TransactionOutcome:
        lifecycle = TransactionLifecycle(operation_id)
        if deadline is None:
            deadline = Deadline(self._settings.operation_deadline_seconds)

        # ── VALIDATING ───────────────────────────────────────
        lifecycle.transition(TransactionState.VALIDATING)

        error = self._validate(operation_id, operation_type, mutations)
        if error is not None:
            return self._abort(lifecycle, error)

        replay = self._find_committed(operation_id, operation_type)
        if isinstance(replay, TransactionError):
            return self._abort(lifecycle, replay)
        if replay is not None:
            return self._replay(lifecycle, replay)

        if deadline.expired:
            return self._abort(lifecycle, TransactionError(
                ErrorKind.LOCK_TIMEOUT,
                f"Deadline expired before operation '{operation_id}' "
                f"could lock its keys.",
            ))

        by_key = {m.key: m for m in mutations}
        ordered_keys = canonical_order(by_key)

        # ── LOCKED ───────────────────────────────────────────
        acquired = self._locks.acquire_all(
            ordered_keys, self._settings.lock_timeout_seconds, deadline,
        )
        if acquired is None:
            return self._abort(lifecycle, TransactionError(
                ErrorKind.LOCK_TIMEOUT,
                f"Could not lock {ordered_keys} for operation "
                f"'{operation_id}' in time.",
            ))

        try:
            lifecycle.transition(TransactionState.LOCKED)

            replay = self._find_committed(operation_id, operation_type)
            if isinstance(replay, TransactionError):
                return self._abort(lifecycle, replay)
            if replay is not None:
                return self._replay(lifecycle, replay)

            outcome = self._apply_and_commit(
                lifecycle, operation_id, operation_type,
                [by_key[key] for key in ordered_keys], payload or {},
            )
        finally:
            self._locks.release_all(acquired)

        if outcome.committed and not outcome.replayed:
            self._dispatch_after_commit(outcome.entry)
        return outcome

    # ══════════════════════════════════════════════════════════
    # VALIDATION & IDEMPOTENCY
    # ══════════════════════════════════════════════════════════

    @staticmethod
    def _validate(
        operation_id: str,
        operation_type: str,
        mutations: Sequence[Mutation],
    ) -> Optional[TransactionError]:
        if not operation_id or not isinstance(operation_id, str):
            return _invalid("operation_id must be a non-empty string.")
        if (
            not operation_type
            or not isinstance(operation_type, str)
            or len(operation_type.split(".")) < 3
        ):
            return _invalid(
                f"operation_type '{operation_type}' must follow "
                f"engine.domain.action format."
            )
        if not mutations:
            return _invalid(f"Operation '{operation_id}' has no mutations.")

        seen = set()
        for mutation in mutations:
            if not isinstance(mutation, Mutation):
                return _invalid(
                    f"Expected Mutation, got {type(mutation).__name__}."
                )
            if mutation.key in seen:
                return _invalid(
                    f"Key '{mutation.key}' appears more than once in "
                    f"operation '{operation_id}'.",
                    key=mutation.key,
                )
            seen.add(mutation.key)
        return None

    def _find_committed(self, operation_id: str, operation_type: str):
        """
        The committed entry for operation_id, None, or a TransactionError
        when the ledger cannot answer or the id was used for another
        kind of operation.
        """
        try:
            entry = self._ledger.find_by_operation(operation_id)
        except TallyError as exc:
            return exc.to_error()
        if entry is not None and entry.operation_type != operation_type:
            return _invalid(
                f"Operation '{operation_id}' was already committed as "
                f"{entry.operation_type}, not {operation_type}."
            )
        return entry

    # ══════════════════════════════════════════════════════════
    # APPLY & COMMIT (caller holds every lock)
    # ══════════════════════════════════════════════════════════

    def _apply_and_commit(
        self,
        lifecycle: TransactionLifecycle,
        operation_id: str,
        operation_type: str,
        mutations: List[Mutation],
        payload: Dict[str, Any],
    ) -> TransactionOutcome:
        lifecycle.transition(TransactionState.APPLYING)

        applied: List[_AppliedWrite] = []
        try:
            for mutation in mutations:
                error = self._apply_one(mutation, applied)
                if error is not None:
                    self._rollback(operation_id, applied)
                    return self._abort(lifecycle, error)
        except Exception:
            self._rollback(operation_id, applied)
            raise

        lifecycle.transition(TransactionState.COMMITTING)

        draft = LedgerDraft(
            operation_id=operation_id,
            operation_type=operation_type,
            affected_keys=tuple(write.key for write in applied),
            before={
                write.key: self._snapshot(write.before.value, write.before.version)
                for write in applied
            },
            after={
                write.key: self._snapshot(write.after_value, write.after_version)
                for write in applied
            },
            payload=payload,
        )

        try:
            entry = self._ledger.append(draft)
        except DuplicateOperationError:
            # a concurrent attempt with the same operation_id won
            self._rollback(operation_id, applied)
            existing = self._find_committed(operation_id, operation_type)
            if isinstance(existing, TransactionError):
                return self._abort(lifecycle, existing)
            if existing is None:
                return self._abort(lifecycle, TransactionError(
                    ErrorKind.LEDGER_UNAVAILABLE,
                    f"Ledger reported operation '{operation_id}' as "
                    f"recorded but returned no entry.",
                ))
            return self._replay(lifecycle, existing)
        except LedgerUnavailableError as exc:
            self._rollback(operation_id, applied)
            if self._health_monitor is not None:
                self._health_monitor.record_failure(str(exc))
            return self._abort(lifecycle, exc.to_error())
        except TallyError as exc:
            self._rollback(operation_id, applied)
            return self._abort(lifecycle, exc.to_error())
        except Exception:
            self._rollback(operation_id, applied)
            raise

        if self._health_monitor is not None:
            self._health_monitor.record_success()

        lifecycle.transition(TransactionState.COMMITTED)
        logger.info(
            f"Committed {operation_type} #{entry.sequence_number} "
            f"(operation {operation_id}, keys {list(entry.affected_keys)})"
        )
        return TransactionOutcome(
            operation_id=operation_id,
            state=TransactionState.COMMITTED,
            entry=entry,
            path=lifecycle.history,
        )

    def _apply_one(
        self, mutation: Mutation, applied: List[_AppliedWrite],
    ) -> Optional[TransactionError]:
        try:
            current = self._store.get(mutation.key)
        except TallyError as exc:
            return exc.to_error()

        result = mutation.apply(current.value)
        if isinstance(result, TransactionError):
            return result

        try:
            new_version = self._store.compare_and_swap(
                mutation.key, current.version, result,
            )
        except TallyError as exc:
            return exc.to_error()

        applied.append(_AppliedWrite(
            key=mutation.key,
            before=current,
            after_value=result,
            after_version=new_version,
        ))
        return None

    def _rollback(self, operation_id: str, applied: List[_AppliedWrite]) -> None:
        # every key gets its revert attempt, whatever an earlier one raised
        failed = 0
        for write in reversed(applied):
            try:
                self._store.revert(
                    write.key,
                    write.after_version,
                    write.before.value,
                    write.before.version,
                )
            except Exception as exc:
                failed += 1
                logger.critical(
                    f"Rollback of '{write.key}' failed for operation "
                    f"{operation_id}: {exc}",
                    exc_info=True,
                )
        if applied:
            logger.debug(
                f"Rolled back {len(applied) - failed} of {len(applied)} "
                f"key(s) for operation {operation_id}"
            )

    def _snapshot(self, value: Any, version: int) -> Dict[str, Any]:
        return {"value": self._serialize(value), "version": version}

    # ══════════════════════════════════════════════════════════
    # TERMINAL OUTCOMES
    # ══════════════════════════════════════════════════════════

    @staticmethod
    def _abort(
        lifecycle: TransactionLifecycle, error: TransactionError,
    ) -> TransactionOutcome:
        lifecycle.transition(TransactionState.ABORTED)
        logger.info(
            f"Aborted operation {lifecycle.operation_id}: "
            f"{error.kind.value}: {error.message}"
        )
        return TransactionOutcome(
            operation_id=lifecycle.operation_id,
            state=TransactionState.ABORTED,
            error=error,
            path=lifecycle.history,
        )

    @staticmethod
    def _replay(
        lifecycle: TransactionLifecycle, entry: LedgerEntry,
    ) -> TransactionOutcome:
        lifecycle.transition(TransactionState.COMMITTED)
        logger.info(
            f"Replayed operation {lifecycle.operation_id} "
            f"(#{entry.sequence_number})"
        )
        return TransactionOutcome(
            operation_id=lifecycle.operation_id,
            state=TransactionState.COMMITTED,
            entry=entry,
            replayed=True,
            path=lifecycle.history,
        )

    def _dispatch_after_commit(self, entry: LedgerEntry) -> None:
        if self._subscribers is None:
            return
        try:
            dispatch(entry, self._subscribers)
        except Exception as exc:
            logger.error(
                f"Post-commit dispatch failed for #{entry.sequence_number}: "
                f"{exc}",
                exc_info=True,
            )
