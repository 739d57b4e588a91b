"""
Tally Transactions — Retry With Backoff
=========================================
Re-runs an operation whose result carries a retryable error
(VERSION_CONFLICT, LOCK_TIMEOUT, LEDGER_UNAVAILABLE, STORE_UNAVAILABLE).

Callers keep the same operation_id across attempts, so an attempt
that did commit is replayed rather than applied twice.

Delay before attempt n+1:
    min(max_delay, base_delay * 2**(n-1)), then jittered into
    [delay/2, delay] so contending callers spread out.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, TypeVar

from core.config.settings import EngineSettings

logger = logging.getLogger("tally.transactions")

R = TypeVar("R")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay_seconds: float = 0.05
    max_delay_seconds: float = 1.0
    jitter: bool = True
    sleep: Callable[[float], None] = field(default=time.sleep, compare=False)
    rng: random.Random = field(default_factory=random.Random, compare=False)

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1.")
        if self.base_delay_seconds < 0 or self.max_delay_seconds < 0:
            raise ValueError("retry delays cannot be negative.")

    @classmethod
    def from_settings(cls, settings: EngineSettings, **overrides) -> RetryPolicy:
        values = {
            "max_attempts": settings.retry_max_attempts,
            "base_delay_seconds": settings.retry_base_delay_seconds,
            "max_delay_seconds": settings.retry_max_delay_seconds,
        }
        values.update(overrides)
        return cls(**values)

    def delay_for(self, attempt: int) -> float:
        """Delay after the given (1-based) failed attempt."""
        delay = min(
            self.max_delay_seconds,
            self.base_delay_seconds * (2 ** (attempt - 1)),
        )
        if self.jitter and delay > 0:
            delay = self.rng.uniform(delay / 2, delay)
        return delay


def execute_with_retry(
    fn: Callable[[], R],
    policy: Optional[RetryPolicy] = None,
) -> R:
    """
    Call fn until its result has no retryable error or attempts run out.

    fn returns any object with an `error` attribute holding a
    TransactionError or None (TransactionOutcome, TransferResult,
    OrderResult). The last result is returned as is.
    """
    policy = policy or RetryPolicy()
    attempt = 1
    while True:
        result = fn()
        error = getattr(result, "error", None)
        if error is None or not error.retryable:
            return result
        if attempt >= policy.max_attempts:
            logger.warning(
                f"Giving up after {attempt} attempt(s): "
                f"{error.kind.value}: {error.message}"
            )
            return result

        delay = policy.delay_for(attempt)
        logger.debug(
            f"Retry #{attempt} in {delay:.3f}s due to {error.kind.value}"
        )
        policy.sleep(delay)
        attempt += 1
