"""
Tests for core.transactions.retry — backoff policy and retry loop.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import pytest

from core.config import EngineSettings
from core.errors import ErrorKind, TransactionError
from core.transactions import RetryPolicy, execute_with_retry


@dataclass(frozen=True)
class Result:
    error: Optional[TransactionError] = None


def failing(kind):
    return Result(TransactionError(kind, "nope"))


class FixedRandom:
    """uniform() always returns the upper bound."""

    def __init__(self):
        self.calls = []

    def uniform(self, low, high):
        self.calls.append((low, high))
        return high


class Script:
    def __init__(self, *results):
        self._results = list(results)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return self._results.pop(0)


class TestRetryPolicy:
    def test_exponential_and_capped(self):
        policy = RetryPolicy(base_delay_seconds=0.1, max_delay_seconds=0.3, jitter=False)
        assert policy.delay_for(1) == pytest.approx(0.1)
        assert policy.delay_for(2) == pytest.approx(0.2)
        assert policy.delay_for(3) == pytest.approx(0.3)
        assert policy.delay_for(10) == pytest.approx(0.3)

    def test_jitter_stays_in_upper_half(self):
        rng = FixedRandom()
        policy = RetryPolicy(base_delay_seconds=0.1, rng=rng)
        policy.delay_for(2)
        assert rng.calls == [(pytest.approx(0.1), pytest.approx(0.2))]

    def test_from_settings(self):
        settings = EngineSettings(retry_max_attempts=5, retry_base_delay_seconds=0.2)
        policy = RetryPolicy.from_settings(settings, jitter=False)
        assert policy.max_attempts == 5
        assert policy.base_delay_seconds == 0.2
        assert policy.jitter is False

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)


class TestExecuteWithRetry:
    def _policy(self, sleeps, attempts=3):
        return RetryPolicy(
            max_attempts=attempts,
            base_delay_seconds=0.01,
            jitter=False,
            sleep=sleeps.append,
        )

    def test_success_first_time(self):
        sleeps = []
        fn = Script(Result())
        assert execute_with_retry(fn, self._policy(sleeps)).error is None
        assert fn.calls == 1
        assert sleeps == []

    def test_retries_retryable_until_success(self):
        sleeps = []
        fn = Script(
            failing(ErrorKind.LOCK_TIMEOUT),
            failing(ErrorKind.VERSION_CONFLICT),
            Result(),
        )
        result = execute_with_retry(fn, self._policy(sleeps))
        assert result.error is None
        assert fn.calls == 3
        assert sleeps == [pytest.approx(0.01), pytest.approx(0.02)]

    def test_non_retryable_returned_immediately(self):
        sleeps = []
        fn = Script(failing(ErrorKind.INSUFFICIENT_BALANCE))
        result = execute_with_retry(fn, self._policy(sleeps))
        assert result.error.kind == ErrorKind.INSUFFICIENT_BALANCE
        assert fn.calls == 1

    def test_gives_up_and_logs(self, caplog):
        sleeps = []
        fn = Script(*[failing(ErrorKind.LEDGER_UNAVAILABLE)] * 2)
        with caplog.at_level(logging.WARNING, logger="tally.transactions"):
            result = execute_with_retry(fn, self._policy(sleeps, attempts=2))
        assert result.error.kind == ErrorKind.LEDGER_UNAVAILABLE
        assert fn.calls == 2
        assert len(sleeps) == 1
        assert "Giving up after 2" in caplog.text
