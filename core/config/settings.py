"""
Tally Core Config — Engine Settings
=====================================
Tunables for locking, deadlines, retries and stats aggregation.

Values come from the Django setting TALLY (a dict) when Django is
configured, otherwise from defaults. Engine code receives an
EngineSettings instance; it never reads settings globally.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class EngineSettings:
    """
    Engine configuration.

    lock_timeout_seconds:       max wait per key lock acquisition
    operation_deadline_seconds: default caller deadline (None = unbounded)
    stats_queue_size:           bounded commit notification queue
    stats_bucket_seconds:       width of a stats time bucket
    ledger_failure_threshold:   consecutive ledger failures before DEGRADED
    retry_*:                    backoff for retryable error kinds
    """

    lock_timeout_seconds: float = 2.0
    operation_deadline_seconds: Optional[float] = None
    stats_queue_size: int = 1024
    stats_bucket_seconds: int = 60
    ledger_failure_threshold: int = 3
    retry_max_attempts: int = 3
    retry_base_delay_seconds: float = 0.05
    retry_max_delay_seconds: float = 1.0

    def __post_init__(self) -> None:
        if self.lock_timeout_seconds <= 0:
            raise ValueError("lock_timeout_seconds must be positive.")
        if (
            self.operation_deadline_seconds is not None
            and self.operation_deadline_seconds <= 0
        ):
            raise ValueError("operation_deadline_seconds must be positive.")
        if self.stats_queue_size < 1:
            raise ValueError("stats_queue_size must be at least 1.")
        if self.stats_bucket_seconds < 1:
            raise ValueError("stats_bucket_seconds must be at least 1.")
        if self.ledger_failure_threshold < 1:
            raise ValueError("ledger_failure_threshold must be at least 1.")
        if self.retry_max_attempts < 1:
            raise ValueError("retry_max_attempts must be at least 1.")
        if self.retry_base_delay_seconds < 0 or self.retry_max_delay_seconds < 0:
            raise ValueError("retry delays cannot be negative.")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> EngineSettings:
        """
        Build settings from a mapping. Keys are matched case-insensitively;
        unknown keys are rejected so typos fail loudly.
        """
        known = {f.name for f in fields(cls)}
        values = {}
        for raw_key, value in data.items():
            key = str(raw_key).lower()
            if key not in known:
                raise ValueError(f"Unknown engine setting '{raw_key}'.")
            values[key] = value
        return cls(**values)

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def load_engine_settings() -> EngineSettings:
    """Read the TALLY dict from Django settings, or use defaults."""
    from django.conf import settings

    if not settings.configured:
        return EngineSettings()
    return EngineSettings.from_mapping(getattr(settings, "TALLY", {}))
