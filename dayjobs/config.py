"""Marketplace engine configuration."""

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_SWEEP_INTERVAL_SECONDS = 300
DEFAULT_SUBSCRIBER_QUEUE_SIZE = 100
DEFAULT_MAX_ROLE_LENGTH = 120

ENV_PREFIX = "DAYJOBS_"


@dataclass
class MarketConfig:
    """Tunables for the marketplace engine.

    Attributes:
        sweep_interval_seconds: Seconds between expiry sweeper ticks.
        filled_grace_days: Days after the service date before an unrated
            FILLED job is reclaimed. None (the default) never reclaims
            FILLED jobs, so a pending rating is never lost.
        subscriber_queue_size: Max undelivered events per worker session;
            further events are dropped for that session.
        max_role_length: Max characters for a job role.
    """

    sweep_interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS
    filled_grace_days: Optional[int] = None
    subscriber_queue_size: int = DEFAULT_SUBSCRIBER_QUEUE_SIZE
    max_role_length: int = DEFAULT_MAX_ROLE_LENGTH

    def __post_init__(self):
        if self.sweep_interval_seconds <= 0:
            raise ValueError("sweep_interval_seconds must be positive")
        if self.filled_grace_days is not None and self.filled_grace_days < 0:
            raise ValueError("filled_grace_days cannot be negative")
        if self.subscriber_queue_size < 1:
            raise ValueError("subscriber_queue_size must be at least 1")
        if self.max_role_length < 1:
            raise ValueError("max_role_length must be at least 1")

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> "MarketConfig":
        """Build a config from DAYJOBS_* environment variables."""
        env = os.environ if environ is None else environ
        kwargs = {}

        raw = env.get(f"{ENV_PREFIX}SWEEP_INTERVAL_SECONDS")
        if raw:
            kwargs["sweep_interval_seconds"] = float(raw)
        raw = env.get(f"{ENV_PREFIX}FILLED_GRACE_DAYS")
        if raw:
            kwargs["filled_grace_days"] = int(raw)
        raw = env.get(f"{ENV_PREFIX}SUBSCRIBER_QUEUE_SIZE")
        if raw:
            kwargs["subscriber_queue_size"] = int(raw)
        raw = env.get(f"{ENV_PREFIX}MAX_ROLE_LENGTH")
        if raw:
            kwargs["max_role_length"] = int(raw)

        return cls(**kwargs)
