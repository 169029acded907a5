"""Configuration settings for the dayjobs API."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from dayjobs.config import (
    DEFAULT_MAX_ROLE_LENGTH,
    DEFAULT_SUBSCRIBER_QUEUE_SIZE,
    DEFAULT_SWEEP_INTERVAL_SECONDS,
    MarketConfig,
)


class Settings(BaseSettings):
    """Application settings loaded from DAYJOBS_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="DAYJOBS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore extra env vars not in model
    )

    # Storage: SQLite file, or the in-memory repository when unset
    database_path: str | None = None

    # JWT
    jwt_secret_key: str  # Required - no default for security
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60 * 24 * 7  # 1 week

    # App
    debug: bool = False
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Rate limiting; X-Forwarded-For is honored only from these peers
    rate_limit_enabled: bool = True
    trusted_proxy_cidrs: list[str] = [
        "10.0.0.0/8",
        "172.16.0.0/12",
        "192.168.0.0/16",
        "127.0.0.0/8",
        "::1/128",
    ]

    # Engine
    sweeper_enabled: bool = True
    sweep_interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS
    filled_grace_days: int | None = None
    subscriber_queue_size: int = DEFAULT_SUBSCRIBER_QUEUE_SIZE
    max_role_length: int = DEFAULT_MAX_ROLE_LENGTH

    # Seconds between keep-alive comments on idle event streams
    sse_heartbeat_seconds: float = 15.0

    def market_config(self) -> MarketConfig:
        return MarketConfig(
            sweep_interval_seconds=self.sweep_interval_seconds,
            filled_grace_days=self.filled_grace_days,
            subscriber_queue_size=self.subscriber_queue_size,
            max_role_length=self.max_role_length,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
