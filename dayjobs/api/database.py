"""Marketplace instance shared by the API routes."""

from typing import Annotated

from fastapi import Depends

from dayjobs.market.service import Marketplace

from .config import Settings, get_settings
from .logging_config import get_logger

logger = get_logger("dayjobs.api.database")

_marketplace: Marketplace | None = None


def build_marketplace(settings: Settings) -> Marketplace:
    """Create a marketplace from settings (SQLite when database_path is set)."""
    config = settings.market_config()
    if settings.database_path:
        return Marketplace.from_sqlite(settings.database_path, config=config)
    logger.warning("DAYJOBS_DATABASE_PATH not set, using in-memory storage")
    return Marketplace(config=config)


def get_marketplace() -> Marketplace:
    """FastAPI dependency returning the process-wide marketplace."""
    global _marketplace
    if _marketplace is None:
        _marketplace = build_marketplace(get_settings())
    return _marketplace


def reset_marketplace() -> None:
    """Drop the cached marketplace (tests)."""
    global _marketplace
    _marketplace = None


# Type alias for dependency injection
Market = Annotated[Marketplace, Depends(get_marketplace)]
