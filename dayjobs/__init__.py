"""
dayjobs - Single-day job marketplace engine.

Postings, applications, atomic hiring, rating-gated close-out and
expiry sweeping for a daily-work marketplace.
"""

from .errors import (
    AuthorizationError,
    ConflictError,
    DuplicateError,
    InvalidStateError,
    MarketplaceError,
    NotFoundError,
    ValidationError,
)
from .market.service import Marketplace

try:
    from importlib.metadata import version

    __version__ = version("dayjobs")
except Exception:
    __version__ = "0.0.0"

__all__ = [
    "Marketplace",
    "MarketplaceError",
    "ValidationError",
    "InvalidStateError",
    "ConflictError",
    "DuplicateError",
    "AuthorizationError",
    "NotFoundError",
]
