"""API routes."""

from .events import router as events_router
from .jobs import applications_router
from .jobs import router as jobs_router
from .maintenance import router as maintenance_router

__all__ = [
    "jobs_router",
    "applications_router",
    "events_router",
    "maintenance_router",
]
