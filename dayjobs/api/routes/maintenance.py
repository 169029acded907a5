"""Maintenance routes.

The expiry sweeper runs in the background when enabled; these endpoints
let an admin inspect what it would do and trigger a pass on demand
(e.g. from cron when the in-process sweeper is disabled).
"""

import asyncio
from datetime import date, datetime

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from dayjobs.market.sweeper import SweepReport

from ..auth import AdminActor
from ..database import Market
from ..logging_config import get_logger
from ..rate_limit import limiter

logger = get_logger("dayjobs.api.maintenance")
router = APIRouter(prefix="/maintenance", tags=["maintenance"])


# =============================================================================
# Request/Response Models
# =============================================================================


class SweepRequest(BaseModel):
    """Request to run the expiry sweeper once."""

    dry_run: bool = Field(
        default=False, description="If true, report what would be done without making changes"
    )


class SweepActionResponse(BaseModel):
    """A single termination taken or to be taken."""

    job_id: str
    action: str  # "terminated", "would_terminate", "skipped", "failed"
    reason: str
    previous_status: str
    service_date: date


class SweepResponse(BaseModel):
    """Response from a sweep."""

    dry_run: bool
    actions: list[SweepActionResponse]
    total_terminated: int
    checked_at: datetime


class HealthResponse(BaseModel):
    """Health check for the maintenance subsystem."""

    status: str
    expired_jobs: int
    sweeper_running: bool
    subscribers: int
    last_sweep_at: datetime | None = None
    checked_at: datetime


def to_sweep_response(report: SweepReport) -> SweepResponse:
    return SweepResponse(
        dry_run=report.dry_run,
        actions=[
            SweepActionResponse(
                job_id=a.job_id,
                action=a.action,
                reason=a.reason,
                previous_status=a.previous_status,
                service_date=a.service_date,
            )
            for a in report.actions
        ],
        total_terminated=len(report.terminated),
        checked_at=report.checked_at,
    )


# =============================================================================
# Routes
# =============================================================================


@router.get("/health", response_model=HealthResponse)
@limiter.limit("60/minute")
async def maintenance_health(
    request: Request,
    admin: AdminActor,
    market: Market,
):
    """
    Health check for the maintenance subsystem.

    Returns the number of jobs the next sweep would terminate. Useful for
    monitoring whether the sweeper is keeping up.
    """
    logger.info(f"GET /maintenance/health | admin={admin.actor_id}")

    preview = await asyncio.to_thread(market.sweep, True)
    last = market.sweeper.last_report

    return HealthResponse(
        status="healthy" if not preview.actions else "action_needed",
        expired_jobs=len(preview.actions),
        sweeper_running=market.sweeper.running,
        subscribers=market.dispatcher.subscriber_count,
        last_sweep_at=last.checked_at if last else None,
        checked_at=preview.checked_at,
    )


@router.post("/sweep", response_model=SweepResponse)
@limiter.limit("10/minute")
async def run_sweep(
    request: Request,
    sweep_request: SweepRequest,
    admin: AdminActor,
    market: Market,
):
    """
    Terminate expired postings now.

    Open jobs are terminated the day after their service date; filled jobs
    wait for their rating unless a grace period is configured.
    """
    logger.info(f"POST /maintenance/sweep | admin={admin.actor_id} | dry_run={sweep_request.dry_run}")
    report = await asyncio.to_thread(market.sweep, sweep_request.dry_run)
    return to_sweep_response(report)
