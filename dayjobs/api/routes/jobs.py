"""Jobs routes.

Endpoints for postings, applications, hiring, rating and cancellation.
Engine calls are synchronous and run in a worker thread.
"""

import asyncio
from datetime import date, datetime, time
from decimal import Decimal
from typing import Literal

from fastapi import APIRouter, HTTPException, Query, Request, status
from pydantic import BaseModel, Field, field_validator

from dayjobs.market.models import Job, JobApplication

from ..auth import CompanyActor, CurrentActor, WorkerActor
from ..database import Market
from ..logging_config import get_logger
from ..rate_limit import limiter

logger = get_logger("dayjobs.api.jobs")
router = APIRouter(prefix="/jobs", tags=["jobs"])
applications_router = APIRouter(prefix="/applications", tags=["applications"])


# =============================================================================
# Request/Response Models
# =============================================================================

JobStatus = Literal["open", "filled", "terminated"]
ApplicationStatus = Literal["pending", "hired"]
Gender = Literal["male", "female", "lgbtqia"]
License = Literal["A", "B", "AB", "C", "D", "E"]


class JobCreate(BaseModel):
    """Request to create a job posting."""

    role: str = Field(..., min_length=1)
    description: str = ""
    daily_rate: Decimal = Field(..., ge=0)
    service_date: date
    start_time: time
    end_time: time
    benefits: list[str] = Field(default_factory=list)
    city: str | None = None
    neighborhood: str | None = None
    company_name: str | None = None
    required_gender: Gender | None = None
    required_license: License | None = None

    @field_validator("benefits")
    @classmethod
    def normalize_benefits(cls, v: list[str]) -> list[str]:
        return [b.strip() for b in v if b.strip()]


class JobResponse(BaseModel):
    """Job details response."""

    id: str
    poster_id: str
    role: str
    description: str
    daily_rate: Decimal
    service_date: date
    start_time: time
    end_time: time
    benefits: list[str]
    city: str | None = None
    neighborhood: str | None = None
    company_name: str | None = None
    required_gender: Gender | None = None
    required_license: License | None = None
    status: JobStatus
    created_at: datetime | None = None
    updated_at: datetime | None = None
    filled_at: datetime | None = None


class JobListResponse(BaseModel):
    """List of jobs. application_counts is only set for a company's own jobs."""

    jobs: list[JobResponse]
    total: int
    application_counts: dict[str, int] | None = None


class ApplicationResponse(BaseModel):
    """Job application response."""

    id: str
    job_id: str
    worker_id: str
    worker_name: str | None = None
    status: ApplicationStatus
    created_at: datetime | None = None


class ApplicationListResponse(BaseModel):
    """Active applications for a job."""

    applications: list[ApplicationResponse]
    total: int


class MyApplicationsResponse(BaseModel):
    """Jobs the worker has already applied to."""

    job_ids: list[str]


class HireRequest(BaseModel):
    """Request to hire the worker behind an application."""

    application_id: str


class HireResponse(BaseModel):
    job: JobResponse
    application: ApplicationResponse


class RatingRequest(BaseModel):
    """Rating of the hired worker; closes the job out."""

    worker_id: str
    rating: float = Field(..., ge=0, le=5)


class RatingResponse(BaseModel):
    job_id: str
    worker_id: str
    rating: float
    job_terminated: bool = True


class CancelResponse(BaseModel):
    job_id: str
    status: JobStatus = "terminated"


class TransitionResponse(BaseModel):
    """Audit log entry."""

    id: str
    job_id: str
    from_status: JobStatus | None = None
    to_status: JobStatus
    actor_id: str
    reason: str | None = None
    created_at: datetime | None = None


class JobHistoryResponse(BaseModel):
    job_id: str
    transitions: list[TransitionResponse]


def to_job_response(job: Job) -> JobResponse:
    return JobResponse(**job.to_dict())


def to_application_response(application: JobApplication) -> ApplicationResponse:
    data = application.to_dict()
    data.pop("updated_at", None)
    return ApplicationResponse(**data)


# =============================================================================
# Routes
# =============================================================================


@router.post("", response_model=JobResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
async def create_job_listing(
    request: Request,
    job: JobCreate,
    auth: CompanyActor,
    market: Market,
):
    """
    Create a new job posting.

    The authenticated company becomes the poster. Subscribed workers
    are notified once the job is stored.
    """
    logger.info(f"POST /jobs | poster={auth.actor_id} | role={job.role[:50]}")

    attributes = job.model_dump()
    attributes["company_name"] = attributes["company_name"] or auth.name
    created = await asyncio.to_thread(market.create_job, auth.actor_id, **attributes)
    return to_job_response(created)


@router.get("", response_model=JobListResponse)
@limiter.limit("60/minute")
async def list_jobs_endpoint(
    request: Request,
    auth: CurrentActor,
    market: Market,
    q: str | None = Query(None, max_length=100, description="Match role or company name"),
    eligible_only: bool = Query(False, description="Only jobs the calling worker qualifies for"),
    mine: bool = Query(False, description="Only jobs I posted (companies)"),
):
    """
    List jobs.

    Workers and companies see open postings; companies can pass mine=true
    to list their own live postings with application counts.
    """
    logger.info(f"GET /jobs | actor={auth.actor_id} | mine={mine} | q={q}")

    if mine:
        if not auth.is_company:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Company account required")
        jobs = await asyncio.to_thread(market.list_jobs_for_poster, auth.actor_id)
        counts = await asyncio.to_thread(market.application_counts, [j.id for j in jobs])
        return JobListResponse(
            jobs=[to_job_response(j) for j in jobs],
            total=len(jobs),
            application_counts=counts,
        )

    profile = None
    if eligible_only and auth.is_worker:
        profile = await asyncio.to_thread(market.get_profile, auth.actor_id)
    jobs = await asyncio.to_thread(market.list_open_jobs, q, profile)
    return JobListResponse(jobs=[to_job_response(j) for j in jobs], total=len(jobs))


@router.get("/{job_id}", response_model=JobResponse)
@limiter.limit("60/minute")
async def get_job_details(
    request: Request,
    job_id: str,
    auth: CurrentActor,
    market: Market,
):
    """Get details of a specific job."""
    logger.info(f"GET /jobs/{job_id} | actor={auth.actor_id}")
    job = await asyncio.to_thread(market.get_job, job_id)
    return to_job_response(job)


@router.get("/{job_id}/history", response_model=JobHistoryResponse)
@limiter.limit("30/minute")
async def get_job_history(
    request: Request,
    job_id: str,
    auth: CompanyActor,
    market: Market,
):
    """
    Audit trail for a job, including jobs already terminated.

    Only the poster (the actor of the creating transition) or an admin may read it.
    """
    transitions = await asyncio.to_thread(market.get_job_history, job_id)
    if not transitions:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")
    if transitions[0].actor_id != auth.actor_id and not auth.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not the poster of this job")

    return JobHistoryResponse(
        job_id=job_id,
        transitions=[TransitionResponse(**t.to_dict()) for t in transitions],
    )


@router.post(
    "/{job_id}/apply",
    response_model=ApplicationResponse,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit("30/minute")
async def apply_to_job(
    request: Request,
    job_id: str,
    auth: WorkerActor,
    market: Market,
):
    """Apply to an open job. A second application returns 409."""
    logger.info(f"POST /jobs/{job_id}/apply | worker={auth.actor_id}")
    application = await asyncio.to_thread(market.apply, job_id, auth.actor_id, auth.name)
    return to_application_response(application)


@router.get("/{job_id}/applications", response_model=ApplicationListResponse)
@limiter.limit("60/minute")
async def list_job_applications(
    request: Request,
    job_id: str,
    auth: CompanyActor,
    market: Market,
):
    """
    Active applications for a job (poster only).

    Once a worker is hired, only the hired application is listed.
    """
    job = await asyncio.to_thread(market.get_job, job_id)
    if job.poster_id != auth.actor_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not the poster of this job")

    applications = await asyncio.to_thread(market.list_for_job, job_id)
    return ApplicationListResponse(
        applications=[to_application_response(a) for a in applications],
        total=len(applications),
    )


@router.post("/{job_id}/hire", response_model=HireResponse)
@limiter.limit("10/minute")
async def hire_worker(
    request: Request,
    job_id: str,
    hire_request: HireRequest,
    auth: CompanyActor,
    market: Market,
):
    """
    Hire the worker behind an application.

    The job becomes filled and the application hired in one step; a
    concurrent hire on the same job gets 409.
    """
    logger.info(
        f"POST /jobs/{job_id}/hire | poster={auth.actor_id} | application={hire_request.application_id}"
    )
    job, application = await asyncio.to_thread(
        market.hire, job_id, hire_request.application_id, auth.actor_id
    )
    return HireResponse(job=to_job_response(job), application=to_application_response(application))


@router.post("/{job_id}/rating", response_model=RatingResponse)
@limiter.limit("10/minute")
async def rate_worker(
    request: Request,
    job_id: str,
    rating_request: RatingRequest,
    auth: CompanyActor,
    market: Market,
):
    """Rate the hired worker of a filled job. The job is closed out afterwards."""
    logger.info(
        f"POST /jobs/{job_id}/rating | poster={auth.actor_id} | worker={rating_request.worker_id}"
    )
    profile = await asyncio.to_thread(
        market.submit_rating,
        job_id,
        rating_request.worker_id,
        rating_request.rating,
        auth.actor_id,
    )
    return RatingResponse(job_id=job_id, worker_id=profile.worker_id, rating=profile.rating)


@router.post("/{job_id}/cancel", response_model=CancelResponse)
@limiter.limit("10/minute")
async def cancel_job(
    request: Request,
    job_id: str,
    auth: CompanyActor,
    market: Market,
):
    """Withdraw an open or filled job (poster only)."""
    logger.info(f"POST /jobs/{job_id}/cancel | poster={auth.actor_id}")
    await asyncio.to_thread(market.cancel, job_id, auth.actor_id)
    return CancelResponse(job_id=job_id)


@applications_router.get("/mine", response_model=MyApplicationsResponse)
@limiter.limit("60/minute")
async def my_applications(
    request: Request,
    auth: WorkerActor,
    market: Market,
):
    """IDs of the live jobs the calling worker has applied to."""
    job_ids = await asyncio.to_thread(market.list_for_worker, auth.actor_id)
    return MyApplicationsResponse(job_ids=sorted(job_ids))
