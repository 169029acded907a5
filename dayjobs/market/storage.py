"""
Jobs storage layer.

Defines the repository contract the marketplace runs on and an in-memory
implementation for tests and local development. See
dayjobs.market.sqlite for the durable backend.

Multi-record changes (hire, cascade delete, rating + close-out) run inside
`atomic()`. Status changes go through compare-and-set methods that return
`(record, error)` where error is None, NOT_FOUND or CONFLICT.
"""

import contextlib
import copy
import logging
import threading
from datetime import date, datetime, timezone
from typing import ContextManager, Dict, Iterable, List, Optional, Protocol, Tuple

from dayjobs.errors import DuplicateError
from dayjobs.market.models import (
    ApplicationStatus,
    Job,
    JobApplication,
    JobStateTransition,
    JobStatus,
    WorkerProfile,
)

logger = logging.getLogger(__name__)

NOT_FOUND = "not_found"
CONFLICT = "conflict"


def _status_value(status) -> Optional[str]:
    if status is None:
        return None
    return status.value if isinstance(status, (JobStatus, ApplicationStatus)) else status


class JobRepository(Protocol):
    """Protocol for job persistence backends."""

    def atomic(self) -> ContextManager["JobRepository"]:
        """Run the enclosed calls as one all-or-nothing unit. Re-entrant."""
        ...

    # Jobs
    def save_job(self, job: Job) -> str:
        """Insert a new job. Returns the job ID."""
        ...

    def get_job(self, job_id: str) -> Optional[Job]:
        """Get a job by ID."""
        ...

    def list_jobs(
        self,
        status: Optional[JobStatus] = None,
        poster_id: Optional[str] = None,
        service_date_before: Optional[date] = None,
    ) -> List[Job]:
        """List jobs, newest first. service_date_before is exclusive."""
        ...

    def update_job_status(
        self,
        job_id: str,
        expected_status: JobStatus,
        new_status: JobStatus,
    ) -> Tuple[Optional[Job], Optional[str]]:
        """Compare-and-set a job's status."""
        ...

    def delete_job(self, job_id: str) -> bool:
        """Delete a job and all of its applications. False if absent."""
        ...

    # Applications
    def save_application(self, application: JobApplication) -> str:
        """Insert an application. Raises DuplicateError for a repeated (job, worker)."""
        ...

    def get_application(self, application_id: str) -> Optional[JobApplication]:
        """Get an application by ID."""
        ...

    def list_applications(
        self,
        job_id: Optional[str] = None,
        worker_id: Optional[str] = None,
        status: Optional[ApplicationStatus] = None,
    ) -> List[JobApplication]:
        """List applications, oldest first."""
        ...

    def update_application_status(
        self,
        application_id: str,
        expected_status: ApplicationStatus,
        new_status: ApplicationStatus,
    ) -> Tuple[Optional[JobApplication], Optional[str]]:
        """Compare-and-set an application's status."""
        ...

    def count_applications(self, job_ids: Iterable[str]) -> Dict[str, int]:
        """Raw application counts per job (every status)."""
        ...

    # Worker profiles
    def get_profile(self, worker_id: str) -> Optional[WorkerProfile]:
        """Get a worker profile."""
        ...

    def save_profile(self, profile: WorkerProfile) -> None:
        """Insert or replace a worker profile."""
        ...

    def update_rating(self, worker_id: str, rating: float) -> WorkerProfile:
        """Overwrite a worker's rating, creating the profile if needed."""
        ...

    # Transitions (audit log)
    def save_transition(self, transition: JobStateTransition) -> str:
        """Save a state transition record. Returns the transition ID."""
        ...

    def get_transitions(self, job_id: str) -> List[JobStateTransition]:
        """Get all state transitions for a job, oldest first."""
        ...


class InMemoryJobRepository:
    """In-memory job storage for testing and local development.

    A single re-entrant lock guards every read and write, so readers never
    see the inside of an atomic() block. A failed atomic() block restores
    the snapshot taken when the outermost block was entered.
    """

    def __init__(self):
        """Initialize empty storage."""
        self._jobs: Dict[str, Job] = {}
        self._applications: Dict[str, JobApplication] = {}
        self._profiles: Dict[str, WorkerProfile] = {}
        self._transitions: Dict[str, List[JobStateTransition]] = {}  # job_id -> list
        self._lock = threading.RLock()
        self._depth = 0

    def _utc_now(self) -> datetime:
        """Get current UTC timestamp."""
        return datetime.now(timezone.utc)

    def _snapshot(self):
        return copy.deepcopy((self._jobs, self._applications, self._profiles, self._transitions))

    @contextlib.contextmanager
    def atomic(self):
        with self._lock:
            outermost = self._depth == 0
            snapshot = self._snapshot() if outermost else None
            self._depth += 1
            try:
                yield self
            except Exception:
                if outermost:
                    logger.debug("Atomic block failed, restoring snapshot")
                    self._jobs, self._applications, self._profiles, self._transitions = snapshot
                raise
            finally:
                self._depth -= 1

    # === Jobs ===

    def save_job(self, job: Job) -> str:
        """Save a new job listing."""
        with self._lock:
            if job.id in self._jobs:
                raise ValueError(f"Job {job.id} already exists")
            self._jobs[job.id] = copy.deepcopy(job)
            self._transitions.setdefault(job.id, [])
            return job.id

    def get_job(self, job_id: str) -> Optional[Job]:
        """Get a job by ID."""
        with self._lock:
            job = self._jobs.get(job_id)
            return copy.deepcopy(job) if job else None

    def list_jobs(
        self,
        status: Optional[JobStatus] = None,
        poster_id: Optional[str] = None,
        service_date_before: Optional[date] = None,
    ) -> List[Job]:
        """List jobs with optional filters."""
        with self._lock:
            jobs = list(self._jobs.values())

            status_val = _status_value(status)
            if status_val is not None:
                jobs = [j for j in jobs if j.status == status_val]
            if poster_id is not None:
                jobs = [j for j in jobs if j.poster_id == poster_id]
            if service_date_before is not None:
                jobs = [j for j in jobs if j.service_date < service_date_before]

            # Sort by created_at desc
            jobs.sort(key=lambda j: j.created_at or self._utc_now(), reverse=True)
            return copy.deepcopy(jobs)

    def update_job_status(
        self,
        job_id: str,
        expected_status: JobStatus,
        new_status: JobStatus,
    ) -> Tuple[Optional[Job], Optional[str]]:
        """Atomically update job status if it still has the expected value."""
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None, NOT_FOUND
            if job.status != _status_value(expected_status):
                logger.warning(
                    f"Race condition detected on job {job_id}: "
                    f"expected status '{_status_value(expected_status)}', found '{job.status}'"
                )
                return None, CONFLICT

            now = self._utc_now()
            job.status = _status_value(new_status)
            job.updated_at = now
            if job.status == JobStatus.FILLED.value:
                job.filled_at = now
            return copy.deepcopy(job), None

    def delete_job(self, job_id: str) -> bool:
        """Delete a job and cascade to its applications."""
        with self._lock:
            if self._jobs.pop(job_id, None) is None:
                return False
            doomed = [a.id for a in self._applications.values() if a.job_id == job_id]
            for app_id in doomed:
                del self._applications[app_id]
            return True

    # === Applications ===

    def save_application(self, application: JobApplication) -> str:
        """Save a job application, enforcing one per (job, worker)."""
        with self._lock:
            for existing in self._applications.values():
                if (
                    existing.job_id == application.job_id
                    and existing.worker_id == application.worker_id
                ):
                    raise DuplicateError(application.job_id, application.worker_id)
            self._applications[application.id] = copy.deepcopy(application)
            return application.id

    def get_application(self, application_id: str) -> Optional[JobApplication]:
        """Get an application by ID."""
        with self._lock:
            app = self._applications.get(application_id)
            return copy.deepcopy(app) if app else None

    def list_applications(
        self,
        job_id: Optional[str] = None,
        worker_id: Optional[str] = None,
        status: Optional[ApplicationStatus] = None,
    ) -> List[JobApplication]:
        """List applications with optional filters."""
        with self._lock:
            apps = list(self._applications.values())

            if job_id is not None:
                apps = [a for a in apps if a.job_id == job_id]
            if worker_id is not None:
                apps = [a for a in apps if a.worker_id == worker_id]
            status_val = _status_value(status)
            if status_val is not None:
                apps = [a for a in apps if a.status == status_val]

            # Sort by created_at asc
            apps.sort(key=lambda a: a.created_at or self._utc_now())
            return copy.deepcopy(apps)

    def update_application_status(
        self,
        application_id: str,
        expected_status: ApplicationStatus,
        new_status: ApplicationStatus,
    ) -> Tuple[Optional[JobApplication], Optional[str]]:
        """Atomically update application status if it still has the expected value."""
        with self._lock:
            app = self._applications.get(application_id)
            if app is None:
                return None, NOT_FOUND
            if app.status != _status_value(expected_status):
                logger.warning(
                    f"Race condition detected on application {application_id}: "
                    f"expected status '{_status_value(expected_status)}', found '{app.status}'"
                )
                return None, CONFLICT
            app.status = _status_value(new_status)
            app.updated_at = self._utc_now()
            return copy.deepcopy(app), None

    def count_applications(self, job_ids: Iterable[str]) -> Dict[str, int]:
        """Count applications per job."""
        with self._lock:
            counts = {job_id: 0 for job_id in job_ids}
            for app in self._applications.values():
                if app.job_id in counts:
                    counts[app.job_id] += 1
            return counts

    # === Profiles ===

    def get_profile(self, worker_id: str) -> Optional[WorkerProfile]:
        """Get a worker profile."""
        with self._lock:
            profile = self._profiles.get(worker_id)
            return copy.deepcopy(profile) if profile else None

    def save_profile(self, profile: WorkerProfile) -> None:
        """Insert or replace a worker profile."""
        with self._lock:
            self._profiles[profile.worker_id] = copy.deepcopy(profile)

    def update_rating(self, worker_id: str, rating: float) -> WorkerProfile:
        """Overwrite a worker's rating."""
        with self._lock:
            profile = self._profiles.get(worker_id)
            if profile is None:
                profile = WorkerProfile(worker_id=worker_id)
                self._profiles[worker_id] = profile
            profile.rating = rating
            profile.updated_at = self._utc_now()
            return copy.deepcopy(profile)

    # === Transitions ===

    def save_transition(self, transition: JobStateTransition) -> str:
        """Save a state transition record."""
        with self._lock:
            self._transitions.setdefault(transition.job_id, []).append(copy.deepcopy(transition))
            return transition.id

    def get_transitions(self, job_id: str) -> List[JobStateTransition]:
        """Get all state transitions for a job."""
        with self._lock:
            transitions = self._transitions.get(job_id, [])
            # Sort by created_at asc
            return copy.deepcopy(
                sorted(transitions, key=lambda t: t.created_at or self._utc_now())
            )
