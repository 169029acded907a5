"""Job lifecycle: creation, termination, cancellation and job reads.

Termination hard-deletes the job and its applications in one repository
transaction; only the audit trail survives it.
"""

import logging
import uuid
from typing import List, Optional

from dayjobs.clock import Clock
from dayjobs.config import MarketConfig
from dayjobs.errors import (
    AuthorizationError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from dayjobs.market.models import (
    Job,
    JobStateTransition,
    JobStatus,
    WorkerProfile,
)
from dayjobs.market.storage import JobRepository, _status_value

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"


def record_transition(
    repo: JobRepository,
    clock: Clock,
    job_id: str,
    from_status: Optional[str],
    to_status: str,
    actor_id: str,
    reason: Optional[str] = None,
) -> JobStateTransition:
    """Append an audit entry. Call it inside the transaction making the change."""
    transition = JobStateTransition(
        id=str(uuid.uuid4()),
        job_id=job_id,
        from_status=_status_value(from_status),
        to_status=_status_value(to_status),
        actor_id=actor_id,
        reason=reason,
        created_at=clock.now(),
    )
    repo.save_transition(transition)
    return transition


class JobLifecycleManager:
    """Owns job state transitions other than the hire."""

    def __init__(
        self,
        repository: JobRepository,
        clock: Clock,
        config: Optional[MarketConfig] = None,
        dispatcher=None,
    ):
        self.repository = repository
        self.clock = clock
        self.config = config or MarketConfig()
        self.dispatcher = dispatcher

    def create_job(
        self,
        poster_id: str,
        *,
        role: str,
        service_date,
        start_time,
        end_time,
        daily_rate,
        description: str = "",
        benefits: Optional[List[str]] = None,
        city: Optional[str] = None,
        neighborhood: Optional[str] = None,
        company_name: Optional[str] = None,
        required_gender: Optional[str] = None,
        required_license: Optional[str] = None,
    ) -> Job:
        """Create an OPEN job and announce it to subscribed workers.

        Raises:
            ValidationError: If any attribute is missing or out of range,
                or the service date is already in the past.
        """
        if not isinstance(role, str):
            raise ValidationError("Role is required")
        if len(role.strip()) > self.config.max_role_length:
            raise ValidationError(
                f"Role cannot exceed {self.config.max_role_length} characters"
            )

        now = self.clock.now()
        try:
            job = Job(
                id=str(uuid.uuid4()),
                poster_id=poster_id,
                role=role,
                service_date=service_date,
                start_time=start_time,
                end_time=end_time,
                daily_rate=daily_rate,
                description=description or "",
                benefits=list(benefits or []),
                city=city,
                neighborhood=neighborhood,
                company_name=company_name,
                required_gender=required_gender,
                required_license=required_license,
                status=JobStatus.OPEN,
                created_at=now,
                updated_at=now,
            )
        except (TypeError, ValueError) as e:
            raise ValidationError(str(e)) from e

        today = self.clock.today()
        if job.service_date < today:
            raise ValidationError(
                f"Service date {job.service_date.isoformat()} is in the past (today is {today.isoformat()})"
            )

        with self.repository.atomic() as repo:
            repo.save_job(job)
            record_transition(
                repo, self.clock, job.id, None, JobStatus.OPEN, poster_id, "created"
            )

        logger.info(f"Job created | id={job.id} | poster={poster_id} | date={job.service_date}")

        # Only after commit: subscribers must be able to read what they are told about
        if self.dispatcher is not None:
            try:
                self.dispatcher.publish(job)
            except Exception as e:
                logger.warning(f"Failed to publish job {job.id}: {e}")

        return job

    def terminate(
        self,
        job_id: str,
        reason: str,
        actor_id: str = SYSTEM_ACTOR,
        expected_status: Optional[JobStatus] = None,
    ) -> bool:
        """Delete a job together with its applications.

        Idempotent: returns False when the job is already gone, or when
        expected_status is given and the job has moved on from it.
        """
        expected = _status_value(expected_status)
        with self.repository.atomic() as repo:
            job = repo.get_job(job_id)
            if job is None:
                logger.debug(f"Terminate skipped, job {job_id} already gone")
                return False
            if expected is not None and job.status != expected:
                logger.info(
                    f"Terminate skipped for job {job_id}: "
                    f"expected status '{expected}', found '{job.status}'"
                )
                return False

            repo.delete_job(job_id)
            record_transition(
                repo, self.clock, job_id, job.status, JobStatus.TERMINATED, actor_id, reason
            )

        logger.info(f"Job terminated | id={job_id} | from={job.status} | reason={reason}")
        return True

    def cancel(self, job_id: str, by_poster_id: str) -> None:
        """Withdraw a posting on behalf of its owner.

        Raises:
            NotFoundError: If the job does not exist.
            AuthorizationError: If the caller is not the poster.
            InvalidStateError: If the job can no longer be cancelled.
            ConflictError: If the job changed status while cancelling.
        """
        job = self.get_job(job_id)
        if job.poster_id != by_poster_id:
            raise AuthorizationError(f"Only the poster can cancel job {job_id}")
        if not job.can_transition_to(JobStatus.TERMINATED):
            raise InvalidStateError(f"Cannot cancel job in status '{job.status}'")

        if self.terminate(job_id, "cancelled", actor_id=by_poster_id, expected_status=job.status):
            return

        if self.repository.get_job(job_id) is None:
            raise NotFoundError(f"Job {job_id} not found")
        raise ConflictError(f"Job {job_id} changed status while cancelling")

    # === Reads ===

    def get_job(self, job_id: str) -> Job:
        job = self.repository.get_job(job_id)
        if job is None:
            logger.debug(f"Job {job_id} not found")
            raise NotFoundError(f"Job {job_id} not found")
        return job

    def list_jobs_for_poster(self, poster_id: str) -> List[Job]:
        """Every live job of a company, newest first."""
        return self.repository.list_jobs(poster_id=poster_id)

    def list_open_jobs(
        self,
        query: Optional[str] = None,
        profile: Optional[WorkerProfile] = None,
    ) -> List[Job]:
        """Open jobs, newest first.

        Args:
            query: Case-insensitive substring matched against role and
                company name.
            profile: When given, only jobs whose gender/license filters
                the worker satisfies.
        """
        jobs = self.repository.list_jobs(status=JobStatus.OPEN)

        if query and query.strip():
            needle = query.strip().casefold()
            jobs = [
                j
                for j in jobs
                if needle in j.role.casefold() or needle in (j.company_name or "").casefold()
            ]
        if profile is not None:
            jobs = [j for j in jobs if j.is_eligible(profile)]

        return jobs

    def get_job_history(self, job_id: str) -> List[JobStateTransition]:
        """Audit trail for a job, oldest first. Available after termination."""
        return self.repository.get_transitions(job_id)
