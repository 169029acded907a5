"""The hire: one application to HIRED and its job to FILLED, all or nothing."""

import logging
from typing import Optional, Tuple

from dayjobs.clock import Clock
from dayjobs.errors import (
    AuthorizationError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
)
from dayjobs.market.lifecycle import record_transition
from dayjobs.market.models import ApplicationStatus, Job, JobApplication, JobStatus
from dayjobs.market.storage import NOT_FOUND, JobRepository

logger = logging.getLogger(__name__)


class HiringCoordinator:
    """Executes hires.

    Preconditions are checked on a plain read first, so the common failures
    leave no trace. The writes then run in one transaction as two
    compare-and-set updates; losing either one rolls both back and raises
    ConflictError.
    """

    def __init__(self, repository: JobRepository, clock: Clock):
        self.repository = repository
        self.clock = clock

    def hire(
        self,
        job_id: str,
        application_id: str,
        actor_id: Optional[str] = None,
    ) -> Tuple[Job, JobApplication]:
        """Hire the worker behind an application.

        Args:
            job_id: Job being filled.
            application_id: Application to promote.
            actor_id: Caller identity; must be the poster. None for trusted
                internal callers.

        Returns:
            The updated (job, application) pair.

        Raises:
            NotFoundError: If the job or application does not exist, or the
                application belongs to another job.
            AuthorizationError: If actor_id is not the poster.
            InvalidStateError: If the job is not open or the application is
                not pending.
            ConflictError: If another hire or a termination won the race.
        """
        job = self.repository.get_job(job_id)
        if job is None:
            raise NotFoundError(f"Job {job_id} not found")
        if actor_id is not None and actor_id != job.poster_id:
            raise AuthorizationError(f"Only the poster can hire for job {job_id}")
        if not job.is_open:
            raise InvalidStateError(f"Cannot hire for job in status '{job.status}'")

        application = self.repository.get_application(application_id)
        if application is None or application.job_id != job_id:
            raise NotFoundError(f"Application {application_id} not found for job {job_id}")
        if application.status != ApplicationStatus.PENDING.value:
            raise InvalidStateError(
                f"Cannot hire application in status '{application.status}'"
            )

        with self.repository.atomic() as repo:
            filled_job, error = repo.update_job_status(job_id, JobStatus.OPEN, JobStatus.FILLED)
            if error == NOT_FOUND:
                raise NotFoundError(f"Job {job_id} was removed before the hire")
            if error:
                raise ConflictError(f"Job {job_id} is no longer open")

            hired, error = repo.update_application_status(
                application_id, ApplicationStatus.PENDING, ApplicationStatus.HIRED
            )
            if error:
                raise ConflictError(f"Application {application_id} is no longer pending")

            record_transition(
                repo,
                self.clock,
                job_id,
                JobStatus.OPEN,
                JobStatus.FILLED,
                actor_id or job.poster_id,
                f"hired {application.worker_id}",
            )

        logger.info(
            f"Worker hired | job={job_id} | application={application_id} | worker={hired.worker_id}"
        )
        return filled_job, hired
