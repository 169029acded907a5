"""Worker applications and the suppressed "active" view of them."""

import logging
import uuid
from typing import Dict, Iterable, List, Optional, Set

from dayjobs.clock import Clock
from dayjobs.errors import (
    DuplicateError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from dayjobs.market.models import ApplicationStatus, JobApplication
from dayjobs.market.storage import JobRepository

logger = logging.getLogger(__name__)


def suppress_siblings(applications: List[JobApplication]) -> List[JobApplication]:
    """Active view of one job's applications.

    Once an application is hired it is the only one shown; until then the
    pending ones are shown in the order they came in.
    """
    hired = [a for a in applications if a.is_hired]
    if hired:
        return hired[:1]
    return [a for a in applications if a.status == ApplicationStatus.PENDING.value]


class ApplicationManager:
    """Creates applications and serves the company and worker views of them."""

    def __init__(self, repository: JobRepository, clock: Clock):
        self.repository = repository
        self.clock = clock

    def apply(
        self,
        job_id: str,
        worker_id: str,
        worker_name: Optional[str] = None,
    ) -> JobApplication:
        """Apply a worker to an open job.

        Raises:
            NotFoundError: If the job does not exist.
            InvalidStateError: If the job is no longer open.
            ValidationError: If the poster applies to its own job.
            DuplicateError: If the worker already applied.
        """
        if not worker_id:
            raise ValidationError("worker_id is required")

        now = self.clock.now()
        application = JobApplication(
            id=str(uuid.uuid4()),
            job_id=job_id,
            worker_id=worker_id,
            worker_name=worker_name,
            status=ApplicationStatus.PENDING,
            created_at=now,
            updated_at=now,
        )

        try:
            with self.repository.atomic() as repo:
                job = repo.get_job(job_id)
                if job is None:
                    raise NotFoundError(f"Job {job_id} not found")
                if not job.is_open:
                    raise InvalidStateError(f"Job is not open for applications (status: {job.status})")
                if job.poster_id == worker_id:
                    raise ValidationError("Cannot apply to your own job")
                repo.save_application(application)
        except DuplicateError:
            logger.info(f"Duplicate application | job={job_id} | worker={worker_id}")
            raise

        logger.info(f"Application created | id={application.id} | job={job_id} | worker={worker_id}")
        return application

    def list_for_job(self, job_id: str) -> List[JobApplication]:
        """Active applications for a job (see suppress_siblings).

        Raises:
            NotFoundError: If the job does not exist.
        """
        with self.repository.atomic() as repo:
            if repo.get_job(job_id) is None:
                logger.debug(f"Job {job_id} not found")
                raise NotFoundError(f"Job {job_id} not found")
            applications = repo.list_applications(job_id=job_id)
        return suppress_siblings(applications)

    def list_for_worker(self, worker_id: str) -> Set[str]:
        """IDs of the live jobs a worker has applied to."""
        return {a.job_id for a in self.repository.list_applications(worker_id=worker_id)}

    def list_for_poster(self, poster_id: str) -> Dict[str, List[JobApplication]]:
        """Active applications for each of a company's jobs, keyed by job ID."""
        with self.repository.atomic() as repo:
            jobs = repo.list_jobs(poster_id=poster_id)
            return {
                job.id: suppress_siblings(repo.list_applications(job_id=job.id)) for job in jobs
            }

    def application_counts(self, job_ids: Iterable[str]) -> Dict[str, int]:
        """How many workers applied to each job, suppressed ones included."""
        return self.repository.count_applications(job_ids)
