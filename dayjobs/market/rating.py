"""Rating gate: a filled job is closed out only by rating the hired worker."""

import logging
from typing import Optional

from dayjobs.errors import (
    AuthorizationError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from dayjobs.market.lifecycle import SYSTEM_ACTOR, JobLifecycleManager
from dayjobs.market.models import JobStatus, WorkerProfile, validate_rating
from dayjobs.market.storage import JobRepository

logger = logging.getLogger(__name__)


class RatingGate:
    """Records the company's rating of a hire and terminates the job.

    The rating write and the termination share one transaction, so each
    hire cycle yields exactly one rating before the job is purged.
    """

    def __init__(self, repository: JobRepository, lifecycle: JobLifecycleManager):
        self.repository = repository
        self.lifecycle = lifecycle

    def submit_rating(
        self,
        job_id: str,
        worker_id: str,
        value,
        actor_id: Optional[str] = None,
    ) -> WorkerProfile:
        """Rate the hired worker of a filled job, then terminate the job.

        Returns:
            The worker profile carrying the new rating.

        Raises:
            ValidationError: If value is not in [0, 5] in 0.5 steps.
            NotFoundError: If the job does not exist.
            AuthorizationError: If actor_id is given and is not the poster.
            InvalidStateError: If the job is not filled or worker_id is not
                the hired worker.
        """
        try:
            rating = validate_rating(value)
        except ValueError as e:
            raise ValidationError(str(e)) from e

        with self.repository.atomic() as repo:
            job = repo.get_job(job_id)
            if job is None:
                raise NotFoundError(f"Job {job_id} not found")
            if actor_id is not None and actor_id != job.poster_id:
                raise AuthorizationError(f"Only the poster can rate job {job_id}")
            if not job.is_filled:
                raise InvalidStateError(f"Cannot rate job in status '{job.status}'")

            applications = repo.list_applications(job_id=job_id, worker_id=worker_id)
            if not applications or not applications[0].is_hired:
                raise InvalidStateError(f"Worker {worker_id} was not hired for job {job_id}")

            profile = repo.update_rating(worker_id, rating)
            closed = self.lifecycle.terminate(
                job_id,
                reason="rated",
                actor_id=actor_id or SYSTEM_ACTOR,
                expected_status=JobStatus.FILLED,
            )
            if not closed:
                raise ConflictError(f"Job {job_id} changed status while rating")

        logger.info(f"Worker rated | job={job_id} | worker={worker_id} | rating={rating}")
        return profile
