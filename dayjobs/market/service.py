"""Marketplace facade wiring the engine components to one repository."""

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union

from dayjobs.clock import Clock, SystemClock
from dayjobs.config import MarketConfig
from dayjobs.market.applications import ApplicationManager
from dayjobs.market.hiring import HiringCoordinator
from dayjobs.market.lifecycle import JobLifecycleManager
from dayjobs.market.models import (
    Job,
    JobApplication,
    JobStateTransition,
    WorkerProfile,
)
from dayjobs.market.notifications import NotificationDispatcher, Subscription
from dayjobs.market.rating import RatingGate
from dayjobs.market.storage import InMemoryJobRepository, JobRepository
from dayjobs.market.sweeper import ExpirySweeper, SweepReport

logger = logging.getLogger(__name__)


class Marketplace:
    """Single entry point for the presentation layer.

    Example:
        market = Marketplace.from_sqlite("~/.dayjobs/market.db")
        job = market.create_job("c1", role="Cook", daily_rate=150, ...)
        app = market.apply(job.id, "w1")
        market.hire(job.id, app.id, actor_id="c1")
        market.submit_rating(job.id, "w1", 4.5, actor_id="c1")
    """

    def __init__(
        self,
        repository: Optional[JobRepository] = None,
        clock: Optional[Clock] = None,
        config: Optional[MarketConfig] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
    ):
        self.config = config or MarketConfig()
        self.clock = clock or SystemClock()
        self.repository = repository if repository is not None else InMemoryJobRepository()
        self.dispatcher = dispatcher or NotificationDispatcher(
            queue_size=self.config.subscriber_queue_size
        )

        self.jobs = JobLifecycleManager(self.repository, self.clock, self.config, self.dispatcher)
        self.applications = ApplicationManager(self.repository, self.clock)
        self.hiring = HiringCoordinator(self.repository, self.clock)
        self.ratings = RatingGate(self.repository, self.jobs)
        self.sweeper = ExpirySweeper(self.repository, self.jobs, self.clock, self.config)

    @classmethod
    def from_sqlite(cls, db_path: Union[str, Path], **kwargs) -> "Marketplace":
        from dayjobs.market.sqlite import SQLiteJobRepository

        logger.info(f"Opening marketplace database at {db_path}")
        return cls(repository=SQLiteJobRepository(db_path), **kwargs)

    # === Jobs ===

    def create_job(self, poster_id: str, **attributes) -> Job:
        return self.jobs.create_job(poster_id, **attributes)

    def get_job(self, job_id: str) -> Job:
        return self.jobs.get_job(job_id)

    def cancel(self, job_id: str, by_poster_id: str) -> None:
        self.jobs.cancel(job_id, by_poster_id)

    def terminate(self, job_id: str, reason: str, **kwargs) -> bool:
        return self.jobs.terminate(job_id, reason, **kwargs)

    def list_open_jobs(
        self, query: Optional[str] = None, profile: Optional[WorkerProfile] = None
    ) -> List[Job]:
        return self.jobs.list_open_jobs(query=query, profile=profile)

    def list_jobs_for_poster(self, poster_id: str) -> List[Job]:
        return self.jobs.list_jobs_for_poster(poster_id)

    def get_job_history(self, job_id: str) -> List[JobStateTransition]:
        return self.jobs.get_job_history(job_id)

    # === Applications ===

    def apply(self, job_id: str, worker_id: str, worker_name: Optional[str] = None) -> JobApplication:
        return self.applications.apply(job_id, worker_id, worker_name=worker_name)

    def list_for_job(self, job_id: str) -> List[JobApplication]:
        return self.applications.list_for_job(job_id)

    def list_for_worker(self, worker_id: str) -> Set[str]:
        return self.applications.list_for_worker(worker_id)

    def list_for_poster(self, poster_id: str) -> Dict[str, List[JobApplication]]:
        return self.applications.list_for_poster(poster_id)

    def application_counts(self, job_ids: Iterable[str]) -> Dict[str, int]:
        return self.applications.application_counts(job_ids)

    # === Hiring and rating ===

    def hire(
        self, job_id: str, application_id: str, actor_id: Optional[str] = None
    ) -> Tuple[Job, JobApplication]:
        return self.hiring.hire(job_id, application_id, actor_id=actor_id)

    def submit_rating(
        self, job_id: str, worker_id: str, value, actor_id: Optional[str] = None
    ) -> WorkerProfile:
        return self.ratings.submit_rating(job_id, worker_id, value, actor_id=actor_id)

    # === Profiles ===

    def get_profile(self, worker_id: str) -> Optional[WorkerProfile]:
        return self.repository.get_profile(worker_id)

    def save_profile(self, profile: WorkerProfile) -> None:
        self.repository.save_profile(profile)

    # === Background work ===

    def sweep(self, dry_run: bool = False) -> SweepReport:
        return self.sweeper.sweep(dry_run=dry_run)

    def subscribe(self, session_id: str, profile: Optional[WorkerProfile] = None) -> Subscription:
        return self.dispatcher.subscribe(session_id, profile=profile)

    def unsubscribe(self, session_id: str) -> bool:
        return self.dispatcher.unsubscribe(session_id)

    async def shutdown(self) -> None:
        """Stop the sweeper loop and end every event stream."""
        await self.sweeper.stop()
        self.dispatcher.close()
