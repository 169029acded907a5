"""Expiry sweeper.

Terminates OPEN postings whose service date has fully elapsed
(service_date + 1 day <= today). FILLED jobs wait for their rating and are
only reclaimed when MarketConfig.filled_grace_days is set and that many
extra days have passed as well.

The sweep itself is synchronous; ExpirySweeper.start() runs it on a fixed
interval from an asyncio task, one worker thread per tick.
"""

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import List, Optional

from dayjobs.clock import Clock
from dayjobs.config import MarketConfig
from dayjobs.market.lifecycle import JobLifecycleManager
from dayjobs.market.models import JobStatus
from dayjobs.market.storage import JobRepository

logger = logging.getLogger(__name__)

SWEEPER_ACTOR = "sweeper"


@dataclass
class SweepAction:
    """A single termination taken, or to be taken, by a sweep."""

    job_id: str
    action: str  # "terminated", "would_terminate", "skipped", "failed"
    reason: str
    previous_status: str
    service_date: date


@dataclass
class SweepReport:
    """Outcome of one sweep."""

    dry_run: bool
    checked_at: datetime
    actions: List[SweepAction] = field(default_factory=list)

    def _ids(self, action: str) -> List[str]:
        return [a.job_id for a in self.actions if a.action == action]

    @property
    def terminated(self) -> List[str]:
        return self._ids("terminated")

    @property
    def would_terminate(self) -> List[str]:
        return self._ids("would_terminate")

    @property
    def skipped(self) -> List[str]:
        return self._ids("skipped")

    @property
    def failed(self) -> List[str]:
        return self._ids("failed")


class ExpirySweeper:
    """Purges postings that can no longer be worked."""

    def __init__(
        self,
        repository: JobRepository,
        lifecycle: JobLifecycleManager,
        clock: Clock,
        config: Optional[MarketConfig] = None,
    ):
        self.repository = repository
        self.lifecycle = lifecycle
        self.clock = clock
        self.config = config or MarketConfig()
        self.last_report: Optional[SweepReport] = None
        self._task: Optional[asyncio.Task] = None

    def _expired(self):
        """Yield (job, reason) for every job due for termination."""
        today = self.clock.today()

        # service_date + 1 day <= today  <=>  service_date < today
        for job in self.repository.list_jobs(status=JobStatus.OPEN, service_date_before=today):
            yield job, "expired"

        grace = self.config.filled_grace_days
        if grace is not None:
            cutoff = today - timedelta(days=grace)
            for job in self.repository.list_jobs(
                status=JobStatus.FILLED, service_date_before=cutoff
            ):
                yield job, "unrated_expired"

    def sweep(self, dry_run: bool = False) -> SweepReport:
        """Run one pass. Safe to call concurrently with any other terminate."""
        report = SweepReport(dry_run=dry_run, checked_at=self.clock.now())

        for job, reason in self._expired():
            if dry_run:
                action = "would_terminate"
            else:
                try:
                    done = self.lifecycle.terminate(
                        job.id,
                        reason=reason,
                        actor_id=SWEEPER_ACTOR,
                        expected_status=job.status,
                    )
                    action = "terminated" if done else "skipped"
                except Exception:
                    logger.exception(f"Failed to terminate expired job {job.id}")
                    action = "failed"

            report.actions.append(
                SweepAction(
                    job_id=job.id,
                    action=action,
                    reason=reason,
                    previous_status=job.status,
                    service_date=job.service_date,
                )
            )

        if report.actions:
            logger.info(
                f"Sweep complete | dry_run={dry_run} | terminated={len(report.terminated)} "
                f"| would_terminate={len(report.would_terminate)} | skipped={len(report.skipped)} "
                f"| failed={len(report.failed)}"
            )
        if not dry_run:
            self.last_report = report
        return report

    # === Background loop ===

    async def tick(self) -> Optional[SweepReport]:
        """Run one sweep in a worker thread. Errors are logged, not raised."""
        try:
            return await asyncio.to_thread(self.sweep)
        except Exception:
            logger.exception("Expiry sweep failed, retrying next tick")
            return None

    async def run_forever(self) -> None:
        interval = self.config.sweep_interval_seconds
        logger.info(f"Expiry sweeper running every {interval}s")
        while True:
            await self.tick()
            await asyncio.sleep(interval)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        """Schedule the loop on the running event loop. No-op if already running."""
        if not self.running:
            self._task = asyncio.get_running_loop().create_task(self.run_forever())
        return self._task

    async def stop(self) -> None:
        """Cancel the loop. A sweep already in its worker thread runs to completion."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("Expiry sweeper stopped")
