"""Job marketplace engine.

Models:
- Job: A single-day work posting
- JobApplication: A worker's application to a job
- JobStatus / ApplicationStatus: Lifecycle statuses
- JobStateTransition: Audit log entry for state changes
- WorkerProfile: The worker attributes the engine reads and the rating it writes

Components:
- JobLifecycleManager: create, cancel, terminate, job reads
- ApplicationManager: apply and the suppressed application views
- HiringCoordinator: the atomic hire
- RatingGate: rating-gated close-out of filled jobs
- ExpirySweeper: background purge of elapsed postings
- NotificationDispatcher: new-job fan-out to worker sessions
- Marketplace: facade wiring all of the above

Storage:
- JobRepository: Protocol for storage backends
- InMemoryJobRepository / SQLiteJobRepository
"""

from dayjobs.market.applications import ApplicationManager, suppress_siblings
from dayjobs.market.hiring import HiringCoordinator
from dayjobs.market.lifecycle import JobLifecycleManager
from dayjobs.market.models import (
    VALID_JOB_TRANSITIONS,
    ApplicationStatus,
    Job,
    JobApplication,
    JobStateTransition,
    JobStatus,
    LicenseCategory,
    RequiredGender,
    WorkerProfile,
    license_covers,
    validate_rating,
)
from dayjobs.market.notifications import (
    JobCreatedEvent,
    NotificationDispatcher,
    Subscription,
)
from dayjobs.market.rating import RatingGate
from dayjobs.market.service import Marketplace
from dayjobs.market.sqlite import SQLiteJobRepository
from dayjobs.market.storage import InMemoryJobRepository, JobRepository
from dayjobs.market.sweeper import ExpirySweeper, SweepAction, SweepReport

__all__ = [
    # Models
    "Job",
    "JobApplication",
    "JobStatus",
    "ApplicationStatus",
    "JobStateTransition",
    "WorkerProfile",
    "RequiredGender",
    "LicenseCategory",
    "VALID_JOB_TRANSITIONS",
    "license_covers",
    "validate_rating",
    # Components
    "JobLifecycleManager",
    "ApplicationManager",
    "suppress_siblings",
    "HiringCoordinator",
    "RatingGate",
    "ExpirySweeper",
    "SweepAction",
    "SweepReport",
    "NotificationDispatcher",
    "Subscription",
    "JobCreatedEvent",
    "Marketplace",
    # Storage
    "JobRepository",
    "InMemoryJobRepository",
    "SQLiteJobRepository",
]
