"""
Error taxonomy for the dayjobs marketplace.

Every operation of the engine fails with one of the classes below. The
presentation layer maps them onto user-visible outcomes:

- ValidationError:    malformed input; the caller corrects it and retries
- InvalidStateError:  the operation is illegal for the current job/application
                      status; shown to the actor, never retried automatically
- ConflictError:      lost a race on a conditional update; safe to retry once
                      after re-reading state
- DuplicateError:     the write already happened ("already applied")
- AuthorizationError: the caller does not own the resource
- NotFoundError:      the job or application is gone (often swept or rated
                      concurrently); a benign terminal outcome
"""


class MarketplaceError(Exception):
    """Base for all marketplace errors."""

    pass


class ValidationError(MarketplaceError, ValueError):
    """Raised when input fails validation."""

    pass


class InvalidStateError(MarketplaceError):
    """Raised when an operation is not allowed in the current status."""

    pass


class ConflictError(MarketplaceError):
    """Raised when a compare-and-set on a status field loses a race."""

    pass


class DuplicateError(MarketplaceError):
    """Raised when a worker applies twice to the same job."""

    def __init__(self, job_id: str, worker_id: str):
        super().__init__(f"Worker {worker_id} already applied to job {job_id}")
        self.job_id = job_id
        self.worker_id = worker_id


class AuthorizationError(MarketplaceError):
    """Raised when the caller is not the owner of the resource."""

    pass


class NotFoundError(MarketplaceError):
    """Raised when a job or application does not exist (any more)."""

    pass
