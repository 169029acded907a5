"""In-process publish/subscribe for new postings.

Each worker session gets a Subscription with a bounded queue. publish()
never blocks and never raises: a full queue drops the event for that
session, which recovers on its next full listing.
"""

import asyncio
import logging
import queue
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from dayjobs.config import DEFAULT_SUBSCRIBER_QUEUE_SIZE
from dayjobs.market.models import Job, WorkerProfile

logger = logging.getLogger(__name__)

# End-of-stream marker placed on a closed subscription's queue
_CLOSED = object()


def _resolve(waiter: "asyncio.Future[None]") -> None:
    if not waiter.done():
        waiter.set_result(None)


@dataclass(frozen=True)
class JobCreatedEvent:
    """A new posting, as announced to workers."""

    job: Job
    published_at: datetime

    @property
    def job_id(self) -> str:
        return self.job.id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "job_created",
            "job": self.job.to_dict(),
            "published_at": self.published_at.isoformat(),
        }


class Subscription:
    """One worker session's event stream.

    Sync readers block on the queue; async readers park on a future that
    offer() and close() resolve from whichever thread publishes, so an idle
    async reader holds no worker thread.
    """

    def __init__(
        self,
        session_id: str,
        profile: Optional[WorkerProfile] = None,
        maxsize: int = DEFAULT_SUBSCRIBER_QUEUE_SIZE,
    ):
        self.session_id = session_id
        self.profile = profile
        self.dropped = 0
        self._queue: "queue.Queue[Any]" = queue.Queue(maxsize=maxsize)
        self._closed = False
        self._waiters: List[Tuple[asyncio.AbstractEventLoop, "asyncio.Future[None]"]] = []
        self._waiters_lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self._closed

    def offer(self, event: JobCreatedEvent) -> bool:
        """Enqueue without blocking. False if closed or full."""
        if self._closed:
            return False
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            self.dropped += 1
            return False
        self._wake_waiters()
        return True

    def close(self) -> None:
        """End the stream. Pending events are discarded if there is no room for the marker."""
        if self._closed:
            return
        self._closed = True
        while True:
            try:
                self._queue.put_nowait(_CLOSED)
                break
            except queue.Full:
                try:
                    self._queue.get_nowait()
                except queue.Empty:
                    pass
        self._wake_waiters()

    def _wake_waiters(self) -> None:
        with self._waiters_lock:
            waiters, self._waiters = self._waiters, []
        for loop, waiter in waiters:
            if loop.is_closed():
                continue
            loop.call_soon_threadsafe(_resolve, waiter)

    def _forget_waiter(self, waiter: "asyncio.Future[None]") -> None:
        with self._waiters_lock:
            self._waiters = [(lp, w) for lp, w in self._waiters if w is not waiter]

    def _unwrap(self, item: Any) -> Optional[JobCreatedEvent]:
        if item is _CLOSED:
            # Leave the marker for any other reader
            try:
                self._queue.put_nowait(_CLOSED)
            except queue.Full:
                pass
            return None
        return item

    def get(self, timeout: Optional[float] = None) -> Optional[JobCreatedEvent]:
        """Block for the next event.

        Returns None on timeout or at end of stream; check `closed` to tell
        them apart.
        """
        try:
            item = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None
        return self._unwrap(item)

    def get_nowait(self) -> Optional[JobCreatedEvent]:
        try:
            item = self._queue.get_nowait()
        except queue.Empty:
            return None
        return self._unwrap(item)

    def drain(self) -> List[JobCreatedEvent]:
        """Everything queued right now."""
        events = []
        while True:
            event = self.get_nowait()
            if event is None:
                return events
            events.append(event)

    async def next_event(self, timeout: Optional[float] = None) -> Optional[JobCreatedEvent]:
        """Async get(). Same None semantics; runs entirely on the event loop."""
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        while True:
            waiter = loop.create_future()
            # Register before checking the queue so an offer() in between still wakes us
            with self._waiters_lock:
                self._waiters.append((loop, waiter))
            try:
                event = self.get_nowait()
                if event is not None or self._closed:
                    return event
                remaining = None if deadline is None else deadline - loop.time()
                if remaining is not None and remaining <= 0:
                    return None
                try:
                    await asyncio.wait_for(waiter, remaining)
                except asyncio.TimeoutError:
                    return None
            finally:
                self._forget_waiter(waiter)

    async def __aiter__(self):
        while True:
            event = await self.next_event()
            if event is None:
                return
            yield event


class NotificationDispatcher:
    """Fans new jobs out to the eligible subscribed worker sessions."""

    def __init__(self, queue_size: int = DEFAULT_SUBSCRIBER_QUEUE_SIZE):
        self.queue_size = queue_size
        self._subscriptions: Dict[str, Subscription] = {}
        self._lock = threading.Lock()

    def subscribe(self, session_id: str, profile: Optional[WorkerProfile] = None) -> Subscription:
        """Open a stream for a session, replacing (and closing) any previous one."""
        subscription = Subscription(session_id, profile=profile, maxsize=self.queue_size)
        with self._lock:
            previous = self._subscriptions.get(session_id)
            self._subscriptions[session_id] = subscription
        if previous is not None:
            previous.close()
        logger.debug(f"Session subscribed | session={session_id}")
        return subscription

    def unsubscribe(self, session_id: str) -> bool:
        """Close a session's stream. False if it was not subscribed."""
        with self._lock:
            subscription = self._subscriptions.pop(session_id, None)
        if subscription is None:
            return False
        subscription.close()
        logger.debug(f"Session unsubscribed | session={session_id}")
        return True

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def publish(self, job: Job) -> int:
        """Announce a job. Returns the number of sessions it was queued for."""
        try:
            with self._lock:
                targets = list(self._subscriptions.values())

            event = JobCreatedEvent(job=job, published_at=datetime.now(timezone.utc))
            delivered = 0
            for subscription in targets:
                if not job.is_eligible(subscription.profile):
                    continue
                if subscription.offer(event):
                    delivered += 1
                elif not subscription.closed:
                    logger.warning(
                        f"Dropped job_created event | session={subscription.session_id} "
                        f"| job={job.id} | reason=queue_full"
                    )
            return delivered
        except Exception:
            logger.exception(f"Failed to publish job {getattr(job, 'id', None)}")
            return 0

    def close(self) -> None:
        """Close every subscription."""
        with self._lock:
            subscriptions = list(self._subscriptions.values())
            self._subscriptions.clear()
        for subscription in subscriptions:
            subscription.close()
