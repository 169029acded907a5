"""Server-sent events for worker sessions.

Each connection is one dispatcher subscription; it is removed when the
client disconnects or the stream ends.
"""

import asyncio
import json
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse

from dayjobs.market.notifications import JobCreatedEvent

from ..auth import WorkerActor
from ..config import Settings, get_settings
from ..database import Market
from ..logging_config import get_logger
from ..rate_limit import limiter

logger = get_logger("dayjobs.api.events")
router = APIRouter(prefix="/events", tags=["events"])


def format_sse(event: JobCreatedEvent) -> str:
    """Encode an event as one SSE frame."""
    return f"id: {event.job_id}\nevent: job_created\ndata: {json.dumps(event.to_dict())}\n\n"


@router.get("/jobs")
@limiter.limit("10/minute")
async def stream_job_events(
    request: Request,
    auth: WorkerActor,
    market: Market,
    settings: Annotated[Settings, Depends(get_settings)],
    max_events: int | None = Query(
        None, ge=1, le=1000, description="Close the stream after this many events (long-poll clients)"
    ),
):
    """
    Stream new postings the calling worker is eligible for.

    Delivery is best-effort: a reconnecting client should refetch GET /jobs.
    """
    session_id = f"{auth.actor_id}:{uuid.uuid4().hex[:12]}"
    profile = await asyncio.to_thread(market.get_profile, auth.actor_id)
    subscription = market.subscribe(session_id, profile=profile)
    logger.info(f"GET /events/jobs | worker={auth.actor_id} | session={session_id}")

    async def event_stream():
        sent = 0
        try:
            yield ": connected\n\n"
            while max_events is None or sent < max_events:
                if await request.is_disconnected():
                    break
                event = await subscription.next_event(timeout=settings.sse_heartbeat_seconds)
                if event is None:
                    if subscription.closed:
                        break
                    yield ": keep-alive\n\n"
                    continue
                yield format_sse(event)
                sent += 1
        finally:
            market.unsubscribe(session_id)
            logger.info(f"Event stream closed | session={session_id} | sent={sent}")

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
