"""In-memory processing request store. Keyed by request ID."""

import asyncio
import logging
from datetime import datetime, timedelta, timezone

from models.request import ProcessingRequest

logger = logging.getLogger(__name__)

REQUEST_RETENTION_SECONDS = 3600    # finished requests stay readable for an hour

processing_requests: dict[str, ProcessingRequest] = {}
cancel_events: dict[str, asyncio.Event] = {}


def prune_finished_requests(
    retention_seconds: float = REQUEST_RETENTION_SECONDS,
    now: datetime | None = None,
) -> int:
    """Drop requests that finished more than `retention_seconds` ago. Returns how many were dropped."""
    cutoff = (now or datetime.now(timezone.utc)) - timedelta(seconds=retention_seconds)
    expired = [
        request_id
        for request_id, request in processing_requests.items()
        if request.finished_at is not None and request.finished_at < cutoff
    ]
    for request_id in expired:
        del processing_requests[request_id]
    if expired:
        logger.info("[store] Pruned %d finished requests", len(expired))
    return len(expired)
