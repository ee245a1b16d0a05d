from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import Any


class ProgressHub:
    """
    In-memory pubsub for streaming processing progress to WebSocket subscribers.

    Payloads are either progress events:
      {"progress": 0-100, "currentStep": "..."}
    or a final status message:
      {"status": "completed" | "failed" | "cancelled", "song_id"?: str, "error"?: str}

    The most recent payload per request is replayed to late subscribers so a
    client that connects mid-job sees where it stands.
    """

    def __init__(self, *, queue_size: int = 16) -> None:
        self._lock = asyncio.Lock()
        self._queue_size = queue_size
        self._subscribers: dict[str, set[asyncio.Queue[dict[str, Any]]]] = defaultdict(set)
        self._latest: dict[str, dict[str, Any]] = {}

    async def subscribe(self, request_id: str) -> asyncio.Queue[dict[str, Any]]:
        q: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=self._queue_size)
        async with self._lock:
            self._subscribers[request_id].add(q)
            latest = self._latest.get(request_id)
        if latest is not None:
            q.put_nowait(latest)
        return q

    async def unsubscribe(self, request_id: str, q: asyncio.Queue[dict[str, Any]]) -> None:
        async with self._lock:
            subs = self._subscribers.get(request_id)
            if not subs:
                return
            subs.discard(q)
            if not subs:
                self._subscribers.pop(request_id, None)

    async def publish(self, request_id: str, payload: dict[str, Any]) -> None:
        async with self._lock:
            self._latest[request_id] = payload
            subs = list(self._subscribers.get(request_id, set()))
        for q in subs:
            # Drop the oldest event rather than block the poller.
            if q.full():
                try:
                    _ = q.get_nowait()
                except asyncio.QueueEmpty:
                    pass
            try:
                q.put_nowait(payload)
            except asyncio.QueueFull:
                pass

    async def forget(self, request_id: str) -> None:
        async with self._lock:
            self._latest.pop(request_id, None)


progress_hub = ProgressHub()
