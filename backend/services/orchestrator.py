from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

import httpx

from models.job import ProgressEvent
from models.song import Song
from models.source import ProcessingPreferences, SourceRef
from services.api_client import AnalysisApiClient, error_detail
from services.config import Settings
from services.errors import (
    NormalizationError,
    ProcessingCancelledError,
    ProcessingFailedError,
    ProcessingTimeoutError,
    SubmissionError,
)
from services.normalizer import normalize
from services.poller import ProgressCallback, StatusPoller, notify_progress
from services.song_cache import SongCache
from services.submission import SubmissionClient

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "Processing timed out. Please check back later."
CANCELLED_MESSAGE = "Processing was cancelled."
NORMALIZATION_MESSAGE = "The processed song could not be read. Please try again."
UNREACHABLE_MESSAGE = "Could not reach the song processing server. Please try again."
GENERIC_MESSAGE = "Failed to process song"


def user_message(exc: BaseException) -> str:
    """One user-facing sentence for any error `process()` can raise."""
    if isinstance(exc, (SubmissionError, ProcessingFailedError)):
        return str(exc) or GENERIC_MESSAGE
    if isinstance(exc, ProcessingTimeoutError):
        return TIMEOUT_MESSAGE
    if isinstance(exc, ProcessingCancelledError):
        return CANCELLED_MESSAGE
    if isinstance(exc, NormalizationError):
        return NORMALIZATION_MESSAGE
    if isinstance(exc, httpx.HTTPStatusError):
        return error_detail(exc) or GENERIC_MESSAGE
    if isinstance(exc, httpx.HTTPError):
        return UNREACHABLE_MESSAGE
    return GENERIC_MESSAGE


@dataclass
class _InFlight:
    """One shared job plus the callers currently waiting on it."""

    task: asyncio.Task[Song] | None = None
    listeners: list[ProgressCallback] = field(default_factory=list)
    waiters: int = 0
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)

    async def broadcast(self, event: ProgressEvent) -> None:
        for listener in list(self.listeners):
            await notify_progress(listener, event)


class ProcessingOrchestrator:
    """
    submit -> (poll) -> normalize -> cache -> return Song.

    Holds no application state: progress goes to the caller's callback and the
    Song is returned. Concurrent calls for the same source share one in-flight
    task. Every joined caller receives progress through its own callback, and
    one caller cancelling does not affect the others.
    """

    def __init__(
        self,
        submission: SubmissionClient,
        poller: StatusPoller,
        cache: SongCache,
        *,
        coalesce: bool = True,
    ) -> None:
        self._submission = submission
        self._poller = poller
        self._cache = cache
        self._coalesce = coalesce
        self._inflight: dict[str, _InFlight] = {}

    @classmethod
    def from_settings(cls, settings: Settings, api: AnalysisApiClient) -> ProcessingOrchestrator:
        poller = StatusPoller(
            api,
            interval_seconds=settings.poll_interval_seconds,
            max_polls=settings.max_polls,
            max_consecutive_errors=settings.max_consecutive_errors,
        )
        cache = SongCache(
            max_entries=settings.cache_max_entries,
            ttl_seconds=settings.cache_ttl_seconds,
            path=settings.cache_path,
        )
        return cls(SubmissionClient(api), poller, cache)

    @property
    def cache(self) -> SongCache:
        return self._cache

    async def process(
        self,
        source: SourceRef,
        preferences: ProcessingPreferences | None = None,
        *,
        on_progress: ProgressCallback | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> Song:
        if not self._coalesce:
            return await self._run(source, preferences, on_progress, cancel_event)

        key = source.dedupe_key
        flight = self._inflight.get(key)
        if flight is None:
            flight = _InFlight()
            flight.task = asyncio.create_task(
                self._run(source, preferences, flight.broadcast, flight.cancel_event)
            )
            self._inflight[key] = flight

            def _forget(done: asyncio.Task[Song]) -> None:
                if self._inflight.get(key) is flight:
                    del self._inflight[key]
                # Nobody may be left to await a job whose callers all cancelled.
                if not done.cancelled():
                    done.exception()

            flight.task.add_done_callback(_forget)
        else:
            logger.info("[orchestrator] Joining in-flight processing for %s", source.label)
        return await self._await_flight(key, flight, on_progress, cancel_event)

    async def _await_flight(
        self,
        key: str,
        flight: _InFlight,
        on_progress: ProgressCallback | None,
        cancel_event: asyncio.Event | None,
    ) -> Song:
        """
        Wait on a shared job as one of possibly several callers.

        Each caller gets progress through its own callback. Setting a caller's
        cancel event releases only that caller; the shared job is cancelled
        once no caller is left waiting on it.
        """
        task = flight.task
        if on_progress is not None:
            flight.listeners.append(on_progress)
        flight.waiters += 1
        try:
            if cancel_event is None:
                # A cancelled waiter must not cancel the shared task.
                return await asyncio.shield(task)
            cancelled = asyncio.create_task(cancel_event.wait())
            try:
                await asyncio.wait({task, cancelled}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                cancelled.cancel()
            if task.done():
                return task.result()
            logger.info("[orchestrator] Caller stopped waiting on %s", key)
            raise ProcessingCancelledError("Processing was cancelled by the caller")
        finally:
            flight.waiters -= 1
            if on_progress is not None:
                flight.listeners.remove(on_progress)
            if flight.waiters == 0 and not task.done():
                logger.info("[orchestrator] No callers left for %s; cancelling shared job", key)
                flight.cancel_event.set()
                if self._inflight.get(key) is flight:
                    del self._inflight[key]

    async def _run(
        self,
        source: SourceRef,
        preferences: ProcessingPreferences | None,
        on_progress: ProgressCallback | None,
        cancel_event: asyncio.Event | None,
    ) -> Song:
        submission = await self._submission.submit(source, preferences)

        if submission.is_completed:
            raw = submission.results
            await notify_progress(on_progress, ProgressEvent(100.0, "completed"))
        else:
            raw = await self._poller.poll(submission.job_id, on_progress, cancel_event=cancel_event)

        song = normalize(raw, fallback_id=submission.job_id)
        await self._cache.put(song.id, raw)
        logger.info(
            "[orchestrator] %s -> song_id=%s (%d chords)",
            source.label,
            song.id,
            len(song.chords),
        )
        return song

    async def open_song(self, song_id: str) -> Song | None:
        """Cache read-through for a previously processed song."""
        raw = await self._cache.get(song_id)
        if raw is None:
            return None
        try:
            return normalize(raw, fallback_id=song_id)
        except NormalizationError as e:
            logger.warning("[orchestrator] Dropping unreadable cached song_id=%s: %s", song_id, e)
            await self._cache.remove(song_id)
            return None
