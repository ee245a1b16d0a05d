from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Protocol

from models.job import Job, JobStatus, ProgressEvent
from services.config import (
    DEFAULT_MAX_CONSECUTIVE_ERRORS,
    DEFAULT_MAX_POLLS,
    DEFAULT_POLL_INTERVAL_SECONDS,
)
from services.errors import (
    ProcessingCancelledError,
    ProcessingFailedError,
    ProcessingTimeoutError,
    TransientPollError,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], Any]


async def notify_progress(on_progress: ProgressCallback | None, event: ProgressEvent) -> None:
    """Invoke a sync or async progress callback."""
    if on_progress is None:
        return
    result = on_progress(event)
    if inspect.isawaitable(result):
        await result


class StatusApi(Protocol):
    async def get_status(self, job_id: str) -> dict[str, Any]: ...

    async def get_results(self, job_id: str) -> dict[str, Any]: ...


class StatusPoller:
    """
    Poll a job until it reaches a terminal status.

    Every successful status read resets the consecutive-error counter and
    reports progress. A transient fault waits twice the normal interval and
    still counts as an attempt; hitting `max_consecutive_errors` re-raises the
    underlying transport error instead of burning the remaining attempts.
    """

    def __init__(
        self,
        api: StatusApi,
        *,
        interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        max_polls: int = DEFAULT_MAX_POLLS,
        max_consecutive_errors: int = DEFAULT_MAX_CONSECUTIVE_ERRORS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if max_polls <= 0 or max_consecutive_errors <= 0:
            raise ValueError("max_polls and max_consecutive_errors must be positive")
        self._api = api
        self._interval = interval_seconds
        self._max_polls = max_polls
        self._max_errors = max_consecutive_errors
        self._sleep = sleep

    @property
    def max_polls(self) -> int:
        return self._max_polls

    async def poll(
        self,
        job_id: str,
        on_progress: ProgressCallback | None = None,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> dict[str, Any]:
        """Return the full result payload once `job_id` completes."""
        job = Job(id=job_id)
        consecutive_errors = 0

        for attempt in range(1, self._max_polls + 1):
            self._check_cancelled(job_id, cancel_event)
            try:
                payload = await self._api.get_status(job_id)
            except TransientPollError as e:
                consecutive_errors += 1
                logger.warning(
                    "[poller] job=%s attempt=%d/%d status read failed (%d consecutive): %s",
                    job_id,
                    attempt,
                    self._max_polls,
                    consecutive_errors,
                    e,
                )
                if consecutive_errors >= self._max_errors:
                    logger.error("[poller] job=%s giving up after %d consecutive errors", job_id, consecutive_errors)
                    raise e.cause from None
                if attempt < self._max_polls:
                    await self._wait(self._interval * 2, job_id, cancel_event)
                continue

            consecutive_errors = 0
            previous = job.status
            job.apply_status(payload)
            if job.status is not previous:
                logger.info("[poller] job=%s %s -> %s", job_id, previous.value, job.status.value)
            await notify_progress(on_progress, ProgressEvent(job.progress, job.current_step))

            if job.status is JobStatus.COMPLETED:
                logger.info("[poller] job=%s completed after %d attempt(s)", job_id, attempt)
                return await self._fetch_results(job_id, cancel_event)
            if job.status is JobStatus.FAILED:
                logger.error("[poller] job=%s failed: %s", job_id, job.error or ProcessingFailedError.DEFAULT_MESSAGE)
                raise ProcessingFailedError(job.error, job_id=job_id)

            if attempt < self._max_polls:
                await self._wait(self._interval, job_id, cancel_event)

        logger.error("[poller] job=%s still %s after %d attempts", job_id, job.status.value, self._max_polls)
        raise ProcessingTimeoutError(job_id, self._max_polls)

    async def _fetch_results(self, job_id: str, cancel_event: asyncio.Event | None) -> dict[str, Any]:
        errors = 0
        while True:
            self._check_cancelled(job_id, cancel_event)
            try:
                return await self._api.get_results(job_id)
            except TransientPollError as e:
                errors += 1
                logger.warning("[poller] job=%s result fetch failed (%d consecutive): %s", job_id, errors, e)
                if errors >= self._max_errors:
                    raise e.cause from None
                await self._wait(self._interval * 2, job_id, cancel_event)

    async def _wait(self, delay: float, job_id: str, cancel_event: asyncio.Event | None) -> None:
        self._check_cancelled(job_id, cancel_event)
        await self._sleep(delay)
        self._check_cancelled(job_id, cancel_event)

    @staticmethod
    def _check_cancelled(job_id: str, cancel_event: asyncio.Event | None) -> None:
        if cancel_event is not None and cancel_event.is_set():
            logger.info("[poller] job=%s polling cancelled", job_id)
            raise ProcessingCancelledError(f"Polling for job {job_id} was cancelled")

