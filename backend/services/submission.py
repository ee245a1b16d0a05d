from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from models.job import JobStatus, SubmissionResult
from models.source import AudioUpload, ProcessingPreferences, SourceRef, YouTubeSource
from services.api_client import error_detail
from services.errors import SubmissionError

logger = logging.getLogger(__name__)


class SubmitApi(Protocol):
    async def submit_youtube(self, url: str, preferences: ProcessingPreferences) -> Any: ...

    async def submit_audio(self, upload: AudioUpload, preferences: ProcessingPreferences) -> Any: ...


class SubmissionClient:
    """Issue the initial processing request for a YouTube URL or an audio upload."""

    def __init__(self, api: SubmitApi) -> None:
        self._api = api

    async def submit(
        self,
        source: SourceRef,
        preferences: ProcessingPreferences | None = None,
    ) -> SubmissionResult:
        """
        Returns a completed result when the server answered synchronously
        (already processed), otherwise the job id to poll.
        Raises SubmissionError when no job id comes back.
        """
        preferences = preferences or ProcessingPreferences()
        try:
            if isinstance(source, YouTubeSource):
                body = await self._api.submit_youtube(source.url, preferences)
            elif isinstance(source, AudioUpload):
                body = await self._api.submit_audio(source, preferences)
            else:
                raise TypeError(f"Unsupported source reference: {type(source).__name__}")
        except httpx.HTTPError as e:
            detail = error_detail(e) or str(e) or type(e).__name__
            logger.error("[submission] Submit failed for %s: %s", source.label, detail)
            raise SubmissionError(f"Failed to initiate processing: {detail}") from e
        except ValueError as e:
            raise SubmissionError(f"Failed to initiate processing: unreadable response ({e})") from e

        if not isinstance(body, dict):
            raise SubmissionError("Failed to initiate processing: unexpected response")

        job_id = str(body.get("job_id") or "").strip()
        if not job_id:
            logger.error("[submission] No job_id in submit response for %s: %r", source.label, body)
            raise SubmissionError("Failed to initiate processing: no job id returned")

        status = JobStatus.parse(body.get("status"))
        results = body.get("results") if isinstance(body.get("results"), dict) else None
        result = SubmissionResult(job_id=job_id, status=status, results=results)
        if result.is_completed:
            logger.info("[submission] Job %s completed synchronously (server cache hit)", job_id)
        else:
            logger.info("[submission] Job %s accepted with status=%s", job_id, status.value)
        return result
