"""Async HTTP client for the analysis server's job-queue endpoints."""

from __future__ import annotations

import json
import logging
import platform
from typing import Any

import httpx

from models.source import AudioUpload, ProcessingPreferences
from services.config import Settings
from services.errors import TransientPollError

logger = logging.getLogger(__name__)

_ENVELOPE_KEYS = {"data", "error", "message", "success"}


def unwrap_envelope(body: Any) -> Any:
    """Return `body["data"]` for `{data, error?, message?}` envelopes, else `body`."""
    if isinstance(body, dict) and isinstance(body.get("data"), dict) and set(body) <= _ENVELOPE_KEYS:
        return body["data"]
    return body


def error_detail(exc: BaseException) -> str | None:
    """Server-provided message from a failed response body, if any."""
    if not isinstance(exc, httpx.HTTPStatusError):
        return None
    try:
        body = exc.response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        for key in ("message", "error", "detail"):
            if isinstance(body.get(key), str) and body[key].strip():
                return body[key].strip()
    return None


def is_transient(exc: BaseException) -> bool:
    """Transport faults and 5xx responses are worth retrying; 4xx are not."""
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    return False


class AnalysisApiClient:
    """
    Thin wrapper over the analysis server:

      POST /process-youtube        -> {job_id, status?, results?}
      POST /process-audio          -> {job_id, status?, results?}
      GET  /process-status/{id}    -> {status, progress_percentage, current_step, ...}
      GET  /song-results/{id}      -> full result payload

    Submit calls raise `httpx.HTTPError` as-is. Status and result reads raise
    `TransientPollError` for retryable faults and `httpx.HTTPStatusError`
    for client errors.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {
            "Accept": "application/json",
            "platform": platform.system().lower() or "python",
            "app_version": settings.app_version,
        }
        if settings.api_token:
            headers["Authorization"] = f"Bearer {settings.api_token}"
        self._client = httpx.AsyncClient(
            base_url=settings.api_url.rstrip("/") + "/",
            headers=headers,
            timeout=settings.request_timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> AnalysisApiClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _json(self, response: httpx.Response) -> Any:
        response.raise_for_status()
        return unwrap_envelope(response.json())

    async def submit_youtube(self, url: str, preferences: ProcessingPreferences) -> Any:
        logger.info("[api_client] POST process-youtube url=%s", url)
        response = await self._client.post(
            "process-youtube",
            json={"youtube_url": url, "user_preferences": preferences.to_wire()},
        )
        return self._json(response)

    async def submit_audio(self, upload: AudioUpload, preferences: ProcessingPreferences) -> Any:
        logger.info("[api_client] POST process-audio file=%s (%d bytes)", upload.filename, len(upload.content))
        response = await self._client.post(
            "process-audio",
            files={"audio_file": (upload.filename, upload.content, upload.content_type)},
            data={"user_preferences": json.dumps(preferences.to_wire())},
        )
        return self._json(response)

    async def _get_polled(self, path: str, what: str) -> dict[str, Any]:
        try:
            response = await self._client.get(path)
            body = self._json(response)
        except httpx.HTTPError as e:
            if is_transient(e):
                raise TransientPollError(f"{what} request failed: {e}", cause=e) from e
            raise
        except ValueError as e:
            # Non-JSON body, e.g. a proxy error page.
            raise TransientPollError(f"{what} response was not JSON: {e}", cause=e) from e
        if not isinstance(body, dict):
            raise TransientPollError(
                f"{what} response was not an object",
                cause=ValueError(f"unexpected {what} body: {body!r}"),
            )
        return body

    async def get_status(self, job_id: str) -> dict[str, Any]:
        return await self._get_polled(f"process-status/{job_id}", "status")

    async def get_results(self, job_id: str) -> dict[str, Any]:
        return await self._get_polled(f"song-results/{job_id}", "results")
