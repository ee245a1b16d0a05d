"""Song processing REST API: start YouTube/upload processing, poll request state, read cached songs."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import secrets
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile

from app.models import (
    ProcessingAcceptedResponse,
    ProcessingRequestResponse,
    ProcessYouTubeBody,
    SongResponse,
)
from models.job import ProgressEvent
from models.request import ProcessingRequest, RequestStatus
from models.source import (
    DEFAULT_DIFFICULTY_LEVEL,
    DEFAULT_TARGET_KEY,
    AudioUpload,
    ProcessingPreferences,
    SourceRef,
    YouTubeSource,
)
from services.errors import ProcessingCancelledError
from services.normalizer import extract_youtube_id
from services.orchestrator import ProcessingOrchestrator, user_message
from services.progress_hub import progress_hub
from services.store import cancel_events, processing_requests, prune_finished_requests

router = APIRouter(tags=["songs"])
logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".mp3", ".wav", ".flac", ".m4a", ".ogg", ".opus"}
MAX_UPLOAD_BYTES = 100 * 1024 * 1024  # 100MB

_background_tasks: set[asyncio.Task[None]] = set()


def get_orchestrator(request: Request) -> ProcessingOrchestrator:
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Song processing is not configured")
    return orchestrator


async def _finish(request: ProcessingRequest, status: RequestStatus) -> None:
    request.status = status
    request.finished_at = datetime.now(timezone.utc)
    await progress_hub.publish(request.id, request.final_payload())
    # Late WebSocket subscribers read the final state from the request itself.
    await progress_hub.forget(request.id)


async def run_processing_request(
    orchestrator: ProcessingOrchestrator,
    request: ProcessingRequest,
    source: SourceRef,
    preferences: ProcessingPreferences,
    cancel_event: asyncio.Event,
) -> None:
    """Drive one request through the orchestrator, mirroring state into the store and hub."""
    request.status = RequestStatus.PROCESSING

    async def on_progress(event: ProgressEvent) -> None:
        request.progress = event.progress
        request.current_step = event.current_step
        await progress_hub.publish(request.id, event.to_payload())

    try:
        song = await orchestrator.process(
            source,
            preferences,
            on_progress=on_progress,
            cancel_event=cancel_event,
        )
    except ProcessingCancelledError as exc:
        request.error = user_message(exc)
        logger.info("[songs] Request %s cancelled", request.id)
        await _finish(request, RequestStatus.CANCELLED)
        return
    except Exception as exc:  # noqa: BLE001
        request.error = user_message(exc)
        logger.error("[songs] Request %s failed: %s", request.id, exc, exc_info=True)
        await _finish(request, RequestStatus.FAILED)
        return
    finally:
        cancel_events.pop(request.id, None)

    request.song_id = song.id
    request.progress = 100.0
    request.current_step = "completed"
    logger.info("[songs] Request %s completed: song_id=%s", request.id, song.id)
    await _finish(request, RequestStatus.COMPLETED)


def _start_request(
    orchestrator: ProcessingOrchestrator,
    source: SourceRef,
    preferences: ProcessingPreferences,
) -> ProcessingAcceptedResponse:
    prune_finished_requests()
    request_id = secrets.token_urlsafe(8)
    request = ProcessingRequest(id=request_id, source_label=source.label)
    processing_requests[request_id] = request
    cancel_event = asyncio.Event()
    cancel_events[request_id] = cancel_event

    task = asyncio.create_task(run_processing_request(orchestrator, request, source, preferences, cancel_event))
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    logger.info("[songs] Request %s queued for %s", request_id, source.label)
    return ProcessingAcceptedResponse(request_id=request_id, status=request.status)


@router.post("/songs/youtube", response_model=ProcessingAcceptedResponse, status_code=202)
async def process_youtube(
    body: ProcessYouTubeBody,
    orchestrator: ProcessingOrchestrator = Depends(get_orchestrator),
) -> ProcessingAcceptedResponse:
    url = body.youtube_url.strip()
    if not extract_youtube_id(url):
        raise HTTPException(status_code=400, detail="Only YouTube video URLs are supported (youtube.com, youtu.be)")
    return _start_request(orchestrator, YouTubeSource(url=url), body.preferences())


@router.post("/songs/upload", response_model=ProcessingAcceptedResponse, status_code=202)
async def process_upload(
    file: UploadFile = File(...),
    target_key: str = Form(DEFAULT_TARGET_KEY),
    difficulty_level: int = Form(DEFAULT_DIFFICULTY_LEVEL),
    include_techniques: str | None = Form(None),
    orchestrator: ProcessingOrchestrator = Depends(get_orchestrator),
) -> ProcessingAcceptedResponse:
    filename = file.filename or ""
    ext = os.path.splitext(filename)[1].lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise HTTPException(status_code=400, detail=f"Unsupported file type: {ext or '(none)'}")
    if not 1 <= difficulty_level <= 10:
        raise HTTPException(status_code=400, detail="difficulty_level must be between 1 and 10")

    techniques: tuple[str, ...] = ()
    if include_techniques:
        try:
            techniques = tuple(str(t) for t in json.loads(include_techniques))
        except (ValueError, TypeError):
            raise HTTPException(status_code=400, detail="include_techniques must be a JSON list") from None

    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")
    if len(content) > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail="File too large (max 100MB)")

    source = AudioUpload(
        filename=filename,
        content=content,
        content_type=file.content_type or "application/octet-stream",
    )
    preferences = ProcessingPreferences(
        target_key=target_key,
        difficulty_level=difficulty_level,
        include_techniques=techniques,
    )
    return _start_request(orchestrator, source, preferences)


@router.get("/songs/requests/{request_id}", response_model=ProcessingRequestResponse)
def get_processing_request(request_id: str) -> ProcessingRequestResponse:
    """Request state for polling clients that do not use the progress WebSocket."""
    request = processing_requests.get(request_id)
    if request is None:
        raise HTTPException(status_code=404, detail="Request not found")
    return ProcessingRequestResponse.from_request(request)


@router.delete("/songs/requests/{request_id}", response_model=ProcessingRequestResponse)
async def cancel_processing_request(request_id: str) -> ProcessingRequestResponse:
    request = processing_requests.get(request_id)
    if request is None:
        raise HTTPException(status_code=404, detail="Request not found")
    event = cancel_events.get(request_id)
    if event is not None and not request.is_finished:
        event.set()
        logger.info("[songs] Cancellation requested for %s", request_id)
    return ProcessingRequestResponse.from_request(request)


@router.get("/songs/{song_id}", response_model=SongResponse)
async def get_song(
    song_id: str,
    orchestrator: ProcessingOrchestrator = Depends(get_orchestrator),
) -> SongResponse:
    song = await orchestrator.open_song(song_id)
    if song is None:
        raise HTTPException(status_code=404, detail="Song not found")
    return SongResponse.from_song(song)
