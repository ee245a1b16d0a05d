from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from services.progress_hub import progress_hub
from services.store import processing_requests

router = APIRouter(tags=["progress"])
logger = logging.getLogger(__name__)


@router.websocket("/ws/requests/{request_id}/progress")
async def ws_request_progress(websocket: WebSocket, request_id: str) -> None:
    """
    Stream processing progress for one request, then its final status.

    Payload schema:
      {"progress": float, "currentStep": str}
      {"status": "completed" | "failed" | "cancelled", "song_id"?: str, "error"?: str}
    """
    await websocket.accept()
    request = processing_requests.get(request_id)
    if request is None:
        await websocket.send_json({"error": "Request not found"})
        await websocket.close()
        return

    q = await progress_hub.subscribe(request_id)
    logger.info("[progress_ws] Subscribed request_id=%r", request_id)
    try:
        if request.is_finished and q.empty():
            await websocket.send_json(request.final_payload())
            await websocket.close()
            return
        while True:
            payload: dict[str, Any] = await q.get()
            await websocket.send_json(payload)
            if "status" in payload:
                await websocket.close()
                return
    except WebSocketDisconnect:
        return
    finally:
        await progress_hub.unsubscribe(request_id, q)
