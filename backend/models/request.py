from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class RequestStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class ProcessingRequest:
    id: str
    source_label: str                      # youtube url or uploaded filename
    status: RequestStatus = RequestStatus.QUEUED
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    progress: float = 0.0
    current_step: str = ""
    song_id: str | None = None
    error: str | None = None
    finished_at: datetime | None = None

    @property
    def is_finished(self) -> bool:
        return self.status in (RequestStatus.COMPLETED, RequestStatus.FAILED, RequestStatus.CANCELLED)

    def final_payload(self) -> dict[str, Any]:
        """Terminal message for progress subscribers."""
        payload: dict[str, Any] = {"status": self.status.value}
        if self.song_id is not None:
            payload["song_id"] = self.song_id
        if self.error is not None:
            payload["error"] = self.error
        return payload
