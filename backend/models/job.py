from dataclasses import dataclass
from enum import Enum
from typing import Any


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)

    @classmethod
    def parse(cls, value: Any) -> "JobStatus":
        """Map a server status string; anything unrecognised counts as pending."""
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.PENDING


@dataclass
class Job:
    id: str
    status: JobStatus = JobStatus.PENDING
    progress: float = 0.0                  # 0-100
    current_step: str = ""
    partial_results: Any | None = None
    error: str | None = None
    estimated_remaining_seconds: float | None = None

    def apply_status(self, payload: dict[str, Any]) -> None:
        """Update this job from a status response body."""
        self.status = JobStatus.parse(payload.get("status"))
        progress = payload.get("progress_percentage")
        if isinstance(progress, (int, float)) and not isinstance(progress, bool):
            self.progress = max(0.0, min(float(progress), 100.0))
        elif self.status is JobStatus.COMPLETED:
            self.progress = 100.0
        self.current_step = str(payload.get("current_step") or self.status.value)
        self.partial_results = payload.get("partial_results")
        self.error = payload.get("error") or None
        remaining = payload.get("estimated_remaining_seconds")
        self.estimated_remaining_seconds = float(remaining) if isinstance(remaining, (int, float)) else None


@dataclass(frozen=True)
class ProgressEvent:
    progress: float
    current_step: str

    def to_payload(self) -> dict[str, Any]:
        return {"progress": self.progress, "currentStep": self.current_step}


@dataclass(frozen=True)
class SubmissionResult:
    job_id: str
    status: JobStatus
    results: dict[str, Any] | None = None

    @property
    def is_completed(self) -> bool:
        """Server answered synchronously (cache hit); no polling needed."""
        return self.status is JobStatus.COMPLETED and self.results is not None
