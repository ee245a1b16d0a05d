from .errors import (
    NormalizationError,
    ProcessingCancelledError,
    ProcessingError,
    ProcessingFailedError,
    ProcessingTimeoutError,
    SubmissionError,
    TransientPollError,
)
from .normalizer import normalize
from .orchestrator import ProcessingOrchestrator, user_message
from .store import processing_requests

__all__ = [
    "NormalizationError",
    "ProcessingCancelledError",
    "ProcessingError",
    "ProcessingFailedError",
    "ProcessingTimeoutError",
    "SubmissionError",
    "TransientPollError",
    "normalize",
    "ProcessingOrchestrator",
    "user_message",
    "processing_requests",
]
