"""Error taxonomy for the song processing pipeline."""

from __future__ import annotations


class ProcessingError(Exception):
    """Base class for every failure the processing pipeline classifies."""


class SubmissionError(ProcessingError):
    """Submit call failed or returned no job identifier. Never retried."""


class TransientPollError(ProcessingError):
    """A single status/result fetch failed at the transport level.

    ``cause`` holds the underlying exception; it is what the poller re-raises
    once the consecutive-error threshold is reached.
    """

    def __init__(self, message: str, *, cause: BaseException) -> None:
        super().__init__(message)
        self.cause = cause


class ProcessingFailedError(ProcessingError):
    """Server reported the job as failed. Carries the server message, or a generic one."""

    DEFAULT_MESSAGE = "Processing failed"

    def __init__(self, message: str | None = None, *, job_id: str | None = None) -> None:
        super().__init__(message or self.DEFAULT_MESSAGE)
        self.job_id = job_id


class ProcessingTimeoutError(ProcessingError):
    """Job still not terminal after the poll attempt cap."""

    def __init__(self, job_id: str, attempts: int) -> None:
        super().__init__(f"Job {job_id} did not finish after {attempts} status checks")
        self.job_id = job_id
        self.attempts = attempts


class ProcessingCancelledError(ProcessingError):
    """The caller's cancel event was set while waiting on a job."""


class NormalizationError(ProcessingError):
    """Result payload is missing required structural fields."""
