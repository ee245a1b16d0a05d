from .job import Job, JobStatus, ProgressEvent, SubmissionResult
from .request import ProcessingRequest, RequestStatus
from .song import Chord, FingerPosition, Song
from .source import AudioUpload, ProcessingPreferences, SourceRef, YouTubeSource

__all__ = [
    "Job",
    "JobStatus",
    "ProgressEvent",
    "SubmissionResult",
    "ProcessingRequest",
    "RequestStatus",
    "Chord",
    "FingerPosition",
    "Song",
    "AudioUpload",
    "ProcessingPreferences",
    "SourceRef",
    "YouTubeSource",
]
