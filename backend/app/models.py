from datetime import datetime

from pydantic import BaseModel, Field

from models.request import ProcessingRequest, RequestStatus
from models.song import Song
from models.source import DEFAULT_DIFFICULTY_LEVEL, DEFAULT_TARGET_KEY, ProcessingPreferences


class ProcessYouTubeBody(BaseModel):
    youtube_url: str
    target_key: str = Field(DEFAULT_TARGET_KEY, min_length=1, max_length=5)
    difficulty_level: int = Field(DEFAULT_DIFFICULTY_LEVEL, ge=1, le=10)
    include_techniques: list[str] = Field(default_factory=list)

    def preferences(self) -> ProcessingPreferences:
        return ProcessingPreferences(
            target_key=self.target_key,
            difficulty_level=self.difficulty_level,
            include_techniques=tuple(self.include_techniques),
        )


class ProcessingAcceptedResponse(BaseModel):
    request_id: str
    status: RequestStatus


class ProcessingRequestResponse(BaseModel):
    """Request state for polling. GET /api/songs/requests/{id}."""

    request_id: str
    source: str
    status: RequestStatus
    progress: float
    current_step: str
    song_id: str | None = None
    error: str | None = None
    created_at: datetime
    finished_at: datetime | None = None

    @classmethod
    def from_request(cls, request: ProcessingRequest) -> "ProcessingRequestResponse":
        return cls(
            request_id=request.id,
            source=request.source_label,
            status=request.status,
            progress=request.progress,
            current_step=request.current_step,
            song_id=request.song_id,
            error=request.error,
            created_at=request.created_at,
            finished_at=request.finished_at,
        )


class FingerPositionResponse(BaseModel):
    fret: int
    string: int
    finger: int | None = None


class ChordResponse(BaseModel):
    name: str
    startTime: float
    duration: float
    fingerPositions: list[FingerPositionResponse]
    confidence: float | None = None


class SongResponse(BaseModel):
    id: str
    title: str
    artist: str
    youtubeId: str
    videoUrl: str
    duration: float
    tempo: float
    key: str
    chords: list[ChordResponse]
    difficulty: int
    processedAt: datetime

    @classmethod
    def from_song(cls, song: Song) -> "SongResponse":
        return cls(
            id=song.id,
            title=song.title,
            artist=song.artist,
            youtubeId=song.youtube_id,
            videoUrl=song.video_url,
            duration=song.duration,
            tempo=song.tempo,
            key=song.key,
            chords=[
                ChordResponse(
                    name=c.name,
                    startTime=c.start_time,
                    duration=c.duration,
                    fingerPositions=[
                        FingerPositionResponse(fret=p.fret, string=p.string, finger=p.finger)
                        for p in c.finger_positions
                    ],
                    confidence=c.confidence,
                )
                for c in song.chords
            ],
            difficulty=song.difficulty,
            processedAt=song.processed_at,
        )
