from dataclasses import dataclass, field
from datetime import datetime, timezone

GUITAR_STRING_COUNT = 6        # string index 0-5 (E-A-D-G-B-e)
MUTED_FRET = -1

DEFAULT_TITLE = "Unknown Title"
DEFAULT_ARTIST = "Unknown Artist"
DEFAULT_TEMPO_BPM = 120.0
DEFAULT_KEY = "C"
DEFAULT_DIFFICULTY = 3


@dataclass(frozen=True)
class FingerPosition:
    fret: int                  # 0 = open, MUTED_FRET (-1) = muted string
    string: int                # 0-5
    finger: int | None = None  # 1-4 when known


@dataclass(frozen=True)
class Chord:
    name: str
    start_time: float          # seconds from song start, >= 0
    duration: float            # seconds, > 0
    finger_positions: tuple[FingerPosition, ...] = ()
    confidence: float | None = None

    @property
    def end_time(self) -> float:
        return self.start_time + self.duration


@dataclass(frozen=True)
class Song:
    id: str
    title: str = DEFAULT_TITLE
    artist: str = DEFAULT_ARTIST
    video_url: str = ""
    youtube_id: str = ""
    duration: float = 0.0      # seconds
    tempo: float = DEFAULT_TEMPO_BPM
    key: str = DEFAULT_KEY
    chords: tuple[Chord, ...] = ()
    difficulty: int = DEFAULT_DIFFICULTY
    processed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
