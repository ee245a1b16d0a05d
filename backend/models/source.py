import hashlib
from dataclasses import dataclass, field
from typing import Any, Union

DEFAULT_TARGET_KEY = "C"
DEFAULT_DIFFICULTY_LEVEL = 3


@dataclass(frozen=True)
class ProcessingPreferences:
    target_key: str = DEFAULT_TARGET_KEY
    difficulty_level: int = DEFAULT_DIFFICULTY_LEVEL
    include_techniques: tuple[str, ...] = ()

    def to_wire(self) -> dict[str, Any]:
        """camelCase shape the analysis server expects under user_preferences."""
        payload: dict[str, Any] = {
            "targetKey": self.target_key,
            "difficultyLevel": self.difficulty_level,
        }
        if self.include_techniques:
            payload["includeTechniques"] = list(self.include_techniques)
        return payload


@dataclass(frozen=True)
class YouTubeSource:
    url: str

    @property
    def dedupe_key(self) -> str:
        return f"youtube:{self.url.strip()}"

    @property
    def label(self) -> str:
        return self.url


@dataclass(frozen=True)
class AudioUpload:
    filename: str
    content: bytes = field(repr=False)
    content_type: str = "application/octet-stream"

    @property
    def dedupe_key(self) -> str:
        return f"upload:{hashlib.sha256(self.content).hexdigest()}"

    @property
    def label(self) -> str:
        return self.filename


SourceRef = Union[YouTubeSource, AudioUpload]
