"""Normalize analysis-server result payloads into `Song` records.

The server (and its cache short-circuit) emits two shapes for the same data:

  nested:    {"song_id": ..., "metadata": {"title": ..., "tempo_bpm": ...}, "chords": [...]}
  flattened: {"song_id": ..., "title": ..., "tempo": ..., "chords": [...]}

Every Song field is resolved through `FIELD_RULES` in a fixed order:
nested `metadata.<key>` first, then each flattened alias, then the default.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Mapping
from urllib.parse import parse_qs, urlparse

from models.song import (
    DEFAULT_ARTIST,
    DEFAULT_DIFFICULTY,
    DEFAULT_KEY,
    DEFAULT_TEMPO_BPM,
    DEFAULT_TITLE,
    GUITAR_STRING_COUNT,
    MUTED_FRET,
    Chord,
    FingerPosition,
    Song,
)
from services.errors import NormalizationError

logger = logging.getLogger(__name__)

YOUTUBE_HOSTS = {"youtube.com", "www.youtube.com", "m.youtube.com", "music.youtube.com"}


def _as_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _as_float(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> int | None:
    number = _as_float(value)
    return int(round(number)) if number is not None else None


@dataclass(frozen=True)
class FieldRule:
    field: str                      # Song attribute
    nested_key: str                 # key under payload["metadata"]
    flat_keys: tuple[str, ...]      # top-level fallbacks, in order
    coerce: Callable[[Any], Any]
    default: Any

    def resolve(self, metadata: Mapping[str, Any], payload: Mapping[str, Any]) -> Any:
        candidates = [metadata.get(self.nested_key)]
        candidates.extend(payload.get(key) for key in self.flat_keys)
        for raw in candidates:
            value = self.coerce(raw)
            if value is not None:
                return value
        return self.default


FIELD_RULES: tuple[FieldRule, ...] = (
    FieldRule("title", "title", ("title",), _as_str, DEFAULT_TITLE),
    FieldRule("artist", "artist", ("artist",), _as_str, DEFAULT_ARTIST),
    FieldRule("video_url", "video_url", ("video_url", "videoUrl"), _as_str, ""),
    FieldRule("duration", "duration", ("duration", "duration_seconds"), _as_float, 0.0),
    FieldRule("tempo", "tempo_bpm", ("tempo", "tempo_bpm"), _as_float, DEFAULT_TEMPO_BPM),
    FieldRule("key", "original_key", ("key", "original_key"), _as_str, DEFAULT_KEY),
    FieldRule("difficulty", "overall_difficulty", ("difficulty", "overall_difficulty"), _as_int, DEFAULT_DIFFICULTY),
)


def extract_youtube_id(url: str) -> str:
    """Video id from a youtu.be or youtube.com/watch URL; empty when not derivable."""
    if not url:
        return ""
    parsed = urlparse(url)
    host = (parsed.hostname or "").lower()
    if host == "youtu.be":
        return parsed.path.lstrip("/").split("/")[0]
    if host in YOUTUBE_HOSTS:
        if parsed.path.startswith(("/embed/", "/shorts/")):
            return parsed.path.split("/")[2]
        return parse_qs(parsed.query).get("v", [""])[0]
    return ""


def unwrap_payload(raw: Any) -> Mapping[str, Any]:
    """Strip `{data: ...}` and `{job_id, status, results: ...}` envelopes."""
    payload = raw
    for envelope in ("data", "results"):
        if isinstance(payload, Mapping) and isinstance(payload.get(envelope), Mapping):
            payload = payload[envelope]
    if not isinstance(payload, Mapping) or not payload:
        raise NormalizationError(f"Result payload is missing or malformed: {type(raw).__name__}")
    return payload


def _parse_processed_at(value: Any) -> datetime:
    if isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            logger.warning("[normalizer] Unparseable processed_at %r; using now", value)
        else:
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return datetime.now(timezone.utc)


def _first_present(entry: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if entry.get(key) is not None:
            return entry[key]
    return None


def normalize_finger_position(raw: Any, chord_index: int) -> FingerPosition:
    if not isinstance(raw, Mapping):
        raise NormalizationError(f"Chord {chord_index}: finger position must be an object, got {raw!r}")
    fret = _as_int(raw.get("fret"))
    string = _as_int(raw.get("string"))
    if fret is None or fret < MUTED_FRET:
        raise NormalizationError(f"Chord {chord_index}: invalid fret {raw.get('fret')!r}")
    if string is None or not 0 <= string < GUITAR_STRING_COUNT:
        raise NormalizationError(f"Chord {chord_index}: string index {raw.get('string')!r} outside 0-5")
    return FingerPosition(fret=fret, string=string, finger=_as_int(raw.get("finger")))


def normalize_chord(raw: Any, index: int) -> Chord:
    if not isinstance(raw, Mapping):
        raise NormalizationError(f"Chord {index} must be an object, got {type(raw).__name__}")

    name = _as_str(_first_present(raw, "chord", "name"))
    if name is None:
        raise NormalizationError(f"Chord {index} has no name")

    # `is not None` rather than truthiness: a start time of 0 is valid.
    start_time = _as_float(_first_present(raw, "start_time", "startTime"))
    if start_time is None or start_time < 0:
        raise NormalizationError(f"Chord {index} ({name}) has invalid start time")

    duration = _as_float(raw.get("duration"))
    if duration is None or duration <= 0:
        raise NormalizationError(f"Chord {index} ({name}) has invalid duration {raw.get('duration')!r}")

    positions = _first_present(raw, "fingerPositions", "finger_positions") or []
    if not isinstance(positions, list):
        raise NormalizationError(f"Chord {index} ({name}): fingerPositions must be a list")

    return Chord(
        name=name,
        start_time=start_time,
        duration=duration,
        finger_positions=tuple(normalize_finger_position(p, index) for p in positions),
        confidence=_as_float(raw.get("confidence")),
    )


def normalize_chords(raw_chords: Any) -> tuple[Chord, ...]:
    if raw_chords is None:
        return ()
    if not isinstance(raw_chords, list):
        raise NormalizationError(f"chords must be a list, got {type(raw_chords).__name__}")
    chords = [normalize_chord(entry, i) for i, entry in enumerate(raw_chords)]
    # The source does not guarantee ordering.
    chords.sort(key=lambda c: c.start_time)
    return tuple(chords)


def normalize(raw_payload: Any, fallback_id: str | None = None) -> Song:
    """Map a raw result payload to a `Song`, falling back to `fallback_id` for the id."""
    payload = unwrap_payload(raw_payload)
    metadata = payload.get("metadata")
    if not isinstance(metadata, Mapping):
        metadata = {}

    song_id = _as_str(_first_present(payload, "song_id", "id")) or _as_str(fallback_id)
    if not song_id:
        raise NormalizationError("Result payload has no song id and no fallback id was given")

    fields = {rule.field: rule.resolve(metadata, payload) for rule in FIELD_RULES}
    chords = normalize_chords(payload.get("chords"))

    return Song(
        id=song_id,
        youtube_id=extract_youtube_id(fields["video_url"]),
        chords=chords,
        processed_at=_parse_processed_at(payload.get("processed_at")),
        **fields,
    )
