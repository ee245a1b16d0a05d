from __future__ import annotations

import asyncio
import json
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from services.config import DEFAULT_CACHE_MAX_ENTRIES, DEFAULT_CACHE_TTL_SECONDS

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    payload: dict[str, Any]
    created_at: float              # unix seconds


class SongCache:
    """
    Keyed store of completed raw result payloads (song_id -> payload).

    - Bounded: least-recently-used entries are evicted past `max_entries`,
      and entries older than `ttl_seconds` read as misses.
    - Optional JSON persistence at `path`, loaded once on construction and
      rewritten in full on put, remove and clear. The write is synchronous, so
      keep `max_entries` modest when persisting.
    - Coroutine-safe; duplicate keys are last-writer-wins.
    """

    def __init__(
        self,
        *,
        max_entries: int = DEFAULT_CACHE_MAX_ENTRIES,
        ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
        path: str | Path | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self._max_entries = max_entries
        self._ttl = ttl_seconds
        self._path = Path(path) if path else None
        self._clock = clock
        self._lock = asyncio.Lock()
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._load()

    def __len__(self) -> int:
        return len(self._entries)

    def _expired(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.created_at > self._ttl

    async def get(self, song_id: str) -> dict[str, Any] | None:
        async with self._lock:
            entry = self._entries.get(song_id)
            if entry is None:
                return None
            if self._expired(entry):
                logger.info("[song_cache] Entry expired: song_id=%s", song_id)
                # Not persisted here; expired rows are skipped on the next load.
                del self._entries[song_id]
                return None
            self._entries.move_to_end(song_id)
            return entry.payload

    async def put(self, song_id: str, payload: dict[str, Any]) -> None:
        async with self._lock:
            self._entries[song_id] = CacheEntry(payload=payload, created_at=self._clock())
            self._entries.move_to_end(song_id)
            while len(self._entries) > self._max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.info("[song_cache] Evicted least recently used song_id=%s", evicted)
            self._save()
        logger.info("[song_cache] Cached song_id=%s (%d entries)", song_id, len(self._entries))

    async def remove(self, song_id: str) -> None:
        async with self._lock:
            if self._entries.pop(song_id, None) is not None:
                self._save()

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()
            self._save()

    def _load(self) -> None:
        if self._path is None or not self._path.exists():
            return
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                raw = json.load(f)
            # File order is least- to most-recently used.
            for song_id, row in raw.items():
                entry = CacheEntry(payload=row["data"], created_at=float(row["created_at"]))
                if not self._expired(entry):
                    self._entries[song_id] = entry
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning("[song_cache] Ignoring unreadable cache file %s: %s", self._path, e)
            self._entries.clear()
            return
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)
        logger.info("[song_cache] Loaded %d cached songs from %s", len(self._entries), self._path)

    def _save(self) -> None:
        if self._path is None:
            return
        rows = {
            song_id: {"data": entry.payload, "created_at": entry.created_at}
            for song_id, entry in self._entries.items()
        }
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self._path.with_suffix(self._path.suffix + ".tmp")
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(rows, f)
            tmp.replace(self._path)
        except OSError as e:
            logger.error("[song_cache] Failed to write cache file %s: %s", self._path, e)
