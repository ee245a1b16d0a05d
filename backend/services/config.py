"""Environment-driven settings for the analysis server client and song cache."""

import os
from dataclasses import dataclass

DEFAULT_API_URL = "http://localhost:3001/api"
DEFAULT_APP_VERSION = "0.1.0"
DEFAULT_REQUEST_TIMEOUT_SECONDS = 30.0
DEFAULT_POLL_INTERVAL_SECONDS = 3.0
DEFAULT_MAX_POLLS = 60                      # 3 minutes at the default interval
DEFAULT_MAX_CONSECUTIVE_ERRORS = 3
DEFAULT_CACHE_MAX_ENTRIES = 200
DEFAULT_CACHE_TTL_SECONDS = 24 * 3600       # 24 hours


def _env_str(name: str, default: str) -> str:
    return os.environ.get(name, "").strip() or default


def _env_number(name: str, default: float, cast: type = float):
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


@dataclass(frozen=True)
class Settings:
    api_url: str = DEFAULT_API_URL
    api_token: str = ""
    app_version: str = DEFAULT_APP_VERSION
    request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    max_polls: int = DEFAULT_MAX_POLLS
    max_consecutive_errors: int = DEFAULT_MAX_CONSECUTIVE_ERRORS
    cache_max_entries: int = DEFAULT_CACHE_MAX_ENTRIES
    cache_ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS
    cache_path: str | None = None

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from ZEZE_* environment variables; blanks use defaults."""
        return cls(
            api_url=_env_str("ZEZE_API_URL", DEFAULT_API_URL).rstrip("/"),
            api_token=os.environ.get("ZEZE_API_TOKEN", "").strip(),
            app_version=_env_str("ZEZE_APP_VERSION", DEFAULT_APP_VERSION),
            request_timeout_seconds=_env_number("ZEZE_REQUEST_TIMEOUT_SECONDS", DEFAULT_REQUEST_TIMEOUT_SECONDS),
            poll_interval_seconds=_env_number("ZEZE_POLL_INTERVAL_SECONDS", DEFAULT_POLL_INTERVAL_SECONDS),
            max_polls=_env_number("ZEZE_MAX_POLLS", DEFAULT_MAX_POLLS, int),
            max_consecutive_errors=_env_number("ZEZE_MAX_CONSECUTIVE_ERRORS", DEFAULT_MAX_CONSECUTIVE_ERRORS, int),
            cache_max_entries=_env_number("ZEZE_CACHE_MAX_ENTRIES", DEFAULT_CACHE_MAX_ENTRIES, int),
            cache_ttl_seconds=_env_number("ZEZE_CACHE_TTL_SECONDS", DEFAULT_CACHE_TTL_SECONDS),
            cache_path=os.environ.get("ZEZE_CACHE_PATH", "").strip() or None,
        )
