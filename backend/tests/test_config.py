"""Tests for ZEZE_* environment settings."""

from unittest.mock import patch

import pytest

from services.config import (
    DEFAULT_API_URL,
    DEFAULT_CACHE_TTL_SECONDS,
    DEFAULT_MAX_CONSECUTIVE_ERRORS,
    DEFAULT_MAX_POLLS,
    DEFAULT_POLL_INTERVAL_SECONDS,
    Settings,
)

_ZEZE_VARS = {
    "ZEZE_API_URL": "",
    "ZEZE_API_TOKEN": "",
    "ZEZE_APP_VERSION": "",
    "ZEZE_REQUEST_TIMEOUT_SECONDS": "",
    "ZEZE_POLL_INTERVAL_SECONDS": "",
    "ZEZE_MAX_POLLS": "",
    "ZEZE_MAX_CONSECUTIVE_ERRORS": "",
    "ZEZE_CACHE_MAX_ENTRIES": "",
    "ZEZE_CACHE_TTL_SECONDS": "",
    "ZEZE_CACHE_PATH": "",
}


def test_settings_defaults() -> None:
    with patch.dict("os.environ", _ZEZE_VARS, clear=False):
        settings = Settings.from_env()
    assert settings.api_url == DEFAULT_API_URL
    assert settings.api_token == ""
    assert settings.poll_interval_seconds == DEFAULT_POLL_INTERVAL_SECONDS
    assert settings.max_polls == DEFAULT_MAX_POLLS
    assert settings.max_consecutive_errors == DEFAULT_MAX_CONSECUTIVE_ERRORS
    assert settings.cache_ttl_seconds == DEFAULT_CACHE_TTL_SECONDS
    assert settings.cache_path is None


def test_settings_from_env() -> None:
    env = {
        **_ZEZE_VARS,
        "ZEZE_API_URL": "  https://api.zeze.app/api/  ",
        "ZEZE_API_TOKEN": "tok",
        "ZEZE_POLL_INTERVAL_SECONDS": "1.5",
        "ZEZE_MAX_POLLS": "10",
        "ZEZE_CACHE_PATH": "/tmp/zeze/songs.json",
    }
    with patch.dict("os.environ", env, clear=False):
        settings = Settings.from_env()
    assert settings.api_url == "https://api.zeze.app/api"
    assert settings.api_token == "tok"
    assert settings.poll_interval_seconds == 1.5
    assert settings.max_polls == 10
    assert isinstance(settings.max_polls, int)
    assert settings.cache_path == "/tmp/zeze/songs.json"


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("ZEZE_MAX_POLLS", "many"),
        ("ZEZE_MAX_POLLS", "2.5"),
        ("ZEZE_POLL_INTERVAL_SECONDS", "0"),
        ("ZEZE_CACHE_MAX_ENTRIES", "-1"),
    ],
)
def test_invalid_numbers_name_the_variable(name: str, value: str) -> None:
    with patch.dict("os.environ", {**_ZEZE_VARS, name: value}, clear=False):
        with pytest.raises(ValueError, match=name):
            Settings.from_env()
