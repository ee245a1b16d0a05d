from __future__ import annotations

import asyncio
from typing import Any

import httpx
import pytest

from models.job import ProgressEvent
from services.errors import (
    ProcessingCancelledError,
    ProcessingFailedError,
    ProcessingTimeoutError,
    TransientPollError,
)
from services.poller import StatusPoller


def _transient(message: str = "connection refused") -> TransientPollError:
    cause = httpx.ConnectError(message)
    return TransientPollError(f"status request failed: {message}", cause=cause)


class _FakeStatusApi:
    """Scripted status/results responses; an exception in the script is raised."""

    def __init__(self, statuses: list[Any], results: list[Any] | None = None) -> None:
        self._statuses = list(statuses)
        self._results = list(results or [{"song_id": "song_1", "chords": []}])
        self.status_calls = 0
        self.result_calls = 0

    async def get_status(self, job_id: str) -> dict[str, Any]:
        self.status_calls += 1
        item = self._statuses.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    async def get_results(self, job_id: str) -> dict[str, Any]:
        self.result_calls += 1
        item = self._results.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


class _RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _poller(api: _FakeStatusApi, sleep: _RecordingSleep, **kwargs: Any) -> StatusPoller:
    kwargs.setdefault("interval_seconds", 3.0)
    return StatusPoller(api, sleep=sleep, **kwargs)


@pytest.mark.asyncio
async def test_poll_reports_progress_and_fetches_full_results() -> None:
    api = _FakeStatusApi(
        [
            {"status": "processing", "progress_percentage": 10, "current_step": "downloading"},
            {"status": "processing", "progress_percentage": 55, "current_step": "chord_detection"},
            {"status": "completed", "progress_percentage": 100, "current_step": "done"},
        ],
        results=[{"song_id": "song_j2", "chords": [{"chord": "A", "start_time": 0, "duration": 1}] * 4}],
    )
    sleep = _RecordingSleep()
    events: list[ProgressEvent] = []

    result = await _poller(api, sleep).poll("j2", events.append)

    assert result["song_id"] == "song_j2"
    assert [e.progress for e in events] == [10, 55, 100]
    assert [e.current_step for e in events] == ["downloading", "chord_detection", "done"]
    assert api.status_calls == 3
    assert api.result_calls == 1
    assert sleep.delays == [3.0, 3.0]


@pytest.mark.asyncio
async def test_poll_accepts_async_progress_callback() -> None:
    api = _FakeStatusApi([{"status": "completed"}])
    seen: list[float] = []

    async def on_progress(event: ProgressEvent) -> None:
        await asyncio.sleep(0)
        seen.append(event.progress)

    await _poller(api, _RecordingSleep()).poll("j1", on_progress)
    assert seen == [100.0]


@pytest.mark.asyncio
async def test_poll_failed_status_raises_with_server_message() -> None:
    api = _FakeStatusApi(
        [
            {"status": "processing", "progress_percentage": 20},
            {"status": "failed", "error": "Video is age restricted"},
        ]
    )
    with pytest.raises(ProcessingFailedError, match="age restricted") as excinfo:
        await _poller(api, _RecordingSleep()).poll("j3")
    assert excinfo.value.job_id == "j3"
    assert api.result_calls == 0


@pytest.mark.asyncio
async def test_poll_failed_status_without_message_uses_generic_text() -> None:
    api = _FakeStatusApi([{"status": "failed"}])
    with pytest.raises(ProcessingFailedError, match="Processing failed"):
        await _poller(api, _RecordingSleep()).poll("j3")


@pytest.mark.asyncio
async def test_poll_times_out_after_max_polls() -> None:
    api = _FakeStatusApi([{"status": "processing", "progress_percentage": 50}] * 60)
    sleep = _RecordingSleep()

    with pytest.raises(ProcessingTimeoutError) as excinfo:
        await _poller(api, sleep, max_polls=60).poll("j4")

    assert excinfo.value.attempts == 60
    assert api.status_calls == 60
    # No wait after the final attempt.
    assert len(sleep.delays) == 59


@pytest.mark.asyncio
async def test_three_consecutive_transport_errors_raise_underlying_error() -> None:
    api = _FakeStatusApi([_transient(), _transient(), _transient()] + [{"status": "processing"}] * 10)
    sleep = _RecordingSleep()

    with pytest.raises(httpx.ConnectError):
        await _poller(api, sleep, max_polls=60).poll("j5")

    assert api.status_calls == 3
    assert sleep.delays == [6.0, 6.0]


@pytest.mark.asyncio
async def test_successful_read_resets_error_counter_and_backoff_doubles_interval() -> None:
    api = _FakeStatusApi(
        [
            _transient(),
            _transient(),
            {"status": "processing", "progress_percentage": 30},
            _transient(),
            _transient(),
            {"status": "completed"},
        ]
    )
    sleep = _RecordingSleep()
    events: list[ProgressEvent] = []

    result = await _poller(api, sleep).poll("j6", events.append)

    assert result == {"song_id": "song_1", "chords": []}
    assert [e.progress for e in events] == [30.0, 100.0]
    assert sleep.delays == [6.0, 6.0, 3.0, 6.0, 6.0]


@pytest.mark.asyncio
async def test_transient_errors_count_against_attempt_cap() -> None:
    api = _FakeStatusApi([_transient(), {"status": "processing"}, _transient(), {"status": "processing"}])
    with pytest.raises(ProcessingTimeoutError):
        await _poller(api, _RecordingSleep(), max_polls=4).poll("j7")
    assert api.status_calls == 4


@pytest.mark.asyncio
async def test_non_transient_errors_propagate_immediately() -> None:
    request = httpx.Request("GET", "http://test/process-status/j8")
    not_found = httpx.HTTPStatusError("404", request=request, response=httpx.Response(404, request=request))
    api = _FakeStatusApi([not_found])

    with pytest.raises(httpx.HTTPStatusError):
        await _poller(api, _RecordingSleep()).poll("j8")
    assert api.status_calls == 1


@pytest.mark.asyncio
async def test_result_fetch_retries_transient_errors() -> None:
    api = _FakeStatusApi([{"status": "completed"}], results=[_transient(), {"song_id": "song_9"}])
    sleep = _RecordingSleep()

    result = await _poller(api, sleep).poll("j9")

    assert result == {"song_id": "song_9"}
    assert api.result_calls == 2
    assert sleep.delays == [6.0]


@pytest.mark.asyncio
async def test_result_fetch_gives_up_after_threshold() -> None:
    api = _FakeStatusApi([{"status": "completed"}], results=[_transient()] * 3)
    with pytest.raises(httpx.ConnectError):
        await _poller(api, _RecordingSleep()).poll("j10")
    assert api.result_calls == 3


@pytest.mark.asyncio
async def test_cancel_event_stops_polling_before_next_request() -> None:
    cancel = asyncio.Event()
    api = _FakeStatusApi([{"status": "processing", "progress_percentage": 5}] * 5)

    def on_progress(event: ProgressEvent) -> None:
        cancel.set()

    with pytest.raises(ProcessingCancelledError):
        await _poller(api, _RecordingSleep()).poll("j11", on_progress, cancel_event=cancel)
    assert api.status_calls == 1


def test_poller_rejects_non_positive_limits() -> None:
    with pytest.raises(ValueError):
        StatusPoller(_FakeStatusApi([]), max_polls=0)
