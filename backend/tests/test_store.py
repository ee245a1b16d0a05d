"""Tests for the in-memory request store."""

from datetime import datetime, timedelta, timezone

import pytest

from models.request import ProcessingRequest, RequestStatus
from services.store import processing_requests, prune_finished_requests

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def clear_requests() -> None:
    processing_requests.clear()
    yield
    processing_requests.clear()


def _request(request_id: str, status: RequestStatus, finished_minutes_ago: float | None) -> ProcessingRequest:
    request = ProcessingRequest(id=request_id, source_label="riff.mp3", status=status)
    if finished_minutes_ago is not None:
        request.finished_at = NOW - timedelta(minutes=finished_minutes_ago)
    processing_requests[request_id] = request
    return request


def test_prune_drops_only_requests_finished_before_retention_window() -> None:
    _request("old-done", RequestStatus.COMPLETED, finished_minutes_ago=90)
    _request("old-failed", RequestStatus.FAILED, finished_minutes_ago=61)
    _request("recent", RequestStatus.CANCELLED, finished_minutes_ago=5)
    _request("running", RequestStatus.PROCESSING, finished_minutes_ago=None)

    dropped = prune_finished_requests(retention_seconds=3600, now=NOW)

    assert dropped == 2
    assert set(processing_requests) == {"recent", "running"}


def test_prune_with_nothing_expired_keeps_everything() -> None:
    _request("recent", RequestStatus.COMPLETED, finished_minutes_ago=1)
    assert prune_finished_requests(now=NOW) == 0
    assert "recent" in processing_requests
