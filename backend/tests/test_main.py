from fastapi.testclient import TestClient

from app.main import app

client = TestClient(app)


def test_health() -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_song_routes_are_mounted_under_api() -> None:
    paths = {route.path for route in app.routes}
    assert "/api/songs/youtube" in paths
    assert "/api/songs/upload" in paths
    assert "/api/songs/requests/{request_id}" in paths
    assert "/api/songs/{song_id}" in paths
    assert "/api/ws/requests/{request_id}/progress" in paths
