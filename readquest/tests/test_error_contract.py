"""Tests for normalized error responses."""

from fastapi.testclient import TestClient

from readquest.core.errors import PersistenceReadFailure
from readquest.features.streaks.sync import ProfileStreakSync
from readquest.features.streaks.stores import InMemoryProfileStore
from readquest.main import create_app


class _UnavailableSessions:
    def list_sessions(self, user_id):
        raise PersistenceReadFailure("reading_sessions unavailable")


def test_validation_error_has_standard_shape(streak_sync):
    client = TestClient(create_app(streak_sync=streak_sync))
    resp = client.get("/v1/streaks/u1", params={"today": "not-a-date"})
    assert resp.status_code == 422
    body = resp.json()
    rid = resp.headers.get("x-request-id")
    assert body["error"]["code"] == "validation_error"
    assert body["error"]["request_id"] == rid
    assert "detail" in body


def test_unknown_route_normalized(streak_sync):
    client = TestClient(create_app(streak_sync=streak_sync))
    resp = client.get("/v1/nothing-here")
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "not_found"


def test_persistence_failure_is_503_and_keeps_request_id(fixed_clock):
    sync = ProfileStreakSync(_UnavailableSessions(), InMemoryProfileStore(), clock=fixed_clock)
    client = TestClient(create_app(streak_sync=sync))

    resp = client.post("/v1/streaks/u1/recalculate", headers={"X-Request-Id": "rid-503"})

    assert resp.status_code == 503
    body = resp.json()
    assert body["error"]["code"] == "persistence_read_failed"
    assert body["error"]["request_id"] == "rid-503"
    assert resp.headers.get("x-request-id") == "rid-503"


def test_profile_not_found_is_404(session_store, fixed_clock):
    sync = ProfileStreakSync(session_store, InMemoryProfileStore(auto_create=False), clock=fixed_clock)
    client = TestClient(create_app(streak_sync=sync))

    resp = client.get("/v1/streaks/ghost")

    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "profile_not_found"
