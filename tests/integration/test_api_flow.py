"""
Integration Tests for the Session API.

Drives the FastAPI app end to end with TestClient:
1. A full session from /start to /mission
2. Error bodies carry the snapshot needed to retry
3. Rate-limit and API-key enforcement
4. Status and health

Storage is a temp directory; the generative client is the canned fake.
"""

import random

import pytest
from fastapi.testclient import TestClient

from edge.api.main import build_services, create_app
from edge.core.errors import ExternalServiceError

pytestmark = pytest.mark.integration


@pytest.fixture
def make_client(settings, text_client):
    """Build a TestClient after the test has adjusted settings."""
    clients = []

    def _make():
        services = build_services(settings, text_client=text_client, rng=random.Random(3))
        client = TestClient(create_app(settings, services=services))
        client.__enter__()
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def api(make_client):
    return make_client()


def _post(api, phase, snapshot, request=None):
    body = {"snapshot": snapshot}
    if request is not None:
        body["request"] = request
    return api.post(f"/api/session/{phase}", json=body)


def _advance(api, phase, snapshot, request=None):
    response = _post(api, phase, snapshot, request)
    assert response.status_code == 200, response.text
    return response.json()


def _to_debrief(api):
    snapshot = api.post("/api/session/start").json()["snapshot"]
    snapshot = _advance(api, "lesson", snapshot)["snapshot"]
    snapshot = _advance(api, "retrieval", snapshot, {"answer": "Anchor first."})["snapshot"]
    snapshot = _advance(api, "roleplay", snapshot)["snapshot"]
    snapshot = _advance(api, "roleplay", snapshot, {"message": "My number is 40k."})["snapshot"]
    return _advance(api, "roleplay", snapshot, {"command": "finish"})["snapshot"]


class TestSessionFlow:
    """A whole day over HTTP."""

    def test_full_session(self, api, ledger):
        start = api.post("/api/session/start")
        assert start.status_code == 200
        assert start.json()["snapshot"]["phase"] == "lesson"
        assert start.json()["data"]["day"] == 1

        snapshot = _to_debrief(api)
        assert snapshot["phase"] == "debrief"
        assert snapshot["commands_used"] == ["finish"]

        debrief = _advance(api, "debrief", snapshot)
        assert debrief["data"]["scores"]["technique_application"] == 4
        assert "rate_limit" not in debrief

        mission = _advance(api, "mission", debrief["snapshot"])
        assert mission["snapshot"]["phase"] == "complete"
        assert mission["data"]["day"] == 1
        assert ledger.count() == 1

    def test_rate_limit_headers_on_success(self, api):
        snapshot = api.post("/api/session/start").json()["snapshot"]

        response = _post(api, "lesson", snapshot)

        assert response.headers["X-RateLimit-Limit"] == "5"
        assert response.headers["X-RateLimit-Remaining"] == "4"

    def test_checkin_next_day(self, api, ledger, make_record):
        ledger.append(make_record())
        snapshot = api.post("/api/session/start").json()["snapshot"]
        assert snapshot["phase"] == "checkin"

        result = _advance(api, "checkin", snapshot, {"outcome": "skipped"})

        assert result["snapshot"]["phase"] == "lesson"
        assert ledger.last().mission_outcome == "NOT EXECUTED"

    def test_coach_endpoint(self, api):
        snapshot = api.post("/api/session/start").json()["snapshot"]
        snapshot = _advance(api, "lesson", snapshot)["snapshot"]
        snapshot = _advance(api, "retrieval", snapshot, {"answer": "Anchor first."})["snapshot"]

        result = _advance(api, "coach", snapshot)

        assert result["data"]["coach"] is True
        assert result["snapshot"]["transcript"] == []


class TestErrorResponses:
    def test_external_failure_returns_snapshot(self, api, text_client):
        text_client.responses["debrief"] = ExternalServiceError
        snapshot = _to_debrief(api)

        response = _post(api, "debrief", snapshot)

        assert response.status_code == 502
        body = response.json()
        assert body["retryable"] is True
        assert body["snapshot"]["debrief_failures"] == 1

        retry = _post(api, "debrief", body["snapshot"])
        assert retry.status_code == 200
        assert retry.json()["data"]["fallback"] is True

    def test_phase_mismatch(self, api):
        snapshot = api.post("/api/session/start").json()["snapshot"]

        response = _post(api, "mission", snapshot)

        assert response.status_code == 409
        assert response.json()["snapshot"]["phase"] == "lesson"

    def test_stale_snapshot(self, api):
        snapshot = api.post("/api/session/start").json()["snapshot"]
        snapshot["captured_at"] = "2020-01-01T00:00:00+00:00"

        response = _post(api, "lesson", snapshot)

        assert response.status_code == 410
        assert "snapshot" not in response.json()

    def test_invalid_request_body(self, api, ledger, make_record):
        ledger.append(make_record())
        snapshot = api.post("/api/session/start").json()["snapshot"]

        response = _post(api, "checkin", snapshot, {"outcome": "maybe"})

        assert response.status_code == 422

    def test_rate_limited(self, settings, make_client):
        settings.rate_limit_status = 1
        api = make_client()

        assert api.get("/api/status").status_code == 200
        response = api.get("/api/status")

        assert response.status_code == 429
        assert int(response.headers["Retry-After"]) >= 1
        assert response.headers["X-RateLimit-Remaining"] == "0"
        assert response.json()["retryable"] is True

    def test_start_is_rate_limited(self, settings, make_client):
        settings.rate_limit_start = 2
        api = make_client()

        first = api.post("/api/session/start")
        assert first.headers["X-RateLimit-Limit"] == "2"
        assert first.headers["X-RateLimit-Remaining"] == "1"
        assert api.post("/api/session/start").status_code == 200

        response = api.post("/api/session/start")

        assert response.status_code == 429
        assert int(response.headers["Retry-After"]) >= 1


class TestAuthentication:
    @pytest.fixture
    def secured(self, settings, make_client):
        settings.edge_api_key = "s3cret"
        return make_client()

    def test_missing_key_rejected(self, secured):
        assert secured.get("/api/status").status_code == 401

    def test_header_key(self, secured):
        assert secured.get("/api/status", headers={"X-API-Key": "s3cret"}).status_code == 200

    def test_query_key(self, secured):
        assert secured.post("/api/session/start?key=s3cret").status_code == 200

    def test_wrong_key(self, secured):
        assert secured.get("/api/status", headers={"X-API-Key": "nope"}).status_code == 401

    def test_health_is_open(self, secured):
        assert secured.get("/health").status_code == 200


class TestStatusAndHealth:
    def test_status_after_session(self, api, ledger, make_record):
        ledger.append(make_record())

        response = api.get("/api/status", params={"today": "2025-03-10"})

        assert response.status_code == 200
        body = response.json()
        assert body["day_number"] == 2
        assert body["streak"] == 1
        assert body["last_record"]["concept_id"] == "anchoring"

    def test_health(self, api):
        body = api.get("/health").json()

        assert body["status"] == "healthy"
        assert body["components"]["ai"] == "not_configured"
