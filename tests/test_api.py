"""Tests for the HTTP API, with the store, catalog and recognition client swapped out."""
from __future__ import annotations

import random
from datetime import datetime
from unittest.mock import MagicMock

import pytest
import requests
from fastapi.testclient import TestClient

from animeworld.adapters.anilist_adapter import AniListAdapter
from animeworld.adapters.recognition import RecognitionClient
from animeworld.adapters.saucenao_adapter import SIMULATED_SOURCE_API, SauceNaoAdapter
from animeworld.adapters.trace_moe_adapter import TraceMoeAdapter
from animeworld.api.main import (
    app,
    get_catalog,
    get_recognition_client,
    get_require_admin,
    get_user_store,
)
from animeworld.exceptions import FetchError
from animeworld.models import MediaDetail, MediaRelation, RecognitionResult, UserCreateRequest

MB = 1024 * 1024


@pytest.fixture
def catalog_mock():
    return MagicMock(spec=AniListAdapter)


@pytest.fixture
def trace_moe_mock():
    trace_moe = MagicMock(spec=TraceMoeAdapter)
    trace_moe.identify.return_value = RecognitionResult(matched=False, source_api="trace.moe")
    return trace_moe


@pytest.fixture
def client(store, catalog_mock, trace_moe_mock):
    recognition = RecognitionClient(
        trace_moe=trace_moe_mock,
        saucenao=SauceNaoAdapter(api_key=None, rng=random.Random(3), simulated_delay=0),
        catalog=catalog_mock,
    )
    app.dependency_overrides[get_user_store] = lambda: store
    app.dependency_overrides[get_catalog] = lambda: catalog_mock
    app.dependency_overrides[get_recognition_client] = lambda: recognition
    app.dependency_overrides[get_require_admin] = lambda: False
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# ── User records ───────────────────────────────────────────────────────────

class TestUserRoutes:
    def test_missing_external_id(self, client):
        response = client.post("/api/users", json={"email": "x@y.z"})

        assert response.status_code == 400
        assert response.json()["error"] == "User ID (externalId) is required"

    def test_create_then_update(self, client):
        body = {"externalId": "uid-1", "firstName": "Mikasa", "lastName": "Ackerman", "googleAuth": True}

        first = client.post("/api/users", json=body)
        second = client.post("/api/users", json={**body, "firstName": "Ignored"})

        assert first.status_code == 201
        assert first.json()["status"] == "created"
        assert first.json()["message"] == "User saved successfully"
        assert second.status_code == 200
        assert second.json()["status"] == "updated"
        assert second.json()["user"]["firstName"] == "Mikasa"

    def test_user_uses_camel_case_keys(self, client):
        user = client.post("/api/users", json={"externalId": "uid-2"}).json()["user"]

        for key in ("externalId", "firstName", "lastName", "displayName", "countryCode",
                    "googleAuth", "phoneAuth", "createdAt", "lastLogin"):
            assert key in user
        assert "external_id" not in user

    def test_list_newest_first(self, client, store):
        store.create_or_touch(UserCreateRequest(external_id="old"), now=datetime(2024, 1, 1))
        store.create_or_touch(UserCreateRequest(external_id="new"), now=datetime(2024, 6, 1))

        response = client.get("/api/users")

        assert response.status_code == 200
        assert [u["externalId"] for u in response.json()] == ["new", "old"]

    def test_get_user(self, client, store):
        store.create_or_touch(UserCreateRequest(external_id="levi", email="levi@scouts.org"))

        assert client.get("/api/users/levi").json()["username"] == "levi"
        missing = client.get("/api/users/nobody")
        assert missing.status_code == 404
        assert missing.json() == {"error": "User not found"}

    def test_health(self, client):
        body = client.get("/api/health").json()

        assert body["status"] == "Server is running"
        assert body["database"] == "Connected"
        assert body["databaseName"] == "users"
        assert body["timestamp"]


class TestAdminGate:
    @pytest.fixture(autouse=True)
    def require_admin(self, client):
        app.dependency_overrides[get_require_admin] = lambda: True

    def test_anonymous_caller_is_rejected(self, client):
        response = client.get("/api/users")

        assert response.status_code == 403

    def test_regular_user_is_rejected(self, client, store):
        store.create_or_touch(UserCreateRequest(external_id="plain"))

        assert client.get("/api/users", headers={"X-User-Id": "plain"}).status_code == 403

    def test_admin_is_allowed(self, client, store):
        store.create_or_touch(UserCreateRequest(external_id="boss"))
        store.set_role("boss", "admin")

        response = client.get("/api/users", headers={"X-User-Id": "boss"})

        assert response.status_code == 200
        assert len(response.json()) == 1


# ── Catalog ────────────────────────────────────────────────────────────────

class TestMediaRoutes:
    def test_filter_options(self, client, catalog_mock):
        body = client.get("/api/media/filter/options").json()

        assert set(body) == {"genres", "status", "types", "sort"}
        assert "Action" in body["genres"]
        assert "MANHWA" in body["types"]
        catalog_mock.assert_not_called()

    def test_unknown_media(self, client, catalog_mock):
        catalog_mock.fetch_by_id.return_value = None

        response = client.get("/api/media/999999")

        assert response.status_code == 404
        assert response.json()["error"] == "Media not found"

    def test_trending_falls_back_when_upstream_is_down(self, client, mock_session):
        mock_session.request.side_effect = requests.ConnectionError("offline")
        real_catalog = AniListAdapter(requests_per_minute=None, retry_delay=0, session=mock_session)
        app.dependency_overrides[get_catalog] = lambda: real_catalog

        response = client.get("/api/media/trending", params={"kind": "ANIME"})

        assert response.status_code == 200
        results = response.json()
        assert results
        assert all(item["from_fallback"] for item in results)

    def test_invalid_filter_is_400(self, client, mock_session):
        app.dependency_overrides[get_catalog] = lambda: AniListAdapter(requests_per_minute=None, session=mock_session)

        response = client.post("/api/media/filter", json={"sort": "POPULARITY_DESC; DROP"})

        assert response.status_code == 400
        assert "sort" in response.json()["error"]
        mock_session.request.assert_not_called()

    def test_upstream_failure_is_502(self, client, catalog_mock):
        catalog_mock.search.side_effect = FetchError("AniList returned HTTP 503", kind="http", status_code=503)

        response = client.get("/api/media/search", params={"q": "naruto"})

        assert response.status_code == 502
        assert response.json()["retryable"] is True

    def test_episodes_are_simulated(self, client, catalog_mock):
        catalog_mock.fetch_by_id.return_value = MediaDetail(
            id=16498,
            episodes=3,
            relations=[MediaRelation(id=20958, relation_type="SEQUEL", title="Season 2")],
        )

        body = client.get("/api/media/16498/episodes").json()

        assert body["simulated"] is True
        assert len(body["episodes"]) == 3
        assert [s["id"] for s in body["seasons"]] == [16498, 20958]

    def test_chapters_are_simulated(self, client, catalog_mock):
        catalog_mock.fetch_by_id.return_value = MediaDetail(id=30013, chapters=20, volumes=2)

        body = client.get("/api/media/30013/chapters").json()

        assert body["simulated"] is True
        assert len(body["chapters"]) == 20
        assert [v["chapters"] for v in body["volumes"]] == [10, 10]


class TestScheduleRoute:
    def test_falls_back_to_simulated_schedule(self, client, catalog_mock):
        catalog_mock.fetch_schedule.side_effect = FetchError("offline")

        body = client.get("/api/schedule", params={"days": 3}).json()

        assert body["simulated"] is True
        assert len(body["days"]) == 3
        assert all(entry["simulated"] for day in body["days"] for entry in day["items"])


# ── Image recognition ──────────────────────────────────────────────────────

class TestAnalyzeRoutes:
    def test_oversized_image(self, client, trace_moe_mock):
        response = client.post("/api/analyze", files={"file": ("big.jpg", b"\xff" * (6 * MB), "image/jpeg")})

        assert response.status_code == 400
        assert response.json()["reason"] == "too_large"
        trace_moe_mock.identify.assert_not_called()

    def test_unsupported_format(self, client):
        response = client.post("/api/analyze", files={"file": ("doc.pdf", b"%PDF", "application/pdf")})

        assert response.status_code == 400
        assert response.json()["reason"] == "unsupported_format"

    def test_simulated_result_without_key(self, client):
        response = client.post("/api/analyze", files={"file": ("page.png", b"\x89PNG", "image/png")})

        assert response.status_code == 200
        body = response.json()
        assert body["simulated"] is True
        assert body["source_api"] == SIMULATED_SOURCE_API

    def test_resolve_unmatched_is_404(self, client):
        response = client.post("/api/analyze/resolve", json={"matched": False, "title": "Nothing"})

        assert response.status_code == 404

    def test_resolve_by_title(self, client, catalog_mock):
        catalog_mock.find_id_by_title.return_value = 30002

        response = client.post(
            "/api/analyze/resolve",
            json={"matched": True, "title": "Berserk", "media_kind": "MANGA"},
        )

        assert response.json() == {"media_id": 30002, "media_kind": "MANGA"}
