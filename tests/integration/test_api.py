"""
Integration tests for search, media, stats and system endpoints.
"""

import pytest
from httpx import AsyncClient, ASGITransport

from mediasearch.api.main import create_app
from mediasearch.api.dependencies import (
    get_openverse_client,
    get_session_factory,
    get_settings,
)
from mediasearch.openverse.client import OpenverseError
from tests.conftest import bearer, get_test_settings, make_result

pytestmark = pytest.mark.asyncio


class TestHealthEndpoints:

    async def test_health_check(self, client):
        response = await client.get("/api/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert "timestamp" in data

    async def test_unknown_api_path(self, client):
        response = await client.get("/api/does-not-exist")

        assert response.status_code == 404
        assert response.json()["message"] == "API endpoint not found"
        assert response.json()["timestamp"].endswith("+00:00")

    async def test_request_id_header(self, client):
        response = await client.get("/api/health", headers={"X-Request-ID": "abc123"})

        assert response.headers["x-request-id"] == "abc123"

    async def test_request_id_is_generated(self, client):
        response = await client.get("/api/stats")

        assert response.headers.get("x-request-id")


class TestSearchEndpoint:

    async def test_anonymous_search(self, client, fake_openverse):
        response = await client.get("/api/search", params={"q": "cats"})

        assert response.status_code == 200
        data = response.json()
        assert data["result_count"] == 45
        assert data["page_count"] == 3
        assert len(data["results"]) == 3
        assert fake_openverse.search_calls[0]["media_type"] == "all"
        assert fake_openverse.search_calls[0]["page_size"] == 20

    async def test_filters_are_forwarded(self, client, fake_openverse):
        response = await client.get("/api/search", params={
            "q": "cats",
            "mediaType": "image",
            "page": 2,
            "pageSize": 10,
            "license": "by",
            "source": "flickr",
            "extension": "",
        })

        assert response.status_code == 200
        call = fake_openverse.search_calls[0]
        assert call["media_type"] == "image"
        assert call["page"] == 2
        assert call["page_size"] == 10
        assert call["filters"] == {"license": "by", "source": "flickr"}

    async def test_video_returns_empty_page(self, client):
        response = await client.get("/api/search", params={"q": "cats", "mediaType": "video"})

        assert response.status_code == 200
        data = response.json()
        assert data["result_count"] == 0
        assert data["results"] == []

    @pytest.mark.parametrize("params", [
        {},
        {"q": "   "},
        {"q": "cats", "mediaType": "text"},
        {"q": "cats", "page": 0},
        {"q": "cats", "pageSize": 51},
    ])
    async def test_invalid_search_is_rejected(self, client, fake_openverse, params):
        response = await client.get("/api/search", params=params)

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"
        assert fake_openverse.search_calls == []

    async def test_upstream_failure_is_502(self, client, fake_openverse, upstream_failure):
        fake_openverse.error = upstream_failure

        response = await client.get("/api/search", params={"q": "cats"})

        assert response.status_code == 502
        data = response.json()
        assert data["code"] == "UPSTREAM_ERROR"
        assert "503" not in data["message"]
        assert data["detail"] is None

    async def test_invalid_token_searches_anonymously(self, client):
        response = await client.get(
            "/api/search",
            params={"q": "cats"},
            headers=bearer("expired-or-garbage"),
        )

        assert response.status_code == 200

    async def test_authenticated_search_is_recorded(self, client, auth_headers):
        response = await client.get(
            "/api/search",
            params={"q": "cats", "mediaType": "audio", "license": "cc0"},
            headers=auth_headers,
        )
        assert response.status_code == 200

        history = await client.get("/api/history", headers=auth_headers)
        data = history.json()
        assert data["total"] == 1
        item = data["history"][0]
        assert item["query"] == "cats"
        assert item["mediaType"] == "audio"
        assert item["filters"] == {"license": "cc0"}
        assert item["resultCount"] == 45

    async def test_failed_search_is_not_recorded(
        self, client, auth_headers, fake_openverse, upstream_failure
    ):
        fake_openverse.error = upstream_failure
        await client.get("/api/search", params={"q": "cats"}, headers=auth_headers)

        history = await client.get("/api/history", headers=auth_headers)
        assert history.json()["total"] == 0


class TestMediaEndpoints:

    async def test_get_media(self, client, fake_openverse):
        fake_openverse.media[("image", "abc")] = make_result("abc", "Tabby")

        response = await client.get("/api/media/image/abc")

        assert response.status_code == 200
        assert response.json()["title"] == "Tabby"

    async def test_missing_media_is_404(self, client):
        response = await client.get("/api/media/audio/missing")

        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    async def test_unsupported_media_type(self, client):
        response = await client.get("/api/media/video/abc")

        assert response.status_code == 400

    async def test_related_media(self, client, fake_openverse):
        fake_openverse.media[("audio", "song")] = make_result("song")

        response = await client.get("/api/media/audio/song/related")

        assert response.status_code == 200
        assert [r["id"] for r in response.json()["results"]] == ["r1", "r2"]

    async def test_stats(self, client):
        response = await client.get("/api/stats")

        assert response.status_code == 200
        data = response.json()
        assert set(data) == {"image", "audio"}

    async def test_stats_upstream_failure(self, client, fake_openverse):
        fake_openverse.error = OpenverseError("timed out")

        response = await client.get("/api/stats")

        assert response.status_code == 502


class TestRateLimiting:

    @pytest.fixture
    async def limited_client(self, session_factory, fake_openverse):
        settings = get_test_settings()
        settings.rate_limit_enabled = True
        application = create_app(settings)
        application.dependency_overrides[get_settings] = get_test_settings
        application.dependency_overrides[get_session_factory] = lambda: session_factory
        application.dependency_overrides[get_openverse_client] = lambda: fake_openverse

        transport = ASGITransport(app=application)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac

    async def test_register_is_rate_limited(self, limited_client):
        statuses = []
        for i in range(7):
            response = await limited_client.post("/api/auth/register", json={
                "username": f"user{i}",
                "email": f"user{i}@example.com",
                "password": "secret1",
            })
            statuses.append(response.status_code)

        assert statuses[:5] == [201] * 5
        assert statuses[5] == 429
        assert response.json()["code"] == "RATE_LIMIT_EXCEEDED"
        assert "retry-after" in response.headers

    async def test_rotating_bearer_does_not_reset_login_limit(self, limited_client):
        statuses = []
        for i in range(12):
            response = await limited_client.post(
                "/api/auth/login",
                json={"email": "nobody@example.com", "password": "wrong-password"},
                headers=bearer(f"junk{i}"),
            )
            statuses.append(response.status_code)

        assert statuses[:10] == [401] * 10
        assert statuses[10:] == [429, 429]

    async def test_rate_limited_response_has_request_id(self, limited_client):
        for _ in range(10):
            await limited_client.post("/api/auth/login", json={"email": "a@example.com", "password": "nope123"})

        response = await limited_client.post(
            "/api/auth/login",
            json={"email": "a@example.com", "password": "nope123"},
            headers={"X-Request-ID": "limited-1"},
        )

        assert response.status_code == 429
        assert response.headers["x-request-id"] == "limited-1"


class TestUnhandledErrors:

    async def test_internal_error_has_request_id(self, app):
        async def explode():
            raise RuntimeError("boom")

        app.add_api_route("/api/explode", explode)
        transport = ASGITransport(app=app, raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            response = await ac.get("/api/explode", headers={"X-Request-ID": "boom-1"})

        assert response.status_code == 500
        assert response.json()["code"] == "INTERNAL_ERROR"
        assert response.headers["x-request-id"] == "boom-1"
