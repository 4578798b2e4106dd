"""
Pytest configuration and fixtures for MediaSearch tests.
"""

from typing import Any, AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from mediasearch.api.main import create_app
from mediasearch.api.dependencies import (
    Settings,
    get_settings,
    get_session_factory,
    get_openverse_client,
)
from mediasearch.openverse.client import MediaNotFoundError, OpenverseError, empty_page
from mediasearch.storage.models import Base


# =============================================================================
# Test Settings
# =============================================================================

def get_test_settings() -> Settings:
    """Return settings configured for testing."""
    return Settings(
        database_url="sqlite+aiosqlite://",
        database_echo=False,
        secret_key="test-secret-key",
        environment="test",
        debug=True,
        rate_limit_enabled=False,
    )


# =============================================================================
# Fake Openverse
# =============================================================================

def make_result(media_id: str, title: Optional[str] = None) -> dict[str, Any]:
    return {"id": media_id, "title": title or f"Media {media_id}", "license": "by"}


def make_page(
    ids: list[str],
    page: int = 1,
    page_size: int = 20,
    result_count: Optional[int] = None,
    page_count: int = 1,
) -> dict[str, Any]:
    return {
        "result_count": len(ids) if result_count is None else result_count,
        "page_count": page_count,
        "page_size": page_size,
        "page": page,
        "results": [make_result(media_id) for media_id in ids],
    }


class FakeOpenverseClient:
    """Stands in for OpenverseClient; records calls and returns canned pages."""

    def __init__(self):
        self.search_calls: list[dict[str, Any]] = []
        self.search_response: dict[str, Any] = make_page(["a1", "a2", "a3"], result_count=45, page_count=3)
        self.media: dict[tuple[str, str], dict[str, Any]] = {}
        self.error: Optional[Exception] = None

    async def search(self, query, media_type="all", page=1, page_size=20, filters=None):
        self.search_calls.append({
            "query": query,
            "media_type": media_type,
            "page": page,
            "page_size": page_size,
            "filters": dict(filters or {}),
        })
        if self.error:
            raise self.error
        if media_type == "video":
            return empty_page(page, page_size)
        return dict(self.search_response, page=page)

    async def get_media(self, media_type, media_id):
        if self.error:
            raise self.error
        try:
            return self.media[(media_type, media_id)]
        except KeyError:
            raise MediaNotFoundError(f"Not found: {media_id}", status=404)

    async def get_related(self, media_type, media_id):
        if self.error:
            raise self.error
        if (media_type, media_id) not in self.media:
            raise MediaNotFoundError(f"Not found: {media_id}", status=404)
        return make_page(["r1", "r2"])

    async def get_stats(self):
        if self.error:
            raise self.error
        return {
            "image": [{"source_name": "flickr", "media_count": 10}],
            "audio": [{"source_name": "freesound", "media_count": 5}],
        }


@pytest.fixture
def upstream_failure() -> OpenverseError:
    return OpenverseError("Openverse returned 503", status=503)


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest_asyncio.fixture(scope="function")
async def async_engine():
    """In-memory database shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(async_engine):
    return async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Provide database session for tests."""
    async with session_factory() as session:
        yield session


# =============================================================================
# Application Fixtures
# =============================================================================

@pytest.fixture
def fake_openverse() -> FakeOpenverseClient:
    return FakeOpenverseClient()


@pytest_asyncio.fixture(scope="function")
async def app(session_factory, fake_openverse):
    """Create FastAPI application for testing."""
    application = create_app(get_test_settings())

    application.dependency_overrides[get_settings] = get_test_settings
    application.dependency_overrides[get_session_factory] = lambda: session_factory
    application.dependency_overrides[get_openverse_client] = lambda: fake_openverse

    yield application

    application.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Provide async HTTP client for API tests."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# =============================================================================
# Data Fixtures
# =============================================================================

@pytest.fixture
def sample_user_data() -> dict:
    return {
        "username": "ada",
        "email": "ada@example.com",
        "password": "correct-horse",
        "firstName": "Ada",
        "lastName": "Lovelace",
    }


async def register_user(client: AsyncClient, **overrides) -> dict:
    """Register a user and return the ``{token, user}`` body."""
    payload = {
        "username": "ada",
        "email": "ada@example.com",
        "password": "correct-horse",
    }
    payload.update(overrides)
    response = await client.post("/api/auth/register", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def auth_headers(client) -> dict[str, str]:
    """Authorization headers of a freshly registered user."""
    body = await register_user(client)
    return bearer(body["token"])
