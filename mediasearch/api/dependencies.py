"""
Dependency injection for FastAPI routes.

Provides injectable dependencies for:
- Configuration
- Database sessions
- The Openverse client and history recorder
- Authentication (required and optional)
"""

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import AsyncGenerator, Callable, Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from ..openverse.client import OpenverseClient
from ..security import ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES, InvalidTokenError, decode_access_token
from ..storage.history_recorder import HistoryRecorder
from ..storage.models import User
from ..storage.user_repository import UserRepository
from .middleware.error_handler import AuthError


# =============================================================================
# Configuration
# =============================================================================

@dataclass
class Settings:
    """Application settings loaded from environment."""

    # Database
    database_url: str = "sqlite+aiosqlite:///./mediasearch.db"
    database_echo: bool = False

    # Auth
    secret_key: str = "change-me-in-production"
    jwt_algorithm: str = ALGORITHM
    access_token_expire_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES

    # Openverse
    openverse_api_url: str = OpenverseClient.BASE_URL
    openverse_api_token: Optional[str] = None
    openverse_timeout_seconds: float = 10.0

    # Rate limiting
    rate_limit_enabled: bool = True
    rate_limit_requests_per_minute: int = 100

    # CORS (comma separated, added to the environment defaults)
    cors_allowed_origins: str = ""

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Environment
    environment: str = "development"
    debug: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables."""
        return cls(
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            database_echo=os.getenv("DATABASE_ECHO", "false").lower() == "true",
            secret_key=os.getenv("SECRET_KEY", cls.secret_key),
            jwt_algorithm=os.getenv("JWT_ALGORITHM", cls.jwt_algorithm),
            access_token_expire_minutes=int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", cls.access_token_expire_minutes)),
            openverse_api_url=os.getenv("OPENVERSE_API_URL", cls.openverse_api_url),
            openverse_api_token=os.getenv("OPENVERSE_API_TOKEN"),
            openverse_timeout_seconds=float(os.getenv("OPENVERSE_TIMEOUT_SECONDS", cls.openverse_timeout_seconds)),
            rate_limit_enabled=os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true",
            rate_limit_requests_per_minute=int(os.getenv("RATE_LIMIT_RPM", cls.rate_limit_requests_per_minute)),
            cors_allowed_origins=os.getenv("CORS_ALLOWED_ORIGINS", cls.cors_allowed_origins),
            host=os.getenv("HOST", cls.host),
            port=int(os.getenv("PORT", cls.port)),
            environment=os.getenv("MEDIASEARCH_ENV", cls.environment),
            debug=os.getenv("DEBUG", "true").lower() == "true",
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    settings = Settings.from_env()
    if settings.environment == "production" and settings.secret_key == Settings.secret_key:
        logger.warning("SECRET_KEY is not set; tokens are signed with the default key")
    return settings


# =============================================================================
# Database
# =============================================================================

# Global engine and session factory (initialized in lifespan)
_engine = None
_async_session_factory = None


def init_database(settings: Settings) -> None:
    """Initialize database engine and session factory."""
    global _engine, _async_session_factory

    _engine = create_async_engine(
        settings.database_url,
        echo=settings.database_echo,
        pool_pre_ping=True,
    )

    _async_session_factory = async_sessionmaker(
        _engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def create_tables() -> None:
    """Create database tables."""
    from ..storage.models import Base
    if _engine is None:
        raise RuntimeError("Database not initialized.")

    async with _engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_database() -> None:
    """Close pooled connections."""
    global _engine, _async_session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _async_session_factory = None


def get_session_factory() -> Callable[[], AsyncSession]:
    """Session factory for work that outlives the request session."""
    if _async_session_factory is None:
        raise RuntimeError("Database not initialized. Call init_database first.")
    return _async_session_factory


async def get_db(
    session_factory: Callable[[], AsyncSession] = Depends(get_session_factory),
) -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency that provides a database session.

    Yields:
        AsyncSession for database operations.
    """
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# =============================================================================
# Service Dependencies
# =============================================================================

_openverse_client: Optional[OpenverseClient] = None


def get_openverse_client(settings: Settings = Depends(get_settings)) -> OpenverseClient:
    """Shared Openverse client (stateless, created on first use)."""
    global _openverse_client
    if _openverse_client is None:
        _openverse_client = OpenverseClient(
            base_url=settings.openverse_api_url,
            api_token=settings.openverse_api_token,
            timeout=settings.openverse_timeout_seconds,
        )
    return _openverse_client


def get_history_recorder(
    session_factory: Callable[[], AsyncSession] = Depends(get_session_factory),
) -> HistoryRecorder:
    """Dependency for the search history recorder."""
    return HistoryRecorder(session_factory)


# =============================================================================
# Authentication Dependencies
# =============================================================================

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


async def _resolve_user(token: str, db: AsyncSession, settings: Settings) -> User:
    try:
        payload = decode_access_token(token, settings.secret_key, settings.jwt_algorithm)
    except InvalidTokenError:
        raise AuthError("Invalid or expired token")

    user = await UserRepository(db).get(payload["sub"])
    if user is None:
        raise AuthError("Invalid or expired token")
    if not user.is_active:
        raise AuthError("Account is disabled")
    return user


async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> User:
    """Dependency to get current authenticated user."""
    if not token:
        raise AuthError("Authentication required")
    return await _resolve_user(token, db, settings)


async def get_optional_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> Optional[User]:
    """
    Current user when a valid token is sent, otherwise None.

    A bad token on a public endpoint downgrades the caller to anonymous
    instead of failing the request.
    """
    if not token:
        return None
    try:
        return await _resolve_user(token, db, settings)
    except AuthError as e:
        logger.debug(f"Ignoring unusable token on public endpoint: {e.message}")
        return None
