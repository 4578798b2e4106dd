"""
CORS Configuration

Cross-origin access for the browser front end. Tokens travel in the
Authorization header, never in cookies, so credentials are not allowed
cross-origin.
"""

import os
from dataclasses import dataclass, replace
from typing import Iterable, Optional, Tuple

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

LOCAL_DEV_ORIGINS = (
    "http://localhost:3000",      # React dev server
    "http://localhost:5173",      # Vite dev server
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
)


@dataclass(frozen=True)
class CORSConfig:
    """CORS configuration settings."""

    allowed_origins: Tuple[str, ...] = ()

    # Any origin may call the API (development only)
    allow_all_origins: bool = False

    allowed_methods: Tuple[str, ...] = ("GET", "POST", "PUT", "DELETE", "OPTIONS")

    allowed_headers: Tuple[str, ...] = (
        "Accept",
        "Content-Type",
        "Authorization",
        "X-Request-ID",
    )

    # Headers the browser client may read
    expose_headers: Tuple[str, ...] = (
        "X-Request-ID",
        "X-Rate-Limit-Remaining",
        "Retry-After",
    )

    # Preflight cache lifetime (seconds)
    max_age: int = 3600

    def with_origins(self, origins: Iterable[str]) -> "CORSConfig":
        """Copy with ``origins`` appended, skipping ones already allowed."""
        merged = list(self.allowed_origins)
        merged.extend(origin for origin in origins if origin not in merged)
        return replace(self, allowed_origins=tuple(merged))


CORS_CONFIGS = {
    "development": CORSConfig(allowed_origins=LOCAL_DEV_ORIGINS, allow_all_origins=True),
    "test": CORSConfig(allowed_origins=("http://test",)),
    "production": CORSConfig(max_age=7200),
}


def parse_origins(value: str) -> list[str]:
    """Split a comma separated origin list."""
    return [origin.strip().rstrip("/") for origin in value.split(",") if origin.strip()]


def get_cors_config(
    environment: Optional[str] = None,
    extra_origins: Optional[str] = None,
) -> CORSConfig:
    """
    CORS settings for ``environment`` plus ``extra_origins``.

    Both default to the environment (``MEDIASEARCH_ENV`` and
    ``CORS_ALLOWED_ORIGINS``). Unknown environments get the development
    settings.
    """
    if environment is None:
        environment = os.getenv("MEDIASEARCH_ENV", "development")
    if extra_origins is None:
        extra_origins = os.getenv("CORS_ALLOWED_ORIGINS", "")

    config = CORS_CONFIGS.get(environment, CORS_CONFIGS["development"])
    return config.with_origins(parse_origins(extra_origins))


def setup_cors(app: FastAPI, config: Optional[CORSConfig] = None) -> None:
    """Configure CORS middleware for the FastAPI application."""
    if config is None:
        config = get_cors_config()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if config.allow_all_origins else list(config.allowed_origins),
        allow_credentials=False,
        allow_methods=list(config.allowed_methods),
        allow_headers=list(config.allowed_headers),
        expose_headers=list(config.expose_headers),
        max_age=config.max_age,
    )
