"""
MediaSearch API

FastAPI application entry point: app factory, lifespan and the
``mediasearch-api`` console script.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from fastapi import FastAPI

from .schemas import HealthResponse
from .routes import auth_router, search_router, history_router
from .middleware import (
    setup_cors,
    setup_rate_limiting,
    setup_logging,
    setup_exception_handlers,
    RateLimitConfig,
    LoggingConfig,
    get_cors_config,
)
from .dependencies import (
    get_settings,
    init_database,
    create_tables,
    dispose_database,
    Settings,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

API_PREFIX = "/api"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Open the database (creating tables) for the life of the app."""
    settings: Settings = app.state.settings
    logger.info(f"Starting MediaSearch in {settings.environment} mode")

    init_database(settings)
    try:
        await create_tables()
        yield
    finally:
        await dispose_database()
        logger.info("MediaSearch stopped")


def configure_middleware(app: FastAPI, settings: Settings) -> None:
    """
    Install middleware and exception handlers.

    Starlette runs the last-added middleware first, so request logging
    wraps CORS, which wraps rate limiting. Every response, a 429 included,
    passes back through the logging middleware and gets its request id.
    """
    setup_exception_handlers(app)

    if settings.rate_limit_enabled:
        setup_rate_limiting(
            app,
            config=RateLimitConfig(requests_per_minute=settings.rate_limit_requests_per_minute),
        )

    setup_cors(app, config=get_cors_config(settings.environment, settings.cors_allowed_origins))

    setup_logging(
        app,
        config=LoggingConfig(log_request_body=settings.debug),
        structured=settings.environment != "development",
    )


def register_routes(app: FastAPI) -> None:
    for router in (auth_router, search_router, history_router):
        app.include_router(router, prefix=API_PREFIX)

    @app.get(f"{API_PREFIX}/health", response_model=HealthResponse, tags=["system"])
    async def health_check() -> HealthResponse:
        """Liveness probe."""
        return HealthResponse(status="ok", timestamp=datetime.now(timezone.utc))


def create_app(settings: Settings = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Application settings. If None, loads from environment.

    Returns:
        Configured FastAPI application.
    """
    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title="MediaSearch",
        description="Search openly licensed images and audio, with per-user search history.",
        version="1.0.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url=None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.settings = settings

    configure_middleware(app, settings)
    register_routes(app)

    return app


app = create_app()


def main():
    """Run the application using uvicorn."""
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "mediasearch.api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    main()
