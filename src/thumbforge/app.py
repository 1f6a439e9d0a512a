"""FastAPI application factory."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from thumbforge.api.dependencies import base_error_handler, request_validation_error_handler
from thumbforge.api.routes import health, thumbnails
from thumbforge.core.cache import setup_cache_client
from thumbforge.core.config import Settings, configure_logging
from thumbforge.core.database import setup_db_session
from thumbforge.core.errors import BaseError
from thumbforge.repositories.cache import CacheRepository
from thumbforge.repositories.thumbnail import ThumbnailRepository
from thumbforge.services.thumbnails import ThumbnailService
from thumbforge.uow import TransactionManager

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager.

    Handles startup and shutdown tasks:
    - Startup: Configure logging, create database and cache clients, wire the service
    - Shutdown: Close the cache connection pool and dispose the database engine
    """
    settings: Settings = app.state.settings

    # Configure logging
    configure_logging(settings)

    # Shared connection pools, owned here and injected everywhere else
    session_factory = setup_db_session(settings.database_url, settings.db_pool_size)
    cache_client = setup_cache_client(
        settings.cache_url,
        connect_timeout=settings.cache_connect_timeout,
        max_connections=settings.cache_max_connections,
    )

    cache_repository = CacheRepository(cache_client)
    thumbnail_service = ThumbnailService(
        thumbnails=ThumbnailRepository(session_factory),
        cache=cache_repository,
        transactions=TransactionManager(session_factory),
    )

    # Store in app.state for access in routes
    app.state.session_factory = session_factory
    app.state.cache_repository = cache_repository
    app.state.thumbnail_service = thumbnail_service

    pong = await cache_repository.ping()
    if pong.is_err():
        # Reads degrade to the database while the cache is down
        logger.warning("startup.cache_unavailable", error=pong.error.message)

    logger.info("application.startup", db_url=settings.database_url.split("@")[-1])

    yield

    logger.info("application.shutdown")
    await cache_client.aclose()
    await session_factory.kw["bind"].dispose()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        settings: Explicit settings (defaults to loading from environment)

    Returns:
        Configured FastAPI application instance
    """
    settings = settings or Settings()  # type: ignore[call-arg]

    app = FastAPI(
        title="thumbforge API",
        description="Thumbnail job tracking with cache-aside reads",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Keep framework validation and escaped errors in the {"error": ...} envelope
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(BaseError, base_error_handler)

    # Register API routers
    app.include_router(thumbnails.router)  # Router has prefix="/api/thumbnails" in definition
    app.include_router(health.router)

    return app


# Create app instance for uvicorn
app = create_app()
