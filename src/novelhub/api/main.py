"""FastAPI application entry point.

Main application configuration, middleware, and startup lifecycle.
"""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.staticfiles import StaticFiles

from novelhub.api.exceptions import register_exception_handlers
from novelhub.api.middleware import RateLimiter, RateLimitMiddleware, RequestLoggingMiddleware
from novelhub.api.routers import health_router, stories_router, users_router
from novelhub.core.config import Settings, get_settings
from novelhub.models.database import Database
from novelhub.services.generation import GenerationProxy
from novelhub.services.media import MediaPipeline
from novelhub.services.notifications import ResetTokenDelivery

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler.

    Startup:
    - Create the local upload directory
    - Connect to the database; if the first attempt fails, keep retrying in
      the background while the app serves in degraded mode

    Shutdown:
    - Close database connections and outbound HTTP clients
    """
    settings: Settings = app.state.settings
    database: Database = app.state.database

    Path(settings.upload_dir).mkdir(parents=True, exist_ok=True)

    logger.info("Connecting to database...")
    retry_task: asyncio.Task | None = None
    if not await database.connect():
        remaining = settings.database_connect_retries - 1
        if remaining > 0:
            retry_task = asyncio.create_task(
                database.connect_with_retry(
                    remaining,
                    settings.database_connect_interval_seconds,
                    delay_first=True,
                )
            )
        else:
            logger.warning("Running in degraded mode: database is not connected")

    yield

    # Shutdown
    logger.info("Shutting down...")
    if retry_task is not None and not retry_task.done():
        retry_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await retry_task

    await app.state.media.aclose()
    await app.state.generator.aclose()
    await app.state.reset_delivery.aclose()
    await database.close()
    logger.info("Database connections closed")


def create_app(
    settings: Settings | None = None,
    database: Database | None = None,
    media: MediaPipeline | None = None,
    generator: GenerationProxy | None = None,
    reset_delivery: ResetTokenDelivery | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Collaborators not passed in are built from ``settings``.

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level.upper(), format=LOG_FORMAT)

    app = FastAPI(
        title=f"{settings.app_name} API",
        description="Write, share and generate stories",
        version=settings.app_version,
        debug=settings.debug,
        docs_url="/api/docs" if not settings.is_production else None,
        redoc_url="/api/redoc" if not settings.is_production else None,
        openapi_url="/api/openapi.json" if not settings.is_production else None,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.database = database or Database.from_settings(settings)
    app.state.media = media or MediaPipeline.from_settings(settings)
    app.state.generator = generator or GenerationProxy.from_settings(settings)
    app.state.reset_delivery = reset_delivery or ResetTokenDelivery.from_settings(settings)

    # The last middleware added is outermost. CORS wraps the rate limiter
    # and the routers, so 429s and handled API errors carry CORS headers.
    # Unhandled 500s are rendered by ServerErrorMiddleware outside it and
    # carry none.
    app.add_middleware(
        RateLimitMiddleware,
        limiter=RateLimiter.from_settings(settings),
        prefix="/api",
    )
    app.add_middleware(RequestLoggingMiddleware)
    # Add compression for responses > 1KB
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=600,
    )

    app.include_router(health_router, tags=["health"])
    app.include_router(users_router, prefix="/api/users", tags=["users"])
    app.include_router(stories_router, prefix="/api/stories", tags=["stories"])

    # Legacy local uploads
    app.mount("/uploads", StaticFiles(directory=settings.upload_dir, check_dir=False), name="uploads")

    register_exception_handlers(app, include_stack=not settings.is_production)

    return app


# Application instance for uvicorn
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "novelhub.api.main:app",
        host=settings.host,
        port=settings.port,
        reload=not settings.is_production,
    )
