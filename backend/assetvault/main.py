"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from assetvault.api.router import api_router
from assetvault.core.config import settings
from assetvault.core.logging import get_logger, setup_logging
from assetvault.db import init_db
from assetvault.workers.drive_import import get_import_worker
from assetvault.workers.drive_sync import get_drive_sync_scheduler

# Initialize logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan events."""
    logger.info(
        "starting_application",
        app_name=settings.app_name,
        version=settings.version,
        host=settings.host,
        port=settings.port,
    )

    settings.storage_path.mkdir(parents=True, exist_ok=True)
    settings.staging_path.mkdir(parents=True, exist_ok=True)
    await init_db()

    scheduler = get_drive_sync_scheduler() if settings.drive_sync_enabled else None
    if scheduler is not None:
        await scheduler.start()

    yield

    logger.info("shutting_down_application")
    if scheduler is not None:
        await scheduler.stop()
    await get_import_worker().shutdown()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        description="Versioned vault for creative project assets imported from Google Drive and local exports",
        version=settings.version,
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )

    # Configure CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include API routes
    app.include_router(api_router)

    return app


# Create the application instance
app = create_app()


def main() -> None:
    """Run the application with uvicorn."""
    import uvicorn

    uvicorn.run(
        "assetvault.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
