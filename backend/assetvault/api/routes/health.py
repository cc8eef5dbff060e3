"""Health check endpoint."""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from assetvault.api.deps import get_worker_dep
from assetvault.core.config import settings
from assetvault.core.logging import get_logger
from assetvault.db import get_db
from assetvault.schemas.health import HealthResponse
from assetvault.workers.drive_import import DriveImportWorker

logger = get_logger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(
    db: AsyncSession = Depends(get_db),
    worker: DriveImportWorker = Depends(get_worker_dep),
) -> HealthResponse:
    """Check application health.

    Returns:
        Health status, application version and database connectivity.
    """
    try:
        await db.execute(text("SELECT 1"))
        database = "connected"
    except SQLAlchemyError as e:
        logger.warning("health_database_unreachable", error=str(e))
        database = "disconnected"

    return HealthResponse(
        status="ok" if database == "connected" else "degraded",
        version=settings.version,
        database=database,
        active_imports=worker.active_jobs,
    )
