"""Import job API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from assetvault.api.deps import get_worker_dep
from assetvault.core.logging import get_logger
from assetvault.db import get_db
from assetvault.db.models import ImportJob
from assetvault.schemas.imports import (
    ImportJobList,
    ImportJobResponse,
    StartImportRequest,
    StartImportResponse,
)
from assetvault.services.drive_import import DriveImportService, ProjectNotFoundError
from assetvault.services.errors import ConfigurationError
from assetvault.workers.drive_import import DriveImportWorker

logger = get_logger(__name__)

router = APIRouter(prefix="/imports", tags=["imports"])


@router.post("", response_model=StartImportResponse, status_code=status.HTTP_202_ACCEPTED)
async def start_import(
    request: StartImportRequest,
    db: AsyncSession = Depends(get_db),
    worker: DriveImportWorker = Depends(get_worker_dep),
) -> StartImportResponse:
    """Import the project's selected Drive folder in the background.

    Returns as soon as the job exists; poll GET /imports/{job_id}.
    """
    service = DriveImportService(db)
    try:
        job = await service.start_import(request.project_id)
    except ProjectNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    # The worker reads the job from its own session
    await db.commit()
    worker.submit(job.id)

    return StartImportResponse(job_id=job.id, status=job.status)


@router.get("", response_model=ImportJobList)
async def list_imports(
    project_id: str = Query(..., min_length=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
) -> ImportJobList:
    """List a project's import jobs, newest first."""
    result = await db.execute(
        select(ImportJob)
        .where(ImportJob.project_id == project_id)
        .order_by(ImportJob.created_at.desc())
        .limit(limit)
    )
    jobs = result.scalars().all()
    total = await db.scalar(
        select(func.count(ImportJob.id)).where(ImportJob.project_id == project_id)
    )
    return ImportJobList(
        items=[ImportJobResponse.model_validate(job) for job in jobs],
        total=total or 0,
    )


@router.get("/{job_id}", response_model=ImportJobResponse)
async def get_import(
    job_id: str,
    db: AsyncSession = Depends(get_db),
) -> ImportJobResponse:
    """Get the status and counters of an import job."""
    job = await db.get(ImportJob, job_id)
    if job is None:
        raise HTTPException(status_code=404, detail=f"Import job {job_id} not found")
    return ImportJobResponse.model_validate(job)
