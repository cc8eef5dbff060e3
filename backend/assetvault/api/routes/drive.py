"""Google Drive connection and folder selection endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from assetvault.core.logging import get_logger
from assetvault.db import get_db
from assetvault.schemas.drive import (
    DriveConnectionCreate,
    DriveConnectionResponse,
    DriveStatusResponse,
    DriveSyncConfigResponse,
    SelectFolderRequest,
)
from assetvault.schemas.imports import ImportJobResponse
from assetvault.services.drive_import import (
    DriveImportService,
    DriveNotConnectedError,
    ProjectNotFoundError,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/drive", tags=["drive"])


@router.post(
    "/connections",
    response_model=DriveConnectionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_connection(
    request: DriveConnectionCreate,
    db: AsyncSession = Depends(get_db),
) -> DriveConnectionResponse:
    """Store the token pair of a Drive account.

    Called by whatever completed the OAuth consent; tokens are encrypted
    at rest and never returned.
    """
    service = DriveImportService(db)
    connection = await service.connect_account(
        email=request.email,
        access_token=request.access_token,
        refresh_token=request.refresh_token,
        expires_at=request.expires_at,
    )
    return DriveConnectionResponse.model_validate(connection)


@router.get("/status", response_model=DriveStatusResponse)
async def get_status(
    project_id: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_db),
) -> DriveStatusResponse:
    """Get the Drive connection and folder selection of a project."""
    service = DriveImportService(db)
    try:
        await service.get_project(project_id)
    except ProjectNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    connection = await service.get_active_connection()
    config = await service.get_sync_config(project_id)
    latest = await service.latest_job(project_id)

    return DriveStatusResponse(
        connected=connection is not None,
        email=connection.email if connection else None,
        folder_id=config.drive_folder_id if config else None,
        folder_name=config.drive_folder_name if config else None,
        last_sync_at=config.last_sync_at if config else None,
        latest_job=ImportJobResponse.model_validate(latest) if latest else None,
    )


@router.post("/select-folder", response_model=DriveSyncConfigResponse)
async def select_folder(
    request: SelectFolderRequest,
    db: AsyncSession = Depends(get_db),
) -> DriveSyncConfigResponse:
    """Select the Drive folder a project imports from."""
    service = DriveImportService(db)
    try:
        config = await service.select_folder(
            request.project_id,
            request.folder_id,
            request.folder_name,
        )
    except ProjectNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except DriveNotConnectedError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return DriveSyncConfigResponse.model_validate(config)
