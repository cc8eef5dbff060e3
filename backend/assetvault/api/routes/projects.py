"""Project, version and asset registration endpoints."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from assetvault.api.deps import get_storage_dep, require_bridge_device
from assetvault.core.logging import get_logger
from assetvault.db import get_db, get_session_maker
from assetvault.db.models import BridgeDevice, Project, ProjectVersion
from assetvault.schemas.vault import (
    AssetCreate,
    AssetCreated,
    ProjectCreate,
    ProjectResponse,
    VersionCreate,
    VersionResponse,
)
from assetvault.services.errors import DuplicateAssetError, RegistrationError
from assetvault.services.metadata import FileMetadata
from assetvault.services.registration import AssetRegistration, DatabaseRegistrar
from assetvault.services.storage import LocalStorage

logger = get_logger(__name__)

router = APIRouter(prefix="/projects", tags=["projects"])


async def _get_project_or_404(db: AsyncSession, project_id: str) -> Project:
    project = await db.get(Project, project_id)
    if project is None:
        raise HTTPException(status_code=404, detail=f"Project {project_id} not found")
    return project


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    request: ProjectCreate,
    db: AsyncSession = Depends(get_db),
) -> ProjectResponse:
    project = Project(name=request.name)
    db.add(project)
    await db.flush()
    logger.info("project_created", project_id=project.id)
    return ProjectResponse.model_validate(project)


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(
    project_id: str,
    db: AsyncSession = Depends(get_db),
) -> ProjectResponse:
    return ProjectResponse.model_validate(await _get_project_or_404(db, project_id))


@router.post(
    "/{project_id}/versions",
    response_model=VersionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_version(
    project_id: str,
    request: VersionCreate,
    db: AsyncSession = Depends(get_db),
    device: BridgeDevice = Depends(require_bridge_device),
) -> VersionResponse:
    """Create a version to attach uploaded assets to."""
    await _get_project_or_404(db, project_id)

    version = ProjectVersion(
        project_id=project_id,
        label=request.label,
        description=request.description,
        source=request.source,
    )
    db.add(version)
    await db.flush()

    logger.info(
        "version_created",
        version_id=version.id,
        project_id=project_id,
        device_id=device.id,
    )
    return VersionResponse.model_validate(version)


@router.post(
    "/{project_id}/versions/{version_id}/assets",
    response_model=AssetCreated,
    status_code=status.HTTP_201_CREATED,
)
async def register_asset(
    project_id: str,
    version_id: str,
    request: AssetCreate,
    db: AsyncSession = Depends(get_db),
    session_maker: async_sessionmaker[AsyncSession] = Depends(get_session_maker),
    storage: LocalStorage = Depends(get_storage_dep),
    device: BridgeDevice = Depends(require_bridge_device),
) -> AssetCreated:
    """Register an uploaded object as an asset.

    Returns 409 if the (provider, file id, revision) is already registered
    and 400 if nothing was uploaded under the storage key.
    """
    version = await db.get(ProjectVersion, version_id)
    if version is None or version.project_id != project_id:
        raise HTTPException(status_code=404, detail=f"Version {version_id} not found")

    registrar = DatabaseRegistrar(session_maker, storage)
    try:
        asset_id = await registrar.register_asset(
            AssetRegistration(
                project_id=project_id,
                version_id=version_id,
                storage_key=request.storage_key,
                file_name=request.file_name,
                file_size=request.file_size,
                mime_type=request.mime_type,
                source_provider=request.source_provider,
                source_file_id=request.source_file_id,
                source_revision=request.source_revision,
                source_metadata=request.source_metadata,
                metadata=FileMetadata(
                    duration=request.duration,
                    sample_rate=request.sample_rate,
                    bit_rate=request.bit_rate,
                    channels=request.channels,
                    audio_format=request.audio_format,
                ),
            )
        )
    except DuplicateAssetError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except RegistrationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    device.last_import_at = datetime.now(timezone.utc)
    return AssetCreated(id=asset_id)
