"""Drive import orchestration on the request side.

Provides:
- Project records
- Drive connections (token pair stored encrypted) and folder selection
- Validation and creation of import jobs
- Resolution of a job's folder and credentials for the worker
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from assetvault.core.logging import get_logger
from assetvault.core.security import encrypt_token
from assetvault.db.models import (
    ConnectionStatus,
    DriveConnection,
    DriveSyncConfig,
    ImportJob,
    ImportJobStatus,
    ImportSourceType,
    Project,
)
from assetvault.services.credentials import AccessCredentials, ConnectionCredentialProvider
from assetvault.services.errors import ConfigurationError, ImportPipelineError

logger = get_logger(__name__)


class ProjectNotFoundError(ImportPipelineError):
    """Raised when a project does not exist."""

    pass


class DriveNotConnectedError(ConfigurationError):
    """Raised when no active Drive connection exists."""

    pass


class NoFolderSelectedError(ConfigurationError):
    """Raised when the project has no enabled Drive folder selection."""

    pass


class DriveImportService:
    """Service for Drive connections, folder selections and import jobs."""

    def __init__(self, db: AsyncSession):
        """Initialize the service.

        Args:
            db: AsyncSession for database operations.
        """
        self.db = db
        self.credentials = ConnectionCredentialProvider(db)

    # ========== Projects ==========

    async def create_project(self, name: str) -> Project:
        project = Project(name=name)
        self.db.add(project)
        await self.db.flush()
        logger.info("project_created", project_id=project.id, name=name)
        return project

    async def get_project(self, project_id: str) -> Project:
        """Get a project.

        Raises:
            ProjectNotFoundError: If it does not exist.
        """
        project = await self.db.get(Project, project_id)
        if project is None:
            raise ProjectNotFoundError(f"Project {project_id} not found")
        return project

    # ========== Connections ==========

    async def connect_account(
        self,
        email: str,
        access_token: str,
        refresh_token: str | None = None,
        expires_at: datetime | None = None,
    ) -> DriveConnection:
        """Store (or replace) the token pair of a Drive account.

        Tokens are encrypted before they are written.
        """
        result = await self.db.execute(
            select(DriveConnection).where(DriveConnection.email == email)
        )
        connection = result.scalar_one_or_none()
        if connection is None:
            connection = DriveConnection(email=email)
            self.db.add(connection)

        connection.status = ConnectionStatus.ACTIVE
        connection.access_token_encrypted = encrypt_token(access_token)
        connection.refresh_token_encrypted = encrypt_token(refresh_token) if refresh_token else None
        connection.expires_at = expires_at
        connection.updated_at = datetime.now(timezone.utc)
        await self.db.flush()

        logger.info("drive_account_connected", connection_id=connection.id, email=email)
        return connection

    async def get_active_connection(self) -> DriveConnection | None:
        return await self.credentials.get_active_connection()

    # ========== Folder selection ==========

    async def select_folder(
        self,
        project_id: str,
        folder_id: str,
        folder_name: str | None = None,
    ) -> DriveSyncConfig:
        """Select the Drive folder a project imports from.

        Raises:
            ProjectNotFoundError: If the project does not exist.
            DriveNotConnectedError: If no Drive account is connected.
        """
        await self.get_project(project_id)
        connection = await self.get_active_connection()
        if connection is None:
            raise DriveNotConnectedError("Google Drive is not connected")

        result = await self.db.execute(
            select(DriveSyncConfig).where(
                DriveSyncConfig.connection_id == connection.id,
                DriveSyncConfig.project_id == project_id,
            )
        )
        config = result.scalar_one_or_none()
        if config is None:
            config = DriveSyncConfig(connection_id=connection.id, project_id=project_id)
            self.db.add(config)

        config.drive_folder_id = folder_id
        config.drive_folder_name = folder_name
        config.enabled = True
        await self.db.flush()

        logger.info(
            "drive_folder_selected",
            project_id=project_id,
            folder_id=folder_id,
            sync_config_id=config.id,
        )
        return config

    async def get_sync_config(self, project_id: str) -> DriveSyncConfig | None:
        """Get the enabled folder selection of a project on an active connection."""
        result = await self.db.execute(
            select(DriveSyncConfig)
            .join(DriveConnection, DriveSyncConfig.connection_id == DriveConnection.id)
            .where(
                DriveSyncConfig.project_id == project_id,
                DriveSyncConfig.enabled.is_(True),
                DriveConnection.status == ConnectionStatus.ACTIVE,
            )
            .order_by(DriveSyncConfig.updated_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_enabled_sync_configs(self) -> list[DriveSyncConfig]:
        result = await self.db.execute(
            select(DriveSyncConfig)
            .join(DriveConnection, DriveSyncConfig.connection_id == DriveConnection.id)
            .where(
                DriveSyncConfig.enabled.is_(True),
                DriveConnection.status == ConnectionStatus.ACTIVE,
            )
        )
        return list(result.scalars().all())

    # ========== Import jobs ==========

    async def start_import(self, project_id: str) -> ImportJob:
        """Validate the project's Drive setup and create a PENDING job.

        The caller commits and hands the job id to the worker; this method
        never touches Drive itself.

        Raises:
            ProjectNotFoundError: If the project does not exist.
            DriveNotConnectedError: If no Drive account is connected.
            NoFolderSelectedError: If no folder is selected for the project.
        """
        await self.get_project(project_id)
        if await self.get_active_connection() is None:
            raise DriveNotConnectedError("Google Drive is not connected")

        config = await self.get_sync_config(project_id)
        if config is None:
            raise NoFolderSelectedError("No Drive folder selected for this project")

        job = ImportJob(
            project_id=project_id,
            source_type=ImportSourceType.GOOGLE_DRIVE,
            source_path=config.drive_folder_id,
            sync_config_id=config.id,
            status=ImportJobStatus.PENDING,
        )
        self.db.add(job)
        await self.db.flush()

        logger.info(
            "drive_import_requested",
            job_id=job.id,
            project_id=project_id,
            folder_id=config.drive_folder_id,
        )
        return job

    async def latest_job(self, project_id: str) -> ImportJob | None:
        result = await self.db.execute(
            select(ImportJob)
            .where(ImportJob.project_id == project_id)
            .order_by(ImportJob.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def resolve_job_source(self, job: ImportJob) -> tuple[DriveSyncConfig, AccessCredentials]:
        """Get the folder selection and decrypted credentials for a job.

        Raises:
            ConfigurationError: If the selection or its connection is unusable.
        """
        config = await self.db.get(DriveSyncConfig, job.sync_config_id) if job.sync_config_id else None
        if config is None:
            config = await self.get_sync_config(job.project_id)
        if config is None or not config.enabled:
            raise NoFolderSelectedError("No Drive folder selected for this project")

        credentials = await self.credentials.get_credentials(config.connection_id)
        return config, credentials

    async def stamp_last_sync(self, config: DriveSyncConfig, when: datetime | None = None) -> None:
        """Record a completed import on the folder selection and its connection."""
        when = when or datetime.now(timezone.utc)
        await self.db.execute(
            update(DriveSyncConfig).where(DriveSyncConfig.id == config.id).values(last_sync_at=when)
        )
        await self.db.execute(
            update(DriveConnection)
            .where(DriveConnection.id == config.connection_id)
            .values(last_sync_at=when)
        )
        await self.db.flush()
