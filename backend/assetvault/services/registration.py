"""Asset registration contract and its database implementation.

The import pipeline talks to an AssetRegistrar only. The server uses
DatabaseRegistrar; the bridge uses an HTTP implementation of the same
contract (assetvault.bridge.client).
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from assetvault.core.logging import get_logger
from assetvault.db.models import Project, ProjectVersion, SourceProvider, VaultAsset
from assetvault.services.dedup import DedupIndex
from assetvault.services.errors import DuplicateAssetError, RegistrationError, TransferError
from assetvault.services.metadata import FileMetadata
from assetvault.services.sources import SourceFile
from assetvault.services.storage import LocalStorage, StorageError, UploadDestination, get_storage

logger = get_logger(__name__)

KEY_PREFIXES = {
    SourceProvider.GOOGLE_DRIVE: "imports/drive",
    SourceProvider.LOCAL_EXPORT: "imports/local",
    SourceProvider.DRIVE_DESKTOP: "imports/drive-desktop",
    SourceProvider.MANUAL: "uploads",
}


def key_prefix_for(provider: SourceProvider) -> str:
    return KEY_PREFIXES[provider]


class AssetRegistration(BaseModel):
    """Everything needed to create a VaultAsset."""

    project_id: str
    version_id: str
    import_job_id: str | None = None
    storage_key: str
    file_name: str
    file_size: int | None = None
    mime_type: str | None = None
    source_provider: SourceProvider
    source_file_id: str
    source_revision: str
    source_metadata: dict[str, Any] = Field(default_factory=dict)
    metadata: FileMetadata = Field(default_factory=FileMetadata)


class AssetRegistrar(ABC):
    """Where imported bytes and asset records go."""

    @abstractmethod
    async def exists(self, source_file: SourceFile) -> bool:
        """Check whether this revision of the file is already registered."""

    @abstractmethod
    async def create_version(
        self,
        project_id: str,
        label: str,
        description: str | None = None,
        source: SourceProvider = SourceProvider.MANUAL,
        import_job_id: str | None = None,
    ) -> str:
        """Create a project version and return its id."""

    @abstractmethod
    async def get_upload_destination(self, source_file: SourceFile) -> UploadDestination:
        """Reserve a storage key for the file's bytes."""

    @abstractmethod
    async def transfer(self, destination: UploadDestination, local_path: Path, content_type: str | None = None) -> int:
        """Stream the file at ``local_path`` to the destination.

        Returns:
            Number of bytes transferred.
        """

    @abstractmethod
    async def register_asset(self, registration: AssetRegistration) -> str:
        """Create the asset record and return its id.

        Raises:
            DuplicateAssetError: If the source identity is already registered.
        """


class DatabaseRegistrar(AssetRegistrar):
    """Registers assets directly in the database and local storage.

    Each call commits in its own session, so a registered asset is visible
    to other jobs before the next file is processed.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        storage: LocalStorage | None = None,
    ):
        self.session_maker = session_maker
        self.storage = storage or get_storage()
        self.dedup = DedupIndex(session_maker)

    async def exists(self, source_file: SourceFile) -> bool:
        return await self.dedup.exists(source_file.provider, source_file.file_id, source_file.revision)

    async def create_version(
        self,
        project_id: str,
        label: str,
        description: str | None = None,
        source: SourceProvider = SourceProvider.MANUAL,
        import_job_id: str | None = None,
    ) -> str:
        async with self.session_maker() as session:
            if await session.get(Project, project_id) is None:
                raise RegistrationError(f"Project {project_id} not found")

            version = ProjectVersion(
                project_id=project_id,
                label=label,
                description=description,
                source=source,
                import_job_id=import_job_id,
            )
            session.add(version)
            try:
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise RegistrationError(f"Could not create version: {e}") from e

        logger.info("version_created", version_id=version.id, project_id=project_id, label=label)
        return version.id

    async def get_upload_destination(self, source_file: SourceFile) -> UploadDestination:
        key = LocalStorage.build_key(
            key_prefix_for(source_file.provider),
            source_file.file_id,
            source_file.revision_digest,
            source_file.name,
        )
        return self.storage.create_upload_destination(key)

    async def transfer(self, destination: UploadDestination, local_path: Path, content_type: str | None = None) -> int:
        try:
            return await self.storage.copy_from_path(destination.key, local_path)
        except (OSError, StorageError) as e:
            raise TransferError(f"Could not store {destination.key}: {e}") from e

    async def register_asset(self, registration: AssetRegistration) -> str:
        try:
            uploaded = await self.storage.exists(registration.storage_key)
        except StorageError as e:
            raise RegistrationError(str(e), file_id=registration.source_file_id) from e
        if not uploaded:
            raise RegistrationError(
                f"Storage key {registration.storage_key} was never uploaded",
                file_id=registration.source_file_id,
            )

        asset = VaultAsset(
            project_id=registration.project_id,
            version_id=registration.version_id,
            import_job_id=registration.import_job_id,
            storage_key=registration.storage_key,
            file_name=registration.file_name,
            file_size=registration.file_size,
            mime_type=registration.mime_type,
            source_provider=registration.source_provider,
            source_file_id=registration.source_file_id,
            source_revision=registration.source_revision,
            source_metadata_json=json.dumps(registration.source_metadata) if registration.source_metadata else None,
            **registration.metadata.model_dump(),
        )

        async with self.session_maker() as session:
            session.add(asset)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                existing = await self.dedup.find(
                    registration.source_provider,
                    registration.source_file_id,
                    registration.source_revision,
                )
                if existing is None:
                    raise RegistrationError(
                        f"Asset rejected by the database: {e.orig}",
                        file_id=registration.source_file_id,
                    ) from e
                raise DuplicateAssetError(
                    f"Asset already registered for {registration.source_file_id}@{registration.source_revision}"
                    f" as {existing}",
                    file_id=registration.source_file_id,
                ) from e
            except SQLAlchemyError as e:
                await session.rollback()
                raise RegistrationError(str(e), file_id=registration.source_file_id) from e

        logger.info(
            "asset_registered",
            asset_id=asset.id,
            version_id=registration.version_id,
            source_file_id=registration.source_file_id,
            storage_key=registration.storage_key,
        )
        return asset.id
