"""Per-file import pipeline shared by Drive imports and the bridge.

dedup check -> local bytes -> metadata -> version -> upload -> register
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from assetvault.core.logging import get_logger
from assetvault.services.errors import DuplicateAssetError, MetadataExtractionError
from assetvault.services.metadata import FileMetadata, MetadataExtractor
from assetvault.services.registration import AssetRegistrar, AssetRegistration
from assetvault.services.sources import SourceEnumerator, SourceFile

logger = get_logger(__name__)


class FileOutcome(str, enum.Enum):
    """What happened to one discovered file."""

    IMPORTED = "IMPORTED"
    SKIPPED = "SKIPPED"  # Already registered
    FAILED = "FAILED"


@dataclass
class FileResult:
    source_file: SourceFile
    outcome: FileOutcome
    asset_id: str | None = None
    version_id: str | None = None
    error: str | None = None


class ImportPipeline:
    """Runs discovered files from one source into a registrar.

    By default all files of a run share one ProjectVersion, created just
    before the first new file is registered; a run that only finds
    duplicates creates no version. With ``version_per_file`` every
    imported file gets its own version, as one export is one checkpoint.
    """

    def __init__(
        self,
        source: SourceEnumerator,
        registrar: AssetRegistrar,
        project_id: str,
        extractor: MetadataExtractor | None = None,
        import_job_id: str | None = None,
        version_per_file: bool = False,
        version_description: str | None = None,
    ):
        self.source = source
        self.registrar = registrar
        self.project_id = project_id
        self.extractor = extractor or MetadataExtractor()
        self.import_job_id = import_job_id
        self.version_per_file = version_per_file
        self.version_description = version_description
        self._version_id: str | None = None

    @property
    def version_id(self) -> str | None:
        """The version shared by this run, once created."""
        return self._version_id

    async def process(self, source_file: SourceFile) -> FileResult:
        """Import one file.

        Never raises for file-level problems: they come back as a FAILED
        result so the caller can move on to the next file.
        """
        log = logger.bind(file_id=source_file.file_id, file_name=source_file.name)

        try:
            if await self.registrar.exists(source_file):
                log.debug("file_already_imported", revision=source_file.revision)
                return FileResult(source_file, FileOutcome.SKIPPED)

            async with self.source.open_local(source_file) as local_path:
                metadata = await self._extract_metadata(local_path, source_file)
                version_id = await self._version_for(source_file)
                destination = await self.registrar.get_upload_destination(source_file)
                size = await self.registrar.transfer(destination, local_path, source_file.mime_type)

                asset_id = await self.registrar.register_asset(
                    AssetRegistration(
                        project_id=self.project_id,
                        version_id=version_id,
                        import_job_id=self.import_job_id,
                        storage_key=destination.key,
                        file_name=source_file.name,
                        file_size=size if size is not None else source_file.size,
                        mime_type=source_file.mime_type,
                        source_provider=source_file.provider,
                        source_file_id=source_file.file_id,
                        source_revision=source_file.revision,
                        source_metadata=source_file.source_metadata,
                        metadata=metadata,
                    )
                )

        except DuplicateAssetError:
            # Another job registered the same revision after our dedup check
            log.info("file_registered_concurrently", revision=source_file.revision)
            return FileResult(source_file, FileOutcome.SKIPPED)
        except Exception as e:
            log.warning("file_import_failed", error=str(e), error_type=type(e).__name__, exc_info=True)
            return FileResult(source_file, FileOutcome.FAILED, error=str(e))

        log.info("file_imported", asset_id=asset_id, version_id=version_id, size=size)
        return FileResult(source_file, FileOutcome.IMPORTED, asset_id=asset_id, version_id=version_id)

    async def _extract_metadata(self, local_path: Path, source_file: SourceFile) -> FileMetadata:
        try:
            return await self.extractor.extract(local_path, source_file.mime_type)
        except MetadataExtractionError as e:
            logger.warning(
                "metadata_extraction_failed",
                file_id=source_file.file_id,
                file_name=source_file.name,
                error=str(e),
            )
            return FileMetadata()

    async def _version_for(self, source_file: SourceFile) -> str:
        if self._version_id is not None and not self.version_per_file:
            return self._version_id

        now = datetime.now(timezone.utc)
        if self.version_per_file:
            description = self.version_description or f"Auto-imported {source_file.name}"
        else:
            description = self.version_description
        version_id = await self.registrar.create_version(
            project_id=self.project_id,
            label=f"{self.source.describe()} {now:%Y-%m-%d %H:%M}",
            description=description,
            source=source_file.provider,
            import_job_id=self.import_job_id,
        )
        if not self.version_per_file:
            self._version_id = version_id
        return version_id
