"""Import pipeline services for AssetVault."""

from assetvault.services.credentials import AccessCredentials, ConnectionCredentialProvider
from assetvault.services.dedup import DedupIndex
from assetvault.services.drive_import import (
    DriveImportService,
    DriveNotConnectedError,
    NoFolderSelectedError,
    ProjectNotFoundError,
)
from assetvault.services.errors import (
    ConfigurationError,
    DuplicateAssetError,
    EnumerationError,
    ImportPipelineError,
    MetadataExtractionError,
    PerFileError,
    RegistrationError,
    TransferError,
)
from assetvault.services.folder_watcher import FolderWatcher
from assetvault.services.google_drive import DriveClient, DriveFolderLister, GoogleDriveError
from assetvault.services.job_tracker import ImportJobTracker, InvalidJobTransitionError
from assetvault.services.metadata import FileMetadata, MetadataExtractor
from assetvault.services.pipeline import FileOutcome, FileResult, ImportPipeline
from assetvault.services.registration import AssetRegistrar, AssetRegistration, DatabaseRegistrar
from assetvault.services.sources import SourceEnumerator, SourceFile
from assetvault.services.storage import LocalStorage, StorageError, get_storage

__all__ = [
    # Sources
    "DriveClient",
    "DriveFolderLister",
    "FolderWatcher",
    "SourceEnumerator",
    "SourceFile",
    # Pipeline
    "AssetRegistrar",
    "AssetRegistration",
    "DatabaseRegistrar",
    "DedupIndex",
    "FileMetadata",
    "FileOutcome",
    "FileResult",
    "ImportJobTracker",
    "ImportPipeline",
    "LocalStorage",
    "MetadataExtractor",
    "get_storage",
    # Orchestration
    "AccessCredentials",
    "ConnectionCredentialProvider",
    "DriveImportService",
    # Errors
    "ConfigurationError",
    "DriveNotConnectedError",
    "DuplicateAssetError",
    "EnumerationError",
    "GoogleDriveError",
    "ImportPipelineError",
    "InvalidJobTransitionError",
    "MetadataExtractionError",
    "NoFolderSelectedError",
    "PerFileError",
    "ProjectNotFoundError",
    "RegistrationError",
    "StorageError",
    "TransferError",
]
