"""Database models for AssetVault."""

from assetvault.db.models.bridge_device import BridgeDevice
from assetvault.db.models.drive_connection import DriveConnection, DriveSyncConfig
from assetvault.db.models.enums import (
    ConnectionStatus,
    ImportJobStatus,
    ImportSourceType,
    SourceProvider,
)
from assetvault.db.models.import_job import ImportJob
from assetvault.db.models.project import Project, ProjectVersion
from assetvault.db.models.vault_asset import VaultAsset

__all__ = [
    # Models
    "BridgeDevice",
    "DriveConnection",
    "DriveSyncConfig",
    "ImportJob",
    "Project",
    "ProjectVersion",
    "VaultAsset",
    # Enums
    "ConnectionStatus",
    "ImportJobStatus",
    "ImportSourceType",
    "SourceProvider",
]
