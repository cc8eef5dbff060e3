"""Background workers for AssetVault."""

from assetvault.workers.drive_import import DriveImportWorker, get_import_worker
from assetvault.workers.drive_sync import DriveSyncScheduler, get_drive_sync_scheduler

__all__ = [
    "DriveImportWorker",
    "DriveSyncScheduler",
    "get_drive_sync_scheduler",
    "get_import_worker",
]
