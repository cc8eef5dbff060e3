"""Enum types for database models."""

from __future__ import annotations

import enum


class ImportJobStatus(str, enum.Enum):
    """Lifecycle of an import run.

    PENDING -> RUNNING -> COMPLETED | FAILED. Terminal states are final.
    """

    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (ImportJobStatus.COMPLETED, ImportJobStatus.FAILED)


class ImportSourceType(str, enum.Enum):
    """Where an import run reads its files from."""

    GOOGLE_DRIVE = "GOOGLE_DRIVE"  # Remote folder listing
    LOCAL_FOLDER = "LOCAL_FOLDER"  # Watched local folder


class SourceProvider(str, enum.Enum):
    """Provenance of an asset; first part of the dedup key."""

    GOOGLE_DRIVE = "GOOGLE_DRIVE"  # Imported through the Drive API
    LOCAL_EXPORT = "LOCAL_EXPORT"  # Bridge watching a local export folder
    DRIVE_DESKTOP = "DRIVE_DESKTOP"  # Bridge watching a Drive for desktop folder
    MANUAL = "MANUAL"  # Direct upload


class ConnectionStatus(str, enum.Enum):
    """Status of a connected storage account."""

    ACTIVE = "ACTIVE"
    REVOKED = "REVOKED"
    ERROR = "ERROR"
