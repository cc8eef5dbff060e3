"""Exceptions raised by the import pipeline.

ConfigurationError and EnumerationError fail a whole import job.
PerFileError and its subclasses are scoped to one file: the pipeline
catches them at the file boundary and counts them as failed files.
"""

from __future__ import annotations


class ImportPipelineError(Exception):
    """Base exception for import pipeline errors."""

    pass


class ConfigurationError(ImportPipelineError):
    """Missing or invalid credential, folder selection or watch path."""

    pass


class EnumerationError(ImportPipelineError):
    """The source listing could not be read."""

    pass


class PerFileError(ImportPipelineError):
    """A failure scoped to a single file."""

    def __init__(self, message: str, file_id: str | None = None):
        super().__init__(message)
        self.file_id = file_id


class MetadataExtractionError(PerFileError):
    """Structural metadata could not be read from the file."""

    pass


class TransferError(PerFileError):
    """Bytes could not be fetched from the source or written to storage."""

    pass


class RegistrationError(PerFileError):
    """The asset record (or its version) could not be created."""

    pass


class DuplicateAssetError(RegistrationError):
    """An asset with the same source identity was registered concurrently."""

    pass
