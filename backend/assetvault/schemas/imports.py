"""Pydantic schemas for the import job API."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from assetvault.db.models.enums import ImportJobStatus, ImportSourceType


class StartImportRequest(BaseModel):
    """Request to import a project's selected Drive folder."""

    project_id: str = Field(..., min_length=1)


class StartImportResponse(BaseModel):
    """Accepted import; poll the job for progress."""

    job_id: str
    status: ImportJobStatus = ImportJobStatus.PENDING


class ImportJobResponse(BaseModel):
    """Status and progress of an import job."""

    model_config = {"from_attributes": True}

    id: str
    project_id: str
    source_type: ImportSourceType
    source_path: str | None = None
    status: ImportJobStatus
    total_files: int = Field(
        0,
        description="Files discovered so far. The folder is listed lazily, so this only "
        "becomes the folder total once the job leaves RUNNING.",
    )
    processed_files: int = 0
    failed_files: int = 0
    progress_percent: float | None = Field(
        None,
        description="Share of discovered files already handled. While RUNNING it is relative "
        "to total_files so far, not to the whole folder.",
    )
    error_message: str | None = None
    created_at: datetime
    started_at: datetime | None = None
    finished_at: datetime | None = None


class ImportJobList(BaseModel):
    """Recent import jobs of a project."""

    items: list[ImportJobResponse]
    total: int
