"""Pydantic schemas for projects, versions, uploads and assets."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from assetvault.db.models.enums import SourceProvider


class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)


class ProjectResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: str
    name: str
    created_at: datetime


class VersionCreate(BaseModel):
    """A checkpoint for one export or upload batch."""

    label: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    source: SourceProvider = SourceProvider.MANUAL


class VersionResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: str
    project_id: str
    label: str
    description: str | None = None
    source: SourceProvider
    created_at: datetime


class SignUploadRequest(BaseModel):
    """Ask for a signed URL to PUT one file's bytes to."""

    file_name: str = Field(..., min_length=1, max_length=512)
    content_type: str | None = None
    source_provider: SourceProvider = SourceProvider.LOCAL_EXPORT
    source_file_id: str = Field(..., min_length=1, max_length=1024)
    source_revision: str = Field(..., min_length=1, max_length=255)


class SignUploadResponse(BaseModel):
    url: str
    key: str
    expires_at: datetime


class UploadResult(BaseModel):
    key: str
    size: int


class AssetCreate(BaseModel):
    """Register an uploaded object as an asset of a version."""

    storage_key: str = Field(..., min_length=1, max_length=1024)
    file_name: str = Field(..., min_length=1, max_length=512)
    file_size: int | None = Field(None, ge=0)
    mime_type: str | None = None
    source_provider: SourceProvider
    source_file_id: str = Field(..., min_length=1, max_length=1024)
    source_revision: str = Field(..., min_length=1, max_length=255)
    source_metadata: dict[str, Any] = Field(default_factory=dict)

    # Audio metadata
    duration: float | None = None
    sample_rate: int | None = None
    bit_rate: int | None = None
    channels: int | None = None
    audio_format: str | None = None


class AssetCreated(BaseModel):
    id: str


class AssetLookupResponse(BaseModel):
    exists: bool
    asset_id: str | None = None
