"""Pydantic schemas for Drive connection and folder selection."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from assetvault.db.models.enums import ConnectionStatus
from assetvault.schemas.imports import ImportJobResponse


class DriveConnectionCreate(BaseModel):
    """A token pair obtained by the OAuth flow."""

    email: str = Field(..., min_length=3, max_length=255)
    access_token: str = Field(..., min_length=1)
    refresh_token: str | None = None
    expires_at: datetime | None = None


class DriveConnectionResponse(BaseModel):
    """A stored Drive connection. Tokens are never returned."""

    model_config = {"from_attributes": True}

    id: str
    email: str
    status: ConnectionStatus
    expires_at: datetime | None = None
    last_sync_at: datetime | None = None
    created_at: datetime


class SelectFolderRequest(BaseModel):
    """Choose the Drive folder a project imports from."""

    project_id: str = Field(..., min_length=1)
    folder_id: str = Field(..., min_length=1, max_length=255)
    folder_name: str | None = Field(None, max_length=512)


class DriveSyncConfigResponse(BaseModel):
    """A project's folder selection."""

    model_config = {"from_attributes": True}

    id: str
    project_id: str
    connection_id: str
    drive_folder_id: str
    drive_folder_name: str | None = None
    enabled: bool
    last_sync_at: datetime | None = None


class DriveStatusResponse(BaseModel):
    """Drive setup of a project as shown to the user."""

    connected: bool
    email: str | None = None
    folder_id: str | None = None
    folder_name: str | None = None
    last_sync_at: datetime | None = None
    latest_job: ImportJobResponse | None = None
