"""Pydantic schemas for bridge devices."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class BridgeDeviceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)


class BridgeDeviceCreated(BaseModel):
    """A new device. The token is only ever returned here."""

    id: str
    name: str
    token: str


class BridgeStatusResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: str
    name: str
    last_seen_at: datetime | None = None
    last_import_at: datetime | None = None
