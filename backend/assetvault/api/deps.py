"""Shared route dependencies."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from assetvault.core.security import hash_device_token
from assetvault.db import get_db
from assetvault.db.models import BridgeDevice
from assetvault.services.storage import LocalStorage, get_storage
from assetvault.workers.drive_import import DriveImportWorker, get_import_worker

bearer_scheme = HTTPBearer(auto_error=False)


async def require_bridge_device(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> BridgeDevice:
    """Authenticate a bridge device by its bearer token."""
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=401,
            detail="Missing bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    result = await db.execute(
        select(BridgeDevice).where(BridgeDevice.token_hash == hash_device_token(credentials.credentials))
    )
    device = result.scalar_one_or_none()
    if device is None:
        raise HTTPException(
            status_code=401,
            detail="Invalid bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    device.last_seen_at = datetime.now(timezone.utc)
    return device


def get_storage_dep() -> LocalStorage:
    return get_storage()


def get_worker_dep() -> DriveImportWorker:
    return get_import_worker()
