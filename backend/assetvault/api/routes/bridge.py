"""Bridge device registration and status endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from assetvault.api.deps import require_bridge_device
from assetvault.core.logging import get_logger
from assetvault.core.security import generate_device_token, hash_device_token
from assetvault.db import get_db
from assetvault.db.models import BridgeDevice
from assetvault.schemas.bridge import BridgeDeviceCreate, BridgeDeviceCreated, BridgeStatusResponse

logger = get_logger(__name__)

router = APIRouter(prefix="/bridge", tags=["bridge"])


@router.post("/devices", response_model=BridgeDeviceCreated, status_code=status.HTTP_201_CREATED)
async def create_device(
    request: BridgeDeviceCreate,
    db: AsyncSession = Depends(get_db),
) -> BridgeDeviceCreated:
    """Register a bridge device and return its token (shown once)."""
    token = generate_device_token()
    device = BridgeDevice(name=request.name, token_hash=hash_device_token(token))
    db.add(device)
    await db.flush()

    logger.info("bridge_device_created", device_id=device.id, name=request.name)
    return BridgeDeviceCreated(id=device.id, name=device.name, token=token)


@router.get("/status", response_model=BridgeStatusResponse)
async def bridge_status(
    device: BridgeDevice = Depends(require_bridge_device),
) -> BridgeStatusResponse:
    """Check the calling device's token and last import."""
    return BridgeStatusResponse.model_validate(device)
