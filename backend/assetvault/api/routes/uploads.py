"""Signed upload endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from assetvault.api.deps import get_storage_dep, require_bridge_device
from assetvault.core.logging import get_logger
from assetvault.db.models import BridgeDevice
from assetvault.schemas.vault import SignUploadRequest, SignUploadResponse, UploadResult
from assetvault.services.registration import key_prefix_for
from assetvault.services.sources import revision_digest
from assetvault.services.storage import (
    InvalidSignatureError,
    InvalidStorageKeyError,
    LocalStorage,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/uploads", tags=["uploads"])


@router.post("/sign", response_model=SignUploadResponse)
async def sign_upload(
    request: SignUploadRequest,
    storage: LocalStorage = Depends(get_storage_dep),
    device: BridgeDevice = Depends(require_bridge_device),
) -> SignUploadResponse:
    """Get a short-lived URL to PUT one file's bytes to."""
    key = LocalStorage.build_key(
        key_prefix_for(request.source_provider),
        request.source_file_id,
        revision_digest(request.source_revision),
        request.file_name,
    )
    destination = storage.create_upload_destination(key)
    logger.debug("upload_signed", key=key, device_id=device.id)
    return SignUploadResponse(url=destination.url, key=destination.key, expires_at=destination.expires_at)


@router.put("/{key:path}", response_model=UploadResult)
async def put_upload(
    key: str,
    request: Request,
    expires: int = Query(...),
    signature: str = Query(..., min_length=1),
    storage: LocalStorage = Depends(get_storage_dep),
) -> UploadResult:
    """Receive an object's bytes. The body is streamed to storage."""
    try:
        storage.verify_upload(key, expires, signature)
        size = await storage.write_stream(key, request.stream())
    except InvalidSignatureError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except InvalidStorageKeyError as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info("upload_received", key=key, size=size)
    return UploadResult(key=key, size=size)
