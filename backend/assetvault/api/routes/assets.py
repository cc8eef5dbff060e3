"""Asset lookup endpoint used by the bridge before uploading."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from assetvault.api.deps import require_bridge_device
from assetvault.db import get_session_maker
from assetvault.db.models import BridgeDevice, SourceProvider
from assetvault.schemas.vault import AssetLookupResponse
from assetvault.services.dedup import DedupIndex

router = APIRouter(prefix="/assets", tags=["assets"])


@router.get("/lookup", response_model=AssetLookupResponse)
async def lookup_asset(
    provider: SourceProvider = Query(...),
    source_file_id: str = Query(..., min_length=1),
    revision: str = Query(..., min_length=1),
    session_maker: async_sessionmaker[AsyncSession] = Depends(get_session_maker),
    device: BridgeDevice = Depends(require_bridge_device),
) -> AssetLookupResponse:
    """Check whether a file revision is already in the vault."""
    asset_id = await DedupIndex(session_maker).find(provider, source_file_id, revision)
    return AssetLookupResponse(exists=asset_id is not None, asset_id=asset_id)
