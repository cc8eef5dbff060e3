"""Dedup index over registered assets."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from assetvault.db.models import SourceProvider, VaultAsset


class DedupIndex:
    """Answers whether a (provider, file id, revision) was already imported.

    Every call opens its own session and queries the database; nothing is
    cached, so assets registered by another job are seen immediately.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker

    async def find(
        self,
        provider: SourceProvider,
        source_file_id: str,
        revision: str,
    ) -> str | None:
        """Get the id of the asset registered for this identity, if any."""
        async with self.session_maker() as session:
            result = await session.execute(
                select(VaultAsset.id)
                .where(VaultAsset.source_provider == provider)
                .where(VaultAsset.source_file_id == source_file_id)
                .where(VaultAsset.source_revision == revision)
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def exists(
        self,
        provider: SourceProvider,
        source_file_id: str,
        revision: str,
    ) -> bool:
        return await self.find(provider, source_file_id, revision) is not None
