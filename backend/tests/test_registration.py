"""Tests for DatabaseRegistrar."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from assetvault.db.models import ProjectVersion, SourceProvider
from assetvault.services.errors import DuplicateAssetError, RegistrationError
from assetvault.services.registration import AssetRegistration, DatabaseRegistrar


async def _chunks(*parts: bytes):
    for part in parts:
        yield part


@pytest.fixture
def registrar(session_maker, storage) -> DatabaseRegistrar:
    return DatabaseRegistrar(session_maker, storage)


@pytest.fixture
async def registration(session_maker, storage, project) -> AssetRegistration:
    """A registration whose object is already uploaded."""
    async with session_maker() as session:
        version = ProjectVersion(project_id=project.id, label="Drive Import 2026-10-19 10:00")
        session.add(version)
        await session.commit()

    key = "imports/drive/f1_abcd1234_rev_kick.wav"
    await storage.write_stream(key, _chunks(b"RIFF"))
    return AssetRegistration(
        project_id=project.id,
        version_id=version.id,
        storage_key=key,
        file_name="kick.wav",
        file_size=4,
        source_provider=SourceProvider.GOOGLE_DRIVE,
        source_file_id="f1",
        source_revision="md5-1",
    )


class TestRegisterAsset:
    """Tests for DatabaseRegistrar.register_asset."""

    @pytest.mark.asyncio
    async def test_registers_once(self, registrar, registration):
        asset_id = await registrar.register_asset(registration)

        with pytest.raises(DuplicateAssetError, match=asset_id):
            await registrar.register_asset(registration)

    @pytest.mark.asyncio
    async def test_other_constraint_violation_is_not_a_duplicate(self, registrar, registration):
        violation = IntegrityError(
            "INSERT INTO vault_assets", {}, Exception("NOT NULL constraint failed: vault_assets.file_name")
        )
        with patch.object(AsyncSession, "commit", side_effect=violation):
            with pytest.raises(RegistrationError) as exc_info:
                await registrar.register_asset(registration)

        assert not isinstance(exc_info.value, DuplicateAssetError)
        assert "NOT NULL" in str(exc_info.value)
        assert not await registrar.dedup.exists(
            SourceProvider.GOOGLE_DRIVE, "f1", "md5-1"
        )

    @pytest.mark.asyncio
    async def test_never_uploaded(self, registrar, registration):
        registration.storage_key = "imports/drive/missing.wav"
        with pytest.raises(RegistrationError, match="never uploaded"):
            await registrar.register_asset(registration)
