"""Tests for LocalStorage."""

from __future__ import annotations

import hashlib
import os
from urllib.parse import parse_qs, urlparse

import pytest

from assetvault.db.models import SourceProvider, VaultAsset
from assetvault.services.folder_watcher import FolderWatcher
from assetvault.services.metadata import MetadataExtractor
from assetvault.services.pipeline import FileOutcome, ImportPipeline
from assetvault.services.registration import DatabaseRegistrar
from assetvault.services.storage import (
    InvalidSignatureError,
    InvalidStorageKeyError,
    LocalStorage,
)


async def _chunks(*parts: bytes):
    for part in parts:
        yield part


class TestBuildKey:
    """Tests for storage key construction."""

    def test_key_embeds_file_id_and_revision(self):
        key = LocalStorage.build_key("imports/drive", "1AbC", "0123456789ab", "Mix v2.wav")
        id_digest = hashlib.sha256(b"1AbC").hexdigest()[:8]
        assert key == f"imports/drive/1AbC_{id_digest}_0123456789ab_Mix_v2.wav"

    def test_different_revisions_get_different_keys(self):
        a = LocalStorage.build_key("imports/drive", "f1", "aaaaaaaaaaaa", "mix.wav")
        b = LocalStorage.build_key("imports/drive", "f1", "bbbbbbbbbbbb", "mix.wav")
        assert a != b

    def test_path_separators_are_flattened(self):
        key = LocalStorage.build_key("imports/local", "stems/../kick.wav", "abc", "kick.wav")
        assert key.startswith("imports/local/stems_.._kick.wav_")
        assert key.endswith("_abc_kick.wav")
        assert key.count("/") == 2

    def test_ids_that_sanitize_alike_get_different_keys(self):
        a = LocalStorage.build_key("imports/local", "a b/c.wav", "f0f54c674ef2", "c.wav")
        b = LocalStorage.build_key("imports/local", "a_b/c.wav", "f0f54c674ef2", "c.wav")
        assert a != b

    def test_long_ids_sharing_a_prefix_get_different_keys(self):
        prefix = "x" * 200
        a = LocalStorage.build_key("imports/drive", prefix + "1", "abc", "mix.wav")
        b = LocalStorage.build_key("imports/drive", prefix + "2", "abc", "mix.wav")
        assert a != b


class TestPathFor:
    """Tests for key resolution."""

    def test_rejects_traversal(self, storage):
        with pytest.raises(InvalidStorageKeyError):
            storage.path_for("../outside.wav")

    def test_rejects_absolute(self, storage):
        with pytest.raises(InvalidStorageKeyError):
            storage.path_for("/etc/passwd")

    def test_resolves_inside_root(self, storage):
        path = storage.path_for("imports/local/a.wav")
        assert path.name == "a.wav"
        assert storage.root.resolve() in path.parents


class TestWriteStream:
    """Tests for streaming writes."""

    @pytest.mark.asyncio
    async def test_write_stream(self, storage):
        size = await storage.write_stream("imports/local/a.wav", _chunks(b"RIFF", b"data"))
        assert size == 8
        assert await storage.exists("imports/local/a.wav")
        assert storage.path_for("imports/local/a.wav").read_bytes() == b"RIFFdata"

    @pytest.mark.asyncio
    async def test_failed_stream_leaves_nothing(self, storage):
        async def broken():
            yield b"partial"
            raise OSError("connection reset")

        with pytest.raises(OSError):
            await storage.write_stream("imports/local/b.wav", broken())

        path = storage.path_for("imports/local/b.wav")
        assert not path.exists()
        assert not path.with_name("b.wav.part").exists()

    @pytest.mark.asyncio
    async def test_copy_from_path(self, storage, tmp_path):
        source = tmp_path / "src.wav"
        source.write_bytes(b"x" * 10_000)
        size = await storage.copy_from_path("imports/local/src.wav", source, chunk_size=4096)
        assert size == 10_000
        assert await storage.size("imports/local/src.wav") == 10_000


class TestSignedUploads:
    """Tests for upload destinations."""

    def test_destination_url_verifies(self, storage):
        destination = storage.create_upload_destination("imports/local/a.wav")
        url = urlparse(destination.url)
        assert url.path == "/api/v1/uploads/imports/local/a.wav"

        query = parse_qs(url.query)
        storage.verify_upload("imports/local/a.wav", int(query["expires"][0]), query["signature"][0])

    def test_tampered_signature(self, storage):
        destination = storage.create_upload_destination("imports/local/a.wav")
        query = parse_qs(urlparse(destination.url).query)
        with pytest.raises(InvalidSignatureError):
            storage.verify_upload("imports/local/a.wav", int(query["expires"][0]), "0" * 64)


class TestKeyIsolation:
    """Objects of distinct source files never overwrite each other."""

    @pytest.mark.asyncio
    async def test_export_paths_that_sanitize_alike(self, tmp_path, session_maker, project, storage):
        exports = tmp_path / "exports"
        first = exports / "a b" / "c.wav"
        second = exports / "a_b" / "c.wav"
        for path, content in ((first, b"FIRST"), (second, b"SECOND")):
            path.parent.mkdir(parents=True)
            path.write_bytes(content)
            os.utime(path, (1_700_000_000, 1_700_000_000))

        watcher = FolderWatcher(exports, provider=SourceProvider.LOCAL_EXPORT)
        pipeline = ImportPipeline(
            watcher,
            DatabaseRegistrar(session_maker, storage),
            project.id,
            extractor=MetadataExtractor(),
        )

        results = [await pipeline.process(watcher.source_file_for(p)) for p in (first, second)]
        assert [r.outcome for r in results] == [FileOutcome.IMPORTED, FileOutcome.IMPORTED]

        async with session_maker() as session:
            assets = [await session.get(VaultAsset, r.asset_id) for r in results]

        assert assets[0].storage_key != assets[1].storage_key
        assert storage.path_for(assets[0].storage_key).read_bytes() == b"FIRST"
        assert storage.path_for(assets[1].storage_key).read_bytes() == b"SECOND"
