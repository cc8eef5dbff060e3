"""Object storage for asset bytes.

Objects live under ``settings.storage_path`` and are addressed by key.
Uploads from remote clients go through short-lived signed URLs; the
server-side pipeline writes directly.
"""

from __future__ import annotations

import hashlib
import re
import time
from collections.abc import AsyncIterable
from datetime import datetime, timezone
from pathlib import Path
from urllib.parse import quote, urlencode

import aiofiles
import aiofiles.os
from pydantic import BaseModel

from assetvault.core.config import settings
from assetvault.core.logging import get_logger
from assetvault.core.security import sign_upload, verify_upload_signature

logger = get_logger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]+")
MAX_KEY_PART_LENGTH = 128
ID_DIGEST_LENGTH = 8


class StorageError(Exception):
    """Base exception for storage errors."""

    pass


class InvalidStorageKeyError(StorageError):
    """Raised when a key would resolve outside the storage root."""

    pass


class InvalidSignatureError(StorageError):
    """Raised when an upload signature is wrong or expired."""

    pass


class UploadDestination(BaseModel):
    """Where to put one object's bytes."""

    key: str
    url: str
    expires_at: datetime


def _safe_part(value: str) -> str:
    return _UNSAFE_KEY_CHARS.sub("_", value).strip("._")[:MAX_KEY_PART_LENGTH] or "file"


def _id_digest(source_file_id: str) -> str:
    return hashlib.sha256(source_file_id.encode("utf-8")).hexdigest()[:ID_DIGEST_LENGTH]


class LocalStorage:
    """Filesystem-backed object store."""

    def __init__(self, root: Path | None = None, base_url: str | None = None):
        self.root = root or settings.storage_path
        self.base_url = (base_url or settings.public_base_url).rstrip("/")

    @staticmethod
    def build_key(prefix: str, source_file_id: str, revision_digest: str, file_name: str) -> str:
        """Build a storage key unique to one revision of one source file.

        The sanitized id is only for readability; ids that sanitize or
        truncate to the same text are told apart by a digest of the raw id.
        The revision digest keeps a new revision from overwriting the
        object of an older one.
        """
        return (
            f"{prefix}/{_safe_part(source_file_id)}_{_id_digest(source_file_id)}"
            f"_{revision_digest}_{_safe_part(file_name)}"
        )

    def path_for(self, key: str) -> Path:
        """Resolve a key to a path inside the storage root.

        Raises:
            InvalidStorageKeyError: If the key is empty or escapes the root.
        """
        if not key or key.startswith("/") or "\\" in key:
            raise InvalidStorageKeyError(f"Invalid storage key: {key!r}")
        root = self.root.resolve()
        path = (root / key).resolve()
        if path == root or root not in path.parents:
            raise InvalidStorageKeyError(f"Invalid storage key: {key!r}")
        return path

    def create_upload_destination(self, key: str, ttl_seconds: int | None = None) -> UploadDestination:
        """Create a signed URL that accepts a PUT of ``key`` until it expires."""
        self.path_for(key)
        expires = int(time.time()) + (ttl_seconds or settings.upload_url_ttl_seconds)
        query = urlencode({"expires": expires, "signature": sign_upload(key, expires)})
        url = f"{self.base_url}/api/v1/uploads/{quote(key, safe='/')}?{query}"
        return UploadDestination(
            key=key,
            url=url,
            expires_at=datetime.fromtimestamp(expires, tz=timezone.utc),
        )

    def verify_upload(self, key: str, expires: int, signature: str) -> None:
        """Check a signed upload request.

        Raises:
            InvalidSignatureError: If the signature does not match or expired.
        """
        if not verify_upload_signature(key, expires, signature):
            raise InvalidSignatureError("Upload signature is invalid or expired")

    async def write_stream(self, key: str, chunks: AsyncIterable[bytes]) -> int:
        """Write an object from an async stream of chunks.

        Bytes go to a ``.part`` file that is renamed into place once
        complete, so a failed transfer never leaves a partial object.

        Returns:
            Number of bytes written.
        """
        path = self.path_for(key)
        await aiofiles.os.makedirs(path.parent, exist_ok=True)
        part_path = path.with_name(f"{path.name}.part")

        size = 0
        try:
            async with aiofiles.open(part_path, "wb") as f:
                async for chunk in chunks:
                    if chunk:
                        await f.write(chunk)
                        size += len(chunk)
            await aiofiles.os.replace(part_path, path)
        except BaseException:
            if await aiofiles.os.path.exists(part_path):
                await aiofiles.os.remove(part_path)
            raise

        logger.debug("object_written", key=key, size=size)
        return size

    async def copy_from_path(self, key: str, source: Path, chunk_size: int | None = None) -> int:
        """Stream a local file into the store."""
        return await self.write_stream(key, read_chunks(source, chunk_size))

    async def exists(self, key: str) -> bool:
        return await aiofiles.os.path.isfile(self.path_for(key))

    async def size(self, key: str) -> int:
        stat = await aiofiles.os.stat(self.path_for(key))
        return stat.st_size

    async def delete(self, key: str) -> None:
        path = self.path_for(key)
        if await aiofiles.os.path.exists(path):
            await aiofiles.os.remove(path)


async def read_chunks(path: Path, chunk_size: int | None = None):
    """Read a file as an async stream of chunks."""
    chunk_size = chunk_size or settings.transfer_chunk_size
    async with aiofiles.open(path, "rb") as f:
        while chunk := await f.read(chunk_size):
            yield chunk


_storage: LocalStorage | None = None


def get_storage() -> LocalStorage:
    """Get or create the global storage instance."""
    global _storage
    if _storage is None:
        _storage = LocalStorage()
    return _storage
