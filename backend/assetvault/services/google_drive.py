"""Google Drive integration for remote folder imports.

Provides:
- Paced, retrying access to the Drive v3 API with a decrypted OAuth token
- Folder info and paged folder listings
- Chunked file downloads to a local staging path
- DriveFolderLister, the remote SourceEnumerator
"""

from __future__ import annotations

import asyncio
import random
import re
from collections import deque
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

from google.oauth2.credentials import Credentials as OAuthCredentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseDownload
from pydantic import BaseModel

from assetvault.core.config import settings
from assetvault.core.file_types import is_allowed_file
from assetvault.core.logging import get_logger
from assetvault.db.models import SourceProvider
from assetvault.services.credentials import AccessCredentials
from assetvault.services.errors import EnumerationError, TransferError
from assetvault.services.sources import SourceEnumerator, SourceFile

# Rate limiting configuration
RATE_LIMIT_MAX_RETRIES = 5
RATE_LIMIT_BASE_DELAY = 2.0  # seconds
RATE_LIMIT_MAX_DELAY = 300.0  # 5 minutes
RATE_LIMIT_JITTER = 0.3  # 30% jitter

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"

LIST_FIELDS = "nextPageToken, files(id, name, mimeType, size, modifiedTime, md5Checksum, parents)"

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")

logger = get_logger(__name__)


class RequestPacer:
    """Spaces out Drive API calls.

    Every call waits at least ``min_delay`` after the previous one, and no
    more than ``requests_per_minute`` calls start in any 60 second window.
    """

    WINDOW_SECONDS = 60.0

    def __init__(self, min_delay: float = 0.5, requests_per_minute: int = 60):
        self.min_delay = min_delay
        self.requests_per_minute = requests_per_minute
        self._started: deque[float] = deque()
        self._lock = asyncio.Lock()

    @property
    def calls_in_window(self) -> int:
        return len(self._started)

    async def acquire(self) -> None:
        async with self._lock:
            loop = asyncio.get_running_loop()
            now = loop.time()
            while self._started and now - self._started[0] >= self.WINDOW_SECONDS:
                self._started.popleft()

            wait = 0.0
            if len(self._started) >= self.requests_per_minute:
                wait = self.WINDOW_SECONDS - (now - self._started[0])
            if self._started and self.min_delay > 0:
                wait = max(wait, self.min_delay - (now - self._started[-1]))

            if wait > 0:
                logger.debug("drive_request_paced", wait_seconds=round(wait, 2))
                await asyncio.sleep(wait)

            self._started.append(loop.time())


_pacer: RequestPacer | None = None


def get_request_pacer() -> RequestPacer:
    """Pacer shared by every DriveClient in the process."""
    global _pacer
    if _pacer is None:
        _pacer = RequestPacer(settings.google_request_delay, settings.google_requests_per_minute)
    return _pacer


class GoogleDriveError(Exception):
    """A Drive API call failed."""

    def __init__(self, message: str, resource_id: str | None = None):
        super().__init__(message)
        self.resource_id = resource_id


class GoogleAuthError(GoogleDriveError):
    """The access token was rejected (401)."""


class GoogleAccessDeniedError(GoogleDriveError):
    """The account may not read the file or folder (403)."""


class GoogleNotFoundError(GoogleDriveError):
    """No such file or folder, or it is not shared with the account (404)."""


class GoogleRateLimitError(GoogleDriveError):
    """Still rate limited after every retry."""


def _backoff_delay(attempt: int) -> float:
    delay = min(RATE_LIMIT_BASE_DELAY * (2 ** attempt), RATE_LIMIT_MAX_DELAY)
    jitter = delay * RATE_LIMIT_JITTER * (2 * random.random() - 1)
    return delay + jitter


def _parse_drive_time(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class FolderInfo(BaseModel):
    """Information about a Google Drive folder."""

    id: str
    name: str


class FileInfo(BaseModel):
    """Information about a Google Drive file."""

    id: str
    name: str
    mime_type: str
    size: int = 0
    modified_time: datetime | None = None
    modified_time_raw: str | None = None
    md5_checksum: str | None = None
    parent_id: str | None = None
    is_folder: bool = False

    @property
    def revision(self) -> str | None:
        """Content checksum when Drive has one, otherwise the modification time.

        Native Google Docs have no md5Checksum, so their revision is only as
        precise as modifiedTime.
        """
        return self.md5_checksum or self.modified_time_raw


class DriveClient:
    """Thin async wrapper around the Drive v3 API for one account."""

    def __init__(self, credentials: AccessCredentials):
        self.credentials = credentials
        self._service: Any = None

    async def _get_drive_service(self):
        """Get a Drive API service instance for the access token."""
        if self._service is None:
            creds = OAuthCredentials(
                token=self.credentials.access_token,
                refresh_token=self.credentials.refresh_token,
                token_uri=GOOGLE_TOKEN_URI,
                client_id=settings.google_client_id,
                client_secret=settings.google_client_secret,
            )
            self._service = await asyncio.to_thread(
                build, "drive", "v3", credentials=creds, cache_discovery=False
            )
        return self._service

    async def _execute(
        self,
        make_request: Callable[[Any], Any],
        operation: str,
        resource_id: str,
    ) -> dict[str, Any]:
        """Execute a request with pacing and 429 backoff.

        Args:
            make_request: Builds the request object from the service.
            operation: Operation name for logging.
            resource_id: File or folder ID for errors and logging.

        Raises:
            GoogleNotFoundError: On 404.
            GoogleAuthError: On 401.
            GoogleAccessDeniedError: On 403.
            GoogleRateLimitError: If rate limited after max retries.
            GoogleDriveError: On any other API error.
        """
        service = await self._get_drive_service()

        for attempt in range(RATE_LIMIT_MAX_RETRIES + 1):
            try:
                await get_request_pacer().acquire()
                request = make_request(service)
                return await asyncio.to_thread(request.execute)

            except HttpError as e:
                status = e.resp.status
                if status == 404:
                    raise GoogleNotFoundError(f"{resource_id} not found", resource_id) from e
                if status == 401:
                    raise GoogleAuthError("Access token rejected by Google", resource_id) from e
                if status == 403 and "rate" not in str(e).lower():
                    raise GoogleAccessDeniedError(f"Access denied to {resource_id}", resource_id) from e
                if status in (403, 429):
                    if attempt >= RATE_LIMIT_MAX_RETRIES:
                        raise GoogleRateLimitError(
                            f"Rate limit exceeded after {attempt + 1} attempts",
                            resource_id,
                        ) from e

                    delay = _backoff_delay(attempt)
                    logger.warning(
                        "rate_limit_retry",
                        operation=operation,
                        resource_id=resource_id,
                        attempt=attempt + 1,
                        delay_seconds=round(delay, 1),
                    )
                    await asyncio.sleep(delay)
                    continue
                raise GoogleDriveError(f"Google API error: {e}", resource_id) from e

        raise GoogleRateLimitError("Rate limit handling exhausted", resource_id)

    async def get_folder_info(self, folder_id: str) -> FolderInfo:
        """Get information about a folder.

        Raises:
            GoogleDriveError: If the ID does not refer to a folder.
        """
        file = await self._execute(
            lambda service: service.files().get(
                fileId=folder_id,
                fields="id, name, mimeType",
                supportsAllDrives=True,
            ),
            operation="get_folder_info",
            resource_id=folder_id,
        )
        if file.get("mimeType") != FOLDER_MIME_TYPE:
            raise GoogleDriveError(f"ID {folder_id} is not a folder", folder_id)
        return FolderInfo(id=file["id"], name=file["name"])

    async def list_folder(
        self,
        folder_id: str,
        page_token: str | None = None,
        page_size: int | None = None,
    ) -> tuple[list[FileInfo], str | None]:
        """List the direct children of a folder, one page at a time.

        Returns:
            Tuple of (list of FileInfo, next_page_token or None).
        """
        result = await self._execute(
            lambda service: service.files().list(
                q=f"'{folder_id}' in parents and trashed = false",
                fields=LIST_FIELDS,
                pageToken=page_token,
                pageSize=page_size or settings.drive_page_size,
                supportsAllDrives=True,
                includeItemsFromAllDrives=True,
                orderBy="name",
            ),
            operation="list_folder",
            resource_id=folder_id,
        )

        files = []
        for f in result.get("files", []):
            files.append(FileInfo(
                id=f["id"],
                name=f["name"],
                mime_type=f["mimeType"],
                size=int(f.get("size", 0)),
                modified_time=_parse_drive_time(f.get("modifiedTime")),
                modified_time_raw=f.get("modifiedTime"),
                md5_checksum=f.get("md5Checksum"),
                parent_id=f["parents"][0] if f.get("parents") else None,
                is_folder=f["mimeType"] == FOLDER_MIME_TYPE,
            ))

        return files, result.get("nextPageToken")

    async def download_to(self, file_id: str, dest_path: Path) -> int:
        """Stream a file's content to ``dest_path`` in chunks.

        Returns:
            Number of bytes written.
        """
        service = await self._get_drive_service()
        dest_path.parent.mkdir(parents=True, exist_ok=True)

        for attempt in range(RATE_LIMIT_MAX_RETRIES + 1):
            try:
                await get_request_pacer().acquire()
                request = service.files().get_media(fileId=file_id, supportsAllDrives=True)
                size = await asyncio.to_thread(self._download_blocking, request, dest_path)
                logger.debug("file_downloaded", file_id=file_id, size=size, dest=str(dest_path))
                return size

            except HttpError as e:
                dest_path.unlink(missing_ok=True)
                status = e.resp.status
                if status == 404:
                    raise GoogleNotFoundError(f"File {file_id} not found", file_id) from e
                if status in (401, 403) and status != 429:
                    raise GoogleAccessDeniedError(f"Access denied to file {file_id}", file_id) from e
                if status == 429 and attempt < RATE_LIMIT_MAX_RETRIES:
                    delay = _backoff_delay(attempt)
                    logger.warning(
                        "rate_limit_retry",
                        operation="download_file",
                        resource_id=file_id,
                        attempt=attempt + 1,
                        delay_seconds=round(delay, 1),
                    )
                    await asyncio.sleep(delay)
                    continue
                raise GoogleDriveError(f"Download failed: {e}", file_id) from e

        raise GoogleRateLimitError("Rate limit handling exhausted", file_id)

    @staticmethod
    def _download_blocking(request: Any, dest_path: Path) -> int:
        with open(dest_path, "wb") as f:
            downloader = MediaIoBaseDownload(f, request, chunksize=settings.transfer_chunk_size)
            done = False
            while not done:
                _, done = downloader.next_chunk()
        return dest_path.stat().st_size


class DriveFolderLister(SourceEnumerator):
    """Remote lister: the accepted direct children of one Drive folder.

    The sequence is lazy and not restartable; pages are fetched as the
    consumer advances, so a failing page surfaces after earlier files
    were already yielded.
    """

    provider = SourceProvider.GOOGLE_DRIVE

    def __init__(
        self,
        client: DriveClient,
        folder_id: str,
        folder_name: str | None = None,
        staging_dir: Path | None = None,
    ):
        self.client = client
        self.folder_id = folder_id
        self.folder_name = folder_name
        self.staging_dir = staging_dir or settings.staging_path / "drive"

    def describe(self) -> str:
        return "Drive Import"

    async def iter_files(self) -> AsyncIterator[SourceFile]:
        page_token: str | None = None
        pages = 0
        while True:
            try:
                files, page_token = await self.client.list_folder(self.folder_id, page_token)
            except GoogleDriveError as e:
                logger.error(
                    "drive_listing_failed",
                    folder_id=self.folder_id,
                    pages_read=pages,
                    error=str(e),
                )
                raise EnumerationError(f"Could not list Drive folder {self.folder_id}: {e}") from e
            pages += 1

            for info in files:
                if info.is_folder:
                    continue
                if not is_allowed_file(info.name, info.mime_type):
                    logger.debug(
                        "drive_file_filtered",
                        file_id=info.id,
                        name=info.name,
                        mime_type=info.mime_type,
                    )
                    continue
                yield self._to_source_file(info)

            if not page_token:
                break

        logger.info("drive_listing_complete", folder_id=self.folder_id, pages=pages)

    def _to_source_file(self, info: FileInfo) -> SourceFile:
        # Files without checksum or modifiedTime fall back to the file id;
        # every later change then looks like the same revision.
        revision = info.revision or info.id
        return SourceFile(
            provider=self.provider,
            file_id=info.id,
            name=info.name,
            revision=revision,
            mime_type=info.mime_type,
            size=info.size,
            source_metadata={
                "driveFileId": info.id,
                "driveFolderId": self.folder_id,
                "modifiedTime": info.modified_time_raw,
                "md5Checksum": info.md5_checksum,
            },
        )

    @asynccontextmanager
    async def open_local(self, source_file: SourceFile) -> AsyncIterator[Path]:
        safe_name = _UNSAFE_NAME_CHARS.sub("_", source_file.name)
        dest = self.staging_dir / f"{source_file.file_id}_{source_file.revision_digest}_{safe_name}"
        try:
            try:
                await self.client.download_to(source_file.file_id, dest)
            except GoogleDriveError as e:
                raise TransferError(str(e), file_id=source_file.file_id) from e
            yield dest
        finally:
            dest.unlink(missing_ok=True)
