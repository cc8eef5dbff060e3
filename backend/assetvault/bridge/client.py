"""HTTP client for the vault API and the bridge's AssetRegistrar."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import httpx

from assetvault.bridge.config import BridgeConfig
from assetvault.core.file_types import guess_content_type
from assetvault.core.logging import get_logger
from assetvault.db.models import SourceProvider
from assetvault.services.errors import DuplicateAssetError, RegistrationError, TransferError
from assetvault.services.registration import AssetRegistrar, AssetRegistration
from assetvault.services.sources import SourceFile
from assetvault.services.storage import UploadDestination, read_chunks

logger = get_logger(__name__)

DEFAULT_TIMEOUT = httpx.Timeout(30.0, read=300.0, write=300.0)


class VaultClientError(Exception):
    """Raised when the vault API rejects a request or cannot be reached."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class VaultClient:
    """Bearer-authenticated client for the vault API."""

    def __init__(self, config: BridgeConfig, http: httpx.AsyncClient | None = None):
        self.config = config
        self._http = http or httpx.AsyncClient(timeout=DEFAULT_TIMEOUT)
        self._headers = {"Authorization": f"Bearer {config.token}"}

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> VaultClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        url = f"{self.config.api_base}{path}"
        try:
            response = await self._http.request(method, url, headers=self._headers, **kwargs)
        except httpx.TransportError as e:
            raise VaultClientError(f"{method} {path} failed: {e}") from e
        if response.is_error:
            try:
                detail = response.json().get("detail", response.text)
            except ValueError:
                detail = response.text
            raise VaultClientError(
                f"{method} {path} returned {response.status_code}: {detail}",
                status_code=response.status_code,
            )
        return response

    async def status(self) -> dict[str, Any]:
        response = await self._request("GET", "/bridge/status")
        return response.json()

    async def lookup(self, provider: SourceProvider, source_file_id: str, revision: str) -> str | None:
        """Get the id of the asset registered for this identity, if any."""
        response = await self._request(
            "GET",
            "/assets/lookup",
            params={"provider": provider.value, "source_file_id": source_file_id, "revision": revision},
        )
        return response.json().get("asset_id")

    async def create_version(
        self,
        project_id: str,
        label: str,
        description: str | None,
        source: SourceProvider,
    ) -> str:
        response = await self._request(
            "POST",
            f"/projects/{project_id}/versions",
            json={"label": label, "description": description, "source": source.value},
        )
        return response.json()["id"]

    async def sign_upload(self, source_file: SourceFile, content_type: str) -> UploadDestination:
        response = await self._request(
            "POST",
            "/uploads/sign",
            json={
                "file_name": source_file.name,
                "content_type": content_type,
                "source_provider": source_file.provider.value,
                "source_file_id": source_file.file_id,
                "source_revision": source_file.revision,
            },
        )
        return UploadDestination.model_validate(response.json())

    async def upload(self, url: str, path: Path, content_type: str) -> int:
        """Stream a local file to a signed upload URL."""
        size = path.stat().st_size
        try:
            response = await self._http.put(
                url,
                content=read_chunks(path),
                headers={"Content-Type": content_type, "Content-Length": str(size)},
            )
        except httpx.TransportError as e:
            raise VaultClientError(f"Upload to {url} failed: {e}") from e
        if response.is_error:
            raise VaultClientError(
                f"Upload returned {response.status_code}: {response.text}",
                status_code=response.status_code,
            )
        return response.json().get("size", size)

    async def register_asset(self, registration: AssetRegistration) -> str:
        payload = {
            "storage_key": registration.storage_key,
            "file_name": registration.file_name,
            "file_size": registration.file_size,
            "mime_type": registration.mime_type,
            "source_provider": registration.source_provider.value,
            "source_file_id": registration.source_file_id,
            "source_revision": registration.source_revision,
            "source_metadata": registration.source_metadata,
            **registration.metadata.model_dump(),
        }
        response = await self._request(
            "POST",
            f"/projects/{registration.project_id}/versions/{registration.version_id}/assets",
            json=payload,
        )
        return response.json()["id"]


class HttpRegistrar(AssetRegistrar):
    """AssetRegistrar backed by the vault API."""

    def __init__(self, client: VaultClient):
        self.client = client

    async def exists(self, source_file: SourceFile) -> bool:
        asset_id = await self.client.lookup(source_file.provider, source_file.file_id, source_file.revision)
        return asset_id is not None

    async def create_version(
        self,
        project_id: str,
        label: str,
        description: str | None = None,
        source: SourceProvider = SourceProvider.MANUAL,
        import_job_id: str | None = None,
    ) -> str:
        try:
            return await self.client.create_version(project_id, label, description, source)
        except VaultClientError as e:
            raise RegistrationError(f"Could not create version: {e}") from e

    async def get_upload_destination(self, source_file: SourceFile) -> UploadDestination:
        content_type = source_file.mime_type or guess_content_type(source_file.name)
        try:
            return await self.client.sign_upload(source_file, content_type)
        except VaultClientError as e:
            raise TransferError(f"Could not get upload URL: {e}", file_id=source_file.file_id) from e

    async def transfer(self, destination: UploadDestination, local_path: Path, content_type: str | None = None) -> int:
        try:
            return await self.client.upload(
                destination.url,
                local_path,
                content_type or guess_content_type(local_path.name),
            )
        except VaultClientError as e:
            raise TransferError(str(e)) from e

    async def register_asset(self, registration: AssetRegistration) -> str:
        try:
            return await self.client.register_asset(registration)
        except VaultClientError as e:
            if e.status_code == 409:
                raise DuplicateAssetError(str(e), file_id=registration.source_file_id) from e
            raise RegistrationError(str(e), file_id=registration.source_file_id) from e
