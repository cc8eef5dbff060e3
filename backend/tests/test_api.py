"""Tests for the HTTP API."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock
from urllib.parse import urlsplit

import pytest

from assetvault.api.deps import get_worker_dep
from assetvault.main import app
from assetvault.services.google_drive import DriveClient, FileInfo
from assetvault.services.metadata import MetadataExtractor
from assetvault.workers.drive_import import DriveImportWorker


async def register_device(client) -> dict[str, str]:
    response = await client.post("/api/v1/bridge/devices", json={"name": "Studio Mac"})
    assert response.status_code == 201
    return {"Authorization": f"Bearer {response.json()['token']}"}


def path_of(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.path}?{parts.query}"


# =============================================================================
# Health and projects
# =============================================================================


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/api/v1/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["database"] == "connected"
        assert data["active_imports"] == 0


class TestProjects:
    @pytest.mark.asyncio
    async def test_create_and_get(self, client):
        response = await client.post("/api/v1/projects", json={"name": "Night Drive"})
        assert response.status_code == 201
        project_id = response.json()["id"]

        response = await client.get(f"/api/v1/projects/{project_id}")
        assert response.status_code == 200
        assert response.json()["name"] == "Night Drive"

    @pytest.mark.asyncio
    async def test_unknown_project(self, client):
        response = await client.get("/api/v1/projects/missing")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_empty_name_rejected(self, client):
        response = await client.post("/api/v1/projects", json={"name": ""})
        assert response.status_code == 422


# =============================================================================
# Drive setup and import jobs
# =============================================================================


async def connect_drive(client, project_id: str) -> None:
    response = await client.post(
        "/api/v1/drive/connections",
        json={"email": "producer@example.com", "access_token": "ya29.token", "refresh_token": "1//r"},
    )
    assert response.status_code == 201
    response = await client.post(
        "/api/v1/drive/select-folder",
        json={"project_id": project_id, "folder_id": "folder123", "folder_name": "Bounces"},
    )
    assert response.status_code == 200


class TestDriveEndpoints:
    @pytest.mark.asyncio
    async def test_connection_hides_tokens(self, client):
        response = await client.post(
            "/api/v1/drive/connections",
            json={"email": "producer@example.com", "access_token": "ya29.token"},
        )
        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "ACTIVE"
        assert "access_token" not in data
        assert "ya29.token" not in response.text

    @pytest.mark.asyncio
    async def test_select_folder_requires_connection(self, client, project):
        response = await client.post(
            "/api/v1/drive/select-folder",
            json={"project_id": project.id, "folder_id": "folder123"},
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_status(self, client, project):
        response = await client.get("/api/v1/drive/status", params={"project_id": project.id})
        assert response.json()["connected"] is False

        await connect_drive(client, project.id)

        data = (await client.get("/api/v1/drive/status", params={"project_id": project.id})).json()
        assert data["connected"] is True
        assert data["email"] == "producer@example.com"
        assert data["folder_id"] == "folder123"
        assert data["latest_job"] is None

    @pytest.mark.asyncio
    async def test_status_unknown_project(self, client):
        response = await client.get("/api/v1/drive/status", params={"project_id": "missing"})
        assert response.status_code == 404


class TestImportEndpoints:
    @pytest.fixture
    def worker(self, session_maker, storage):
        drive = MagicMock(spec=DriveClient)
        drive.list_folder = AsyncMock(return_value=(
            [FileInfo(id="a", name="a.wav", mime_type="audio/wav", size=4, md5_checksum="md5-a")],
            None,
        ))

        async def download_to(file_id, dest):
            dest.parent.mkdir(parents=True, exist_ok=True)
            dest.write_bytes(b"RIFF")
            return 4

        drive.download_to = AsyncMock(side_effect=download_to)
        worker = DriveImportWorker(
            session_maker,
            client_factory=lambda credentials: drive,
            storage=storage,
            extractor=MetadataExtractor(),
        )
        app.dependency_overrides[get_worker_dep] = lambda: worker
        return worker

    @pytest.mark.asyncio
    async def test_unknown_project(self, client, worker):
        response = await client.post("/api/v1/imports", json={"project_id": "missing"})
        assert response.status_code == 404
        assert worker.active_jobs == 0

    @pytest.mark.asyncio
    async def test_not_connected(self, client, project, worker):
        response = await client.post("/api/v1/imports", json={"project_id": project.id})
        assert response.status_code == 400
        assert "not connected" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_start_and_poll(self, client, project, worker):
        await connect_drive(client, project.id)

        response = await client.post("/api/v1/imports", json={"project_id": project.id})
        assert response.status_code == 202
        data = response.json()
        assert data["status"] == "PENDING"
        job_id = data["job_id"]

        await worker.shutdown()

        response = await client.get(f"/api/v1/imports/{job_id}")
        assert response.status_code == 200
        job = response.json()
        assert job["status"] == "COMPLETED"
        assert job["total_files"] == 1
        assert job["processed_files"] == 1
        assert job["failed_files"] == 0
        assert job["source_path"] == "folder123"

        listing = (await client.get("/api/v1/imports", params={"project_id": project.id})).json()
        assert listing["total"] == 1
        assert listing["items"][0]["id"] == job_id

    @pytest.mark.asyncio
    async def test_unknown_job(self, client):
        response = await client.get("/api/v1/imports/missing")
        assert response.status_code == 404


# =============================================================================
# Bridge surface
# =============================================================================


class TestBridgeAuth:
    @pytest.mark.asyncio
    async def test_status_requires_token(self, client):
        response = await client.get("/api/v1/bridge/status")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_invalid_token(self, client):
        response = await client.get(
            "/api/v1/bridge/status", headers={"Authorization": "Bearer avb_wrong"}
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_status(self, client):
        headers = await register_device(client)
        response = await client.get("/api/v1/bridge/status", headers=headers)
        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Studio Mac"
        assert data["last_import_at"] is None


class TestUploadAndRegister:
    SOURCE = {
        "file_name": "kick.wav",
        "content_type": "audio/wav",
        "source_provider": "LOCAL_EXPORT",
        "source_file_id": "stems/kick.wav",
        "source_revision": "2026-10-19T10:00:00",
    }

    async def _version(self, client, headers, project_id) -> str:
        response = await client.post(
            f"/api/v1/projects/{project_id}/versions",
            json={"label": "FL Export 2026-10-19 10:00", "source": "LOCAL_EXPORT"},
            headers=headers,
        )
        assert response.status_code == 201
        return response.json()["id"]

    async def _upload(self, client, headers) -> str:
        response = await client.post("/api/v1/uploads/sign", json=self.SOURCE, headers=headers)
        assert response.status_code == 200
        signed = response.json()
        assert signed["key"].startswith("imports/local/")

        response = await client.put(path_of(signed["url"]), content=b"RIFFdata")
        assert response.status_code == 200
        assert response.json()["size"] == 8
        return signed["key"]

    def _asset(self, key: str) -> dict:
        return {
            "storage_key": key,
            "file_name": "kick.wav",
            "file_size": 8,
            "mime_type": "audio/wav",
            "source_provider": "LOCAL_EXPORT",
            "source_file_id": "stems/kick.wav",
            "source_revision": "2026-10-19T10:00:00",
            "duration": 1.5,
            "sample_rate": 44100,
        }

    @pytest.mark.asyncio
    async def test_versions_require_token(self, client, project):
        response = await client.post(
            f"/api/v1/projects/{project.id}/versions", json={"label": "x"}
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_full_flow(self, client, project, storage):
        headers = await register_device(client)
        version_id = await self._version(client, headers, project.id)
        key = await self._upload(client, headers)
        assert await storage.size(key) == 8

        lookup_params = {
            "provider": "LOCAL_EXPORT",
            "source_file_id": "stems/kick.wav",
            "revision": "2026-10-19T10:00:00",
        }
        lookup = await client.get("/api/v1/assets/lookup", params=lookup_params, headers=headers)
        assert lookup.json() == {"exists": False, "asset_id": None}

        response = await client.post(
            f"/api/v1/projects/{project.id}/versions/{version_id}/assets",
            json=self._asset(key),
            headers=headers,
        )
        assert response.status_code == 201
        asset_id = response.json()["id"]

        lookup = await client.get("/api/v1/assets/lookup", params=lookup_params, headers=headers)
        assert lookup.json() == {"exists": True, "asset_id": asset_id}

        status = (await client.get("/api/v1/bridge/status", headers=headers)).json()
        assert status["last_import_at"] is not None

    @pytest.mark.asyncio
    async def test_duplicate_registration(self, client, project):
        headers = await register_device(client)
        version_id = await self._version(client, headers, project.id)
        key = await self._upload(client, headers)
        url = f"/api/v1/projects/{project.id}/versions/{version_id}/assets"

        assert (await client.post(url, json=self._asset(key), headers=headers)).status_code == 201
        response = await client.post(url, json=self._asset(key), headers=headers)
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_register_without_upload(self, client, project):
        headers = await register_device(client)
        version_id = await self._version(client, headers, project.id)

        response = await client.post(
            f"/api/v1/projects/{project.id}/versions/{version_id}/assets",
            json=self._asset("imports/local/never_uploaded.wav"),
            headers=headers,
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_register_unknown_version(self, client, project):
        headers = await register_device(client)
        response = await client.post(
            f"/api/v1/projects/{project.id}/versions/missing/assets",
            json=self._asset("imports/local/x.wav"),
            headers=headers,
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_tampered_signature(self, client):
        headers = await register_device(client)
        signed = (await client.post("/api/v1/uploads/sign", json=self.SOURCE, headers=headers)).json()

        url = path_of(signed["url"]).replace("signature=", "signature=00")
        response = await client.put(url, content=b"RIFF")
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_signature_bound_to_key(self, client):
        headers = await register_device(client)
        signed = (await client.post("/api/v1/uploads/sign", json=self.SOURCE, headers=headers)).json()

        url = path_of(signed["url"]).replace("kick.wav", "snare.wav")
        response = await client.put(url, content=b"RIFF")
        assert response.status_code == 403
