"""Pytest configuration and fixtures."""

import os
import tempfile
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Create a temporary directory for test paths
_test_tmp_dir = tempfile.mkdtemp(prefix="assetvault_test_")

# Set config paths BEFORE importing assetvault modules
os.environ["ASSETVAULT_CONFIG_PATH"] = str(Path(_test_tmp_dir) / "config")
os.environ["ASSETVAULT_STORAGE_PATH"] = str(Path(_test_tmp_dir) / "vault")
os.environ["ASSETVAULT_STAGING_PATH"] = str(Path(_test_tmp_dir) / "staging")
os.environ["ASSETVAULT_PUBLIC_BASE_URL"] = "http://test"
os.environ["ASSETVAULT_SIGNING_SECRET"] = "test-signing-secret"
os.environ["ASSETVAULT_FFPROBE_PATH"] = "assetvault-test-missing-ffprobe"
os.environ["ASSETVAULT_GOOGLE_REQUEST_DELAY"] = "0"

from assetvault.db import get_db, get_session_maker
from assetvault.db.base import Base
from assetvault.db.models import Project
from assetvault.main import app
from assetvault.services.storage import LocalStorage


@pytest.fixture
async def db_engine(tmp_path):
    """Create a file-backed test database engine.

    File-backed so that sessions opened by services see each other's commits.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(db_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return async_sessionmaker(
        db_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


@pytest.fixture
async def db_session(session_maker):
    """Create a test database session."""
    async with session_maker() as session:
        yield session


@pytest.fixture
async def project(session_maker) -> Project:
    """Create and commit a sample project."""
    async with session_maker() as session:
        project = Project(name="Midnight EP")
        session.add(project)
        await session.commit()
    return project


@pytest.fixture
def storage(tmp_path) -> LocalStorage:
    """Storage rooted in a per-test directory."""
    return LocalStorage(root=tmp_path / "vault", base_url="http://test")


@pytest.fixture
async def client(session_maker, storage):
    """Async HTTP client for the app with the test database and storage."""
    from assetvault.api.deps import get_storage_dep

    async def override_get_db():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_maker] = lambda: session_maker
    app.dependency_overrides[get_storage_dep] = lambda: storage

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


def pytest_sessionfinish(session, exitstatus):
    """Clean up temp directories after test session."""
    import shutil
    if Path(_test_tmp_dir).exists():
        shutil.rmtree(_test_tmp_dir, ignore_errors=True)
