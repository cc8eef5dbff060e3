"""Database session management."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from pathlib import Path

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from assetvault.core.config import settings


def get_database_url() -> str:
    """Get the database URL, ensuring the SQLite directory exists."""
    if settings.database_url:
        return settings.database_url

    config_path = settings.config_path
    if not config_path.exists():
        try:
            config_path.mkdir(parents=True, exist_ok=True)
        except OSError:
            # Fall back to local directory for development
            config_path = Path("./config")
            config_path.mkdir(parents=True, exist_ok=True)

    db_path = config_path / "assetvault.db"
    return f"sqlite+aiosqlite:///{db_path}"


def create_engine(url: str | None = None) -> AsyncEngine:
    """Create an async engine; SQLite connections get WAL and a busy timeout."""
    url = url or get_database_url()
    is_sqlite = url.startswith("sqlite")
    new_engine = create_async_engine(
        url,
        echo=settings.debug,
        connect_args={"timeout": 30} if is_sqlite else {},
        pool_pre_ping=True,
    )

    if is_sqlite:

        @event.listens_for(new_engine.sync_engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            """Enable WAL mode for concurrent readers while a job writes."""
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.execute("PRAGMA busy_timeout=30000")
            cursor.close()

    return new_engine


def create_session_maker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a session factory with the settings every caller expects."""
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


engine = create_engine()

async_session_maker = create_session_maker(engine)


def get_engine() -> AsyncEngine:
    """Get the database engine."""
    return engine


async def init_db(bind: AsyncEngine | None = None) -> None:
    """Create any missing tables."""
    from assetvault.db.base import Base
    import assetvault.db.models  # noqa: F401  (registers mappers)

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database sessions.

    Yields:
        An async database session.
    """
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """Dependency for code that opens its own short-lived sessions
    (background imports, dedup lookups)."""
    return async_session_maker
