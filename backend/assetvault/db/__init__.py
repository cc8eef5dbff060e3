"""Database package for AssetVault."""

from assetvault.db.base import Base
from assetvault.db.session import async_session_maker, engine, get_db, get_session_maker, init_db

__all__ = [
    "Base",
    "async_session_maker",
    "engine",
    "get_db",
    "get_session_maker",
    "init_db",
]
