# Copyright (C) 2024 TourneyGate Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Database connection and storage selection."""

from functools import lru_cache

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from tourneygate_server.config import settings
from tourneygate_server.models.base import Base
from tourneygate_server.storage.base import Storage
from tourneygate_server.storage.memory import MemoryStorage
from tourneygate_server.storage.sql import SqlStorage

engine = create_async_engine(
    settings.database_url,
    echo=False,
    pool_pre_ping=True,
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


@lru_cache(maxsize=1)
def _memory_storage() -> MemoryStorage:
    return MemoryStorage()


def get_store() -> Storage:
    """Dependency for FastAPI that returns the configured storage collaborator."""
    if settings.storage_backend == "memory":
        return _memory_storage()
    return SqlStorage(async_session_maker)


async def init_db() -> None:
    """Create all tables. Call at startup."""
    if settings.storage_backend == "memory":
        return
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
