"""Shared fixtures for Folia tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from folia.config import FoliaConfig
from folia.fs.paths import PathResolver
from folia.fs.sharing import SharingService
from folia.fs.tree import NamespaceStore
from folia.models import Node, ShareLink
from folia.storage import MemoryBlobStore

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncEngine

# Lowest bcrypt cost; keeps password tests fast.
FAST_ROUNDS = 4


@pytest.fixture
async def async_engine() -> AsyncIterator[AsyncEngine]:
    """Async in-memory SQLite engine with all tables created."""
    eng = create_async_engine("sqlite+aiosqlite://", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def async_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """Async SQLModel session, rolled back after each test."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def paths() -> PathResolver:
    return PathResolver(Node)


@pytest.fixture
def store(paths: PathResolver) -> NamespaceStore:
    return NamespaceStore(Node, paths)


@pytest.fixture
def sharing() -> SharingService:
    return SharingService(ShareLink, Node, bcrypt_rounds=FAST_ROUNDS)


@pytest.fixture
def blobs() -> MemoryBlobStore:
    return MemoryBlobStore()


@pytest.fixture
def config() -> FoliaConfig:
    return FoliaConfig(password_hash_rounds=FAST_ROUNDS, share_base_url="https://drive.test")
