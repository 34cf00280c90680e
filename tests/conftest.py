"""Shared fixtures for homecloud tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from homecloud._cloud import HomeCloud
from homecloud.config import Settings
from homecloud.database import create_engine, create_session_factory, create_tables
from homecloud.fs.tree import FileTree
from homecloud.models.users import User

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncEngine

    from homecloud.auth.gate import Identity


@pytest.fixture
async def async_engine() -> AsyncIterator[AsyncEngine]:
    """Async in-memory SQLite engine with all tables created."""
    eng = create_engine("sqlite+aiosqlite://")
    await create_tables(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
async def async_session(async_engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    """Async session on the in-memory engine."""
    factory = create_session_factory(async_engine)
    async with factory() as session:
        yield session


async def _add_user(session: AsyncSession, username: str, *, is_admin: bool = False) -> User:
    user = User(
        username=username,
        email=f"{username}@example.com",
        password_hash="not-a-real-hash",
        is_admin=is_admin,
    )
    session.add(user)
    await session.flush()
    return user


@pytest.fixture
async def alice(async_session: AsyncSession) -> User:
    return await _add_user(async_session, "alice", is_admin=True)


@pytest.fixture
async def bob(async_session: AsyncSession, alice: User) -> User:
    return await _add_user(async_session, "bob")


@pytest.fixture
async def carol(async_session: AsyncSession, bob: User) -> User:
    return await _add_user(async_session, "carol")


@pytest.fixture
def tree() -> FileTree:
    return FileTree()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Fast, isolated settings: in-memory DB, temp storage, cheap bcrypt."""
    return Settings(
        database_url="sqlite+aiosqlite://",
        storage_dir=tmp_path / "storage",
        secret_key="test-secret-key",
        bcrypt_rounds=4,
        max_upload_bytes=1024 * 1024,
    )


@pytest.fixture
async def cloud(settings: Settings) -> AsyncIterator[HomeCloud]:
    async with HomeCloud(settings) as hc:
        yield hc


@pytest.fixture
async def admin(cloud: HomeCloud) -> Identity:
    """The Super Admin, created through first-run setup."""
    login = await cloud.setup("admin", "admin@example.com", "adminpass")
    return await cloud.authenticate(f"Bearer {login.token}")


@pytest.fixture
async def member(cloud: HomeCloud, admin: Identity) -> Identity:
    """A regular user created by the admin."""
    await cloud.create_user(admin, "member", "member@example.com", "memberpass")
    login = await cloud.login("member@example.com", "memberpass")
    return await cloud.authenticate(login.token)
