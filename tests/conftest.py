"""Pytest configuration and fixtures. Run without Discord or a real DB by default."""
from __future__ import annotations

import os
import sys
from contextlib import asynccontextmanager

import pytest

# Ensure project root is on path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Avoid loading .env that might point at prod
os.environ.setdefault("ENVIRONMENT", "dev")


class FakeRoleSource:
    """RoleSource double: fixed role sets per (user, guild), with a call log."""

    def __init__(self, roles: dict[tuple[int, int], set[int]] | None = None, *, error: Exception | None = None):
        self.roles = roles or {}
        self.error = error
        self.calls: list[tuple[int, int]] = []

    async def roles_of(self, user_id: int, guild_id: int) -> frozenset[int]:
        self.calls.append((int(user_id), int(guild_id)))
        if self.error is not None:
            raise self.error
        return frozenset(self.roles.get((int(user_id), int(guild_id)), set()))


@pytest.fixture
def role_source():
    return FakeRoleSource()


@asynccontextmanager
async def _sqlite_registry(path):
    """SqlStickerRegistry on a throwaway SQLite file with all tables created."""
    from sqlalchemy.ext.asyncio import async_sessionmaker
    from utils.db import make_engine
    from utils.models import Base
    from utils.sticker_store import SqlStickerRegistry

    engine = make_engine(f"sqlite+aiosqlite:///{path}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield SqlStickerRegistry(async_sessionmaker(engine, expire_on_commit=False))
    finally:
        await engine.dispose()


@pytest.fixture
async def sql_registry(tmp_path):
    async with _sqlite_registry(tmp_path / "stickers.db") as reg:
        yield reg


@pytest.fixture
def memory_registry():
    from utils.memory_registry import InMemoryStickerRegistry

    return InMemoryStickerRegistry()


@pytest.fixture(params=["memory", "sql"])
async def registry(request, tmp_path):
    """Both registry backends; behavior must be identical."""
    if request.param == "memory":
        from utils.memory_registry import InMemoryStickerRegistry

        yield InMemoryStickerRegistry()
        return
    async with _sqlite_registry(tmp_path / "stickers.db") as reg:
        yield reg
