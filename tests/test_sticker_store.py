"""SQL-specific behavior of the durable registry (aiosqlite, no Postgres needed)."""
from __future__ import annotations

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

from core.errors import LookupFailure, StickerConflict
from utils import models as m
from utils.db import make_engine
from utils.sticker_store import SqlStickerRegistry, _to_sticker
from utils.stickers import StickerOwner


@pytest.mark.asyncio
async def test_unreachable_database_is_lookup_failure(tmp_path):
    engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'missing-dir' / 'nope.db'}")
    reg = SqlStickerRegistry(async_sessionmaker(engine, expire_on_commit=False))
    try:
        with pytest.raises(LookupFailure):
            await reg.guild_stickers(1)
        with pytest.raises(LookupFailure):
            await reg.role_classification(1)
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_missing_tables_is_lookup_failure(tmp_path):
    engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
    reg = SqlStickerRegistry(async_sessionmaker(engine, expire_on_commit=False))
    try:
        with pytest.raises(LookupFailure):
            await reg.personal_stickers(1)
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_single_owner_check_constraint(sql_registry):
    await sql_registry.ensure_guild(1)
    await sql_registry.ensure_user(2)

    async with sql_registry._Session() as session:
        session.add(m.Sticker(name="both", guild_id=1, user_id=2))
        with pytest.raises(IntegrityError):
            await session.commit()

    async with sql_registry._Session() as session:
        session.add(m.Sticker(name="orphan"))
        with pytest.raises(IntegrityError):
            await session.commit()


@pytest.mark.asyncio
async def test_duplicate_name_maps_to_conflict(sql_registry):
    await sql_registry.add_sticker(StickerOwner.guild(1), "dup", image_url="https://img/1.png")
    with pytest.raises(StickerConflict):
        await sql_registry.add_sticker(StickerOwner.guild(1), "dup", image_url="https://img/2.png")
    # The failed write left the first one intact.
    assert [s.image_url for s in await sql_registry.guild_stickers(1)] == ["https://img/1.png"]


@pytest.mark.asyncio
async def test_guild_delete_cascades_via_foreign_keys(sql_registry):
    await sql_registry.add_sticker(StickerOwner.guild(5), "g", image_url="https://img/g.png")

    # Deleting the guild row directly relies on ON DELETE CASCADE (PRAGMA foreign_keys=ON).
    async with sql_registry._Session() as session:
        await session.delete(await session.get(m.GuildData, 5))
        await session.commit()

    assert list(await sql_registry.guild_stickers(5)) == []


@pytest.mark.asyncio
async def test_created_pack_stickers_carry_prefix(sql_registry):
    pack = await sql_registry.create_pack("cats", display_name="Cats", creator_id=77)
    await sql_registry.add_sticker(StickerOwner.pack(pack.id, pack.prefix), "meow")

    (s,) = await sql_registry.pack_stickers(pack.id)
    assert s.owner == StickerOwner.pack(pack.id, "cats")
    assert s.image_path() == "stickers/pack/cats/meow.png"


def test_row_without_owner_is_rejected():
    row = m.Sticker(id=9, name="orphan")
    with pytest.raises(ValueError):
        _to_sticker(row)


def test_database_url_normalization(monkeypatch):
    from utils.db import get_database_url

    monkeypatch.setenv("DATABASE_URL", "postgres://u:p@host:5432/db")
    assert get_database_url() == "postgresql+asyncpg://u:p@host:5432/db"

    monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@host/db")
    assert get_database_url() == "postgresql+asyncpg://u:p@host/db"

    monkeypatch.delenv("DATABASE_URL")
    monkeypatch.setenv("ENVIRONMENT", "dev")
    assert get_database_url().startswith("sqlite+aiosqlite://")

    monkeypatch.setenv("ENVIRONMENT", "prod")
    with pytest.raises(RuntimeError):
        get_database_url()
