"""Guild join/leave events keep the registry and the image directory in step."""
from __future__ import annotations

from unittest.mock import MagicMock

import pytest

import config
from utils.sticker_assets import write_sticker_bytes
from utils.stickers import StickerOwner


@pytest.fixture
def bot_mod(memory_registry, tmp_path, monkeypatch):
    import bot as bot_mod

    monkeypatch.setattr(config, "STICKER_DIR", str(tmp_path))
    monkeypatch.setattr(bot_mod.bot, "registry", memory_registry)
    monkeypatch.setattr(bot_mod, "audit_log", MagicMock())
    return bot_mod


@pytest.mark.asyncio
async def test_guild_join_creates_record(bot_mod, memory_registry):
    await bot_mod.on_guild_join(MagicMock(id=77))
    assert (await memory_registry.guild_settings(77)) is not None


@pytest.mark.asyncio
async def test_guild_remove_deletes_stickers_and_images(bot_mod, memory_registry, tmp_path):
    owner = StickerOwner.guild(77)
    await memory_registry.add_sticker(owner, "bigbrain")
    gone = tmp_path / write_sticker_bytes(owner, "bigbrain", b"png")
    kept = tmp_path / write_sticker_bytes(StickerOwner.guild(78), "bigbrain", b"png")

    await bot_mod.on_guild_remove(MagicMock(id=77))

    assert list(await memory_registry.guild_stickers(77)) == []
    assert not gone.exists()
    assert not (tmp_path / "stickers" / "guild" / "77").exists()
    assert kept.exists()
