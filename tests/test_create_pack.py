"""tools/create_pack.py image loading."""
from __future__ import annotations

import pytest

import config
from tools.create_pack import image_files, load_images


@pytest.mark.asyncio
async def test_load_images_into_pack(memory_registry, tmp_path, monkeypatch):
    monkeypatch.setattr(config, "STICKER_DIR", str(tmp_path / "data"))
    art = tmp_path / "art"
    art.mkdir()
    (art / "headpats.png").write_bytes(b"png")
    (art / "wave.GIF").write_bytes(b"gif")
    (art / "bad name!.png").write_bytes(b"x")
    (art / "notes.txt").write_text("not an image")

    assert [p.name for p in image_files(art)] == ["bad name!.png", "headpats.png", "wave.GIF"]

    ref = await memory_registry.create_pack("fun", creator_id=7)
    added = await load_images(memory_registry, ref, art, creator_id=7)

    assert added == 2
    assert sorted(s.name for s in await memory_registry.pack_stickers(ref.id)) == ["headpats", "wave"]
    assert (tmp_path / "data" / "stickers" / "pack" / "fun" / "headpats.png").read_bytes() == b"png"

    # Loading again skips what is already there.
    assert await load_images(memory_registry, ref, art) == 0


@pytest.mark.asyncio
async def test_failed_image_write_drops_the_sticker(memory_registry, tmp_path, monkeypatch):
    from utils import sticker_assets

    def broken_write(owner, name, data):
        raise OSError("disk full")

    monkeypatch.setattr(sticker_assets, "write_sticker_bytes", broken_write)
    art = tmp_path / "art"
    art.mkdir()
    (art / "headpats.png").write_bytes(b"png")

    ref = await memory_registry.create_pack("fun")
    assert await load_images(memory_registry, ref, art) == 0
    assert list(await memory_registry.pack_stickers(ref.id)) == []
