"""Sticker image storage and remote fetch."""
from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

import config
from core.errors import ResourceUnavailable
from utils import sticker_assets
from utils.sticker_assets import (
    delete_owner_images,
    delete_sticker_image,
    fetch_image_file,
    save_sticker_image,
    sticker_abspath,
    write_sticker_bytes,
)
from utils.stickers import Sticker, StickerOwner


@pytest.fixture(autouse=True)
def sticker_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "STICKER_DIR", str(tmp_path))
    return tmp_path


def _attachment(data=b"\x89PNG data", *, content_type="image/png", size=None):
    att = MagicMock()
    att.filename = "upload.png"
    att.content_type = content_type
    att.size = len(data) if size is None else size
    att.read = AsyncMock(return_value=data)
    return att


@pytest.mark.asyncio
async def test_save_and_delete_roundtrip(sticker_dir):
    owner = StickerOwner.guild(5)
    ok, msg, rel = await save_sticker_image(attachment=_attachment(), owner=owner, name="wave")

    assert ok, msg
    assert rel == "stickers/guild/5/wave.png"
    assert (sticker_dir / rel).read_bytes() == b"\x89PNG data"

    s = Sticker(id=1, name="wave", owner=owner)
    assert sticker_abspath(s) == str(sticker_dir / rel)
    assert delete_sticker_image(s) is True
    assert delete_sticker_image(s) is False


@pytest.mark.asyncio
async def test_save_rejects_non_images_and_oversize():
    owner = StickerOwner.user(6)

    ok, _, _ = await save_sticker_image(attachment=_attachment(content_type="video/mp4"), owner=owner, name="v")
    assert not ok

    ok, msg, _ = await save_sticker_image(attachment=_attachment(b"x" * 20), owner=owner, name="big", max_bytes=10)
    assert not ok and "too large" in msg

    ok, _, _ = await save_sticker_image(attachment=_attachment(b""), owner=owner, name="empty")
    assert not ok


def test_external_stickers_have_no_local_file():
    s = Sticker(id=1, name="ext", owner=StickerOwner.guild(5), image_url="https://img/x.png")
    assert sticker_abspath(s) is None
    assert delete_sticker_image(s) is False


def _patch_http(monkeypatch, handler):
    transport = httpx.MockTransport(handler)
    real = httpx.AsyncClient

    def factory(*args, **kwargs):
        kwargs["transport"] = transport
        return real(*args, **kwargs)

    monkeypatch.setattr(sticker_assets.httpx, "AsyncClient", factory)


@pytest.mark.asyncio
async def test_fetch_image_file(monkeypatch):
    _patch_http(monkeypatch, lambda req: httpx.Response(200, content=b"GIF89a", headers={"content-type": "image/gif"}))

    f = await fetch_image_file("https://cdn.example/wave.gif", filename="wave.png")
    assert f.filename == "wave.png"
    assert f.fp.read() == b"GIF89a"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(404),
        httpx.Response(200, content=b""),
        httpx.Response(200, content=b"<html>", headers={"content-type": "text/html"}),
    ],
)
async def test_fetch_image_file_unavailable(monkeypatch, response):
    _patch_http(monkeypatch, lambda req: response)
    with pytest.raises(ResourceUnavailable):
        await fetch_image_file("https://cdn.example/x.png")


@pytest.mark.asyncio
async def test_fetch_rejects_non_http_urls():
    with pytest.raises(ResourceUnavailable):
        await fetch_image_file("file:///etc/passwd")


@pytest.mark.asyncio
async def test_fetch_rejects_oversize(monkeypatch):
    monkeypatch.setattr(config, "MAX_STICKER_BYTES", 4)
    _patch_http(monkeypatch, lambda req: httpx.Response(200, content=b"12345", headers={"content-type": "image/png"}))
    with pytest.raises(ResourceUnavailable):
        await fetch_image_file("https://cdn.example/x.png")


def test_delete_owner_images(sticker_dir):
    user = StickerOwner.user(6)
    pack = StickerOwner.pack(3, "fun")
    write_sticker_bytes(user, "a", b"1")
    write_sticker_bytes(user, "b", b"2")
    kept = sticker_dir / write_sticker_bytes(pack, "a", b"3")

    assert delete_owner_images(user) is True
    assert not (sticker_dir / "stickers" / "user" / "6").exists()
    assert kept.exists()
    assert delete_owner_images(user) is False
