"""Side HTTP server: health, metrics and self-hosted sticker images."""
from __future__ import annotations

import os

import pytest
from aiohttp.test_utils import TestClient, TestServer

from core.sticker_server import build_app, resolve_image_path


@pytest.fixture
def sticker_root(tmp_path):
    img = tmp_path / "stickers" / "guild" / "5" / "wave.png"
    img.parent.mkdir(parents=True)
    img.write_bytes(b"\x89PNG fake")
    return tmp_path


def test_resolve_image_path_maps_kinds(sticker_root):
    root = str(sticker_root)
    assert resolve_image_path(root, "g", "5", "wave.png") == os.path.realpath(
        sticker_root / "stickers" / "guild" / "5" / "wave.png"
    )
    assert resolve_image_path(root, "p", "fun", "x.png").endswith(os.path.join("pack", "fun", "x.png"))


@pytest.mark.parametrize(
    "kind, owner, filename",
    [
        ("x", "5", "wave.png"),
        ("g", "5", "wave.gif"),
        ("g", "..", "wave.png"),
        ("g", ".", "wave.png"),
        ("g", "", "wave.png"),
        ("g", "5", "../wave.png"),
        ("g", "a/b", "wave.png"),
        ("g", "a\\b", "wave.png"),
        ("g", "5", "wa\x00ve.png"),
    ],
)
def test_resolve_image_path_rejects_bad_paths(sticker_root, kind, owner, filename):
    assert resolve_image_path(str(sticker_root), kind, owner, filename) is None


def test_symlink_escape_rejected(sticker_root, tmp_path_factory):
    outside = tmp_path_factory.mktemp("outside")
    (outside / "secret.png").write_bytes(b"nope")
    link = sticker_root / "stickers" / "user" / "6"
    link.parent.mkdir(parents=True)
    try:
        os.symlink(outside, link)
    except (OSError, NotImplementedError):
        pytest.skip("symlinks unavailable")

    assert resolve_image_path(str(sticker_root), "u", "6", "secret.png") is None


@pytest.mark.asyncio
async def test_health_and_metrics(sticker_root):
    async with TestClient(TestServer(build_app(str(sticker_root)))) as client:
        resp = await client.get("/")
        assert resp.status == 200
        assert "is running" in await resp.text()

        resp = await client.get("/metrics")
        assert resp.status == 200
        assert "sticker_deliveries_total" in await resp.text()


@pytest.mark.asyncio
async def test_serves_existing_image(sticker_root):
    async with TestClient(TestServer(build_app(str(sticker_root)))) as client:
        resp = await client.get("/g/5/wave.png")
        assert resp.status == 200
        assert await resp.read() == b"\x89PNG fake"
        assert resp.headers["Cache-Control"].startswith("public")

        resp = await client.get("/g/5/missing.png")
        assert resp.status == 404

        resp = await client.get("/q/5/wave.png")
        assert resp.status == 404
