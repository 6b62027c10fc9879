# core/sticker_server.py
"""Side HTTP server running as an aiohttp web app inside the bot process.

Railway provides a PORT env var. We bind to 0.0.0.0:PORT.

Routes:
  GET /                          health check
  GET /metrics                   Prometheus scrape endpoint
  GET /{g|u|p}/{owner}/{name}.png  self-hosted sticker images from STICKER_DIR
"""
from __future__ import annotations

import logging
import os
from typing import Optional

from aiohttp import web
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

import config

log = logging.getLogger("bot.sticker_server")

_KIND_DIRS = {"g": "guild", "u": "user", "p": "pack"}

_ROOT_KEY = web.AppKey("sticker_root", str)


async def _handle_health(request: web.Request) -> web.Response:
    """GET /: health check for Railway."""
    return web.Response(status=200, text=f"{config.BOT_NAME} is running")


async def _handle_metrics(request: web.Request) -> web.Response:
    """GET /metrics: Prometheus scrape endpoint."""
    # aiohttp rejects a charset inside content_type, so set the header directly.
    return web.Response(body=generate_latest(), headers={"Content-Type": CONTENT_TYPE_LATEST})


def resolve_image_path(root: str, kind: str, owner: str, filename: str) -> Optional[str]:
    """Map a URL path to a file under `root`, or None if it is not a valid sticker path."""
    kind_dir = _KIND_DIRS.get(kind)
    if kind_dir is None or not filename.endswith(".png"):
        return None
    for part in (owner, filename):
        if not part or part in {".", ".."} or "/" in part or "\\" in part or "\x00" in part:
            return None

    base = os.path.realpath(os.path.join(root, "stickers"))
    candidate = os.path.realpath(os.path.join(base, kind_dir, owner, filename))
    # Symlinks or odd segments must not escape the sticker directory
    if os.path.commonpath([base, candidate]) != base:
        return None
    return candidate


async def _handle_sticker_image(request: web.Request) -> web.StreamResponse:
    path = resolve_image_path(
        request.app[_ROOT_KEY],
        request.match_info["kind"],
        request.match_info["owner"],
        request.match_info["filename"],
    )
    if path is None:
        return web.Response(status=404, text="Not found")
    if not os.path.isfile(path):
        return web.Response(status=404, text="Not found")
    return web.FileResponse(path, headers={"Cache-Control": "public, max-age=300"})


def build_app(root: Optional[str] = None) -> web.Application:
    app = web.Application()
    app[_ROOT_KEY] = root or config.STICKER_DIR
    app.router.add_get("/", _handle_health)
    app.router.add_get("/metrics", _handle_metrics)
    app.router.add_get("/{kind}/{owner}/{filename}", _handle_sticker_image)
    return app


async def start_sticker_server(bot) -> web.AppRunner:
    """Start the aiohttp side server.

    Called from bot.py setup_hook. Runs in the background; the returned
    runner is cleaned up on shutdown.
    """
    port = int(config.PORT)
    runner = web.AppRunner(build_app())
    await runner.setup()
    site = web.TCPSite(runner, "0.0.0.0", port)
    await site.start()
    log.info(
        "Sticker/health server listening on 0.0.0.0:%d (images=%s, public=%s)",
        port, config.STICKER_DIR, config.STICKER_BASE_URL or "-",
    )
    return runner
