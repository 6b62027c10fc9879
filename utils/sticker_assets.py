from __future__ import annotations

import logging
import os
import shutil
from io import BytesIO
from typing import Optional

import discord

import httpx

import config
from core.errors import ResourceUnavailable
from utils.stickers import Sticker, StickerOwner


logger = logging.getLogger(__name__)

_IMAGE_EXTS = (".png", ".jpg", ".jpeg", ".gif", ".webp")


def _sticker_root() -> str:
    # Railway volume-friendly default
    return config.STICKER_DIR or "data"


def sticker_abspath(sticker: Sticker) -> Optional[str]:
    """Absolute location of a self-hosted sticker image (None for external ones)."""
    rel = sticker.image_path()
    if rel is None:
        return None
    return os.path.join(_sticker_root(), rel)


def owner_relpath(owner: StickerOwner, name: str) -> str:
    return Sticker(id=0, name=name, owner=owner).image_path() or ""


def local_image_file(sticker: Sticker) -> Optional[discord.File]:
    """Return a discord.File for a self-hosted sticker already on disk, else None."""
    abs_path = sticker_abspath(sticker)
    if not abs_path or not os.path.isfile(abs_path):
        return None
    return discord.File(abs_path, filename=f"{sticker.name}.png")


async def fetch_image_file(url: str, *, filename: str = "sticker.png") -> discord.File:
    """Fetch an image over HTTP(S) as a discord.File.

    Raises ResourceUnavailable when the URL cannot be fetched, is not an image,
    or exceeds MAX_STICKER_BYTES.
    """
    s = (url or "").strip()
    if not (s.startswith("https://") or s.startswith("http://")):
        raise ResourceUnavailable(f"unsupported image URL: {s[:80]!r}")

    try:
        async with httpx.AsyncClient(follow_redirects=True, timeout=config.IMAGE_FETCH_TIMEOUT_S) as client:
            resp = await client.get(s)
            resp.raise_for_status()
    except httpx.HTTPError as e:
        logger.warning("fetch_image_file failed for url=%s: %s", s[:80], e)
        raise ResourceUnavailable(f"could not fetch sticker image {s[:80]!r}") from e

    data = resp.content
    if not data or len(data) > config.MAX_STICKER_BYTES:
        logger.warning("fetch_image_file: bad size (%s bytes) for %s", len(data) if data else 0, s[:80])
        raise ResourceUnavailable(f"sticker image at {s[:80]!r} is empty or too large")

    ct = (resp.headers.get("content-type") or "").lower()
    if ct and not ct.startswith("image/") and not ct.startswith("application/octet-stream"):
        raise ResourceUnavailable(f"sticker image at {s[:80]!r} is not an image ({ct})")

    base = (filename or "sticker").strip()
    if not base.lower().endswith(_IMAGE_EXTS):
        base = base + ".png"
    return discord.File(BytesIO(data), filename=base)


async def save_sticker_image(
    *,
    attachment: discord.Attachment,
    owner: StickerOwner,
    name: str,
    max_bytes: int | None = None,
) -> tuple[bool, str, str | None]:
    """Save an uploaded image as a self-hosted sticker.

    Always stored as {name}.png at the owner-scoped path.
    Returns: (ok, message, rel_path)
    """
    if attachment is None:
        return False, "No file attached.", None

    ct = (attachment.content_type or "").lower()
    if not ct.startswith("image/"):
        return False, "Please upload an image or GIF (not a video).", None

    limit = int(max_bytes) if isinstance(max_bytes, int) and max_bytes > 0 else config.MAX_STICKER_BYTES
    mb = limit / (1024 * 1024)
    # Discord reports the size up front
    if getattr(attachment, "size", None) and int(attachment.size) > limit:
        return False, f"Image too large (max {mb:.1f}MB).", None

    out_rel = owner_relpath(owner, name)
    try:
        data = await attachment.read()
    except discord.HTTPException:
        logger.warning("Could not read sticker upload %s", attachment.filename, exc_info=True)
        return False, "Failed to read the uploaded image.", None

    if not data:
        return False, "Uploaded file was empty.", None
    if len(data) > limit:
        return False, f"Image too large (max {mb:.1f}MB).", None

    try:
        write_sticker_bytes(owner, name, data)
    except OSError:
        logger.exception("Failed to save sticker image %s", out_rel)
        return False, "Failed to save uploaded image.", None
    return True, "Saved.", out_rel


def write_sticker_bytes(owner: StickerOwner, name: str, data: bytes) -> str:
    """Write image bytes to the owner-scoped path. Returns the relative path; OSError propagates."""
    out_rel = owner_relpath(owner, name)
    out_abs = os.path.join(_sticker_root(), out_rel)
    os.makedirs(os.path.dirname(out_abs), exist_ok=True)
    with open(out_abs, "wb") as f:
        f.write(data)
    return out_rel


def delete_sticker_image(sticker: Sticker) -> bool:
    """Remove a self-hosted image from disk. Returns True if a file was deleted."""
    abs_path = sticker_abspath(sticker)
    if not abs_path:
        return False
    try:
        os.remove(abs_path)
        return True
    except FileNotFoundError:
        return False
    except OSError:
        logger.warning("Could not delete sticker image %s", abs_path, exc_info=True)
        return False


def delete_owner_images(owner: StickerOwner) -> bool:
    """Remove every self-hosted image of a guild, user or pack. Returns True if a directory was removed."""
    owner_dir = os.path.join(_sticker_root(), "stickers", owner.kind, owner.path_key)
    if not os.path.isdir(owner_dir):
        return False
    try:
        shutil.rmtree(owner_dir)
        return True
    except OSError:
        logger.warning("Could not delete sticker images in %s", owner_dir, exc_info=True)
        return False
