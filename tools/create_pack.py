"""Owner-only helper to create a sticker pack, load its images, and optionally install it.

Usage:
  python tools/create_pack.py <PREFIX> [DISPLAY NAME]
  python tools/create_pack.py <PREFIX> [DISPLAY NAME] --images ./art/fun --guild <GUILD_ID>

Every image in --images becomes a sticker named after the file stem
(e.g. headpats.png -> :headpats:). Files whose stem is not a valid sticker
name are skipped.

Writes straight to the configured DATABASE_URL through the SQL registry and
to STICKER_DIR for the images.
"""

import argparse
import asyncio
import pathlib
import sys

# Allow running as a plain script from the repo root or tools/.
sys.path.insert(0, str(pathlib.Path(__file__).resolve().parents[1]))

IMAGE_SUFFIXES = {".png", ".gif", ".jpg", ".jpeg", ".webp"}


def _parse_args(argv):
    p = argparse.ArgumentParser(description="Create a sticker pack")
    p.add_argument("prefix")
    p.add_argument("display_name", nargs="*")
    p.add_argument("--images", type=pathlib.Path, default=None, help="directory of images to add to the pack")
    p.add_argument("--creator", type=int, default=None, help="Discord user id recorded as creator")
    p.add_argument("--guild", type=int, default=None, help="install the new pack into this guild")
    return p.parse_args(argv)


def image_files(directory: pathlib.Path) -> list[pathlib.Path]:
    return sorted(p for p in directory.iterdir() if p.is_file() and p.suffix.lower() in IMAGE_SUFFIXES)


async def load_images(registry, ref, directory: pathlib.Path, *, creator_id=None) -> int:
    """Add every image in `directory` to the pack. Returns how many were added."""
    from core.errors import StickerConflict
    from utils.sticker_assets import write_sticker_bytes
    from utils.stickers import StickerOwner, is_valid_sticker_name

    owner = StickerOwner.pack(ref.id, ref.prefix)
    added = 0
    for path in image_files(directory):
        name = path.stem
        if not is_valid_sticker_name(name):
            print(f"SKIP: {path.name} (invalid sticker name)")
            continue
        try:
            await registry.add_sticker(owner, name, creator_id=creator_id)
        except StickerConflict:
            print(f"SKIP: {path.name} (already in pack)")
            continue
        try:
            write_sticker_bytes(owner, name, path.read_bytes())
        except OSError as e:
            # No image on disk: drop the record so the sticker never resolves unavailable.
            await registry.remove_sticker(owner, name)
            print(f"SKIP: {path.name} ({e})")
            continue
        added += 1
    return added


async def main(argv=None):
    args = _parse_args(sys.argv[1:] if argv is None else argv)

    from dotenv import load_dotenv
    load_dotenv()

    from core.errors import StickerConflict
    from utils.db import dispose_engine, init_db
    from utils.sticker_store import SqlStickerRegistry
    from utils.stickers import StickerOwner, normalize_pack_prefix

    prefix = normalize_pack_prefix(args.prefix)
    if not prefix:
        print("Prefix must contain letters, digits, '_' or '-'")
        return 2
    if args.images is not None and not args.images.is_dir():
        print(f"Not a directory: {args.images}")
        return 2

    await init_db()
    registry = SqlStickerRegistry()
    try:
        try:
            ref = await registry.create_pack(
                prefix,
                display_name=" ".join(args.display_name) or None,
                creator_id=args.creator,
            )
        except StickerConflict as e:
            print(f"ERROR: {e}")
            return 1
        print(f"OK: pack {ref.prefix!r} id={ref.id}")

        if args.images is not None:
            n = await load_images(registry, ref, args.images, creator_id=args.creator)
            print(f"OK: added {n} sticker(s) from {args.images}")

        if args.guild:
            await registry.ensure_guild(args.guild)
            await registry.install_pack(StickerOwner.guild(args.guild), ref.id)
            print(f"OK: installed into guild {args.guild}")
    finally:
        await dispose_engine()
    return 0


if __name__ == "__main__":
    raise SystemExit(asyncio.run(main()))
