from __future__ import annotations

"""Sticker data model shared by both registry backends.

A sticker is owned by exactly one scope: a guild, a user, or a pack. Names are
unique only inside that scope; collisions across scopes are settled by the
resolver's precedence order.

Image references:
  - external: `image_url` is set and used as-is
  - self-hosted: derived from owner scope + name
      path: stickers/{guild|user|pack}/{owner}/{name}.png  (under STICKER_DIR)
      url:  {base}/{g|u|p}/{owner}/{name}.png
"""

import re
from dataclasses import dataclass
from typing import Literal, Optional
from urllib.parse import quote

from core.errors import ResourceUnavailable

OwnerKind = Literal["guild", "user", "pack"]
RoleClass = Literal["whitelisted", "blacklisted"]

OWNER_KINDS: tuple[OwnerKind, ...] = ("guild", "user", "pack")

# URL route segment per owner kind (see core/sticker_server.py)
_URL_SEGMENT = {"guild": "g", "user": "u", "pack": "p"}

# Same character set the :name: message trigger accepts.
STICKER_NAME_RE = re.compile(r"^[a-zA-Z0-9\-_+ ]{1,32}$")


def is_valid_sticker_name(name: str) -> bool:
    return bool(STICKER_NAME_RE.match(name or "")) and name.strip() == name


def normalize_pack_prefix(prefix: str) -> str:
    s = (prefix or "").strip().lower()
    s = re.sub(r"[^a-z0-9_\-]", "_", s)
    s = re.sub(r"_+", "_", s).strip("_-")
    return s[:48] if s else ""


@dataclass(frozen=True)
class StickerOwner:
    kind: OwnerKind
    id: int
    # Packs are addressed by prefix in self-hosted paths; guilds/users by id.
    pack_prefix: Optional[str] = None

    def __post_init__(self) -> None:
        if self.kind not in OWNER_KINDS:
            raise ValueError(f"unknown sticker owner kind: {self.kind!r}")
        if self.kind == "pack" and not self.pack_prefix:
            raise ValueError("pack-owned stickers need the pack prefix")

    @classmethod
    def guild(cls, guild_id: int) -> "StickerOwner":
        return cls("guild", int(guild_id))

    @classmethod
    def user(cls, user_id: int) -> "StickerOwner":
        return cls("user", int(user_id))

    @classmethod
    def pack(cls, pack_id: int, prefix: str) -> "StickerOwner":
        return cls("pack", int(pack_id), pack_prefix=prefix)

    @property
    def path_key(self) -> str:
        return str(self.pack_prefix) if self.kind == "pack" else str(self.id)


@dataclass(frozen=True)
class Sticker:
    id: int
    name: str
    owner: StickerOwner
    image_url: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.owner, StickerOwner):
            raise ValueError(f"sticker {self.name!r} has no owner scope")

    @property
    def is_self_hosted(self) -> bool:
        return not self.image_url

    def image_path(self) -> Optional[str]:
        """Relative path of a self-hosted image (None for external stickers)."""
        if not self.is_self_hosted:
            return None
        return f"stickers/{self.owner.kind}/{self.owner.path_key}/{self.name}.png"

    def public_url(self, base_url: Optional[str]) -> str:
        """URL the image can be fetched from.

        Raises ResourceUnavailable for a self-hosted sticker when no base URL is
        configured: the record exists, it just cannot be rendered.
        """
        if self.image_url:
            return self.image_url
        base = (base_url or "").strip().rstrip("/")
        if not base:
            raise ResourceUnavailable(
                f"sticker {self.name!r} is self-hosted but no STICKER_BASE_URL is configured"
            )
        seg = _URL_SEGMENT[self.owner.kind]
        key = quote(self.owner.path_key, safe="")
        return f"{base}/{seg}/{key}/{quote(self.name, safe='')}.png"


@dataclass(frozen=True)
class PackRef:
    id: int
    prefix: str
    display_name: Optional[str] = None

    @property
    def label(self) -> str:
        return self.display_name or self.prefix


@dataclass(frozen=True)
class GuildSettings:
    guild_id: int
    personal_allowed: bool
    manager_role_id: Optional[int] = None
