from __future__ import annotations

"""Storage-independent registry contract used by the resolver and the admin cogs.

Two interchangeable backings exist:
  - utils.memory_registry.InMemoryStickerRegistry
  - utils.sticker_store.SqlStickerRegistry

Every read may raise core.errors.LookupFailure. Implementations must never
return an empty result in place of a failure.
"""

from abc import ABC, abstractmethod
from typing import Mapping, Optional, Sequence

from utils.stickers import GuildSettings, PackRef, RoleClass, Sticker, StickerOwner


class StickerRegistry(ABC):
    # ------------------------------------------------------------------
    # Read contract
    # ------------------------------------------------------------------

    @abstractmethod
    async def personal_stickers(self, user_id: int) -> Sequence[Sticker]:
        """Stickers owned directly by the user."""

    @abstractmethod
    async def personal_packs(self, user_id: int) -> Sequence[PackRef]:
        """Packs installed by the user, in install order."""

    @abstractmethod
    async def guild_stickers(self, guild_id: int) -> Sequence[Sticker]:
        """Stickers owned directly by the guild."""

    @abstractmethod
    async def guild_packs(self, guild_id: int) -> Sequence[PackRef]:
        """Packs installed in the guild, in install order."""

    @abstractmethod
    async def pack_stickers(self, pack_id: int) -> Sequence[Sticker]:
        ...

    @abstractmethod
    async def role_classification(self, guild_id: int) -> Mapping[int, RoleClass]:
        ...

    @abstractmethod
    async def guild_settings(self, guild_id: int) -> Optional[GuildSettings]:
        """None when the guild was never referenced."""

    @abstractmethod
    async def get_pack(self, prefix: str) -> Optional[PackRef]:
        ...

    @abstractmethod
    async def list_packs(self) -> Sequence[PackRef]:
        ...

    # ------------------------------------------------------------------
    # Administrative writes
    # ------------------------------------------------------------------

    @abstractmethod
    async def ensure_guild(self, guild_id: int) -> GuildSettings:
        """Lazily upsert a guild record with default settings."""

    @abstractmethod
    async def ensure_user(self, user_id: int) -> None:
        ...

    @abstractmethod
    async def set_personal_allowed(self, guild_id: int, allowed: bool) -> None:
        ...

    @abstractmethod
    async def set_manager_role(self, guild_id: int, role_id: Optional[int]) -> None:
        ...

    @abstractmethod
    async def classify_role(self, guild_id: int, role_id: int, role_class: RoleClass) -> None:
        """Whitelist or blacklist a role. Overwrites any previous classification."""

    @abstractmethod
    async def unclassify_role(self, guild_id: int, role_id: int) -> bool:
        ...

    @abstractmethod
    async def create_pack(
        self, prefix: str, *, display_name: Optional[str] = None, creator_id: Optional[int] = None
    ) -> PackRef:
        ...

    @abstractmethod
    async def delete_pack(self, pack_id: int) -> bool:
        """Delete a pack, its stickers and every installation of it."""

    @abstractmethod
    async def add_sticker(
        self,
        owner: StickerOwner,
        name: str,
        *,
        image_url: Optional[str] = None,
        creator_id: Optional[int] = None,
    ) -> Sticker:
        ...

    @abstractmethod
    async def remove_sticker(self, owner: StickerOwner, name: str) -> Optional[Sticker]:
        """Remove and return the sticker, or None if it did not exist."""

    @abstractmethod
    async def install_pack(self, owner: StickerOwner, pack_id: int) -> bool:
        """Install for a guild or user. False if it was already installed."""

    @abstractmethod
    async def uninstall_pack(self, owner: StickerOwner, pack_id: int) -> bool:
        ...

    @abstractmethod
    async def remove_guild(self, guild_id: int) -> None:
        """Drop the guild with its stickers, installs and role classifications."""

    @abstractmethod
    async def remove_user(self, user_id: int) -> None:
        ...


def find_by_name(stickers: Sequence[Sticker], name: str) -> Optional[Sticker]:
    """Exact, case-sensitive, first match."""
    for st in stickers:
        if st.name == name:
            return st
    return None
