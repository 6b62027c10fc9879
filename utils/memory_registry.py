from __future__ import annotations

"""In-memory sticker registry.

One explicitly owned instance per bot (or per test). Reads return snapshots
(tuples / dict copies) taken under the lock; each administrative write holds
the lock only for the single map mutation. The lock is a threading.Lock and
is never held across an await.
"""

import itertools
import threading
from dataclasses import dataclass, field, replace
from typing import Mapping, Optional, Sequence

from core.errors import StickerConflict
from utils.sticker_registry import StickerRegistry
from utils.stickers import (
    GuildSettings,
    PackRef,
    RoleClass,
    Sticker,
    StickerOwner,
    normalize_pack_prefix,
)


@dataclass
class _Scope:
    stickers: list[Sticker] = field(default_factory=list)
    packs: list[int] = field(default_factory=list)  # install order


@dataclass
class _Pack:
    ref: PackRef
    stickers: list[Sticker] = field(default_factory=list)


class InMemoryStickerRegistry(StickerRegistry):
    def __init__(self, *, default_personal_allowed: bool = True):
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._default_personal_allowed = bool(default_personal_allowed)

        self._guilds: dict[int, GuildSettings] = {}
        self._guild_scopes: dict[int, _Scope] = {}
        self._roles: dict[int, dict[int, RoleClass]] = {}
        self._users: dict[int, _Scope] = {}
        self._packs: dict[int, _Pack] = {}

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def personal_stickers(self, user_id: int) -> Sequence[Sticker]:
        with self._lock:
            scope = self._users.get(int(user_id))
            return tuple(scope.stickers) if scope else ()

    async def personal_packs(self, user_id: int) -> Sequence[PackRef]:
        with self._lock:
            scope = self._users.get(int(user_id))
            return self._pack_refs(scope)

    async def guild_stickers(self, guild_id: int) -> Sequence[Sticker]:
        with self._lock:
            scope = self._guild_scopes.get(int(guild_id))
            return tuple(scope.stickers) if scope else ()

    async def guild_packs(self, guild_id: int) -> Sequence[PackRef]:
        with self._lock:
            scope = self._guild_scopes.get(int(guild_id))
            return self._pack_refs(scope)

    async def pack_stickers(self, pack_id: int) -> Sequence[Sticker]:
        with self._lock:
            pack = self._packs.get(int(pack_id))
            return tuple(pack.stickers) if pack else ()

    async def role_classification(self, guild_id: int) -> Mapping[int, RoleClass]:
        with self._lock:
            return dict(self._roles.get(int(guild_id), {}))

    async def guild_settings(self, guild_id: int) -> Optional[GuildSettings]:
        with self._lock:
            return self._guilds.get(int(guild_id))

    async def get_pack(self, prefix: str) -> Optional[PackRef]:
        p = normalize_pack_prefix(prefix)
        with self._lock:
            for pack in self._packs.values():
                if pack.ref.prefix == p:
                    return pack.ref
        return None

    async def list_packs(self) -> Sequence[PackRef]:
        with self._lock:
            return tuple(sorted((p.ref for p in self._packs.values()), key=lambda r: r.prefix))

    def _pack_refs(self, scope: Optional[_Scope]) -> tuple[PackRef, ...]:
        if scope is None:
            return ()
        return tuple(self._packs[pid].ref for pid in scope.packs if pid in self._packs)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def ensure_guild(self, guild_id: int) -> GuildSettings:
        gid = int(guild_id)
        with self._lock:
            return self._ensure_guild_locked(gid)

    def _ensure_guild_locked(self, gid: int) -> GuildSettings:
        settings = self._guilds.get(gid)
        if settings is None:
            settings = GuildSettings(guild_id=gid, personal_allowed=self._default_personal_allowed)
            self._guilds[gid] = settings
            self._guild_scopes[gid] = _Scope()
            self._roles[gid] = {}
        return settings

    async def ensure_user(self, user_id: int) -> None:
        with self._lock:
            self._users.setdefault(int(user_id), _Scope())

    async def set_personal_allowed(self, guild_id: int, allowed: bool) -> None:
        gid = int(guild_id)
        with self._lock:
            settings = self._ensure_guild_locked(gid)
            self._guilds[gid] = replace(settings, personal_allowed=bool(allowed))

    async def set_manager_role(self, guild_id: int, role_id: Optional[int]) -> None:
        gid = int(guild_id)
        with self._lock:
            settings = self._ensure_guild_locked(gid)
            self._guilds[gid] = replace(
                settings, manager_role_id=(int(role_id) if role_id else None)
            )

    async def classify_role(self, guild_id: int, role_id: int, role_class: RoleClass) -> None:
        if role_class not in ("whitelisted", "blacklisted"):
            raise ValueError(f"unknown role classification: {role_class!r}")
        gid = int(guild_id)
        with self._lock:
            self._ensure_guild_locked(gid)
            self._roles[gid][int(role_id)] = role_class

    async def unclassify_role(self, guild_id: int, role_id: int) -> bool:
        with self._lock:
            roles = self._roles.get(int(guild_id))
            if not roles or int(role_id) not in roles:
                return False
            del roles[int(role_id)]
            return True

    async def create_pack(
        self, prefix: str, *, display_name: Optional[str] = None, creator_id: Optional[int] = None
    ) -> PackRef:
        p = normalize_pack_prefix(prefix)
        if not p:
            raise ValueError("invalid pack prefix")
        with self._lock:
            if any(pack.ref.prefix == p for pack in self._packs.values()):
                raise StickerConflict(f"pack {p!r} already exists")
            ref = PackRef(id=next(self._ids), prefix=p, display_name=display_name or None)
            self._packs[ref.id] = _Pack(ref=ref)
            return ref

    async def delete_pack(self, pack_id: int) -> bool:
        pid = int(pack_id)
        with self._lock:
            if self._packs.pop(pid, None) is None:
                return False
            for scope in (*self._guild_scopes.values(), *self._users.values()):
                if pid in scope.packs:
                    scope.packs.remove(pid)
            return True

    async def add_sticker(
        self,
        owner: StickerOwner,
        name: str,
        *,
        image_url: Optional[str] = None,
        creator_id: Optional[int] = None,
    ) -> Sticker:
        with self._lock:
            stickers = self._stickers_for_write(owner)
            if any(st.name == name for st in stickers):
                raise StickerConflict(f"sticker {name!r} already exists for this {owner.kind}")
            st = Sticker(id=next(self._ids), name=name, owner=owner, image_url=image_url or None)
            stickers.append(st)
            return st

    async def remove_sticker(self, owner: StickerOwner, name: str) -> Optional[Sticker]:
        with self._lock:
            stickers = self._existing_stickers(owner)
            for i, st in enumerate(stickers):
                if st.name == name:
                    return stickers.pop(i)
        return None

    async def install_pack(self, owner: StickerOwner, pack_id: int) -> bool:
        pid = int(pack_id)
        with self._lock:
            if pid not in self._packs:
                raise StickerConflict(f"pack {pid} does not exist")
            scope = self._scope_for_write(owner)
            if pid in scope.packs:
                return False
            scope.packs.append(pid)
            return True

    async def uninstall_pack(self, owner: StickerOwner, pack_id: int) -> bool:
        pid = int(pack_id)
        with self._lock:
            scope = self._existing_scope(owner)
            if scope is None or pid not in scope.packs:
                return False
            scope.packs.remove(pid)
            return True

    async def remove_guild(self, guild_id: int) -> None:
        gid = int(guild_id)
        with self._lock:
            self._guilds.pop(gid, None)
            self._guild_scopes.pop(gid, None)
            self._roles.pop(gid, None)

    async def remove_user(self, user_id: int) -> None:
        with self._lock:
            self._users.pop(int(user_id), None)

    # ------------------------------------------------------------------
    # Lock-held helpers
    # ------------------------------------------------------------------

    def _scope_for_write(self, owner: StickerOwner) -> _Scope:
        if owner.kind == "guild":
            self._ensure_guild_locked(owner.id)
            return self._guild_scopes[owner.id]
        if owner.kind == "user":
            return self._users.setdefault(owner.id, _Scope())
        raise ValueError("packs cannot install other packs")

    def _existing_scope(self, owner: StickerOwner) -> Optional[_Scope]:
        if owner.kind == "guild":
            return self._guild_scopes.get(owner.id)
        if owner.kind == "user":
            return self._users.get(owner.id)
        raise ValueError("packs cannot install other packs")

    def _stickers_for_write(self, owner: StickerOwner) -> list[Sticker]:
        if owner.kind == "pack":
            pack = self._packs.get(owner.id)
            if pack is None:
                raise StickerConflict(f"pack {owner.id} does not exist")
            return pack.stickers
        return self._scope_for_write(owner).stickers

    def _existing_stickers(self, owner: StickerOwner) -> list[Sticker]:
        if owner.kind == "pack":
            pack = self._packs.get(owner.id)
            return pack.stickers if pack else []
        scope = self._existing_scope(owner)
        return scope.stickers if scope else []
