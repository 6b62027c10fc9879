from __future__ import annotations

"""Durable sticker registry on top of async SQLAlchemy.

Each lookup opens its own session and performs one independent read; the
resolver does not need multi-step resolution to be transactionally atomic.
Database errors surface as LookupFailure (reads and writes) and unique
constraint violations on writes as StickerConflict.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Mapping, Optional, Sequence

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.errors import LookupFailure, StickerConflict
from utils import models as m
from utils.db import get_sessionmaker
from utils.sticker_registry import StickerRegistry
from utils.stickers import (
    GuildSettings,
    PackRef,
    RoleClass,
    Sticker,
    StickerOwner,
    normalize_pack_prefix,
)

log = logging.getLogger("bot.sticker_store")


def _to_sticker(row: m.Sticker, pack_prefix: Optional[str] = None) -> Sticker:
    if row.guild_id is not None:
        owner = StickerOwner.guild(row.guild_id)
    elif row.user_id is not None:
        owner = StickerOwner.user(row.user_id)
    elif row.pack_id is not None:
        owner = StickerOwner.pack(row.pack_id, str(pack_prefix or ""))
    else:
        raise ValueError(f"sticker {row.id} ({row.name!r}) has no owner scope")
    return Sticker(
        id=int(row.id),
        name=str(row.name),
        owner=owner,
        image_url=(str(row.image_url) if row.image_url else None),
    )


def _to_pack(row: m.StickerPack) -> PackRef:
    return PackRef(
        id=int(row.id),
        prefix=str(row.prefix),
        display_name=(str(row.display_name) if row.display_name else None),
    )


def _to_settings(row: m.GuildData) -> GuildSettings:
    return GuildSettings(
        guild_id=int(row.id),
        personal_allowed=bool(row.personal_allowed),
        manager_role_id=(int(row.manager_role) if row.manager_role else None),
    )


class SqlStickerRegistry(StickerRegistry):
    def __init__(
        self,
        sessionmaker: Optional[async_sessionmaker] = None,
        *,
        default_personal_allowed: bool = True,
    ):
        self._Session = sessionmaker or get_sessionmaker()
        self._default_personal_allowed = bool(default_personal_allowed)

    @asynccontextmanager
    async def _session(self, what: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._Session() as session:
                yield session
        except IntegrityError as e:
            raise StickerConflict(f"{what}: {e.orig}") from e
        except (SQLAlchemyError, OSError) as e:
            log.warning("sticker store %s failed: %s", what, e)
            raise LookupFailure(f"{what} failed") from e

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def personal_stickers(self, user_id: int) -> Sequence[Sticker]:
        async with self._session("personal_stickers") as session:
            res = await session.execute(
                select(m.Sticker).where(m.Sticker.user_id == int(user_id)).order_by(m.Sticker.id)
            )
            return tuple(_to_sticker(r) for r in res.scalars().all())

    async def personal_packs(self, user_id: int) -> Sequence[PackRef]:
        async with self._session("personal_packs") as session:
            res = await session.execute(
                select(m.StickerPack)
                .join(m.UserPackRel, m.UserPackRel.pack_id == m.StickerPack.id)
                .where(m.UserPackRel.user_id == int(user_id))
                .order_by(m.UserPackRel.id)
            )
            return tuple(_to_pack(r) for r in res.scalars().all())

    async def guild_stickers(self, guild_id: int) -> Sequence[Sticker]:
        async with self._session("guild_stickers") as session:
            res = await session.execute(
                select(m.Sticker).where(m.Sticker.guild_id == int(guild_id)).order_by(m.Sticker.id)
            )
            return tuple(_to_sticker(r) for r in res.scalars().all())

    async def guild_packs(self, guild_id: int) -> Sequence[PackRef]:
        async with self._session("guild_packs") as session:
            res = await session.execute(
                select(m.StickerPack)
                .join(m.GuildPackRel, m.GuildPackRel.pack_id == m.StickerPack.id)
                .where(m.GuildPackRel.guild_id == int(guild_id))
                .order_by(m.GuildPackRel.id)
            )
            return tuple(_to_pack(r) for r in res.scalars().all())

    async def pack_stickers(self, pack_id: int) -> Sequence[Sticker]:
        async with self._session("pack_stickers") as session:
            res = await session.execute(
                select(m.Sticker, m.StickerPack.prefix)
                .join(m.StickerPack, m.StickerPack.id == m.Sticker.pack_id)
                .where(m.Sticker.pack_id == int(pack_id))
                .order_by(m.Sticker.id)
            )
            return tuple(_to_sticker(row, prefix) for row, prefix in res.all())

    async def role_classification(self, guild_id: int) -> Mapping[int, RoleClass]:
        async with self._session("role_classification") as session:
            res = await session.execute(select(m.Role).where(m.Role.guild_id == int(guild_id)))
            return {
                int(r.id): ("whitelisted" if r.whitelisted else "blacklisted")
                for r in res.scalars().all()
            }

    async def guild_settings(self, guild_id: int) -> Optional[GuildSettings]:
        async with self._session("guild_settings") as session:
            row = await session.get(m.GuildData, int(guild_id))
            return _to_settings(row) if row else None

    async def get_pack(self, prefix: str) -> Optional[PackRef]:
        p = normalize_pack_prefix(prefix)
        if not p:
            return None
        async with self._session("get_pack") as session:
            res = await session.execute(select(m.StickerPack).where(m.StickerPack.prefix == p).limit(1))
            row = res.scalars().first()
            return _to_pack(row) if row else None

    async def list_packs(self) -> Sequence[PackRef]:
        async with self._session("list_packs") as session:
            res = await session.execute(select(m.StickerPack).order_by(m.StickerPack.prefix))
            return tuple(_to_pack(r) for r in res.scalars().all())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def _guild_row(self, session: AsyncSession, guild_id: int) -> m.GuildData:
        row = await session.get(m.GuildData, int(guild_id))
        if row is None:
            row = m.GuildData(id=int(guild_id), personal_allowed=self._default_personal_allowed)
            session.add(row)
            await session.flush()
        return row

    async def _user_row(self, session: AsyncSession, user_id: int) -> m.UserData:
        row = await session.get(m.UserData, int(user_id))
        if row is None:
            row = m.UserData(id=int(user_id))
            session.add(row)
            await session.flush()
        return row

    async def _pack_row(self, session: AsyncSession, pack_id: int) -> m.StickerPack:
        row = await session.get(m.StickerPack, int(pack_id))
        if row is None:
            raise StickerConflict(f"pack {pack_id} does not exist")
        return row

    async def ensure_guild(self, guild_id: int) -> GuildSettings:
        async with self._session("ensure_guild") as session:
            row = await self._guild_row(session, guild_id)
            settings = _to_settings(row)
            await session.commit()
            return settings

    async def ensure_user(self, user_id: int) -> None:
        async with self._session("ensure_user") as session:
            await self._user_row(session, user_id)
            await session.commit()

    async def set_personal_allowed(self, guild_id: int, allowed: bool) -> None:
        async with self._session("set_personal_allowed") as session:
            row = await self._guild_row(session, guild_id)
            row.personal_allowed = bool(allowed)
            await session.commit()

    async def set_manager_role(self, guild_id: int, role_id: Optional[int]) -> None:
        async with self._session("set_manager_role") as session:
            row = await self._guild_row(session, guild_id)
            row.manager_role = int(role_id) if role_id else None
            await session.commit()

    async def classify_role(self, guild_id: int, role_id: int, role_class: RoleClass) -> None:
        if role_class not in ("whitelisted", "blacklisted"):
            raise ValueError(f"unknown role classification: {role_class!r}")
        async with self._session("classify_role") as session:
            await self._guild_row(session, guild_id)
            row = await session.get(m.Role, int(role_id))
            if row is None:
                session.add(
                    m.Role(
                        id=int(role_id),
                        guild_id=int(guild_id),
                        whitelisted=(role_class == "whitelisted"),
                    )
                )
            else:
                row.guild_id = int(guild_id)
                row.whitelisted = role_class == "whitelisted"
            await session.commit()

    async def unclassify_role(self, guild_id: int, role_id: int) -> bool:
        async with self._session("unclassify_role") as session:
            res = await session.execute(
                delete(m.Role).where(m.Role.id == int(role_id)).where(m.Role.guild_id == int(guild_id))
            )
            await session.commit()
            return (res.rowcount or 0) > 0

    async def create_pack(
        self, prefix: str, *, display_name: Optional[str] = None, creator_id: Optional[int] = None
    ) -> PackRef:
        p = normalize_pack_prefix(prefix)
        if not p:
            raise ValueError("invalid pack prefix")
        async with self._session("create_pack") as session:
            row = m.StickerPack(
                prefix=p,
                display_name=(display_name or None),
                creator=(int(creator_id) if creator_id else None),
            )
            session.add(row)
            await session.flush()
            ref = _to_pack(row)
            await session.commit()
            return ref

    async def delete_pack(self, pack_id: int) -> bool:
        pid = int(pack_id)
        async with self._session("delete_pack") as session:
            await session.execute(delete(m.GuildPackRel).where(m.GuildPackRel.pack_id == pid))
            await session.execute(delete(m.UserPackRel).where(m.UserPackRel.pack_id == pid))
            await session.execute(delete(m.Sticker).where(m.Sticker.pack_id == pid))
            res = await session.execute(delete(m.StickerPack).where(m.StickerPack.id == pid))
            await session.commit()
            return (res.rowcount or 0) > 0

    async def add_sticker(
        self,
        owner: StickerOwner,
        name: str,
        *,
        image_url: Optional[str] = None,
        creator_id: Optional[int] = None,
    ) -> Sticker:
        async with self._session("add_sticker") as session:
            row = m.Sticker(
                name=str(name),
                image_url=(image_url or None),
                creator=(int(creator_id) if creator_id else None),
            )
            prefix = None
            if owner.kind == "guild":
                await self._guild_row(session, owner.id)
                row.guild_id = owner.id
            elif owner.kind == "user":
                await self._user_row(session, owner.id)
                row.user_id = owner.id
            else:
                prefix = (await self._pack_row(session, owner.id)).prefix
                row.pack_id = owner.id
            session.add(row)
            await session.flush()
            sticker = _to_sticker(row, prefix)
            await session.commit()
            log.info("Added %s sticker %r (owner=%s)", owner.kind, sticker.name, owner.path_key)
            return sticker

    async def remove_sticker(self, owner: StickerOwner, name: str) -> Optional[Sticker]:
        col = {
            "guild": m.Sticker.guild_id,
            "user": m.Sticker.user_id,
            "pack": m.Sticker.pack_id,
        }[owner.kind]
        async with self._session("remove_sticker") as session:
            res = await session.execute(
                select(m.Sticker).where(col == owner.id).where(m.Sticker.name == str(name)).limit(1)
            )
            row = res.scalars().first()
            if row is None:
                return None
            sticker = _to_sticker(row, owner.pack_prefix)
            await session.delete(row)
            await session.commit()
            return sticker

    async def install_pack(self, owner: StickerOwner, pack_id: int) -> bool:
        pid = int(pack_id)
        async with self._session("install_pack") as session:
            await self._pack_row(session, pid)
            if owner.kind == "guild":
                await self._guild_row(session, owner.id)
                existing = await session.execute(
                    select(m.GuildPackRel.id)
                    .where(m.GuildPackRel.guild_id == owner.id)
                    .where(m.GuildPackRel.pack_id == pid)
                )
                rel = m.GuildPackRel(guild_id=owner.id, pack_id=pid)
            elif owner.kind == "user":
                await self._user_row(session, owner.id)
                existing = await session.execute(
                    select(m.UserPackRel.id)
                    .where(m.UserPackRel.user_id == owner.id)
                    .where(m.UserPackRel.pack_id == pid)
                )
                rel = m.UserPackRel(user_id=owner.id, pack_id=pid)
            else:
                raise ValueError("packs cannot install other packs")

            if existing.first() is not None:
                return False
            session.add(rel)
            await session.commit()
            return True

    async def uninstall_pack(self, owner: StickerOwner, pack_id: int) -> bool:
        pid = int(pack_id)
        if owner.kind == "guild":
            stmt = delete(m.GuildPackRel).where(m.GuildPackRel.guild_id == owner.id)
            stmt = stmt.where(m.GuildPackRel.pack_id == pid)
        elif owner.kind == "user":
            stmt = delete(m.UserPackRel).where(m.UserPackRel.user_id == owner.id)
            stmt = stmt.where(m.UserPackRel.pack_id == pid)
        else:
            raise ValueError("packs cannot install other packs")
        async with self._session("uninstall_pack") as session:
            res = await session.execute(stmt)
            await session.commit()
            return (res.rowcount or 0) > 0

    async def remove_guild(self, guild_id: int) -> None:
        gid = int(guild_id)
        async with self._session("remove_guild") as session:
            await session.execute(delete(m.Sticker).where(m.Sticker.guild_id == gid))
            await session.execute(delete(m.GuildPackRel).where(m.GuildPackRel.guild_id == gid))
            await session.execute(delete(m.Role).where(m.Role.guild_id == gid))
            await session.execute(delete(m.GuildData).where(m.GuildData.id == gid))
            await session.commit()
        log.info("Removed guild %s and its sticker data", gid)

    async def remove_user(self, user_id: int) -> None:
        uid = int(user_id)
        async with self._session("remove_user") as session:
            await session.execute(delete(m.Sticker).where(m.Sticker.user_id == uid))
            await session.execute(delete(m.UserPackRel).where(m.UserPackRel.user_id == uid))
            await session.execute(delete(m.UserData).where(m.UserData.id == uid))
            await session.commit()
        log.info("Removed user %s and their sticker data", uid)
