"""
core/resolver.py

Sticker resolution: given (name, requester, optional guild), pick at most one
sticker.

Order inside a guild, first hit wins:
  1) access gate (blacklist / whitelist roles); denied -> no match
  2) requester's personal stickers and packs, if the guild allows them
  3) the guild's own stickers
  4) the guild's installed packs, in install order

Outside a guild only step 2 runs. Matching is exact and case-sensitive.
Denial and absence both come back as None. Collaborator failures
(LookupFailure) propagate untouched.
"""

from __future__ import annotations

import logging
import time
from typing import Optional, Sequence

from core.access import is_allowed
from utils.prom import sticker_resolution_latency, sticker_resolutions_total
from utils.roles import RoleSource
from utils.sticker_registry import StickerRegistry, find_by_name
from utils.stickers import GuildSettings, PackRef, Sticker

logger = logging.getLogger("bot.resolver")


class StickerResolver:
    def __init__(
        self,
        registry: StickerRegistry,
        role_source: RoleSource,
        *,
        default_personal_allowed: bool = True,
    ):
        self.registry = registry
        self.role_source = role_source
        self.default_personal_allowed = bool(default_personal_allowed)

    async def resolve(
        self, name: str, requester_id: int, guild_id: Optional[int] = None
    ) -> Optional[Sticker]:
        context = "guild" if guild_id is not None else "personal"
        started = time.perf_counter()
        try:
            sticker, outcome = await self._resolve(name, int(requester_id), guild_id)
        except Exception:
            sticker_resolutions_total.labels(outcome="error", context=context).inc()
            raise
        finally:
            sticker_resolution_latency.observe(time.perf_counter() - started)

        sticker_resolutions_total.labels(outcome=outcome, context=context).inc()
        logger.debug(
            "resolve name=%r user=%s guild=%s -> %s",
            name, requester_id, guild_id, outcome if sticker is None else f"{sticker.owner.kind}:{sticker.id}",
        )
        return sticker

    async def _resolve(
        self, name: str, requester_id: int, guild_id: Optional[int]
    ) -> tuple[Optional[Sticker], str]:
        if guild_id is None:
            hit = await self.resolve_personal(name, requester_id)
            return hit, ("hit" if hit else "miss")

        gid = int(guild_id)
        if not await self.allowed(gid, requester_id):
            return None, "denied"

        settings = await self.registry.guild_settings(gid)
        if settings is None:
            # Never referenced: behaves like an empty guild with default settings.
            settings = GuildSettings(guild_id=gid, personal_allowed=self.default_personal_allowed)

        if settings.personal_allowed:
            hit = await self.resolve_personal(name, requester_id)
            if hit is not None:
                return hit, "hit"

        hit = find_by_name(await self.registry.guild_stickers(gid), name)
        if hit is not None:
            return hit, "hit"

        hit = await self._first_in_packs(await self.registry.guild_packs(gid), name)
        return hit, ("hit" if hit else "miss")

    async def allowed(self, guild_id: int, requester_id: int) -> bool:
        """Access gate for one member of one guild.

        Role membership is fetched once, and only when the guild classifies
        any roles at all.
        """
        classification = await self.registry.role_classification(int(guild_id))
        if not classification:
            return True
        roles = await self.role_source.roles_of(int(requester_id), int(guild_id))
        return is_allowed(classification, roles)

    async def resolve_personal(self, name: str, user_id: int) -> Optional[Sticker]:
        hit = find_by_name(await self.registry.personal_stickers(int(user_id)), name)
        if hit is not None:
            return hit
        return await self._first_in_packs(await self.registry.personal_packs(int(user_id)), name)

    async def _first_in_packs(self, packs: Sequence[PackRef], name: str) -> Optional[Sticker]:
        for pack in packs:
            hit = find_by_name(await self.registry.pack_stickers(pack.id), name)
            if hit is not None:
                return hit
        return None
