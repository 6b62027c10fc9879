from __future__ import annotations

import logging
from typing import Protocol

import discord

from core.errors import LookupFailure

log = logging.getLogger("bot.roles")


class RoleSource(Protocol):
    async def roles_of(self, user_id: int, guild_id: int) -> frozenset[int]:
        ...


class DiscordRoleSource:
    """Role membership straight from Discord (member cache first, then the API).

    One call returns the member's whole role set, so the access gate needs a
    single fetch per evaluation.
    """

    def __init__(self, client: discord.Client):
        self.client = client

    async def roles_of(self, user_id: int, guild_id: int) -> frozenset[int]:
        guild = self.client.get_guild(int(guild_id))
        if guild is None:
            raise LookupFailure(f"guild {guild_id} is not available to this bot")

        member = guild.get_member(int(user_id))
        if member is None:
            try:
                member = await guild.fetch_member(int(user_id))
            except discord.NotFound:
                # Not a member: holds no roles in this guild.
                return frozenset()
            except discord.HTTPException as e:
                log.warning("fetch_member failed guild=%s user=%s: %s", guild_id, user_id, e)
                raise LookupFailure(f"could not fetch roles for user {user_id}") from e

        return frozenset(int(r.id) for r in member.roles)
