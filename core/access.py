"""
core/access.py

Centralized access checks.

  - is_allowed: the sticker-use gate evaluated before any lookup in a guild.
    Blacklist is absolute; an empty whitelist means everyone may use stickers.
  - can_manage_stickers: who may edit a guild's stickers and installed packs.
  - is_bot_owner: who may create and delete sticker packs.
"""

from __future__ import annotations

from typing import Iterable, Mapping, Optional

import discord

import config

from utils.stickers import RoleClass


def is_allowed(classification: Mapping[int, RoleClass], requester_roles: Iterable[int]) -> bool:
    """Return whether a member holding `requester_roles` may use stickers."""
    roles = {int(r) for r in requester_roles}

    # 1) Any blacklisted role blocks, whatever the whitelist says.
    for role_id in roles:
        if classification.get(role_id) == "blacklisted":
            return False

    # 2) No whitelist configured: open to everyone.
    whitelist = {rid for rid, cls in classification.items() if cls == "whitelisted"}
    if not whitelist:
        return True

    # 3) Otherwise a whitelisted role is required.
    return bool(roles & whitelist)


def _has_manage_guild(member: discord.Member) -> bool:
    perms = member.guild_permissions
    return bool(perms.manage_guild or perms.administrator)


def can_manage_stickers(member: discord.abc.User, manager_role_id: Optional[int]) -> bool:
    """Manage-guild/administrator, or holding the guild's sticker manager role."""
    if not isinstance(member, discord.Member):
        return False
    if _has_manage_guild(member):
        return True
    if manager_role_id:
        return any(int(r.id) == int(manager_role_id) for r in member.roles)
    return False


def is_bot_owner(user_or_id) -> bool:
    """Bot owners (BOT_OWNER_IDS) are the only ones who may create/delete packs.

    Accepts a discord User/Member or a raw int ID.
    """
    try:
        user_id = int(getattr(user_or_id, "id", user_or_id))
    except (TypeError, ValueError):
        return False
    return bool(config.BOT_OWNER_IDS) and (user_id in config.BOT_OWNER_IDS)
