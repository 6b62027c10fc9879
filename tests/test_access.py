"""Access checks: the sticker-use gate and management permissions."""
from __future__ import annotations

from unittest.mock import MagicMock

import discord
import pytest

from core.access import can_manage_stickers, is_allowed, is_bot_owner


@pytest.mark.parametrize(
    "classification, roles, expected",
    [
        ({}, set(), True),
        ({}, {1, 2}, True),
        ({1: "blacklisted"}, set(), True),
        ({1: "blacklisted"}, {1}, False),
        ({1: "blacklisted", 2: "whitelisted"}, {1, 2}, False),
        ({2: "whitelisted"}, set(), False),
        ({2: "whitelisted"}, {3}, False),
        ({2: "whitelisted"}, {2, 3}, True),
        ({2: "whitelisted", 4: "whitelisted"}, {4}, True),
        ({2: "whitelisted", 5: "blacklisted"}, {3}, False),
    ],
)
def test_is_allowed(classification, roles, expected):
    assert is_allowed(classification, roles) is expected


def _member(*, manage_guild=False, administrator=False, role_ids=()):
    member = MagicMock(spec=discord.Member)
    member.guild_permissions = discord.Permissions(manage_guild=manage_guild, administrator=administrator)
    member.roles = [MagicMock(id=rid) for rid in role_ids]
    return member


def test_manage_guild_can_manage():
    assert can_manage_stickers(_member(manage_guild=True), None)
    assert can_manage_stickers(_member(administrator=True), None)


def test_manager_role_can_manage():
    assert can_manage_stickers(_member(role_ids=[10, 20]), 20)
    assert not can_manage_stickers(_member(role_ids=[10]), 20)
    assert not can_manage_stickers(_member(role_ids=[10]), None)


def test_non_member_cannot_manage():
    user = MagicMock(spec=discord.User)
    assert not can_manage_stickers(user, 20)


def test_is_bot_owner(monkeypatch):
    import config

    monkeypatch.setattr(config, "BOT_OWNER_IDS", {42})
    assert is_bot_owner(42)
    assert is_bot_owner(MagicMock(id=42))
    assert not is_bot_owner(43)
    assert not is_bot_owner("not-an-id")

    monkeypatch.setattr(config, "BOT_OWNER_IDS", set())
    assert not is_bot_owner(42)
