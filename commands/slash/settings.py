# commands/slash/settings.py
from __future__ import annotations

import logging
from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

from core.ui import report_command_error, safe_ephemeral_send
from utils.audit import audit_log

logger = logging.getLogger("bot.settings")


def _audit(interaction: discord.Interaction, action: str, *, result: str, fields: Optional[dict] = None) -> None:
    audit_log(
        action,
        guild_id=getattr(interaction.guild, "id", None),
        channel_id=getattr(interaction, "channel_id", None),
        user_id=getattr(interaction.user, "id", None),
        username=getattr(interaction.user, "name", "unknown"),
        command="settings",
        result=result,
        fields=fields or {},
    )


class SlashSettings(commands.Cog):
    def __init__(self, bot: commands.Bot):
        self.bot = bot

    settings = app_commands.Group(
        name="settings",
        description="Sticker settings for this server",
        guild_only=True,
        default_permissions=discord.Permissions(manage_guild=True),
    )

    # ----- General -----

    @settings.command(name="show", description="Show current sticker settings")
    async def settings_show(self, interaction: discord.Interaction):
        gid = int(interaction.guild.id)
        registry = self.bot.registry
        s = await registry.ensure_guild(gid)
        classes = await registry.role_classification(gid)
        packs = await registry.guild_packs(gid)

        white = [f"<@&{rid}>" for rid, c in classes.items() if c == "whitelisted"]
        black = [f"<@&{rid}>" for rid, c in classes.items() if c == "blacklisted"]
        msg = (
            f"**Current settings**\n"
            f"- Personal stickers: `{'allowed' if s.personal_allowed else 'disabled'}`\n"
            f"- Sticker manager role: {f'<@&{s.manager_role_id}>' if s.manager_role_id else '*(none)*'}\n"
            f"- Whitelisted roles: {', '.join(white) if white else '*(none: everyone may use stickers)*'}\n"
            f"- Blacklisted roles: {', '.join(black) if black else '*(none)*'}\n"
            f"- Installed packs: {', '.join(f'`{p.prefix}`' for p in packs) if packs else '*(none)*'}\n"
        )
        await safe_ephemeral_send(interaction, msg[:1900])

    @settings.command(name="personal-stickers", description="Allow or disallow members' personal stickers here")
    @app_commands.checks.has_permissions(manage_guild=True)
    @app_commands.describe(allowed="Whether personal stickers and packs may be used in this server")
    async def settings_personal(self, interaction: discord.Interaction, allowed: bool):
        await self.bot.registry.set_personal_allowed(int(interaction.guild.id), allowed)
        _audit(interaction, "SET_PERSONAL_ALLOWED", result="success", fields={"allowed": bool(allowed)})
        await safe_ephemeral_send(
            interaction, "✅ Personal stickers are now " + ("**allowed**." if allowed else "**disabled**.")
        )

    @settings.command(name="manager-role", description="Set (or clear) the role that may manage server stickers")
    @app_commands.checks.has_permissions(manage_guild=True)
    @app_commands.describe(role="Role allowed to add/remove server stickers and packs (leave empty to clear)")
    async def settings_manager_role(self, interaction: discord.Interaction, role: Optional[discord.Role] = None):
        await self.bot.registry.set_manager_role(int(interaction.guild.id), int(role.id) if role else None)
        _audit(interaction, "SET_MANAGER_ROLE", result="success", fields={"role_id": int(role.id) if role else None})
        if role:
            await safe_ephemeral_send(interaction, f"✅ Sticker manager role set to {role.mention}.")
        else:
            await safe_ephemeral_send(interaction, "✅ Sticker manager role cleared.")

    # ----- Access lists -----

    @settings.command(name="whitelist-role", description="Only members with a whitelisted role may use stickers")
    @app_commands.checks.has_permissions(manage_guild=True)
    async def settings_whitelist_role(self, interaction: discord.Interaction, role: discord.Role):
        await self.bot.registry.classify_role(int(interaction.guild.id), int(role.id), "whitelisted")
        _audit(interaction, "CLASSIFY_ROLE", result="success", fields={"role_id": int(role.id), "class": "whitelisted"})
        await safe_ephemeral_send(interaction, f"✅ {role.mention} is now whitelisted.")

    @settings.command(name="blacklist-role", description="Members with a blacklisted role may never use stickers")
    @app_commands.checks.has_permissions(manage_guild=True)
    async def settings_blacklist_role(self, interaction: discord.Interaction, role: discord.Role):
        await self.bot.registry.classify_role(int(interaction.guild.id), int(role.id), "blacklisted")
        _audit(interaction, "CLASSIFY_ROLE", result="success", fields={"role_id": int(role.id), "class": "blacklisted"})
        await safe_ephemeral_send(interaction, f"✅ {role.mention} is now blacklisted.")

    @settings.command(name="unclassify-role", description="Remove a role from the whitelist/blacklist")
    @app_commands.checks.has_permissions(manage_guild=True)
    async def settings_unclassify_role(self, interaction: discord.Interaction, role: discord.Role):
        ok = await self.bot.registry.unclassify_role(int(interaction.guild.id), int(role.id))
        if ok:
            _audit(interaction, "UNCLASSIFY_ROLE", result="success", fields={"role_id": int(role.id)})
        await safe_ephemeral_send(interaction, "✅ Removed." if ok else "That role is neither whitelisted nor blacklisted.")

    async def cog_app_command_error(self, interaction: discord.Interaction, error: app_commands.AppCommandError) -> None:
        await report_command_error(interaction, error, logger=logger)


async def setup(bot: commands.Bot):
    await bot.add_cog(SlashSettings(bot))
