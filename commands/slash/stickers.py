# commands/slash/stickers.py
from __future__ import annotations

import logging
import re
from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

from core.access import can_manage_stickers
from core.errors import StickerError
from core.ui import report_command_error, safe_defer, safe_ephemeral_send
from utils.audit import audit_log
from utils.prom import commands_total
from utils.sticker_assets import delete_owner_images, delete_sticker_image, save_sticker_image
from utils.stickers import StickerOwner, is_valid_sticker_name

logger = logging.getLogger("bot.stickers")

# A message consisting only of :name: asks for a sticker.
TRIGGER_RE = re.compile(r"^:([a-zA-Z0-9\-_+ ]*):$")

SCOPE_CHOICES = [
    app_commands.Choice(name="This server", value="server"),
    app_commands.Choice(name="Personal (follows you everywhere)", value="personal"),
]


def match_trigger(content: str) -> Optional[str]:
    """Return the sticker name for a ':name:' message, else None."""
    m = TRIGGER_RE.match(content or "")
    if not m or not m.group(1):
        return None
    return m.group(1)


def _audit(interaction: discord.Interaction, action: str, *, result: str, fields: Optional[dict] = None) -> None:
    audit_log(
        action,
        guild_id=getattr(interaction.guild, "id", None),
        channel_id=getattr(interaction, "channel_id", None),
        user_id=getattr(interaction.user, "id", None),
        username=getattr(interaction.user, "name", "unknown"),
        command="sticker",
        result=result,
        fields=fields or {},
    )


async def _ac_sticker(interaction: discord.Interaction, current: str):
    registry = interaction.client.registry  # type: ignore[attr-defined]
    cur = (current or "").lower().strip()
    names: list[str] = []
    try:
        stickers = list(await registry.personal_stickers(int(interaction.user.id)))
        if interaction.guild is not None:
            stickers += list(await registry.guild_stickers(int(interaction.guild.id)))
    except StickerError:
        logger.warning("sticker autocomplete lookup failed", exc_info=True)
        return []
    for s in stickers:
        if s.name in names:
            continue
        if cur and cur not in s.name.lower():
            continue
        names.append(s.name)
        if len(names) >= 25:
            break
    return [app_commands.Choice(name=n, value=n) for n in names]


class SlashStickers(commands.Cog):
    def __init__(self, bot: commands.Bot):
        self.bot = bot

    sticker = app_commands.Group(name="sticker", description="Add, remove and list stickers")

    # ----- Delivery -----

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message):
        if message.author.bot or message.webhook_id is not None:
            return
        name = match_trigger(message.content)
        if name is None:
            return
        logger.info("Sticker requested: :%s:", name)
        try:
            await self.bot.delivery.send_sticker(message.channel, name, message.author)
        except StickerError:
            logger.exception("Error sending sticker :%s: in channel %s", name, message.channel.id)

    @commands.Cog.listener()
    async def on_app_command_completion(self, interaction: discord.Interaction, command):
        commands_total.labels(command=command.qualified_name, status="ok").inc()

    @app_commands.command(name="st", description="Send a sticker")
    @app_commands.describe(sticker="The sticker to send")
    @app_commands.autocomplete(sticker=_ac_sticker)
    async def st(self, interaction: discord.Interaction, sticker: str):
        await safe_defer(interaction, ephemeral=True)
        sent = await self.bot.delivery.send_sticker(interaction.channel, sticker, interaction.user)
        if sent is None:
            await safe_ephemeral_send(interaction, f"Error: no sticker named `{sticker}` is available here.")
            return
        await safe_ephemeral_send(interaction, "❤")

    # ----- Management -----

    async def _owner_for(self, interaction: discord.Interaction, scope: str) -> Optional[StickerOwner]:
        """Resolve the target scope, replying with the reason when not permitted."""
        if scope == "personal":
            await self.bot.registry.ensure_user(int(interaction.user.id))
            return StickerOwner.user(int(interaction.user.id))

        if interaction.guild is None:
            await safe_ephemeral_send(interaction, "Server stickers can only be managed inside a server.")
            return None
        settings = await self.bot.registry.ensure_guild(int(interaction.guild.id))
        if not can_manage_stickers(interaction.user, settings.manager_role_id):
            await safe_ephemeral_send(
                interaction,
                "You need **Manage Server** or this server's sticker manager role to do that.",
            )
            return None
        return StickerOwner.guild(int(interaction.guild.id))

    @sticker.command(name="add", description="Add a sticker from an uploaded image or an image URL")
    @app_commands.describe(
        name="Sticker name (letters, digits, space, - _ +)",
        scope="Where the sticker lives",
        image="Image to upload (stored by the bot)",
        url="Link to an existing image (used as-is)",
    )
    @app_commands.choices(scope=SCOPE_CHOICES)
    async def sticker_add(
        self,
        interaction: discord.Interaction,
        name: str,
        scope: app_commands.Choice[str],
        image: Optional[discord.Attachment] = None,
        url: Optional[str] = None,
    ):
        if not is_valid_sticker_name(name):
            await safe_ephemeral_send(
                interaction,
                "Invalid name. Use 1-32 letters, digits, spaces, `-`, `_` or `+` (no leading/trailing spaces).",
            )
            return
        if (image is None) == (not url):
            await safe_ephemeral_send(interaction, "Provide exactly one of `image` or `url`.")
            return
        if url and not url.strip().lower().startswith(("https://", "http://")):
            await safe_ephemeral_send(interaction, "The URL must start with https:// or http://.")
            return

        await safe_defer(interaction, ephemeral=True)
        owner = await self._owner_for(interaction, scope.value)
        if owner is None:
            return

        created = await self.bot.registry.add_sticker(
            owner,
            name,
            image_url=url.strip() if url else None,
            creator_id=int(interaction.user.id),
        )

        if image is not None:
            ok, msg, _ = await save_sticker_image(attachment=image, owner=owner, name=name)
            if not ok:
                # No image on disk: drop the record so the name can be reused.
                await self.bot.registry.remove_sticker(owner, name)
                await safe_ephemeral_send(interaction, f"⚠️ {msg}")
                return

        _audit(
            interaction,
            "STICKER_ADD",
            result="success",
            fields={"scope": owner.kind, "owner_id": owner.id, "sticker": name, "sticker_id": created.id},
        )
        await safe_ephemeral_send(interaction, f"✅ Added `:{name}:` ({scope.name.lower()}).")

    @sticker.command(name="remove", description="Remove a sticker")
    @app_commands.describe(name="Sticker name", scope="Where the sticker lives")
    @app_commands.choices(scope=SCOPE_CHOICES)
    async def sticker_remove(self, interaction: discord.Interaction, name: str, scope: app_commands.Choice[str]):
        owner = await self._owner_for(interaction, scope.value)
        if owner is None:
            return
        removed = await self.bot.registry.remove_sticker(owner, name)
        if removed is None:
            await safe_ephemeral_send(interaction, f"No sticker named `{name}` there.")
            return
        delete_sticker_image(removed)
        _audit(
            interaction,
            "STICKER_REMOVE",
            result="success",
            fields={"scope": owner.kind, "owner_id": owner.id, "sticker": name, "sticker_id": removed.id},
        )
        await safe_ephemeral_send(interaction, f"✅ Removed `:{name}:`.")

    @sticker.command(name="list", description="List stickers you can use here")
    async def sticker_list(self, interaction: discord.Interaction):
        registry = self.bot.registry
        uid = int(interaction.user.id)
        lines: list[str] = []

        personal = await registry.personal_stickers(uid)
        lines.append("**Personal:** " + (", ".join(f"`{s.name}`" for s in personal) or "*(none)*"))
        for p in await registry.personal_packs(uid):
            names = ", ".join(f"`{s.name}`" for s in await registry.pack_stickers(p.id))
            lines.append(f"• pack **{p.label}**: {names or '*(empty)*'}")

        if interaction.guild is not None:
            gid = int(interaction.guild.id)
            settings = await registry.guild_settings(gid)
            server = await registry.guild_stickers(gid)
            lines.append("**Server:** " + (", ".join(f"`{s.name}`" for s in server) or "*(none)*"))
            for p in await registry.guild_packs(gid):
                names = ", ".join(f"`{s.name}`" for s in await registry.pack_stickers(p.id))
                lines.append(f"• pack **{p.label}**: {names or '*(empty)*'}")
            if settings is not None and not settings.personal_allowed:
                lines.append("*Personal stickers are disabled in this server.*")

        await safe_ephemeral_send(interaction, "\n".join(lines)[:1900])

    @sticker.command(name="forget-me", description="Delete all your personal stickers and pack installs")
    async def sticker_forget_me(self, interaction: discord.Interaction):
        uid = int(interaction.user.id)
        personal = await self.bot.registry.personal_stickers(uid)
        await self.bot.registry.remove_user(uid)
        delete_owner_images(StickerOwner.user(uid))
        _audit(interaction, "STICKER_FORGET_ME", result="success", fields={"removed": len(personal)})
        await safe_ephemeral_send(interaction, f"✅ Deleted {len(personal)} personal sticker(s) and your pack installs.")

    async def cog_app_command_error(self, interaction: discord.Interaction, error: app_commands.AppCommandError) -> None:
        await report_command_error(interaction, error, logger=logger)


async def setup(bot: commands.Bot):
    await bot.add_cog(SlashStickers(bot))
