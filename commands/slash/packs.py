# commands/slash/packs.py
from __future__ import annotations

import logging
from typing import Any, Optional

import discord
from discord import app_commands
from discord.ext import commands

from core.access import can_manage_stickers, is_bot_owner
from core.errors import StickerError
from core.ui import report_command_error, safe_defer, safe_ephemeral_send, safe_send_embed
from utils.audit import audit_log
from utils.sticker_assets import delete_sticker_image, save_sticker_image
from utils.stickers import PackRef, StickerOwner, is_valid_sticker_name, normalize_pack_prefix

logger = logging.getLogger("bot.packs")

SCOPE_CHOICES = [
    app_commands.Choice(name="This server", value="server"),
    app_commands.Choice(name="Personal (follows you everywhere)", value="personal"),
]


def _owner_only():
    def predicate(interaction: discord.Interaction) -> bool:
        return is_bot_owner(interaction.user)
    return app_commands.check(predicate)


def _audit(interaction: discord.Interaction, action: str, *, result: str, fields: Optional[dict[str, Any]] = None) -> None:
    audit_log(
        action,
        guild_id=getattr(interaction.guild, "id", None),
        channel_id=getattr(interaction, "channel_id", None),
        user_id=getattr(interaction.user, "id", None),
        username=getattr(interaction.user, "name", "unknown"),
        command="pack",
        result=result,
        fields=fields or {},
    )


async def _ac_pack_any(interaction: discord.Interaction, current: str):
    registry = interaction.client.registry  # type: ignore[attr-defined]
    cur = (current or "").lower().strip()
    out: list[app_commands.Choice[str]] = []
    try:
        packs = await registry.list_packs()
    except StickerError:
        logger.warning("pack autocomplete lookup failed", exc_info=True)
        return []
    for p in packs:
        hay = f"{p.prefix} {p.label}".lower()
        if cur and cur not in hay:
            continue
        out.append(app_commands.Choice(name=f"{p.label} ({p.prefix})"[:100], value=p.prefix))
        if len(out) >= 25:
            break
    return out


async def _ac_pack_installed(interaction: discord.Interaction, current: str):
    registry = interaction.client.registry  # type: ignore[attr-defined]
    cur = (current or "").lower().strip()
    try:
        packs = list(await registry.personal_packs(int(interaction.user.id)))
        if interaction.guild is not None:
            packs += [p for p in await registry.guild_packs(int(interaction.guild.id)) if p not in packs]
    except StickerError:
        logger.warning("installed-pack autocomplete lookup failed", exc_info=True)
        return []
    return [
        app_commands.Choice(name=f"{p.label} ({p.prefix})"[:100], value=p.prefix)
        for p in packs
        if not cur or cur in f"{p.prefix} {p.label}".lower()
    ][:25]


def _pack_embed(pack: PackRef, sticker_names: list[str]) -> discord.Embed:
    e = discord.Embed(title=f"📦 {pack.label}", color=discord.Color.blurple())
    e.add_field(name="Prefix", value=f"`{pack.prefix}`", inline=True)
    e.add_field(name="Stickers", value=str(len(sticker_names)), inline=True)
    if sticker_names:
        e.description = ", ".join(f"`{n}`" for n in sticker_names)[:3500]
    else:
        e.description = "*(no stickers yet)*"
    e.set_footer(text=f"/pack install pack:{pack.prefix}")
    return e


class SlashPacks(commands.Cog):
    def __init__(self, bot: commands.Bot):
        self.bot = bot

    pack = app_commands.Group(name="pack", description="Browse, install and curate sticker packs")

    async def _require_pack(self, interaction: discord.Interaction, prefix: str) -> Optional[PackRef]:
        p = normalize_pack_prefix(prefix)
        ref = await self.bot.registry.get_pack(p) if p else None
        if ref is None:
            await safe_ephemeral_send(interaction, "Pack not found. Use `/pack list`.")
        return ref

    async def _install_target(self, interaction: discord.Interaction, scope: str) -> Optional[StickerOwner]:
        if scope == "personal":
            await self.bot.registry.ensure_user(int(interaction.user.id))
            return StickerOwner.user(int(interaction.user.id))
        if interaction.guild is None:
            await safe_ephemeral_send(interaction, "Use this in a server (or pick the personal scope).")
            return None
        settings = await self.bot.registry.ensure_guild(int(interaction.guild.id))
        if not can_manage_stickers(interaction.user, settings.manager_role_id):
            await safe_ephemeral_send(
                interaction,
                "Only members with **Manage Server** or the sticker manager role can manage server packs.",
            )
            return None
        return StickerOwner.guild(int(interaction.guild.id))

    # ----- Browsing -----

    @pack.command(name="list", description="List all sticker packs")
    async def pack_list(self, interaction: discord.Interaction):
        packs = await self.bot.registry.list_packs()
        if not packs:
            await safe_ephemeral_send(interaction, "No sticker packs yet.")
            return
        lines = [f"• **{p.label}** (`{p.prefix}`)" for p in packs]
        await safe_ephemeral_send(interaction, "**Sticker packs:**\n" + "\n".join(lines)[:1900])

    @pack.command(name="info", description="Show the stickers in a pack")
    @app_commands.describe(pack="Pack prefix")
    @app_commands.autocomplete(pack=_ac_pack_any)
    async def pack_info(self, interaction: discord.Interaction, pack: str):
        ref = await self._require_pack(interaction, pack)
        if ref is None:
            return
        stickers = await self.bot.registry.pack_stickers(ref.id)
        await safe_send_embed(interaction, _pack_embed(ref, [s.name for s in stickers]))

    # ----- Installing -----

    @pack.command(name="install", description="Install a pack for this server or for yourself")
    @app_commands.describe(pack="Pack prefix", scope="Install for this server or personally")
    @app_commands.autocomplete(pack=_ac_pack_any)
    @app_commands.choices(scope=SCOPE_CHOICES)
    async def pack_install(self, interaction: discord.Interaction, pack: str, scope: app_commands.Choice[str]):
        ref = await self._require_pack(interaction, pack)
        if ref is None:
            return
        owner = await self._install_target(interaction, scope.value)
        if owner is None:
            return
        added = await self.bot.registry.install_pack(owner, ref.id)
        if not added:
            await safe_ephemeral_send(interaction, f"**{ref.label}** is already installed.")
            return
        _audit(interaction, "PACK_INSTALL", result="success", fields={"scope": owner.kind, "owner_id": owner.id, "pack": ref.prefix})
        await safe_ephemeral_send(interaction, f"✅ Installed **{ref.label}** ({scope.name.lower()}).")

    @pack.command(name="uninstall", description="Uninstall a pack from this server or from yourself")
    @app_commands.describe(pack="Pack prefix", scope="Uninstall from this server or personally")
    @app_commands.autocomplete(pack=_ac_pack_installed)
    @app_commands.choices(scope=SCOPE_CHOICES)
    async def pack_uninstall(self, interaction: discord.Interaction, pack: str, scope: app_commands.Choice[str]):
        ref = await self._require_pack(interaction, pack)
        if ref is None:
            return
        owner = await self._install_target(interaction, scope.value)
        if owner is None:
            return
        removed = await self.bot.registry.uninstall_pack(owner, ref.id)
        if not removed:
            await safe_ephemeral_send(interaction, f"**{ref.label}** is not installed there.")
            return
        _audit(interaction, "PACK_UNINSTALL", result="success", fields={"scope": owner.kind, "owner_id": owner.id, "pack": ref.prefix})
        await safe_ephemeral_send(interaction, f"✅ Uninstalled **{ref.label}**.")

    # ----- Curation (bot owners) -----

    @pack.command(name="create", description="(Owner) Create a sticker pack")
    @app_commands.describe(prefix="Short unique id (a-z, 0-9, _ and -)", display_name="Name shown to users")
    @_owner_only()
    async def pack_create(self, interaction: discord.Interaction, prefix: str, display_name: Optional[str] = None):
        p = normalize_pack_prefix(prefix)
        if not p:
            await safe_ephemeral_send(interaction, "Invalid prefix. Use letters, digits, `_` or `-`.")
            return
        ref = await self.bot.registry.create_pack(
            p,
            display_name=(display_name or "").strip()[:100] or None,
            creator_id=int(interaction.user.id),
        )
        _audit(interaction, "PACK_CREATE", result="success", fields={"pack": ref.prefix, "pack_id": ref.id})
        await safe_ephemeral_send(interaction, f"✅ Created pack **{ref.label}** (`{ref.prefix}`).")

    @pack.command(name="delete", description="(Owner) Delete a sticker pack everywhere")
    @app_commands.describe(pack="Pack prefix")
    @app_commands.autocomplete(pack=_ac_pack_any)
    @_owner_only()
    async def pack_delete(self, interaction: discord.Interaction, pack: str):
        ref = await self._require_pack(interaction, pack)
        if ref is None:
            return
        stickers = await self.bot.registry.pack_stickers(ref.id)
        deleted = await self.bot.registry.delete_pack(ref.id)
        if not deleted:
            await safe_ephemeral_send(interaction, "Pack not found.")
            return
        for s in stickers:
            delete_sticker_image(s)
        _audit(interaction, "PACK_DELETE", result="success", fields={"pack": ref.prefix, "stickers": len(stickers)})
        await safe_ephemeral_send(interaction, f"🗑️ Deleted pack **{ref.label}** and its {len(stickers)} sticker(s).")

    @pack.command(name="add", description="(Owner) Add a sticker to a pack")
    @app_commands.describe(
        pack="Pack prefix",
        name="Sticker name (letters, digits, space, - _ +)",
        image="Image to upload (stored by the bot)",
        url="Link to an existing image (used as-is)",
    )
    @app_commands.autocomplete(pack=_ac_pack_any)
    @_owner_only()
    async def pack_add(
        self,
        interaction: discord.Interaction,
        pack: str,
        name: str,
        image: Optional[discord.Attachment] = None,
        url: Optional[str] = None,
    ):
        if not is_valid_sticker_name(name):
            await safe_ephemeral_send(interaction, "Invalid name. Use 1-32 letters, digits, spaces, `-`, `_` or `+`.")
            return
        if (image is None) == (not url):
            await safe_ephemeral_send(interaction, "Provide exactly one of `image` or `url`.")
            return
        if url and not url.strip().lower().startswith(("https://", "http://")):
            await safe_ephemeral_send(interaction, "The URL must start with https:// or http://.")
            return

        await safe_defer(interaction, ephemeral=True)
        ref = await self._require_pack(interaction, pack)
        if ref is None:
            return
        owner = StickerOwner.pack(ref.id, ref.prefix)
        created = await self.bot.registry.add_sticker(
            owner, name, image_url=url.strip() if url else None, creator_id=int(interaction.user.id)
        )
        if image is not None:
            ok, msg, _ = await save_sticker_image(attachment=image, owner=owner, name=name)
            if not ok:
                await self.bot.registry.remove_sticker(owner, name)
                await safe_ephemeral_send(interaction, f"⚠️ {msg}")
                return
        _audit(interaction, "PACK_STICKER_ADD", result="success", fields={"pack": ref.prefix, "sticker": name, "sticker_id": created.id})
        await safe_ephemeral_send(interaction, f"✅ Added `:{name}:` to **{ref.label}**.")

    @pack.command(name="remove", description="(Owner) Remove a sticker from a pack")
    @app_commands.describe(pack="Pack prefix", name="Sticker name")
    @app_commands.autocomplete(pack=_ac_pack_any)
    @_owner_only()
    async def pack_remove(self, interaction: discord.Interaction, pack: str, name: str):
        ref = await self._require_pack(interaction, pack)
        if ref is None:
            return
        removed = await self.bot.registry.remove_sticker(StickerOwner.pack(ref.id, ref.prefix), name)
        if removed is None:
            await safe_ephemeral_send(interaction, f"No sticker named `{name}` in **{ref.label}**.")
            return
        delete_sticker_image(removed)
        _audit(interaction, "PACK_STICKER_REMOVE", result="success", fields={"pack": ref.prefix, "sticker": name})
        await safe_ephemeral_send(interaction, f"✅ Removed `:{name}:` from **{ref.label}**.")

    async def cog_app_command_error(self, interaction: discord.Interaction, error: app_commands.AppCommandError) -> None:
        await report_command_error(interaction, error, logger=logger)


async def setup(bot: commands.Bot):
    await bot.add_cog(SlashPacks(bot))
