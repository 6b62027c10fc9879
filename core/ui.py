from __future__ import annotations

import logging

import discord
from discord import app_commands

from core.errors import DeliveryFailure, LookupFailure, ResourceUnavailable, StickerConflict, StickerError
from utils.audit import audit_log
from utils.prom import commands_total

log = logging.getLogger("bot.ui")


async def safe_ephemeral_send(interaction: discord.Interaction, content: str) -> None:
    """Safely send an ephemeral message.

    Uses followups if the initial interaction response has already been used.
    Never raises.
    """
    try:
        if interaction.response.is_done():
            await interaction.followup.send(content, ephemeral=True)
        else:
            await interaction.response.send_message(content, ephemeral=True)
    except discord.HTTPException:
        log.debug("ephemeral send failed", exc_info=True)


async def safe_send_embed(interaction: discord.Interaction, embed: discord.Embed, *, ephemeral: bool = True) -> None:
    """Safely send an embed (ephemeral by default)."""
    try:
        if interaction.response.is_done():
            await interaction.followup.send(embed=embed, ephemeral=ephemeral)
        else:
            await interaction.response.send_message(embed=embed, ephemeral=ephemeral)
    except discord.HTTPException:
        log.debug("embed send failed", exc_info=True)


async def safe_defer(interaction: discord.Interaction, *, ephemeral: bool = True) -> None:
    """Safely defer an interaction response."""
    try:
        if not interaction.response.is_done():
            await interaction.response.defer(ephemeral=ephemeral)
    except discord.HTTPException:
        log.debug("defer failed", exc_info=True)


def user_message_for(exc: BaseException) -> str:
    """Generic, user-safe text for a failure. Details stay in the logs."""
    if isinstance(exc, StickerConflict):
        return f"Error: {exc}"
    if isinstance(exc, LookupFailure):
        return "Error: sticker lookup is temporarily unavailable, try again later."
    if isinstance(exc, ResourceUnavailable):
        return "Error: that sticker's image is unavailable right now."
    if isinstance(exc, DeliveryFailure):
        return "Error: could not post the sticker here (does the bot have Manage Webhooks?)."
    if isinstance(exc, StickerError):
        return "Error: something went wrong with that sticker."
    return "Error: something went wrong."


async def send_error(interaction: discord.Interaction, exc: BaseException) -> None:
    await safe_ephemeral_send(interaction, user_message_for(exc))


async def report_command_error(
    interaction: discord.Interaction,
    error: app_commands.AppCommandError,
    *,
    logger: logging.Logger,
) -> None:
    """Shared cog_app_command_error body: log, audit, count, then reply generically."""
    cmd = getattr(interaction.command, "qualified_name", None) or "unknown"

    if isinstance(error, app_commands.MissingPermissions):
        commands_total.labels(command=cmd, status="forbidden").inc()
        await safe_ephemeral_send(interaction, "You need the **Manage Server** permission to do that.")
        return
    if isinstance(error, app_commands.NoPrivateMessage):
        commands_total.labels(command=cmd, status="forbidden").inc()
        await safe_ephemeral_send(interaction, "This command can only be used in a server.")
        return
    if isinstance(error, app_commands.CheckFailure):
        commands_total.labels(command=cmd, status="forbidden").inc()
        await safe_ephemeral_send(interaction, "You are not allowed to use this command.")
        return

    cause = error.original if isinstance(error, app_commands.CommandInvokeError) else error
    commands_total.labels(command=cmd, status="error").inc()
    if isinstance(cause, StickerConflict):
        logger.info("/%s rejected: %s", cmd, cause)
    else:
        logger.error("/%s failed: %s", cmd, type(cause).__name__, exc_info=cause)
    audit_log(
        "COMMAND_ERROR",
        guild_id=getattr(interaction.guild, "id", None),
        channel_id=getattr(interaction, "channel_id", None),
        user_id=getattr(interaction.user, "id", None),
        username=getattr(interaction.user, "name", "unknown"),
        command=cmd,
        result="error",
        reason=f"{type(cause).__name__}: {cause}",
    )
    await send_error(interaction, cause)
