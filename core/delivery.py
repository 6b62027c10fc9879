# core/delivery.py
from __future__ import annotations

import logging
from typing import Optional

import discord

from core.errors import DeliveryFailure, ResourceUnavailable
from core.resolver import StickerResolver
from utils.audit import audit_log
from utils.prom import sticker_deliveries_total
from utils.sticker_assets import fetch_image_file, local_image_file
from utils.stickers import Sticker
from utils.webhooks import WebhookCache, WebhookIdentity, relay_target

logger = logging.getLogger("bot.delivery")


class StickerDelivery:
    """Resolve a sticker name and post its image into a channel as the requester."""

    def __init__(self, resolver: StickerResolver, webhooks: WebhookCache, base_url: Optional[str]):
        self.resolver = resolver
        self.webhooks = webhooks
        self.base_url = base_url

    async def materialize(self, sticker: Sticker) -> discord.File:
        """Turn a sticker record into an uploadable file. Raises ResourceUnavailable."""
        filename = f"{sticker.name}.png"
        # Self-hosted stickers need a public base URL even when the file is local.
        url = sticker.public_url(self.base_url)
        if sticker.is_self_hosted:
            f = local_image_file(sticker)
            if f is not None:
                return f
        return await fetch_image_file(url, filename=filename)

    async def _reply(self, channel: discord.abc.Messageable, file: discord.File) -> None:
        try:
            await channel.send(file=file)
        except discord.HTTPException as e:
            raise DeliveryFailure(f"could not send sticker in channel {getattr(channel, 'id', '?')}") from e

    async def send_sticker(
        self,
        channel: discord.abc.Messageable,
        name: str,
        user: discord.abc.User,
    ) -> Optional[Sticker]:
        """Resolve `name` for `user` in `channel` and post it.

        Server channels get a webhook message under the user's name; DMs get
        a direct reply from the bot.

        Returns the sticker that was sent, or None when nothing matched.
        LookupFailure / ResourceUnavailable / DeliveryFailure propagate.
        """
        guild = getattr(channel, "guild", None)
        guild_id = int(guild.id) if guild is not None else None
        channel_id = getattr(channel, "id", None)

        sticker = await self.resolver.resolve(name, int(user.id), guild_id)
        if sticker is None:
            sticker_deliveries_total.labels(status="no_match").inc()
            return None

        try:
            file = await self.materialize(sticker)
        except ResourceUnavailable as e:
            sticker_deliveries_total.labels(status="unavailable").inc()
            audit_log(
                "sticker_unavailable",
                guild_id=guild_id,
                channel_id=channel_id,
                user_id=user.id,
                result="error",
                reason=str(e),
                fields={"sticker_id": sticker.id, "sticker": sticker.name},
            )
            raise

        # No server channel to host a webhook (DMs): answer directly.
        mode = "webhook" if guild is not None and relay_target(channel) is not None else "direct"
        try:
            if mode == "webhook":
                await self.webhooks.send(channel, identity=WebhookIdentity.from_user(user), file=file)
            else:
                await self._reply(channel, file)
        except DeliveryFailure as e:
            sticker_deliveries_total.labels(status="failed").inc()
            audit_log(
                "sticker_delivery_failed",
                guild_id=guild_id,
                channel_id=channel_id,
                user_id=user.id,
                result="error",
                reason=str(e),
                fields={"sticker_id": sticker.id, "sticker": sticker.name},
            )
            raise

        sticker_deliveries_total.labels(status="sent").inc()
        audit_log(
            "sticker_sent",
            guild_id=guild_id,
            channel_id=channel_id,
            user_id=user.id,
            username=str(user),
            result="ok",
            fields={"sticker_id": sticker.id, "sticker": sticker.name, "owner": sticker.owner.kind, "mode": mode},
        )
        logger.info("Sent sticker %s (%s) for user %s in channel %s", sticker.name, sticker.owner.kind, user.id, channel_id)
        return sticker
