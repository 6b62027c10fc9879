from __future__ import annotations

"""Per-channel delivery webhooks.

Each text channel gets one webhook named `{WEBHOOK_NAME_PREFIX}-{channel_id}`.
An existing webhook with that name is reused (e.g. after a restart); otherwise
one is created. Threads post through their parent channel's webhook.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

import discord

import config
from core.errors import DeliveryFailure

log = logging.getLogger("bot.webhooks")


@dataclass(frozen=True)
class WebhookIdentity:
    username: str
    avatar_url: Optional[str] = None

    @classmethod
    def from_user(cls, user: discord.abc.User) -> "WebhookIdentity":
        return cls(
            username=str(getattr(user, "display_name", None) or user.name),
            avatar_url=str(user.display_avatar.url),
        )

    @classmethod
    def default(cls) -> "WebhookIdentity":
        return cls(username=config.BOT_NAME)


def webhook_name(channel_id: int) -> str:
    return f"{config.WEBHOOK_NAME_PREFIX}-{int(channel_id)}"


def relay_target(channel) -> Optional[discord.abc.GuildChannel]:
    """Channel whose webhook posts into `channel` (the parent for threads), or None for DMs."""
    target = channel.parent if isinstance(channel, discord.Thread) else channel
    if target is None or not hasattr(target, "create_webhook"):
        return None
    return target


class WebhookCache:
    def __init__(self) -> None:
        self._hooks: dict[int, discord.Webhook] = {}
        self._lock = asyncio.Lock()

    def invalidate(self, channel_id: int) -> None:
        self._hooks.pop(int(channel_id), None)

    async def get(self, channel: discord.abc.GuildChannel) -> discord.Webhook:
        cid = int(channel.id)
        hook = self._hooks.get(cid)
        if hook is not None:
            return hook

        async with self._lock:
            hook = self._hooks.get(cid)
            if hook is not None:
                return hook

            name = webhook_name(cid)
            try:
                for wh in await channel.webhooks():
                    if wh.name == name:
                        log.info("Webhook for channel %s found, reusing", cid)
                        hook = wh
                        break
                if hook is None:
                    log.info("No existing webhook was found for channel %s, creating one", cid)
                    hook = await channel.create_webhook(name=name, reason="Sticker delivery")
            except discord.Forbidden as e:
                raise DeliveryFailure(f"missing Manage Webhooks permission in channel {cid}") from e
            except discord.HTTPException as e:
                raise DeliveryFailure(f"could not obtain a webhook for channel {cid}") from e

            self._hooks[cid] = hook
            return hook

    async def send(
        self,
        channel: discord.abc.Messageable,
        *,
        identity: WebhookIdentity,
        file: Optional[discord.File] = None,
        content: Optional[str] = None,
    ) -> discord.WebhookMessage:
        """Post into `channel` under `identity`. Raises DeliveryFailure."""
        thread = channel if isinstance(channel, discord.Thread) else None
        target = relay_target(channel)
        if target is None:
            raise DeliveryFailure("stickers can only be relayed in server text channels")

        hook = await self.get(target)
        kwargs = {
            "username": identity.username,
            "wait": True,
            "allowed_mentions": discord.AllowedMentions.none(),
        }
        if identity.avatar_url:
            kwargs["avatar_url"] = identity.avatar_url
        if content:
            kwargs["content"] = content
        if file is not None:
            kwargs["file"] = file
        if thread is not None:
            kwargs["thread"] = thread

        try:
            return await hook.send(**kwargs)
        except discord.NotFound as e:
            # Someone deleted the webhook; the next send recreates it.
            self.invalidate(target.id)
            raise DeliveryFailure(f"webhook for channel {target.id} no longer exists") from e
        except discord.HTTPException as e:
            raise DeliveryFailure(f"webhook send failed in channel {target.id}") from e
