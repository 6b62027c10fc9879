"""Per-channel delivery webhook cache (no Discord connection)."""
from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from core.errors import DeliveryFailure
from utils.webhooks import WebhookCache, WebhookIdentity, relay_target, webhook_name


def _http_error(cls, status):
    return cls(MagicMock(status=status, reason="nope"), "nope")


def _hook(name):
    hook = MagicMock()
    hook.name = name
    hook.send = AsyncMock(return_value=MagicMock())
    return hook


def _channel(cid=100, existing=()):
    ch = MagicMock(spec=discord.TextChannel)
    ch.id = cid
    ch.webhooks = AsyncMock(return_value=list(existing))
    ch.create_webhook = AsyncMock(side_effect=lambda name, reason=None: _hook(name))
    return ch


def test_webhook_name_uses_prefix(monkeypatch):
    import config

    monkeypatch.setattr(config, "WEBHOOK_NAME_PREFIX", "stickysurgery")
    assert webhook_name(123) == "stickysurgery-123"


@pytest.mark.asyncio
async def test_reuses_existing_named_webhook():
    mine = _hook(webhook_name(100))
    ch = _channel(existing=[_hook("someone-else"), mine])
    cache = WebhookCache()

    assert await cache.get(ch) is mine
    ch.create_webhook.assert_not_awaited()


@pytest.mark.asyncio
async def test_creates_once_then_caches():
    ch = _channel()
    cache = WebhookCache()

    first = await cache.get(ch)
    second = await cache.get(ch)

    assert first is second
    assert first.name == webhook_name(100)
    ch.create_webhook.assert_awaited_once()
    ch.webhooks.assert_awaited_once()


@pytest.mark.asyncio
async def test_missing_permission_is_delivery_failure():
    ch = _channel()
    ch.webhooks = AsyncMock(side_effect=_http_error(discord.Forbidden, 403))

    with pytest.raises(DeliveryFailure):
        await WebhookCache().get(ch)


@pytest.mark.asyncio
async def test_send_uses_identity_and_file():
    ch = _channel()
    cache = WebhookCache()
    f = MagicMock(spec=discord.File)

    await cache.send(ch, identity=WebhookIdentity("Alice", "https://cdn/alice.png"), file=f)

    hook = await cache.get(ch)
    kwargs = hook.send.await_args.kwargs
    assert kwargs["username"] == "Alice"
    assert kwargs["avatar_url"] == "https://cdn/alice.png"
    assert kwargs["file"] is f
    assert "thread" not in kwargs


@pytest.mark.asyncio
async def test_threads_post_through_parent_webhook():
    parent = _channel(cid=100)
    thread = MagicMock(spec=discord.Thread)
    thread.id = 555
    thread.parent = parent
    cache = WebhookCache()

    await cache.send(thread, identity=WebhookIdentity("Bob"))

    hook = await cache.get(parent)
    kwargs = hook.send.await_args.kwargs
    assert kwargs["thread"] is thread
    assert "avatar_url" not in kwargs
    parent.create_webhook.assert_awaited_once()


@pytest.mark.asyncio
async def test_deleted_webhook_is_invalidated():
    ch = _channel()
    cache = WebhookCache()
    hook = await cache.get(ch)
    hook.send = AsyncMock(side_effect=_http_error(discord.NotFound, 404))

    with pytest.raises(DeliveryFailure):
        await cache.send(ch, identity=WebhookIdentity("Alice"))

    # Next lookup goes back to Discord and gets a fresh webhook.
    fresh = await cache.get(ch)
    assert fresh is not hook
    assert ch.create_webhook.await_count == 2


@pytest.mark.asyncio
async def test_dm_channels_cannot_relay():
    dm = MagicMock(spec=discord.DMChannel)
    with pytest.raises(DeliveryFailure):
        await WebhookCache().send(dm, identity=WebhookIdentity("Alice"))


def test_identity_from_user():
    user = MagicMock()
    user.display_name = "Carol"
    user.display_avatar.url = "https://cdn/carol.png"

    ident = WebhookIdentity.from_user(user)
    assert ident == WebhookIdentity("Carol", "https://cdn/carol.png")


def test_relay_target():
    text = MagicMock(spec=discord.TextChannel)
    thread = MagicMock(spec=discord.Thread)
    thread.parent = text
    orphan = MagicMock(spec=discord.Thread)
    orphan.parent = None

    assert relay_target(text) is text
    assert relay_target(thread) is text
    assert relay_target(orphan) is None
    assert relay_target(MagicMock(spec=discord.DMChannel)) is None
