"""`:name:` chat trigger for sticker delivery."""
from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from commands.slash.stickers import SlashStickers, match_trigger
from core.errors import DeliveryFailure


@pytest.mark.parametrize(
    "content, expected",
    [
        (":bigbrain:", "bigbrain"),
        (":big brain+1:", "big brain+1"),
        (":Wave-_:", "Wave-_"),
        ("::", None),
        (":wave", None),
        ("say :wave:", None),
        (":wave: hi", None),
        (":emoji🙂:", None),
        ("", None),
        (None, None),
    ],
)
def test_match_trigger(content, expected):
    assert match_trigger(content) == expected


def _message(content, *, bot=False, webhook_id=None):
    msg = MagicMock()
    msg.content = content
    msg.author.bot = bot
    msg.webhook_id = webhook_id
    return msg


@pytest.fixture
def cog():
    bot = MagicMock()
    bot.delivery.send_sticker = AsyncMock(return_value=None)
    return SlashStickers(bot)


@pytest.mark.asyncio
async def test_trigger_sends_as_author(cog):
    msg = _message(":wave:")
    await cog.on_message(msg)
    cog.bot.delivery.send_sticker.assert_awaited_once_with(msg.channel, "wave", msg.author)


@pytest.mark.asyncio
async def test_bots_and_webhooks_ignored(cog):
    await cog.on_message(_message(":wave:", bot=True))
    await cog.on_message(_message(":wave:", webhook_id=123))
    await cog.on_message(_message("just chatting"))
    cog.bot.delivery.send_sticker.assert_not_awaited()


@pytest.mark.asyncio
async def test_delivery_errors_are_logged_not_raised(cog, caplog):
    cog.bot.delivery.send_sticker = AsyncMock(side_effect=DeliveryFailure("no perms"))
    await cog.on_message(_message(":wave:"))
    assert "Error sending sticker :wave:" in caplog.text
