"""Tests for the Discord platform adapter."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from messaging.platforms.discord import DISCORD_AVAILABLE, DiscordPlatform
from messaging.rendering.cards import Card

pytestmark = pytest.mark.skipif(not DISCORD_AVAILABLE, reason="discord.py missing")


@pytest.fixture
def platform():
    return DiscordPlatform(bot_token="test_token", guild_id="42")


def discord_message(content="hi", *, bot=False, attachments=(), embeds=()):
    message = MagicMock()
    message.id = 555
    message.channel.id = 777
    message.author.id = 12345
    message.author.bot = bot
    message.content = content
    message.attachments = list(attachments)
    message.embeds = list(embeds)
    message.created_at = datetime(2024, 1, 1, tzinfo=UTC)
    return message


def test_to_local_converts_message(platform):
    attachment = MagicMock(
        url="https://cdn/x.png", filename="x.png", content_type="image/png"
    )
    embed = MagicMock()
    embed.image.url = "https://cdn/embed.png"
    embed.video = None

    local = platform._to_local(
        discord_message(attachments=[attachment], embeds=[embed])
    )

    assert local.message_id == "555"
    assert local.channel_id == "777"
    assert local.author_id == "12345"
    assert not local.author_is_bot
    assert local.attachments[0].extension == "png"
    assert local.embeds[0].image_url == "https://cdn/embed.png"
    assert local.embeds[0].video_url is None


def test_build_embed(platform):
    card = Card(title="Inbox", description="d", color=0xFF0000, author_name="bob")
    card.add_field("Trip", "see you", inline=True)

    embed = platform._build_embed(card)

    assert embed.title == "Inbox"
    assert embed.author.name == "bob"
    assert embed.fields[0].name == "Trip"
    assert embed.fields[0].inline is True


@pytest.mark.asyncio
async def test_on_message_invokes_handler(platform):
    handler = AsyncMock()
    platform.on_message(handler)

    await platform._on_discord_message(discord_message("hello"))

    handler.assert_awaited_once()
    assert handler.await_args.args[0].content == "hello"


@pytest.mark.asyncio
async def test_handler_errors_are_contained(platform):
    platform.on_message(AsyncMock(side_effect=RuntimeError("boom")))
    await platform._on_discord_message(discord_message())


@pytest.mark.asyncio
async def test_send_code_wraps_block(platform):
    channel = MagicMock()
    channel.send = AsyncMock(return_value=MagicMock(id=1))
    platform._client.get_channel = MagicMock(return_value=channel)

    assert await platform.send_code("777", '{"a": 1}', language="json") == "1"

    channel.send.assert_awaited_once_with('```json\n{"a": 1}\n```')


@pytest.mark.asyncio
async def test_reply_with_text(platform):
    target = MagicMock()
    target.reply = AsyncMock(return_value=MagicMock(id=9))
    channel = MagicMock()
    channel.get_partial_message = MagicMock(return_value=target)
    platform._client.get_channel = MagicMock(return_value=channel)

    assert await platform.reply("777", "555", text="deleted.") == "9"

    channel.get_partial_message.assert_called_once_with(555)
    target.reply.assert_awaited_once_with(content="deleted.")


@pytest.mark.asyncio
async def test_wait_for_reactions_returns_tallies(platform):
    first = MagicMock(emoji="📱", count=2)
    second = MagicMock(emoji="🔒", count=2)
    other = MagicMock(emoji="👍", count=5)
    fetched = MagicMock(reactions=[first, second, other])
    channel = MagicMock()
    channel.fetch_message = AsyncMock(return_value=fetched)
    platform._client.get_channel = MagicMock(return_value=channel)
    platform._client.wait_for = AsyncMock(return_value=(first, MagicMock(bot=False)))

    tallies = await platform.wait_for_reactions(
        "777", "555", ["🔒", "📱"], timeout=1
    )

    assert [(t.emoji, t.count) for t in tallies] == [("📱", 2), ("🔒", 2)]


@pytest.mark.asyncio
async def test_wait_for_reactions_timeout(platform):
    platform._client.wait_for = AsyncMock(side_effect=TimeoutError())
    with pytest.raises(TimeoutError):
        await platform.wait_for_reactions("777", "555", ["🔒"], timeout=0.01)
