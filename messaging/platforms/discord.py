"""Discord platform adapter (discord.py)."""

import asyncio
import io
from collections.abc import Callable
from typing import Any

from loguru import logger

from ..models import LocalAttachment, LocalEmbed, LocalMessage
from ..rendering.cards import Card
from ..rendering.discord_markdown import (
    DISCORD_MESSAGE_LIMIT,
    discord_code_block,
    truncate,
)
from .base import LocalPlatform, MessageHandler, ReactionTally

try:
    import discord

    DISCORD_AVAILABLE = True
except ImportError:
    discord = None
    DISCORD_AVAILABLE = False

__all__ = ["DISCORD_AVAILABLE", "DISCORD_MESSAGE_LIMIT", "DiscordPlatform"]


def _get_discord() -> Any:
    if not DISCORD_AVAILABLE:
        raise ImportError(
            "discord.py is required for the Discord platform. "
            "Install it with: pip install discord.py"
        )
    return discord


class DiscordPlatform(LocalPlatform):
    """Local platform backed by a single Discord guild."""

    name = "discord"

    def __init__(self, bot_token: str, guild_id: str | int):
        d = _get_discord()
        self._token = bot_token
        self._guild_id = int(guild_id)
        self._guild: Any = None
        self._handler: MessageHandler | None = None
        self._ready = asyncio.Event()
        self._runner: asyncio.Task | None = None

        intents = d.Intents.default()
        intents.message_content = True
        intents.guilds = True
        intents.guild_messages = True
        intents.guild_reactions = True
        self._client = d.Client(intents=intents)

        async def on_ready():
            logger.info(f"DISCORD: connected as {self._client.user}")
            self._ready.set()

        async def on_message(message):
            await self._on_discord_message(message)

        self._client.event(on_ready)
        self._client.event(on_message)

    async def start(self) -> None:
        self._runner = asyncio.create_task(self._client.start(self._token))
        ready = asyncio.create_task(self._ready.wait())
        done, _ = await asyncio.wait(
            {ready, self._runner}, return_when=asyncio.FIRST_COMPLETED
        )
        if self._runner in done:
            ready.cancel()
            # Surface login/connection errors
            self._runner.result()
            raise RuntimeError("Discord client stopped before becoming ready")

        self._guild = self._client.get_guild(self._guild_id)
        if self._guild is None:
            raise RuntimeError(f"Could not find server {self._guild_id}")

    async def stop(self) -> None:
        await self._client.close()
        if self._runner:
            try:
                await self._runner
            except Exception as e:
                logger.debug(f"DISCORD: runner ended with {e!r}")

    def on_message(self, handler: MessageHandler) -> None:
        self._handler = handler

    def default_channel_id(self) -> str | None:
        channel = self._guild.system_channel if self._guild else None
        return str(channel.id) if channel else None

    async def create_category(self, name: str) -> str:
        category = await self._guild.create_category(name)
        return str(category.id)

    async def create_text_channel(self, name: str, category_id: str | None) -> str:
        category = self._guild.get_channel(int(category_id)) if category_id else None
        channel = await self._guild.create_text_channel(name, category=category)
        logger.info(f"DISCORD: created channel #{channel.name} ({channel.id})")
        return str(channel.id)

    async def delete_channel(self, channel_id: str) -> None:
        channel = await self._get_channel(channel_id)
        await channel.delete()

    def channel_name(self, channel_id: str) -> str | None:
        channel = self._client.get_channel(int(channel_id))
        return channel.name if channel else None

    async def send_text(self, channel_id: str, text: str) -> str:
        channel = await self._get_channel(channel_id)
        message = await channel.send(truncate(text, DISCORD_MESSAGE_LIMIT))
        return str(message.id)

    async def send_card(self, channel_id: str, card: Card) -> str:
        channel = await self._get_channel(channel_id)
        message = await channel.send(embed=self._build_embed(card))
        return str(message.id)

    async def send_code(self, channel_id: str, code: str, language: str = "") -> str:
        channel = await self._get_channel(channel_id)
        message = await channel.send(discord_code_block(code, language))
        return str(message.id)

    async def send_file(self, channel_id: str, filename: str, data: bytes) -> str:
        d = _get_discord()
        channel = await self._get_channel(channel_id)
        message = await channel.send(file=d.File(io.BytesIO(data), filename=filename))
        return str(message.id)

    async def reply(
        self,
        channel_id: str,
        message_id: str,
        text: str | None = None,
        card: Card | None = None,
    ) -> str:
        channel = await self._get_channel(channel_id)
        target = channel.get_partial_message(int(message_id))
        kwargs: dict[str, Any] = {}
        if text is not None:
            kwargs["content"] = truncate(text, DISCORD_MESSAGE_LIMIT)
        if card is not None:
            kwargs["embed"] = self._build_embed(card)
        message = await target.reply(**kwargs)
        return str(message.id)

    async def delete_message(self, channel_id: str, message_id: str) -> None:
        channel = await self._get_channel(channel_id)
        await channel.get_partial_message(int(message_id)).delete()

    async def add_reaction(self, channel_id: str, message_id: str, emoji: str) -> None:
        channel = await self._get_channel(channel_id)
        await channel.get_partial_message(int(message_id)).add_reaction(emoji)

    async def wait_for_message(
        self,
        channel_id: str,
        predicate: Callable[[LocalMessage], bool],
        *,
        timeout: float,
    ) -> LocalMessage:
        def check(message) -> bool:
            if str(message.channel.id) != str(channel_id):
                return False
            return predicate(self._to_local(message))

        message = await self._client.wait_for("message", check=check, timeout=timeout)
        return self._to_local(message)

    async def wait_for_reactions(
        self,
        channel_id: str,
        message_id: str,
        emojis: list[str],
        *,
        timeout: float,
    ) -> list[ReactionTally]:
        def check(reaction, user) -> bool:
            return (
                str(reaction.message.id) == str(message_id)
                and not user.bot
                and str(reaction.emoji) in emojis
            )

        await self._client.wait_for("reaction_add", check=check, timeout=timeout)
        channel = await self._get_channel(channel_id)
        message = await channel.fetch_message(int(message_id))
        # message.reactions is ordered by first arrival
        return [
            ReactionTally(emoji=str(r.emoji), count=r.count)
            for r in message.reactions
            if str(r.emoji) in emojis
        ]

    async def _get_channel(self, channel_id: str) -> Any:
        channel = self._client.get_channel(int(channel_id))
        if channel is None:
            channel = await self._client.fetch_channel(int(channel_id))
        return channel

    async def _on_discord_message(self, message: Any) -> None:
        if self._handler is None:
            return
        try:
            await self._handler(self._to_local(message))
        except Exception as e:
            logger.error(f"DISCORD: message handler failed: {e}")

    def _to_local(self, message: Any) -> LocalMessage:
        author = message.author
        return LocalMessage(
            message_id=str(message.id),
            channel_id=str(message.channel.id),
            author_id=str(author.id),
            content=message.content or "",
            author_is_bot=bool(author.bot) or author == self._client.user,
            attachments=[
                LocalAttachment(
                    url=a.url, filename=a.filename, content_type=a.content_type
                )
                for a in message.attachments
            ],
            embeds=[
                LocalEmbed(
                    image_url=getattr(e.image, "url", None),
                    video_url=getattr(e.video, "url", None),
                )
                for e in message.embeds
            ],
            timestamp=message.created_at,
            raw_event=message,
        )

    def _build_embed(self, card: Card) -> Any:
        d = _get_discord()
        embed = d.Embed(
            title=card.title,
            description=card.description,
            color=card.color,
            timestamp=card.timestamp,
        )
        if card.author_name:
            embed.set_author(name=card.author_name, icon_url=card.author_icon_url)
        if card.image_url:
            embed.set_image(url=card.image_url)
        for f in card.fields:
            embed.add_field(name=f.name, value=f.value, inline=f.inline)
        return embed
