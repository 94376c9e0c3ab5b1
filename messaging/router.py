"""Relay router.

Mirrors remote conversation events into local channels and relays local
replies back. Remote events are processed strictly one at a time in
delivery order by a single worker task; every event and command runs inside
its own catch boundary so failures surface as channel diagnostics instead of
stopping the relay.
"""

import asyncio
import json
from collections.abc import AsyncIterator
from dataclasses import asdict
from typing import Any, assert_never

from loguru import logger

from providers.base import RemoteClient, RemoteRateLimitError, exhaust_feed
from providers.media import MediaPipeline
from providers.rate_limit import SendRateLimiter

from .channel_map import ChannelMap
from .commands import (
    CommandSpec,
    create_arguments,
    create_command,
    find_command,
    parse_arguments,
    split_command,
)
from .errors import NotFoundError, RelayDeliveryError
from .models import (
    CanonicalKey,
    ConversationKey,
    LocalMessage,
    MediaKind,
    MediaPayload,
    PresenceEvent,
    RemoteConversation,
    RemoteEvent,
    RemoteMessageEvent,
    SyntheticKey,
    TextPayload,
    UnknownPayload,
    VoicePayload,
)
from .platforms.base import LocalPlatform
from .registry import ConversationCache, IdentityCache
from .rendering.cards import SEARCH_COLOR, Card, error_card, message_header
from .rendering.discord_markdown import DISCORD_MESSAGE_LIMIT

PHOTO_EXTENSIONS = ("png", "jpg", "jpeg")
VIDEO_EXTENSIONS = ("mp4", "webm")


class RelayRouter:
    def __init__(
        self,
        remote: RemoteClient,
        local: LocalPlatform,
        channel_map: ChannelMap,
        users: IdentityCache,
        conversations: ConversationCache,
        media: MediaPipeline,
        *,
        rate_limiter: SendRateLimiter | None = None,
        command_prefix: str = ".",
        backfill_count: int = 5,
        backfill_delay: float = 1.0,
    ):
        self._remote = remote
        self._local = local
        self.channel_map = channel_map
        self.users = users
        self.conversations = conversations
        self._media = media
        self._rate_limiter = rate_limiter or SendRateLimiter()
        self._prefix = command_prefix
        self._backfill_count = backfill_count
        self._backfill_delay = backfill_delay

        self._queue: asyncio.Queue[RemoteMessageEvent] = asyncio.Queue()
        self._worker: asyncio.Task | None = None
        self.commands: list[CommandSpec] = [
            create_command("add", create_arguments("query"), self._handle_add),
            create_command(["recent", "recents", "inbox"], [], self._handle_recent),
            create_command("delete", create_arguments("query"), self._handle_delete),
            create_command("search", create_arguments("query"), self._handle_search),
        ]

    # Lifecycle

    def start(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run_worker())
            logger.info("RELAY: worker started")

    async def stop(self) -> None:
        if self._worker:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None
        await self.channel_map.flush()

    async def drain(self) -> None:
        """Wait until every queued remote event has been handled."""
        await self._queue.join()

    async def pump(self, events: AsyncIterator[RemoteEvent]) -> None:
        """Feed a realtime event stream into the router."""
        async for event in events:
            await self.submit_remote_event(event)

    async def submit_remote_event(self, event: RemoteEvent) -> None:
        if isinstance(event, PresenceEvent):
            try:
                await self.users.update_activity(event)
            except Exception as e:
                logger.warning(f"RELAY: presence update for {event.user_id} failed: {e}")
            return
        self._queue.put_nowait(event)

    async def _run_worker(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self.handle_remote_event(event)
            except Exception as e:
                logger.error(f"RELAY: unhandled error for event {event.item_id}: {e!r}")
            finally:
                self._queue.task_done()

    # Remote -> local

    async def handle_remote_event(self, event: RemoteMessageEvent) -> None:
        if event.op != "add":
            logger.debug(
                f"RELAY: ignoring '{event.op}' for item {event.item_id} "
                f"in {event.conversation_id}"
            )
            return

        key = CanonicalKey(event.conversation_id)
        with logger.contextualize(
            conversation_key=str(key), event_id=event.item_id
        ):
            channel_id = self.channel_map.resolve_local_channel(key)
            if channel_id is None:
                try:
                    channel_id = await self._auto_provision(event.conversation_id)
                except Exception as e:
                    logger.error(
                        f"RELAY: no channel for {event.conversation_id}: {e!r}"
                    )
                    await self._report_to_control(
                        e, f"Could not open a channel for {event.conversation_id}"
                    )
                    return

            with logger.contextualize(channel_id=channel_id):
                try:
                    await self._deliver(event, channel_id)
                except Exception as e:
                    logger.error(f"RELAY: delivery of {event.item_id} failed: {e!r}")
                    await self._post_diagnostic(channel_id, e)
                    return

                try:
                    await self._remote.mark_seen(event.conversation_id, event.item_id)
                except Exception as e:
                    logger.warning(f"RELAY: mark_seen failed for {event.item_id}: {e}")

    async def _auto_provision(self, conversation_id: str) -> str:
        conversation = await self.conversations.get_by_id(conversation_id)

        # A channel added by username is bound to the participant set until
        # the remote platform assigns the conversation id
        provisional = SyntheticKey(conversation.participant_ids)
        channel_id = self.channel_map.resolve_local_channel(provisional)
        if channel_id is not None:
            self.channel_map.rekey(provisional, conversation.key)
            return channel_id

        channel_id = await self._provision(conversation.key, conversation.display_title)
        logger.info(
            f"RELAY: auto-provisioned channel {channel_id} for {conversation_id}"
        )
        return channel_id

    async def _provision(self, key: ConversationKey, title: str) -> str:
        channel_id = await self._local.create_text_channel(
            title, self.channel_map.category_id
        )
        self.channel_map.bind(key, channel_id)
        return channel_id

    async def _deliver(self, event: RemoteMessageEvent, channel_id: str) -> None:
        author = await self.users.get_by_id(event.user_id)
        header = message_header(author, event.timestamp)
        payload = event.payload

        match payload:
            case TextPayload(text=text):
                header.description = text
                await self._local.send_card(channel_id, header)
            case MediaPayload():
                await self._deliver_media(payload, header, channel_id)
            case VoicePayload(audio_url=audio_url, media_id=media_id):
                clip = await self._media.transcode_audio(audio_url, media_id)
                if clip is None:
                    await self._local.send_text(channel_id, audio_url)
                else:
                    await self._local.send_file(channel_id, clip.filename, clip.data)
            case UnknownPayload():
                await self._local.send_code(
                    channel_id, self._dump_event(event), language="json"
                )
            case _:
                assert_never(payload)

    async def _deliver_media(
        self, payload: MediaPayload, header: Card, channel_id: str
    ) -> None:
        best = payload.best_variant()
        if best is None:
            raise RelayDeliveryError(f"Media {payload.media_id} has no variants")
        match payload.kind:
            case MediaKind.PHOTO:
                header.description = payload.caption or ""
                header.image_url = await self._media.rehost_image(best.url)
                await self._local.send_card(channel_id, header)
            case MediaKind.VIDEO:
                url = await self._media.rehost_video(best.url)
                await self._local.send_text(channel_id, url)
            case _:
                assert_never(payload.kind)

    def _dump_event(self, event: RemoteMessageEvent) -> str:
        raw = asdict(event)
        return json.dumps(raw, indent=2, default=str)[: DISCORD_MESSAGE_LIMIT - 10]

    async def _report_to_control(self, error: BaseException, title: str) -> None:
        control_id = self.channel_map.control_channel_id
        if not control_id:
            return
        try:
            await self._local.send_card(control_id, error_card(error, title=title))
        except Exception as e:
            logger.error(f"RELAY: could not report to control channel: {e}")

    async def _post_diagnostic(self, channel_id: str, error: BaseException) -> None:
        body = json.dumps({"message": str(error), "type": type(error).__name__})
        try:
            await self._local.send_code(channel_id, body, language="json")
        except Exception as e:
            logger.error(f"RELAY: could not post diagnostic to {channel_id}: {e}")

    # Local -> remote

    async def handle_local_event(self, message: LocalMessage) -> None:
        """Entry point for every local message."""
        if message.author_is_bot:
            return
        if message.channel_id == self.channel_map.control_channel_id:
            await self.handle_control_message(message)
            return
        key = self.channel_map.key_for_channel(message.channel_id)
        if key is None:
            return
        with logger.contextualize(
            conversation_key=str(key), channel_id=message.channel_id
        ):
            try:
                await self._relay_reply(key, message)
            except Exception as e:
                logger.error(f"RELAY: reply {message.message_id} not relayed: {e!r}")
                await self._post_diagnostic(message.channel_id, e)

    async def _relay_reply(self, key: ConversationKey, message: LocalMessage) -> None:
        canonical_id: str | None = None

        for kind, url in self._media_sources(message):
            sent_id = await self._send_media(key, kind, url)
            canonical_id = sent_id or canonical_id

        if message.content:
            sent_id = await self._remote_send(
                self._remote.send_text, key, message.content
            )
            canonical_id = sent_id or canonical_id

        if isinstance(key, SyntheticKey) and canonical_id:
            self.channel_map.rekey(key, CanonicalKey(canonical_id))

        await self._local.delete_message(message.channel_id, message.message_id)

    def _media_sources(self, message: LocalMessage) -> list[tuple[MediaKind, str]]:
        """Media to relay: embeds first, then file attachments, each in order."""
        sources: list[tuple[MediaKind, str]] = []
        for embed in message.embeds:
            if embed.image_url:
                sources.append((MediaKind.PHOTO, embed.image_url))
            elif embed.video_url:
                sources.append((MediaKind.VIDEO, embed.video_url))
        for attachment in message.attachments:
            if attachment.extension in PHOTO_EXTENSIONS:
                sources.append((MediaKind.PHOTO, attachment.url))
            elif attachment.extension in VIDEO_EXTENSIONS:
                sources.append((MediaKind.VIDEO, attachment.url))
            else:
                logger.info(f"RELAY: unknown attachment type {attachment.filename}")
        return sources

    async def _send_media(
        self, key: ConversationKey, kind: MediaKind, url: str
    ) -> str | None:
        data = await self._media.fetch(url)
        if kind is MediaKind.PHOTO:
            return await self._remote_send(self._remote.send_photo, key, data)
        return await self._remote_send(self._remote.send_video, key, data)

    async def _remote_send(self, send, key: ConversationKey, body: Any) -> str | None:
        await self._rate_limiter.wait_if_blocked()
        try:
            return await send(key, body)
        except RemoteRateLimitError as e:
            self._rate_limiter.set_blocked(e.retry_after)
            raise RelayDeliveryError(str(e)) from e

    # Commands

    async def handle_control_message(self, message: LocalMessage) -> None:
        if not message.content.startswith(self._prefix):
            return
        name, args_text = split_command(message.content, self._prefix)
        command = find_command(self.commands, name)
        if command is None:
            return
        logger.info(f"COMMAND: {name} {args_text!r}")
        try:
            args = parse_arguments(args_text, command.arguments)
            await command.handler(args, message)
        except Exception as e:
            logger.warning(f"COMMAND: {name} failed: {e!r}")
            try:
                await self._local.reply(
                    message.channel_id, message.message_id, card=error_card(e)
                )
            except Exception as reply_error:
                logger.error(f"COMMAND: could not reply with error: {reply_error}")

    async def _handle_add(self, args: dict[str, str], message: LocalMessage) -> None:
        found = await self.conversations.find_by_exact_title_or_username(args["query"])
        if found is None:
            raise NotFoundError("User or thread not found")

        if isinstance(found, RemoteConversation):
            key: ConversationKey = found.key
            name = found.display_title
        else:
            self.users.remember(found)
            key = SyntheticKey([found.id])
            name = found.username

        existing = self.channel_map.resolve_local_channel(key)
        if existing is not None:
            await self._local.reply(
                message.channel_id,
                message.message_id,
                text=f"channel already exists for {name}",
            )
            return

        channel_id = await self._provision(key, name)
        channel_name = self._local.channel_name(channel_id) or name
        await self._local.reply(
            message.channel_id, message.message_id, text=f"created channel for {channel_name}"
        )
        if isinstance(key, CanonicalKey):
            await self._backfill(key.conversation_id, channel_id)

    async def _backfill(self, conversation_id: str, channel_id: str) -> None:
        """Deliver the most recent history, oldest first, with a fixed delay."""
        if self._backfill_count <= 0:
            return
        feed = self._remote.thread_feed(conversation_id)
        items = await exhaust_feed(feed, self._backfill_count)
        items.sort(key=lambda e: e.timestamp)
        recent = items[max(0, len(items) - self._backfill_count) :]
        for index, event in enumerate(recent):
            if index:
                await asyncio.sleep(self._backfill_delay)
            try:
                await self._deliver(event, channel_id)
            except Exception as e:
                logger.error(f"RELAY: backfill of {event.item_id} failed: {e!r}")
                await self._post_diagnostic(channel_id, e)

    async def _handle_delete(self, args: dict[str, str], message: LocalMessage) -> None:
        query = args["query"]
        found: tuple[ConversationKey, str] | None = None
        for key, channel_id in self.channel_map.items():
            try:
                name = self._local.channel_name(channel_id)
            except Exception as e:
                logger.debug(f"COMMAND: channel {channel_id} unavailable: {e}")
                continue
            if name == query:
                found = (key, channel_id)
                break

        if found is None:
            await self._local.reply(
                message.channel_id, message.message_id, text="could not find channel"
            )
            return

        key, channel_id = found
        await self._local.delete_channel(channel_id)
        self.channel_map.unbind(key)
        await self._local.reply(message.channel_id, message.message_id, text="deleted.")

    async def _handle_recent(self, args: dict[str, str], message: LocalMessage) -> None:
        summaries = await self._remote.inbox_summary_feed().items()
        card = Card(title="Inbox")
        for summary in summaries:
            name = summary.title or ", ".join(summary.participant_names) or "Thread"
            value = summary.last_item_text or summary.last_item_kind or "(no messages)"
            card.add_field(name, value, inline=True)
        await self._local.reply(message.channel_id, message.message_id, card=card)

    async def _handle_search(self, args: dict[str, str], message: LocalMessage) -> None:
        query = args["query"]
        result = await self.conversations.find_by_fuzzy_match(query)
        if result is None:
            await self._local.reply(
                message.channel_id, message.message_id, text="No thread or user found"
            )
            return

        card = Card(title=query, color=SEARCH_COLOR)
        if isinstance(result, RemoteConversation):
            card.add_field("Thread Title", result.display_title)
            card.add_field("Members", str(len(result.participant_ids)))
        else:
            card.add_field("Username", result.username)
            card.add_field("Full Name", result.full_name or "-")
        await self._local.reply(message.channel_id, message.message_id, card=card)
