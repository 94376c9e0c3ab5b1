"""Shared fakes for the remote client and local platform."""

import asyncio
from collections.abc import AsyncIterator

import pytest

from messaging.models import (
    ConversationKey,
    ConversationSummary,
    LocalMessage,
    RemoteConversation,
    RemoteEvent,
    RemoteMessageEvent,
    RemoteUser,
)
from messaging.platforms.base import LocalPlatform, ReactionTally
from messaging.rendering.cards import Card
from providers.base import ListFeed, RemoteClient, TwoFactorInfo, TwoFactorMode
from providers.media import AudioClip, MediaPipeline


class FakeRemoteClient(RemoteClient):
    """In-memory remote platform; records every outbound call."""

    def __init__(self):
        self.users: dict[str, RemoteUser] = {}
        self.conversations: dict[str, RemoteConversation] = {}
        self.recipients: list[RemoteConversation | RemoteUser] = []
        self.history: dict[str, list[RemoteMessageEvent]] = {}
        self.summaries: list[ConversationSummary] = []
        self.inbox: list[RemoteConversation] = []
        self.pending: list[RemoteConversation] = []
        self.calls: list[tuple] = []
        self.fetch_user_calls = 0
        self.fetch_conversation_calls = 0
        self.ranked_calls = 0
        self.assigned_conversation_id: str | None = None
        self.login_error: Exception | None = None
        self.session_valid = False
        self.state: dict = {"cookie": "abc"}
        self.event_queue: asyncio.Queue = asyncio.Queue()

    def add_user(self, user_id: str, username: str, full_name: str = "") -> RemoteUser:
        user = RemoteUser(id=user_id, username=username, full_name=full_name)
        self.users[user_id] = user
        return user

    async def login(self, username, password):
        self.calls.append(("login", username, password))
        if self.login_error:
            raise self.login_error

    async def two_factor_login(self, info: TwoFactorInfo, mode: TwoFactorMode, code):
        self.calls.append(("two_factor_login", info.identifier, mode, code))

    async def resolve_challenge_automatically(self):
        self.calls.append(("challenge_auto",))

    async def submit_challenge_code(self, code):
        self.calls.append(("challenge_code", code))

    async def verify_session(self):
        return self.session_valid

    async def export_state(self):
        return dict(self.state)

    async def import_state(self, state):
        self.calls.append(("import_state", state))
        self.state = dict(state)

    async def fetch_user(self, user_id):
        self.fetch_user_calls += 1
        return self.users.get(user_id)

    async def user_id_by_username(self, username):
        for user in self.users.values():
            if user.username == username:
                return user.id
        return None

    async def fetch_conversation(self, conversation_id):
        self.fetch_conversation_calls += 1
        return self.conversations.get(conversation_id)

    async def ranked_recipients(self, query):
        self.ranked_calls += 1
        return list(self.recipients)

    def inbox_feed(self):
        return ListFeed([list(self.inbox)])

    def pending_feed(self):
        return ListFeed([list(self.pending)])

    def inbox_summary_feed(self):
        return ListFeed([list(self.summaries)])

    def thread_feed(self, conversation_id):
        items = list(self.history.get(conversation_id, []))
        return ListFeed([items[i : i + 2] for i in range(0, len(items), 2)])

    async def send_text(self, key: ConversationKey, text: str):
        self.calls.append(("send_text", key, text))
        return self.assigned_conversation_id

    async def send_photo(self, key, data):
        self.calls.append(("send_photo", key, data))
        return self.assigned_conversation_id

    async def send_video(self, key, data):
        self.calls.append(("send_video", key, data))
        return self.assigned_conversation_id

    async def mark_seen(self, conversation_id, item_id):
        self.calls.append(("mark_seen", conversation_id, item_id))

    async def connect_realtime(self):
        self.calls.append(("connect_realtime",))

    async def events(self) -> AsyncIterator[RemoteEvent]:
        while True:
            event = await self.event_queue.get()
            if event is None:
                return
            yield event

    async def close(self):
        self.calls.append(("close",))


class FakeLocalPlatform(LocalPlatform):
    """Records sends; incoming messages and reactions are scripted by tests."""

    name = "fake"

    def __init__(self, system_channel_id: str = "100"):
        self.system_channel_id = system_channel_id
        self.channels: dict[str, str] = {}
        self.sent: list[tuple[str, str, object]] = []
        self.replies: list[tuple[str, str, str | None, Card | None]] = []
        self.deleted_messages: list[tuple[str, str]] = []
        self.deleted_channels: list[str] = []
        self.reactions: list[tuple[str, str, str]] = []
        self.scripted_messages: list[LocalMessage] = []
        self.scripted_tallies: list[ReactionTally] | None = None
        self.handler = None
        self.started = False
        self._next_id = 1000

    def _id(self) -> str:
        self._next_id += 1
        return str(self._next_id)

    async def start(self):
        self.started = True

    async def stop(self):
        self.started = False

    def on_message(self, handler):
        self.handler = handler

    def default_channel_id(self):
        return self.system_channel_id

    async def create_category(self, name):
        category_id = self._id()
        self.channels[category_id] = name
        return category_id

    async def create_text_channel(self, name, category_id):
        channel_id = self._id()
        self.channels[channel_id] = name
        return channel_id

    async def delete_channel(self, channel_id):
        self.deleted_channels.append(channel_id)
        self.channels.pop(channel_id, None)

    def channel_name(self, channel_id):
        return self.channels.get(channel_id)

    async def send_text(self, channel_id, text):
        self.sent.append((channel_id, "text", text))
        return self._id()

    async def send_card(self, channel_id, card):
        self.sent.append((channel_id, "card", card))
        return self._id()

    async def send_code(self, channel_id, code, language=""):
        self.sent.append((channel_id, "code", code))
        return self._id()

    async def send_file(self, channel_id, filename, data):
        self.sent.append((channel_id, "file", (filename, data)))
        return self._id()

    async def reply(self, channel_id, message_id, text=None, card=None):
        self.replies.append((channel_id, message_id, text, card))
        return self._id()

    async def delete_message(self, channel_id, message_id):
        self.deleted_messages.append((channel_id, message_id))

    async def add_reaction(self, channel_id, message_id, emoji):
        self.reactions.append((channel_id, message_id, emoji))

    async def wait_for_message(self, channel_id, predicate, *, timeout):
        for message in self.scripted_messages:
            if message.channel_id == channel_id and predicate(message):
                return message
        await asyncio.sleep(timeout)
        raise TimeoutError()

    async def wait_for_reactions(self, channel_id, message_id, emojis, *, timeout):
        if self.scripted_tallies is not None:
            return self.scripted_tallies
        await asyncio.sleep(timeout)
        raise TimeoutError()

    def sent_to(self, channel_id: str) -> list[tuple[str, object]]:
        return [(kind, body) for cid, kind, body in self.sent if cid == channel_id]


class FakeMediaPipeline(MediaPipeline):
    def __init__(self, audio: AudioClip | None = None):
        self.audio = audio
        self.fetched: list[str] = []

    async def rehost_image(self, url):
        return f"rehosted:{url}"

    async def rehost_video(self, url):
        return f"rehosted:{url}"

    async def transcode_audio(self, url, media_id):
        return self.audio

    async def fetch(self, url):
        self.fetched.append(url)
        return f"bytes:{url}".encode()


@pytest.fixture
def remote():
    return FakeRemoteClient()


@pytest.fixture
def local():
    return FakeLocalPlatform()


@pytest.fixture
def media():
    return FakeMediaPipeline()
