"""Remote platform client interface.

The remote SDK (connection, authentication transport, feed pagination and
realtime delivery) lives outside this project. Adapters implement
``RemoteClient`` and are plugged in through ``REMOTE_CLIENT_FACTORY``.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Protocol, TypeVar

from messaging.models import (
    ConversationKey,
    ConversationSummary,
    RemoteConversation,
    RemoteEvent,
    RemoteMessageEvent,
    RemoteUser,
)

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)


class Feed(Protocol[T_co]):
    """Paginated remote feed."""

    def has_more(self) -> bool: ...

    async def items(self) -> list[T_co]: ...


class ListFeed(Generic[T]):
    """Feed over pre-fetched pages; handy for adapters and tests."""

    def __init__(self, pages: list[list[T]]):
        self._pages = list(pages)

    def has_more(self) -> bool:
        return bool(self._pages)

    async def items(self) -> list[T]:
        return self._pages.pop(0) if self._pages else []


async def exhaust_feed(feed: Feed[T], max_items: int | None = None) -> list[T]:
    """Read pages until the feed is exhausted or at least max_items were read."""
    out: list[T] = []
    while True:
        out.extend(await feed.items())
        if not feed.has_more():
            break
        if max_items is not None and len(out) >= max_items:
            break
    return out


class TwoFactorMode(Enum):
    TOTP = "0"
    SMS = "1"


@dataclass
class TwoFactorInfo:
    identifier: str
    username: str
    totp_enabled: bool = False
    sms_enabled: bool = False

    def available_modes(self) -> list[TwoFactorMode]:
        modes = []
        if self.totp_enabled:
            modes.append(TwoFactorMode.TOTP)
        if self.sms_enabled:
            modes.append(TwoFactorMode.SMS)
        return modes


class RemoteClientError(Exception):
    """Base class for errors raised by remote client adapters."""


class TwoFactorRequiredError(RemoteClientError):
    """Login needs a second factor."""

    def __init__(self, info: TwoFactorInfo):
        self.info = info
        super().__init__("Two factor authentication required")


class CheckpointRequiredError(RemoteClientError):
    """Login hit a security checkpoint challenge."""


class RemoteRateLimitError(RemoteClientError):
    """The remote platform rejected a call for rate limiting."""

    def __init__(self, retry_after: float = 60.0):
        self.retry_after = retry_after
        super().__init__(f"Rate limited, retry after {retry_after:.0f}s")


class RemoteClient(ABC):
    """Operations the relay needs from the remote messaging platform."""

    # Authentication and session state

    @abstractmethod
    async def login(self, username: str, password: str) -> None:
        """
        Raises:
            TwoFactorRequiredError: a second factor must be submitted
            CheckpointRequiredError: a security challenge must be solved
        """

    @abstractmethod
    async def two_factor_login(
        self, info: TwoFactorInfo, mode: TwoFactorMode, code: str
    ) -> None: ...

    @abstractmethod
    async def resolve_challenge_automatically(self) -> None: ...

    @abstractmethod
    async def submit_challenge_code(self, code: str) -> None: ...

    @abstractmethod
    async def verify_session(self) -> bool:
        """True if the restored session can talk to the platform."""

    @abstractmethod
    async def export_state(self) -> dict[str, Any]: ...

    @abstractmethod
    async def import_state(self, state: dict[str, Any]) -> None: ...

    # Lookups

    @abstractmethod
    async def fetch_user(self, user_id: str) -> RemoteUser | None: ...

    @abstractmethod
    async def user_id_by_username(self, username: str) -> str | None: ...

    @abstractmethod
    async def fetch_conversation(
        self, conversation_id: str
    ) -> RemoteConversation | None: ...

    @abstractmethod
    async def ranked_recipients(
        self, query: str
    ) -> list[RemoteConversation | RemoteUser]:
        """Ranked search over conversations and bare users."""

    @abstractmethod
    def inbox_feed(self) -> Feed[RemoteConversation]: ...

    @abstractmethod
    def pending_feed(self) -> Feed[RemoteConversation]: ...

    @abstractmethod
    def inbox_summary_feed(self) -> Feed[ConversationSummary]: ...

    @abstractmethod
    def thread_feed(self, conversation_id: str) -> Feed[RemoteMessageEvent]:
        """Conversation history, newest page first."""

    # Sending

    @abstractmethod
    async def send_text(self, key: ConversationKey, text: str) -> str | None:
        """Send text; returns the canonical conversation id when known."""

    @abstractmethod
    async def send_photo(self, key: ConversationKey, data: bytes) -> str | None: ...

    @abstractmethod
    async def send_video(self, key: ConversationKey, data: bytes) -> str | None: ...

    @abstractmethod
    async def mark_seen(self, conversation_id: str, item_id: str) -> None: ...

    # Realtime

    @abstractmethod
    async def connect_realtime(self) -> None: ...

    @abstractmethod
    def events(self) -> AsyncIterator[RemoteEvent]:
        """Realtime message and presence events in delivery order."""

    @abstractmethod
    async def close(self) -> None: ...
