"""Local platform interface."""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from ..models import LocalMessage
from ..rendering.cards import Card

MessageHandler = Callable[[LocalMessage], Awaitable[None]]


@dataclass
class ReactionTally:
    """Observed count for one emoji on a prompt message."""

    emoji: str
    count: int


class LocalPlatform(ABC):
    """
    Operations the relay needs from the local (bridging) chat platform.

    Channel and message ids are strings. All waits take an explicit timeout
    in seconds and raise ``TimeoutError`` when it elapses.
    """

    name: str = "local"

    @abstractmethod
    async def start(self) -> None:
        """Connect and wait until the platform is ready."""

    @abstractmethod
    async def stop(self) -> None: ...

    @abstractmethod
    def on_message(self, handler: MessageHandler) -> None:
        """Register the handler for every incoming message."""

    @abstractmethod
    def default_channel_id(self) -> str | None:
        """The host server's default system channel."""

    @abstractmethod
    async def create_category(self, name: str) -> str: ...

    @abstractmethod
    async def create_text_channel(self, name: str, category_id: str | None) -> str: ...

    @abstractmethod
    async def delete_channel(self, channel_id: str) -> None: ...

    @abstractmethod
    def channel_name(self, channel_id: str) -> str | None: ...

    @abstractmethod
    async def send_text(self, channel_id: str, text: str) -> str: ...

    @abstractmethod
    async def send_card(self, channel_id: str, card: Card) -> str: ...

    @abstractmethod
    async def send_code(self, channel_id: str, code: str, language: str = "") -> str: ...

    @abstractmethod
    async def send_file(self, channel_id: str, filename: str, data: bytes) -> str: ...

    @abstractmethod
    async def reply(
        self, channel_id: str, message_id: str, text: str | None = None, card: Card | None = None
    ) -> str: ...

    @abstractmethod
    async def delete_message(self, channel_id: str, message_id: str) -> None: ...

    @abstractmethod
    async def add_reaction(self, channel_id: str, message_id: str, emoji: str) -> None: ...

    @abstractmethod
    async def wait_for_message(
        self,
        channel_id: str,
        predicate: Callable[[LocalMessage], bool],
        *,
        timeout: float,
    ) -> LocalMessage:
        """Wait for the first message in channel_id accepted by predicate."""

    @abstractmethod
    async def wait_for_reactions(
        self,
        channel_id: str,
        message_id: str,
        emojis: list[str],
        *,
        timeout: float,
    ) -> list[ReactionTally]:
        """
        Wait for a user reaction with one of emojis on message_id.

        Returns the tallies of the watched emojis in order of first arrival.
        """
