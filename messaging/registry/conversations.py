"""Conversation cache with exact and ranked fuzzy search."""

from loguru import logger

from providers.base import RemoteClient

from ..errors import NotFoundError
from ..models import RemoteConversation, RemoteUser

SearchResult = RemoteConversation | RemoteUser


def remaining_length(candidate: str, query: str) -> int:
    """Length left after removing the first occurrence of query (lowercased)."""
    return len(candidate.lower().replace(query, "", 1))


def _search_name(entry: SearchResult) -> str:
    if isinstance(entry, RemoteConversation):
        return entry.title or ""
    return entry.username


class ConversationCache:
    """
    Memoizes remote conversation lookups.

    Lookups scan the in-memory cache first, then perform exactly one remote
    fetch on a miss and memoize the result.
    """

    def __init__(self, remote: RemoteClient):
        self._remote = remote
        self._conversations: dict[str, RemoteConversation] = {}

    async def initialize(self) -> None:
        """Warm the cache from the first page of the inbox and pending feeds."""
        inbox = await self._remote.inbox_feed().items()
        pending = await self._remote.pending_feed().items()
        for conversation in [*inbox, *pending]:
            self._register(conversation)
        logger.info(f"CONVERSATION_CACHE: warmed with {len(self)} conversations")

    async def get_by_id(self, conversation_id: str) -> RemoteConversation:
        """
        Raises:
            NotFoundError: if the remote platform has no such conversation
        """
        cached = self._conversations.get(conversation_id)
        if cached:
            return cached
        conversation = await self._remote.fetch_conversation(conversation_id)
        if conversation is None:
            raise NotFoundError(f"Conversation {conversation_id} not found")
        return self._register(conversation)

    async def get_by_name(self, name: str) -> SearchResult | None:
        return await self.find_by_exact_title_or_username(name)

    async def find_by_exact_title_or_username(self, query: str) -> SearchResult | None:
        """First exact title (conversation) or username (bare user) match."""
        for conversation in self._conversations.values():
            if conversation.title and conversation.title == query:
                return conversation

        for entry in await self._remote.ranked_recipients(query):
            if _search_name(entry) == query:
                return self._register_result(entry)
        return None

    async def find_by_fuzzy_match(self, query: str) -> SearchResult | None:
        """
        Exact match first, then a substring search over ranked recipients.

        Conversations sort before bare users; within a kind the candidate with
        the shortest remaining length after removing the query wins.
        """
        exact = await self.find_by_exact_title_or_username(query)
        if exact:
            return exact

        needle = query.lower()
        candidates = [
            entry
            for entry in await self._remote.ranked_recipients(needle)
            if needle in _search_name(entry).lower()
        ]
        if not candidates:
            return None

        candidates.sort(
            key=lambda e: (
                0 if isinstance(e, RemoteConversation) else 1,
                remaining_length(_search_name(e), needle),
            )
        )
        return self._register_result(candidates[0])

    def cached(self) -> list[RemoteConversation]:
        return list(self._conversations.values())

    def __len__(self) -> int:
        return len(self._conversations)

    def _register_result(self, entry: SearchResult) -> SearchResult:
        if isinstance(entry, RemoteConversation):
            return self._register(entry)
        return entry

    def _register(self, conversation: RemoteConversation) -> RemoteConversation:
        self._conversations[conversation.conversation_id] = conversation
        return conversation
