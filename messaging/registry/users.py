"""Identity cache for remote user profiles."""

import uuid

from loguru import logger

from providers.base import RemoteClient

from ..errors import NotFoundError
from ..models import PresenceEvent, RemoteUser


class IdentityCache:
    """
    Memoizes remote user lookups by id and username.

    Process-lifetime cache without eviction; the working set is bounded by
    the number of active conversations.
    """

    def __init__(self, remote: RemoteClient):
        self._remote = remote
        self._users: dict[str, RemoteUser] = {}

    async def get_by_id(self, user_id: str | int) -> RemoteUser:
        """Get a user by id, fetching once on a miss.

        Raises:
            NotFoundError: if the remote platform has no such user
        """
        user_id = str(user_id)
        cached = self._users.get(user_id)
        if cached:
            return cached
        user = await self._remote.fetch_user(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        return self._register(user_id, user)

    async def get_by_name(self, username: str) -> RemoteUser | None:
        """Get a user by username, resolving the id remotely on a miss."""
        for user in self._users.values():
            if user.username == username:
                return user
        user_id = await self._remote.user_id_by_username(username)
        if user_id is None:
            return None
        user = await self._remote.fetch_user(str(user_id))
        if user is None:
            return None
        return self._register(str(user_id), user)

    async def get_name_by_id(self, user_id: str | int) -> str:
        return (await self.get_by_id(user_id)).username

    async def get_id_by_name(self, username: str) -> str:
        user = await self.get_by_name(username)
        if user is None:
            raise NotFoundError(f"User {username} not found")
        return user.id

    async def update_activity(self, presence: PresenceEvent) -> RemoteUser:
        """Refresh presence data from a realtime presence event."""
        user = await self.get_by_id(presence.user_id)
        user.last_active_at = presence.last_activity_at
        user.activity_token = str(uuid.uuid4())
        user.is_active = presence.is_active
        return user

    def remember(self, user: RemoteUser) -> RemoteUser:
        """Seed the cache with a user obtained elsewhere (e.g. a search result)."""
        return self._register(user.id, user)

    def __len__(self) -> int:
        return len(self._users)

    def _register(self, user_id: str, user: RemoteUser) -> RemoteUser:
        self._users[user_id] = user
        logger.debug(f"USER_CACHE: registered {user_id} ({user.username})")
        return user
