"""Platform-neutral rich message cards.

Platform adapters turn a ``Card`` into their native rich message (a
``discord.Embed`` for Discord).
"""

import hashlib
import traceback
from dataclasses import dataclass, field
from datetime import datetime

from ..models import RemoteUser

ERROR_COLOR = 0xFF0000
SEARCH_COLOR = 0x0FFF0F

# Discord embed limits
TITLE_LIMIT = 256
DESCRIPTION_LIMIT = 4096
FIELD_NAME_LIMIT = 256
FIELD_VALUE_LIMIT = 1024
MAX_FIELDS = 25


@dataclass
class CardField:
    name: str
    value: str
    inline: bool = False


@dataclass
class Card:
    title: str | None = None
    description: str | None = None
    color: int | None = None
    author_name: str | None = None
    author_icon_url: str | None = None
    image_url: str | None = None
    timestamp: datetime | None = None
    fields: list[CardField] = field(default_factory=list)

    def add_field(self, name: str, value: str, inline: bool = False) -> "Card":
        if len(self.fields) < MAX_FIELDS:
            self.fields.append(
                CardField(
                    name=(name or "-")[:FIELD_NAME_LIMIT],
                    value=(value or "-")[:FIELD_VALUE_LIMIT],
                    inline=inline,
                )
            )
        return self


def color_for_user(user_id: str | int) -> int:
    """Deterministic 24-bit colour for a remote user id."""
    digest = hashlib.sha256(str(user_id).encode("utf-8")).digest()
    return int.from_bytes(digest[:3], "big")


def message_header(author: RemoteUser, timestamp: datetime) -> Card:
    """Card carrying the author, colour and original timestamp of a message."""
    return Card(
        author_name=author.username,
        author_icon_url=author.avatar_url,
        color=color_for_user(author.id),
        timestamp=timestamp,
    )


def error_card(error: BaseException, title: str | None = None) -> Card:
    """Red card with the error message and a traceback excerpt."""
    trace = "".join(
        traceback.format_exception(type(error), error, error.__traceback__)
    )
    return Card(
        title=(title or str(error) or type(error).__name__)[:TITLE_LIMIT],
        description=trace[-DESCRIPTION_LIMIT:],
        color=ERROR_COLOR,
    )
