"""Rendering utilities for the local messaging platform."""

from .cards import (
    ERROR_COLOR,
    SEARCH_COLOR,
    Card,
    CardField,
    color_for_user,
    error_card,
    message_header,
)
from .discord_markdown import (
    DISCORD_MESSAGE_LIMIT,
    discord_code_block,
    truncate,
)

__all__ = [
    "DISCORD_MESSAGE_LIMIT",
    "ERROR_COLOR",
    "SEARCH_COLOR",
    "Card",
    "CardField",
    "color_for_user",
    "discord_code_block",
    "error_card",
    "message_header",
    "truncate",
]
