"""Memoizing lookups of remote users and conversations."""

from .conversations import ConversationCache, remaining_length
from .users import IdentityCache

__all__ = [
    "ConversationCache",
    "IdentityCache",
    "remaining_length",
]
