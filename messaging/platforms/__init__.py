"""Local messaging platform adapters."""

from .base import LocalPlatform, MessageHandler, ReactionTally

__all__ = [
    "LocalPlatform",
    "MessageHandler",
    "ReactionTally",
]
