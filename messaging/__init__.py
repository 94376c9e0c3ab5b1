"""Direct-message relay between a remote platform and local chat channels.

Only leaf modules are re-exported here; providers.base imports the models,
so the service modules (router, login, registry) are imported directly.
"""

from .errors import (
    DuplicateBindingError,
    InvalidArgumentError,
    LoginFailedError,
    NotFoundError,
    PromptTimeoutError,
    RelayDeliveryError,
    RelayError,
)
from .models import (
    CanonicalKey,
    ConversationKey,
    LocalMessage,
    RemoteConversation,
    RemoteMessageEvent,
    RemoteUser,
    SyntheticKey,
)

__all__ = [
    "CanonicalKey",
    "ConversationKey",
    "DuplicateBindingError",
    "InvalidArgumentError",
    "LocalMessage",
    "LoginFailedError",
    "NotFoundError",
    "PromptTimeoutError",
    "RelayDeliveryError",
    "RelayError",
    "RemoteConversation",
    "RemoteMessageEvent",
    "RemoteUser",
    "SyntheticKey",
]
