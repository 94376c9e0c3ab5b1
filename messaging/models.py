"""Platform-agnostic message models."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class CanonicalKey:
    """Conversation id assigned by the remote platform."""

    conversation_id: str

    def to_json(self) -> str:
        return self.conversation_id

    def __str__(self) -> str:
        return self.conversation_id


@dataclass(frozen=True)
class SyntheticKey:
    """
    Provisional key for a conversation the remote platform has not created yet.

    Identified by the sorted set of participant ids.
    """

    participant_ids: tuple[str, ...]

    def __init__(self, participant_ids):
        object.__setattr__(
            self, "participant_ids", tuple(sorted(str(p) for p in participant_ids))
        )

    def to_json(self) -> list[str]:
        return list(self.participant_ids)

    def __str__(self) -> str:
        return ",".join(self.participant_ids)


ConversationKey = CanonicalKey | SyntheticKey


def key_from_json(raw: Any) -> ConversationKey:
    """Decode a persisted conversation key (string id or list of participant ids)."""
    if isinstance(raw, (list, tuple)):
        return SyntheticKey(raw)
    if isinstance(raw, int):
        return CanonicalKey(str(raw))
    if isinstance(raw, str):
        # Legacy object form flattened participant lists to "a,b"
        if "," in raw:
            return SyntheticKey(p for p in raw.split(",") if p)
        return CanonicalKey(raw)
    raise ValueError(f"Unsupported conversation key: {raw!r}")


@dataclass
class RemoteUser:
    id: str
    username: str
    full_name: str = ""
    avatar_url: str | None = None
    last_active_at: datetime | None = None
    activity_token: str | None = None
    is_active: bool | None = None

    @property
    def display_name(self) -> str:
        return self.full_name or self.username


@dataclass
class RemoteConversation:
    """A remote direct-message thread; participant_ids excludes the bridged account."""

    conversation_id: str
    title: str | None = None
    participant_ids: list[str] = field(default_factory=list)
    participant_names: list[str] = field(default_factory=list)

    @property
    def key(self) -> CanonicalKey:
        return CanonicalKey(self.conversation_id)

    @property
    def display_title(self) -> str:
        if self.title:
            return self.title
        if self.participant_names:
            return ", ".join(self.participant_names)
        return self.conversation_id


@dataclass
class ConversationSummary:
    """One row of the remote inbox feed."""

    conversation_id: str
    title: str | None = None
    participant_names: list[str] = field(default_factory=list)
    last_item_text: str | None = None
    last_item_kind: str | None = None


class MediaKind(Enum):
    PHOTO = 1
    VIDEO = 2


@dataclass(frozen=True)
class MediaVariant:
    url: str
    width: int = 0
    height: int = 0


@dataclass
class TextPayload:
    text: str


@dataclass
class MediaPayload:
    kind: MediaKind
    variants: list[MediaVariant]
    media_id: str = ""
    caption: str | None = None

    def best_variant(self) -> MediaVariant | None:
        """Highest-resolution variant (maximum width)."""
        if not self.variants:
            return None
        return max(self.variants, key=lambda v: v.width)


@dataclass
class VoicePayload:
    audio_url: str
    media_id: str = ""


@dataclass
class UnknownPayload:
    item_type: str
    raw: dict[str, Any] = field(default_factory=dict)


Payload = TextPayload | MediaPayload | VoicePayload | UnknownPayload


@dataclass
class RemoteMessageEvent:
    """Realtime message event from the remote platform."""

    conversation_id: str
    item_id: str
    user_id: str
    payload: Payload
    op: str = "add"
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class PresenceEvent:
    user_id: str
    last_activity_at: datetime
    is_active: bool = False


RemoteEvent = RemoteMessageEvent | PresenceEvent


@dataclass
class LocalAttachment:
    url: str
    filename: str
    content_type: str | None = None

    @property
    def extension(self) -> str:
        return self.filename.rsplit(".", 1)[-1].lower() if "." in self.filename else ""


@dataclass
class LocalEmbed:
    image_url: str | None = None
    video_url: str | None = None


@dataclass
class LocalMessage:
    """
    Platform-agnostic incoming message from the local platform.

    Adapters convert platform-specific events to this format.
    """

    message_id: str
    channel_id: str
    author_id: str
    content: str = ""
    author_is_bot: bool = False
    attachments: list[LocalAttachment] = field(default_factory=list)
    embeds: list[LocalEmbed] = field(default_factory=list)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    # Platform-specific raw event for edge cases
    raw_event: Any = None
