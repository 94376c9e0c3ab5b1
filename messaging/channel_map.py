"""Persistent bidirectional mapping between conversations and local channels."""

from collections.abc import Awaitable, Callable, Iterator
from typing import Any

from loguru import logger
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .errors import DuplicateBindingError
from .models import ConversationKey, key_from_json
from .storage import DataStore, PersistenceWriter

CHANNEL_MAPPING_KEY = "channelMapping"


class ChannelMappingDocument(BaseModel):
    """On-disk shape of the channel mapping.

    ``pairs`` is written as a list of ``[key, channel_id]`` tuples. The legacy
    object form (``{"key": "channel"}``) and legacy field names are accepted
    on load.
    """

    control_channel_id: str | None = Field(
        None,
        validation_alias=AliasChoices(
            "control_channel_id", "controlChannelId", "callbackChannel"
        ),
    )
    category_id: str | None = Field(
        None,
        validation_alias=AliasChoices(
            "category_id", "categoryId", "igMessageCategory"
        ),
    )
    pairs: list[tuple[Any, str]] = Field(
        default_factory=list,
        validation_alias=AliasChoices("pairs", "directData"),
    )

    model_config = ConfigDict(extra="ignore")

    @field_validator("control_channel_id", "category_id", mode="before")
    @classmethod
    def parse_optional_id(cls, v):
        if v == "" or v is None:
            return None
        return str(v)

    @field_validator("pairs", mode="before")
    @classmethod
    def normalize_pairs(cls, v):
        if v is None:
            return []
        if isinstance(v, dict):
            return [(k, str(c)) for k, c in v.items()]
        out = []
        for entry in v:
            if not isinstance(entry, (list, tuple)) or len(entry) != 2:
                logger.warning(f"CHANNEL_MAP: dropping malformed pair {entry!r}")
                continue
            out.append((entry[0], str(entry[1])))
        return out


class ChannelMap:
    """
    Bidirectional mapping ConversationKey <-> local channel id.

    Injective: no two keys share a channel. Every mutation schedules a
    persistence write through the single-slot writer.
    """

    def __init__(self, store: DataStore, data_key: str = CHANNEL_MAPPING_KEY):
        self._store = store
        self._data_key = data_key
        self._writer = PersistenceWriter(store, data_key)
        self.control_channel_id: str | None = None
        self.category_id: str | None = None
        self._pairs: dict[ConversationKey, str] = {}
        self._by_channel: dict[str, ConversationKey] = {}

    @property
    def writer(self) -> PersistenceWriter:
        return self._writer

    def load(self, default_control_channel_id: str | None = None) -> "ChannelMap":
        """Load persisted state, defaulting the control channel when absent."""
        raw = self._store.read(self._data_key)
        if raw is None:
            doc = ChannelMappingDocument(control_channel_id=default_control_channel_id)
            logger.info("CHANNEL_MAP: no persisted mapping, using defaults")
        else:
            doc = ChannelMappingDocument.model_validate(raw)
            if not doc.control_channel_id:
                doc.control_channel_id = default_control_channel_id

        self.control_channel_id = doc.control_channel_id
        self.category_id = doc.category_id
        self._pairs.clear()
        self._by_channel.clear()
        for raw_key, channel_id in doc.pairs:
            try:
                key = key_from_json(raw_key)
            except ValueError as e:
                logger.warning(f"CHANNEL_MAP: skipping pair: {e}")
                continue
            if channel_id in self._by_channel:
                logger.warning(
                    f"CHANNEL_MAP: channel {channel_id} bound twice on disk, "
                    f"keeping {self._by_channel[channel_id]}"
                )
                continue
            self._pairs[key] = channel_id
            self._by_channel[channel_id] = key
        logger.info(f"CHANNEL_MAP: loaded {len(self._pairs)} bindings")
        return self

    async def ensure_category(
        self, create_category: Callable[[], Awaitable[str]]
    ) -> str:
        """Create the container category once and persist its id."""
        if not self.category_id:
            self.category_id = str(await create_category())
            logger.info(f"CHANNEL_MAP: created category {self.category_id}")
            self._schedule_persist()
        return self.category_id

    def resolve_local_channel(self, key: ConversationKey) -> str | None:
        return self._pairs.get(key)

    def key_for_channel(self, channel_id: str) -> ConversationKey | None:
        return self._by_channel.get(str(channel_id))

    def bind(self, key: ConversationKey, channel_id: str) -> None:
        channel_id = str(channel_id)
        existing = self._by_channel.get(channel_id)
        if existing is not None and existing != key:
            raise DuplicateBindingError(
                f"Channel {channel_id} is already bound to {existing}"
            )
        previous = self._pairs.get(key)
        if previous is not None and previous != channel_id:
            self._by_channel.pop(previous, None)
        self._pairs[key] = channel_id
        self._by_channel[channel_id] = key
        logger.debug(f"CHANNEL_MAP: bind {key} -> {channel_id}")
        self._schedule_persist()

    def rekey(self, old_key: ConversationKey, new_key: ConversationKey) -> None:
        """Move a binding to a new key, keeping the same local channel."""
        channel_id = self._pairs.get(old_key)
        if channel_id is None or old_key == new_key:
            return
        other = self._pairs.get(new_key)
        if other is not None and other != channel_id:
            raise DuplicateBindingError(
                f"{new_key} is already bound to channel {other}"
            )
        del self._pairs[old_key]
        self._pairs[new_key] = channel_id
        self._by_channel[channel_id] = new_key
        logger.info(f"CHANNEL_MAP: rekeyed {old_key} -> {new_key}")
        self._schedule_persist()

    def unbind(
        self, key_or_channel: ConversationKey | str
    ) -> tuple[ConversationKey, str] | None:
        """Remove a pair by either side. Returns the removed pair, if any."""
        if isinstance(key_or_channel, str):
            key = self._by_channel.get(key_or_channel)
            if key is None:
                return None
        else:
            key = key_or_channel
        channel_id = self._pairs.pop(key, None)
        if channel_id is None:
            return None
        self._by_channel.pop(channel_id, None)
        logger.debug(f"CHANNEL_MAP: unbind {key} -> {channel_id}")
        self._schedule_persist()
        return key, channel_id

    def items(self) -> Iterator[tuple[ConversationKey, str]]:
        return iter(list(self._pairs.items()))

    def __len__(self) -> int:
        return len(self._pairs)

    def __contains__(self, key: object) -> bool:
        return key in self._pairs

    def to_dict(self) -> dict:
        """Serialize with pairs as a list of [key, channel_id] tuples."""
        return {
            "controlChannelId": self.control_channel_id,
            "categoryId": self.category_id,
            "pairs": [[k.to_json(), c] for k, c in self._pairs.items()],
        }

    def _schedule_persist(self) -> None:
        self._writer.schedule(self.to_dict())

    async def flush(self) -> None:
        await self._writer.flush()
