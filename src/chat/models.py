"""Data models for conversations and messages reported by the host."""

from __future__ import annotations

import logging
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from src.timeline.timestamps import message_instant, normalize_timestamp

ContentKind = Literal["text", "media", "interactive", "poll", "unsupported"]
MediaType = Literal["image", "video", "audio", "document", "sticker", "contact", "location"]

logger = logging.getLogger(__name__)


class HostModel(BaseModel):
    """Base for host payloads: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class Conversation(HostModel):
    """A chat thread as listed by ``get-chats``."""

    id: str
    name: str = ""
    is_group: bool = False
    last_message: str = ""
    last_message_sender: str | None = None
    last_message_from_me: bool = False
    timestamp: float | int | str | None = None
    unread_count: int = 0

    @property
    def last_activity(self) -> int | None:
        return normalize_timestamp(self.timestamp)

    @property
    def display_name(self) -> str:
        return self.name or self.id.split("@")[0]

    @property
    def is_listable(self) -> bool:
        """Whether the chat has a preview and a valid activity instant."""
        return bool(self.last_message.strip()) and self.last_activity is not None

    @property
    def preview(self) -> str:
        if self.last_message_from_me:
            return f"You: {self.last_message}"
        if self.is_group and self.last_message_sender:
            return f"{self.last_message_sender}: {self.last_message}"
        return self.last_message


class MessageContent(BaseModel):
    """Tagged content variant resolved once when a message is ingested."""

    model_config = ConfigDict(frozen=True)

    kind: ContentKind
    text: str = ""
    media_type: MediaType | None = None
    caption: str | None = None

    @property
    def renderable(self) -> bool:
        return self.kind != "unsupported"


_CAPTIONED_MEDIA: dict[str, MediaType] = {
    "imageMessage": "image",
    "videoMessage": "video",
}


def parse_content(raw: dict[str, Any] | None) -> MessageContent:
    """Resolve the host's message body into a :class:`MessageContent`."""
    if not raw:
        return MessageContent(kind="unsupported")

    if raw.get("conversation"):
        return MessageContent(kind="text", text=raw["conversation"])
    extended = raw.get("extendedTextMessage") or {}
    if extended.get("text"):
        return MessageContent(kind="text", text=extended["text"])

    for field, media_type in _CAPTIONED_MEDIA.items():
        if raw.get(field) is not None:
            caption = (raw[field] or {}).get("caption")
            return MessageContent(kind="media", media_type=media_type, caption=caption)
    if raw.get("audioMessage") is not None:
        return MessageContent(kind="media", media_type="audio")
    if raw.get("documentMessage") is not None:
        file_name = (raw["documentMessage"] or {}).get("fileName")
        return MessageContent(kind="media", media_type="document", caption=file_name)
    if raw.get("stickerMessage") is not None:
        return MessageContent(kind="media", media_type="sticker")
    if raw.get("contactMessage") is not None or raw.get("contactsArrayMessage") is not None:
        return MessageContent(kind="media", media_type="contact", caption="Shared contact")
    if raw.get("locationMessage") is not None:
        return MessageContent(kind="media", media_type="location", caption="Shared location")

    if raw.get("buttonsMessage") is not None or raw.get("templateMessage") is not None:
        return MessageContent(kind="interactive", caption="Interactive message")
    if raw.get("pollCreationMessage") is not None or raw.get("pollUpdateMessage") is not None:
        return MessageContent(kind="poll", caption="Poll")

    return MessageContent(kind="unsupported")


class Message(BaseModel):
    """A single immutable message in a conversation."""

    model_config = ConfigDict(frozen=True)

    id: str
    from_me: bool = False
    content: MessageContent
    instant: int | None = None
    is_ai: bool = False
    is_follow_up: bool = False
    push_name: str | None = None

    @classmethod
    def from_host(
        cls,
        raw: dict[str, Any],
        *,
        position: int = 0,
        now_ms: int | None = None,
    ) -> Message:
        """Build a message from a raw host record.

        *position* names messages that arrive without a key id so that ids
        stay stable across reloads of the same list.
        """
        key = raw.get("key") or {}
        return cls(
            id=key.get("id") or f"msg-{position}",
            from_me=bool(key.get("fromMe")),
            content=parse_content(raw.get("message")),
            instant=message_instant(raw, now_ms=now_ms),
            is_ai=bool(raw.get("isAIMessage")),
            is_follow_up=bool(raw.get("isFollowUp")),
            push_name=raw.get("pushName"),
        )


def parse_messages(raw_messages: list[dict[str, Any]] | None) -> list[Message]:
    """Parse a ``get-chat-messages`` result.

    Malformed records are logged and skipped; the rest still load.
    """
    messages = []
    for index, raw in enumerate(raw_messages or []):
        if not isinstance(raw, dict) or not _is_object(raw.get("key")) or not _is_object(raw.get("message")):
            logger.warning("Skipped malformed message record at position %d", index)
            continue
        try:
            messages.append(Message.from_host(raw, position=index))
        except ValidationError:
            logger.warning("Skipped invalid message record at position %d", index, exc_info=True)
    return messages


def _is_object(value: Any) -> bool:
    return value is None or isinstance(value, dict)


class ConnectionState(BaseModel):
    """Last known connection status of the bound instance."""

    connected: bool = False
    reason: str = Field(default="Starting...")
    last_update: int = 0
