"""Push event payloads sent by the host."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from src.host import channels

ConnectionStatus = Literal[
    "open",
    "close-by-user",
    "disconnected-by-validation",
    "disconnected-by-error",
]

# The instance scope travels as ``conversationId`` (older hosts: ``instanceId``).
_INSTANCE = Field(validation_alias=AliasChoices("conversationId", "instanceId"))


class PushEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    instance_id: str = _INSTANCE


class NewMessageEvent(PushEvent):
    """A message was stored for a chat of the instance."""

    chat_id: str = Field(validation_alias="chatId")
    message: dict[str, Any] | None = None

    @property
    def message_id(self) -> str | None:
        key = (self.message or {}).get("key") or {}
        return key.get("id")


class StatusUpdateEvent(PushEvent):
    """The instance's connection changed state."""

    status: ConnectionStatus
    reason: str | None = None

    @property
    def connected(self) -> bool:
        return self.status == "open"

    @property
    def is_failure(self) -> bool:
        return self.status in ("disconnected-by-validation", "disconnected-by-error")


class FollowUpCheckResultEvent(PushEvent):
    """An eligibility check finished on the host."""

    chat_id: str = Field(validation_alias="chatId")
    success: bool = False
    has_follow_up: bool = Field(default=False, validation_alias="hasFollowUp")
    message: str = ""
    reason: str | None = None
    is_automatic_check: bool = Field(default=False, validation_alias="isAutomaticCheck")


EVENT_MODELS: dict[str, type[PushEvent]] = {
    channels.NEW_MESSAGE: NewMessageEvent,
    channels.STATUS_UPDATE: StatusUpdateEvent,
    channels.FOLLOW_UP_CHECK_RESULT: FollowUpCheckResultEvent,
}


def parse_event(name: str, payload: dict[str, Any]) -> PushEvent:
    """Validate a raw push payload. Raises KeyError for unknown events."""
    model = EVENT_MODELS[name]
    return model.model_validate(payload)
