"""FollowUp and EligibilityCheck data models."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any

from src.timeline.timestamps import normalize_timestamp


class FollowUpState(enum.Enum):
    """Per-conversation follow-up state."""

    NONE = "none"
    CHECK_PENDING = "check_pending"
    SCHEDULED = "scheduled"


@dataclass(frozen=True)
class FollowUp:
    """A host-scheduled outbound message.

    Attributes:
        conversation_id: Chat the message will be sent to.
        scheduled_at: Send instant in epoch milliseconds.
        message: Text that will be sent.
        sequence_index: 1-based position in its sequence (0 → unknown).
        total_in_sequence: Sequence length (0 → unknown).
        id: Host id, when the host assigns one.
    """

    conversation_id: str
    scheduled_at: int
    message: str = ""
    sequence_index: int = 0
    total_in_sequence: int = 0
    id: str | None = None

    @property
    def follow_up_id(self) -> str | int:
        """Identifier the host expects in cancel/send requests."""
        return self.id or self.scheduled_at

    @classmethod
    def from_payload(cls, conversation_id: str, raw: dict[str, Any]) -> FollowUp | None:
        """Build from a ``get-active-follow-ups`` item; None if it has no valid instant."""
        scheduled_at = normalize_timestamp(raw.get("scheduledTime"))
        if scheduled_at is None:
            return None
        return cls(
            conversation_id=conversation_id,
            scheduled_at=scheduled_at,
            message=raw.get("message") or "",
            sequence_index=int(raw.get("sequenceIndex") or 0),
            total_in_sequence=int(raw.get("totalInSequence") or 0),
            id=raw.get("id"),
        )


@dataclass(frozen=True)
class EligibilityCheck:
    """A host-scheduled evaluation of whether a follow-up should be created."""

    conversation_id: str
    check_at: int

    @classmethod
    def from_payload(cls, conversation_id: str, raw: dict[str, Any] | None) -> EligibilityCheck | None:
        """Build from a ``get-follow-up-check-info`` result; None when nothing is scheduled."""
        if not raw or not raw.get("hasScheduledCheck"):
            return None
        check_at = normalize_timestamp(raw.get("checkTime"))
        if check_at is None:
            return None
        return cls(conversation_id=conversation_id, check_at=check_at)


def remaining(instant: int, now: int) -> int:
    """Milliseconds until *instant*, never negative."""
    return max(0, instant - now)


def format_remaining(ms: int) -> str:
    """``Hh MMm`` from one hour up, ``M:SS`` below."""
    ms = max(0, ms)
    hours = ms // 3_600_000
    minutes = (ms % 3_600_000) // 60_000
    seconds = (ms % 60_000) // 1000
    if hours > 0:
        return f"{hours}h {minutes:02d}m"
    return f"{minutes}:{seconds:02d}"
