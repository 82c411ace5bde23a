"""AI-mode status and human-intervention state."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

from src.chat.models import HostModel

DisplayMode = Literal["ai", "manual", "temporary"]

# ``remainingTime`` value the host uses for an intervention without expiry.
MANUAL_REMAINING = -1


class AIModeStatus(HostModel):
    """Whether the automated responder answers a conversation, and why."""

    active: bool = False
    is_group: bool = False
    can_toggle: bool = True
    reason: str | None = None
    source: str = "default"


@dataclass(frozen=True)
class InterventionState:
    """A human-intervention report as applied locally.

    Attributes:
        conversation_id: Chat the intervention applies to.
        active: Whether responding is suspended.
        manual: Suspended until toggled off (never expires).
        remaining_ms: Time left as reported by the host.
        observed_at: Local instant (ms) at which the report was applied.
    """

    conversation_id: str
    active: bool
    manual: bool
    remaining_ms: int
    observed_at: int

    @classmethod
    def from_details(
        cls,
        conversation_id: str,
        details: dict[str, Any] | None,
        now: int,
    ) -> InterventionState | None:
        """Build from ``get-human-intervention-details``; None when there is none."""
        if not details or not details.get("isActive", True):
            return None
        raw_remaining = details.get("remainingTime")
        try:
            remaining_ms = int(raw_remaining)
        except (TypeError, ValueError):
            remaining_ms = MANUAL_REMAINING
        manual = bool(details.get("isManualIntervention")) or remaining_ms == MANUAL_REMAINING
        return cls(
            conversation_id=conversation_id,
            active=True,
            manual=manual,
            remaining_ms=MANUAL_REMAINING if manual else max(0, remaining_ms),
            observed_at=now,
        )

    def remaining(self, now: int) -> int | None:
        """Milliseconds left, or None for a manual intervention."""
        if self.manual:
            return None
        return max(0, self.remaining_ms - (now - self.observed_at))

    def expired(self, now: int) -> bool:
        return not self.manual and self.remaining(now) == 0
