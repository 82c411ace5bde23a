"""Read-only view models produced by :meth:`SyncController.snapshot`."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from src.chat.models import ConnectionState
    from src.chat.timeline import TimelineMessage
    from src.followups.models import FollowUpState
    from src.followups.view import Countdown
    from src.modes.models import AIModeStatus, DisplayMode
    from src.timeline.formatting import DateSeparator

FollowUpPanel = Literal["check", "scheduled"]


@dataclass(frozen=True)
class ConversationRow:
    """One entry of the conversation list."""

    id: str
    name: str
    preview: str
    time_label: str
    unread_count: int
    selected: bool
    has_follow_ups: bool
    mode: DisplayMode


@dataclass(frozen=True)
class SelectionView:
    """Everything shown for the selected conversation."""

    conversation_id: str
    timeline: list[TimelineMessage | DateSeparator]
    mode: DisplayMode
    ai_status: AIModeStatus | None
    intervention_remaining: int | None
    follow_up_state: FollowUpState
    countdown: Countdown | None
    check_remaining: int | None
    followup_panel: FollowUpPanel | None
    checking: bool


@dataclass(frozen=True)
class EngineSnapshot:
    instance_id: str
    connection: ConnectionState
    conversations: list[ConversationRow]
    selection: SelectionView | None
