"""MessageTimelineStore — messages of the selected conversation and their highlights."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from src.timeline.formatting import DateSeparator, insert_separators, time_label

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import tzinfo

    from src.chat.models import Message

logger = logging.getLogger(__name__)


class HighlightTracker:
    """Recently arrived message ids, each decaying after a fixed window.

    An id enters on :meth:`arrive` and leaves once ``window_ms`` has elapsed.
    It only comes back through another :meth:`arrive`.
    """

    def __init__(self, window_ms: int = 2000) -> None:
        self.window_ms = window_ms
        self._arrived_at: dict[str, int] = {}

    def arrive(self, message_id: str, now: int) -> None:
        self._arrived_at[message_id] = now

    def decay(self, now: int) -> list[str]:
        """Drop ids whose window has elapsed. Returns the dropped ids."""
        expired = [mid for mid, at in self._arrived_at.items() if now - at >= self.window_ms]
        for mid in expired:
            del self._arrived_at[mid]
        return expired

    def is_highlighted(self, message_id: str, now: int) -> bool:
        at = self._arrived_at.get(message_id)
        return at is not None and now - at < self.window_ms

    def next_expiry(self) -> int | None:
        if not self._arrived_at:
            return None
        return min(self._arrived_at.values()) + self.window_ms

    def clear(self) -> None:
        self._arrived_at.clear()

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._arrived_at

    def __len__(self) -> int:
        return len(self._arrived_at)


@dataclass(frozen=True)
class TimelineMessage:
    """A renderable message row."""

    message: Message
    time_label: str
    highlighted: bool

    @property
    def instant(self) -> int | None:
        return self.message.instant


class MessageTimelineStore:
    """Ordered messages for one conversation plus the highlight set."""

    def __init__(self, highlight_window_ms: int = 2000) -> None:
        self.conversation_id: str | None = None
        self._messages: list[Message] = []
        self.highlights = HighlightTracker(highlight_window_ms)

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    def load(self, conversation_id: str, messages: Iterable[Message]) -> None:
        """Replace the list with a host snapshot for *conversation_id*.

        Loading a different conversation also drops its highlights.
        """
        if conversation_id != self.conversation_id:
            self.highlights.clear()
        self.conversation_id = conversation_id
        self._messages = list(messages)
        logger.debug("Loaded %d message(s) for %s", len(self._messages), conversation_id)

    def clear(self) -> None:
        self.conversation_id = None
        self._messages = []
        self.highlights.clear()

    def mark_arrived(self, message_id: str, now: int) -> None:
        self.highlights.arrive(message_id, now)

    def decay(self, now: int) -> list[str]:
        return self.highlights.decay(now)

    def render(self, now: int, tz: tzinfo) -> list[TimelineMessage | DateSeparator]:
        """Renderable rows with date separators; unsupported content is skipped."""
        rows = [
            TimelineMessage(
                message=m,
                time_label=time_label(m.instant, tz),
                highlighted=self.highlights.is_highlighted(m.id, now),
            )
            for m in self._messages
            if m.content.renderable
        ]
        return insert_separators(rows, now, tz)
