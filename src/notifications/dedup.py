"""Notification dedup gate — at most one visible toast per semantic event.

The same host event can reach the client twice (a live push and the pull that
reconciles it). Each toast carries a :class:`NotificationIdentity`; while a
toast with that identity is visible, further toasts with it are suppressed.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

# Identity categories
CONNECTION = "connection"
MANUAL_CHECK = "manual-check"
AUTO_CHECK = "auto-check"
TOGGLE_RESTRICTION = "toggle-restriction"
AI_MODE = "ai-mode"
INTERVENTION = "intervention"
FOLLOW_UP_CANCEL = "follow-up-cancel"
FOLLOW_UP_SEND = "follow-up-send"
FOLLOW_UP_CANCEL_ALL = "follow-up-cancel-all"
CLEAR_CHAT = "clear-chat"
SEND_MESSAGE = "send-message"


@dataclass(frozen=True)
class NotificationIdentity:
    """Deterministic key of a user-facing event: who, what, which outcome."""

    conversation_id: str | None
    category: str
    outcome: str

    @property
    def key(self) -> str:
        return f"{self.category}:{self.conversation_id or '*'}:{self.outcome}"


class DedupGate:
    """Registry of currently visible notification identities.

    Singleton accessed via ``DedupGate.get()``. Entries are append/expire-only:
    a recorded identity stays until its visibility window passes or it is
    dismissed explicitly.
    """

    _instance: DedupGate | None = None

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._visible_until: dict[str, float] = {}

    @classmethod
    def get(cls) -> DedupGate:
        """Return the shared gate, creating it if needed."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset singleton — for tests only."""
        cls._instance = None

    def _purge(self) -> None:
        now = self._clock()
        expired = [key for key, until in self._visible_until.items() if until <= now]
        for key in expired:
            del self._visible_until[key]

    def should_show(self, identity: NotificationIdentity) -> bool:
        """True only if no visible notification shares *identity*."""
        self._purge()
        return identity.key not in self._visible_until

    def record(self, identity: NotificationIdentity, visible_for: float) -> None:
        """Mark *identity* visible for *visible_for* seconds (0 → until dismissed)."""
        until = math.inf if visible_for <= 0 else self._clock() + visible_for
        self._visible_until[identity.key] = until

    def dismiss(self, identity: NotificationIdentity) -> bool:
        """Forget *identity* early. Returns True if it was visible."""
        return self._visible_until.pop(identity.key, None) is not None

    def visible_keys(self) -> list[str]:
        self._purge()
        return sorted(self._visible_until)
