"""NotificationChannel protocol — interface for all toast delivery channels."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal, Protocol, runtime_checkable

if TYPE_CHECKING:
    from src.notifications.dedup import NotificationIdentity

ToastLevel = Literal["success", "info", "error"]


@dataclass(frozen=True)
class Toast:
    """A visible, self-dismissing notification.

    Attributes:
        identity: Semantic identity used for deduplication.
        level: ``"success"``, ``"info"`` or ``"error"``.
        text: Message shown to the user.
        visible_for: Seconds until it dismisses itself (0 → until replaced).
        delay: Seconds to wait before showing it.
    """

    identity: NotificationIdentity
    level: ToastLevel
    text: str
    visible_for: float = 5.0
    delay: float = 0.0


@runtime_checkable
class NotificationChannel(Protocol):
    """Protocol that all notification channels must satisfy."""

    @property
    def name(self) -> str:
        """Unique channel identifier (e.g. 'log', 'desktop')."""
        ...

    async def show(self, toast: Toast) -> bool:
        """Display a toast. Returns True on success."""
        ...

    async def dismiss(self, toast: Toast) -> bool:
        """Remove a toast before it dismisses itself. Returns True on success."""
        ...
