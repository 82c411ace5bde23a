"""NotificationRouter — singleton that fans toasts out to registered channels.

Each toast goes to the primary channel (the default, or the only general
channel when no default is set) plus every channel that subscribed to the
toast's level. A dismissal reaches exactly the channels that showed the toast.
"""

from __future__ import annotations

import logging
import math
import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from src.notifications.channels import NotificationChannel, Toast, ToastLevel

logger = logging.getLogger(__name__)


class NotificationRouter:
    """Routes toasts by level.

    Singleton accessed via ``NotificationRouter.get()``.
    """

    _instance: NotificationRouter | None = None

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._channels: dict[str, NotificationChannel] = {}
        self._levels: dict[str, frozenset[str]] = {}
        self._default: str = ""
        self._clock = clock
        # identity key -> (channels that showed it, visible until)
        self._shown_on: dict[str, tuple[list[str], float]] = {}

    @classmethod
    def get(cls) -> NotificationRouter:
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset singleton — for tests only."""
        cls._instance = None

    # -- Channels --------------------------------------------------------------

    def register_channel(
        self,
        channel: NotificationChannel,
        *,
        levels: Iterable[ToastLevel] | None = None,
    ) -> None:
        """Add *channel*. With *levels* it only receives toasts of those levels.

        Raises ValueError if the name is taken.
        """
        if channel.name in self._channels:
            msg = f"Channel '{channel.name}' is already registered"
            raise ValueError(msg)
        self._channels[channel.name] = channel
        if levels is not None:
            self._levels[channel.name] = frozenset(levels)

    def unregister_channel(self, name: str) -> bool:
        if self._channels.pop(name, None) is None:
            return False
        self._levels.pop(name, None)
        if self._default == name:
            self._default = ""
        for names, _ in self._shown_on.values():
            if name in names:
                names.remove(name)
        return True

    def set_default_channel(self, name: str) -> None:
        """Make *name* the primary channel. Raises KeyError if not registered."""
        if name not in self._channels:
            msg = f"Channel '{name}' is not registered"
            raise KeyError(msg)
        self._default = name

    def get_channel(self, name: str) -> NotificationChannel | None:
        return self._channels.get(name)

    def list_channels(self) -> list[str]:
        return list(self._channels)

    @property
    def default_channel_name(self) -> str:
        return self._default

    def channels_for(self, level: str) -> list[str]:
        """Names of the channels a toast of *level* is delivered to, primary first."""
        names = []
        primary = self._primary()
        if primary:
            names.append(primary)
        for name, levels in self._levels.items():
            if level in levels and name not in names:
                names.append(name)
        return names

    def _primary(self) -> str:
        if self._default:
            return self._default
        general = [name for name in self._channels if name not in self._levels]
        return general[0] if len(general) == 1 else ""

    # -- Delivery --------------------------------------------------------------

    async def show(self, toast: Toast) -> bool:
        """Deliver *toast*. Returns True if at least one channel showed it.

        A failing channel is logged and does not stop delivery to the others.
        """
        self._prune()
        names = self.channels_for(toast.level)
        if not names:
            logger.warning("No channel for %s toast: %s", toast.level, toast.identity.key)
            return False

        shown_on = []
        for name in names:
            try:
                if await self._channels[name].show(toast):
                    shown_on.append(name)
            except Exception:
                logger.exception("Channel %s failed to show %s", name, toast.identity.key)
        if shown_on:
            until = math.inf if toast.visible_for <= 0 else self._clock() + toast.visible_for
            self._shown_on[toast.identity.key] = (shown_on, until)
        return bool(shown_on)

    async def dismiss(self, toast: Toast) -> bool:
        """Dismiss *toast* on every channel that showed it.

        A toast whose visibility window has passed is already gone.
        """
        self._prune()
        names, _ = self._shown_on.pop(toast.identity.key, ([], 0.0))
        dismissed = False
        for name in names:
            channel = self._channels.get(name)
            if channel is None:
                continue
            try:
                dismissed = await channel.dismiss(toast) or dismissed
            except Exception:
                logger.exception("Channel %s failed to dismiss %s", name, toast.identity.key)
        return dismissed

    def _prune(self) -> None:
        now = self._clock()
        for key in [k for k, (_, until) in self._shown_on.items() if until <= now]:
            del self._shown_on[key]
