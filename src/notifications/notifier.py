"""Notifier — dedup gate in front of the notification router."""

from __future__ import annotations

import asyncio
import functools
import logging
from typing import TYPE_CHECKING

from src.notifications.channels import Toast
from src.notifications.dedup import DedupGate
from src.notifications.router import NotificationRouter

if TYPE_CHECKING:
    from src.notifications.channels import ToastLevel
    from src.notifications.dedup import NotificationIdentity

logger = logging.getLogger(__name__)


class Notifier:
    """Shows user-facing toasts, at most one per visible identity.

    A toast with a ``delay`` is delivered in the background once the delay
    has passed. Its identity is held by the gate from the moment it is
    requested, so a duplicate arriving during the delay is suppressed too.

    Args:
        gate: Dedup registry (default: the shared gate).
        router: Toast router (default: the shared router).
        default_seconds: Visibility window when a call does not give one.
    """

    def __init__(
        self,
        gate: DedupGate | None = None,
        router: NotificationRouter | None = None,
        default_seconds: float = 5.0,
    ) -> None:
        self._gate = gate or DedupGate.get()
        self._router = router or NotificationRouter.get()
        self._default_seconds = default_seconds
        self._active: dict[str, Toast] = {}
        self._pending: dict[str, asyncio.Task] = {}

    @property
    def gate(self) -> DedupGate:
        return self._gate

    @property
    def pending(self) -> list[str]:
        """Identity keys of toasts still waiting out their delay."""
        return list(self._pending)

    async def notify(
        self,
        identity: NotificationIdentity,
        level: ToastLevel,
        text: str,
        *,
        visible_for: float | None = None,
        delay: float = 0.0,
        automatic: bool = False,
    ) -> bool:
        """Show a toast unless it is automatic or already visible.

        Returns True if it was shown, or scheduled when *delay* is positive.
        """
        if automatic:
            logger.debug("Suppressed automatic outcome %s: %s", identity.key, text)
            return False
        if not text:
            return False
        self._prune()
        if not self._gate.should_show(identity):
            logger.debug("Duplicate toast suppressed: %s", identity.key)
            return False

        seconds = self._default_seconds if visible_for is None else visible_for
        toast = Toast(identity=identity, level=level, text=text, visible_for=seconds, delay=delay)
        # Recorded before delivery so a concurrent duplicate sees it.
        self._gate.record(identity, seconds + delay if seconds > 0 else 0)
        if delay > 0:
            task = asyncio.create_task(self._deliver_later(toast))
            self._pending[identity.key] = task
            task.add_done_callback(functools.partial(self._forget_pending, identity.key))
            return True
        return await self._deliver(toast)

    async def dismiss(self, identity: NotificationIdentity) -> bool:
        """Dismiss a visible or pending toast so the identity can be shown again."""
        self._prune()
        self._gate.dismiss(identity)
        task = self._pending.pop(identity.key, None)
        if task is not None:
            task.cancel()
            return True
        toast = self._active.pop(identity.key, None)
        if toast is None:
            return False
        return await self._router.dismiss(toast)

    async def flush(self) -> None:
        """Wait until every delayed toast has been delivered."""
        while self._pending:
            await asyncio.gather(*self._pending.values(), return_exceptions=True)

    def cancel_pending(self) -> int:
        """Drop every delayed toast that has not been shown yet."""
        tasks = list(self._pending.values())
        self._pending.clear()
        for task in tasks:
            task.cancel()
        return len(tasks)

    # -- Internal --------------------------------------------------------------

    async def _deliver(self, toast: Toast) -> bool:
        shown = await self._router.show(toast)
        if not shown:
            self._gate.dismiss(toast.identity)
            return False
        self._active[toast.identity.key] = toast
        return True

    async def _deliver_later(self, toast: Toast) -> None:
        await asyncio.sleep(toast.delay)
        await self._deliver(toast)

    def _forget_pending(self, key: str, task: asyncio.Task) -> None:
        if self._pending.get(key) is task:
            del self._pending[key]

    def _prune(self) -> None:
        """Drop toasts whose visibility window has passed."""
        visible = set(self._gate.visible_keys())
        for key in [k for k in self._active if k not in visible]:
            del self._active[key]
