"""ModeArbiter — the AI-responder and human-intervention axes per conversation.

The two axes are independent: the AI responder is toggled through
``set-ai-mode`` and gated by the host's ``canToggle``; a human intervention
suspends responding either manually (no expiry) or temporarily (counts down
locally from the host's reported remaining time).

Local state only changes from host responses. A toggle sends the intent and
applies whatever the host answers.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from src.host import channels
from src.host.client import failure_message, succeeded
from src.host.errors import HostUnavailableError
from src.modes.models import AIModeStatus, DisplayMode, InterventionState
from src.notifications import dedup
from src.notifications.dedup import NotificationIdentity
from src.timeline.timestamps import now_ms

if TYPE_CHECKING:
    from collections.abc import Callable

    from src.config import Settings
    from src.host.client import HostClient
    from src.notifications.notifier import Notifier

logger = logging.getLogger(__name__)


class ModeArbiter:
    """Mode state for every conversation of one host instance."""

    def __init__(
        self,
        host: HostClient,
        notifier: Notifier,
        settings: Settings,
        instance_id: str = "",
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._host = host
        self._notifier = notifier
        self._settings = settings
        self._clock = clock
        self.instance_id = instance_id
        self._ai: dict[str, AIModeStatus] = {}
        self._interventions: dict[str, InterventionState] = {}
        self._toggling_ai: set[str] = set()
        self._toggling_intervention: set[str] = set()

    # -- Queries ---------------------------------------------------------------

    def ai_status(self, conversation_id: str) -> AIModeStatus | None:
        return self._ai.get(conversation_id)

    def intervention(self, conversation_id: str) -> InterventionState | None:
        return self._interventions.get(conversation_id)

    def intervention_active(self, conversation_id: str) -> bool:
        return conversation_id in self._interventions

    def intervention_remaining(self, conversation_id: str, now: int) -> int | None:
        """Countdown of a temporary intervention; None if manual or absent."""
        state = self._interventions.get(conversation_id)
        if state is None:
            return None
        return state.remaining(now)

    def display_mode(self, conversation_id: str) -> DisplayMode:
        """``temporary`` or ``manual`` under an intervention, else from the AI status."""
        state = self._interventions.get(conversation_id)
        if state is not None:
            return "manual" if state.manual else "temporary"
        status = self._ai.get(conversation_id)
        if status is not None and not status.active:
            return "manual"
        return "ai"

    def ai_active(self, conversation_id: str) -> bool:
        status = self._ai.get(conversation_id)
        return status is not None and status.active

    # -- Snapshots -------------------------------------------------------------

    def set_ai_status(self, conversation_id: str, status: AIModeStatus) -> None:
        self._ai[conversation_id] = status

    def apply_all_interventions(self, snapshot: dict[str, Any] | None, now: int | None = None) -> None:
        """Replace the intervention map with a ``get-all-human-interventions`` result."""
        now = self._clock() if now is None else now
        interventions = {}
        for conversation_id, details in (snapshot or {}).items():
            if not isinstance(details, dict):
                continue
            state = InterventionState.from_details(conversation_id, details, now)
            if state is not None:
                interventions[conversation_id] = state
        self._interventions = interventions

    def apply_intervention_details(
        self,
        conversation_id: str,
        details: dict[str, Any] | None,
        now: int | None = None,
    ) -> None:
        """Set or remove one conversation's intervention."""
        now = self._clock() if now is None else now
        state = InterventionState.from_details(conversation_id, details, now)
        if state is None:
            self._interventions.pop(conversation_id, None)
        else:
            self._interventions[conversation_id] = state

    def tick(self, now: int) -> list[str]:
        """Deactivate temporary interventions that reached zero.

        Returns the affected conversations; their AI status must be re-pulled.
        """
        expired = [cid for cid, state in self._interventions.items() if state.expired(now)]
        for conversation_id in expired:
            del self._interventions[conversation_id]
            logger.info("Temporary intervention ended for %s", conversation_id)
        return expired

    def forget(self, conversation_id: str) -> None:
        self._ai.pop(conversation_id, None)
        self._interventions.pop(conversation_id, None)

    def clear(self) -> None:
        self._ai.clear()
        self._interventions.clear()
        self._toggling_ai.clear()
        self._toggling_intervention.clear()

    # -- Pulls -----------------------------------------------------------------

    async def load_ai_status(self, conversation_id: str) -> AIModeStatus | None:
        """Pull the AI-mode status of one conversation."""
        instance_id = self.instance_id
        result = await self._host.invoke(channels.GET_AI_MODE_STATUS, self._payload(conversation_id))
        if self._stale(instance_id):
            return None
        return self._store_status(conversation_id, result)

    async def load_intervention(self, conversation_id: str) -> InterventionState | None:
        instance_id = self.instance_id
        details = await self._host.invoke(
            channels.GET_HUMAN_INTERVENTION_DETAILS,
            {"chatId": conversation_id},
        )
        if self._stale(instance_id):
            return None
        self.apply_intervention_details(conversation_id, details if isinstance(details, dict) else None)
        return self._interventions.get(conversation_id)

    async def load_all_interventions(self) -> None:
        instance_id = self.instance_id
        snapshot = await self._host.invoke(channels.GET_ALL_HUMAN_INTERVENTIONS)
        if self._stale(instance_id):
            return
        self.apply_all_interventions(snapshot if isinstance(snapshot, dict) else None)

    # -- Commands --------------------------------------------------------------

    async def toggle_ai(self, conversation_id: str) -> bool:
        """Flip the AI responder. Returns True if the host applied it.

        Ignored while a previous toggle is in flight or before the status is
        known. A restricted conversation only shows the restriction reason.
        """
        if conversation_id in self._toggling_ai:
            logger.debug("AI toggle already in flight for %s", conversation_id)
            return False
        status = self._ai.get(conversation_id)
        if status is None:
            logger.debug("AI status unknown for %s, toggle ignored", conversation_id)
            return False
        if not status.can_toggle:
            await self._notifier.notify(
                NotificationIdentity(conversation_id, dedup.TOGGLE_RESTRICTION, "blocked"),
                "info",
                status.reason or "AI mode cannot be changed for this chat",
                visible_for=self._settings.toast_restriction_seconds,
            )
            return False

        instance_id = self.instance_id
        self._toggling_ai.add(conversation_id)
        try:
            failed = NotificationIdentity(conversation_id, dedup.AI_MODE, "error")
            try:
                result = await self._host.invoke(
                    channels.SET_AI_MODE,
                    self._payload(conversation_id, active=not status.active),
                )
            except HostUnavailableError as exc:
                logger.warning("AI toggle failed for %s: %s", conversation_id, exc)
                await self._notifier.notify(failed, "error", "Could not change AI mode")
                return False

            if not succeeded(result):
                await self._notifier.notify(
                    failed, "error", failure_message(result, "Could not change AI mode")
                )
                return False
            if self._stale(instance_id):
                return False

            new_status = self._store_status(conversation_id, result)
            active = new_status.active if new_status is not None else not status.active
            await self._notifier.notify(
                NotificationIdentity(conversation_id, dedup.AI_MODE, "on" if active else "off"),
                "success",
                result.get("message") or ("AI mode enabled" if active else "AI mode disabled"),
            )
            # Enabling AI ends an intervention on the host side.
            if status.source == "intervention" or self.intervention_active(conversation_id):
                await self._reload_quietly(self.load_intervention, conversation_id)
            return True
        finally:
            self._toggling_ai.discard(conversation_id)

    async def toggle_intervention(self, conversation_id: str) -> bool:
        """Flip the human intervention using the currently displayed state as intent."""
        if conversation_id in self._toggling_intervention:
            logger.debug("Intervention toggle already in flight for %s", conversation_id)
            return False

        current = self.intervention_active(conversation_id)
        instance_id = self.instance_id
        self._toggling_intervention.add(conversation_id)
        try:
            failed = NotificationIdentity(conversation_id, dedup.INTERVENTION, "error")
            try:
                result = await self._host.invoke(
                    channels.TOGGLE_HUMAN_INTERVENTION,
                    {"chatId": conversation_id, "currentStatus": current},
                )
            except HostUnavailableError as exc:
                logger.warning("Intervention toggle failed for %s: %s", conversation_id, exc)
                await self._notifier.notify(failed, "error", "Could not change manual mode")
                return False

            if not succeeded(result):
                await self._notifier.notify(
                    failed, "error", failure_message(result, "Could not change manual mode")
                )
                return False
            if self._stale(instance_id):
                return False

            details = result.get("details")
            self.apply_intervention_details(conversation_id, details if isinstance(details, dict) else None)
            active = self.intervention_active(conversation_id)
            await self._notifier.notify(
                NotificationIdentity(conversation_id, dedup.INTERVENTION, "on" if active else "off"),
                "success",
                "Manual mode enabled" if active else "Manual mode disabled",
            )
            await self._reload_quietly(self.load_ai_status, conversation_id)
            return True
        finally:
            self._toggling_intervention.discard(conversation_id)

    # -- Internal --------------------------------------------------------------

    def _payload(self, conversation_id: str, **extra: Any) -> dict[str, Any]:
        return {"instanceId": self.instance_id, "chatId": conversation_id, **extra}

    def _stale(self, instance_id: str) -> bool:
        """Whether a result requested for *instance_id* arrived after a switch."""
        if instance_id == self.instance_id:
            return False
        logger.debug("Discarded mode result of previous instance %s", instance_id or "(none)")
        return True

    def _store_status(self, conversation_id: str, result: Any) -> AIModeStatus | None:
        """Apply the ``status`` of a successful response."""
        if not succeeded(result) or not isinstance(result.get("status"), dict):
            return None
        status = AIModeStatus.model_validate(result["status"])
        self._ai[conversation_id] = status
        return status

    async def _reload_quietly(self, loader: Callable[[str], Any], conversation_id: str) -> None:
        try:
            await loader(conversation_id)
        except HostUnavailableError as exc:
            logger.warning("Mode re-pull failed for %s: %s", conversation_id, exc)
