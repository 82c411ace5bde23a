"""FollowUpService — host round trips for the follow-up schedule.

Every command is confirmed by the host and followed by a full re-pull of the
follow-up snapshot; nothing is removed locally on the strength of a request.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from src.host import channels
from src.host.client import failure_message, succeeded
from src.host.errors import HostUnavailableError
from src.notifications import dedup
from src.notifications.dedup import NotificationIdentity

if TYPE_CHECKING:
    from src.config import Settings
    from src.followups.view import FollowUpView
    from src.host.client import HostClient
    from src.host.events import FollowUpCheckResultEvent
    from src.notifications.notifier import Notifier

logger = logging.getLogger(__name__)


class FollowUpService:
    """Pulls and commands for one host instance's follow-ups.

    Args:
        host: Request client for the host process.
        view: Local follow-up mirror updated from host responses.
        notifier: Toast sink (deduplicated).
        settings: Toast visibility windows.
        instance_id: Host instance the requests are scoped to.
    """

    def __init__(
        self,
        host: HostClient,
        view: FollowUpView,
        notifier: Notifier,
        settings: Settings,
        instance_id: str = "",
    ) -> None:
        self._host = host
        self._view = view
        self._notifier = notifier
        self._settings = settings
        self.instance_id = instance_id
        self._checking: set[str] = set()

    @property
    def view(self) -> FollowUpView:
        return self._view

    def is_checking(self, conversation_id: str) -> bool:
        return conversation_id in self._checking

    # -- Pulls -----------------------------------------------------------------

    async def refresh(self) -> None:
        """Replace the local follow-up set with the host's snapshot."""
        instance_id = self.instance_id
        snapshot = await self._host.invoke(channels.GET_ACTIVE_FOLLOW_UPS, instance_id)
        if self._stale(instance_id):
            return
        self._view.apply_snapshot(snapshot if isinstance(snapshot, dict) else None)

    async def refresh_check(self, conversation_id: str) -> None:
        """Pull the eligibility-check info for one conversation."""
        instance_id = self.instance_id
        info = await self._host.invoke(
            channels.GET_FOLLOW_UP_CHECK_INFO,
            self._payload(conversation_id),
        )
        if self._stale(instance_id):
            return
        self._view.apply_check_info(conversation_id, info if isinstance(info, dict) else None)

    async def reconcile(self) -> None:
        """Re-pull the snapshot; transport failures are logged only."""
        try:
            await self.refresh()
        except HostUnavailableError as exc:
            logger.warning("Follow-up re-pull failed: %s", exc)

    # -- Commands --------------------------------------------------------------

    async def cancel(self, conversation_id: str, follow_up_id: str | int) -> bool:
        """Ask the host to cancel one follow-up."""
        return await self._command(
            channels.CANCEL_FOLLOW_UP,
            self._payload(conversation_id, followUpId=follow_up_id),
            NotificationIdentity(conversation_id, dedup.FOLLOW_UP_CANCEL, "success"),
            ok_text="Follow-up cancelled",
            error_text="Could not cancel the follow-up",
        )

    async def send_now(self, conversation_id: str, follow_up_id: str | int) -> bool:
        """Ask the host to send one follow-up immediately."""
        return await self._command(
            channels.SEND_FOLLOW_UP_NOW,
            self._payload(conversation_id, followUpId=follow_up_id),
            NotificationIdentity(conversation_id, dedup.FOLLOW_UP_SEND, "success"),
            ok_text="Follow-up sent",
            error_text="Could not send the follow-up",
        )

    async def cancel_all(self) -> bool:
        """Ask the host to cancel every follow-up of the instance."""
        return await self._command(
            channels.CANCEL_ALL_FOLLOW_UPS,
            {"instanceId": self.instance_id},
            NotificationIdentity(None, dedup.FOLLOW_UP_CANCEL_ALL, "success"),
            ok_text="All follow-ups cancelled",
            error_text="Could not cancel follow-ups",
        )

    async def check_now(self, conversation_id: str) -> bool:
        """Run the eligibility check immediately.

        A second call for the same conversation while one is pending is
        ignored and returns False.
        """
        if conversation_id in self._checking:
            logger.debug("Check already in flight for %s", conversation_id)
            return False

        instance_id = self.instance_id
        self._checking.add(conversation_id)
        try:
            try:
                result = await self._host.invoke(
                    channels.CHECK_FOLLOW_UP_NOW,
                    self._payload(conversation_id),
                )
            except HostUnavailableError as exc:
                logger.warning("Manual follow-up check failed: %s", exc)
                await self._notifier.notify(
                    NotificationIdentity(conversation_id, dedup.MANUAL_CHECK, "error"),
                    "error",
                    "Could not check for a follow-up",
                )
                return False

            if not succeeded(result):
                await self._notifier.notify(
                    NotificationIdentity(conversation_id, dedup.MANUAL_CHECK, "error"),
                    "error",
                    failure_message(result, "Could not check for a follow-up"),
                )
                return False

            if result.get("cancelledAutomaticCheck") and not self._stale(instance_id):
                self._view.clear_check(conversation_id)
            await self._announce_check(
                conversation_id,
                has_follow_up=bool(result.get("hasFollowUp")),
                message=result.get("message") or "",
                reason=result.get("reason"),
                automatic=result.get("isManualCheck") is False,
            )
            await self.reconcile()
            return True
        finally:
            self._checking.discard(conversation_id)

    async def handle_check_result(self, event: FollowUpCheckResultEvent) -> None:
        """Apply a pushed check outcome: re-pull, then notify manual outcomes."""
        await self.reconcile()
        if not event.success:
            logger.info("Follow-up check failed on host for %s: %s", event.chat_id, event.message)
            return
        await self._announce_check(
            event.chat_id,
            has_follow_up=event.has_follow_up,
            message=event.message,
            reason=event.reason,
            automatic=event.is_automatic_check,
        )

    # -- Internal --------------------------------------------------------------

    def _payload(self, conversation_id: str, **extra: Any) -> dict[str, Any]:
        return {"instanceId": self.instance_id, "chatId": conversation_id, **extra}

    def _stale(self, instance_id: str) -> bool:
        """Whether a result requested for *instance_id* arrived after a switch."""
        if instance_id == self.instance_id:
            return False
        logger.debug("Discarded follow-up result of previous instance %s", instance_id or "(none)")
        return True

    async def _command(
        self,
        channel: str,
        payload: dict[str, Any],
        identity: NotificationIdentity,
        *,
        ok_text: str,
        error_text: str,
    ) -> bool:
        failed = NotificationIdentity(identity.conversation_id, identity.category, "error")
        try:
            result = await self._host.invoke(channel, payload)
        except HostUnavailableError as exc:
            logger.warning("%s failed: %s", channel, exc)
            await self._notifier.notify(failed, "error", error_text)
            return False

        if not succeeded(result):
            await self._notifier.notify(failed, "error", failure_message(result, error_text))
            return False

        await self._notifier.notify(identity, "success", result.get("message") or ok_text)
        await self.reconcile()
        return True

    async def _announce_check(
        self,
        conversation_id: str,
        *,
        has_follow_up: bool,
        message: str,
        reason: str | None,
        automatic: bool,
    ) -> None:
        category = dedup.AUTO_CHECK if automatic else dedup.MANUAL_CHECK
        outcome = "success" if has_follow_up else "info"
        await self._notifier.notify(
            NotificationIdentity(conversation_id, category, outcome),
            outcome,
            message,
            automatic=automatic,
        )
        if reason:
            await self._notifier.notify(
                NotificationIdentity(conversation_id, category, "reason"),
                "info",
                reason,
                visible_for=self._settings.toast_reason_seconds,
                delay=self._settings.toast_reason_delay_seconds,
                automatic=automatic,
            )
