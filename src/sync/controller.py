"""SyncController — keeps the local stores consistent with the host process.

Inbound: push events from the :class:`EventBus` and periodic pulls.
Outbound: commands issued on behalf of the user.

Timers live in two scopes on the :class:`TimerEngine`:

* ``instance``: connection status, interventions and follow-up snapshots.
  Torn down when the bound instance changes.
* ``selection``: countdown tick, eligibility-check re-pull, highlight decay.
  Torn down when the selected conversation changes.

Every selection bumps the registry epoch; a message pull only applies its
result when the epoch and the selected id are still those it was issued for.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from src.chat.models import ConnectionState, Conversation, parse_messages
from src.chat.registry import ConversationRegistry
from src.chat.timeline import MessageTimelineStore
from src.config import settings as default_settings
from src.followups.service import FollowUpService
from src.followups.view import FollowUpView
from src.host import channels
from src.host.client import failure_message, succeeded
from src.host.errors import HostUnavailableError
from src.modes.arbiter import ModeArbiter
from src.notifications import dedup
from src.notifications.dedup import NotificationIdentity
from src.notifications.notifier import Notifier
from src.scheduler.engine import TimerEngine
from src.sync.models import ConversationRow, EngineSnapshot, FollowUpPanel, SelectionView
from src.timeline.formatting import chat_list_label, resolve_timezone
from src.timeline.timestamps import now_ms

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from src.config import Settings
    from src.host.bus import EventBus, Subscription
    from src.host.client import HostClient
    from src.host.events import FollowUpCheckResultEvent, NewMessageEvent, StatusUpdateEvent

logger = logging.getLogger(__name__)

INSTANCE_SCOPE = "instance"
SELECTION_SCOPE = "selection"

_STATUS_REASONS = {
    "open": "Connected",
    "close-by-user": "Disconnected",
    "disconnected-by-validation": "Session rejected by the server",
    "disconnected-by-error": "Connection lost",
}

_DISCONNECTED = NotificationIdentity(None, dedup.CONNECTION, "disconnected")
_CONNECTED = NotificationIdentity(None, dedup.CONNECTION, "connected")


class SyncController:
    """Owns the stores of one host instance and reconciles them with the host.

    Args:
        host: Request client for the host process.
        bus: Bus the push receiver publishes host events on.
        settings: Engine settings (default: the module-level settings).
        notifier: Toast sink (default: shared gate and router).
        timers: Timer engine (default: a fresh APScheduler-backed engine).
        clock: Epoch-millisecond clock.
    """

    def __init__(
        self,
        host: HostClient,
        bus: EventBus,
        settings: Settings | None = None,
        *,
        notifier: Notifier | None = None,
        timers: TimerEngine | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._settings = settings or default_settings
        self._host = host
        self._bus = bus
        self._notifier = notifier or Notifier(default_seconds=self._settings.toast_seconds)
        self._timers = timers or TimerEngine()
        self._clock = clock
        self._tz = resolve_timezone(self._settings.display_timezone)

        self._instance_id = self._settings.instance_id
        self.registry = ConversationRegistry()
        self.timeline = MessageTimelineStore(self._settings.highlight_decay_ms)
        self.follow_ups = FollowUpService(
            host,
            FollowUpView(self._settings.check_grace_ms),
            self._notifier,
            self._settings,
            self._instance_id,
        )
        self.modes = ModeArbiter(host, self._notifier, self._settings, self._instance_id, clock)
        self.connection = ConnectionState()

        self._subscriptions: dict[str, Subscription] = {}
        self._sending = False
        self._started = False

    @property
    def instance_id(self) -> str:
        return self._instance_id

    @property
    def selected_id(self) -> str | None:
        return self.registry.selected_id

    @property
    def timers(self) -> TimerEngine:
        return self._timers

    # -- Lifecycle -------------------------------------------------------------

    async def start(self) -> None:
        """Subscribe to push events, start periodic reconciliation, load everything."""
        if self._started:
            return
        self._timers.start()
        self._started = True
        self._subscribe()
        self._start_instance_timers()
        await self.reload()
        logger.info("Sync controller started for instance %s", self._instance_id or "(none)")

    async def stop(self) -> None:
        if not self._started:
            return
        self._timers.cancel_scope(SELECTION_SCOPE)
        self._timers.cancel_scope(INSTANCE_SCOPE)
        for subscription in self._subscriptions.values():
            subscription.cancel()
        self._subscriptions.clear()
        self._timers.stop()
        self._notifier.cancel_pending()
        self._started = False
        logger.info("Sync controller stopped")

    async def switch_instance(self, instance_id: str) -> bool:
        """Bind to another host instance, dropping every per-instance store."""
        if instance_id == self._instance_id:
            return False
        logger.info("Switching instance %s -> %s", self._instance_id or "(none)", instance_id)
        self._timers.cancel_scope(SELECTION_SCOPE)
        self._timers.cancel_scope(INSTANCE_SCOPE)

        self._instance_id = instance_id
        self.follow_ups.instance_id = instance_id
        self.modes.instance_id = instance_id
        self.registry.clear()
        self.timeline.clear()
        self.follow_ups.view.clear()
        self.modes.clear()
        self._notifier.cancel_pending()
        self.connection = ConnectionState()

        self._subscribe()
        if self._started:
            self._start_instance_timers()
            await self.reload()
        return True

    async def reload(self) -> None:
        """Pull every instance-level store. Failures are logged only."""
        await asyncio.gather(
            self._background("connection status", self.refresh_connection),
            self._background("conversation list", self.refresh_conversations),
            self._background("follow-ups", self.follow_ups.refresh),
            self._background("interventions", self.modes.load_all_interventions),
        )

    # -- Selection -------------------------------------------------------------

    async def select_conversation(self, chat_id: str | None) -> None:
        """Make *chat_id* the selected conversation and pull its state.

        Switching to a different conversation clears the message list and
        highlights and cancels the old selection's timers before any pull
        for the new one resolves.
        """
        previous = self.registry.select(chat_id)
        epoch = self.registry.epoch
        if previous != chat_id:
            self._timers.cancel_scope(SELECTION_SCOPE)
            self.timeline.clear()
        if chat_id is None:
            return

        self._subscribe()
        self._start_selection_timers()
        await asyncio.gather(
            self._background("messages", self.load_messages, chat_id, epoch),
            self._background("AI mode status", self.modes.load_ai_status, chat_id),
            self._background("intervention details", self.modes.load_intervention, chat_id),
            self._background("check info", self.follow_ups.refresh_check, chat_id),
        )

    async def load_messages(self, chat_id: str, epoch: int | None = None) -> bool:
        """Pull *chat_id*'s messages; discarded if the selection moved meanwhile."""
        epoch = self.registry.epoch if epoch is None else epoch
        raw = await self._host.invoke(
            channels.GET_CHAT_MESSAGES,
            {"instanceId": self._instance_id, "chatId": chat_id},
        )
        if not self.registry.is_current(chat_id, epoch):
            logger.debug("Discarded stale messages for %s (epoch %d)", chat_id, epoch)
            return False
        self.timeline.load(chat_id, parse_messages(raw if isinstance(raw, list) else None))
        return True

    # -- Instance pulls --------------------------------------------------------

    async def refresh_conversations(self) -> None:
        instance_id = self._instance_id
        raw = await self._host.invoke(channels.GET_CHATS, instance_id)
        if instance_id != self._instance_id:
            logger.debug("Discarded conversation list of previous instance %s", instance_id)
            return
        conversations = []
        for item in raw if isinstance(raw, list) else []:
            try:
                conversations.append(Conversation.model_validate(item))
            except ValidationError as exc:
                logger.warning("Skipping malformed conversation: %s", exc.errors()[0]["msg"])
        self.registry.replace_all(conversations)

    async def refresh_connection(self) -> None:
        instance_id = self._instance_id
        result = await self._host.invoke(channels.GET_CONNECTION_STATUS, instance_id)
        if instance_id != self._instance_id:
            return
        connected = isinstance(result, dict) and bool(result.get("connected"))
        if connected == self.connection.connected:
            self.connection = self.connection.model_copy(update={"last_update": self._clock()})
            return
        self.connection = ConnectionState(
            connected=connected,
            reason="Connected" if connected else "Disconnected",
            last_update=self._clock(),
        )

    # -- Push events -----------------------------------------------------------

    async def on_new_message(self, event: NewMessageEvent) -> None:
        if not self._owns(event):
            return
        selected = self.registry.selected_id
        epoch = self.registry.epoch
        await asyncio.gather(
            self._background("conversation list", self.refresh_conversations),
            self._background("follow-ups", self.follow_ups.refresh),
            self._background("interventions", self.modes.load_all_interventions),
        )
        if event.chat_id != selected:
            return

        loaded = await self._background("messages", self.load_messages, event.chat_id, epoch)
        if loaded and event.message_id:
            self._highlight(event.message_id)
        if self.registry.is_current(event.chat_id, epoch):
            await self._background("check info", self.follow_ups.refresh_check, event.chat_id)

    async def on_status_update(self, event: StatusUpdateEvent) -> None:
        if not self._owns(event):
            return
        reason = event.reason or _STATUS_REASONS[event.status]
        self.connection = ConnectionState(
            connected=event.connected,
            reason=reason,
            last_update=self._clock(),
        )
        if event.connected:
            await self._notifier.dismiss(_DISCONNECTED)
            await self._notifier.notify(_CONNECTED, "success", "Connected")
        elif event.is_failure:
            await self._notifier.dismiss(_CONNECTED)
            await self._notifier.notify(
                _DISCONNECTED,
                "error",
                reason,
                visible_for=self._settings.toast_sticky_seconds,
            )
        else:
            logger.info("Instance %s disconnected by user", event.instance_id)

    async def on_follow_up_check_result(self, event: FollowUpCheckResultEvent) -> None:
        if not self._owns(event):
            return
        await self.follow_ups.handle_check_result(event)
        if event.chat_id == self.registry.selected_id:
            await self._background("check info", self.follow_ups.refresh_check, event.chat_id)

    # -- Commands --------------------------------------------------------------

    async def send_message(self, text: str) -> bool:
        """Send *text* to the selected conversation.

        Raises:
            ValueError: If *text* is blank or no conversation is selected.
        """
        if not text or not text.strip():
            msg = "Message text must not be empty"
            raise ValueError(msg)
        chat_id = self.registry.selected_id
        if chat_id is None:
            msg = "No conversation selected"
            raise ValueError(msg)
        if self._sending:
            logger.debug("Send already in flight, ignoring")
            return False

        epoch = self.registry.epoch
        failed = NotificationIdentity(chat_id, dedup.SEND_MESSAGE, "error")
        self._sending = True
        try:
            try:
                result = await self._host.invoke(
                    channels.SEND_MESSAGE,
                    {"instanceId": self._instance_id, "chatId": chat_id, "message": text},
                )
            except HostUnavailableError as exc:
                logger.warning("Send failed: %s", exc)
                await self._notifier.notify(failed, "error", "Could not send the message")
                return False
            if not succeeded(result):
                await self._notifier.notify(
                    failed, "error", failure_message(result, "Could not send the message")
                )
                return False
        finally:
            self._sending = False

        await self._background("messages", self.load_messages, chat_id, epoch)
        return True

    async def clear_conversation(self, chat_id: str) -> bool:
        """Ask the host to clear *chat_id*; local state follows only on success."""
        failed = NotificationIdentity(chat_id, dedup.CLEAR_CHAT, "error")
        try:
            result = await self._host.invoke(
                channels.CLEAR_CHAT_CONVERSATION,
                {"instanceId": self._instance_id, "chatId": chat_id},
            )
        except HostUnavailableError as exc:
            logger.warning("Clear failed for %s: %s", chat_id, exc)
            await self._notifier.notify(failed, "error", "Could not clear the conversation")
            return False
        if not succeeded(result):
            await self._notifier.notify(
                failed, "error", failure_message(result, "Could not clear the conversation")
            )
            return False

        self.registry.forget(chat_id)
        self.follow_ups.view.forget(chat_id)
        self.modes.forget(chat_id)
        selected = self.registry.selected_id == chat_id
        if selected:
            self.timeline.load(chat_id, [])
        await self._notifier.notify(
            NotificationIdentity(chat_id, dedup.CLEAR_CHAT, "success"),
            "success",
            "Conversation cleared",
        )
        pulls = [self._background("conversation list", self.refresh_conversations)]
        if selected:
            pulls.append(self._background("AI mode status", self.modes.load_ai_status, chat_id))
            pulls.append(self._background("check info", self.follow_ups.refresh_check, chat_id))
        await asyncio.gather(*pulls)
        return True

    # -- View ------------------------------------------------------------------

    def followup_panel(self, chat_id: str) -> FollowUpPanel | None:
        """Which follow-up panel applies: only while the AI responder is active."""
        if not self.modes.ai_active(chat_id):
            return None
        return "scheduled" if self.follow_ups.view.has_follow_ups(chat_id) else "check"

    def snapshot(self, now: int | None = None) -> EngineSnapshot:
        """Derived, read-only state for a renderer."""
        now = self._clock() if now is None else now
        view = self.follow_ups.view
        selected_id = self.registry.selected_id
        rows = [
            ConversationRow(
                id=c.id,
                name=c.display_name,
                preview=c.preview,
                time_label=chat_list_label(c.last_activity, now, self._tz),
                unread_count=c.unread_count,
                selected=c.id == selected_id,
                has_follow_ups=view.has_follow_ups(c.id),
                mode=self.modes.display_mode(c.id),
            )
            for c in self.registry.list()
        ]

        selection = None
        if selected_id is not None:
            timeline = []
            if self.timeline.conversation_id == selected_id:
                timeline = self.timeline.render(now, self._tz)
            selection = SelectionView(
                conversation_id=selected_id,
                timeline=timeline,
                mode=self.modes.display_mode(selected_id),
                ai_status=self.modes.ai_status(selected_id),
                intervention_remaining=self.modes.intervention_remaining(selected_id, now),
                follow_up_state=view.state(selected_id),
                countdown=view.countdown(selected_id, now),
                check_remaining=view.check_remaining(selected_id, now),
                followup_panel=self.followup_panel(selected_id),
                checking=self.follow_ups.is_checking(selected_id),
            )
        return EngineSnapshot(
            instance_id=self._instance_id,
            connection=self.connection,
            conversations=rows,
            selection=selection,
        )

    # -- Timers ----------------------------------------------------------------

    def _start_instance_timers(self) -> None:
        self._timers.every(
            INSTANCE_SCOPE, "connection", self._settings.connection_poll_seconds, self._poll_connection
        )
        self._timers.every(
            INSTANCE_SCOPE, "reconcile", self._settings.reconcile_poll_seconds, self._poll_reconcile
        )

    def _start_selection_timers(self) -> None:
        self._timers.every(
            SELECTION_SCOPE, "countdown", self._settings.countdown_tick_seconds, self._on_tick
        )
        self._timers.every(
            SELECTION_SCOPE, "check-info", self._settings.reconcile_poll_seconds, self._poll_check_info
        )

    async def _poll_connection(self) -> None:
        await self._background("connection status", self.refresh_connection)

    async def _poll_reconcile(self) -> None:
        await asyncio.gather(
            self._background("interventions", self.modes.load_all_interventions),
            self._background("follow-ups", self.follow_ups.refresh),
        )

    async def _poll_check_info(self) -> None:
        chat_id = self.registry.selected_id
        if chat_id is not None:
            await self._background("check info", self.follow_ups.refresh_check, chat_id)

    async def _on_tick(self) -> None:
        """One countdown tick: follow-ups, checks, and temporary interventions."""
        chat_id = self.registry.selected_id
        if chat_id is None:
            return
        now = self._clock()
        result = self.follow_ups.view.tick(now, [chat_id])
        if result.needs_refresh:
            await self.follow_ups.reconcile()
        if result.due_checks or result.expired_checks:
            await self._background("check info", self.follow_ups.refresh_check, chat_id)
        for expired in self.modes.tick(now):
            await self._background("AI mode status", self.modes.load_ai_status, expired)

    def _highlight(self, message_id: str) -> None:
        now = self._clock()
        self.timeline.mark_arrived(message_id, now)
        self._schedule_decay(now)

    def _schedule_decay(self, now: int) -> None:
        expiry = self.timeline.highlights.next_expiry()
        if expiry is None:
            self._timers.cancel(SELECTION_SCOPE, "highlight-decay")
            return
        self._timers.once(SELECTION_SCOPE, "highlight-decay", (expiry - now) / 1000, self._on_decay)

    async def _on_decay(self) -> None:
        now = self._clock()
        self.timeline.decay(now)
        self._schedule_decay(now)

    # -- Internal --------------------------------------------------------------

    def _subscribe(self) -> None:
        """(Re)create the push subscriptions; a key already registered is replaced."""
        handlers: dict[str, Callable[[Any], Awaitable[None]]] = {
            channels.NEW_MESSAGE: self.on_new_message,
            channels.STATUS_UPDATE: self.on_status_update,
            channels.FOLLOW_UP_CHECK_RESULT: self.on_follow_up_check_result,
        }
        for event_name, handler in handlers.items():
            self._subscriptions[event_name] = self._bus.subscribe(
                f"sync:{event_name}", event_name, handler
            )

    def _owns(self, event: Any) -> bool:
        if event.instance_id != self._instance_id:
            logger.debug("Ignoring event for instance %s", event.instance_id)
            return False
        return True

    async def _background(self, label: str, func: Callable[..., Awaitable[Any]], *args: Any) -> Any:
        """Await a pull whose transport failure is logged, not raised."""
        try:
            return await func(*args)
        except HostUnavailableError as exc:
            logger.warning("Pulling %s failed: %s", label, exc)
            return None
