"""EventBus — explicit, keyed subscriptions to host push events."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.host.events import PushEvent

logger = logging.getLogger(__name__)

# Handler signature: async (event: PushEvent) -> None
EventHandler = Callable[["PushEvent"], Awaitable[None]]


@dataclass(eq=False)
class Subscription:
    """A registered listener. Owned by whoever subscribed; cancel to detach."""

    key: str
    event: str
    handler: EventHandler
    bus: EventBus = field(repr=False)
    active: bool = True

    def cancel(self) -> bool:
        """Detach from the bus. Returns True if this subscription was registered."""
        return self.bus.unsubscribe(self)


class EventBus:
    """Delivers push events to subscriptions, one per logical key.

    Subscribing with a key that is already registered first deregisters the
    previous subscription, so re-subscribing never duplicates delivery.
    """

    def __init__(self) -> None:
        self._subscriptions: dict[str, Subscription] = {}

    def subscribe(self, key: str, event: str, handler: EventHandler) -> Subscription:
        """Register *handler* for *event* under *key*, replacing any prior one."""
        previous = self._subscriptions.get(key)
        if previous is not None:
            self.unsubscribe(previous)
            logger.debug("Replaced subscription %s", key)
        sub = Subscription(key=key, event=event, handler=handler, bus=self)
        self._subscriptions[key] = sub
        return sub

    def unsubscribe(self, subscription: Subscription) -> bool:
        """Remove *subscription* if it is still the registered one for its key."""
        subscription.active = False
        if self._subscriptions.get(subscription.key) is subscription:
            del self._subscriptions[subscription.key]
            return True
        return False

    def keys(self) -> list[str]:
        return list(self._subscriptions)

    def listeners(self, event: str) -> list[Subscription]:
        return [s for s in self._subscriptions.values() if s.event == event]

    async def publish(self, event_name: str, event: PushEvent) -> int:
        """Deliver *event* to every active listener. Returns the delivery count.

        A failing handler is logged and does not stop delivery to the others.
        """
        delivered = 0
        for sub in self.listeners(event_name):
            if not sub.active:
                continue
            try:
                await sub.handler(event)
                delivered += 1
            except Exception:
                logger.exception("Push handler failed: key=%s event=%s", sub.key, event_name)
        return delivered
