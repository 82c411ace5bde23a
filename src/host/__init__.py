"""Host process adapter: request client, push events, event bus, push receiver."""

from src.host.bus import EventBus, Subscription
from src.host.client import HostClient, HttpHostClient
from src.host.errors import HostError, HostUnavailableError

__all__ = [
    "EventBus",
    "HostClient",
    "HostError",
    "HostUnavailableError",
    "HttpHostClient",
    "Subscription",
]
