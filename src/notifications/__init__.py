"""User-facing notification layer: channels, routing, and deduplication."""

from src.notifications.channels import NotificationChannel, Toast
from src.notifications.dedup import DedupGate, NotificationIdentity
from src.notifications.log_channel import LogChannel
from src.notifications.notifier import Notifier
from src.notifications.router import NotificationRouter

__all__ = [
    "DedupGate",
    "LogChannel",
    "NotificationChannel",
    "NotificationIdentity",
    "NotificationRouter",
    "Notifier",
    "Toast",
]
