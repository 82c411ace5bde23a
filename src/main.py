"""Sync engine entry point."""

import asyncio
import logging

from src.config import settings
from src.host.bus import EventBus
from src.host.client import HttpHostClient
from src.host.push_server import PushServer
from src.notifications import LogChannel, NotificationRouter
from src.sync.controller import SyncController

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, settings.log_level),
)
logger = logging.getLogger(__name__)


async def run() -> None:
    """Bind to the configured instance and keep it in sync until cancelled."""
    router = NotificationRouter.get()
    if "log" not in router.list_channels():
        router.register_channel(LogChannel())
    router.set_default_channel("log")

    host = HttpHostClient(settings.host_url, timeout=settings.host_timeout_seconds)
    bus = EventBus()
    controller = SyncController(host, bus, settings)
    push_server = PushServer(
        bus,
        host=settings.push_host,
        port=settings.push_port,
        secret=settings.push_secret,
    )

    if not settings.instance_id:
        logger.warning("INSTANCE_ID is empty — push events will be ignored")

    await push_server.start()
    try:
        await controller.start()
        logger.info("Sync engine running against %s", settings.host_url)
        await asyncio.Event().wait()
    finally:
        await controller.stop()
        await push_server.stop()
        await host.close()


def main() -> None:
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        logger.info("Sync engine stopped")


if __name__ == "__main__":
    main()
