"""Lightweight async HTTP server receiving push events from the host.

Runs in the same asyncio event loop as the sync controller. Uses aiohttp's
AppRunner/TCPSite for non-blocking start/stop.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from aiohttp import web
from pydantic import ValidationError

from src.host.events import EVENT_MODELS, parse_event

if TYPE_CHECKING:
    from src.host.bus import EventBus
    from src.host.events import PushEvent

logger = logging.getLogger(__name__)

SECRET_HEADER = "X-Host-Secret"

_BUS_KEY = web.AppKey("bus", object)
_SECRET_KEY = web.AppKey("secret", str)
_TASKS_KEY = web.AppKey("tasks", set)


async def _handle_event(request: web.Request) -> web.Response:
    """Route POST /events/<name> onto the event bus."""
    name = request.match_info["name"]

    secret = request.app[_SECRET_KEY]
    if secret and request.headers.get(SECRET_HEADER, "") != secret:
        logger.warning("Push rejected: invalid secret (event=%s)", name)
        return web.json_response({"error": "unauthorized"}, status=401)

    if name not in EVENT_MODELS:
        logger.warning("Push 404: unknown event=%s", name)
        return web.json_response({"error": "unknown event"}, status=404)

    try:
        payload: dict[str, Any] = await request.json()
    except Exception:
        logger.warning("Push bad request: invalid JSON (event=%s)", name)
        return web.json_response({"error": "invalid JSON"}, status=400)
    if not isinstance(payload, dict):
        return web.json_response({"error": "payload must be an object"}, status=400)

    try:
        event = parse_event(name, payload)
    except ValidationError as exc:
        logger.warning("Push bad request: event=%s errors=%d", name, exc.error_count())
        return web.json_response({"error": "invalid payload"}, status=400)

    logger.debug("Push received: event=%s keys=%s", name, list(payload.keys())[:10])

    # Acknowledge immediately, deliver in the background.
    tasks: set[asyncio.Task] = request.app[_TASKS_KEY]
    task = asyncio.create_task(_publish(request.app[_BUS_KEY], name, event))
    tasks.add(task)
    task.add_done_callback(tasks.discard)

    return web.json_response({"ok": True})


async def _publish(bus: EventBus, name: str, event: PushEvent) -> None:
    """Publish an event with error logging."""
    try:
        await bus.publish(name, event)
    except Exception:
        logger.exception("Push delivery failed: event=%s", name)


async def _health(request: web.Request) -> web.Response:
    """GET /health — basic liveness check."""
    return web.json_response({"status": "ok"})


def create_push_app(bus: EventBus, secret: str = "") -> web.Application:
    """Build the aiohttp Application with routes."""
    app = web.Application()
    app[_BUS_KEY] = bus
    app[_SECRET_KEY] = secret
    app[_TASKS_KEY] = set()
    app.router.add_get("/health", _health)
    app.router.add_post("/events/{name}", _handle_event)
    return app


class PushServer:
    """Manages the aiohttp server lifecycle."""

    def __init__(self, bus: EventBus, host: str, port: int, secret: str = "") -> None:
        self.host = host
        self.port = port
        self._bus = bus
        self._secret = secret
        self._runner: web.AppRunner | None = None

    async def start(self) -> None:
        """Start listening for push events."""
        if not self._secret:
            logger.warning("PUSH_SECRET empty — accepting unauthenticated push events")
        app = create_push_app(self._bus, self._secret)
        self._runner = web.AppRunner(app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        logger.info("Push server listening on %s:%d", self.host, self.port)

    async def stop(self) -> None:
        """Shut down the server gracefully."""
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            logger.info("Push server stopped")
