"""Tests for the push event HTTP receiver."""

import asyncio

from aiohttp.test_utils import TestClient, TestServer

from src.host.bus import EventBus
from src.host.push_server import SECRET_HEADER, create_push_app

TEST_SECRET = "test-secret-123"


# -- Helpers -----------------------------------------------------------------


async def _make_client(bus: EventBus | None = None, secret: str = TEST_SECRET) -> TestClient:
    app = create_push_app(bus or EventBus(), secret)
    client = TestClient(TestServer(app))
    await client.start_server()
    return client


def _headers(secret: str = TEST_SECRET) -> dict[str, str]:
    return {SECRET_HEADER: secret}


# -- Health check -----------------------------------------------------------


async def test_health_check() -> None:
    client = await _make_client()
    try:
        resp = await client.get("/health")
        assert resp.status == 200
        data = await resp.json()
        assert data["status"] == "ok"
    finally:
        await client.close()


# -- Auth -------------------------------------------------------------------


async def test_rejects_missing_secret() -> None:
    client = await _make_client()
    try:
        resp = await client.post("/events/status-update", json={"conversationId": "i", "status": "open"})
        assert resp.status == 401
    finally:
        await client.close()


async def test_rejects_wrong_secret() -> None:
    client = await _make_client()
    try:
        resp = await client.post(
            "/events/status-update",
            json={"conversationId": "i", "status": "open"},
            headers=_headers("wrong"),
        )
        assert resp.status == 401
    finally:
        await client.close()


async def test_no_secret_configured_accepts() -> None:
    client = await _make_client(secret="")
    try:
        resp = await client.post("/events/status-update", json={"conversationId": "i", "status": "open"})
        assert resp.status == 200
    finally:
        await client.close()


# -- Routing ----------------------------------------------------------------


async def test_unknown_event_404() -> None:
    client = await _make_client()
    try:
        resp = await client.post("/events/nope", json={}, headers=_headers())
        assert resp.status == 404
    finally:
        await client.close()


async def test_invalid_json_400() -> None:
    client = await _make_client()
    try:
        resp = await client.post(
            "/events/status-update",
            data="not json",
            headers={**_headers(), "Content-Type": "application/json"},
        )
        assert resp.status == 400
    finally:
        await client.close()


async def test_non_object_payload_400() -> None:
    client = await _make_client()
    try:
        resp = await client.post("/events/status-update", json=[1, 2], headers=_headers())
        assert resp.status == 400
    finally:
        await client.close()


async def test_invalid_payload_400() -> None:
    client = await _make_client()
    try:
        resp = await client.post("/events/status-update", json={"status": "open"}, headers=_headers())
        assert resp.status == 400
    finally:
        await client.close()


async def test_valid_event_published_on_bus() -> None:
    bus = EventBus()
    received = asyncio.Event()
    seen = []

    async def handler(event):
        seen.append(event)
        received.set()

    bus.subscribe("test", "new-message", handler)
    client = await _make_client(bus)
    try:
        resp = await client.post(
            "/events/new-message",
            json={"conversationId": "inst-1", "chatId": "c1", "message": {"key": {"id": "M"}}},
            headers=_headers(),
        )
        assert resp.status == 200
        assert (await resp.json())["ok"] is True
        await asyncio.wait_for(received.wait(), timeout=1)
        assert seen[0].chat_id == "c1"
        assert seen[0].message_id == "M"
    finally:
        await client.close()
