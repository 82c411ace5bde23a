"""Shared test fixtures."""

import inspect
from typing import Any

import pytest

from src.config import Settings
from src.notifications.dedup import DedupGate
from src.notifications.notifier import Notifier
from src.notifications.router import NotificationRouter


class FakeChannel:
    """Notification channel that records what it was asked to show."""

    def __init__(self, channel_name: str = "fake") -> None:
        self._name = channel_name
        self.shown: list = []
        self.dismissed: list = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def texts(self) -> list[str]:
        return [t.text for t in self.shown]

    async def show(self, toast) -> bool:
        self.shown.append(toast)
        return True

    async def dismiss(self, toast) -> bool:
        self.dismissed.append(toast)
        return True


class FakeHost:
    """In-memory host process.

    ``responses`` maps a channel to a value, an exception to raise, or a
    (sync or async) callable receiving the payload.
    """

    def __init__(self, responses: dict[str, Any] | None = None) -> None:
        self.responses: dict[str, Any] = dict(responses or {})
        self.calls: list[tuple[str, Any]] = []

    async def invoke(self, channel: str, payload: Any = None) -> Any:
        self.calls.append((channel, payload))
        response = self.responses.get(channel)
        if isinstance(response, Exception):
            raise response
        if callable(response):
            result = response(payload)
            if inspect.isawaitable(result):
                result = await result
            return result
        return response

    def calls_to(self, channel: str) -> list[Any]:
        return [payload for name, payload in self.calls if name == channel]


@pytest.fixture(autouse=True)
def _reset_singletons():
    """Fresh notification router and dedup gate for every test."""
    NotificationRouter._reset()
    DedupGate._reset()
    yield
    NotificationRouter._reset()
    DedupGate._reset()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(instance_id="inst-1", display_timezone="UTC", toast_reason_delay_seconds=0.01)


@pytest.fixture
def channel() -> FakeChannel:
    """A fake channel registered as the router default."""
    ch = FakeChannel()
    router = NotificationRouter.get()
    router.register_channel(ch)
    router.set_default_channel(ch.name)
    return ch


@pytest.fixture
def notifier(channel: FakeChannel) -> Notifier:
    return Notifier()


@pytest.fixture
def host() -> FakeHost:
    return FakeHost()
