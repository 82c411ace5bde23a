"""Tests for ModeArbiter — AI responder and human intervention."""

import asyncio

import pytest

from src.host import channels
from src.host.errors import HostUnavailableError
from src.modes.arbiter import ModeArbiter
from src.modes.models import AIModeStatus, InterventionState

T = 1_700_000_000_000


class _Clock:
    def __init__(self, now: int = T) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


@pytest.fixture
def clock() -> _Clock:
    return _Clock()


@pytest.fixture
def arbiter(host, notifier, test_settings, clock) -> ModeArbiter:
    return ModeArbiter(host, notifier, test_settings, instance_id="inst-1", clock=clock)


def _status(**overrides) -> dict:
    status = {"active": True, "isGroup": False, "canToggle": True, "source": "default"}
    status.update(overrides)
    return status


# -- InterventionState -------------------------------------------------------


def test_intervention_manual_never_expires() -> None:
    state = InterventionState.from_details("c1", {"isActive": True, "remainingTime": -1}, T)
    assert state.manual is True
    assert state.remaining(T + 10**9) is None
    assert state.expired(T + 10**9) is False


def test_intervention_temporary_counts_down() -> None:
    state = InterventionState.from_details("c1", {"isActive": True, "remainingTime": 60_000}, T)
    assert state.remaining(T + 15_000) == 45_000
    assert state.remaining(T + 90_000) == 0
    assert state.expired(T + 60_000) is True


def test_intervention_absent() -> None:
    assert InterventionState.from_details("c1", None, T) is None


# -- Snapshots ---------------------------------------------------------------


def test_apply_all_interventions_replaces_map(arbiter) -> None:
    arbiter.apply_intervention_details("old", {"remainingTime": -1})
    arbiter.apply_all_interventions({"c1": {"isActive": True, "remainingTime": 30_000}})
    assert arbiter.intervention_active("old") is False
    assert arbiter.intervention_remaining("c1", T + 10_000) == 20_000


def test_apply_details_none_removes(arbiter) -> None:
    arbiter.apply_intervention_details("c1", {"remainingTime": -1})
    arbiter.apply_intervention_details("c1", None)
    assert arbiter.intervention("c1") is None


def test_display_mode(arbiter) -> None:
    assert arbiter.display_mode("c1") == "ai"
    arbiter.set_ai_status("c1", AIModeStatus(active=False))
    assert arbiter.display_mode("c1") == "manual"
    arbiter.apply_intervention_details("c1", {"remainingTime": 60_000})
    assert arbiter.display_mode("c1") == "temporary"
    arbiter.apply_intervention_details("c1", {"remainingTime": -1})
    assert arbiter.display_mode("c1") == "manual"


def test_tick_expires_temporary_only(arbiter) -> None:
    arbiter.apply_all_interventions(
        {
            "temp": {"remainingTime": 5_000},
            "manual": {"remainingTime": -1, "isManualIntervention": True},
        }
    )
    assert arbiter.tick(T + 4_999) == []
    assert arbiter.tick(T + 5_000) == ["temp"]
    assert arbiter.intervention_active("temp") is False
    assert arbiter.intervention_active("manual") is True


# -- Pulls -------------------------------------------------------------------


async def test_load_ai_status(arbiter, host) -> None:
    host.responses[channels.GET_AI_MODE_STATUS] = {"success": True, "status": _status(canToggle=False)}
    status = await arbiter.load_ai_status("c1")
    assert status.can_toggle is False
    assert arbiter.ai_status("c1") == status
    assert host.calls_to(channels.GET_AI_MODE_STATUS) == [{"instanceId": "inst-1", "chatId": "c1"}]


async def test_load_intervention(arbiter, host) -> None:
    host.responses[channels.GET_HUMAN_INTERVENTION_DETAILS] = {"isActive": True, "remainingTime": -1}
    state = await arbiter.load_intervention("c1")
    assert state.manual is True
    assert host.calls_to(channels.GET_HUMAN_INTERVENTION_DETAILS) == [{"chatId": "c1"}]


async def test_pulls_from_previous_instance_are_discarded(arbiter, host) -> None:
    release = asyncio.Event()

    def held(response):
        async def respond(payload):
            await release.wait()
            return response

        return respond

    host.responses[channels.GET_AI_MODE_STATUS] = held({"success": True, "status": _status()})
    host.responses[channels.GET_HUMAN_INTERVENTION_DETAILS] = held({"isActive": True, "remainingTime": -1})
    host.responses[channels.GET_ALL_HUMAN_INTERVENTIONS] = held({"c2": {"remainingTime": -1}})

    pulls = asyncio.gather(
        arbiter.load_ai_status("c1"),
        arbiter.load_intervention("c1"),
        arbiter.load_all_interventions(),
    )
    await asyncio.sleep(0)
    arbiter.instance_id = "inst-2"
    release.set()

    assert await pulls == [None, None, None]
    assert arbiter.ai_status("c1") is None
    assert arbiter.intervention("c1") is None
    assert arbiter.intervention("c2") is None


def test_forget_drops_conversation_state(arbiter) -> None:
    arbiter.set_ai_status("c1", AIModeStatus(active=False))
    arbiter.apply_intervention_details("c1", {"remainingTime": -1})
    arbiter.forget("c1")
    assert arbiter.ai_status("c1") is None
    assert arbiter.intervention("c1") is None


# -- toggle_ai ---------------------------------------------------------------


async def test_toggle_ai_before_status_known_is_ignored(arbiter, host) -> None:
    assert await arbiter.toggle_ai("c1") is False
    assert host.calls == []


async def test_toggle_ai_restricted_shows_reason_without_request(arbiter, host, channel) -> None:
    arbiter.set_ai_status("g1", AIModeStatus(active=False, can_toggle=False, reason="Groups are not answered"))
    assert await arbiter.toggle_ai("g1") is False
    assert await arbiter.toggle_ai("g1") is False
    assert host.calls == []
    assert channel.texts == ["Groups are not answered"]
    assert channel.shown[0].visible_for == 6.0


async def test_toggle_ai_applies_returned_status(arbiter, host, channel) -> None:
    arbiter.set_ai_status("c1", AIModeStatus(active=True))
    host.responses[channels.SET_AI_MODE] = {
        "success": True,
        "message": "AI mode disabled",
        "status": _status(active=False, source="manual"),
    }

    assert await arbiter.toggle_ai("c1") is True
    assert host.calls_to(channels.SET_AI_MODE) == [{"instanceId": "inst-1", "chatId": "c1", "active": False}]
    assert arbiter.ai_status("c1").active is False
    assert arbiter.ai_status("c1").source == "manual"
    assert channel.texts == ["AI mode disabled"]


async def test_toggle_ai_failure_keeps_status(arbiter, host, channel) -> None:
    arbiter.set_ai_status("c1", AIModeStatus(active=True))
    host.responses[channels.SET_AI_MODE] = {
        "success": False,
        "message": "Chat is blocked by filters",
        "status": _status(active=False),
    }
    assert await arbiter.toggle_ai("c1") is False
    assert arbiter.ai_status("c1").active is True
    assert channel.texts == ["Chat is blocked by filters"]


async def test_toggle_ai_transport_failure(arbiter, host, channel) -> None:
    arbiter.set_ai_status("c1", AIModeStatus(active=True))
    host.responses[channels.SET_AI_MODE] = HostUnavailableError("set-ai-mode", "down")
    assert await arbiter.toggle_ai("c1") is False
    assert arbiter.ai_status("c1").active is True
    assert channel.texts == ["Could not change AI mode"]


async def test_toggle_ai_ignored_while_in_flight(arbiter, host) -> None:
    arbiter.set_ai_status("c1", AIModeStatus(active=True))
    release = asyncio.Event()

    async def slow(payload):
        await release.wait()
        return {"success": True, "status": _status(active=False)}

    host.responses[channels.SET_AI_MODE] = slow
    first = asyncio.create_task(arbiter.toggle_ai("c1"))
    await asyncio.sleep(0)
    assert await arbiter.toggle_ai("c1") is False
    release.set()
    assert await first is True
    assert len(host.calls_to(channels.SET_AI_MODE)) == 1


async def test_enabling_ai_reloads_intervention(arbiter, host) -> None:
    arbiter.set_ai_status("c1", AIModeStatus(active=False, source="intervention"))
    arbiter.apply_intervention_details("c1", {"remainingTime": -1})
    host.responses[channels.SET_AI_MODE] = {"success": True, "status": _status(active=True, source="manual")}
    host.responses[channels.GET_HUMAN_INTERVENTION_DETAILS] = None

    assert await arbiter.toggle_ai("c1") is True
    assert arbiter.intervention_active("c1") is False


# -- toggle_intervention -----------------------------------------------------


async def test_toggle_intervention_sends_displayed_state(arbiter, host, channel) -> None:
    host.responses[channels.TOGGLE_HUMAN_INTERVENTION] = {
        "success": True,
        "active": True,
        "details": {"isActive": True, "remainingTime": -1, "isManualIntervention": True},
    }
    host.responses[channels.GET_AI_MODE_STATUS] = {
        "success": True,
        "status": _status(active=False, source="intervention"),
    }

    assert await arbiter.toggle_intervention("c1") is True
    assert host.calls_to(channels.TOGGLE_HUMAN_INTERVENTION) == [{"chatId": "c1", "currentStatus": False}]
    assert arbiter.display_mode("c1") == "manual"
    assert arbiter.ai_status("c1").source == "intervention"
    assert channel.texts == ["Manual mode enabled"]


async def test_toggle_intervention_uses_response_not_intent(arbiter, host) -> None:
    # The host answers with no details: nothing becomes active locally.
    host.responses[channels.TOGGLE_HUMAN_INTERVENTION] = {"success": True, "active": True, "details": None}
    assert await arbiter.toggle_intervention("c1") is True
    assert arbiter.intervention_active("c1") is False


async def test_toggle_intervention_failure(arbiter, host, channel) -> None:
    arbiter.apply_intervention_details("c1", {"remainingTime": -1})
    host.responses[channels.TOGGLE_HUMAN_INTERVENTION] = {"success": False, "error": "Unknown chat"}
    assert await arbiter.toggle_intervention("c1") is False
    assert arbiter.intervention_active("c1") is True
    assert channel.texts == ["Unknown chat"]
