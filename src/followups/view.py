"""FollowUpView — per-conversation follow-ups, eligibility checks, and countdowns.

State per conversation:

* ``NONE``: nothing scheduled.
* ``CHECK_PENDING``: an eligibility check is scheduled, no follow-up yet.
* ``SCHEDULED``: one or more follow-ups exist. Any eligibility check for the
  conversation is removed the moment a follow-up appears.

Host snapshots always win. Local expiry only moves a check to ``NONE`` after
its instant plus a grace period; the next pull reinstates it if the host
still reports it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from src.followups.models import EligibilityCheck, FollowUp, FollowUpState, remaining

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Countdown:
    """Derived countdown for a conversation's follow-up sequence."""

    conversation_id: str
    next: FollowUp
    remaining_ms: int
    items: list[tuple[FollowUp, int]]
    index: int
    total: int

    @property
    def due(self) -> bool:
        """The next follow-up's instant has been reached ("sending soon")."""
        return self.remaining_ms == 0

    @property
    def indicator(self) -> str:
        """``index/total`` when more than one follow-up is pending."""
        if len(self.items) <= 1:
            return ""
        return f"{self.index}/{self.total}"


@dataclass
class TickResult:
    """What changed on a countdown tick."""

    due_follow_ups: list[str] = field(default_factory=list)
    due_checks: list[str] = field(default_factory=list)
    expired_checks: list[str] = field(default_factory=list)

    @property
    def needs_refresh(self) -> bool:
        return bool(self.due_follow_ups or self.due_checks or self.expired_checks)


class FollowUpView:
    """Local mirror of the host's follow-up schedule."""

    def __init__(self, check_grace_ms: int = 1000) -> None:
        self.check_grace_ms = check_grace_ms
        self._follow_ups: dict[str, list[FollowUp]] = {}
        self._checks: dict[str, EligibilityCheck] = {}
        self._reported_due: set[tuple[str, int]] = set()

    # -- Queries ---------------------------------------------------------------

    def state(self, conversation_id: str) -> FollowUpState:
        if self._follow_ups.get(conversation_id):
            return FollowUpState.SCHEDULED
        if conversation_id in self._checks:
            return FollowUpState.CHECK_PENDING
        return FollowUpState.NONE

    def follow_ups(self, conversation_id: str) -> list[FollowUp]:
        """Pending follow-ups, earliest first."""
        return list(self._follow_ups.get(conversation_id, []))

    def next(self, conversation_id: str) -> FollowUp | None:
        items = self._follow_ups.get(conversation_id)
        return items[0] if items else None

    def check(self, conversation_id: str) -> EligibilityCheck | None:
        return self._checks.get(conversation_id)

    def has_follow_ups(self, conversation_id: str) -> bool:
        return bool(self._follow_ups.get(conversation_id))

    def conversations_with_follow_ups(self) -> list[str]:
        return [cid for cid, items in self._follow_ups.items() if items]

    def countdown(self, conversation_id: str, now: int) -> Countdown | None:
        items = self._follow_ups.get(conversation_id)
        if not items:
            return None
        head = items[0]
        return Countdown(
            conversation_id=conversation_id,
            next=head,
            remaining_ms=remaining(head.scheduled_at, now),
            items=[(f, remaining(f.scheduled_at, now)) for f in items],
            index=head.sequence_index or 1,
            total=head.total_in_sequence or len(items),
        )

    def check_remaining(self, conversation_id: str, now: int) -> int | None:
        check = self._checks.get(conversation_id)
        if check is None:
            return None
        return remaining(check.check_at, now)

    # -- Host snapshots --------------------------------------------------------

    def apply_snapshot(self, snapshot: dict[str, Any] | None) -> None:
        """Replace every conversation's follow-ups with a ``get-active-follow-ups`` result."""
        parsed: dict[str, list[FollowUp]] = {}
        for conversation_id, raw_items in (snapshot or {}).items():
            if not isinstance(raw_items, list):
                continue
            items = _parse_items(conversation_id, raw_items)
            if items:
                parsed[conversation_id] = items
        self._follow_ups = parsed
        for conversation_id in parsed:
            self._drop_check(conversation_id, "follow-up scheduled")
        self._prune_reported()

    def set_follow_ups(self, conversation_id: str, items: Iterable[FollowUp]) -> None:
        """Replace one conversation's follow-ups."""
        ordered = sorted(items, key=lambda f: f.scheduled_at)
        if ordered:
            self._follow_ups[conversation_id] = ordered
            self._drop_check(conversation_id, "follow-up scheduled")
        else:
            self._follow_ups.pop(conversation_id, None)
        self._prune_reported()

    def apply_check_info(self, conversation_id: str, info: dict[str, Any] | None) -> None:
        """Apply a ``get-follow-up-check-info`` result for one conversation."""
        check = EligibilityCheck.from_payload(conversation_id, info)
        if check is None:
            self._drop_check(conversation_id, "host reports no check")
            return
        if self.has_follow_ups(conversation_id):
            return
        self._checks[conversation_id] = check

    def clear_check(self, conversation_id: str) -> bool:
        return self._drop_check(conversation_id, "cleared")

    def forget(self, conversation_id: str) -> None:
        self._follow_ups.pop(conversation_id, None)
        self._checks.pop(conversation_id, None)
        self._prune_reported()

    def clear(self) -> None:
        self._follow_ups.clear()
        self._checks.clear()
        self._reported_due.clear()

    # -- Clock -----------------------------------------------------------------

    def tick(self, now: int, conversation_ids: Iterable[str] | None = None) -> TickResult:
        """Advance countdowns to *now*.

        A follow-up or check reaching zero is reported once as due so the
        caller can pull the host's view; a check still present ``check_grace_ms``
        after its instant is dropped locally.
        """
        result = TickResult()
        targets = list(conversation_ids) if conversation_ids is not None else (
            list(self._follow_ups) + list(self._checks)
        )
        for conversation_id in dict.fromkeys(targets):
            head = self.next(conversation_id)
            if head is not None and remaining(head.scheduled_at, now) == 0:
                if self._report_due(conversation_id, head.scheduled_at):
                    result.due_follow_ups.append(conversation_id)
                continue

            check = self._checks.get(conversation_id)
            if check is None or remaining(check.check_at, now) > 0:
                continue
            if now - check.check_at >= self.check_grace_ms:
                self._drop_check(conversation_id, "check instant elapsed")
                result.expired_checks.append(conversation_id)
            elif self._report_due(conversation_id, check.check_at):
                result.due_checks.append(conversation_id)
        return result

    # -- Internal --------------------------------------------------------------

    def _report_due(self, conversation_id: str, instant: int) -> bool:
        key = (conversation_id, instant)
        if key in self._reported_due:
            return False
        self._reported_due.add(key)
        return True

    def _drop_check(self, conversation_id: str, why: str) -> bool:
        if self._checks.pop(conversation_id, None) is None:
            return False
        logger.debug("Eligibility check dropped for %s: %s", conversation_id, why)
        self._prune_reported()
        return True

    def _prune_reported(self) -> None:
        """Keep due reports only for instants still scheduled."""
        live = {(cid, f.scheduled_at) for cid, items in self._follow_ups.items() for f in items}
        live.update((cid, check.check_at) for cid, check in self._checks.items())
        self._reported_due &= live


def _parse_items(conversation_id: str, raw_items: list[Any]) -> list[FollowUp]:
    items = []
    for raw in raw_items:
        if not isinstance(raw, dict) or (raw.get("status") or "pending") != "pending":
            continue
        follow_up = FollowUp.from_payload(conversation_id, raw)
        if follow_up is not None:
            items.append(follow_up)
    return sorted(items, key=lambda f: f.scheduled_at)
