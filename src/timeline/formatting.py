"""Timeline labels and date separators.

All calendar comparisons use the local date in the display timezone, never
elapsed hours: 23:59 and 00:01 are on different days.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, tzinfo
from typing import TYPE_CHECKING, Protocol
from zoneinfo import ZoneInfo

if TYPE_CHECKING:
    from collections.abc import Iterable

TODAY = "Today"
YESTERDAY = "Yesterday"

# Separator labels switch from weekday names to absolute dates past this many days.
WEEKDAY_WINDOW_DAYS = 7

WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


class Dated(Protocol):
    """Anything placed on a timeline: exposes a normalized instant or None."""

    @property
    def instant(self) -> int | None: ...


@dataclass(frozen=True)
class DateSeparator:
    """A day boundary inserted before the first message of each calendar day."""

    day: date
    label: str

    @property
    def instant(self) -> int | None:
        return None


def to_datetime(instant: int, tz: tzinfo) -> datetime:
    """Convert epoch milliseconds to an aware datetime in *tz*."""
    return datetime.fromtimestamp(instant / 1000, tz=tz)


def local_day(instant: int, tz: tzinfo) -> date:
    return to_datetime(instant, tz).date()


def days_before(instant: int, now: int, tz: tzinfo) -> int:
    """Calendar days between *instant* and *now* (positive when *instant* is earlier)."""
    return (local_day(now, tz) - local_day(instant, tz)).days


def _absolute(moment: datetime) -> str:
    return moment.strftime("%d/%m/%Y")


def time_label(instant: int | None, tz: tzinfo) -> str:
    """``HH:mm`` for an in-message label; empty for an invalid instant."""
    if instant is None:
        return ""
    return to_datetime(instant, tz).strftime("%H:%M")


def separator_label(instant: int | None, now: int, tz: tzinfo) -> str:
    """Label for a date separator: Today, Yesterday, weekday, or ``dd/MM/yyyy``."""
    if instant is None:
        return ""
    moment = to_datetime(instant, tz)
    diff = days_before(instant, now, tz)
    if diff == 0:
        return TODAY
    if diff == 1:
        return YESTERDAY
    if 2 <= diff <= WEEKDAY_WINDOW_DAYS:
        return WEEKDAYS[moment.weekday()]
    return _absolute(moment)


def chat_list_label(instant: int | None, now: int, tz: tzinfo) -> str:
    """Label for a conversation's last activity: time today, day label otherwise."""
    if instant is None:
        return ""
    if days_before(instant, now, tz) == 0:
        return time_label(instant, tz)
    return separator_label(instant, now, tz)


def insert_separators(
    entries: Iterable[Dated],
    now: int,
    tz: tzinfo,
) -> list[Dated]:
    """Interleave date separators into an ordered timeline.

    Separators already present are dropped and re-derived, so applying this to
    its own output returns an equal sequence. Entries without an instant are
    kept in place and never open a new day.
    """
    result: list[Dated] = []
    previous_day: date | None = None
    for entry in entries:
        if isinstance(entry, DateSeparator):
            continue
        instant = entry.instant
        if instant is not None:
            day = local_day(instant, tz)
            if day != previous_day:
                result.append(DateSeparator(day=day, label=separator_label(instant, now, tz)))
                previous_day = day
        result.append(entry)
    return result


def resolve_timezone(name: str) -> tzinfo:
    """Return the IANA timezone for *name*."""
    return ZoneInfo(name)
