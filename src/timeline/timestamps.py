"""Timestamp normalization for host payloads.

The host reports instants in whichever unit its upstream gave it: seconds
since the epoch for most messages, milliseconds for locally generated ones.
Everything downstream works in integer milliseconds.
"""

from __future__ import annotations

import math
import time
from typing import Any

# Below this magnitude a value is read as seconds since the epoch.
SECONDS_THRESHOLD = 10_000_000_000

# Candidate fields on a raw message, in priority order.
MESSAGE_TIMESTAMP_FIELDS: tuple[tuple[str, ...], ...] = (
    ("messageTimestamp",),
    ("key", "timestamp"),
    ("timestamp",),
    ("t",),
)


def normalize_timestamp(value: Any) -> int | None:
    """Return *value* as epoch milliseconds, or None when it is not a valid instant."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number <= 0:
        return None
    if number < SECONDS_THRESHOLD:
        return int(number * 1000)
    return int(number)


def resolve_instant(*candidates: Any, now_ms: int | None = None) -> int | None:
    """Return the first candidate that normalizes, falling back to *now_ms*."""
    for candidate in candidates:
        instant = normalize_timestamp(candidate)
        if instant is not None:
            return instant
    return now_ms


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def _dig(raw: dict[str, Any], path: tuple[str, ...]) -> Any:
    value: Any = raw
    for part in path:
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def message_instant(raw: dict[str, Any], now_ms: int | None = None) -> int | None:
    """Resolve the instant of a raw host message from its timestamp fields."""
    candidates = [_dig(raw, path) for path in MESSAGE_TIMESTAMP_FIELDS]
    return resolve_instant(*candidates, now_ms=now_ms)
