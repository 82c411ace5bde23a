"""Tests for timestamp normalization."""

import math

import pytest

from src.timeline.timestamps import (
    SECONDS_THRESHOLD,
    message_instant,
    normalize_timestamp,
    resolve_instant,
)

# -- normalize_timestamp -----------------------------------------------------


def test_seconds_are_scaled_to_millis() -> None:
    assert normalize_timestamp(1_700_000_000) == 1_700_000_000_000


def test_millis_pass_through() -> None:
    assert normalize_timestamp(1_700_000_000_000) == 1_700_000_000_000


def test_threshold_is_already_millis() -> None:
    assert normalize_timestamp(SECONDS_THRESHOLD) == SECONDS_THRESHOLD
    assert normalize_timestamp(SECONDS_THRESHOLD - 1) == (SECONDS_THRESHOLD - 1) * 1000


def test_numeric_string() -> None:
    assert normalize_timestamp("1700000000") == 1_700_000_000_000
    assert normalize_timestamp(" 1700000000000 ") == 1_700_000_000_000


def test_fractional_seconds() -> None:
    assert normalize_timestamp(1_700_000_000.5) == 1_700_000_000_500


@pytest.mark.parametrize(
    "value",
    [None, "", "   ", "abc", 0, -5, math.nan, math.inf, True, False, {}, []],
)
def test_invalid_values(value) -> None:
    assert normalize_timestamp(value) is None


# -- resolve_instant ---------------------------------------------------------


def test_first_valid_candidate_wins() -> None:
    assert resolve_instant(None, "bad", 1_700_000_000, 1_600_000_000) == 1_700_000_000_000


def test_falls_back_to_now() -> None:
    assert resolve_instant(None, 0, now_ms=42) == 42


def test_no_fallback_is_invalid() -> None:
    assert resolve_instant(None, "x") is None


# -- message_instant ---------------------------------------------------------


def test_message_timestamp_has_priority() -> None:
    raw = {"messageTimestamp": 1_700_000_000, "key": {"timestamp": 1_600_000_000}, "t": 1}
    assert message_instant(raw) == 1_700_000_000_000


def test_key_timestamp_before_plain_timestamp() -> None:
    raw = {"key": {"timestamp": 1_600_000_000}, "timestamp": 1_500_000_000}
    assert message_instant(raw) == 1_600_000_000_000


def test_short_t_field() -> None:
    assert message_instant({"t": 1_700_000_000_000}) == 1_700_000_000_000


def test_invalid_primary_falls_through() -> None:
    raw = {"messageTimestamp": "nope", "timestamp": 1_700_000_000}
    assert message_instant(raw) == 1_700_000_000_000


def test_missing_everywhere() -> None:
    assert message_instant({"key": {"id": "x"}}) is None
    assert message_instant({}, now_ms=7) == 7
