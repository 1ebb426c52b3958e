"""Unit tests for the bucket grammar and truncation."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from services.bucketing import (
    RANGE_PRESETS,
    BucketSpec,
    bucket_for_range,
    find_preset,
    parse_bucket,
)

BERLIN = ZoneInfo("Europe/Berlin")


@pytest.mark.parametrize(
    ("raw", "unit", "size"),
    [
        ("5m", "minute", 5),
        ("1m", "minute", 1),
        ("2h", "hour", 2),
        ("15M", "minute", 15),
        (" 30m ", "minute", 30),
        ("10 m", "minute", 10),
        ("120m", "minute", 120),
    ],
)
def test_parse_bucket_accepts_minutes_and_hours(raw: str, unit: str, size: int) -> None:
    assert parse_bucket(raw) == BucketSpec(unit=unit, bin_size=size)


@pytest.mark.parametrize(
    "raw",
    [
        None,
        "",
        "3x",
        "5s",
        "1d",
        "0m",
        "00h",
        "-5m",
        "m",
        "5",
        "5mm",
        "5m5",
        "1.5h",
        "five minutes",
    ],
)
def test_parse_bucket_rejects_everything_else(raw: str | None) -> None:
    assert parse_bucket(raw) is None


def test_bucket_label_is_canonical() -> None:
    assert parse_bucket(" 05M ").label == "5m"  # type: ignore[union-attr]
    assert BucketSpec(unit="hour", bin_size=3).label == "3h"


def test_truncate_to_five_minutes() -> None:
    spec = BucketSpec(unit="minute", bin_size=5)
    moment = datetime(2024, 3, 1, 12, 7, 42, tzinfo=timezone.utc)

    assert spec.truncate(moment, BERLIN) == datetime(2024, 3, 1, 12, 5, tzinfo=timezone.utc)


def test_truncate_hours_uses_local_wall_clock() -> None:
    spec = BucketSpec(unit="hour", bin_size=3)
    # 10:30 UTC is 11:30 in Berlin (CET); the 3h bin starts at 09:00 local.
    moment = datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)

    assert spec.truncate(moment, BERLIN) == datetime(2024, 1, 15, 8, 0, tzinfo=timezone.utc)


def test_truncate_treats_naive_as_utc() -> None:
    spec = BucketSpec(unit="minute", bin_size=10)

    assert spec.truncate(datetime(2024, 1, 1, 0, 19), timezone.utc) == datetime(
        2024, 1, 1, 0, 10, tzinfo=timezone.utc
    )


def test_every_preset_requests_a_valid_bucket() -> None:
    for preset in RANGE_PRESETS:
        assert parse_bucket(preset.bucket) is not None, preset.value


def test_bucket_for_range_and_fallbacks() -> None:
    assert bucket_for_range("7d") == "3h"
    assert bucket_for_range("15m") == "1m"
    assert bucket_for_range("unknown") == "10m"
    assert find_preset("24h").window == timedelta(hours=24)
    assert find_preset("unknown").value == "1h"


@pytest.mark.parametrize(
    ("moment", "expected"),
    [
        # 02:07 CEST, first pass through the repeated hour
        (datetime(2024, 10, 27, 0, 7, tzinfo=timezone.utc), datetime(2024, 10, 27, 0, 5, tzinfo=timezone.utc)),
        # 02:07 CET, second pass
        (datetime(2024, 10, 27, 1, 7, tzinfo=timezone.utc), datetime(2024, 10, 27, 1, 5, tzinfo=timezone.utc)),
        (datetime(2024, 10, 27, 1, 59, tzinfo=timezone.utc), datetime(2024, 10, 27, 1, 55, tzinfo=timezone.utc)),
    ],
)
def test_truncate_across_fall_back_transition(moment: datetime, expected: datetime) -> None:
    spec = BucketSpec(unit="minute", bin_size=5)

    start = spec.truncate(moment, BERLIN)

    assert start == expected
    assert start <= moment < start + spec.width


def test_hour_buckets_keep_repeated_hour_apart() -> None:
    spec = BucketSpec(unit="hour", bin_size=1)

    first = spec.truncate(datetime(2024, 10, 27, 0, 30, tzinfo=timezone.utc), BERLIN)
    second = spec.truncate(datetime(2024, 10, 27, 1, 30, tzinfo=timezone.utc), BERLIN)

    assert first == datetime(2024, 10, 27, 0, 0, tzinfo=timezone.utc)
    assert second == datetime(2024, 10, 27, 1, 0, tzinfo=timezone.utc)
