"""Bucket-size grammar shared by the read API and the dashboard."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Optional

# Seconds and days are matched so they can be rejected explicitly.
_BUCKET_PATTERN = re.compile(r"^(\d+)\s*([smhd])$", re.IGNORECASE | re.ASCII)

_UNITS = {
    "m": "minute",
    "h": "hour",
}
_UNIT_SUFFIX = {unit: suffix for suffix, unit in _UNITS.items()}

# $dateTrunc counts bins from this wall-clock instant in the target timezone.
_REFERENCE = datetime(2000, 1, 1)


@dataclass(frozen=True)
class BucketSpec:
    unit: str
    bin_size: int

    @property
    def label(self) -> str:
        return f"{self.bin_size}{_UNIT_SUFFIX[self.unit]}"

    @property
    def width(self) -> timedelta:
        if self.unit == "hour":
            return timedelta(hours=self.bin_size)
        return timedelta(minutes=self.bin_size)

    def truncate(self, moment: datetime, tz: tzinfo) -> datetime:
        """Return the UTC start of the bucket containing ``moment``."""
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        local = moment.astimezone(tz)
        # fold tells the repeated fall-back hour apart from its first pass
        wall = local.replace(tzinfo=None, fold=0)
        bins = (wall - _REFERENCE) // self.width
        start = _REFERENCE + bins * self.width
        return start.replace(tzinfo=tz, fold=local.fold).astimezone(timezone.utc)


def parse_bucket(raw: Optional[str]) -> Optional[BucketSpec]:
    """Parse strings such as ``5m`` or ``2h``.

    Anything that is not a positive whole number of minutes or hours yields
    ``None`` and the caller serves raw readings instead.
    """
    if not raw:
        return None
    match = _BUCKET_PATTERN.match(str(raw).strip())
    if match is None:
        return None

    size = int(match.group(1))
    unit = _UNITS.get(match.group(2).lower())
    if unit is None or size <= 0:
        return None
    return BucketSpec(unit=unit, bin_size=size)


@dataclass(frozen=True)
class RangePreset:
    """A display window offered by the dashboards and the bucket it requests."""

    value: str
    window: timedelta
    bucket: str


RANGE_PRESETS = (
    RangePreset("15m", timedelta(minutes=15), "1m"),
    RangePreset("30m", timedelta(minutes=30), "1m"),
    RangePreset("1h", timedelta(hours=1), "2m"),
    RangePreset("6h", timedelta(hours=6), "10m"),
    RangePreset("24h", timedelta(hours=24), "30m"),
    RangePreset("7d", timedelta(days=7), "3h"),
    RangePreset("30d", timedelta(days=30), "6h"),
)
DEFAULT_RANGE = "6h"
_FALLBACK_BUCKET = "10m"
_FALLBACK_PRESET = RANGE_PRESETS[2]


def find_preset(value: str) -> RangePreset:
    for preset in RANGE_PRESETS:
        if preset.value == value:
            return preset
    return _FALLBACK_PRESET


def bucket_for_range(value: str) -> str:
    for preset in RANGE_PRESETS:
        if preset.value == value:
            return preset.bucket
    return _FALLBACK_BUCKET
