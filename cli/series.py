"""Client-side shaping of read API responses for charting.

The read API answers in one of two shapes, tagged by ``mode``:

* ``raw``: one row per reading with ``temperature``/``humidity``/``aqi``.
* ``aggregated``: one row per bucket with ``<field>Avg``/``Min``/``Max``/``Range``.

Both are folded into :class:`ChartPoint` so rendering code never branches on
the shape. Payloads from servers that predate the ``mode`` tag are
classified per row by the presence of ``temperatureAvg``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, TypeVar

from models.records import MEASUREMENT_FIELDS

MAX_POINTS = 900

T = TypeVar("T")


@dataclass(frozen=True)
class PointStats:
    avg: Optional[float]
    min: Optional[float]
    max: Optional[float]
    range: Optional[float]


@dataclass(frozen=True)
class ChartPoint:
    timestamp: Optional[str]
    temperature: PointStats
    humidity: PointStats
    aqi: PointStats

    def stats(self, name: str) -> PointStats:
        return getattr(self, name)


@dataclass(frozen=True)
class RangeStats:
    min: Optional[float]
    max: Optional[float]


def to_number_or_none(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return float(value)


def is_aggregated(payload: Mapping[str, Any], row: Mapping[str, Any]) -> bool:
    mode = payload.get("mode")
    if mode in ("raw", "aggregated"):
        return mode == "aggregated"
    return "temperatureAvg" in row


def _row_stats(row: Mapping[str, Any], name: str, aggregated: bool) -> PointStats:
    if aggregated:
        return PointStats(
            avg=to_number_or_none(row.get(f"{name}Avg")),
            min=to_number_or_none(row.get(f"{name}Min")),
            max=to_number_or_none(row.get(f"{name}Max")),
            range=to_number_or_none(row.get(f"{name}Range")),
        )
    value = to_number_or_none(row.get(name))
    return PointStats(
        avg=value,
        min=value,
        max=value,
        range=None if value is None else 0.0,
    )


def normalize_row(row: Mapping[str, Any], aggregated: bool) -> ChartPoint:
    stats: Dict[str, PointStats] = {
        name: _row_stats(row, name, aggregated) for name in MEASUREMENT_FIELDS
    }
    timestamp = row.get("timestamp", row.get("ts"))
    return ChartPoint(timestamp=timestamp, **stats)


def normalize_response(payload: Mapping[str, Any]) -> List[ChartPoint]:
    rows = payload.get("readings") or []
    return [normalize_row(row, is_aggregated(payload, row)) for row in rows]


def downsample(points: Sequence[T], max_points: int = MAX_POINTS) -> List[T]:
    """Keep every n-th point so at most roughly ``max_points`` remain."""
    if len(points) <= max_points:
        return list(points)
    step = math.ceil(len(points) / max_points)
    return list(points[::step])


def range_stats(points: Iterable[ChartPoint]) -> Dict[str, RangeStats]:
    """Lowest bucket minimum and highest bucket maximum per measurement."""
    materialized = list(points)
    result: Dict[str, RangeStats] = {}
    for name in MEASUREMENT_FIELDS:
        minimums = [p.stats(name).min for p in materialized if p.stats(name).min is not None]
        maximums = [p.stats(name).max for p in materialized if p.stats(name).max is not None]
        result[name] = RangeStats(
            min=min(minimums) if minimums else None,
            max=max(maximums) if maximums else None,
        )
    return result
