"""Aggregation logic for sensor readings."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from typing import Dict, Iterable, List

from models.records import BucketAggregate, FieldStats, SensorReading
from services.bucketing import BucketSpec


@dataclass
class _RunningStats:
    count: int = 0
    total: float = 0.0
    minimum: float | None = None
    maximum: float | None = None

    def add(self, value: float) -> None:
        self.count += 1
        self.total += value
        if self.minimum is None or value < self.minimum:
            self.minimum = value
        if self.maximum is None or value > self.maximum:
            self.maximum = value

    def freeze(self) -> FieldStats:
        assert self.minimum is not None and self.maximum is not None
        return FieldStats(avg=self.total / self.count, min=self.minimum, max=self.maximum)


@dataclass
class _BucketAccumulator:
    temperature: _RunningStats = field(default_factory=_RunningStats)
    humidity: _RunningStats = field(default_factory=_RunningStats)
    aqi: _RunningStats = field(default_factory=_RunningStats)

    def add(self, reading: SensorReading) -> None:
        self.temperature.add(reading.temperature)
        self.humidity.add(reading.humidity)
        self.aqi.add(reading.aqi)


class Aggregator:
    """Pure aggregation component that can be unit tested in isolation."""

    def __init__(self, tz: tzinfo) -> None:
        self.tz = tz

    def aggregate(
        self,
        readings: Iterable[SensorReading],
        bucket: BucketSpec,
        limit: int | None = None,
    ) -> List[BucketAggregate]:
        """Group readings by truncated timestamp, oldest bucket first."""
        buckets: Dict[datetime, _BucketAccumulator] = {}

        for reading in readings:
            key = bucket.truncate(reading.timestamp, self.tz)
            accumulator = buckets.get(key)
            if accumulator is None:
                accumulator = buckets[key] = _BucketAccumulator()
            accumulator.add(reading)

        ordered = sorted(buckets.items())
        if limit is not None:
            ordered = ordered[:limit]

        return [
            BucketAggregate(
                timestamp=key,
                temperature=acc.temperature.freeze(),
                humidity=acc.humidity.freeze(),
                aqi=acc.aqi.freeze(),
            )
            for key, acc in ordered
        ]
