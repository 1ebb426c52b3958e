"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

MEASUREMENT_FIELDS = ("temperature", "humidity", "aqi")


@dataclass(frozen=True, slots=True)
class SensorReading:
    """A single sample reported by a device."""

    device_id: str
    timestamp: datetime
    temperature: float
    humidity: float
    aqi: float
    id: Optional[str] = None


@dataclass(frozen=True, slots=True)
class FieldStats:
    """Average, minimum and maximum of one measurement inside a bucket."""

    avg: float
    min: float
    max: float

    @property
    def range(self) -> float:
        return self.max - self.min


@dataclass(frozen=True, slots=True)
class BucketAggregate:
    """Statistics for all readings whose timestamp truncates to ``timestamp``."""

    timestamp: datetime
    temperature: FieldStats
    humidity: FieldStats
    aqi: FieldStats


@dataclass(frozen=True, slots=True)
class LatestReading:
    device_id: str
    timestamp: datetime
    temperature: float
    humidity: float
    aqi: float
