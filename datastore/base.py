from __future__ import annotations

from datetime import datetime
from typing import List, Protocol

from models.records import BucketAggregate, LatestReading, SensorReading
from services.bucketing import BucketSpec


class ReadingStoreError(RuntimeError):
    """Raised when the backing store fails to serve a request."""


class ReadingStore(Protocol):
    """Append-only collection of sensor readings keyed by device."""

    def insert(self, reading: SensorReading) -> str: ...

    def device_ids(self) -> List[str]: ...

    def latest_per_device(self) -> List[LatestReading]: ...

    def find_range(
        self, device_id: str, start: datetime, end: datetime, limit: int
    ) -> List[SensorReading]: ...

    def aggregate_range(
        self,
        device_id: str,
        start: datetime,
        end: datetime,
        bucket: BucketSpec,
        limit: int,
    ) -> List[BucketAggregate]: ...

    def close(self) -> None: ...
