from __future__ import annotations

import json
from datetime import datetime, tzinfo
from pathlib import Path
from threading import Lock
from typing import Dict, List, Optional
from uuid import uuid4

from datastore.base import ReadingStoreError
from models.records import BucketAggregate, LatestReading, SensorReading
from services.aggregator import Aggregator
from services.bucketing import BucketSpec


class InMemoryReadingStore:
    """Process-local reading store with optional JSON persistence."""

    def __init__(self, tz: tzinfo, persistence_path: Optional[Path] = None) -> None:
        self._readings: List[SensorReading] = []
        self.persistence_path = persistence_path
        self.aggregator = Aggregator(tz)
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def insert(self, reading: SensorReading) -> str:
        reading_id = uuid4().hex
        stored = SensorReading(
            device_id=reading.device_id,
            timestamp=reading.timestamp,
            temperature=reading.temperature,
            humidity=reading.humidity,
            aqi=reading.aqi,
            id=reading_id,
        )
        with self._lock:
            self._readings.append(stored)
            try:
                self._persist()
            except ReadingStoreError:
                self._readings.pop()
                raise
        return reading_id

    def device_ids(self) -> List[str]:
        with self._lock:
            return sorted({reading.device_id for reading in self._readings})

    def latest_per_device(self) -> List[LatestReading]:
        latest: Dict[str, SensorReading] = {}
        with self._lock:
            for reading in self._readings:
                current = latest.get(reading.device_id)
                if current is None or reading.timestamp > current.timestamp:
                    latest[reading.device_id] = reading

        return [
            LatestReading(
                device_id=device_id,
                timestamp=reading.timestamp,
                temperature=reading.temperature,
                humidity=reading.humidity,
                aqi=reading.aqi,
            )
            for device_id, reading in sorted(latest.items())
        ]

    def find_range(
        self, device_id: str, start: datetime, end: datetime, limit: int
    ) -> List[SensorReading]:
        matched = self._select(device_id, start, end)
        matched.sort(key=lambda reading: reading.timestamp)
        return matched[:limit]

    def aggregate_range(
        self,
        device_id: str,
        start: datetime,
        end: datetime,
        bucket: BucketSpec,
        limit: int,
    ) -> List[BucketAggregate]:
        matched = self._select(device_id, start, end)
        return self.aggregator.aggregate(matched, bucket, limit=limit)

    def close(self) -> None:
        with self._lock:
            self._persist()

    def _select(self, device_id: str, start: datetime, end: datetime) -> List[SensorReading]:
        with self._lock:
            return [
                reading
                for reading in self._readings
                if reading.device_id == device_id and start <= reading.timestamp <= end
            ]

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        payload = [
            {
                "id": reading.id,
                "deviceId": reading.device_id,
                "ts": reading.timestamp.isoformat(),
                "temperature": reading.temperature,
                "humidity": reading.humidity,
                "aqi": reading.aqi,
            }
            for reading in self._readings
        ]
        try:
            self.persistence_path.write_text(json.dumps(payload, indent=2))
        except OSError as exc:
            raise ReadingStoreError(f"Could not write {self.persistence_path}") from exc

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "[]"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError):
            data = []

        for item in data:
            self._readings.append(
                SensorReading(
                    device_id=item["deviceId"],
                    timestamp=datetime.fromisoformat(item["ts"]),
                    temperature=item["temperature"],
                    humidity=item["humidity"],
                    aqi=item["aqi"],
                    id=item.get("id"),
                )
            )
