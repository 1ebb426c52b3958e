"""MongoDB-backed reading store.

Documents follow the time-series layout ``{ts, meta: {deviceId}, temperature,
humidity, aqi}`` so the collection can be created as a native time-series
collection with ``timeField="ts"`` and ``metaField="meta"``.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from datastore.base import ReadingStoreError
from models.records import (
    MEASUREMENT_FIELDS,
    BucketAggregate,
    FieldStats,
    LatestReading,
    SensorReading,
)
from services.bucketing import BucketSpec


def build_match_stage(device_id: str, start: datetime, end: datetime) -> Dict[str, Any]:
    return {"meta.deviceId": device_id, "ts": {"$gte": start, "$lte": end}}


def build_bucket_pipeline(
    device_id: str,
    start: datetime,
    end: datetime,
    bucket: BucketSpec,
    timezone_name: str,
    limit: int,
) -> List[Dict[str, Any]]:
    group: Dict[str, Any] = {
        "_id": {
            "$dateTrunc": {
                "date": "$ts",
                "unit": bucket.unit,
                "binSize": bucket.bin_size,
                "timezone": timezone_name,
            }
        }
    }
    project: Dict[str, Any] = {"_id": 0, "ts": "$_id"}
    for name in MEASUREMENT_FIELDS:
        group[f"{name}Avg"] = {"$avg": f"${name}"}
        group[f"{name}Min"] = {"$min": f"${name}"}
        group[f"{name}Max"] = {"$max": f"${name}"}
        project[f"{name}Avg"] = 1
        project[f"{name}Min"] = 1
        project[f"{name}Max"] = 1
        project[f"{name}Range"] = {"$subtract": [f"${name}Max", f"${name}Min"]}

    return [
        {"$match": build_match_stage(device_id, start, end)},
        {"$group": group},
        {"$project": project},
        {"$sort": {"ts": 1}},
        {"$limit": limit},
    ]


def build_latest_pipeline() -> List[Dict[str, Any]]:
    group: Dict[str, Any] = {"_id": "$meta.deviceId", "ts": {"$first": "$ts"}}
    project: Dict[str, Any] = {"_id": 0, "deviceId": "$_id", "ts": 1}
    for name in MEASUREMENT_FIELDS:
        group[name] = {"$first": f"${name}"}
        project[name] = 1
    return [
        {"$sort": {"ts": -1}},
        {"$group": group},
        {"$project": project},
        {"$sort": {"deviceId": 1}},
    ]


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _stats(doc: Dict[str, Any], name: str) -> FieldStats:
    return FieldStats(
        avg=float(doc[f"{name}Avg"]),
        min=float(doc[f"{name}Min"]),
        max=float(doc[f"{name}Max"]),
    )


class MongoReadingStore:

    def __init__(
        self,
        collection: Collection,
        timezone_name: str,
        client: Optional[MongoClient] = None,
    ) -> None:
        self.collection = collection
        self.timezone_name = timezone_name
        self._client = client

    @classmethod
    def connect(
        cls,
        uri: str,
        database: str,
        collection: str,
        timezone_name: str,
        create_indexes: bool = True,
    ) -> "MongoReadingStore":
        client: MongoClient = MongoClient(uri, tz_aware=True, tzinfo=timezone.utc)
        store = cls(client[database][collection], timezone_name, client=client)
        if create_indexes:
            store.ensure_indexes()
        return store

    def ensure_indexes(self) -> None:
        with self._translate_errors("create indexes"):
            self.collection.create_index([("meta.deviceId", ASCENDING), ("ts", ASCENDING)])
            self.collection.create_index([("ts", DESCENDING)])

    def insert(self, reading: SensorReading) -> str:
        document: Dict[str, Any] = {
            "ts": reading.timestamp,
            "meta": {"deviceId": reading.device_id},
            "temperature": reading.temperature,
            "humidity": reading.humidity,
            "aqi": reading.aqi,
        }
        with self._translate_errors("insert reading"):
            result = self.collection.insert_one(document)
        return str(result.inserted_id)

    def device_ids(self) -> List[str]:
        with self._translate_errors("list devices"):
            values = self.collection.distinct("meta.deviceId")
        return sorted(str(value) for value in values if value is not None)

    def latest_per_device(self) -> List[LatestReading]:
        with self._translate_errors("load latest readings"):
            docs = list(self.collection.aggregate(build_latest_pipeline()))
        return [
            LatestReading(
                device_id=str(doc["deviceId"]),
                timestamp=_as_utc(doc["ts"]),
                temperature=float(doc["temperature"]),
                humidity=float(doc["humidity"]),
                aqi=float(doc["aqi"]),
            )
            for doc in docs
        ]

    def find_range(
        self, device_id: str, start: datetime, end: datetime, limit: int
    ) -> List[SensorReading]:
        projection = {
            "_id": 0,
            "ts": 1,
            "meta.deviceId": 1,
            "temperature": 1,
            "humidity": 1,
            "aqi": 1,
        }
        with self._translate_errors("query readings"):
            cursor = (
                self.collection.find(build_match_stage(device_id, start, end), projection)
                .sort("ts", ASCENDING)
                .limit(limit)
            )
            docs = list(cursor)
        return [
            SensorReading(
                device_id=str(doc.get("meta", {}).get("deviceId", device_id)),
                timestamp=_as_utc(doc["ts"]),
                temperature=float(doc["temperature"]),
                humidity=float(doc["humidity"]),
                aqi=float(doc["aqi"]),
            )
            for doc in docs
        ]

    def aggregate_range(
        self,
        device_id: str,
        start: datetime,
        end: datetime,
        bucket: BucketSpec,
        limit: int,
    ) -> List[BucketAggregate]:
        pipeline = build_bucket_pipeline(
            device_id, start, end, bucket, self.timezone_name, limit
        )
        with self._translate_errors("aggregate readings"):
            docs = list(self.collection.aggregate(pipeline))
        return [
            BucketAggregate(
                timestamp=_as_utc(doc["ts"]),
                temperature=_stats(doc, "temperature"),
                humidity=_stats(doc, "humidity"),
                aqi=_stats(doc, "aqi"),
            )
            for doc in docs
        ]

    def close(self) -> None:
        if self._client is not None:
            self._client.close()

    @contextmanager
    def _translate_errors(self, action: str) -> Iterator[None]:
        try:
            yield
        except PyMongoError as exc:
            raise ReadingStoreError(f"MongoDB failed to {action}: {exc}") from exc
