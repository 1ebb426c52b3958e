"""Tests for the MongoDB store against a recording fake collection."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest
from pymongo.errors import ServerSelectionTimeoutError

from datastore.base import ReadingStoreError
from datastore.mongo import MongoReadingStore, build_bucket_pipeline, build_latest_pipeline
from services.bucketing import BucketSpec

START = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
END = START + timedelta(hours=1)


class FakeInsertResult:
    def __init__(self, inserted_id: Any) -> None:
        self.inserted_id = inserted_id


class FakeCursor:
    def __init__(self, docs: List[Dict[str, Any]]) -> None:
        self.docs = docs
        self.sort_args: Optional[tuple] = None
        self.limit_value: Optional[int] = None

    def sort(self, key: str, direction: int) -> "FakeCursor":
        self.sort_args = (key, direction)
        return self

    def limit(self, value: int) -> "FakeCursor":
        self.limit_value = value
        return self

    def __iter__(self):
        return iter(self.docs)


class FakeCollection:
    def __init__(self) -> None:
        self.inserted: List[Dict[str, Any]] = []
        self.find_calls: List[tuple] = []
        self.pipelines: List[List[Dict[str, Any]]] = []
        self.indexes: List[Any] = []
        self.aggregate_result: List[Dict[str, Any]] = []
        self.find_result: List[Dict[str, Any]] = []
        self.distinct_result: List[Any] = []
        self.cursor: Optional[FakeCursor] = None
        self.fail_with: Optional[Exception] = None

    def _maybe_fail(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def create_index(self, keys: Any) -> str:
        self._maybe_fail()
        self.indexes.append(keys)
        return "index"

    def insert_one(self, document: Dict[str, Any]) -> FakeInsertResult:
        self._maybe_fail()
        self.inserted.append(document)
        return FakeInsertResult(inserted_id=f"oid-{len(self.inserted)}")

    def distinct(self, key: str) -> List[Any]:
        self._maybe_fail()
        assert key == "meta.deviceId"
        return list(self.distinct_result)

    def find(self, query: Dict[str, Any], projection: Dict[str, Any]) -> FakeCursor:
        self._maybe_fail()
        self.find_calls.append((query, projection))
        self.cursor = FakeCursor(self.find_result)
        return self.cursor

    def aggregate(self, pipeline: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        self._maybe_fail()
        self.pipelines.append(pipeline)
        return list(self.aggregate_result)


@pytest.fixture
def collection() -> FakeCollection:
    return FakeCollection()


@pytest.fixture
def store(collection: FakeCollection) -> MongoReadingStore:
    return MongoReadingStore(collection, timezone_name="Europe/Berlin")  # type: ignore[arg-type]


def test_insert_writes_time_series_document(
    store: MongoReadingStore, collection: FakeCollection, make_reading
) -> None:
    reading_id = store.insert(make_reading("dev1", START, temperature=21.5, humidity=40, aqi=12))

    assert reading_id == "oid-1"
    assert collection.inserted == [
        {
            "ts": START,
            "meta": {"deviceId": "dev1"},
            "temperature": 21.5,
            "humidity": 40,
            "aqi": 12,
        }
    ]


def test_ensure_indexes_covers_device_and_time(
    store: MongoReadingStore, collection: FakeCollection
) -> None:
    store.ensure_indexes()

    assert [("meta.deviceId", 1), ("ts", 1)] in collection.indexes


def test_device_ids_sorted(store: MongoReadingStore, collection: FakeCollection) -> None:
    collection.distinct_result = ["b", "a", None, "c"]

    assert store.device_ids() == ["a", "b", "c"]


def test_find_range_queries_sorted_and_limited(
    store: MongoReadingStore, collection: FakeCollection
) -> None:
    collection.find_result = [
        {"ts": START, "meta": {"deviceId": "dev1"}, "temperature": 20, "humidity": 40, "aqi": 11},
        {"ts": START.replace(tzinfo=None) + timedelta(minutes=1), "meta": {"deviceId": "dev1"},
         "temperature": 21.0, "humidity": 41.0, "aqi": 12.0},
    ]

    readings = store.find_range("dev1", START, END, limit=50)

    query, projection = collection.find_calls[0]
    assert query == {"meta.deviceId": "dev1", "ts": {"$gte": START, "$lte": END}}
    assert projection["_id"] == 0
    assert collection.cursor is not None
    assert collection.cursor.sort_args == ("ts", 1)
    assert collection.cursor.limit_value == 50
    assert [r.temperature for r in readings] == [20.0, 21.0]
    assert readings[1].timestamp == START + timedelta(minutes=1)
    assert readings[1].timestamp.tzinfo is not None


def test_bucket_pipeline_shape() -> None:
    pipeline = build_bucket_pipeline(
        "dev1", START, END, BucketSpec("minute", 5), "Europe/Berlin", limit=100
    )

    stages = [next(iter(stage)) for stage in pipeline]
    assert stages == ["$match", "$group", "$project", "$sort", "$limit"]
    group = pipeline[1]["$group"]
    assert group["_id"] == {
        "$dateTrunc": {"date": "$ts", "unit": "minute", "binSize": 5, "timezone": "Europe/Berlin"}
    }
    assert group["aqiMax"] == {"$max": "$aqi"}
    project = pipeline[2]["$project"]
    assert project["humidityRange"] == {"$subtract": ["$humidityMax", "$humidityMin"]}
    assert pipeline[3] == {"$sort": {"ts": 1}}
    assert pipeline[4] == {"$limit": 100}


def test_aggregate_range_maps_documents(
    store: MongoReadingStore, collection: FakeCollection
) -> None:
    collection.aggregate_result = [
        {
            "ts": START,
            "temperatureAvg": 21.0, "temperatureMin": 20.0, "temperatureMax": 22.0, "temperatureRange": 2.0,
            "humidityAvg": 40.0, "humidityMin": 39.0, "humidityMax": 41.0, "humidityRange": 2.0,
            "aqiAvg": 12, "aqiMin": 10, "aqiMax": 14, "aqiRange": 4,
        }
    ]

    (bucket,) = store.aggregate_range("dev1", START, END, BucketSpec("hour", 2), limit=10)

    assert collection.pipelines[0][1]["$group"]["_id"]["$dateTrunc"]["unit"] == "hour"
    assert bucket.timestamp == START
    assert bucket.temperature.range == 2.0
    assert bucket.aqi.avg == 12.0
    assert bucket.aqi.range == 4.0


def test_latest_pipeline_and_mapping(store: MongoReadingStore, collection: FakeCollection) -> None:
    collection.aggregate_result = [
        {"deviceId": "a", "ts": START, "temperature": 1, "humidity": 2, "aqi": 3},
    ]

    (latest,) = store.latest_per_device()

    assert collection.pipelines[0] == build_latest_pipeline()
    assert build_latest_pipeline()[0] == {"$sort": {"ts": -1}}
    assert build_latest_pipeline()[-1] == {"$sort": {"deviceId": 1}}
    assert (latest.device_id, latest.temperature, latest.aqi) == ("a", 1.0, 3.0)


def test_driver_errors_become_store_errors(
    store: MongoReadingStore, collection: FakeCollection, make_reading
) -> None:
    collection.fail_with = ServerSelectionTimeoutError("no servers")

    with pytest.raises(ReadingStoreError):
        store.insert(make_reading("dev1", START))
    with pytest.raises(ReadingStoreError):
        store.device_ids()
    with pytest.raises(ReadingStoreError):
        store.find_range("dev1", START, END, limit=1)
