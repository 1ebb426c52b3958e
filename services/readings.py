"""Ingestion and query orchestration on top of a reading store."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Union

from app.schemas import IngestPayload
from datastore.base import ReadingStore
from models.records import BucketAggregate, LatestReading, SensorReading
from services.bucketing import BucketSpec, parse_bucket

logger = logging.getLogger(__name__)

DEFAULT_WINDOW = timedelta(hours=6)


class InvalidQueryError(ValueError):
    """Raised for query parameters that cannot be served."""


@dataclass(frozen=True)
class ReadingQuery:
    device_id: str
    start: datetime
    end: datetime
    limit: int
    bucket: Optional[BucketSpec] = None


@dataclass(frozen=True)
class RawResult:
    query: ReadingQuery
    readings: List[SensorReading]


@dataclass(frozen=True)
class AggregatedResult:
    query: ReadingQuery
    bucket: BucketSpec
    buckets: List[BucketAggregate]


QueryResult = Union[RawResult, AggregatedResult]


def parse_timestamp(value: str) -> datetime:
    candidate = value.strip()
    if not candidate:
        raise ValueError("Timestamp is empty.")

    if candidate.endswith(("Z", "z")):
        candidate = candidate[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError as exc:
        raise ValueError("Invalid timestamp format") from exc

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)

    return parsed.astimezone(timezone.utc)


class ReadingService:
    """Coordinates validation results, the reading store and query defaults."""

    def __init__(
        self,
        store: ReadingStore,
        default_limit: int = 5000,
        max_limit: int = 20000,
        window: timedelta = DEFAULT_WINDOW,
    ) -> None:
        self.store = store
        self.default_limit = default_limit
        self.max_limit = max_limit
        self.window = window

    def ingest(self, payload: IngestPayload, now: Optional[datetime] = None) -> str:
        """Persist one validated reading and return its generated id."""
        timestamp = payload.timestamp or now or datetime.now(timezone.utc)
        reading = SensorReading(
            device_id=payload.device_id,
            timestamp=timestamp,
            temperature=payload.temperature,
            humidity=payload.humidity,
            aqi=payload.aqi,
        )
        reading_id = self.store.insert(reading)
        logger.info(
            "Stored reading",
            extra={"device_id": reading.device_id, "reading_id": reading_id},
        )
        return reading_id

    def build_query(
        self,
        device_id: Optional[str],
        start: Optional[str] = None,
        end: Optional[str] = None,
        limit: Optional[str] = None,
        bucket: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ReadingQuery:
        if not device_id:
            raise InvalidQueryError("deviceId is required")

        current = now or datetime.now(timezone.utc)
        try:
            end_at = parse_timestamp(end) if end else current
            start_at = parse_timestamp(start) if start else current - self.window
        except ValueError as exc:
            raise InvalidQueryError("Invalid from/to datetime") from exc

        return ReadingQuery(
            device_id=device_id,
            start=start_at,
            end=end_at,
            limit=self._resolve_limit(limit),
            bucket=parse_bucket(bucket),
        )

    def query(self, query: ReadingQuery) -> QueryResult:
        if query.bucket is None:
            readings = self.store.find_range(
                query.device_id, query.start, query.end, query.limit
            )
            logger.debug(
                "Served raw readings",
                extra={
                    "device_id": query.device_id,
                    "mode": "raw",
                    "count": len(readings),
                    "limit": query.limit,
                },
            )
            return RawResult(query=query, readings=readings)

        buckets = self.store.aggregate_range(
            query.device_id, query.start, query.end, query.bucket, query.limit
        )
        logger.debug(
            "Served aggregated readings",
            extra={
                "device_id": query.device_id,
                "mode": "aggregated",
                "bucket": query.bucket.label,
                "count": len(buckets),
                "limit": query.limit,
            },
        )
        return AggregatedResult(query=query, bucket=query.bucket, buckets=buckets)

    def devices(self) -> List[str]:
        return self.store.device_ids()

    def latest(self) -> List[LatestReading]:
        return self.store.latest_per_device()

    def _resolve_limit(self, raw: Optional[str]) -> int:
        if raw is None or not raw.strip():
            return self.default_limit
        try:
            parsed = int(raw.strip())
        except ValueError:
            return self.default_limit
        if parsed <= 0:
            return self.default_limit
        return min(parsed, self.max_limit)
