from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta
from typing import Callable, Iterator, List
from zoneinfo import ZoneInfo

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from datastore.memory import InMemoryReadingStore
from models.records import SensorReading
from settings import Settings, get_settings


@pytest.fixture
def ingest_key() -> str:
    return "ingest-secret"


@pytest.fixture
def dashboard_key() -> str:
    return "dashboard-secret"


@pytest.fixture
def settings(ingest_key: str, dashboard_key: str) -> Settings:
    return replace(
        get_settings(),
        store_backend="memory",
        memory_store_path=None,
        ingest_api_key=ingest_key,
        dashboard_api_key=dashboard_key,
        bucket_timezone="Europe/Berlin",
        readings_default_limit=5000,
        readings_max_limit=20000,
    )


@pytest.fixture
def store() -> InMemoryReadingStore:
    return InMemoryReadingStore(tz=ZoneInfo("Europe/Berlin"))


@pytest.fixture
def api_client(settings: Settings, store: InMemoryReadingStore) -> Iterator[TestClient]:
    app = create_app(settings=settings, store=store)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def dashboard_headers(dashboard_key: str) -> dict[str, str]:
    return {"x-dashboard-key": dashboard_key}


@pytest.fixture
def make_reading() -> Callable[..., SensorReading]:
    def build(
        device_id: str,
        timestamp: datetime,
        temperature: float = 21.0,
        humidity: float = 40.0,
        aqi: float = 10.0,
    ) -> SensorReading:
        return SensorReading(
            device_id=device_id,
            timestamp=timestamp,
            temperature=temperature,
            humidity=humidity,
            aqi=aqi,
        )

    return build


@pytest.fixture
def five_minute_series(make_reading) -> Callable[..., List[SensorReading]]:
    """Readings spaced five minutes apart with strictly increasing values."""

    def build(device_id: str, start: datetime, count: int = 12) -> List[SensorReading]:
        return [
            make_reading(
                device_id,
                start + timedelta(minutes=5 * index),
                temperature=20.0 + index,
                humidity=40.0 + index / 2,
                aqi=10.0 + index * 3,
            )
            for index in range(count)
        ]

    return build
