from __future__ import annotations

from pathlib import Path
from zoneinfo import ZoneInfo

from datastore.base import ReadingStore
from datastore.memory import InMemoryReadingStore
from datastore.mongo import MongoReadingStore
from settings import Settings


def build_reading_store(settings: Settings) -> ReadingStore:
    """Create the store selected by ``READING_STORE_BACKEND``."""
    if settings.store_backend == "memory":
        path = settings.memory_store_path
        return InMemoryReadingStore(
            tz=ZoneInfo(settings.bucket_timezone),
            persistence_path=Path(path) if path else None,
        )
    return MongoReadingStore.connect(
        uri=settings.mongodb_uri,
        database=settings.mongodb_database,
        collection=settings.mongodb_collection,
        timezone_name=settings.bucket_timezone,
    )
