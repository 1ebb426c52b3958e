from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_STORE_BACKEND_ENV = "READING_STORE_BACKEND"
_MONGODB_URI_ENV = "MONGODB_URI"
_MONGODB_DATABASE_ENV = "MONGODB_DATABASE"
_MONGODB_COLLECTION_ENV = "MONGODB_COLLECTION"
_MEMORY_STORE_PATH_ENV = "MEMORY_STORE_PATH"
_INGEST_KEY_ENV = "INGEST_API_KEY"
_DASHBOARD_KEY_ENV = "DASHBOARD_API_KEY"
_BUCKET_TIMEZONE_ENV = "BUCKET_TIMEZONE"
_DEFAULT_LIMIT_ENV = "READINGS_DEFAULT_LIMIT"
_MAX_LIMIT_ENV = "READINGS_MAX_LIMIT"
_LOG_LEVEL_ENV = "LOG_LEVEL"

STORE_BACKENDS = ("mongo", "memory")


@dataclass(frozen=True)
class Settings:
    store_backend: str
    mongodb_uri: str
    mongodb_database: str
    mongodb_collection: str
    memory_store_path: Optional[str]
    ingest_api_key: Optional[str]
    dashboard_api_key: Optional[str]
    bucket_timezone: str
    readings_default_limit: int
    readings_max_limit: int
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_store_backend(default: str) -> str:
    candidate = _read_str_env(_STORE_BACKEND_ENV, default).lower()
    return candidate if candidate in STORE_BACKENDS else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    max_limit = _read_positive_int(_MAX_LIMIT_ENV, 20000)
    return Settings(
        store_backend=_read_store_backend("mongo"),
        mongodb_uri=_read_str_env(_MONGODB_URI_ENV, "mongodb://localhost:27017"),
        mongodb_database=_read_str_env(_MONGODB_DATABASE_ENV, "telemetry"),
        mongodb_collection=_read_str_env(_MONGODB_COLLECTION_ENV, "readings"),
        memory_store_path=_read_optional_env(_MEMORY_STORE_PATH_ENV, None),
        ingest_api_key=_read_optional_env(_INGEST_KEY_ENV, None),
        dashboard_api_key=_read_optional_env(_DASHBOARD_KEY_ENV, None),
        bucket_timezone=_read_str_env(_BUCKET_TIMEZONE_ENV, "Europe/Berlin"),
        readings_default_limit=min(_read_positive_int(_DEFAULT_LIMIT_ENV, 5000), max_limit),
        readings_max_limit=max_limit,
        log_level=_read_log_level("INFO"),
    )
