from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from services.bucketing import DEFAULT_RANGE, RANGE_PRESETS

DEFAULT_BASE_URL = "http://localhost:8000"
DEFAULT_POLL_INTERVAL = 30.0

_BASE_URL_ENV = "API_BASE_URL"
_DASHBOARD_KEY_ENV = "DASHBOARD_API_KEY"
_INGEST_KEY_ENV = "INGEST_API_KEY"
_POLL_INTERVAL_ENV = "DASHBOARD_POLL_INTERVAL"
_RANGE_ENV = "DASHBOARD_RANGE"


@dataclass(frozen=True)
class CLIConfig:
    base_url: str = DEFAULT_BASE_URL
    dashboard_key: Optional[str] = None
    ingest_key: Optional[str] = None
    poll_interval: float = DEFAULT_POLL_INTERVAL
    range: str = DEFAULT_RANGE


def _read_float(value: Optional[str], default: float) -> float:
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_range(value: Optional[str]) -> str:
    candidate = (value or "").strip()
    known = {preset.value for preset in RANGE_PRESETS}
    return candidate if candidate in known else DEFAULT_RANGE


def load_config(
    base_url: Optional[str] = None,
    dashboard_key: Optional[str] = None,
    ingest_key: Optional[str] = None,
    poll_interval: Optional[float] = None,
    range_value: Optional[str] = None,
) -> CLIConfig:
    url = base_url or os.getenv(_BASE_URL_ENV) or DEFAULT_BASE_URL
    if poll_interval is None:
        poll_interval = _read_float(os.getenv(_POLL_INTERVAL_ENV), DEFAULT_POLL_INTERVAL)
    return CLIConfig(
        base_url=url.rstrip("/"),
        dashboard_key=dashboard_key or os.getenv(_DASHBOARD_KEY_ENV) or None,
        ingest_key=ingest_key or os.getenv(_INGEST_KEY_ENV) or None,
        poll_interval=poll_interval,
        range=_read_range(range_value or os.getenv(_RANGE_ENV)),
    )
