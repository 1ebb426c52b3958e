"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

_ISO_DATE_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}")


class ApiModel(BaseModel):
    """Base model exposing camelCase keys on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class IngestPayload(ApiModel):
    """Body accepted by ``POST /ingest``."""

    model_config = ConfigDict(frozen=True)

    device_id: str = Field(..., min_length=1, strict=True)
    temperature: float = Field(..., strict=True, allow_inf_nan=False)
    humidity: float = Field(..., strict=True, allow_inf_nan=False)
    aqi: float = Field(..., strict=True, allow_inf_nan=False)
    timestamp: Optional[datetime] = Field(
        default=None,
        validation_alias=AliasChoices("timestamp", "ts"),
        description="ISO-8601 instant; defaults to the time of ingestion.",
    )

    @field_validator("timestamp", mode="before")
    @classmethod
    def _require_iso_string(cls, value: Any) -> Any:
        if value is None:
            return None
        if not isinstance(value, str) or not _ISO_DATE_PREFIX.match(value.strip()):
            raise ValueError("timestamp must be an ISO-8601 string")
        return value.strip()

    @field_validator("timestamp")
    @classmethod
    def _normalize_timezone(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class IngestResponse(ApiModel):
    ok: bool = True
    id: str = Field(..., description="Generated identifier of the stored reading.")


class DevicesResponse(ApiModel):
    ok: bool = True
    devices: List[str] = Field(default_factory=list)


class LatestEntry(ApiModel):
    device_id: str
    timestamp: datetime
    temperature: float
    humidity: float
    aqi: float


class LatestResponse(ApiModel):
    ok: bool = True
    latest: List[LatestEntry] = Field(default_factory=list)


class RawReadingRow(ApiModel):
    timestamp: datetime
    device_id: str
    temperature: float
    humidity: float
    aqi: float


class AggregatedRow(ApiModel):
    """Statistics for one time bucket."""

    timestamp: datetime
    temperature_avg: float
    temperature_min: float
    temperature_max: float
    temperature_range: float
    humidity_avg: float
    humidity_min: float
    humidity_max: float
    humidity_range: float
    aqi_avg: float
    aqi_min: float
    aqi_max: float
    aqi_range: float


class _ReadingsEnvelope(ApiModel):
    ok: bool = True
    device_id: str
    start: datetime = Field(..., alias="from")
    end: datetime = Field(..., alias="to")
    count: int = Field(..., ge=0)


class RawReadingsResponse(_ReadingsEnvelope):
    mode: Literal["raw"] = "raw"
    readings: List[RawReadingRow] = Field(default_factory=list)


class AggregatedReadingsResponse(_ReadingsEnvelope):
    mode: Literal["aggregated"] = "aggregated"
    bucket: str = Field(..., description="Canonical bucket label, e.g. 5m or 2h.")
    readings: List[AggregatedRow] = Field(default_factory=list)


ReadingsResponse = Annotated[
    Union[RawReadingsResponse, AggregatedReadingsResponse],
    Field(discriminator="mode"),
]


class HealthResponse(BaseModel):
    status: str = "ok"
