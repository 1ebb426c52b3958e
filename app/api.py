"""HTTP route definitions for the service."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import RedirectResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from app.schemas import (
    AggregatedReadingsResponse,
    AggregatedRow,
    DevicesResponse,
    HealthResponse,
    IngestPayload,
    IngestResponse,
    LatestEntry,
    LatestResponse,
    RawReadingRow,
    RawReadingsResponse,
    ReadingsResponse,
)
from app.security import require_dashboard_key, require_ingest_key
from datastore.base import ReadingStoreError
from services.readings import (
    AggregatedResult,
    InvalidQueryError,
    RawResult,
    ReadingService,
)

logger = logging.getLogger(__name__)

router = APIRouter()
read_router = APIRouter(prefix="/api", dependencies=[Depends(require_dashboard_key)])


def get_reading_service(request: Request) -> ReadingService:
    return request.app.state.reading_service


def _server_error(message: str, **context: object) -> HTTPException:
    logger.exception(message, extra=context)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Server error",
    )


@router.post(
    "/ingest",
    status_code=status.HTTP_201_CREATED,
    response_model=IngestResponse,
    dependencies=[Depends(require_ingest_key)],
    summary="Store one reading reported by a device.",
)
async def ingest_reading(
    request: Request,
    service: ReadingService = Depends(get_reading_service),
) -> IngestResponse:
    try:
        body = await request.json()
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid JSON",
        ) from exc

    try:
        payload = IngestPayload.model_validate(body)
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={
                "message": "Validation failed",
                "errors": exc.errors(include_url=False, include_context=False, include_input=False),
            },
        ) from exc

    try:
        reading_id = await run_in_threadpool(service.ingest, payload)
    except ReadingStoreError as exc:
        raise _server_error("Failed to store reading", device_id=payload.device_id) from exc
    return IngestResponse(id=reading_id)


@read_router.get(
    "/devices",
    response_model=DevicesResponse,
    summary="List known device identifiers.",
)
def list_devices(
    service: ReadingService = Depends(get_reading_service),
) -> DevicesResponse:
    try:
        devices = service.devices()
    except ReadingStoreError as exc:
        raise _server_error("Failed to list devices") from exc
    return DevicesResponse(devices=devices)


@read_router.get(
    "/latest",
    response_model=LatestResponse,
    summary="Most recent reading of every device.",
)
def latest_readings(
    service: ReadingService = Depends(get_reading_service),
) -> LatestResponse:
    try:
        latest = service.latest()
    except ReadingStoreError as exc:
        raise _server_error("Failed to load latest readings") from exc
    return LatestResponse(
        latest=[
            LatestEntry(
                device_id=item.device_id,
                timestamp=item.timestamp,
                temperature=item.temperature,
                humidity=item.humidity,
                aqi=item.aqi,
            )
            for item in latest
        ]
    )


@read_router.get(
    "/readings",
    response_model=ReadingsResponse,
    summary="Raw readings, or min/avg/max per bucket when a bucket is given.",
)
def query_readings(
    device_id: Optional[str] = Query(None, alias="deviceId"),
    start: Optional[str] = Query(None, alias="from"),
    end: Optional[str] = Query(None, alias="to"),
    limit: Optional[str] = Query(None),
    bucket: Optional[str] = Query(None, description="e.g. 5m or 2h"),
    service: ReadingService = Depends(get_reading_service),
) -> RawReadingsResponse | AggregatedReadingsResponse:
    try:
        query = service.build_query(device_id, start=start, end=end, limit=limit, bucket=bucket)
    except InvalidQueryError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc

    try:
        result = service.query(query)
    except ReadingStoreError as exc:
        raise _server_error("Failed to query readings", device_id=query.device_id) from exc

    if isinstance(result, AggregatedResult):
        return _aggregated_response(result)
    return _raw_response(result)


def _raw_response(result: RawResult) -> RawReadingsResponse:
    query = result.query
    return RawReadingsResponse(
        device_id=query.device_id,
        start=query.start,
        end=query.end,
        count=len(result.readings),
        readings=[
            RawReadingRow(
                timestamp=reading.timestamp,
                device_id=reading.device_id,
                temperature=reading.temperature,
                humidity=reading.humidity,
                aqi=reading.aqi,
            )
            for reading in result.readings
        ],
    )


def _aggregated_response(result: AggregatedResult) -> AggregatedReadingsResponse:
    query = result.query
    rows = []
    for item in result.buckets:
        rows.append(
            AggregatedRow(
                timestamp=item.timestamp,
                temperature_avg=item.temperature.avg,
                temperature_min=item.temperature.min,
                temperature_max=item.temperature.max,
                temperature_range=item.temperature.range,
                humidity_avg=item.humidity.avg,
                humidity_min=item.humidity.min,
                humidity_max=item.humidity.max,
                humidity_range=item.humidity.range,
                aqi_avg=item.aqi.avg,
                aqi_min=item.aqi.min,
                aqi_max=item.aqi.max,
                aqi_range=item.aqi.range,
            )
        )
    return AggregatedReadingsResponse(
        device_id=query.device_id,
        start=query.start,
        end=query.end,
        count=len(rows),
        bucket=result.bucket.label,
        readings=rows,
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> HealthResponse:
    return HealthResponse()


@router.get("/", include_in_schema=False)
async def root() -> RedirectResponse:
    return RedirectResponse(url="/dashboard/", status_code=status.HTTP_302_FOUND)
