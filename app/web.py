from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from services.bucketing import DEFAULT_RANGE, RANGE_PRESETS

POLL_INTERVAL_MS = 30_000
MAX_CHART_POINTS = 900

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent / "templates"))

router = APIRouter(include_in_schema=False)


@router.get("/dashboard/", name="dashboard", response_class=HTMLResponse)
async def dashboard(request: Request) -> HTMLResponse:
    presets = [
        {
            "value": preset.value,
            "ms": int(preset.window.total_seconds() * 1000),
            "bucket": preset.bucket,
        }
        for preset in RANGE_PRESETS
    ]
    return templates.TemplateResponse(
        request,
        "dashboard/index.html",
        {
            "presets": presets,
            "default_range": DEFAULT_RANGE,
            "poll_interval_ms": POLL_INTERVAL_MS,
            "max_points": MAX_CHART_POINTS,
        },
    )
