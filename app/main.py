from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from app.api import read_router, router
from app.web import router as web_router
from datastore.base import ReadingStore
from datastore.factory import build_reading_store
from logging_config import configure_logging
from services.readings import ReadingService
from settings import Settings, get_settings


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[ReadingStore] = None,
) -> FastAPI:
    """Build the application.

    When ``store`` is given the caller owns it; otherwise the store is opened
    at startup from ``settings`` and closed at shutdown.
    """
    configure_logging()
    app_settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owned = store is None
        active_store = build_reading_store(app_settings) if owned else store
        app.state.reading_service = ReadingService(
            active_store,
            default_limit=app_settings.readings_default_limit,
            max_limit=app_settings.readings_max_limit,
        )
        try:
            yield
        finally:
            if owned:
                active_store.close()

    app = FastAPI(
        title="Telemetry Monitor",
        description="Ingestion and read API for temperature, humidity and AQI readings.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = app_settings
    static_dir = Path(__file__).resolve().parent.parent / "static"
    app.mount("/static", StaticFiles(directory=static_dir), name="static")
    app.include_router(router)
    app.include_router(read_router)
    app.include_router(web_router)
    return app


app = create_app()
