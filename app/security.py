"""Shared-secret checks for device ingestion and dashboard reads."""

from __future__ import annotations

import logging
import re
import secrets
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status

from settings import Settings

logger = logging.getLogger(__name__)

_BEARER_PATTERN = re.compile(r"^Bearer\s+(.+)$", re.IGNORECASE)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def _matches(provided: Optional[str], expected: str) -> bool:
    if not provided:
        return False
    return secrets.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def extract_dashboard_key(
    authorization: Optional[str], dashboard_key: Optional[str]
) -> Optional[str]:
    """Prefer ``Authorization: Bearer <key>``, fall back to ``x-dashboard-key``."""
    match = _BEARER_PATTERN.match(authorization or "")
    if match:
        return match.group(1)
    return dashboard_key or None


def require_ingest_key(
    request: Request,
    x_api_key: Optional[str] = Header(None),
    settings: Settings = Depends(get_app_settings),
) -> None:
    expected = settings.ingest_api_key
    if expected is None or not _matches(x_api_key, expected):
        logger.warning(
            "Rejected ingest request",
            extra={
                "path": request.url.path,
                "reason": "missing key" if not x_api_key else "invalid key",
            },
        )
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


def require_dashboard_key(
    request: Request,
    authorization: Optional[str] = Header(None),
    x_dashboard_key: Optional[str] = Header(None),
    settings: Settings = Depends(get_app_settings),
) -> None:
    expected = settings.dashboard_api_key
    if expected is None:
        logger.error("DASHBOARD_API_KEY is not configured", extra={"path": request.url.path})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="DASHBOARD_API_KEY not configured",
        )

    provided = extract_dashboard_key(authorization, x_dashboard_key)
    if not _matches(provided, expected):
        logger.warning(
            "Rejected dashboard request",
            extra={"path": request.url.path, "reason": "missing or invalid key"},
        )
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
