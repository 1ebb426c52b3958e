from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
import typer

from cli.config import CLIConfig
from services.bucketing import find_preset

READINGS_LIMIT = 3000


class ApiClient:
    """Minimal HTTP client for the telemetry read and ingest APIs."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        headers = {"x-dashboard-key": config.dashboard_key} if config.dashboard_key else {}
        self._client = httpx.Client(base_url=config.base_url, timeout=30.0, headers=headers)

    def close(self) -> None:
        self._client.close()

    def list_devices(self) -> List[str]:
        payload = self._get_json("/api/devices")
        devices = payload.get("devices")
        if not isinstance(devices, list):
            raise typer.BadParameter("Unexpected response payload when listing devices.")
        return sorted(str(device) for device in devices)

    def latest(self) -> List[Dict[str, Any]]:
        payload = self._get_json("/api/latest")
        return list(payload.get("latest") or [])

    def readings(
        self,
        device_id: str,
        range_value: str,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        preset = find_preset(range_value)
        end = now or datetime.now(timezone.utc)
        start = end - preset.window
        params = {
            "deviceId": device_id,
            "from": start.isoformat(),
            "to": end.isoformat(),
            "limit": str(READINGS_LIMIT),
            "bucket": preset.bucket,
        }
        return self._get_json("/api/readings", params=params)

    def send_reading(self, payload: Dict[str, Any]) -> str:
        if not self._config.ingest_key:
            raise typer.BadParameter("An ingest key is required to send readings.")
        try:
            response = self._client.post(
                "/ingest",
                json=payload,
                headers={"x-api-key": self._config.ingest_key},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        reading_id = response.json().get("id")
        if not isinstance(reading_id, str):
            raise typer.BadParameter("Unexpected response payload when sending a reading.")
        return reading_id

    def _get_json(self, path: str, params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        try:
            response = self._client.get(path, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        return response.json()

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        detail: Any = None
        try:
            data = exc.response.json()
            detail = data.get("detail") if isinstance(data, dict) else data
        except ValueError:
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
