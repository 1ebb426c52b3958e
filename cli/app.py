from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_devices, render_latest, render_series
from cli.series import downsample, normalize_response


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Terminal dashboard for the telemetry monitor.",
    context_settings={"help_option_names": ["-h", "--help"]},
)

# Patched in tests so watch loops do not block.
sleep: Callable[[float], None] = time.sleep


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1, message="CLI state is uninitialized.")
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="API base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    dashboard_key: Optional[str] = typer.Option(
        None,
        "--dashboard-key",
        help="Key for the read API (defaults to DASHBOARD_API_KEY env).",
    ),
    ingest_key: Optional[str] = typer.Option(
        None,
        "--ingest-key",
        help="Key for POST /ingest (defaults to INGEST_API_KEY env).",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(
        base_url=base_url,
        dashboard_key=dashboard_key,
        ingest_key=ingest_key,
    )
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("devices")
def devices_command(ctx: typer.Context) -> None:
    """List devices that have reported at least one reading."""
    state = _get_state(ctx)
    render_devices(state.client.list_devices())


@app.command("latest")
def latest_command(ctx: typer.Context) -> None:
    """Show the most recent reading of every device."""
    state = _get_state(ctx)
    render_latest(state.client.latest())


def _resolve_device(state: CLIState, device_id: Optional[str]) -> str:
    if device_id:
        return device_id
    devices = state.client.list_devices()
    if not devices:
        typer.secho("No devices found yet.", fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=1)
    return devices[0]


def _show(state: CLIState, device_id: str, range_value: str) -> None:
    payload = state.client.readings(device_id, range_value)
    points = downsample(normalize_response(payload))
    render_series(device_id, payload, points)


@app.command("readings")
def readings_command(
    ctx: typer.Context,
    device_id: Optional[str] = typer.Argument(
        None, help="Device to show (defaults to the first known device)."
    ),
    range_value: Optional[str] = typer.Option(
        None, "--range", "-r", help="Display window: 15m, 30m, 1h, 6h, 24h, 7d or 30d."
    ),
) -> None:
    """Fetch one window of readings and summarize it."""
    state = _get_state(ctx)
    device = _resolve_device(state, device_id)
    _show(state, device, range_value or state.config.range)


@app.command("watch")
def watch_command(
    ctx: typer.Context,
    device_id: Optional[str] = typer.Argument(
        None, help="Device to watch (defaults to the first known device)."
    ),
    range_value: Optional[str] = typer.Option(
        None, "--range", "-r", help="Display window: 15m, 30m, 1h, 6h, 24h, 7d or 30d."
    ),
    interval: Optional[float] = typer.Option(
        None, "--interval", help="Seconds between refreshes."
    ),
    iterations: int = typer.Option(
        0, "--iterations", "-n", min=0, help="Stop after this many refreshes (0 runs forever)."
    ),
) -> None:
    """Refresh a device's readings on a fixed interval."""
    state = _get_state(ctx)
    device = _resolve_device(state, device_id)
    window = range_value or state.config.range
    delay = interval if interval is not None else state.config.poll_interval

    count = 0
    while True:
        _show(state, device, window)
        count += 1
        if iterations and count >= iterations:
            return
        typer.echo()
        sleep(delay)


@app.command("send")
def send_command(
    ctx: typer.Context,
    device_id: str = typer.Argument(..., help="Identifier of the reporting device."),
    temperature: float = typer.Option(..., "--temperature", "-t"),
    humidity: float = typer.Option(..., "--humidity", "-u"),
    aqi: float = typer.Option(..., "--aqi", "-a"),
    timestamp: Optional[datetime] = typer.Option(
        None, "--timestamp", help="Sample time; the server uses its own clock when omitted."
    ),
) -> None:
    """Post one reading to the ingestion endpoint."""
    state = _get_state(ctx)
    payload = {
        "deviceId": device_id,
        "temperature": temperature,
        "humidity": humidity,
        "aqi": aqi,
    }
    if timestamp is not None:
        payload["timestamp"] = timestamp.isoformat()
    reading_id = state.client.send_reading(payload)
    typer.secho(f"Reading stored. id={reading_id}", fg=typer.colors.GREEN)
