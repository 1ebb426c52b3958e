from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence

import typer

from cli.series import ChartPoint, range_stats

_UNITS = {"temperature": " °C", "humidity": " %", "aqi": ""}


def fmt(value: Optional[float]) -> str:
    return f"{value:.1f}" if isinstance(value, (int, float)) else "—"


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_devices(devices: Sequence[str]) -> None:
    echo_heading("Devices")
    if not devices:
        typer.echo("No devices found yet.")
        return
    for device in devices:
        typer.echo(f"  - {device}")


def render_latest(entries: Sequence[Dict[str, Any]]) -> None:
    echo_heading("Latest readings")
    if not entries:
        typer.echo("No readings stored yet.")
        return
    for entry in entries:
        typer.echo(
            f"  - {entry.get('deviceId')} @ {entry.get('timestamp')}: "
            f"temperature={fmt(entry.get('temperature'))}{_UNITS['temperature']} "
            f"humidity={fmt(entry.get('humidity'))}{_UNITS['humidity']} "
            f"aqi={fmt(entry.get('aqi'))}"
        )


def render_series(
    device_id: str,
    payload: Dict[str, Any],
    points: List[ChartPoint],
    table_rows: int = 10,
) -> None:
    mode = payload.get("mode", "unknown")
    bucket = payload.get("bucket")
    echo_heading(f"Device {device_id}")
    echo_key_values(
        [
            ("mode", f"{mode} ({bucket})" if bucket else mode),
            ("from", payload.get("from")),
            ("to", payload.get("to")),
            ("points", len(points)),
        ]
    )
    typer.echo()

    if not points:
        typer.echo("No data in this range.")
        return

    latest = points[-1]
    stats = range_stats(points)
    echo_heading("Latest")
    typer.echo(f"timestamp: {latest.timestamp}")
    for name, unit in _UNITS.items():
        span = stats[name]
        typer.echo(
            f"{name}: {fmt(latest.stats(name).avg)}{unit} "
            f"(range {fmt(span.min)} – {fmt(span.max)})"
        )

    typer.echo()
    echo_heading("Recent")
    for point in reversed(points[-table_rows:]):
        typer.echo(
            f"  {point.timestamp}  "
            + "  ".join(
                f"{name}={fmt(point.stats(name).avg)}"
                f"[{fmt(point.stats(name).min)}..{fmt(point.stats(name).max)}]"
                for name in _UNITS
            )
        )
