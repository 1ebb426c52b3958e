"""Terminal dashboard for the telemetry monitor.

The Typer application lives in ``cli.app``; it is not re-exported here so that
``cli.app`` keeps resolving to the module and its attributes stay patchable.
"""

__all__: list[str] = []
