"""CLI commands for inspecting and validating balancewatch settings."""

from __future__ import annotations

import json

import typer
from rich.console import Console

settings_app = typer.Typer(help="Inspect and validate balancewatch configuration.")
console = Console()

_SECRET_FIELDS = {"debank_access_key"}


def _redact(data: dict) -> dict:
    out = {}
    for key, value in data.items():
        if isinstance(value, dict):
            out[key] = _redact(value)
        elif key in _SECRET_FIELDS and value:
            out[key] = "***"
        else:
            out[key] = value
    return out


@settings_app.command("show")
def show_settings() -> None:
    """Display the currently resolved settings (secrets redacted)."""
    from balancewatch.settings import get_settings

    settings = get_settings()
    console.print_json(json.dumps(_redact(settings.model_dump(mode="json")), indent=2, default=str))


@settings_app.command("validate")
def validate_settings() -> None:
    """Validate settings and report any issues."""
    from balancewatch.settings import get_settings

    try:
        settings = get_settings()
    except Exception as e:
        console.print(f"[red]✗[/red] Settings validation failed: {e}")
        raise typer.Exit(code=1)

    problems: list[str] = []
    if settings.fetch.min_value >= settings.fetch.max_value:
        problems.append("fetch.min_value must be below fetch.max_value")
    for name, override in settings.platforms.items():
        if override.min_value is not None and override.max_value is not None and override.min_value >= override.max_value:
            problems.append(f"platforms.{name}: min_value must be below max_value")

    if problems:
        for problem in problems:
            console.print(f"[red]✗[/red] {problem}")
        raise typer.Exit(code=1)

    console.print("[green]✓[/green] Settings are valid.")
    console.print(f"  Environment:   {settings.env}")
    console.print(f"  History DB:    {settings.history.sqlite_path}")
    console.print(f"  Wallets file:  {settings.monitor.wallets_file}")
    console.print(f"  Cycle interval: {settings.scheduler.interval_seconds:.0f}s")
