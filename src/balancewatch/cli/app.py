"""Unified CLI entry point for balancewatch.

Config precedence: settings.default.toml -> settings.{env}.toml -> settings.local.toml -> env vars (BALANCEWATCH_* with double underscores) -> CLI flags.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from balancewatch.cli.history_cmd import history_app
from balancewatch.cli.settings_cmd import settings_app
from balancewatch.cli.wallet_cmd import wallet_app

try:
    from importlib.metadata import version

    VERSION = version("balancewatch")
except Exception:
    VERSION = "unknown"

APP_HELP = (
    "balancewatch — wallet balance acquisition and caching engine. "
    "Renders wallet and portfolio pages, extracts the headline balance, and keeps a capped history. "
    "Config precedence: settings.default.toml -> settings.local.toml -> env vars (BALANCEWATCH_* with __) -> CLI flags."
)

app = typer.Typer(add_completion=True, help=APP_HELP)

app.add_typer(settings_app, name="settings")
app.add_typer(wallet_app, name="wallet")
app.add_typer(history_app, name="history")


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context, version: bool = typer.Option(False, "--version", help="Show version and exit.")) -> None:
    """Show help when no subcommand is provided."""
    if version:
        typer.echo(f"balancewatch {VERSION}")
        raise typer.Exit()
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


@app.command("monitor")
def monitor(
    wallets: Optional[Path] = typer.Option(None, "--wallets", "-w", help="Wallet JSON file (default: monitor.wallets_file)."),
    interval: Optional[float] = typer.Option(None, "--interval", "-i", help="Seconds between cycles (default: scheduler.interval_seconds)."),
) -> None:
    """Run the balance engine in the foreground until interrupted."""
    import threading

    from balancewatch.engine import build_engine
    from balancewatch.settings import get_settings
    from balancewatch.worker.monitor import configure_logging, run_monitor

    configure_logging()
    settings = get_settings()
    wallets_file = wallets or Path(settings.monitor.wallets_file)

    stop = threading.Event()
    try:
        code = run_monitor(build_engine(), wallets_file, interval_seconds=interval, stop=stop)
    except KeyboardInterrupt:
        stop.set()
        code = 0
    raise typer.Exit(code=code)


if __name__ == "__main__":
    app()
