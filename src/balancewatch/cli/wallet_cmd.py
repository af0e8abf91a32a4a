"""CLI commands for single-wallet work.

Subcommands for classifying a wallet URL, running the extraction
strategies over saved page text, and performing a one-off live fetch.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

wallet_app = typer.Typer(help="Single-wallet tools — classify URLs, test extraction, and fetch once.")
console = Console()

_STATUS_STYLE = {"success": "green", "temporary_error": "yellow", "unavailable": "red"}


# ---------------------------------------------------------------------------
# balancewatch wallet platform <url>
# ---------------------------------------------------------------------------


@wallet_app.command("platform")
def show_platform(
    url: str = typer.Argument(..., help="Wallet or portfolio page URL."),
) -> None:
    """Print the platform a URL classifies as and its scraping profile."""
    from balancewatch.platforms import classify_platform, profile_for
    from balancewatch.settings import get_settings

    platform = classify_platform(url)
    profile = profile_for(platform, get_settings())
    console.print(f"Platform:  [cyan]{platform.value}[/cyan]")
    console.print(f"  Settle:     {profile.settle_seconds:g}s")
    console.print(f"  Nav timeout: {profile.nav_timeout_ms}ms")
    console.print(f"  Band:       [{profile.min_value:g}, {profile.max_value:g})")
    if profile.labels:
        console.print(f"  Labels:     {', '.join(profile.labels)}")
    if profile.optical_label:
        console.print(f"  Optical:    anchored on {profile.optical_label!r}")


# ---------------------------------------------------------------------------
# balancewatch wallet extract <file>
# ---------------------------------------------------------------------------


@wallet_app.command("extract")
def extract_from_file(
    source: Path = typer.Argument(..., help="File containing saved visible page text."),
    platform: str = typer.Option("generic", "--platform", "-p", help="Platform profile to apply."),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output result as JSON."),
) -> None:
    """Run the platform's extraction strategies over saved page text."""
    from balancewatch.exceptions import ExtractionError, ValidationError
    from balancewatch.extraction.strategies import extract_balance
    from balancewatch.platforms import Platform, profile_for
    from balancewatch.settings import get_settings

    if not source.is_file():
        console.print(f"[red]File not found:[/red] {source}")
        raise typer.Exit(code=1)

    try:
        chosen = Platform(platform)
    except ValueError:
        valid = ", ".join(p.value for p in Platform)
        console.print(f"[red]Unknown platform:[/red] {platform} (expected one of: {valid})")
        raise typer.Exit(code=1)

    text = source.read_text(encoding="utf-8")
    profile = profile_for(chosen, get_settings())
    try:
        match = extract_balance(text, profile)
    except ValidationError as e:
        if json_output:
            console.print_json(json.dumps({"found": False, "rejected": e.rejected}))
        else:
            console.print(f"[yellow]No plausible value:[/yellow] {e}")
        raise typer.Exit(code=1)
    except ExtractionError as e:
        if json_output:
            console.print_json(json.dumps({"found": False, "rejected": []}))
        else:
            console.print(f"[red]Nothing found:[/red] {e}")
        raise typer.Exit(code=1)

    if json_output:
        console.print_json(
            json.dumps({"found": True, "text": match.text, "value": match.value, "strategy": match.strategy})
        )
        return
    console.print(f"[green]✓[/green] {match.text}  (value={match.value:,.2f}, strategy={match.strategy})")


# ---------------------------------------------------------------------------
# balancewatch wallet fetch <url>
# ---------------------------------------------------------------------------


@wallet_app.command("fetch")
def fetch_once(
    url: str = typer.Argument(..., help="Wallet or portfolio page URL."),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Wallet name for history (default: the URL)."),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output reading as JSON."),
) -> None:
    """Fetch one wallet with a real browser and record it to history."""
    from balancewatch.browser.session import playwright_session_factory
    from balancewatch.engine.cache import LiveBalanceCache
    from balancewatch.fetcher.fetcher import WalletFetcher
    from balancewatch.fetcher.quick_api import build_quick_apis
    from balancewatch.models.wallet import WalletConfig
    from balancewatch.settings import get_settings
    from balancewatch.store import build_history_log

    settings = get_settings()
    config = WalletConfig(id=name or url, name=name or url, source_url=url)
    fetcher = WalletFetcher(
        cache=LiveBalanceCache(),
        history=build_history_log(),
        session_factory=playwright_session_factory(settings.browser),
        settings=settings,
        quick_apis=build_quick_apis(settings),
    )

    with console.status(f"Fetching {config.name} ({config.platform.value})..."):
        reading = fetcher.fetch_one(config)

    if json_output:
        console.print_json(json.dumps(reading.to_dict()))
    else:
        table = Table(title=f"Balance for {config.name}")
        table.add_column("Field", style="dim")
        table.add_column("Value")
        style = _STATUS_STYLE.get(reading.status.value, "")
        table.add_row("Value", f"[bold]{reading.value_text}[/bold]")
        table.add_row("Status", f"[{style}]{reading.status.value}[/{style}]")
        table.add_row("Platform", config.platform.value)
        table.add_row("Timestamp", reading.timestamp.isoformat())
        if reading.error_message:
            table.add_row("Error", reading.error_message)
        console.print(table)

    if not reading.is_success:
        raise typer.Exit(code=1)
