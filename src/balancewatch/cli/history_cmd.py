"""CLI commands for querying the wallet history log."""

from __future__ import annotations

import json

import typer
from rich.console import Console
from rich.table import Table

history_app = typer.Typer(help="Query recorded wallet balance history.")
console = Console()


def _open_log():
    from balancewatch.exceptions import PersistenceError
    from balancewatch.store import build_history_log

    try:
        return build_history_log()
    except PersistenceError as e:
        console.print(f"[red]Could not open history:[/red] {e}")
        raise typer.Exit(code=1)


def _entries_table(title: str, entries) -> Table:
    table = Table(title=title)
    table.add_column("Timestamp", style="dim")
    table.add_column("Wallet", style="cyan")
    table.add_column("Balance", justify="right")
    table.add_column("Status")
    table.add_column("Platform", style="dim")
    for e in entries:
        style = "green" if e.status.value == "success" else "yellow"
        table.add_row(
            e.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            e.wallet_name,
            e.balance_text,
            f"[{style}]{e.status.value}[/{style}]",
            e.platform,
        )
    return table


@history_app.command("show")
def show_wallet_history(
    name: str = typer.Argument(..., help="Wallet name."),
    limit: int = typer.Option(100, "--limit", "-l", help="Maximum entries to show."),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output as JSON."),
) -> None:
    """Show one wallet's history, most recent first."""
    entries = _open_log().recent_for(name, limit)
    if json_output:
        console.print_json(json.dumps([e.to_dict() for e in entries]))
        return
    if not entries:
        console.print(f"No history for {name}")
        return
    console.print(_entries_table(f"History for {name}", entries))


@history_app.command("all")
def show_all_history(
    limit: int = typer.Option(500, "--limit", "-l", help="Maximum entries to show."),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output as JSON."),
) -> None:
    """Show history across all wallets, most recent first."""
    entries = _open_log().recent_all(limit)
    if json_output:
        console.print_json(json.dumps([e.to_dict() for e in entries]))
        return
    if not entries:
        console.print("No history recorded yet")
        return
    console.print(_entries_table(f"Wallet history ({len(entries)} entries)", entries))


@history_app.command("latest")
def show_latest(
    json_output: bool = typer.Option(False, "--json", "-j", help="Output as JSON."),
) -> None:
    """Show the newest entry for every wallet."""
    latest = _open_log().latest_per_wallet()
    if json_output:
        console.print_json(json.dumps({name: e.to_dict() for name, e in latest.items()}))
        return
    if not latest:
        console.print("No history recorded yet")
        return
    console.print(_entries_table("Latest balance per wallet", latest.values()))


@history_app.command("stats")
def show_stats(
    name: str = typer.Argument(..., help="Wallet name."),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output as JSON."),
) -> None:
    """Show trend statistics over a wallet's retained history."""
    stats = _open_log().stats_for(name)
    if stats is None:
        if json_output:
            console.print_json("null")
        else:
            console.print(f"[yellow]No numeric history for {name}[/yellow]")
        raise typer.Exit(code=1)

    if json_output:
        console.print_json(json.dumps(stats.to_dict()))
        return

    change_style = "green" if stats.change >= 0 else "red"
    table = Table(title=f"Stats for {name}")
    table.add_column("Metric", style="dim")
    table.add_column("Value", justify="right")
    table.add_row("Current", f"${stats.current_balance:,.2f}")
    table.add_row("Min", f"${stats.min_balance:,.2f}")
    table.add_row("Max", f"${stats.max_balance:,.2f}")
    table.add_row("Average", f"${stats.avg_balance:,.2f}")
    table.add_row("Change", f"[{change_style}]{stats.change:+,.2f} ({stats.change_percent:+.2f}%)[/{change_style}]")
    table.add_row("Entries", str(stats.total_entries))
    table.add_row("First", stats.first_entry.isoformat())
    table.add_row("Last", stats.last_entry.isoformat())
    console.print(table)
