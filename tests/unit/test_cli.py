"""Unit tests for the balancewatch CLI (typer.testing.CliRunner)."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from balancewatch.cli.app import app
from balancewatch.models.reading import HistoryEntry, ReadingStatus
from balancewatch.store.history import HistoryLog

PAGES_DIR = Path(__file__).resolve().parents[1] / "fixtures" / "pages"


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def history_db(tmp_path: Path, monkeypatch) -> HistoryLog:
    """Point the CLI at a temporary history database with a few entries."""
    db = tmp_path / "cli_history.db"
    monkeypatch.setenv("BALANCEWATCH_HISTORY__SQLITE_PATH", str(db))
    log = HistoryLog(db_path=db)
    for i, value in enumerate([100.0, 120.0, 90.0, 150.0]):
        log.append(
            HistoryEntry(
                wallet_name="Main",
                balance_text=f"${value:,.2f}",
                numeric_value=value,
                platform="generic",
                timestamp=datetime(2025, 1, 1, 12, i, tzinfo=timezone.utc),
                status=ReadingStatus.SUCCESS,
            )
        )
    return log


class TestRoot:
    def test_version(self, runner) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "balancewatch" in result.output

    def test_no_command_shows_help(self, runner) -> None:
        result = runner.invoke(app, [])
        assert result.exit_code == 0
        assert "wallet" in result.output

    def test_monitor_delegates_to_worker(self, runner, tmp_path) -> None:
        wallets = tmp_path / "wallets.json"
        wallets.write_text("[]")
        with (
            patch("balancewatch.worker.monitor.configure_logging"),
            patch("balancewatch.engine.build_engine") as build,
            patch("balancewatch.worker.monitor.run_monitor", return_value=1) as run,
        ):
            result = runner.invoke(app, ["monitor", "--wallets", str(wallets), "--interval", "60"])

        assert result.exit_code == 1
        args, kwargs = run.call_args
        assert args == (build.return_value, wallets)
        assert kwargs["interval_seconds"] == 60.0


class TestWalletCommands:
    def test_platform(self, runner) -> None:
        result = runner.invoke(app, ["wallet", "platform", "https://jup.ag/portfolio/abc"])
        assert result.exit_code == 0
        assert "jupiter_portfolio" in result.output
        assert "Net Worth" in result.output

    def test_extract_json(self, runner) -> None:
        result = runner.invoke(
            app, ["wallet", "extract", str(PAGES_DIR / "aptoscan.txt"), "--platform", "aptoscan", "--json"]
        )
        assert result.exit_code == 0
        assert '"found": true' in result.output
        assert '"strategy": "labeled"' in result.output
        assert "4812.77" in result.output

    def test_extract_nothing_found(self, runner, tmp_path) -> None:
        page = tmp_path / "page.txt"
        page.write_text("Loading...")
        result = runner.invoke(app, ["wallet", "extract", str(page)])
        assert result.exit_code == 1
        assert "Nothing found" in result.output

    def test_extract_rejected_json(self, runner, tmp_path) -> None:
        page = tmp_path / "page.txt"
        page.write_text("Fee $3")
        result = runner.invoke(app, ["wallet", "extract", str(page), "--json"])
        assert result.exit_code == 1
        assert '"found": false' in result.output
        assert "$3" in result.output

    def test_extract_unknown_platform(self, runner) -> None:
        result = runner.invoke(app, ["wallet", "extract", str(PAGES_DIR / "generic.txt"), "-p", "myspace"])
        assert result.exit_code == 1
        assert "Unknown platform" in result.output

    def test_extract_missing_file(self, runner, tmp_path) -> None:
        result = runner.invoke(app, ["wallet", "extract", str(tmp_path / "nope.txt")])
        assert result.exit_code == 1


class TestHistoryCommands:
    def test_show_json(self, runner, history_db) -> None:
        result = runner.invoke(app, ["history", "show", "Main", "--limit", "2", "--json"])
        assert result.exit_code == 0
        assert "$150.00" in result.output
        assert "$90.00" in result.output
        assert "$120.00" not in result.output

    def test_show_empty(self, runner, history_db) -> None:
        result = runner.invoke(app, ["history", "show", "Other"])
        assert result.exit_code == 0
        assert "No history for Other" in result.output

    def test_all_table(self, runner, history_db) -> None:
        result = runner.invoke(app, ["history", "all"])
        assert result.exit_code == 0
        assert "Main" in result.output

    def test_latest_json(self, runner, history_db) -> None:
        result = runner.invoke(app, ["history", "latest", "--json"])
        assert result.exit_code == 0
        assert '"balance_text": "$150.00"' in result.output

    def test_stats_json(self, runner, history_db) -> None:
        result = runner.invoke(app, ["history", "stats", "Main", "--json"])
        assert result.exit_code == 0
        assert '"change_percent": 50.0' in result.output
        assert '"min_balance": 90.0' in result.output

    def test_stats_missing_wallet(self, runner, history_db) -> None:
        result = runner.invoke(app, ["history", "stats", "Other"])
        assert result.exit_code == 1


class TestSettingsCommands:
    def test_show_redacts_access_key(self, runner, monkeypatch) -> None:
        monkeypatch.setenv("BALANCEWATCH_QUICK_API__DEBANK_ACCESS_KEY", "super-secret")
        result = runner.invoke(app, ["settings", "show"])
        assert result.exit_code == 0
        assert "super-secret" not in result.output
        assert "***" in result.output

    def test_validate_ok(self, runner) -> None:
        result = runner.invoke(app, ["settings", "validate"])
        assert result.exit_code == 0
        assert "Settings are valid" in result.output

    def test_validate_rejects_inverted_band(self, runner, monkeypatch) -> None:
        monkeypatch.setenv("BALANCEWATCH_FETCH__MIN_VALUE", "500")
        monkeypatch.setenv("BALANCEWATCH_FETCH__MAX_VALUE", "100")
        result = runner.invoke(app, ["settings", "validate"])
        assert result.exit_code == 1
        assert "fetch.min_value" in result.output


def test_fetch_command_reports_unavailable(runner, tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("BALANCEWATCH_HISTORY__SQLITE_PATH", str(tmp_path / "h.db"))
    fetcher = MagicMock()
    fetcher.return_value.fetch_one.return_value = MagicMock(
        is_success=False,
        to_dict=lambda: {"status": "unavailable", "value_text": "Unavailable"},
    )
    with patch("balancewatch.fetcher.fetcher.WalletFetcher", fetcher):
        result = runner.invoke(app, ["wallet", "fetch", "https://example.org/w", "--json"])
    assert result.exit_code == 1
    assert "unavailable" in result.output
