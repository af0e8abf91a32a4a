"""Tests for the foreground monitor worker (balancewatch.worker.monitor)."""

from __future__ import annotations

import json
import logging
import threading
from unittest.mock import MagicMock

import pytest

from balancewatch.worker.monitor import configure_logging, run_monitor


@pytest.fixture()
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture()
def stopped() -> threading.Event:
    event = threading.Event()
    event.set()
    return event


class TestConfigureLogging:
    def test_json_lines_outside_local(self, monkeypatch, restore_root_logger):
        monkeypatch.setenv("BALANCEWATCH_ENV", "prod")
        monkeypatch.setenv("BALANCEWATCH_LOG_LEVEL", "warning")

        configure_logging()

        root = restore_root_logger
        assert root.level == logging.WARNING
        record = logging.LogRecord("balancewatch.test", logging.ERROR, __file__, 1, "boom %s", ("x",), None)
        entry = json.loads(root.handlers[0].format(record))
        assert entry["severity"] == "ERROR"
        assert entry["message"] == "boom x"
        assert entry["logger"] == "balancewatch.test"

    def test_quietens_http_libraries(self, monkeypatch, restore_root_logger):
        monkeypatch.setenv("BALANCEWATCH_ENV", "local")
        configure_logging()
        assert logging.getLogger("httpx").level == logging.WARNING


class TestRunMonitor:
    def test_missing_file_returns_1(self, tmp_path, stopped):
        engine = MagicMock()
        assert run_monitor(engine, tmp_path / "nope.json", stop=stopped) == 1
        engine.start_monitor.assert_not_called()

    def test_empty_wallet_list_returns_1(self, tmp_path, stopped):
        path = tmp_path / "wallets.json"
        path.write_text("[]")
        assert run_monitor(MagicMock(), path, stop=stopped) == 1

    def test_registers_wallets_and_closes(self, tmp_path, stopped):
        path = tmp_path / "wallets.json"
        path.write_text(
            json.dumps(
                [
                    {"id": "1", "name": "EVM", "source_url": "https://debank.com/profile/0x1"},
                    {"id": "2", "name": "Apt", "source_url": "https://aptoscan.com/account/0x2"},
                ]
            )
        )
        engine = MagicMock()

        assert run_monitor(engine, path, interval_seconds=120, stop=stopped) == 0

        configs = engine.set_wallets.call_args.args[0]
        assert [c.name for c in configs] == ["EVM", "Apt"]
        assert engine.initialize_wallet.call_count == 2
        assert all(c.kwargs == {"schedule_fetch": False} for c in engine.initialize_wallet.call_args_list)
        engine.start_monitor.assert_called_once_with(120)
        engine.close.assert_called_once_with()
