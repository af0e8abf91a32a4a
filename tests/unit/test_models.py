"""Unit tests for balancewatch.models."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError as PydanticValidationError

from balancewatch.models import (
    BalanceReading,
    HistoryEntry,
    ReadingStatus,
    WalletConfig,
    load_wallet_configs,
)
from balancewatch.platforms import Platform


class TestWalletConfig:
    """WalletConfig validation and platform inference."""

    def test_platform_inferred_from_url(self) -> None:
        config = WalletConfig(id="1", name="Main", source_url="https://debank.com/profile/0xabc")
        assert config.platform == Platform.DEBANK

    def test_explicit_platform_kept(self) -> None:
        config = WalletConfig(name="Main", source_url="https://example.org", platform="aptoscan")
        assert config.platform == Platform.APTOSCAN

    def test_frozen(self) -> None:
        config = WalletConfig(name="Main", source_url="https://example.org")
        with pytest.raises(PydanticValidationError):
            config.name = "Other"  # type: ignore[misc]

    def test_blank_name_rejected(self) -> None:
        with pytest.raises(PydanticValidationError):
            WalletConfig(name="  ", source_url="https://example.org")


class TestBalanceReading:
    """value_text requirements per status."""

    def test_success_requires_value_text(self) -> None:
        with pytest.raises(PydanticValidationError):
            BalanceReading(wallet_name="A", value_text="", status=ReadingStatus.SUCCESS)

    def test_temporary_error_requires_value_text(self) -> None:
        with pytest.raises(PydanticValidationError):
            BalanceReading(wallet_name="A", value_text=" ", status=ReadingStatus.TEMPORARY_ERROR)

    def test_unavailable_allows_placeholder(self) -> None:
        reading = BalanceReading(wallet_name="A", value_text="", status=ReadingStatus.UNAVAILABLE)
        assert reading.numeric_value is None
        assert reading.currency == "$"

    def test_to_dict_is_json_friendly(self) -> None:
        reading = BalanceReading(
            wallet_name="A", value_text="$10.00", numeric_value=10.0, status=ReadingStatus.SUCCESS
        )
        data = reading.to_dict()
        assert data["status"] == "success"
        assert isinstance(data["timestamp"], str)
        json.dumps(data)

    def test_history_entry_from_reading(self) -> None:
        reading = BalanceReading(
            wallet_name="A", value_text="$10.00", numeric_value=10.0, status=ReadingStatus.SUCCESS
        )
        entry = HistoryEntry.from_reading(reading, "debank")
        assert entry.balance_text == "$10.00"
        assert entry.platform == "debank"
        assert entry.timestamp == reading.timestamp


class TestLoadWalletConfigs:
    def test_loads_array(self, tmp_path) -> None:
        path = tmp_path / "wallets.json"
        path.write_text(
            json.dumps(
                [
                    {"id": "1", "name": "EVM", "source_url": "https://debank.com/profile/0x1"},
                    {"id": "2", "name": "Apt", "link": "https://aptoscan.com/account/0x2"},
                ]
            )
        )
        configs = load_wallet_configs(path)
        assert [c.name for c in configs] == ["EVM", "Apt"]
        assert configs[1].platform == Platform.APTOSCAN

    def test_invalid_entries_skipped(self, tmp_path) -> None:
        path = tmp_path / "wallets.json"
        path.write_text(json.dumps([{"name": "NoUrl"}, {"name": "Ok", "source_url": "https://x.io"}]))
        assert [c.name for c in load_wallet_configs(path)] == ["Ok"]

    def test_non_array_rejected(self, tmp_path) -> None:
        path = tmp_path / "wallets.json"
        path.write_text(json.dumps({"name": "x"}))
        with pytest.raises(ValueError):
            load_wallet_configs(path)

    def test_example_file_loads(self) -> None:
        from balancewatch.settings.config import CONFIG_DIR

        configs = load_wallet_configs(CONFIG_DIR / "wallets.example.json")
        assert {c.platform for c in configs} == {Platform.DEBANK, Platform.JUPITER_PORTFOLIO, Platform.READY}
