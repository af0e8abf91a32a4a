"""Data models shared by the fetcher, cache, history log, and engine."""

from balancewatch.models.reading import BalanceReading, HistoryEntry, ReadingStatus, WalletStats
from balancewatch.models.wallet import WalletConfig, load_wallet_configs

__all__ = [
    "BalanceReading",
    "HistoryEntry",
    "ReadingStatus",
    "WalletConfig",
    "WalletStats",
    "load_wallet_configs",
]
