"""Balance reading, history entry, and statistics models.

``BalanceReading`` — the ephemeral outcome of one fetch, held in the live cache.
``HistoryEntry`` — a durable row in the capped history log.
``WalletStats`` — trend statistics over a wallet's retained history.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReadingStatus(str, Enum):
    """Outcome status of a balance reading."""

    SUCCESS = "success"
    TEMPORARY_ERROR = "temporary_error"
    UNAVAILABLE = "unavailable"


class BalanceReading(BaseModel):
    """The latest known balance for one wallet.

    ``success`` and ``temporary_error`` readings always carry a non-empty
    ``value_text``; a ``temporary_error`` reading carries the last known-good
    value rather than a fresh one.  ``unavailable`` readings carry a
    placeholder and ``numeric_value`` is ``None``.
    """

    wallet_name: str
    value_text: str
    numeric_value: float | None = None
    currency: str = "$"
    timestamp: datetime = Field(default_factory=_utcnow)
    status: ReadingStatus
    error_message: str | None = None

    @model_validator(mode="after")
    def _value_required_unless_unavailable(self) -> "BalanceReading":
        if self.status != ReadingStatus.UNAVAILABLE and not self.value_text.strip():
            raise ValueError(f"{self.status.value} reading requires a value_text")
        return self

    @property
    def is_success(self) -> bool:
        return self.status == ReadingStatus.SUCCESS

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain JSON-friendly dict."""
        return self.model_dump(mode="json")


class HistoryEntry(BaseModel):
    """One persisted reading in the history log."""

    wallet_name: str
    balance_text: str
    numeric_value: float | None = None
    platform: str = ""
    timestamp: datetime = Field(default_factory=_utcnow)
    status: ReadingStatus

    @classmethod
    def from_reading(cls, reading: BalanceReading, platform: str) -> "HistoryEntry":
        """Build a history entry from a non-placeholder reading."""
        return cls(
            wallet_name=reading.wallet_name,
            balance_text=reading.value_text,
            numeric_value=reading.numeric_value,
            platform=platform,
            timestamp=reading.timestamp,
            status=reading.status,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain JSON-friendly dict."""
        return self.model_dump(mode="json")


class WalletStats(BaseModel):
    """Trend statistics over the entries currently retained for a wallet.

    ``change`` and ``change_percent`` compare the most recent value to the
    oldest retained one.
    """

    wallet_name: str
    current_balance: float
    min_balance: float
    max_balance: float
    avg_balance: float
    change: float
    change_percent: float
    total_entries: int
    first_entry: datetime
    last_entry: datetime

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain JSON-friendly dict."""
        return self.model_dump(mode="json")
