"""In-memory live balance cache.

Holds the most recent ``BalanceReading`` per wallet name plus the last
known-good value used for fallback.  The cache is cold on restart; the
engine seeds it through ``seed`` and prunes it when the wallet set
changes.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from datetime import datetime

from balancewatch.models.reading import BalanceReading, ReadingStatus

logger = logging.getLogger(__name__)


class LiveBalanceCache:
    """Thread-safe map of wallet name to latest reading."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._current: dict[str, BalanceReading] = {}
        self._last_good: dict[str, BalanceReading] = {}

    def put(self, reading: BalanceReading) -> None:
        """Store *reading*; ``success`` readings also become the last good value."""
        with self._lock:
            self._current[reading.wallet_name] = reading
            if reading.status == ReadingStatus.SUCCESS:
                self._last_good[reading.wallet_name] = reading

    def seed(self, reading: BalanceReading) -> bool:
        """Insert an initial reading unless the wallet already has one.

        A seed carrying a value (anything but ``unavailable``) also becomes
        the fallback value until the first real fetch succeeds.

        Returns:
            True if the seed was stored.
        """
        with self._lock:
            if reading.wallet_name in self._current:
                return False
            self._current[reading.wallet_name] = reading
            if reading.status != ReadingStatus.UNAVAILABLE:
                self._last_good.setdefault(reading.wallet_name, reading)
            return True

    def current_of(self, wallet_name: str) -> BalanceReading | None:
        """Return the latest reading, or ``None`` if the wallet is unseeded."""
        with self._lock:
            return self._current.get(wallet_name)

    def last_good(self, wallet_name: str) -> BalanceReading | None:
        """Return the most recent ``success`` reading (or valued seed) for *wallet_name*."""
        with self._lock:
            return self._last_good.get(wallet_name)

    def last_success_at(self, wallet_name: str) -> datetime | None:
        """Return when the wallet was last fetched successfully (seeds don't count)."""
        good = self.last_good(wallet_name)
        if good is None or good.status != ReadingStatus.SUCCESS:
            return None
        return good.timestamp

    def detailed_all(self, order: Iterable[str]) -> list[BalanceReading]:
        """Return readings for the wallets in *order*, skipping unseeded ones."""
        with self._lock:
            return [self._current[name] for name in order if name in self._current]

    def snapshot(self) -> dict[str, BalanceReading]:
        with self._lock:
            return dict(self._current)

    def prune(self, keep: Iterable[str]) -> list[str]:
        """Drop every wallet not in *keep*; return the removed names."""
        keep_set = set(keep)
        with self._lock:
            removed = [name for name in self._current if name not in keep_set]
            for name in removed:
                self._current.pop(name, None)
                self._last_good.pop(name, None)
        if removed:
            logger.info("Pruned %d wallet(s) from live cache: %s", len(removed), ", ".join(removed))
        return removed
