"""Per-wallet fetcher: one wallet in, one ``BalanceReading`` out.

Each attempt tries the platform's quick API (when one is configured), then
renders the page in a fresh browser session, runs the platform's text
strategies, and finally the optical fallback when the platform defines one.
Attempts are bounded by ``fetch.max_attempts`` with a fixed delay between
them.

On exhaustion the fetcher degrades instead of failing: the last known-good
value (live cache first, then the history log, which survives restarts) is
returned as ``temporary_error``; with no prior value the reading is
``unavailable``.  ``fetch_one`` never raises.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING

from balancewatch.browser.session import SessionFactory
from balancewatch.exceptions import BalanceWatchError, ExtractionError, PersistenceError, ValidationError
from balancewatch.extraction.money import format_amount
from balancewatch.extraction.optical import OpticalFallback
from balancewatch.extraction.strategies import RawMatch, extract_balance
from balancewatch.models.reading import BalanceReading, HistoryEntry, ReadingStatus
from balancewatch.models.wallet import WalletConfig
from balancewatch.platforms import Platform, PlatformProfile, profile_for

if TYPE_CHECKING:
    from balancewatch.engine.cache import LiveBalanceCache
    from balancewatch.fetcher.quick_api import QuickBalanceApi
    from balancewatch.settings.config import Settings
    from balancewatch.store.history import HistoryLog

logger = logging.getLogger(__name__)

OpticalFactory = Callable[[str], OpticalFallback]


class WalletFetcher:
    """Fetch one wallet's balance with retries and stale-value fallback.

    Args:
        cache: Live cache updated with every reading.
        history: History log receiving ``success`` / ``temporary_error`` rows.
        session_factory: Produces a fresh ``BrowserSession`` per attempt.
        settings: Settings snapshot; defaults to ``get_settings()``.
        quick_apis: Optional lightweight endpoints keyed by platform.
        optical_factory: Builds the optical fallback for a label; defaults
            to a Tesseract-backed ``OpticalFallback``.
        sleep: Delay function, injectable for tests.
    """

    def __init__(
        self,
        *,
        cache: LiveBalanceCache,
        history: HistoryLog,
        session_factory: SessionFactory,
        settings: Settings | None = None,
        quick_apis: dict[Platform, QuickBalanceApi] | None = None,
        optical_factory: OpticalFactory | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if settings is None:
            from balancewatch.settings import get_settings

            settings = get_settings()
        self.settings = settings
        self.cache = cache
        self.history = history
        self.session_factory = session_factory
        self.quick_apis = quick_apis or {}
        self._optical_factory = optical_factory
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def fetch_one(self, config: WalletConfig) -> BalanceReading:
        """Fetch *config*'s balance, update cache and history, and return the reading."""
        profile = profile_for(config.platform, self.settings)
        max_attempts = self.settings.fetch.max_attempts
        last_error: Exception | None = None

        for attempt in range(1, max_attempts + 1):
            logger.info("[%s] Attempt %d/%d (%s)", config.name, attempt, max_attempts, config.platform.value)
            try:
                match = self._attempt(config, profile)
            except BalanceWatchError as e:
                logger.warning("[%s] Attempt %d failed: %s", config.name, attempt, e)
                last_error = e
            except Exception as e:
                logger.exception("[%s] Attempt %d raised unexpectedly", config.name, attempt)
                last_error = e
            else:
                return self._record_success(config, match)

            if attempt < max_attempts:
                self._sleep(self.settings.fetch.retry_delay_seconds)

        return self._fallback(config, last_error, max_attempts)

    # ------------------------------------------------------------------
    # Attempt
    # ------------------------------------------------------------------

    def _attempt(self, config: WalletConfig, profile: PlatformProfile) -> RawMatch:
        quick = self._try_quick_api(config, profile)
        if quick is not None:
            return quick

        session = self.session_factory()
        try:
            session.open(config.source_url, nav_timeout_ms=profile.nav_timeout_ms)
            session.settle(profile.settle_seconds)
            text = session.read_visible_text()
            try:
                return extract_balance(text, profile)
            except (ExtractionError, ValidationError) as text_error:
                optical = self._optical_for(profile)
                if optical is None:
                    raise
                logger.info("[%s] Text extraction failed (%s); trying optical fallback", config.name, text_error)
                return optical.extract(session, profile)
        finally:
            session.close()

    def _try_quick_api(self, config: WalletConfig, profile: PlatformProfile) -> RawMatch | None:
        api = self.quick_apis.get(config.platform) if profile.has_quick_api else None
        if api is None:
            return None
        value = api.fetch_total(config.source_url)
        if value is None:
            return None
        if not profile.in_band(value):
            logger.info("[%s] Quick API value %s outside band; rendering page", config.name, value)
            return None
        return RawMatch(format_amount(value), value, "quick_api")

    def _optical_for(self, profile: PlatformProfile) -> OpticalFallback | None:
        if not profile.optical_label or not self.settings.ocr.enabled:
            return None
        if self._optical_factory is not None:
            return self._optical_factory(profile.optical_label)
        return OpticalFallback.from_settings(profile.optical_label, self.settings.ocr)

    # ------------------------------------------------------------------
    # Outcomes
    # ------------------------------------------------------------------

    def _record_success(self, config: WalletConfig, match: RawMatch) -> BalanceReading:
        reading = BalanceReading(
            wallet_name=config.name,
            value_text=format_amount(match.value),
            numeric_value=match.value,
            status=ReadingStatus.SUCCESS,
        )
        self.cache.put(reading)
        self._append_history(reading, config)
        logger.info("[%s] %s (via %s)", config.name, reading.value_text, match.strategy)
        return reading

    def _fallback(self, config: WalletConfig, error: Exception | None, attempts: int) -> BalanceReading:
        reason = str(error) if error else "unknown error"
        good = self._last_good(config.name)

        if good is not None:
            value_text, numeric_value, as_of = good
            reading = BalanceReading(
                wallet_name=config.name,
                value_text=value_text,
                numeric_value=numeric_value,
                status=ReadingStatus.TEMPORARY_ERROR,
                error_message=(
                    f"Fetch failed after {attempts} attempt(s): {reason}. "
                    f"Showing last known value from {as_of.isoformat()}."
                ),
            )
            self.cache.put(reading)
            self._append_history(reading, config)
            logger.warning("[%s] Using last known value %s", config.name, value_text)
            return reading

        reading = BalanceReading(
            wallet_name=config.name,
            value_text=self.settings.fetch.placeholder_text,
            status=ReadingStatus.UNAVAILABLE,
            error_message=f"Fetch failed after {attempts} attempt(s): {reason}. No prior value available.",
        )
        self.cache.put(reading)
        logger.error("[%s] Balance unavailable: %s", config.name, reason)
        return reading

    def _last_good(self, wallet_name: str) -> tuple[str, float | None, datetime] | None:
        cached = self.cache.last_good(wallet_name)
        if cached is not None:
            return cached.value_text, cached.numeric_value, cached.timestamp
        try:
            entry = self.history.latest_success(wallet_name)
        except PersistenceError as e:
            logger.error("Could not read history fallback for %s: %s", wallet_name, e)
            return None
        if entry is None:
            return None
        return entry.balance_text, entry.numeric_value, entry.timestamp

    def _append_history(self, reading: BalanceReading, config: WalletConfig) -> None:
        try:
            self.history.append(HistoryEntry.from_reading(reading, config.platform.value))
        except PersistenceError as e:
            logger.error("[%s] History write failed: %s", config.name, e)
