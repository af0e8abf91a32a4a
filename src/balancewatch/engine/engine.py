"""Balance engine facade.

``BalanceEngine`` owns the wallet registry, live cache, history log,
fetcher, cycle scheduler, and the pending single-wallet timers, and exposes
the read / refresh operations the outer layers call.

Reads (``get_balances``, ``get_detailed_balances``, the history queries)
never trigger a fetch.  ``force_refresh_and_wait`` is the only blocking
read; ``force_refresh_wallet`` fetches one wallet in the caller's thread
while holding the shared fetch slot.

Usage::

    engine = build_engine()
    engine.set_wallets(load_wallet_configs("config/wallets.json"))
    engine.start_monitor()
    ...
    engine.close()
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING

from balancewatch.browser.session import SessionFactory, playwright_session_factory
from balancewatch.engine.cache import LiveBalanceCache
from balancewatch.engine.scheduler import CycleReport, CycleScheduler
from balancewatch.exceptions import PersistenceError, UnknownWalletError
from balancewatch.extraction.money import find_currency_tokens, format_amount, parse_amount
from balancewatch.fetcher.fetcher import OpticalFactory, WalletFetcher
from balancewatch.fetcher.quick_api import QuickBalanceApi, build_quick_apis
from balancewatch.models.reading import BalanceReading, HistoryEntry, ReadingStatus, WalletStats
from balancewatch.models.wallet import WalletConfig
from balancewatch.platforms import Platform

if TYPE_CHECKING:
    from balancewatch.settings.config import Settings
    from balancewatch.store.history import HistoryLog

logger = logging.getLogger(__name__)

LOADING_TEXT = "Loading..."


class BalanceEngine:
    """Single-process balance acquisition and caching engine.

    Args:
        settings: Settings snapshot; defaults to ``get_settings()``.
        history: History log; defaults to ``build_history_log()``.
        session_factory: Browser session factory; defaults to Playwright.
        quick_apis: Quick balance APIs; defaults to those enabled in settings.
        optical_factory: Optical fallback builder (tests).
        sleep: Retry delay function (tests).
    """

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        history: HistoryLog | None = None,
        session_factory: SessionFactory | None = None,
        quick_apis: dict[Platform, QuickBalanceApi] | None = None,
        optical_factory: OpticalFactory | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if settings is None:
            from balancewatch.settings import get_settings

            settings = get_settings()
        if history is None:
            from balancewatch.store import build_history_log

            history = build_history_log()

        self.settings = settings
        self.cache = LiveBalanceCache()
        self.history = history
        self.fetcher = WalletFetcher(
            cache=self.cache,
            history=history,
            session_factory=session_factory or playwright_session_factory(settings.browser),
            settings=settings,
            quick_apis=quick_apis if quick_apis is not None else build_quick_apis(settings),
            optical_factory=optical_factory,
            sleep=sleep,
        )

        self._registry_lock = threading.Lock()
        self._wallets: list[WalletConfig] = []
        self._timers: dict[str, threading.Timer] = {}
        self._closed = False

        self.scheduler = CycleScheduler(
            self.fetcher,
            self._wallet_list,
            settings.scheduler,
            on_cycle_start=self._cancel_pending_timers,
        )

    # ------------------------------------------------------------------
    # Wallet registry
    # ------------------------------------------------------------------

    @property
    def wallets(self) -> list[WalletConfig]:
        return self._wallet_list()

    def _wallet_list(self) -> list[WalletConfig]:
        with self._registry_lock:
            return list(self._wallets)

    def _find(self, name: str) -> WalletConfig | None:
        with self._registry_lock:
            return next((w for w in self._wallets if w.name == name), None)

    def set_wallets(self, configs: Iterable[WalletConfig]) -> None:
        """Replace the active wallet set.

        Removed wallets stop being scheduled and leave the live cache; their
        history is kept.  Duplicate names keep the first occurrence.
        """
        unique: dict[str, WalletConfig] = {}
        for config in configs:
            if config.name in unique:
                logger.warning("Duplicate wallet name %r ignored", config.name)
                continue
            unique[config.name] = config

        with self._registry_lock:
            self._wallets = list(unique.values())
            timers = {n: t for n, t in self._timers.items() if n not in unique}
            for name in timers:
                self._timers.pop(name)
        for timer in timers.values():
            timer.cancel()

        self.cache.prune(unique)
        logger.info("Wallet set updated: %d wallet(s)", len(unique))

    def initialize_wallet(
        self,
        config: WalletConfig,
        seed_value: str | float | None = None,
        *,
        schedule_fetch: bool = True,
    ) -> BalanceReading:
        """Register one wallet, seed its cache entry, and schedule a first fetch.

        The seed is *seed_value* when given, else the wallet's most recent
        ``success`` history entry, else a ``Loading...`` placeholder.  An
        existing cache entry is never overwritten.

        Args:
            config: Wallet to add (replaces a config with the same name).
            seed_value: Known value to show until the first fetch completes.
            schedule_fetch: Schedule a single-wallet refresh after
                ``scheduler.initial_fetch_delay_seconds``.

        Returns:
            The wallet's current cache entry after seeding.
        """
        with self._registry_lock:
            for i, existing in enumerate(self._wallets):
                if existing.name == config.name:
                    self._wallets[i] = config
                    break
            else:
                self._wallets.append(config)

        seed = self._seed_reading(config, seed_value)
        if self.cache.seed(seed):
            logger.info("[%s] Initialized (%s)", config.name, seed.value_text)

        if schedule_fetch:
            self._schedule_refresh(config.name, self.settings.scheduler.initial_fetch_delay_seconds)
        return self.cache.current_of(config.name) or seed

    def _seed_reading(self, config: WalletConfig, seed_value: str | float | None) -> BalanceReading:
        if seed_value is not None and str(seed_value).strip():
            text, value = _coerce_seed(seed_value)
            return BalanceReading(
                wallet_name=config.name,
                value_text=text,
                numeric_value=value,
                status=ReadingStatus.TEMPORARY_ERROR,
                error_message="Awaiting first fetch; showing provided value",
            )

        try:
            entry = self.history.latest_success(config.name)
        except PersistenceError as e:
            logger.error("[%s] Could not read history for seeding: %s", config.name, e)
            entry = None
        if entry is not None:
            return BalanceReading(
                wallet_name=config.name,
                value_text=entry.balance_text,
                numeric_value=entry.numeric_value,
                timestamp=entry.timestamp,
                status=ReadingStatus.TEMPORARY_ERROR,
                error_message="Awaiting first fetch; showing last recorded value",
            )

        return BalanceReading(
            wallet_name=config.name,
            value_text=LOADING_TEXT,
            status=ReadingStatus.UNAVAILABLE,
            error_message="Awaiting first fetch",
        )

    # ------------------------------------------------------------------
    # Single-wallet timers
    # ------------------------------------------------------------------

    def _schedule_refresh(self, name: str, delay: float) -> None:
        timer = threading.Timer(delay, self._timer_fired, args=(name,))
        timer.daemon = True
        with self._registry_lock:
            if self._closed:
                return
            previous = self._timers.pop(name, None)
            self._timers[name] = timer
        if previous is not None:
            previous.cancel()
        timer.start()
        logger.debug("[%s] First fetch scheduled in %.1fs", name, delay)

    def _timer_fired(self, name: str) -> None:
        with self._registry_lock:
            self._timers.pop(name, None)
        try:
            self.force_refresh_wallet(name)
        except UnknownWalletError:
            logger.debug("[%s] Removed before its scheduled fetch", name)

    def _cancel_pending_timers(self) -> None:
        with self._registry_lock:
            timers = list(self._timers.values())
            self._timers.clear()
        for timer in timers:
            timer.cancel()
        if timers:
            logger.info("Cancelled %d pending single-wallet fetch(es)", len(timers))

    @property
    def pending_timers(self) -> list[str]:
        with self._registry_lock:
            return list(self._timers)

    # ------------------------------------------------------------------
    # Monitor
    # ------------------------------------------------------------------

    def start_monitor(self, interval_seconds: float | None = None) -> None:
        """Run a cycle now and then every *interval_seconds* (default from settings)."""
        self.scheduler.start_ticker(interval_seconds)

    def stop_monitor(self) -> None:
        """Stop the ticker and pending timers; a running cycle completes."""
        self.scheduler.stop_ticker()
        self._cancel_pending_timers()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_balances(self) -> dict[str, str]:
        """Return ``{wallet name: value text}`` for every seeded wallet."""
        return {r.wallet_name: r.value_text for r in self.get_detailed_balances()}

    def get_detailed_balances(self) -> list[BalanceReading]:
        """Return the cached reading per wallet in configured order."""
        return self.cache.detailed_all(w.name for w in self._wallet_list())

    def get_wallet_history(self, name: str, limit: int = 100) -> list[HistoryEntry]:
        return self._history_read(lambda: self.history.recent_for(name, limit), [])

    def get_all_history(self, limit: int = 500) -> list[HistoryEntry]:
        return self._history_read(lambda: self.history.recent_all(limit), [])

    def get_latest_by_wallet(self) -> dict[str, HistoryEntry]:
        return self._history_read(self.history.latest_per_wallet, {})

    def get_wallet_stats(self, name: str) -> WalletStats | None:
        return self._history_read(lambda: self.history.stats_for(name), None)

    def _history_read(self, read, default):
        try:
            return read()
        except PersistenceError as e:
            logger.error("History read failed: %s", e)
            return default

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def force_refresh_and_wait(self) -> list[BalanceReading]:
        """Run (or join) a forced cycle and return the detailed balances.

        Waits at most ``scheduler.force_timeout_seconds``; on timeout the
        current cache contents are returned.
        """
        timeout = self.settings.scheduler.force_timeout_seconds
        if not self.scheduler.run_and_wait(forced=True, timeout=timeout):
            logger.warning("Forced refresh still running after %.0fs; returning cached balances", timeout)
        return self.get_detailed_balances()

    def force_refresh_wallet(self, name: str) -> BalanceReading:
        """Fetch one wallet now, outside any cycle.

        Raises:
            UnknownWalletError: *name* is not in the wallet set.
        """
        config = self._find(name)
        if config is None:
            raise UnknownWalletError(name)
        with self.scheduler.fetch_slot:
            return self.fetcher.fetch_one(config)

    @property
    def last_cycle(self) -> CycleReport | None:
        return self.scheduler.last_report

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Stop the monitor and timers and wait for a running cycle to end."""
        with self._registry_lock:
            if self._closed:
                return
            self._closed = True
        self.stop_monitor()
        self.scheduler.shutdown()
        logger.info("Balance engine closed")


def _coerce_seed(seed: str | float) -> tuple[str, float | None]:
    if isinstance(seed, (int, float)):
        return format_amount(float(seed)), float(seed)
    text = seed.strip()
    tokens = find_currency_tokens(text)
    if tokens:
        return text, tokens[0].value
    return text, parse_amount(text)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

_singleton: BalanceEngine | None = None
_singleton_lock = threading.Lock()


def build_engine(*, force_new: bool = False) -> BalanceEngine:
    """Return the process-wide ``BalanceEngine`` built from settings.

    Args:
        force_new: Close any cached instance and build a fresh one.
    """
    global _singleton  # noqa: PLW0603
    with _singleton_lock:
        if _singleton is not None and not force_new:
            return _singleton
        if _singleton is not None:
            _singleton.close()
        _singleton = BalanceEngine()
        return _singleton
