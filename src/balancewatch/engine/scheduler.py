"""Cycle scheduler: sequential sweeps over the wallet set.

A cycle fetches every configured wallet one at a time with a fixed pacing
delay between fetches.  Cycles start from the periodic ticker or from an
explicit request; a request that arrives while a cycle is running is
coalesced into at most one queued follow-up cycle, and every requester
waiting on that follow-up is released when it completes.  Two cycles never
run concurrently.

``fetch_slot`` is the single lock around a wallet fetch.  Single-wallet
refreshes outside a cycle take the same lock, so no two fetches ever
overlap.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from balancewatch.models.reading import BalanceReading, ReadingStatus
from balancewatch.models.wallet import WalletConfig

if TYPE_CHECKING:
    from balancewatch.fetcher.fetcher import WalletFetcher
    from balancewatch.settings.config import SchedulerSettings

logger = logging.getLogger(__name__)


@dataclass
class CycleReport:
    """Outcome of one sweep over the wallet set."""

    started_at: datetime
    forced: bool
    completed_at: datetime | None = None
    successes: int = 0
    failures: int = 0
    skipped: list[str] = field(default_factory=list)
    aborted: bool = False
    readings: list[BalanceReading] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return self.successes + self.failures


class CycleScheduler:
    """Run and coalesce balance cycles; drive the periodic ticker.

    Args:
        fetcher: Per-wallet fetcher.
        wallets: Returns the current wallet set, in display order.
        settings: Scheduler pacing and guard settings.
        on_cycle_start: Called at the start of every cycle (the engine uses
            it to cancel pending single-wallet timers).
    """

    def __init__(
        self,
        fetcher: WalletFetcher,
        wallets: Callable[[], list[WalletConfig]],
        settings: SchedulerSettings,
        *,
        on_cycle_start: Callable[[], None] | None = None,
    ) -> None:
        self.fetcher = fetcher
        self._wallets = wallets
        self.settings = settings
        self._on_cycle_start = on_cycle_start

        self.fetch_slot = threading.Lock()

        self._cond = threading.Condition()
        self._running = False
        self._queued = False
        self._queued_forced = False
        self._started = 0
        self._completed = 0
        self._last_report: CycleReport | None = None

        self._shutdown = threading.Event()
        self._ticker_stop = threading.Event()
        self._ticker: threading.Thread | None = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        with self._cond:
            return self._running

    @property
    def last_report(self) -> CycleReport | None:
        with self._cond:
            return self._last_report

    @property
    def completed_cycles(self) -> int:
        with self._cond:
            return self._completed

    # ------------------------------------------------------------------
    # Cycle requests
    # ------------------------------------------------------------------

    def request_cycle(self, *, forced: bool = False) -> int:
        """Start a cycle, or queue one behind the running cycle.

        Returns:
            The ticket (cycle number) that will satisfy this request; pass
            it to :meth:`wait_for`.
        """
        with self._cond:
            ticket = self._started + 1
            if not self._running:
                self._running = True
                self._started = ticket
                threading.Thread(
                    target=self._run_loop, args=(ticket, forced), name="balance-cycle", daemon=True
                ).start()
                logger.debug("Cycle %d starting (forced=%s)", ticket, forced)
            else:
                if not self._queued:
                    logger.info("Cycle %d running; queuing one more (forced=%s)", self._started, forced)
                self._queued = True
                self._queued_forced = self._queued_forced or forced
            return ticket

    def wait_for(self, ticket: int, timeout: float | None = None) -> bool:
        """Block until cycle *ticket* has completed; return False on timeout."""
        with self._cond:
            return self._cond.wait_for(lambda: self._completed >= ticket, timeout)

    def run_and_wait(self, *, forced: bool = True, timeout: float | None = None) -> bool:
        """Request a cycle and wait for it (or the coalesced one) to complete."""
        return self.wait_for(self.request_cycle(forced=forced), timeout)

    def _run_loop(self, number: int, forced: bool) -> None:
        while True:
            report: CycleReport | None = None
            try:
                report = self.run_cycle(forced=forced)
            except Exception:
                logger.exception("Cycle %d crashed", number)

            with self._cond:
                self._completed = number
                if report is not None:
                    self._last_report = report
                if self._queued:
                    self._queued = False
                    forced = self._queued_forced
                    self._queued_forced = False
                    self._started += 1
                    number = self._started
                    self._cond.notify_all()
                    continue
                self._queued = False
                self._running = False
                self._cond.notify_all()
                return

    # ------------------------------------------------------------------
    # One cycle
    # ------------------------------------------------------------------

    def run_cycle(self, *, forced: bool = False) -> CycleReport:
        """Fetch every wallet sequentially in the calling thread."""
        if self._on_cycle_start is not None:
            self._on_cycle_start()

        wallets = list(self._wallets())
        report = CycleReport(started_at=datetime.now(timezone.utc), forced=forced)
        logger.info("Cycle started: %d wallet(s), forced=%s", len(wallets), forced)

        consecutive_failures = 0
        fetched_any = False
        for config in wallets:
            if self._shutdown.is_set():
                report.aborted = True
                break
            if not forced and self._recently_fetched(config):
                report.skipped.append(config.name)
                continue

            if fetched_any and self._shutdown.wait(self.settings.inter_wallet_delay_seconds):
                logger.info("Shutdown requested; stopping cycle early")
                report.aborted = True
                break
            fetched_any = True

            with self.fetch_slot:
                reading = self.fetcher.fetch_one(config)
            report.readings.append(reading)

            if reading.status == ReadingStatus.SUCCESS:
                report.successes += 1
                consecutive_failures = 0
            else:
                report.failures += 1
                consecutive_failures += 1

            limit = self.settings.max_consecutive_failures
            if limit and consecutive_failures >= limit:
                logger.error(
                    "%d consecutive wallet failures; aborting cycle (likely a local browser problem)",
                    consecutive_failures,
                )
                report.aborted = True
                break

        report.completed_at = datetime.now(timezone.utc)
        if report.attempted and report.failures > report.attempted / 2:
            logger.warning(
                "Degraded cycle: %d of %d wallet fetch(es) failed", report.failures, report.attempted
            )
        logger.info(
            "Cycle finished: %d ok, %d failed, %d skipped%s",
            report.successes,
            report.failures,
            len(report.skipped),
            " (aborted)" if report.aborted else "",
        )
        return report

    def _recently_fetched(self, config: WalletConfig) -> bool:
        last = self.fetcher.cache.last_success_at(config.name)
        if last is None:
            return False
        age = (datetime.now(timezone.utc) - last).total_seconds()
        if age < self.settings.min_wallet_interval_seconds:
            logger.info("[%s] Updated %.0fs ago; skipping", config.name, age)
            return True
        return False

    # ------------------------------------------------------------------
    # Periodic ticker
    # ------------------------------------------------------------------

    def start_ticker(self, interval_seconds: float | None = None) -> None:
        """Run a cycle now and then every *interval_seconds* until stopped."""
        self.stop_ticker()
        interval = interval_seconds if interval_seconds is not None else self.settings.interval_seconds
        self._ticker_stop = threading.Event()
        stop = self._ticker_stop

        def _tick() -> None:
            self.request_cycle(forced=False)
            while not stop.wait(interval):
                logger.info("Scheduled balance cycle")
                self.request_cycle(forced=False)

        self._ticker = threading.Thread(target=_tick, name="balance-ticker", daemon=True)
        self._ticker.start()
        logger.info("Monitor started (interval=%.0fs)", interval)

    def stop_ticker(self) -> None:
        """Stop the periodic ticker; a running cycle finishes normally."""
        if self._ticker is None:
            return
        self._ticker_stop.set()
        self._ticker.join(timeout=5)
        self._ticker = None
        logger.info("Monitor stopped")

    @property
    def ticker_alive(self) -> bool:
        return self._ticker is not None and self._ticker.is_alive()

    def shutdown(self, timeout: float | None = 10.0) -> None:
        """Stop the ticker, cut pacing delays short, and wait for the running cycle."""
        self.stop_ticker()
        self._shutdown.set()
        with self._cond:
            self._cond.wait_for(lambda: not self._running, timeout)
