"""Foreground balance monitor.

Runs the balance engine until interrupted: loads the wallet file, starts
the periodic ticker, and logs a summary after each cycle.  Suitable for a
container entrypoint (``python -m balancewatch.worker.monitor``) or the
``balancewatch monitor`` CLI command.

Environment variables:
    BALANCEWATCH_ENV:        ``local`` for plain-text logs, anything else for
                             JSON lines (default: local).
    BALANCEWATCH_LOG_LEVEL:  Root log level (default: INFO).
"""

from __future__ import annotations

import logging
import os
import signal
import sys
import threading
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from balancewatch.engine.engine import BalanceEngine

logger = logging.getLogger(__name__)


def run_monitor(
    engine: BalanceEngine,
    wallets_file: str | Path,
    *,
    interval_seconds: float | None = None,
    stop: threading.Event | None = None,
) -> int:
    """Load wallets, start the ticker, and block until *stop* is set.

    Returns:
        Exit code: 0 on clean shutdown, 1 when the wallet file is unusable.
    """
    from balancewatch.models.wallet import load_wallet_configs

    try:
        configs = load_wallet_configs(wallets_file)
    except (OSError, ValueError) as e:
        logger.error("Could not load wallets from %s: %s", wallets_file, e)
        return 1
    if not configs:
        logger.error("No wallets configured in %s", wallets_file)
        return 1

    engine.set_wallets(configs)
    for config in configs:
        engine.initialize_wallet(config, schedule_fetch=False)
    logger.info("Monitoring %d wallet(s) from %s", len(configs), wallets_file)

    stop = stop or threading.Event()
    last_seen = engine.scheduler.completed_cycles
    engine.start_monitor(interval_seconds)
    try:
        while not stop.wait(1.0):
            done = engine.scheduler.completed_cycles
            if done != last_seen:
                last_seen = done
                _log_balances(engine)
    finally:
        engine.close()
    return 0


def _log_balances(engine: BalanceEngine) -> None:
    for reading in engine.get_detailed_balances():
        logger.info("  %-24s %-16s %s", reading.wallet_name, reading.value_text, reading.status.value)


def main() -> int:
    """Run the monitor with settings-driven configuration."""
    configure_logging()

    from balancewatch.engine import build_engine
    from balancewatch.settings import get_settings

    settings = get_settings()
    stop = threading.Event()

    def _handle_signal(signum, frame) -> None:  # noqa: ARG001
        logger.info("Received signal %s; shutting down", signum)
        stop.set()

    signal.signal(signal.SIGTERM, _handle_signal)
    signal.signal(signal.SIGINT, _handle_signal)

    return run_monitor(build_engine(), settings.monitor.wallets_file, stop=stop)


def configure_logging() -> None:
    """Set up logging for long-running entry points.

    When ``BALANCEWATCH_ENV != local``, emits one JSON object per line::

        {"severity": "INFO", "message": "...", "logger": "...", "time": "..."}

    Locally, uses a human-readable plain-text format.
    """
    import json as _json

    log_level = os.environ.get("BALANCEWATCH_LOG_LEVEL", "INFO").upper()
    env = os.environ.get("BALANCEWATCH_ENV", "local").strip()

    if env != "local":

        class _JsonFormatter(logging.Formatter):
            """JSON formatter with a ``severity`` field."""

            def format(self, record: logging.LogRecord) -> str:
                entry = {
                    "severity": record.levelname,
                    "message": record.getMessage(),
                    "logger": record.name,
                    "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
                }
                if record.exc_info and record.exc_info[1]:
                    entry["exception"] = self.formatException(record.exc_info)
                return _json.dumps(entry, default=str)

        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(_JsonFormatter())
        logging.root.handlers.clear()
        logging.root.addHandler(handler)
        logging.root.setLevel(getattr(logging, log_level, logging.INFO))
    else:
        logging.basicConfig(
            level=getattr(logging, log_level, logging.INFO),
            format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
            stream=sys.stderr,
        )

    # Quieten noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


if __name__ == "__main__":
    sys.exit(main())
