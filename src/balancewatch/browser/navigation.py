"""Page navigation with automatic wait-strategy fallback.

Wallet dashboards keep WebSocket price feeds and analytics beacons open, so
many never reach ``networkidle``.  ``resilient_goto`` tries ``networkidle``
first and falls back to ``load`` then ``domcontentloaded`` on timeout.  The
caller's timeout is the budget for the whole chain.
Unreachable hosts (DNS, refused connection, TLS) fail immediately as
``NetworkError``.
"""

from __future__ import annotations

import logging
from typing import Literal

from playwright.sync_api import Error as PlaywrightError, Page, Response, TimeoutError as PlaywrightTimeout

from balancewatch.exceptions import NetworkError

logger = logging.getLogger(__name__)

# Playwright error substrings that indicate non-retryable navigation failures.
_NON_RETRYABLE_ERRORS: tuple[str, ...] = (
    "ERR_NAME_NOT_RESOLVED",
    "ERR_CONNECTION_REFUSED",
    "ERR_CONNECTION_RESET",
    "ERR_CONNECTION_CLOSED",
    "ERR_SSL_PROTOCOL_ERROR",
    "ERR_CERT_AUTHORITY_INVALID",
    "ERR_CERT_COMMON_NAME_INVALID",
    "ERR_ADDRESS_UNREACHABLE",
    "ERR_INTERNET_DISCONNECTED",
)

WaitUntil = Literal["commit", "domcontentloaded", "load", "networkidle"]

_FALLBACK_STRATEGY: list[WaitUntil] = ["networkidle", "load", "domcontentloaded"]


def resilient_goto(
    page: Page,
    url: str,
    *,
    timeout_ms: int = 30_000,
    wait_until: WaitUntil = "networkidle",
) -> Response | None:
    """Navigate to *url*, weakening the wait strategy on each timeout.

    Args:
        page: Playwright page instance.
        url: Wallet page URL.
        timeout_ms: Total navigation budget in milliseconds, split evenly
            across the wait strategies in the fallback chain.
        wait_until: Preferred initial wait strategy.

    Returns:
        The main-frame ``Response``, or ``None`` if the page produced none.

    Raises:
        NetworkError: The host is unreachable, every strategy timed out,
            or Playwright raised any other navigation error.
    """
    chain = _build_fallback_chain(wait_until)
    step_ms = max(timeout_ms // len(chain), 1)
    last_error: PlaywrightError | None = None
    for strategy in chain:
        try:
            logger.debug("goto %s (wait_until=%s, timeout=%dms)", url, strategy, step_ms)
            return page.goto(url, wait_until=strategy, timeout=step_ms)
        except PlaywrightError as exc:
            error_msg = str(exc)
            for pattern in _NON_RETRYABLE_ERRORS:
                if pattern in error_msg:
                    reason = pattern.replace("ERR_", "").replace("_", " ").lower()
                    logger.warning("Navigation to %s failed (non-retryable): %s", url, pattern)
                    raise NetworkError(url, reason) from exc
            if not isinstance(exc, PlaywrightTimeout):
                raise NetworkError(url, error_msg.splitlines()[0] if error_msg else "navigation error") from exc
            logger.warning(
                "Navigation to %s timed out with wait_until=%s, retrying with weaker strategy",
                url,
                strategy,
            )
            last_error = exc

    raise NetworkError(url, f"timed out after {timeout_ms}ms") from last_error


def _build_fallback_chain(preferred: WaitUntil) -> list[WaitUntil]:
    """Return the fallback chain starting from *preferred*."""
    if preferred in _FALLBACK_STRATEGY:
        idx = _FALLBACK_STRATEGY.index(preferred)
        return _FALLBACK_STRATEGY[idx:]
    return [preferred, *_FALLBACK_STRATEGY]
