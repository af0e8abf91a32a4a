"""Lightweight balance endpoints that skip browser rendering.

A quick API answers with a total USD value for a wallet URL, or ``None``
when it has nothing to say (not configured, address not recognized, HTTP
failure).  ``None`` always means "render the page instead", so failures
here are logged and never raised.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

import httpx

from balancewatch.platforms import Platform

if TYPE_CHECKING:
    from balancewatch.settings.config import Settings

logger = logging.getLogger(__name__)

_EVM_ADDRESS_RE = re.compile(r"0x[a-fA-F0-9]{40}")


class QuickBalanceApi:
    """Interface for per-platform balance endpoints."""

    platform: Platform

    def fetch_total(self, url: str) -> float | None:
        """Return the wallet's total value in USD, or ``None``."""
        raise NotImplementedError


class DebankBalanceApi(QuickBalanceApi):
    """DeBank OpenAPI ``/user/total_balance``.

    Args:
        access_key: DeBank OpenAPI access key; empty disables the API.
        base_url: API base URL.
        timeout: Request timeout in seconds.
        client: Optional pre-built ``httpx.Client`` (tests).
    """

    platform = Platform.DEBANK

    def __init__(
        self,
        access_key: str,
        *,
        base_url: str = "https://pro-openapi.debank.com/v1",
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.access_key = access_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    def fetch_total(self, url: str) -> float | None:
        if not self.access_key:
            return None
        match = _EVM_ADDRESS_RE.search(url)
        if not match:
            logger.debug("No EVM address in %s; skipping DeBank API", url)
            return None

        address = match.group(0).lower()
        try:
            resp = self._get(
                f"{self.base_url}/user/total_balance",
                params={"id": address},
                headers={"AccessKey": self.access_key, "Accept": "application/json"},
            )
            resp.raise_for_status()
            total = resp.json().get("total_usd_value")
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("DeBank API lookup failed for %s: %s", address, e)
            return None

        if total is None:
            return None
        try:
            return float(total)
        except (TypeError, ValueError):
            logger.warning("DeBank API returned non-numeric total %r for %s", total, address)
            return None

    def _get(self, url: str, **kwargs) -> httpx.Response:
        if self._client is not None:
            return self._client.get(url, timeout=self.timeout, **kwargs)
        with httpx.Client(timeout=self.timeout) as client:
            return client.get(url, **kwargs)


def build_quick_apis(settings: Settings) -> dict[Platform, QuickBalanceApi]:
    """Return the quick APIs enabled by *settings*, keyed by platform."""
    apis: dict[Platform, QuickBalanceApi] = {}
    if settings.quick_api.debank_access_key:
        apis[Platform.DEBANK] = DebankBalanceApi(
            settings.quick_api.debank_access_key,
            base_url=settings.quick_api.debank_base_url,
            timeout=settings.fetch.quick_api_timeout_seconds,
        )
    return apis
