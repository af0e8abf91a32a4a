"""Unit tests for balancewatch.browser.navigation — resilient goto."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from playwright.sync_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeout

from balancewatch.browser.navigation import _build_fallback_chain, resilient_goto
from balancewatch.exceptions import NetworkError

URL = "https://debank.com/profile/0xabc"


# ---------------------------------------------------------------------------
# _build_fallback_chain
# ---------------------------------------------------------------------------


class TestBuildFallbackChain:
    """Tests for the internal fallback-chain builder."""

    def test_networkidle_produces_full_chain(self) -> None:
        assert _build_fallback_chain("networkidle") == ["networkidle", "load", "domcontentloaded"]

    def test_load_skips_networkidle(self) -> None:
        assert _build_fallback_chain("load") == ["load", "domcontentloaded"]

    def test_unknown_strategy_prepends_to_chain(self) -> None:
        chain = _build_fallback_chain("commit")
        assert chain[0] == "commit"
        assert chain[1:] == ["networkidle", "load", "domcontentloaded"]


# ---------------------------------------------------------------------------
# resilient_goto
# ---------------------------------------------------------------------------


class TestResilientGoto:
    """Tests for resilient_goto."""

    def test_success_on_first_try(self) -> None:
        page = MagicMock()
        sentinel = MagicMock(name="response")
        page.goto.return_value = sentinel

        assert resilient_goto(page, URL, timeout_ms=6000) is sentinel
        page.goto.assert_called_once_with(URL, wait_until="networkidle", timeout=2000)

    def test_falls_back_on_timeout(self) -> None:
        """Live price feeds keep the network busy; 'load' should be tried next."""
        page = MagicMock()
        sentinel = MagicMock(name="response")
        page.goto.side_effect = [PlaywrightTimeout("timeout"), sentinel]

        assert resilient_goto(page, URL, timeout_ms=5000) is sentinel
        assert [c.kwargs["wait_until"] for c in page.goto.call_args_list] == ["networkidle", "load"]

    def test_all_strategies_time_out(self) -> None:
        page = MagicMock()
        page.goto.side_effect = PlaywrightTimeout("timeout")

        with pytest.raises(NetworkError) as exc_info:
            resilient_goto(page, URL, timeout_ms=45_000)

        assert exc_info.value.url == URL
        assert exc_info.value.reason == "timed out after 45000ms"
        assert page.goto.call_count == 3

    def test_budget_split_across_chain(self) -> None:
        page = MagicMock()
        page.goto.side_effect = PlaywrightTimeout("timeout")

        with pytest.raises(NetworkError):
            resilient_goto(page, URL, timeout_ms=45_000)

        timeouts = [c.kwargs["timeout"] for c in page.goto.call_args_list]
        assert timeouts == [15_000, 15_000, 15_000]
        assert sum(timeouts) <= 45_000

    def test_budget_split_from_weaker_start(self) -> None:
        page = MagicMock()
        page.goto.side_effect = [PlaywrightTimeout("timeout"), MagicMock()]

        resilient_goto(page, URL, timeout_ms=10_000, wait_until="load")

        assert [c.kwargs["timeout"] for c in page.goto.call_args_list] == [5000, 5000]

    @pytest.mark.parametrize(
        ("message", "reason"),
        [
            ("net::ERR_NAME_NOT_RESOLVED at https://debank.com", "name not resolved"),
            ("net::ERR_CONNECTION_REFUSED", "connection refused"),
            ("net::ERR_CERT_AUTHORITY_INVALID", "cert authority invalid"),
        ],
    )
    def test_unreachable_host_fails_immediately(self, message: str, reason: str) -> None:
        page = MagicMock()
        page.goto.side_effect = PlaywrightError(message)

        with pytest.raises(NetworkError) as exc_info:
            resilient_goto(page, URL)

        assert exc_info.value.reason == reason
        page.goto.assert_called_once()

    def test_other_playwright_errors_wrapped(self) -> None:
        page = MagicMock()
        page.goto.side_effect = PlaywrightError("Target page, context or browser has been closed\nCall log: ...")

        with pytest.raises(NetworkError) as exc_info:
            resilient_goto(page, URL)

        assert exc_info.value.reason == "Target page, context or browser has been closed"
        page.goto.assert_called_once()
