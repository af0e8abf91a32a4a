"""Unit tests for balancewatch.platforms — URL classification and profiles."""

from __future__ import annotations

import pytest

from balancewatch.platforms import PROFILES, Platform, classify_platform, profile_for


class TestClassifyPlatform:
    @pytest.mark.parametrize(
        ("url", "expected"),
        [
            ("https://debank.com/profile/0xabc", Platform.DEBANK),
            ("https://www.debank.com/profile/0xabc", Platform.DEBANK),
            ("https://jup.ag/portfolio/So1anaAddr", Platform.JUPITER_PORTFOLIO),
            ("https://jup.ag/swap/SOL-USDC", Platform.JUPITER),
            ("https://portfolio.ready.co/overview/0x01", Platform.READY),
            ("https://aptoscan.com/account/0x9a3f", Platform.APTOSCAN),
            ("https://seiscan.io/account/sei1xyz", Platform.SEISCAN),
            ("https://example.org/wallet", Platform.GENERIC),
        ],
    )
    def test_known_domains(self, url: str, expected: Platform) -> None:
        assert classify_platform(url) == expected

    def test_scheme_less_url(self) -> None:
        assert classify_platform("debank.com/profile/0xabc") == Platform.DEBANK

    def test_lookalike_domain_is_generic(self) -> None:
        assert classify_platform("https://notdebank.com/profile/0xabc") == Platform.GENERIC

    def test_garbage_is_generic(self) -> None:
        assert classify_platform("not a url") == Platform.GENERIC


class TestProfiles:
    def test_every_platform_has_a_profile(self) -> None:
        assert set(PROFILES) == set(Platform)

    def test_tuned_values(self) -> None:
        assert PROFILES[Platform.DEBANK].settle_seconds == 8.0
        assert PROFILES[Platform.DEBANK].nav_timeout_ms == 45_000
        assert PROFILES[Platform.JUPITER_PORTFOLIO].min_value == 50.0
        assert PROFILES[Platform.JUPITER_PORTFOLIO].optical_label == "Net Worth"
        assert PROFILES[Platform.GENERIC].nav_timeout_ms == 25_000

    def test_profile_for_without_settings_returns_builtin(self) -> None:
        assert profile_for(Platform.READY) is PROFILES[Platform.READY]

    def test_global_band_applies_to_default_profiles(self) -> None:
        from balancewatch.settings.config import Settings

        settings = Settings(fetch={"min_value": 1.0, "max_value": 500.0})
        generic = profile_for(Platform.GENERIC, settings)
        assert (generic.min_value, generic.max_value) == (1.0, 500.0)
        # Platform-specific floor survives a global change
        assert profile_for(Platform.JUPITER_PORTFOLIO, settings).min_value == 50.0

    def test_platform_override(self) -> None:
        from balancewatch.settings.config import Settings

        settings = Settings(platforms={"debank": {"settle_seconds": 1.5, "min_value": 100.0}})
        profile = profile_for(Platform.DEBANK, settings)
        assert profile.settle_seconds == 1.5
        assert profile.min_value == 100.0
        assert profile.nav_timeout_ms == 45_000

    def test_browser_nav_timeout_applies_to_untuned_profiles(self) -> None:
        from balancewatch.settings.config import Settings

        settings = Settings(browser={"nav_timeout_ms": 90_000})
        assert profile_for(Platform.GENERIC, settings).nav_timeout_ms == 90_000
        assert profile_for(Platform.APTOSCAN, settings).nav_timeout_ms == 90_000
        # A tuned timeout survives a global change
        assert profile_for(Platform.DEBANK, settings).nav_timeout_ms == 45_000

    def test_platform_nav_timeout_override_wins(self) -> None:
        from balancewatch.settings.config import Settings

        settings = Settings(browser={"nav_timeout_ms": 90_000}, platforms={"generic": {"nav_timeout_ms": 12_000}})
        assert profile_for(Platform.GENERIC, settings).nav_timeout_ms == 12_000
