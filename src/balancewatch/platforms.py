"""Wallet platform classification and per-platform scraping profiles.

Each hosted wallet / portfolio site renders its headline value differently
and hydrates at a different speed.  ``classify_platform`` maps a wallet URL
to a ``Platform`` once; ``profile_for`` returns the tuned ``PlatformProfile``
(settle delay, navigation timeout, plausibility band, and which extraction
strategies to run), with any overrides from settings applied.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING
from urllib.parse import urlparse

if TYPE_CHECKING:
    from balancewatch.settings.config import Settings

logger = logging.getLogger(__name__)


class Platform(str, Enum):
    """Known wallet-hosting platforms."""

    DEBANK = "debank"
    JUPITER_PORTFOLIO = "jupiter_portfolio"
    JUPITER = "jupiter"
    READY = "ready"
    APTOSCAN = "aptoscan"
    SEISCAN = "seiscan"
    GENERIC = "generic"


@dataclass(frozen=True)
class PlatformProfile:
    """Scraping profile for one platform.

    Attributes:
        platform: The platform this profile applies to.
        settle_seconds: Fixed wait after navigation before reading the page.
        nav_timeout_ms: Total navigation budget per attempt.  ``resilient_goto``
            splits it across its wait-strategy fallback chain, so one attempt
            never runs longer than this.
        min_value: Inclusive lower bound of the plausibility band.
        max_value: Exclusive upper bound of the plausibility band.
        labels: Labels searched by the labeled-value strategy, in priority order.
        positional: Whether to run the positional headline strategy.
        optical_label: Label anchoring the optical fallback, or ``""`` to disable it.
        has_quick_api: Whether a lightweight balance endpoint may exist.
    """

    platform: Platform
    settle_seconds: float = 2.0
    nav_timeout_ms: int = 25_000
    min_value: float = 10.0
    max_value: float = 10_000_000.0
    labels: tuple[str, ...] = field(default_factory=tuple)
    positional: bool = False
    optical_label: str = ""
    has_quick_api: bool = False

    def in_band(self, value: float) -> bool:
        """Return True if *value* is inside ``[min_value, max_value)``."""
        return value >= 0 and self.min_value <= value < self.max_value


PROFILES: dict[Platform, PlatformProfile] = {
    Platform.DEBANK: PlatformProfile(
        platform=Platform.DEBANK,
        settle_seconds=8.0,
        nav_timeout_ms=45_000,
        positional=True,
        has_quick_api=True,
    ),
    Platform.JUPITER_PORTFOLIO: PlatformProfile(
        platform=Platform.JUPITER_PORTFOLIO,
        settle_seconds=10.0,
        nav_timeout_ms=40_000,
        min_value=50.0,
        labels=("Net Worth",),
        optical_label="Net Worth",
    ),
    Platform.JUPITER: PlatformProfile(
        platform=Platform.JUPITER,
        settle_seconds=3.0,
        nav_timeout_ms=40_000,
    ),
    Platform.READY: PlatformProfile(
        platform=Platform.READY,
        settle_seconds=3.0,
        nav_timeout_ms=40_000,
        positional=True,
    ),
    Platform.APTOSCAN: PlatformProfile(
        platform=Platform.APTOSCAN,
        labels=("Coin value", "Total value"),
    ),
    Platform.SEISCAN: PlatformProfile(
        platform=Platform.SEISCAN,
        labels=("SEI Value", "SEI Balance"),
    ),
    Platform.GENERIC: PlatformProfile(platform=Platform.GENERIC),
}

# (host suffix, path prefix, platform); first match wins, so more specific first.
_URL_RULES: list[tuple[str, str, Platform]] = [
    ("debank.com", "", Platform.DEBANK),
    ("jup.ag", "/portfolio", Platform.JUPITER_PORTFOLIO),
    ("jup.ag", "", Platform.JUPITER),
    ("portfolio.ready.co", "", Platform.READY),
    ("aptoscan.com", "", Platform.APTOSCAN),
    ("seiscan.io", "", Platform.SEISCAN),
]


def classify_platform(url: str) -> Platform:
    """Map a wallet page URL to its ``Platform`` by domain pattern.

    Unknown or unparsable URLs classify as ``Platform.GENERIC`` so that the
    opportunistic strategy still applies.
    """
    parsed = urlparse(url.strip())
    if not parsed.hostname:
        # Scheme-less input such as "debank.com/profile/0x..."
        parsed = urlparse(f"https://{url.strip()}")
    host = (parsed.hostname or "").lower()
    path = parsed.path or ""

    for suffix, path_prefix, platform in _URL_RULES:
        if (host == suffix or host.endswith("." + suffix)) and path.startswith(path_prefix):
            return platform
    return Platform.GENERIC


def profile_for(platform: Platform, settings: Settings | None = None) -> PlatformProfile:
    """Return the profile for *platform* with settings overrides applied.

    The global ``fetch.min_value`` / ``fetch.max_value`` band and
    ``browser.nav_timeout_ms`` only replace the built-in values for profiles
    still at the library default, so a platform-specific floor (e.g.
    Jupiter's 50) or a tuned timeout (DeBank's 45 s) survives a global change.
    """
    profile = PROFILES.get(platform, PROFILES[Platform.GENERIC])
    if settings is None:
        return profile

    default = PlatformProfile(platform=platform)
    changes: dict[str, float | int] = {}
    if profile.min_value == default.min_value:
        changes["min_value"] = settings.fetch.min_value
    if profile.max_value == default.max_value:
        changes["max_value"] = settings.fetch.max_value
    if profile.nav_timeout_ms == default.nav_timeout_ms:
        changes["nav_timeout_ms"] = settings.browser.nav_timeout_ms

    override = settings.platforms.get(platform.value)
    if override is not None:
        for name, value in override.model_dump(exclude_none=True).items():
            changes[name] = value

    if changes:
        logger.debug("Profile overrides for %s: %s", platform.value, changes)
        profile = replace(profile, **changes)
    return profile
