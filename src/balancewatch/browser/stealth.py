"""Browser fingerprint profile for wallet page sessions.

Portfolio dashboards sit behind bot-detection (Cloudflare, custom JS
checks).  ``build_browser_profile`` produces the Playwright ``launch()``
and ``new_context()`` arguments for one session with a plausible desktop
fingerprint, and ``apply_stealth_scripts`` patches the obvious automation
tells before the first navigation.

Usage::

    profile = build_browser_profile(headless=True)
    browser = pw.chromium.launch(**profile.launch_args)
    context = browser.new_context(**profile.context_args)
    page = context.new_page()
    apply_stealth_scripts(page)
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

_USER_AGENTS: list[str] = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/130.0.0.0 Safari/537.36",
]

# Desktop sizes only; dashboards collapse the headline value on narrow layouts.
_VIEWPORTS: list[dict[str, int]] = [
    {"width": 1920, "height": 1080},
    {"width": 1536, "height": 864},
    {"width": 1440, "height": 900},
    {"width": 1600, "height": 900},
]

# English locales only so labels like "Net Worth" stay untranslated.
_LOCALE_TIMEZONE_PAIRS: list[tuple[str, str]] = [
    ("en-US", "America/New_York"),
    ("en-US", "America/Chicago"),
    ("en-US", "America/Los_Angeles"),
    ("en-GB", "Europe/London"),
    ("en-CA", "America/Toronto"),
]

_STEALTH_SCRIPTS: str = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });

if (!window.chrome) window.chrome = {};
if (!window.chrome.runtime) window.chrome.runtime = {};

Object.defineProperty(navigator, 'plugins', {
    get: () => [1, 2, 3, 4, 5],
});

Object.defineProperty(navigator, 'languages', {
    get: () => ['en-US', 'en'],
});
"""

_CHROMIUM_ARGS: list[str] = [
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
]


@dataclass
class BrowserProfile:
    """Playwright launch + context arguments for a single session."""

    launch_args: dict[str, Any] = field(default_factory=dict)
    context_args: dict[str, Any] = field(default_factory=dict)

    user_agent: str = ""
    viewport: dict[str, int] = field(default_factory=dict)
    locale: str = ""
    timezone_id: str = ""
    proxy_url: str = ""


def build_browser_profile(
    *,
    headless: bool = True,
    sandbox: bool = False,
    proxy: str = "",
    user_agent: str = "",
    randomize_fingerprint: bool = True,
) -> BrowserProfile:
    """Build a ``BrowserProfile`` for one wallet page session.

    Args:
        headless: Run the browser without a window.
        sandbox: Keep Chromium's sandbox enabled (disable inside containers).
        proxy: Optional proxy server URL.
        user_agent: Force this user-agent instead of a random one.
        randomize_fingerprint: Randomize user-agent, viewport, locale and timezone.
    """
    profile = BrowserProfile()

    profile.launch_args["headless"] = headless
    args = list(_CHROMIUM_ARGS)
    if not sandbox:
        args.extend(["--no-sandbox", "--disable-setuid-sandbox"])
    profile.launch_args["args"] = args

    proxy_url = proxy.strip()
    if proxy_url:
        profile.launch_args["proxy"] = {"server": proxy_url}
        profile.proxy_url = proxy_url
        logger.debug("Using proxy: %s", proxy_url)

    ctx = profile.context_args

    if user_agent:
        ctx["user_agent"] = user_agent
        profile.user_agent = user_agent
    elif randomize_fingerprint:
        ua = random.choice(_USER_AGENTS)
        ctx["user_agent"] = ua
        profile.user_agent = ua

    if randomize_fingerprint:
        vp = random.choice(_VIEWPORTS)
        locale, tz = random.choice(_LOCALE_TIMEZONE_PAIRS)
    else:
        vp = _VIEWPORTS[0]
        locale, tz = _LOCALE_TIMEZONE_PAIRS[0]
    ctx["viewport"] = vp
    ctx["locale"] = locale
    ctx["timezone_id"] = tz
    profile.viewport = vp
    profile.locale = locale
    profile.timezone_id = tz

    # Sharper text for the optical fallback.
    ctx["device_scale_factor"] = 2

    return profile


def apply_stealth_scripts(page) -> None:
    """Inject the stealth init script into a Playwright page.

    Must run before the first navigation so it executes in every frame.
    """
    page.add_init_script(_STEALTH_SCRIPTS)
    logger.debug("Stealth scripts injected")
