"""Browser session abstraction used by the wallet fetcher.

The fetcher only talks to ``BrowserSession``; ``PlaywrightSession`` is the
production implementation (one headless Chromium per session).  Tests
substitute a scripted fake.

Sessions are context managers and ``close()`` is idempotent, so the
fetcher can always release the browser regardless of how an attempt ended::

    with PlaywrightSession(settings.browser) as session:
        session.open(url, nav_timeout_ms=45_000)
        session.settle(8)
        text = session.read_visible_text()
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from balancewatch.browser.navigation import resilient_goto
from balancewatch.browser.stealth import apply_stealth_scripts, build_browser_profile

if TYPE_CHECKING:
    from balancewatch.settings.config import BrowserSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Region:
    """A rectangle in CSS pixels relative to the viewport."""

    x: float
    y: float
    width: float
    height: float

    def as_clip(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@runtime_checkable
class BrowserSession(Protocol):
    """What the fetcher needs from a rendered page."""

    def open(self, url: str, nav_timeout_ms: int) -> None: ...

    def settle(self, seconds: float) -> None: ...

    def read_visible_text(self) -> str: ...

    def screenshot(self, region: Region | None = None) -> bytes: ...

    def locate_text(self, text: str) -> Region | None: ...

    def close(self) -> None: ...


SessionFactory = Callable[[], BrowserSession]


class PlaywrightSession:
    """Single-use Chromium session driven through Playwright's sync API.

    The browser launches lazily on the first ``open()``.  All calls must come
    from the thread that called ``open()`` (Playwright's sync API is
    thread-affine).

    Args:
        browser_settings: Launch and fingerprint options.
    """

    def __init__(self, browser_settings: BrowserSettings) -> None:
        self._settings = browser_settings
        self._pw: Any = None
        self._browser: Any = None
        self._context: Any = None
        self._page: Any = None
        self._closed = False

    def __enter__(self) -> "PlaywrightSession":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # BrowserSession
    # ------------------------------------------------------------------

    def open(self, url: str, nav_timeout_ms: int) -> None:
        """Launch the browser if needed and navigate to *url*.

        Raises:
            NetworkError: Navigation failed or timed out on every strategy.
        """
        if self._closed:
            raise RuntimeError("Session already closed")
        if self._page is None:
            self._launch()
        resilient_goto(self._page, url, timeout_ms=nav_timeout_ms)

    def settle(self, seconds: float) -> None:
        """Wait a fixed time for client-side rendering to finish."""
        if seconds > 0:
            self._require_page().wait_for_timeout(seconds * 1000)

    def read_visible_text(self) -> str:
        return self._require_page().inner_text("body")

    def screenshot(self, region: Region | None = None) -> bytes:
        page = self._require_page()
        if region is None:
            return page.screenshot(type="png")
        return page.screenshot(type="png", clip=region.as_clip())

    def locate_text(self, text: str) -> Region | None:
        """Return the on-screen box of the first element showing *text*."""
        locator = self._require_page().get_by_text(text, exact=False).first
        if locator.count() == 0:
            return None
        box = locator.bounding_box(timeout=5_000)
        if not box:
            return None
        return Region(x=box["x"], y=box["y"], width=box["width"], height=box["height"])

    def close(self) -> None:
        """Close page, context, browser and Playwright; safe to call twice."""
        if self._closed:
            return
        self._closed = True
        for name, resource, closer in (
            ("context", self._context, "close"),
            ("browser", self._browser, "close"),
            ("playwright", self._pw, "stop"),
        ):
            if resource is None:
                continue
            try:
                getattr(resource, closer)()
            except Exception as e:
                logger.debug("Error closing %s: %s", name, e)
        self._page = self._context = self._browser = self._pw = None

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _launch(self) -> None:
        from playwright.sync_api import sync_playwright

        cfg = self._settings
        profile = build_browser_profile(
            headless=cfg.headless,
            sandbox=cfg.sandbox,
            proxy=cfg.proxy,
            user_agent=cfg.user_agent,
            randomize_fingerprint=cfg.randomize_fingerprint,
        )
        self._pw = sync_playwright().start()
        self._browser = self._pw.chromium.launch(**profile.launch_args)
        self._context = self._browser.new_context(**profile.context_args)
        self._page = self._context.new_page()
        if cfg.apply_stealth_scripts:
            apply_stealth_scripts(self._page)
        logger.debug("Launched Chromium (ua=%s, viewport=%s)", profile.user_agent, profile.viewport)

    def _require_page(self) -> Any:
        if self._page is None:
            raise RuntimeError("Session not opened")
        return self._page


def playwright_session_factory(browser_settings: BrowserSettings) -> SessionFactory:
    """Return a factory producing fresh ``PlaywrightSession`` objects."""

    def _factory() -> BrowserSession:
        return PlaywrightSession(browser_settings)

    return _factory
