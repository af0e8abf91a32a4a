"""balancewatch test configuration — shared fixtures for unit tests."""

from __future__ import annotations

import threading
import time
from pathlib import Path

import pytest

from balancewatch.browser.session import Region


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------

FIXTURES_DIR = Path(__file__).parent / "fixtures"
PAGES_DIR = FIXTURES_DIR / "pages"


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    """Clear the settings LRU cache between tests."""
    from balancewatch.settings.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def settings(tmp_path: Path):
    """Settings with zero delays and a temporary history database."""
    from balancewatch.settings.config import Settings

    return Settings(
        history={"sqlite_path": str(tmp_path / "history.db")},
        fetch={"retry_delay_seconds": 0.0},
        scheduler={
            "inter_wallet_delay_seconds": 0.0,
            "min_wallet_interval_seconds": 60.0,
            "initial_fetch_delay_seconds": 0.05,
            "force_timeout_seconds": 10.0,
        },
        quick_api={"debank_access_key": ""},
    )


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


@pytest.fixture()
def history(tmp_path: Path):
    """Create a disposable ``HistoryLog`` backed by a temporary SQLite DB."""
    from balancewatch.store.history import HistoryLog

    return HistoryLog(db_path=tmp_path / "history.db")


# ---------------------------------------------------------------------------
# Fake browser
# ---------------------------------------------------------------------------


class FakeSession:
    """Scripted ``BrowserSession`` that reads outcomes from a ``FakeBrowser``."""

    def __init__(self, browser: "FakeBrowser") -> None:
        self.browser = browser
        self.url: str | None = None
        self.text = ""
        self.closed = False
        self.settled: list[float] = []

    def open(self, url: str, nav_timeout_ms: int) -> None:
        self.url = url
        self.browser._enter(url)
        outcome = self.browser._next_outcome(url)
        if self.browser.open_delay:
            time.sleep(self.browser.open_delay)
        if isinstance(outcome, BaseException):
            raise outcome
        self.text = outcome

    def settle(self, seconds: float) -> None:
        self.settled.append(seconds)

    def read_visible_text(self) -> str:
        return self.text

    def screenshot(self, region: Region | None = None) -> bytes:
        self.browser.screenshots.append(region)
        return self.browser.screenshot_bytes

    def locate_text(self, text: str) -> Region | None:
        return self.browser.label_boxes.get(text)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self.url is not None:
            self.browser._exit()


class FakeBrowser:
    """Factory of ``FakeSession`` objects with per-URL scripted outcomes.

    Each URL maps to a list of outcomes consumed one per ``open()``; the last
    outcome repeats.  An outcome is page text or an exception to raise.
    Tracks how many sessions are open at once so tests can assert that no
    two fetches overlap.
    """

    def __init__(self) -> None:
        self.pages: dict[str, list[str | BaseException]] = {}
        self.sessions: list[FakeSession] = []
        self.opened: list[str] = []
        self.label_boxes: dict[str, Region] = {}
        self.screenshots: list[Region | None] = []
        self.screenshot_bytes = b"\x89PNG"
        self.open_delay = 0.0
        self.max_active = 0
        self._active = 0
        self._lock = threading.Lock()

    def set_page(self, url: str, *outcomes: str | BaseException) -> None:
        self.pages[url] = list(outcomes)

    def __call__(self) -> FakeSession:
        session = FakeSession(self)
        self.sessions.append(session)
        return session

    @property
    def all_closed(self) -> bool:
        return all(s.closed for s in self.sessions)

    def _next_outcome(self, url: str) -> str | BaseException:
        outcomes = self.pages.get(url)
        if not outcomes:
            return ""
        return outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]

    def _enter(self, url: str) -> None:
        with self._lock:
            self.opened.append(url)
            self._active += 1
            self.max_active = max(self.max_active, self._active)

    def _exit(self) -> None:
        with self._lock:
            self._active -= 1


@pytest.fixture()
def fake_browser() -> FakeBrowser:
    """Return a ``FakeBrowser`` usable as a session factory."""
    return FakeBrowser()


# ---------------------------------------------------------------------------
# Pytest markers
# ---------------------------------------------------------------------------


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests that require a real browser or network")
    config.addinivalue_line("markers", "slow: marks tests that take more than a few seconds")
