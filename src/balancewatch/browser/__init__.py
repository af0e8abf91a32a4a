"""Browser session modules (Playwright).

``session`` defines the ``BrowserSession`` protocol the fetcher depends on
and the Chromium-backed ``PlaywrightSession``.  ``navigation`` wraps
``page.goto`` with wait-strategy fallback, and ``stealth`` builds the
per-session fingerprint profile.
"""
