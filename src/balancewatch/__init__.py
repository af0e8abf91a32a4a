"""balancewatch — resilient multi-platform wallet balance acquisition and caching."""

from __future__ import annotations

try:
    from importlib.metadata import version

    __version__ = version("balancewatch")
except Exception:
    __version__ = "0.0.0"
