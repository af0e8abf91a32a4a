"""balancewatch exception hierarchy."""

from __future__ import annotations


class BalanceWatchError(Exception):
    """Base exception for all balancewatch errors."""


class NetworkError(BalanceWatchError):
    """Raised when navigation to a wallet page (or a quick API call) fails.

    Attributes:
        url: The URL that could not be reached.
        reason: Short human-readable failure reason.
    """

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"Could not load {url}: {reason}")


class ExtractionError(BalanceWatchError):
    """Raised when no extraction strategy produced a candidate value."""


class ValidationError(BalanceWatchError):
    """Raised when candidates were found but all fell outside the plausibility band.

    Attributes:
        rejected: The raw candidate texts that were rejected.
    """

    def __init__(self, rejected: list[str]) -> None:
        self.rejected = rejected
        preview = ", ".join(rejected[:5])
        super().__init__(f"{len(rejected)} candidate(s) outside plausibility band: {preview}")


class PersistenceError(BalanceWatchError):
    """Raised when the history log cannot be read or written."""


class UnknownWalletError(BalanceWatchError):
    """Raised when an operation names a wallet that is not configured."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Wallet not configured: {name}")
