"""balancewatch store: SQL schema, engine helpers, and the history log."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from balancewatch.store.history import HistoryLog


def build_history_log(db_path: str | Path | None = None) -> "HistoryLog":
    """Factory: return a ``HistoryLog`` honouring balancewatch settings.

    When *db_path* is ``None`` the log uses ``settings.history.sqlite_path``.
    The retention cap always comes from ``settings.history.max_entries_per_wallet``.

    Args:
        db_path: Optional override for the SQLite file path.
    """
    from balancewatch.settings import get_settings
    from balancewatch.store.history import HistoryLog

    settings = get_settings()
    return HistoryLog(
        db_path=db_path if db_path is not None else settings.history.sqlite_path,
        max_entries_per_wallet=settings.history.max_entries_per_wallet,
    )
