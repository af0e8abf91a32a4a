"""Capped, append-only wallet history log backed by SQLAlchemy.

``HistoryLog`` follows the store constructor pattern used throughout the
package: pass a *db_path* for a local SQLite file or a pre-built
*session_factory* for a shared engine.  Writes are serialized by an
internal lock; after every append the wallet's rows beyond
``max_entries_per_wallet`` are deleted, oldest first, without touching
other wallets.

All read methods return most-recent-first.  Any database failure surfaces
as ``PersistenceError``.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from balancewatch.exceptions import PersistenceError
from balancewatch.models.reading import HistoryEntry, ReadingStatus, WalletStats
from balancewatch.store.sql import METADATA, build_session_factory, wallet_history

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES_PER_WALLET = 20


class HistoryLog:
    """Persist and query per-wallet balance history.

    Args:
        db_path: Convenience path for a local SQLite file.  Mutually
            exclusive with *session_factory*.
        session_factory: Pre-configured ``sessionmaker``.
        max_entries_per_wallet: Retention cap per wallet.
    """

    def __init__(
        self,
        db_path: str | Path | None = None,
        *,
        session_factory: sessionmaker | None = None,
        max_entries_per_wallet: int = DEFAULT_MAX_ENTRIES_PER_WALLET,
    ) -> None:
        if session_factory is not None:
            self._session_factory = session_factory
        else:
            self._session_factory = build_session_factory(db_path=db_path)
        self.max_entries_per_wallet = max_entries_per_wallet
        self._lock = threading.Lock()

        try:
            with self._session_factory() as session:
                METADATA.create_all(session.connection())
                session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not initialise history schema: {e}") from e

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def append(self, entry: HistoryEntry) -> None:
        """Insert *entry* and evict the wallet's oldest rows beyond the cap.

        Raises:
            PersistenceError: On any database failure.
        """
        t = wallet_history
        with self._lock:
            try:
                with self._session_factory() as session:
                    session.execute(
                        sa.insert(t).values(
                            wallet_name=entry.wallet_name,
                            balance_text=entry.balance_text,
                            numeric_value=entry.numeric_value,
                            platform=entry.platform,
                            status=entry.status.value,
                            timestamp=entry.timestamp,
                        )
                    )
                    stale_ids = (
                        sa.select(t.c.id)
                        .where(t.c.wallet_name == entry.wallet_name)
                        .order_by(t.c.id.desc())
                        .offset(self.max_entries_per_wallet)
                    )
                    result = session.execute(sa.delete(t).where(t.c.id.in_(stale_ids)))
                    session.commit()
            except SQLAlchemyError as e:
                raise PersistenceError(f"Could not append history for {entry.wallet_name}: {e}") from e

        if result.rowcount:
            logger.debug("Evicted %d old history row(s) for %s", result.rowcount, entry.wallet_name)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def recent_for(self, wallet_name: str, limit: int = 100) -> list[HistoryEntry]:
        """Return up to *limit* entries for one wallet, most recent first."""
        t = wallet_history
        stmt = sa.select(t).where(t.c.wallet_name == wallet_name).order_by(t.c.id.desc()).limit(limit)
        return [_row_to_entry(r) for r in self._fetch(stmt)]

    def recent_all(self, limit: int = 500) -> list[HistoryEntry]:
        """Return up to *limit* entries across all wallets, most recent first."""
        stmt = sa.select(wallet_history).order_by(wallet_history.c.id.desc()).limit(limit)
        return [_row_to_entry(r) for r in self._fetch(stmt)]

    def latest_per_wallet(self) -> dict[str, HistoryEntry]:
        """Return the newest entry for every wallet that has history."""
        t = wallet_history
        newest = sa.select(sa.func.max(t.c.id)).group_by(t.c.wallet_name)
        stmt = sa.select(t).where(t.c.id.in_(newest)).order_by(t.c.wallet_name)
        return {r["wallet_name"]: _row_to_entry(r) for r in self._fetch(stmt)}

    def latest_success(self, wallet_name: str) -> HistoryEntry | None:
        """Return the most recent ``success`` entry for *wallet_name*, if any."""
        t = wallet_history
        stmt = (
            sa.select(t)
            .where(t.c.wallet_name == wallet_name, t.c.status == ReadingStatus.SUCCESS.value)
            .order_by(t.c.id.desc())
            .limit(1)
        )
        rows = self._fetch(stmt)
        return _row_to_entry(rows[0]) if rows else None

    def stats_for(self, wallet_name: str) -> WalletStats | None:
        """Compute trend statistics over all retained entries for a wallet.

        Both ``success`` and ``temporary_error`` rows count.  The balance
        figures use the rows with a numeric value; ``total_entries`` and the
        first / last timestamps cover every retained row.  Returns ``None``
        when the wallet has no entries with a numeric value.
        """
        t = wallet_history
        stmt = sa.select(t).where(t.c.wallet_name == wallet_name).order_by(t.c.id.asc())
        entries = [_row_to_entry(r) for r in self._fetch(stmt)]
        values = [e.numeric_value for e in entries if e.numeric_value is not None]
        if not values:
            return None

        first, current = values[0], values[-1]
        change = current - first
        return WalletStats(
            wallet_name=wallet_name,
            current_balance=current,
            min_balance=min(values),
            max_balance=max(values),
            avg_balance=sum(values) / len(values),
            change=change,
            change_percent=(change / first * 100) if first else 0.0,
            total_entries=len(entries),
            first_entry=entries[0].timestamp,
            last_entry=entries[-1].timestamp,
        )

    def count(self, wallet_name: str | None = None) -> int:
        """Return the number of retained rows, optionally for one wallet."""
        t = wallet_history
        stmt = sa.select(sa.func.count()).select_from(t)
        if wallet_name is not None:
            stmt = stmt.where(t.c.wallet_name == wallet_name)
        try:
            with self._session_factory() as session:
                return int(session.execute(stmt).scalar_one())
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not count history: {e}") from e

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _fetch(self, stmt: sa.Select) -> list[dict[str, Any]]:
        try:
            with self._session_factory() as session:
                return [dict(r) for r in session.execute(stmt).mappings().all()]
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not read history: {e}") from e


def _row_to_entry(row: dict[str, Any]) -> HistoryEntry:
    ts: datetime = row["timestamp"]
    if ts.tzinfo is None:
        # SQLite drops the offset; rows are always written in UTC.
        ts = ts.replace(tzinfo=timezone.utc)
    return HistoryEntry(
        wallet_name=row["wallet_name"],
        balance_text=row["balance_text"],
        numeric_value=row["numeric_value"],
        platform=row["platform"] or "",
        timestamp=ts,
        status=ReadingStatus(row["status"]),
    )
