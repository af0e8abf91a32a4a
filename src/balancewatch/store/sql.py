"""SQLAlchemy table definitions and engine helpers for the history log.

One table, ``wallet_history``, holds the capped per-wallet reading log.
Rows are append-only apart from cap enforcement, which deletes a wallet's
oldest rows once it exceeds its retention count.
"""

from __future__ import annotations

from pathlib import Path

import sqlalchemy as sa
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

TIMESTAMP = sa.DateTime(timezone=True)

METADATA = sa.MetaData()

# ---------------------------------------------------------------------------
# wallet_history: one row per persisted balance reading
# ---------------------------------------------------------------------------

wallet_history = sa.Table(
    "wallet_history",
    METADATA,
    sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
    sa.Column("wallet_name", sa.Text(), nullable=False),
    sa.Column("balance_text", sa.Text(), nullable=False),
    sa.Column("numeric_value", sa.Float(), nullable=True),
    sa.Column("platform", sa.Text(), nullable=False, server_default=""),
    sa.Column("status", sa.Text(), nullable=False),
    sa.Column("timestamp", TIMESTAMP, nullable=False),
)
sa.Index("idx_wallet_history_wallet_id", wallet_history.c.wallet_name, wallet_history.c.id)
sa.Index("idx_wallet_history_status", wallet_history.c.status)


# ---------------------------------------------------------------------------
# Engine / session helpers
# ---------------------------------------------------------------------------


def build_engine(*, db_path: str | Path | None = None, echo: bool = False) -> sa.Engine:
    """Create a SQLite engine for the history database.

    Args:
        db_path: SQLite file path, or ``":memory:"``.  Defaults to
            ``settings.history.sqlite_path``.
        echo: When True, log all SQL statements.
    """
    if db_path is None:
        from balancewatch.settings import get_settings

        db_path = get_settings().history.sqlite_path

    if str(db_path) == ":memory:":
        # One shared connection so every thread sees the same database.
        return sa.create_engine(
            "sqlite://",
            echo=echo,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )

    resolved = Path(db_path)
    resolved.parent.mkdir(parents=True, exist_ok=True)
    url = f"sqlite:///{resolved.as_posix()}"
    return sa.create_engine(
        url,
        echo=echo,
        pool_pre_ping=True,
        connect_args={"check_same_thread": False, "timeout": 30},
    )


def build_session_factory(*, db_path: str | Path | None = None) -> sessionmaker:
    """Return a ``sessionmaker`` bound to the history engine."""
    engine = build_engine(db_path=db_path)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)
