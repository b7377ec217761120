"""Utility helpers for interacting with the SQLite player statistics store."""

# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

import logging
import os
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List

logger = logging.getLogger(__name__)

_DDL_PATH = Path(__file__).with_name("afk_tracker.ddl")
_DB_PATH_ENV = "AFK_TRACKER_SQLITE_PATH"
_DEFAULT_DB_PATH = Path("/var/lib/sqlite/afk_tracker.db")

# Every SET expression reads the row as it was before the statement, so the
# percentage is rebuilt from the stored totals plus the incoming deltas.
_UPSERT_TOTALS_SQL = """
INSERT INTO players (
    steam_id, name, total_active_minutes, total_afk_minutes, afk_percentage, updated_at
)
VALUES (
    :steam_id, :name, :active, :afk,
    (:afk / NULLIF(:active + :afk, 0)) * 100,
    CURRENT_TIMESTAMP
)
ON CONFLICT(steam_id) DO UPDATE SET
    name = COALESCE(excluded.name, players.name),
    total_active_minutes = players.total_active_minutes + excluded.total_active_minutes,
    total_afk_minutes = players.total_afk_minutes + excluded.total_afk_minutes,
    afk_percentage = (
        (players.total_afk_minutes + excluded.total_afk_minutes)
        / NULLIF(
            players.total_active_minutes + excluded.total_active_minutes
            + players.total_afk_minutes + excluded.total_afk_minutes,
            0
        )
    ) * 100,
    updated_at = CURRENT_TIMESTAMP
"""

_UPDATE_TOTALS_SQL = """
UPDATE players
SET
    name = COALESCE(:name, name),
    total_active_minutes = total_active_minutes + :active,
    total_afk_minutes = total_afk_minutes + :afk,
    afk_percentage = (
        (total_afk_minutes + :afk)
        / NULLIF(total_active_minutes + :active + total_afk_minutes + :afk, 0)
    ) * 100,
    updated_at = CURRENT_TIMESTAMP
WHERE steam_id = :steam_id
"""


def _default_db_path_from_env() -> Path:
    """Resolve the SQLite path from the environment at call time."""

    env_value = os.environ.get(_DB_PATH_ENV)
    if env_value:
        return Path(env_value)
    return _DEFAULT_DB_PATH


def _ensure_directory(path: Path) -> None:
    if not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)


class SQLiteConnector:
    """High level helper that owns the SQLite connection for player totals."""

    def __init__(
        self,
        db_path: Path | str | None = None,
        ddl_path: Path | str | None = None,
        *,
        busy_timeout_seconds: float = 10.0,
    ) -> None:
        self.db_path = Path(db_path) if db_path else _default_db_path_from_env()
        self.ddl_path = Path(ddl_path or _DDL_PATH)
        self.busy_timeout_seconds = busy_timeout_seconds
        _ensure_directory(self.db_path)
        self._connection: sqlite3.Connection | None = None
        self._initialised = False
        self._lock = threading.RLock()

    @property
    def connection(self) -> sqlite3.Connection:
        with self._lock:
            if self._connection is None:
                self._connection = sqlite3.connect(
                    self.db_path,
                    timeout=self.busy_timeout_seconds,
                    check_same_thread=False,
                )
                self._connection.row_factory = sqlite3.Row
                logger.info("Opened SQLite player store at %s", self.db_path)
            return self._connection

    def close(self) -> None:
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None
                self._initialised = False

    @contextmanager
    def cursor(self) -> Iterator[sqlite3.Cursor]:
        self._lock.acquire()
        try:
            cur = self.connection.cursor()
            try:
                yield cur
            finally:
                cur.close()
        finally:
            self._lock.release()

    def initialise(self) -> None:
        """Execute the DDL script once per connector lifetime."""

        with self._lock:
            if self._initialised:
                return
            script = self.ddl_path.read_text(encoding="utf-8")
            self.connection.executescript(script)
            self._initialised = True

    def commit(self) -> None:
        with self._lock:
            self.connection.commit()

    # Public API ---------------------------------------------------------
    def apply_minutes_delta(
        self,
        identity: str,
        active_minutes: float,
        afk_minutes: float,
        *,
        name: str | None = None,
        insert_missing: bool = True,
    ) -> bool:
        """Add both deltas to ``identity`` and recompute its AFK percentage.

        The increment and the percentage recomputation happen in a single
        statement. With ``insert_missing`` a first-seen identity gets a new
        row; without it only existing rows are touched. Returns ``True`` when
        a row was written.
        """

        if active_minutes < 0 or afk_minutes < 0:
            raise ValueError("minute deltas must be >= 0")
        params = {
            "steam_id": identity,
            "name": name,
            "active": float(active_minutes),
            "afk": float(afk_minutes),
        }
        sql = _UPSERT_TOTALS_SQL if insert_missing else _UPDATE_TOTALS_SQL
        with self._lock:
            try:
                with self.cursor() as cur:
                    cur.execute(sql, params)
                    written = cur.rowcount
                self.connection.commit()
            except sqlite3.Error:
                self.connection.rollback()
                raise
        if not written:
            logger.debug("No stored player row for %s; totals not updated", identity)
        return written > 0

    def fetch_player(self, identity: str) -> Dict[str, object] | None:
        with self.cursor() as cur:
            cur.execute("SELECT * FROM players WHERE steam_id = ?", (identity,))
            row = cur.fetchone()
        return dict(row) if row is not None else None

    def fetch_players(self) -> List[Dict[str, object]]:
        with self.cursor() as cur:
            cur.execute("SELECT * FROM players ORDER BY steam_id")
            return [dict(row) for row in cur.fetchall()]


@contextmanager
def sqlite_connector(db_path: Path | str | None = None) -> Iterator[SQLiteConnector]:
    connector = SQLiteConnector(db_path=db_path)
    try:
        connector.initialise()
        yield connector
        connector.commit()
    finally:
        connector.close()


__all__ = ["SQLiteConnector", "sqlite_connector"]
