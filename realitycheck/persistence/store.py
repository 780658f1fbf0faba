"""SQLite-backed persistence for background sync output and the sync watermark."""

import sqlite3
from typing import Iterable, Optional

from realitycheck.core.models import AppSummary, Category


class UsageStore:
    """Read/write interface to the local SQLite database.

    Holds the most recent batch of summaries collected by the background
    sync (for the presentation layer to pick up) and the single
    ``last_sync_at`` watermark. Timestamps are stored as epoch
    milliseconds.
    """

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None

    # ------------------------------------------------------------------
    # Connection helpers
    # ------------------------------------------------------------------

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    # ------------------------------------------------------------------
    # Schema initialisation
    # ------------------------------------------------------------------

    def init_db(self) -> None:
        """Create tables and indexes if they don't already exist."""
        conn = self._get_conn()
        conn.executescript(
            """\
            CREATE TABLE IF NOT EXISTS pending_usage (
                position INTEGER PRIMARY KEY,
                package_name TEXT NOT NULL,
                app_name TEXT NOT NULL,
                total_time_ms INTEGER NOT NULL,
                last_used INTEGER NOT NULL DEFAULT 0,
                first_used INTEGER NOT NULL DEFAULT 0,
                category TEXT NOT NULL,
                is_productive INTEGER NOT NULL DEFAULT 0,
                sync_time INTEGER
            );

            CREATE TABLE IF NOT EXISTS sync_state (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                last_sync_at INTEGER NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_pending_package
                ON pending_usage(package_name);
            """
        )
        conn.commit()

    # ------------------------------------------------------------------
    # Pending summaries
    # ------------------------------------------------------------------

    def save_pending(self, summaries: Iterable[AppSummary]) -> int:
        """Replace the pending batch with *summaries*. Returns the row count."""
        conn = self._get_conn()
        rows = [
            (
                position,
                s.package_id,
                s.display_name,
                s.total_foreground_ms,
                s.last_used_at,
                s.first_seen_at,
                s.category.value,
                1 if s.is_productive else 0,
                s.sync_time,
            )
            for position, s in enumerate(summaries)
        ]
        with conn:
            conn.execute("DELETE FROM pending_usage")
            conn.executemany(
                """\
                INSERT INTO pending_usage
                    (position, package_name, app_name, total_time_ms, last_used,
                     first_used, category, is_productive, sync_time)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                rows,
            )
        return len(rows)

    def get_pending(self) -> list[AppSummary]:
        """Return the pending batch in the order it was stored."""
        conn = self._get_conn()
        rows = conn.execute(
            "SELECT * FROM pending_usage ORDER BY position"
        ).fetchall()
        return [self._row_to_summary(r) for r in rows]

    def clear_pending(self) -> None:
        conn = self._get_conn()
        with conn:
            conn.execute("DELETE FROM pending_usage")

    # ------------------------------------------------------------------
    # Sync watermark
    # ------------------------------------------------------------------

    def load_sync_watermark(self) -> Optional[int]:
        """Return the last successful sync time, or ``None`` on first run."""
        conn = self._get_conn()
        row = conn.execute(
            "SELECT last_sync_at FROM sync_state WHERE id = 1"
        ).fetchone()
        if row is None:
            return None
        return row["last_sync_at"]

    def store_sync_watermark(self, timestamp_ms: int) -> None:
        """Advance the watermark to *timestamp_ms*. Never moves it backwards."""
        conn = self._get_conn()
        with conn:
            conn.execute(
                """\
                INSERT INTO sync_state (id, last_sync_at) VALUES (1, ?)
                ON CONFLICT(id) DO UPDATE SET last_sync_at = excluded.last_sync_at
                WHERE excluded.last_sync_at > sync_state.last_sync_at
                """,
                (timestamp_ms,),
            )

    # ------------------------------------------------------------------
    # Row mapping helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_summary(row: sqlite3.Row) -> AppSummary:
        return AppSummary(
            package_id=row["package_name"],
            display_name=row["app_name"],
            total_foreground_ms=row["total_time_ms"],
            last_used_at=row["last_used"],
            first_seen_at=row["first_used"],
            category=Category(row["category"]),
            is_productive=bool(row["is_productive"]),
            sync_time=row["sync_time"],
        )
