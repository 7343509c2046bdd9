"""Persistent link history backed by SQLite.

Every real link operation that created at least one hardlink is stored
as a history entry plus one row per linked file.  The newest entry is
the one ``undo`` reverses.  The database normally lives in the app-data
directory (see ``config.Config.db_path``); tests use ``":memory:"``.
"""
from __future__ import annotations

import logging
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

from .models import HistoryEntry, LinkedFileRecord

log = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50


class HistoryError(Exception):
    """Raised when the ledger cannot be read or written."""
    pass


class NoHistoryError(HistoryError):
    """Raised when undo is requested but the ledger is empty."""

    def __init__(self):
        super().__init__("no history entries to undo")


_ENTRY_COLUMNS = (
    "id, timestamp, media_type, show_name, season, "
    "file_count, total_size, dest_path, source"
)


def _row_to_entry(row: tuple) -> HistoryEntry:
    (entry_id, timestamp, media_type, show_name, season,
     file_count, total_size, dest_path, source) = row
    return HistoryEntry(
        id=entry_id,
        timestamp=timestamp,
        media_type=media_type,
        show_name=show_name,
        season=season,
        file_count=file_count,
        total_bytes=total_size,
        dest_dir=dest_path,
        source_label=source,
    )


class LinkHistory:
    """SQLite-backed ledger of link operations.

    Usage::

        ledger = LinkHistory(path)
        entry_id = ledger.record_operation(entry_fields, [(dest, src), ...])
        last = ledger.get_last_history_entry()
        files = ledger.get_linked_files(last.id)
        ledger.delete_history(last.id)

    All access goes through one connection guarded by a lock, so writes
    from different threads are serialized.
    """

    def __init__(self, db_path: str | Path = ":memory:"):
        self._db_path = str(db_path)
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()
        self._ensure_schema()

    # -- connection management -------------------------------------

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            if self._db_path != ":memory:":
                Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
            try:
                self._conn = sqlite3.connect(
                    self._db_path,
                    check_same_thread=False,
                )
                self._conn.execute("PRAGMA journal_mode=WAL")
                self._conn.execute("PRAGMA foreign_keys=ON")
            except sqlite3.Error as e:
                self._conn = None
                raise HistoryError(f"open {self._db_path}: {e}") from e
        return self._conn

    def _ensure_schema(self) -> None:
        with self._lock:
            conn = self._get_conn()
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS history (
                    id          INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp   TEXT NOT NULL,
                    media_type  TEXT NOT NULL,
                    show_name   TEXT NOT NULL,
                    season      INTEGER,
                    file_count  INTEGER NOT NULL,
                    total_size  INTEGER NOT NULL DEFAULT 0,
                    dest_path   TEXT NOT NULL,
                    source      TEXT NOT NULL DEFAULT ''
                );

                CREATE TABLE IF NOT EXISTS linked_files (
                    id          INTEGER PRIMARY KEY AUTOINCREMENT,
                    history_id  INTEGER NOT NULL,
                    file_path   TEXT NOT NULL,
                    source_path TEXT NOT NULL DEFAULT '',
                    FOREIGN KEY (history_id) REFERENCES history(id)
                        ON DELETE CASCADE
                );

                CREATE INDEX IF NOT EXISTS idx_linked_files_history
                    ON linked_files(history_id);
            """)
            conn.commit()

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    # -- ledger contract --------------------------------------------

    def insert_history(
        self,
        media_type: str,
        show_name: str,
        season: int | None,
        file_count: int,
        total_bytes: int,
        dest_dir: str,
        source_label: str,
    ) -> int:
        """Insert a history row and return its id."""
        timestamp = datetime.now(timezone.utc).isoformat(timespec="seconds")
        with self._lock:
            try:
                conn = self._get_conn()
                cur = conn.execute(
                    "INSERT INTO history (timestamp, media_type, show_name, season, "
                    "file_count, total_size, dest_path, source) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                    (timestamp, media_type, show_name, season,
                     file_count, total_bytes, dest_dir, source_label),
                )
                conn.commit()
            except sqlite3.Error as e:
                raise HistoryError(f"insert history: {e}") from e
            return cur.lastrowid

    def insert_linked_file(self, history_id: int, dest_path: str, source_path: str) -> None:
        with self._lock:
            try:
                conn = self._get_conn()
                conn.execute(
                    "INSERT INTO linked_files (history_id, file_path, source_path) "
                    "VALUES (?, ?, ?)",
                    (history_id, dest_path, source_path),
                )
                conn.commit()
            except sqlite3.Error as e:
                raise HistoryError(f"insert linked file: {e}") from e

    def record_operation(
        self,
        media_type: str,
        show_name: str,
        season: int | None,
        total_bytes: int,
        dest_dir: str,
        source_label: str,
        files: Iterable[tuple[str, str]],
    ) -> int:
        """Persist one operation and its ``(dest_path, source_path)`` files atomically.

        ``file_count`` is taken from *files*, so the entry always matches
        the number of rows stored under it.  Returns the new entry id.
        """
        files = list(files)
        timestamp = datetime.now(timezone.utc).isoformat(timespec="seconds")
        with self._lock:
            conn = self._get_conn()
            try:
                with conn:
                    cur = conn.execute(
                        "INSERT INTO history (timestamp, media_type, show_name, season, "
                        "file_count, total_size, dest_path, source) "
                        "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                        (timestamp, media_type, show_name, season,
                         len(files), total_bytes, dest_dir, source_label),
                    )
                    history_id = cur.lastrowid
                    conn.executemany(
                        "INSERT INTO linked_files (history_id, file_path, source_path) "
                        "VALUES (?, ?, ?)",
                        [(history_id, dest, src) for dest, src in files],
                    )
            except sqlite3.Error as e:
                raise HistoryError(f"record operation: {e}") from e
        log.debug("Recorded history entry %d (%d files)", history_id, len(files))
        return history_id

    def get_last_history_entry(self) -> HistoryEntry | None:
        """Return the most recent entry, or None."""
        with self._lock:
            try:
                row = self._get_conn().execute(
                    f"SELECT {_ENTRY_COLUMNS} FROM history ORDER BY id DESC LIMIT 1"
                ).fetchone()
            except sqlite3.Error as e:
                raise HistoryError(f"query history: {e}") from e
        return _row_to_entry(row) if row else None

    def get_linked_files(self, history_id: int) -> list[LinkedFileRecord]:
        with self._lock:
            try:
                rows = self._get_conn().execute(
                    "SELECT id, history_id, file_path, source_path FROM linked_files "
                    "WHERE history_id = ? ORDER BY id",
                    (history_id,),
                ).fetchall()
            except sqlite3.Error as e:
                raise HistoryError(f"query linked files: {e}") from e
        return [
            LinkedFileRecord(id=r[0], history_id=r[1], dest_path=r[2], source_path=r[3])
            for r in rows
        ]

    def delete_history(self, history_id: int) -> None:
        """Delete an entry; its linked-file rows go with it."""
        with self._lock:
            conn = self._get_conn()
            try:
                with conn:
                    # Explicit delete keeps the cascade even if foreign keys are off
                    conn.execute("DELETE FROM linked_files WHERE history_id = ?", (history_id,))
                    conn.execute("DELETE FROM history WHERE id = ?", (history_id,))
            except sqlite3.Error as e:
                raise HistoryError(f"delete history {history_id}: {e}") from e

    def list_history(self, limit: int = DEFAULT_HISTORY_LIMIT) -> list[HistoryEntry]:
        """Return recent entries, newest first."""
        if limit <= 0:
            limit = DEFAULT_HISTORY_LIMIT
        with self._lock:
            try:
                rows = self._get_conn().execute(
                    f"SELECT {_ENTRY_COLUMNS} FROM history ORDER BY id DESC LIMIT ?",
                    (limit,),
                ).fetchall()
            except sqlite3.Error as e:
                raise HistoryError(f"list history: {e}") from e
        return [_row_to_entry(r) for r in rows]

    def has_history(self) -> bool:
        """Return True if at least one entry can be undone."""
        return self.get_last_history_entry() is not None
