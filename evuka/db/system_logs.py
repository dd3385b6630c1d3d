"""Audit log of scheduled operations."""

from __future__ import annotations

import sqlite3
from pathlib import Path

from ..errors import StorageError
from .schema import ensure_schema


class SystemLogStore:
    """Manages the system_logs table."""

    def __init__(self, db_path: str | Path = "~/.config/evuka/rewards.db") -> None:
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            try:
                self._conn = ensure_schema(self._db_path)
            except (sqlite3.Error, OSError) as e:
                raise StorageError(f"Failed to open database: {e}") from e
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def write(self, operation: str, status: str, details: str = "") -> int:
        conn = self._get_conn()
        try:
            with conn:
                cur = conn.execute(
                    """INSERT INTO system_logs (operation, status, details)
                       VALUES (?, ?, ?)""",
                    (operation, status, details),
                )
        except sqlite3.Error as e:
            raise StorageError(f"Failed to write system log: {e}") from e
        return cur.lastrowid

    def recent(self, limit: int = 20, operation: str | None = None) -> list[dict]:
        """Return the newest log rows, optionally for one operation."""
        conn = self._get_conn()
        if operation is None:
            rows = conn.execute(
                "SELECT * FROM system_logs ORDER BY id DESC LIMIT ?", (limit,)
            ).fetchall()
        else:
            rows = conn.execute(
                """SELECT * FROM system_logs WHERE operation = ?
                   ORDER BY id DESC LIMIT ?""",
                (operation, limit),
            ).fetchall()
        return [dict(r) for r in rows]
