"""Local store for receipts captured while offline."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime
from pathlib import Path

from ..errors import StorageError
from ..models import OfflineReceipt
from .schema import ensure_schema


class OfflineReceiptStore:
    """Manages the offline_receipts table, keyed by record id."""

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

    def put(self, record: OfflineReceipt) -> None:
        conn = self._get_conn()
        try:
            with conn:
                conn.execute(
                    """INSERT OR REPLACE INTO offline_receipts
                       (id, image_data, timestamp, metadata)
                       VALUES (?, ?, ?, ?)""",
                    (
                        record.id,
                        record.image_data,
                        record.timestamp.isoformat(),
                        json.dumps(record.metadata),
                    ),
                )
        except sqlite3.Error as e:
            raise StorageError(f"Failed to store offline receipt: {e}") from e

    def get_all(self) -> list[OfflineReceipt]:
        """Return every queued record, oldest first."""
        conn = self._get_conn()
        rows = conn.execute(
            "SELECT * FROM offline_receipts ORDER BY timestamp, rowid"
        ).fetchall()
        return [
            OfflineReceipt(
                image_data=r["image_data"],
                metadata=json.loads(r["metadata"]),
                id=r["id"],
                timestamp=datetime.fromisoformat(r["timestamp"]),
            )
            for r in rows
        ]

    def delete(self, record_id: str) -> bool:
        conn = self._get_conn()
        try:
            with conn:
                cur = conn.execute(
                    "DELETE FROM offline_receipts WHERE id = ?", (record_id,)
                )
        except sqlite3.Error as e:
            raise StorageError(f"Failed to delete offline receipt: {e}") from e
        return cur.rowcount > 0

    def count(self) -> int:
        conn = self._get_conn()
        return conn.execute("SELECT COUNT(*) FROM offline_receipts").fetchone()[0]
