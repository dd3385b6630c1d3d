"""Daily challenge storage."""

from __future__ import annotations

import sqlite3
from datetime import datetime
from pathlib import Path

from ..errors import StorageError
from ..models import DailyChallenge
from .schema import ensure_schema


class ChallengeStore:
    """Manages the daily_challenges table."""

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

    def deactivate_expired(self, now: datetime | None = None) -> int:
        """Mark challenges whose end date has passed as inactive.

        Returns:
            Number of challenges deactivated.
        """
        now = now or datetime.now()
        conn = self._get_conn()
        try:
            with conn:
                cur = conn.execute(
                    """UPDATE daily_challenges SET is_active = 0
                       WHERE is_active = 1 AND end_date < ?""",
                    (now.isoformat(),),
                )
        except sqlite3.Error as e:
            raise StorageError(f"Failed to deactivate challenges: {e}") from e
        return cur.rowcount

    def add_challenges(self, challenges: list[DailyChallenge]) -> None:
        conn = self._get_conn()
        try:
            with conn:
                conn.executemany(
                    """INSERT INTO daily_challenges
                       (id, title, description, points_reward,
                        start_date, end_date, is_active)
                       VALUES (?, ?, ?, ?, ?, ?, ?)""",
                    [
                        (
                            c.id,
                            c.title,
                            c.description,
                            c.points_reward,
                            c.start_date.isoformat(),
                            c.end_date.isoformat(),
                            int(c.active),
                        )
                        for c in challenges
                    ],
                )
        except sqlite3.Error as e:
            raise StorageError(f"Failed to save challenges: {e}") from e

    def get_active(self) -> list[DailyChallenge]:
        conn = self._get_conn()
        rows = conn.execute(
            """SELECT * FROM daily_challenges
               WHERE is_active = 1 ORDER BY start_date, rowid"""
        ).fetchall()
        return [
            DailyChallenge(
                title=r["title"],
                description=r["description"],
                points_reward=r["points_reward"],
                start_date=datetime.fromisoformat(r["start_date"]),
                end_date=datetime.fromisoformat(r["end_date"]),
                active=bool(r["is_active"]),
                id=r["id"],
            )
            for r in rows
        ]
