"""User profile storage: points balance, streaks, achievements and MFA state."""

from __future__ import annotations

import sqlite3
from datetime import date
from pathlib import Path

from ..errors import StorageError
from ..gamification import calculate_level, next_streak
from ..models import UserProfile
from .schema import ensure_schema


def _row_to_profile(row: sqlite3.Row) -> UserProfile:
    return UserProfile(
        user_id=row["user_id"],
        email=row["email"],
        total_points=row["total_points"],
        monthly_points=row["monthly_points"],
        level=row["level"],
        streak_days=row["streak_days"],
        last_activity=(
            date.fromisoformat(row["last_activity"]) if row["last_activity"] else None
        ),
        totp_secret=row["totp_secret"],
        mfa_enabled=bool(row["mfa_enabled"]),
    )


class ProfileStore:
    """Manages the user_profiles and user_achievements tables."""

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

    def _write(self, sql: str, params: tuple) -> int:
        conn = self._get_conn()
        try:
            with conn:
                cur = conn.execute(sql, params)
        except sqlite3.Error as e:
            raise StorageError(f"Failed to update user profile: {e}") from e
        return cur.rowcount

    def get_profile(self, user_id: str) -> UserProfile | None:
        conn = self._get_conn()
        row = conn.execute(
            "SELECT * FROM user_profiles WHERE user_id = ?", (user_id,)
        ).fetchone()
        return _row_to_profile(row) if row else None

    def get_or_create(self, user_id: str, email: str | None = None) -> UserProfile:
        self._write(
            """INSERT INTO user_profiles (user_id, email) VALUES (?, ?)
               ON CONFLICT(user_id) DO NOTHING""",
            (user_id, email),
        )
        profile = self.get_profile(user_id)
        if profile is None:
            raise StorageError(f"Failed to load user profile {user_id}")
        return profile

    def add_points(self, user_id: str, points: int) -> UserProfile:
        """Credit points to the lifetime and monthly balances and update the level."""
        profile = self.get_or_create(user_id)
        total = profile.total_points + points
        self._write(
            """UPDATE user_profiles
               SET total_points = ?,
                   monthly_points = monthly_points + ?,
                   level = ?,
                   updated_at = datetime('now')
               WHERE user_id = ?""",
            (total, points, calculate_level(total), user_id),
        )
        return self.get_or_create(user_id)

    def record_activity(self, user_id: str, today: date | None = None) -> int:
        """Update the daily streak for activity on ``today``.

        Returns:
            The new streak length.
        """
        today = today or date.today()
        profile = self.get_or_create(user_id)
        streak = next_streak(profile.last_activity, today, profile.streak_days)
        self._write(
            """UPDATE user_profiles
               SET streak_days = ?, last_activity = ?, updated_at = datetime('now')
               WHERE user_id = ?""",
            (streak, today.isoformat(), user_id),
        )
        return streak

    def set_totp_secret(self, user_id: str, secret: str) -> None:
        self.get_or_create(user_id)
        self._write(
            """UPDATE user_profiles
               SET totp_secret = ?, updated_at = datetime('now')
               WHERE user_id = ?""",
            (secret, user_id),
        )

    def enable_mfa(self, user_id: str, secret: str | None = None) -> None:
        """Turn on MFA, optionally storing the verified secret."""
        self.get_or_create(user_id)
        self._write(
            """UPDATE user_profiles
               SET mfa_enabled = 1,
                   totp_secret = COALESCE(?, totp_secret),
                   updated_at = datetime('now')
               WHERE user_id = ?""",
            (secret, user_id),
        )

    def award_achievement(self, user_id: str, achievement_id: str) -> bool:
        """Record an achievement. Returns False if the user already had it."""
        inserted = self._write(
            """INSERT INTO user_achievements (user_id, achievement_id)
               VALUES (?, ?)
               ON CONFLICT(user_id, achievement_id) DO NOTHING""",
            (user_id, achievement_id),
        )
        return inserted > 0

    def get_achievements(self, user_id: str) -> list[str]:
        conn = self._get_conn()
        rows = conn.execute(
            """SELECT achievement_id FROM user_achievements
               WHERE user_id = ? ORDER BY awarded_at, id""",
            (user_id,),
        ).fetchall()
        return [r["achievement_id"] for r in rows]

    def reset_monthly_points(self) -> int:
        """Zero the monthly balance of every profile.

        Returns:
            Number of profiles updated.
        """
        return self._write(
            """UPDATE user_profiles
               SET monthly_points = 0, updated_at = datetime('now')""",
            (),
        )
