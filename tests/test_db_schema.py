"""Tests for database schema creation and migration."""

import sqlite3

import pytest

from evuka.db.schema import _SCHEMA_VERSION, ensure_schema


def test_ensure_schema_creates_tables(tmp_path):
    """Schema creates every table."""
    db_path = tmp_path / "test.db"
    conn = ensure_schema(db_path)

    tables = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
    ).fetchall()
    table_names = {row["name"] for row in tables}

    assert {
        "receipts",
        "receipt_items",
        "points_transactions",
        "user_profiles",
        "user_achievements",
        "daily_challenges",
        "system_logs",
        "offline_receipts",
        "schema_version",
    } <= table_names

    conn.close()


def test_ensure_schema_creates_parent_dirs(tmp_path):
    """Schema creates parent directories if they don't exist."""
    db_path = tmp_path / "sub" / "dir" / "test.db"
    conn = ensure_schema(db_path)
    assert db_path.exists()
    conn.close()


def test_ensure_schema_sets_version(tmp_path):
    conn = ensure_schema(tmp_path / "test.db")
    row = conn.execute("SELECT version FROM schema_version").fetchone()
    assert row["version"] == _SCHEMA_VERSION
    conn.close()


def test_ensure_schema_idempotent(tmp_path):
    """Calling ensure_schema twice doesn't error or duplicate the version row."""
    db_path = tmp_path / "test.db"
    conn1 = ensure_schema(db_path)
    conn1.close()

    conn2 = ensure_schema(db_path)
    rows = conn2.execute("SELECT version FROM schema_version").fetchall()
    assert [r["version"] for r in rows] == [_SCHEMA_VERSION]
    conn2.close()


def test_ensure_schema_wal_mode(tmp_path):
    conn = ensure_schema(tmp_path / "test.db")
    mode = conn.execute("PRAGMA journal_mode").fetchone()
    assert mode[0] == "wal"
    conn.close()


def test_receipts_columns(tmp_path):
    conn = ensure_schema(tmp_path / "test.db")

    info = conn.execute("PRAGMA table_info(receipts)").fetchall()
    col_names = {row["name"] for row in info}

    expected = {
        "id", "user_id", "store", "total", "points_earned", "image_url",
        "category", "fraud_score", "purchased_at", "created_at",
    }
    assert expected.issubset(col_names)

    conn.close()


def test_negative_points_rejected(tmp_path):
    """points_transactions enforces non-negative points."""
    conn = ensure_schema(tmp_path / "test.db")
    with pytest.raises(sqlite3.IntegrityError):
        conn.execute(
            """INSERT INTO points_transactions (id, user_id, points, source, created_at)
               VALUES ('t1', 'u1', -5, 'Receipt Scan', '2024-01-01T00:00:00')"""
        )
    conn.close()


def test_foreign_keys_enforced(tmp_path):
    conn = ensure_schema(tmp_path / "test.db")
    with pytest.raises(sqlite3.IntegrityError):
        conn.execute(
            """INSERT INTO receipt_items (receipt_id, name, price)
               VALUES ('missing', 'Milk', '3.49')"""
        )
    conn.close()
