"""Receipt and points-transaction storage."""

from __future__ import annotations

import logging
import sqlite3
from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from pathlib import Path

from ..errors import StorageError
from ..extraction import ReceiptItem
from ..models import PointsSource, PointsTransaction, ReceiptRecord
from .schema import ensure_schema

logger = logging.getLogger(__name__)


def _insert_receipt(conn: sqlite3.Connection, record: ReceiptRecord) -> None:
    conn.execute(
        """INSERT INTO receipts
           (id, user_id, store, total, points_earned, image_url,
            category, fraud_score, purchased_at, created_at)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            record.id,
            record.user_id,
            record.store,
            str(record.total),
            record.points_earned,
            record.image_url,
            record.category,
            record.fraud_score,
            record.purchased_at.isoformat() if record.purchased_at else None,
            record.created_at.isoformat(),
        ),
    )
    conn.executemany(
        """INSERT INTO receipt_items (receipt_id, name, price, category)
           VALUES (?, ?, ?, ?)""",
        [(record.id, item.name, str(item.price), item.category) for item in record.items],
    )


def _insert_transaction(conn: sqlite3.Connection, record: PointsTransaction) -> None:
    conn.execute(
        """INSERT INTO points_transactions
           (id, user_id, points, source, receipt_id, created_at)
           VALUES (?, ?, ?, ?, ?, ?)""",
        (
            record.id,
            record.user_id,
            record.points,
            record.source.value,
            record.receipt_id,
            record.created_at.isoformat(),
        ),
    )


class ReceiptRepository(ABC):
    """Persistence collaborator used by the capture pipeline."""

    @abstractmethod
    def save_receipt(self, record: ReceiptRecord) -> ReceiptRecord:
        """Persist a receipt and its items.

        Raises:
            StorageError: If the write fails. Nothing is stored in that case.
        """
        ...

    @abstractmethod
    def save_points_transaction(self, record: PointsTransaction) -> PointsTransaction:
        ...

    @abstractmethod
    def save_capture(self, record: ReceiptRecord, transaction: PointsTransaction) -> bool:
        """Persist a receipt together with the points it earned.

        Both rows are written in one transaction. A receipt whose id is
        already stored is left alone and no second transaction is added.

        Returns:
            True if the receipt was stored, False if it was already there.

        Raises:
            StorageError: If the write fails. Nothing is stored in that case.
        """
        ...

    @abstractmethod
    def get_points_history(self, user_id: str) -> list[PointsTransaction]:
        """Return the user's transactions, newest first."""
        ...


class ReceiptStore(ReceiptRepository):
    """Manages the receipts, receipt_items and points_transactions tables."""

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

    def save_receipt(self, record: ReceiptRecord) -> ReceiptRecord:
        conn = self._get_conn()
        try:
            with conn:
                _insert_receipt(conn, record)
        except sqlite3.Error as e:
            raise StorageError(f"Failed to save receipt: {e}") from e

        logger.debug("Saved receipt %s for user %s", record.id, record.user_id)
        return record

    def save_points_transaction(self, record: PointsTransaction) -> PointsTransaction:
        conn = self._get_conn()
        try:
            with conn:
                _insert_transaction(conn, record)
        except sqlite3.Error as e:
            raise StorageError(f"Failed to save points transaction: {e}") from e
        return record

    def save_capture(self, record: ReceiptRecord, transaction: PointsTransaction) -> bool:
        conn = self._get_conn()
        try:
            with conn:
                exists = conn.execute(
                    "SELECT 1 FROM receipts WHERE id = ?", (record.id,)
                ).fetchone()
                if exists:
                    logger.info("Receipt %s is already stored; skipping", record.id)
                    return False
                _insert_receipt(conn, record)
                _insert_transaction(conn, transaction)
        except sqlite3.Error as e:
            raise StorageError(f"Failed to save receipt: {e}") from e

        logger.debug(
            "Saved receipt %s with %d points for user %s",
            record.id,
            transaction.points,
            record.user_id,
        )
        return True

    def get_points_history(self, user_id: str) -> list[PointsTransaction]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                """SELECT * FROM points_transactions
                   WHERE user_id = ?
                   ORDER BY created_at DESC, rowid DESC""",
                (user_id,),
            ).fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to load points history: {e}") from e
        return [
            PointsTransaction(
                user_id=r["user_id"],
                points=r["points"],
                source=PointsSource(r["source"]),
                receipt_id=r["receipt_id"],
                id=r["id"],
                created_at=datetime.fromisoformat(r["created_at"]),
            )
            for r in rows
        ]

    def get_receipts(self, user_id: str, limit: int = 20) -> list[ReceiptRecord]:
        """Return the user's most recent receipts with their items."""
        conn = self._get_conn()
        try:
            rows = conn.execute(
                """SELECT * FROM receipts
                   WHERE user_id = ?
                   ORDER BY created_at DESC, rowid DESC
                   LIMIT ?""",
                (user_id, limit),
            ).fetchall()
            records = []
            for r in rows:
                items = conn.execute(
                    "SELECT name, price, category FROM receipt_items WHERE receipt_id = ? ORDER BY id",
                    (r["id"],),
                ).fetchall()
                records.append(
                    ReceiptRecord(
                        user_id=r["user_id"],
                        store=r["store"],
                        total=Decimal(r["total"]),
                        points_earned=r["points_earned"],
                        image_url=r["image_url"],
                        category=r["category"],
                        fraud_score=r["fraud_score"],
                        items=tuple(
                            ReceiptItem(
                                name=i["name"],
                                price=Decimal(i["price"]),
                                category=i["category"],
                            )
                            for i in items
                        ),
                        purchased_at=(
                            datetime.fromisoformat(r["purchased_at"])
                            if r["purchased_at"]
                            else None
                        ),
                        id=r["id"],
                        created_at=datetime.fromisoformat(r["created_at"]),
                    )
                )
        except sqlite3.Error as e:
            raise StorageError(f"Failed to load receipts: {e}") from e
        return records

    def total_points(self, user_id: str) -> int:
        conn = self._get_conn()
        row = conn.execute(
            "SELECT COALESCE(SUM(points), 0) AS total FROM points_transactions WHERE user_id = ?",
            (user_id,),
        ).fetchone()
        return row["total"]
