"""Persisted record types."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum

from .extraction import ReceiptItem


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PointsSource(str, Enum):
    RECEIPT_SCAN = "Receipt Scan"
    DAILY_CHALLENGE = "Daily Challenge"
    ACHIEVEMENT = "Achievement"
    REFERRAL = "Referral"
    PRODUCT_CODE = "Product Code"


@dataclass
class ReceiptRecord:
    user_id: str
    store: str
    total: Decimal
    points_earned: int
    image_url: str | None = None
    category: str = "receipt"
    fraud_score: float = 0.0
    items: tuple[ReceiptItem, ...] = ()
    purchased_at: datetime | None = None
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=_utcnow)


@dataclass
class PointsTransaction:
    user_id: str
    points: int
    source: PointsSource = PointsSource.RECEIPT_SCAN
    receipt_id: str | None = None
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        if self.points < 0:
            raise ValueError(f"points must be non-negative, got {self.points}")


@dataclass
class UserProfile:
    user_id: str
    email: str | None = None
    total_points: int = 0
    monthly_points: int = 0
    level: int = 1
    streak_days: int = 0
    last_activity: date | None = None
    totp_secret: str | None = None
    mfa_enabled: bool = False


@dataclass
class DailyChallenge:
    title: str
    description: str
    points_reward: int
    start_date: datetime
    end_date: datetime
    active: bool = True
    id: str = field(default_factory=_new_id)


@dataclass
class OfflineReceipt:
    """A receipt image captured while offline, waiting to be synced."""

    image_data: str  # data URL
    metadata: dict = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=_utcnow)
