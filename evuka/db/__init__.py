"""SQLite persistence for receipts, points, profiles and scheduled jobs."""

from .challenges import ChallengeStore
from .offline import OfflineReceiptStore
from .profiles import ProfileStore
from .receipts import ReceiptRepository, ReceiptStore
from .schema import ensure_schema
from .system_logs import SystemLogStore

__all__ = [
    "ChallengeStore",
    "OfflineReceiptStore",
    "ProfileStore",
    "ReceiptRepository",
    "ReceiptStore",
    "SystemLogStore",
    "ensure_schema",
]
