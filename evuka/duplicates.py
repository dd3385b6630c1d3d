"""Duplicate receipt detection.

Each new receipt is compared against recently processed ones. A pair is
scored from four signals (total, store, day and item list) and the highest
score over the history decides whether the receipt looks like a rescan.
A hit only flags the receipt; it never blocks processing.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from decimal import Decimal

from .extraction import ReceiptData

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.7
DEFAULT_HISTORY_SIZE = 50


@dataclass(frozen=True)
class DuplicateCheck:
    is_duplicate: bool
    score: float
    matching_receipt: ReceiptData | None = None


class ReceiptHistory:
    """Bounded, most-recent-last collection of processed receipts."""

    def __init__(self, maxlen: int = DEFAULT_HISTORY_SIZE) -> None:
        if maxlen < 1:
            raise ValueError("history size must be at least 1")
        self._receipts: deque[ReceiptData] = deque(maxlen=maxlen)

    @property
    def maxlen(self) -> int:
        return self._receipts.maxlen or 0

    def append(self, receipt: ReceiptData) -> None:
        self._receipts.append(receipt)

    def clear(self) -> None:
        self._receipts.clear()

    def __iter__(self) -> Iterator[ReceiptData]:
        return iter(self._receipts)

    def __len__(self) -> int:
        return len(self._receipts)


def _items_hash(receipt: ReceiptData) -> str:
    return "|".join(
        sorted(f"{item.name.strip().lower()}:{item.price}" for item in receipt.items)
    )


def compare_receipts(a: ReceiptData, b: ReceiptData) -> float:
    """Similarity of two receipts in [0, 1]."""
    score = 0.0

    diff = abs(Decimal(a.total) - Decimal(b.total))
    if diff < Decimal("0.01"):
        score += 0.5
    elif diff < Decimal("1.00"):
        score += 0.3

    store_a = a.store.strip().lower()
    store_b = b.store.strip().lower()
    if store_a and store_b:
        if store_a == store_b:
            score += 0.2
        elif store_a in store_b or store_b in store_a:
            score += 0.1

    if a.timestamp.date() == b.timestamp.date():
        score += 0.2

    if a.items and b.items:
        if _items_hash(a) == _items_hash(b):
            score += 0.3
        elif len(a.items) == len(b.items):
            score += 0.1
        elif abs(len(a.items) - len(b.items)) <= 2:
            score += 0.05

    return round(min(score, 1.0), 4)


def check_for_duplicates(
    candidate: ReceiptData,
    history: Iterable[ReceiptData],
    threshold: float = DEFAULT_THRESHOLD,
) -> DuplicateCheck:
    """Score a receipt against history and report the closest match.

    Args:
        candidate: The newly extracted receipt.
        history: Previously processed receipts.
        threshold: Score at or above which the receipt is flagged.

    Returns:
        The best score and the receipt that produced it. An empty history
        yields ``DuplicateCheck(False, 0.0)``.
    """
    best_score = 0.0
    best_match: ReceiptData | None = None

    for previous in history:
        score = compare_receipts(candidate, previous)
        if score > best_score:
            best_score = score
            best_match = previous

    is_duplicate = best_score >= threshold
    if is_duplicate:
        logger.warning(
            "Possible duplicate receipt: %s %s matches %s (score %.2f)",
            candidate.store,
            candidate.total,
            best_match.store if best_match else "?",
            best_score,
        )

    return DuplicateCheck(
        is_duplicate=is_duplicate,
        score=best_score,
        matching_receipt=best_match,
    )
