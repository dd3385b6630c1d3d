"""Shared fixtures for the rewards tests."""

from datetime import datetime
from decimal import Decimal

import pytest

from evuka.capture import ReceiptImage
from evuka.extraction import ExtractionBackend, ReceiptData, ReceiptItem


class FakeBackend(ExtractionBackend):
    """Returns queued results (or raises queued errors) in order."""

    def __init__(self, *results):
        self.results = list(results)
        self.calls = 0

    async def extract(self, image):
        self.calls += 1
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return result


def make_receipt(
    store="Walmart",
    total="25.00",
    timestamp=datetime(2024, 3, 10, 14, 30),
    items=(),
):
    return ReceiptData(
        store=store,
        total=Decimal(total),
        timestamp=timestamp,
        items=tuple(ReceiptItem(name=n, price=Decimal(p)) for n, p in items),
    )


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "rewards.db"


@pytest.fixture
def receipt_image():
    return ReceiptImage(data=b"\xff\xd8\xff\xe0fake-jpeg", media_type="image/jpeg")
