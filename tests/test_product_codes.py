"""Tests for product code validation and points."""

import pytest

from evuka.db import ProfileStore, ReceiptStore
from evuka.errors import ProductCodeError, StorageError
from evuka.models import PointsSource
from evuka.product_codes import (
    ProductCode,
    ProductCodeType,
    award_product_code,
    calculate_product_code_points,
    validate_product_code,
)


@pytest.fixture
def receipts(db_path):
    store = ReceiptStore(db_path)
    yield store
    store.close()


@pytest.mark.parametrize(
    "raw, normalized, code_type",
    [
        ("4006381333931", "4006381333931", ProductCodeType.EAN13),
        (" 036000291452 ", "036000291452", ProductCodeType.UPC),
        ("promo2024abc", "PROMO2024ABC", ProductCodeType.MANUAL),
        ("12345678", "12345678", ProductCodeType.MANUAL),
    ],
)
def test_validate_product_code(raw, normalized, code_type):
    code = validate_product_code(raw, "u1")
    assert code.code == normalized
    assert code.type is code_type
    assert code.scanned_by == "u1"


@pytest.mark.parametrize("raw", ["   ", "ABC-123", "SHORT1", "A" * 17])
def test_invalid_product_code(raw):
    with pytest.raises(ProductCodeError) as exc_info:
        validate_product_code(raw, "u1")
    assert exc_info.value.code == "INVALID_PRODUCT_CODE"
    assert exc_info.value.user_message.endswith(".")


@pytest.mark.parametrize(
    "code_type, points",
    [
        (ProductCodeType.EAN13, 25),
        (ProductCodeType.UPC, 25),
        (ProductCodeType.QR, 50),
        (ProductCodeType.CODE128, 30),
        (ProductCodeType.MANUAL, 20),
    ],
)
def test_points_by_type(code_type, points):
    code = ProductCode(code="X", type=code_type, scanned_by="u1")
    assert calculate_product_code_points(code) == points
    assert calculate_product_code_points(code, promotion=True) == points * 2


class TestAwardProductCode:
    def test_saves_transaction_and_profile(self, receipts, db_path):
        profiles = ProfileStore(db_path)
        code = validate_product_code("4006381333931", "u1")

        tx = award_product_code(receipts, code, promotion=True, profiles=profiles)

        assert tx.points == 50
        assert tx.receipt_id is None
        [saved] = receipts.get_points_history("u1")
        assert saved.source is PointsSource.PRODUCT_CODE
        assert profiles.get_profile("u1").total_points == 50
        profiles.close()

    def test_profile_failure_keeps_transaction(self, receipts, db_path):
        class BrokenProfiles(ProfileStore):
            def add_points(self, user_id, points):
                raise StorageError("Failed to update user profile: database is locked")

        profiles = BrokenProfiles(db_path)
        award_product_code(receipts, validate_product_code("ABCD1234", "u1"), profiles=profiles)

        assert receipts.total_points("u1") == 20
        profiles.close()
