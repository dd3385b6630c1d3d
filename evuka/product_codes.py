"""Product code capture: barcodes and manually entered codes."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING

from .errors import ProductCodeError, StorageError
from .models import PointsSource, PointsTransaction

if TYPE_CHECKING:
    from .db import ProfileStore, ReceiptRepository

logger = logging.getLogger(__name__)

PROMOTION_MULTIPLIER = 2


class ProductCodeType(str, Enum):
    EAN13 = "EAN_13"
    UPC = "UPC"
    QR = "QR_CODE"
    CODE128 = "CODE_128"
    MANUAL = "MANUAL_CODE"


_BASE_POINTS: dict[ProductCodeType, int] = {
    ProductCodeType.EAN13: 25,
    ProductCodeType.UPC: 25,
    ProductCodeType.QR: 50,
    ProductCodeType.CODE128: 30,
    ProductCodeType.MANUAL: 20,
}

_FORMATS: list[tuple[re.Pattern[str], ProductCodeType]] = [
    (re.compile(r"\d{13}"), ProductCodeType.EAN13),
    (re.compile(r"\d{12}"), ProductCodeType.UPC),
    (re.compile(r"[A-Z0-9]{8,16}"), ProductCodeType.MANUAL),
]


@dataclass(frozen=True)
class ProductCode:
    code: str
    type: ProductCodeType
    scanned_by: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def validate_product_code(code: str, user_id: str) -> ProductCode:
    """Normalise a typed-in code and work out its type.

    Thirteen digits are read as EAN-13, twelve as UPC-A and any other run
    of 8 to 16 letters or digits as a manual code.

    Raises:
        ProductCodeError: If the code is empty or matches no format.
    """
    normalized = code.strip().upper()
    if not normalized:
        raise ProductCodeError("Product code cannot be empty.")

    for pattern, code_type in _FORMATS:
        if pattern.fullmatch(normalized):
            return ProductCode(code=normalized, type=code_type, scanned_by=user_id)

    raise ProductCodeError("Invalid product code format. Please check and try again.")


def calculate_product_code_points(code: ProductCode, promotion: bool = False) -> int:
    points = _BASE_POINTS.get(code.type, 15)
    if promotion:
        points *= PROMOTION_MULTIPLIER
    return points


def award_product_code(
    repository: ReceiptRepository,
    code: ProductCode,
    promotion: bool = False,
    profiles: ProfileStore | None = None,
) -> PointsTransaction:
    """Credit the points for a product code to the user who entered it.

    The transaction is the record of the award. A profile that cannot be
    updated afterwards only logs a warning.
    """
    points = calculate_product_code_points(code, promotion)
    transaction = repository.save_points_transaction(
        PointsTransaction(
            user_id=code.scanned_by,
            points=points,
            source=PointsSource.PRODUCT_CODE,
        )
    )
    logger.info(
        "Awarded %d points to %s for %s code %s",
        points,
        code.scanned_by,
        code.type.value,
        code.code,
    )

    if profiles is not None:
        try:
            profiles.add_points(code.scanned_by, points)
        except StorageError as e:
            logger.warning("Could not update profile for %s: %s", code.scanned_by, e)
    return transaction
