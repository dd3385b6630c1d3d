"""Heuristic parsing of OCR text into structured receipt data."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from ..errors import ExtractionError
from ..shopping.categories import guess_category
from . import ReceiptData, ReceiptItem

# Ordered by preference; the first pattern that matches wins.
_TOTAL_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"(?<!sub-)(?<!sub )\btotal\b[^\d\n]*?(\d+\.\d{2})", re.I),
    re.compile(r"\b(?:amount|balance|due|sum)\b[^\d\n]*?(\d+\.\d{2})", re.I),
    re.compile(r"(?<!sub-)(?<!sub )\btotal\b[^\d\n]*?(\d+)\b", re.I),
    re.compile(r"\$\s*(\d+\.\d{2})"),
]
_AMOUNT_RE = re.compile(r"\$?(\d+\.\d{2})")

_NUMERIC_DATE_RE = re.compile(r"\b(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{2,4})\b")
_MONTH_DATE_RE = re.compile(
    r"\b(jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\.?\s+(\d{1,2})[,\s]+(\d{2,4})\b",
    re.I,
)
_MONTHS = ["jan", "feb", "mar", "apr", "may", "jun",
           "jul", "aug", "sep", "oct", "nov", "dec"]

COMMON_STORES: list[str] = [
    "walmart", "target", "kroger", "costco", "walgreens", "cvs",
    "home depot", "lowes", "best buy", "safeway", "publix", "aldi",
    "trader joe", "whole foods",
]

_ITEM_LINE_RE = re.compile(
    r"^\s*(?P<name>[A-Za-z0-9][A-Za-z0-9\s&\-'\",.]*?)\s+\$?(?P<price>\d+\.\d{2})\b"
)
_NON_ITEM_WORDS = (
    "total", "subtotal", "tax", "change", "balance", "cash", "credit", "card",
)

_ADVANCED_PATTERNS: dict[str, list[re.Pattern[str]]] = {
    "receipt_id": [
        re.compile(r"(?:receipt|order|transaction)\s+(?:id|no|number|#):?\s*([\w-]+)", re.I),
        re.compile(r"(?:receipt|order|transaction)\W*(\d{5,})", re.I),
    ],
    "cashier": [
        re.compile(r"(?:cashier|associate|served by|operator):?[ \t]*([A-Za-z][\w \t]*)", re.I),
    ],
    "payment_method": [
        re.compile(r"(?:paid by|payment method|payment type|tender):?[ \t]*([A-Za-z][\w \t]*)", re.I),
        re.compile(r"(visa|mastercard|amex|cash|credit|debit|card|check)", re.I),
    ],
    "tax": [
        re.compile(r"(?:tax|vat|gst)\s*(?:\(\d+%\))?:?\s*\$?(\d+\.\d{2})", re.I),
    ],
    "subtotal": [
        re.compile(r"(?:subtotal|sub-total|sub total):?\s*\$?(\d+\.\d{2})", re.I),
    ],
    "discount": [
        re.compile(r"(?:discount|savings|coupon)\s*(?:\(\d+%\))?:?\s*\$?(\d+\.\d{2})", re.I),
    ],
    "loyalty": [
        re.compile(r"(?:loyalty|rewards|club card)\s*(?:number|#|id)?:?\s*(\d[\w]*)", re.I),
        re.compile(r"(?:earned|received)\s*(\d+)\s*(?:points|rewards)", re.I),
    ],
}
_DECIMAL_FIELDS = {"tax", "subtotal", "discount"}


@dataclass
class ParsedText:
    """Intermediate result of text parsing, before validation."""

    total: Decimal | None = None
    date: datetime | None = None
    store: str | None = None
    items: list[ReceiptItem] = field(default_factory=list)


def _to_decimal(value: str) -> Decimal | None:
    try:
        amount = Decimal(value)
    except InvalidOperation:
        return None
    # NaN and Infinity parse but are not amounts
    return amount if amount.is_finite() else None


def parse_total(text: str) -> Decimal | None:
    """Find the receipt total, falling back to the largest amount present."""
    for pattern in _TOTAL_PATTERNS:
        m = pattern.search(text)
        if m:
            return _to_decimal(m.group(1))

    amounts = [_to_decimal(a) for a in _AMOUNT_RE.findall(text)]
    amounts = [a for a in amounts if a is not None]
    return max(amounts) if amounts else None


def _expand_year(year: int) -> int:
    return year + 2000 if year < 100 else year


def parse_date(text: str) -> datetime | None:
    """Find the purchase date. Month-first numeric dates are assumed."""
    m = _NUMERIC_DATE_RE.search(text)
    if m:
        first, second, year = (int(g) for g in m.groups())
        year = _expand_year(year)
        # US month/day first, day/month when the first part can't be a month
        for month, day in ((first, second), (second, first)):
            try:
                return datetime(year, month, day)
            except ValueError:
                continue

    m = _MONTH_DATE_RE.search(text)
    if m:
        month = _MONTHS.index(m.group(1).lower()) + 1
        try:
            return datetime(_expand_year(int(m.group(3))), month, int(m.group(2)))
        except ValueError:
            return None

    return None


def parse_store(lines: list[str]) -> str | None:
    if not lines:
        return None

    for line in lines:
        lower = line.lower()
        if any(store in lower for store in COMMON_STORES):
            return line.strip()

    for line in lines:
        lower = line.lower()
        if (
            not re.match(r"^\d", line)
            and not re.match(r"^\s*\d{1,2}[/\-.\s]\d{1,2}", line)
            and not re.match(r"^\s*\$", line)
            and len(line) > 3
            and "receipt" not in lower
            and "thank you" not in lower
        ):
            return line.strip()

    return lines[0].strip()


def parse_items(text: str, total: Decimal) -> list[ReceiptItem]:
    """Collect ``name  $price`` lines that look like purchased items."""
    items: list[ReceiptItem] = []
    ceiling = total * Decimal("1.2")

    for line in text.splitlines():
        m = _ITEM_LINE_RE.match(line)
        if not m:
            continue
        name = m.group("name").strip()
        price = _to_decimal(m.group("price"))
        lower = name.lower()
        if (
            price is None
            or len(name) <= 2
            or any(word in lower for word in _NON_ITEM_WORDS)
            or price <= 0
            or price >= ceiling
        ):
            continue
        items.append(ReceiptItem(name=name, price=price, category=guess_category(name)))

    return items


def extract_advanced_data(text: str) -> dict[str, Any]:
    """Pull optional fields such as cashier, payment method and tax."""
    data: dict[str, Any] = {}
    for key, patterns in _ADVANCED_PATTERNS.items():
        for pattern in patterns:
            m = pattern.search(text)
            if not m:
                continue
            value = m.group(1).strip()
            if key in _DECIMAL_FIELDS:
                data[key] = _to_decimal(value)
            else:
                data[key] = value
            break
    return data


def extract_structured_data(text: str) -> ParsedText:
    lines = [line for line in text.splitlines() if line.strip()]
    total = parse_total(text)
    return ParsedText(
        total=total,
        date=parse_date(text),
        store=parse_store(lines),
        items=parse_items(text, total) if total else [],
    )


def build_receipt(text: str, captured_at: datetime | None = None) -> ReceiptData:
    """Parse OCR text into ReceiptData.

    Args:
        text: Raw recognized text.
        captured_at: Used as the timestamp when no date is printed.

    Raises:
        ExtractionError: If no positive total or no store name is found.
    """
    if not text or not text.strip():
        raise ExtractionError("No text could be recognized on the receipt.")

    parsed = extract_structured_data(text)
    if parsed.total is None or parsed.total <= 0:
        raise ExtractionError(
            "Could not find the receipt total. Try again with a clearer image."
        )
    if not parsed.store:
        raise ExtractionError(
            "Could not find the store name. Try again with a clearer image."
        )

    timestamp = parsed.date or captured_at or datetime.now(timezone.utc)
    return ReceiptData(
        store=parsed.store,
        total=parsed.total,
        timestamp=timestamp,
        items=tuple(parsed.items),
        raw_text=text,
        timestamp_confident=parsed.date is not None,
        advanced_data=extract_advanced_data(text),
    )


AI_EXTRACTION_PROMPT = """\
This image is a photo of a shopping receipt.
Read it and return a single JSON object (no other text) in this form:
{
  "store": "store name as printed at the top",
  "total": 0.00,
  "date": "YYYY-MM-DD or null if not printed",
  "items": [{"name": "item name", "price": 0.00, "category": "category"}]
}

Use one of these categories for each item:
Produce, Dairy, Meat, Bakery, Pantry, Frozen, Household, Personal Care,
Beverages, Snacks, Other

"total" is the final amount paid, not the subtotal.
"""


def strip_code_fences(text: str) -> str:
    cleaned = text.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        lines = [l for l in lines[1:] if not l.strip().startswith("```")]
        cleaned = "\n".join(lines)
    return cleaned


def parse_ai_response(text: str, captured_at: datetime | None = None) -> ReceiptData:
    """Turn a model's JSON answer into ReceiptData.

    Raises:
        ExtractionError: If the answer is not JSON or lacks a store or total.
    """
    try:
        payload = json.loads(strip_code_fences(text))
    except json.JSONDecodeError as e:
        raise ExtractionError(f"Could not read the receipt analysis: {e}") from e
    if not isinstance(payload, dict):
        raise ExtractionError("Could not read the receipt analysis.")

    store = str(payload.get("store") or "").strip()
    total = _to_decimal(str(payload.get("total") or "0"))
    if total is None or total <= 0:
        raise ExtractionError(
            "Could not find the receipt total. Try again with a clearer image."
        )
    if not store:
        raise ExtractionError(
            "Could not find the store name. Try again with a clearer image."
        )

    date: datetime | None = None
    if payload.get("date"):
        try:
            date = datetime.fromisoformat(str(payload["date"]))
        except ValueError:
            date = None

    raw_items = payload.get("items") or []
    if not isinstance(raw_items, list):
        raise ExtractionError("Could not read the receipt items. Try again.")

    items: list[ReceiptItem] = []
    for entry in raw_items:
        if not isinstance(entry, dict):
            continue
        name = str(entry.get("name", "")).strip()
        price = _to_decimal(str(entry.get("price", "")))
        if not name or price is None or price <= 0:
            continue
        items.append(
            ReceiptItem(
                name=name,
                price=price,
                category=entry.get("category") or guess_category(name),
            )
        )

    return ReceiptData(
        store=store,
        total=total,
        timestamp=date or captured_at or datetime.now(timezone.utc),
        items=tuple(items),
        raw_text=text,
        timestamp_confident=date is not None,
    )
