"""Tests for OCR text parsing."""

import json
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from evuka.errors import ExtractionError
from evuka.extraction.parser import (
    build_receipt,
    extract_advanced_data,
    parse_ai_response,
    parse_date,
    parse_items,
    parse_store,
    parse_total,
    strip_code_fences,
)

WALMART_TEXT = """\
WALMART SUPERCENTER
123 Main St
01/15/2024 14:32
Bananas 1.29
Whole Milk 3.49
Bread $2.29
SUBTOTAL 7.07
TAX 0.57
TOTAL $7.64
VISA ending 1234
Cashier: Maria
THANK YOU
"""


class TestParseTotal:
    def test_total_line_preferred_over_subtotal(self):
        assert parse_total(WALMART_TEXT) == Decimal("7.64")

    def test_amount_due(self):
        assert parse_total("Corner Shop\nAmount due: 18.20\n") == Decimal("18.20")

    def test_whole_number_total(self):
        assert parse_total("Corner Shop\nTotal 18\n") == Decimal("18")

    def test_dollar_amount(self):
        assert parse_total("Corner Shop\nPaid $4.10\n") == Decimal("4.10")

    def test_largest_amount_fallback(self):
        assert parse_total("Corner Shop\n4.50\n12.00\n3.25\n") == Decimal("12.00")

    def test_no_amount(self):
        assert parse_total("nothing to see here") is None


class TestParseDate:
    def test_month_first(self):
        assert parse_date("01/15/2024") == datetime(2024, 1, 15)

    def test_day_first_when_month_invalid(self):
        assert parse_date("25/12/2023") == datetime(2023, 12, 25)

    def test_two_digit_year(self):
        assert parse_date("3-7-24") == datetime(2024, 3, 7)

    def test_month_name(self):
        assert parse_date("Visited Jan 5, 2024 at noon") == datetime(2024, 1, 5)
        assert parse_date("September 30 2023") == datetime(2023, 9, 30)

    def test_no_date(self):
        assert parse_date("no date on this one") is None


class TestParseStore:
    def test_known_chain(self):
        lines = ["Welcome!", "Trader Joe's #552", "Total 10.00"]
        assert parse_store(lines) == "Trader Joe's #552"

    def test_first_plausible_line(self):
        lines = ["RECEIPT", "2024-01-01", "$5.00", "Corner Market", "Milk 2.00"]
        assert parse_store(lines) == "Corner Market"

    def test_falls_back_to_first_line(self):
        assert parse_store(["123", "456"]) == "123"

    def test_empty(self):
        assert parse_store([]) is None


class TestParseItems:
    def test_items_with_categories(self):
        items = parse_items(WALMART_TEXT, Decimal("7.64"))
        assert [i.name for i in items] == ["Bananas", "Whole Milk", "Bread"]
        assert [i.price for i in items] == [
            Decimal("1.29"), Decimal("3.49"), Decimal("2.29"),
        ]
        assert [i.category for i in items] == ["Produce", "Dairy", "Bakery"]

    def test_price_above_ceiling_skipped(self):
        items = parse_items("Television 499.00\nCable 9.99\n", Decimal("10.00"))
        assert [i.name for i in items] == ["Cable"]

    def test_short_names_skipped(self):
        assert parse_items("AB 1.00\n", Decimal("5.00")) == []


class TestAdvancedData:
    def test_extracts_fields(self):
        data = extract_advanced_data(WALMART_TEXT)
        assert data["cashier"] == "Maria"
        assert data["payment_method"].upper() == "VISA"
        assert data["tax"] == Decimal("0.57")
        assert data["subtotal"] == Decimal("7.07")

    def test_receipt_id_and_loyalty(self):
        text = "Receipt #: A-10023\nLoyalty number: 55512\nDiscount 1.50\n"
        data = extract_advanced_data(text)
        assert data["receipt_id"] == "A-10023"
        assert data["loyalty"] == "55512"
        assert data["discount"] == Decimal("1.50")


class TestBuildReceipt:
    def test_full_receipt(self):
        receipt = build_receipt(WALMART_TEXT)
        assert receipt.store == "WALMART SUPERCENTER"
        assert receipt.total == Decimal("7.64")
        assert receipt.timestamp == datetime(2024, 1, 15)
        assert receipt.timestamp_confident is True
        assert len(receipt.items) == 3
        assert receipt.raw_text == WALMART_TEXT
        assert receipt.advanced_data["cashier"] == "Maria"

    def test_missing_date_uses_capture_time(self):
        captured = datetime(2024, 6, 1, 9, 0, tzinfo=timezone.utc)
        receipt = build_receipt("Corner Market\nTotal 12.50\n", captured_at=captured)
        assert receipt.timestamp == captured
        assert receipt.timestamp_confident is False

    def test_no_total_raises(self):
        with pytest.raises(ExtractionError, match="total"):
            build_receipt("Corner Market\nthanks for shopping\n")

    def test_zero_total_raises(self):
        with pytest.raises(ExtractionError, match="total"):
            build_receipt("Corner Market\nTotal 0.00\n")

    def test_empty_text_raises(self):
        with pytest.raises(ExtractionError):
            build_receipt("   \n")

    def test_receipt_is_immutable(self):
        receipt = build_receipt(WALMART_TEXT)
        with pytest.raises(AttributeError):
            receipt.total = Decimal("1.00")


class TestAIResponse:
    def test_strip_code_fences(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
        assert strip_code_fences('{"a": 1}') == '{"a": 1}'

    def test_parse_json_object(self):
        text = json.dumps({
            "store": "Target",
            "total": 23.47,
            "date": "2024-02-29",
            "items": [
                {"name": "Yogurt", "price": 1.49, "category": "Dairy"},
                {"name": "Chips", "price": 3.79},
                {"name": "", "price": 1.00},
            ],
        })
        receipt = parse_ai_response(text)
        assert receipt.store == "Target"
        assert receipt.total == Decimal("23.47")
        assert receipt.timestamp == datetime(2024, 2, 29)
        assert receipt.timestamp_confident is True
        assert [i.name for i in receipt.items] == ["Yogurt", "Chips"]
        assert receipt.items[1].category == "Snacks"

    def test_parse_with_fences_and_null_date(self):
        captured = datetime(2024, 5, 5, tzinfo=timezone.utc)
        text = '```json\n{"store": "Aldi", "total": "9.10", "date": null, "items": []}\n```'
        receipt = parse_ai_response(text, captured_at=captured)
        assert receipt.store == "Aldi"
        assert receipt.timestamp == captured
        assert receipt.timestamp_confident is False

    def test_invalid_json(self):
        with pytest.raises(ExtractionError, match="Could not read"):
            parse_ai_response("I could not read this receipt, sorry.")

    def test_missing_store(self):
        with pytest.raises(ExtractionError, match="store"):
            parse_ai_response(json.dumps({"store": "", "total": 5}))

    @pytest.mark.parametrize("total", ["NaN", "Infinity", "-inf"])
    def test_non_numeric_total(self, total):
        with pytest.raises(ExtractionError, match="total"):
            parse_ai_response(json.dumps({"store": "Target", "total": total}))

    def test_item_entries_that_are_not_objects_are_skipped(self):
        text = json.dumps({
            "store": "Target",
            "total": "3.49",
            "items": ["milk 3.49", {"name": "Milk", "price": "3.49"}, {"name": "Bad", "price": "nan"}],
        })
        receipt = parse_ai_response(text)
        assert [i.name for i in receipt.items] == ["Milk"]

    def test_items_not_a_list(self):
        text = json.dumps({"store": "Target", "total": "3.49", "items": "milk 3.49"})
        with pytest.raises(ExtractionError, match="items"):
            parse_ai_response(text)
