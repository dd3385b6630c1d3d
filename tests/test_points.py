"""Tests for receipt points calculation."""

from decimal import Decimal

import pytest

from evuka.points import calculate_points


@pytest.mark.parametrize(
    "total,expected",
    [
        ("0", 0),
        ("12.99", 12),
        ("49.99", 49),
        ("50.00", 60),
        ("99.99", 109),
        ("100.00", 125),
        ("250.75", 275),
    ],
)
def test_base_points_and_bonuses(total, expected):
    assert calculate_points(Decimal(total)) == expected


def test_accepts_float():
    assert calculate_points(50.0) == 60


def test_brand_multiplier():
    assert calculate_points(Decimal("50.00"), brand_multiplier=1.5) == 90


@pytest.mark.parametrize(
    "hours,expected",
    [(0, 60), (24, 60), (30, 30), (48, 30), (72, 6), (72.5, 0), (200, 0)],
)
def test_late_scans_keep_less(hours, expected):
    assert calculate_points(Decimal("50.00"), timing_delta=hours) == expected


def test_negative_total_rejected():
    with pytest.raises(ValueError, match="total"):
        calculate_points(Decimal("-1"))


def test_negative_delta_rejected():
    with pytest.raises(ValueError, match="timing_delta"):
        calculate_points(Decimal("10"), timing_delta=-1)
