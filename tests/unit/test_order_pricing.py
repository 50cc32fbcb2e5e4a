"""Unit tests for order total calculation and order number generation."""

import random
import re
from datetime import datetime, timezone

import pytest

from src.services.order_pricing import calculate_totals, generate_order_number, line_total


def _items(*totals: int | float) -> list[dict]:
    return [{"product_id": f"p{i}", "quantity": 1, "price": total, "total": total} for i, total in enumerate(totals)]


class TestCalculateTotals:
    """Tests for calculate_totals."""

    def test_below_threshold_adds_delivery_charge(self) -> None:
        """Test the 300 subtotal example: delivery 30, tax 15, total 345."""
        totals = calculate_totals(_items(300))

        assert totals == {"subtotal": 300, "delivery_charge": 30, "tax": 15, "total_amount": 345}

    def test_above_threshold_is_free_delivery(self) -> None:
        """Test the 600 subtotal example: delivery 0, tax 30, total 630."""
        totals = calculate_totals(_items(400, 200))

        assert totals == {"subtotal": 600, "delivery_charge": 0, "tax": 30, "total_amount": 630}

    @pytest.mark.parametrize(
        ("subtotal", "expected_charge"),
        [(499, 30), (500, 0), (501, 0), (0, 30)],
    )
    def test_threshold_boundary(self, subtotal: int, expected_charge: int) -> None:
        """Test that delivery is free at exactly the threshold."""
        assert calculate_totals(_items(subtotal))["delivery_charge"] == expected_charge

    @pytest.mark.parametrize(
        ("subtotal", "expected_tax"),
        [(10, 1), (30, 2), (29, 1), (99, 5), (1000, 50)],
    )
    def test_tax_rounds_half_up(self, subtotal: int, expected_tax: int) -> None:
        """Test that tax rounds half-up to a whole unit."""
        assert calculate_totals(_items(subtotal))["tax"] == expected_tax

    def test_total_is_sum_of_parts(self) -> None:
        """Test the total invariant on fractional prices."""
        totals = calculate_totals(_items(49.5, 49.5, 12.25))

        assert totals["subtotal"] == 111.25
        assert totals["total_amount"] == totals["subtotal"] + totals["delivery_charge"] + totals["tax"]

    def test_uses_configured_constants(self) -> None:
        """Test that threshold, charge and rate can be overridden."""
        totals = calculate_totals(_items(800), free_delivery_threshold=1000, delivery_charge=50, tax_rate=0.18)

        assert totals == {"subtotal": 800, "delivery_charge": 50, "tax": 144, "total_amount": 994}

    def test_whole_amounts_stay_integers(self) -> None:
        """Test that whole amounts are returned as ints."""
        totals = calculate_totals(_items(300))

        assert all(isinstance(value, int) for value in totals.values())


class TestLineTotal:
    """Tests for line_total."""

    def test_multiplies_price_by_quantity(self) -> None:
        assert line_total(100, 3) == 300

    def test_avoids_float_drift(self) -> None:
        assert line_total(0.1, 3) == 0.3


class TestGenerateOrderNumber:
    """Tests for generate_order_number."""

    def test_format_uses_prefix_date_and_suffix(self) -> None:
        """Test prefix + YYMMDD + three digits."""
        now = datetime(2025, 3, 7, 12, 0, tzinfo=timezone.utc)

        number = generate_order_number("ORD", now=now, rng=random.Random(1))

        assert re.fullmatch(r"ORD250307\d{3}", number)

    def test_suffix_is_zero_padded(self) -> None:
        """Test that small suffixes keep three digits."""

        class FixedRandom(random.Random):
            def randrange(self, *args, **kwargs) -> int:
                return 7

        now = datetime(2025, 12, 31, tzinfo=timezone.utc)

        assert generate_order_number("ORD", now=now, rng=FixedRandom()) == "ORD251231007"

    def test_custom_prefix(self) -> None:
        number = generate_order_number("MS")

        assert re.fullmatch(r"MS\d{9}", number)
