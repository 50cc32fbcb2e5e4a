"""Order total calculation and order number generation."""

import random
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from src.models.order import OrderLineItem, OrderTotals

ORDER_NUMBER_SUFFIX_DIGITS = 3


def _to_decimal(value: int | float | Decimal | str) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _to_number(value: Decimal) -> int | float:
    """Return ints for whole amounts so JSON stays free of trailing .0."""
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def line_total(price: int | float | Decimal, quantity: int) -> int | float:
    """Compute a line total from a unit price and quantity."""
    return _to_number(_to_decimal(price) * quantity)


def calculate_totals(
    items: Iterable[OrderLineItem],
    free_delivery_threshold: int | float = 500,
    delivery_charge: int | float = 30,
    tax_rate: float = 0.05,
) -> OrderTotals:
    """Derive subtotal, delivery charge, tax and total from line items.

    Delivery is free when the subtotal reaches the threshold. Tax is a flat
    rate on the subtotal rounded half-up to a whole currency unit.

    Args:
        items: Line items with their snapshotted `total`.
        free_delivery_threshold: Subtotal at or above which delivery is free.
        delivery_charge: Charge applied below the threshold.
        tax_rate: Flat tax rate.

    Returns:
        OrderTotals: The four monetary fields. `total_amount` always equals
        `subtotal + delivery_charge + tax`.
    """
    subtotal = sum((_to_decimal(item["total"]) for item in items), Decimal(0))
    charge = Decimal(0) if subtotal >= _to_decimal(free_delivery_threshold) else _to_decimal(delivery_charge)
    tax = (subtotal * _to_decimal(tax_rate)).quantize(Decimal(1), rounding=ROUND_HALF_UP)

    return {
        "subtotal": _to_number(subtotal),
        "delivery_charge": _to_number(charge),
        "tax": int(tax),
        "total_amount": _to_number(subtotal + charge + tax),
    }


def generate_order_number(
    prefix: str = "ORD",
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> str:
    """Generate an order number such as ``ORD251019042``.

    Format is prefix, two-digit year, month, day and a random three-digit
    suffix. Collisions are possible; uniqueness is enforced by the store.
    """
    now = now or datetime.now(timezone.utc)
    rng = rng or random
    suffix = rng.randrange(10**ORDER_NUMBER_SUFFIX_DIGITS)
    return f"{prefix}{now:%y%m%d}{suffix:0{ORDER_NUMBER_SUFFIX_DIGITS}d}"
