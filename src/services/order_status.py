"""Order status state machine.

Fulfilment moves one stage at a time:
pending -> confirmed -> preparing -> ready -> out_for_delivery -> delivered.
Any non-terminal order can be cancelled. Delivered and cancelled are terminal.
"""

from datetime import datetime, timedelta, timezone

from src.api.middleware.error_handler import InvalidStateError, ValidationError
from src.models.order import Order, OrderStatus, OrderUpdate, StatusChange

VALID_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PREPARING, OrderStatus.CANCELLED},
    OrderStatus.PREPARING: {OrderStatus.READY, OrderStatus.CANCELLED},
    OrderStatus.READY: {OrderStatus.OUT_FOR_DELIVERY, OrderStatus.CANCELLED},
    OrderStatus.OUT_FOR_DELIVERY: {OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}

TERMINAL_STATES: frozenset[OrderStatus] = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})


def parse_status(value: str | OrderStatus) -> OrderStatus:
    """Convert a raw status string to an OrderStatus.

    Raises:
        ValidationError: If the value is not a known status.
    """
    try:
        return OrderStatus(value)
    except ValueError:
        valid = ", ".join(s.value for s in OrderStatus)
        raise ValidationError(
            f"Invalid status. Must be one of: {valid}",
            details=[{"loc": ["status"], "msg": f"unknown status '{value}'", "type": "enum"}],
        ) from None


def is_terminal(status: str | OrderStatus) -> bool:
    """Check whether no further transitions are possible."""
    return OrderStatus(status) in TERMINAL_STATES


def can_transition(current: str | OrderStatus, target: str | OrderStatus) -> bool:
    """Check whether `current -> target` is an allowed transition."""
    return OrderStatus(target) in VALID_TRANSITIONS[OrderStatus(current)]


def ensure_transition(current: str | OrderStatus, target: str | OrderStatus) -> None:
    """Raise InvalidStateError unless `current -> target` is allowed."""
    current = OrderStatus(current)
    target = OrderStatus(target)
    if current in TERMINAL_STATES:
        raise InvalidStateError(f"Order is already {current.value} and can no longer change status")
    if target not in VALID_TRANSITIONS[current]:
        allowed = ", ".join(sorted(s.value for s in VALID_TRANSITIONS[current]))
        raise InvalidStateError(
            f"Cannot change order status from {current.value} to {target.value}. Allowed: {allowed}"
        )


def build_transition_update(
    order: Order,
    target: OrderStatus,
    notes: str = "",
    delivery_boy: str | None = None,
    delivery_phone: str | None = None,
    now: datetime | None = None,
    estimated_delivery_minutes: int = 30,
) -> OrderUpdate:
    """Build the field changes for moving `order` to `target`.

    The caller must have validated the transition. Timestamps are stamped
    only for the stage that owns them, and a history entry is appended.
    """
    now = now or datetime.now(timezone.utc)
    stamp = now.isoformat()

    update: OrderUpdate = {"order_status": target.value, "updated_at": stamp}

    if delivery_boy:
        update["delivery_boy"] = delivery_boy
    if delivery_phone:
        update["delivery_phone"] = delivery_phone

    if target is OrderStatus.OUT_FOR_DELIVERY:
        update["estimated_delivery"] = (now + timedelta(minutes=estimated_delivery_minutes)).isoformat()
    elif target is OrderStatus.DELIVERED:
        update["delivered_at"] = stamp
    elif target is OrderStatus.CANCELLED:
        update["cancelled_at"] = stamp
        update["cancellation_reason"] = notes

    entry: StatusChange = {"status": target.value, "changed_at": stamp, "notes": notes}
    update["status_history"] = [*order.get("status_history", []), entry]
    return update
