"""Custom metrics for the marketplace service."""

from opentelemetry import metrics

meter = metrics.get_meter("marketplace-svc")

orders_created_counter = meter.create_counter(
    name="orders_created_total",
    description="Total number of orders created by delivery type",
    unit="1",
)

order_rejected_counter = meter.create_counter(
    name="orders_rejected_total",
    description="Order creations rejected by reason",
    unit="1",
)

order_value_histogram = meter.create_histogram(
    name="order_value_minor_units",
    description="Item total of created orders in minor currency units",
    unit="1",
)

status_transition_counter = meter.create_counter(
    name="order_status_transitions_total",
    description="Order status transitions by target status",
    unit="1",
)

likes_counter = meter.create_up_down_counter(
    name="likes_net_total",
    description="Net like changes by target type",
    unit="1",
)


def record_order_created(delivery_type: str, total: int) -> None:
    """Record a successfully stored order.

    Args:
        delivery_type: DELIVERY or PICKUP
        total: Item total in minor units
    """
    orders_created_counter.add(1, {"delivery_type": delivery_type})
    order_value_histogram.record(total, {"delivery_type": delivery_type})


def record_order_rejected(reason: str) -> None:
    """Record an order creation that failed validation.

    Args:
        reason: Error class name
    """
    order_rejected_counter.add(1, {"reason": reason})


def record_status_transition(from_status: str, to_status: str) -> None:
    """Record an applied status transition."""
    status_transition_counter.add(1, {"from": from_status, "to": to_status})


def record_like_change(target_type: str, change: int) -> None:
    """Record a like (+1) or unlike (-1).

    Args:
        target_type: PRODUCT or RESTAURANT
        change: +1 or -1
    """
    likes_counter.add(change, {"target_type": target_type})
