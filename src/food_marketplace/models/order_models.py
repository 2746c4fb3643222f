"""Order models and the order status state machine.

Orders embed their items so the order and its items are stored as a single
DynamoDB item. Each item snapshots the product name and unit price at creation
time so later catalog changes never alter historic orders.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class OrderStatus(str, Enum):
    """Enumeration of order status values, in lifecycle order."""

    RECEIVED = "RECEIVED"
    PREPARING = "PREPARING"
    READY = "READY"
    DELIVERING = "DELIVERING"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        """Whether no further transition is permitted from this status."""
        return self in TERMINAL_STATUSES


class PaymentStatus(str, Enum):
    """Enumeration of payment status values."""

    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"


class PaymentMethod(str, Enum):
    """Supported payment methods."""

    CASH_ON_DELIVERY = "CASH_ON_DELIVERY"
    ONLINE = "ONLINE"


class DeliveryType(str, Enum):
    """How the order reaches the customer."""

    DELIVERY = "DELIVERY"
    PICKUP = "PICKUP"


class CustomerType(str, Enum):
    """Whether an order was placed by a guest or a registered account."""

    GUEST = "guest"
    REGISTERED = "registered"


# Forward progression; DELIVERING is optional (pickup orders skip it).
STATUS_SEQUENCE: tuple[OrderStatus, ...] = (
    OrderStatus.RECEIVED,
    OrderStatus.PREPARING,
    OrderStatus.READY,
    OrderStatus.DELIVERING,
    OrderStatus.DELIVERED,
)

TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})

PENDING_STATUSES = frozenset(
    {
        OrderStatus.RECEIVED,
        OrderStatus.PREPARING,
        OrderStatus.READY,
        OrderStatus.DELIVERING,
    }
)


def transition_error(current: OrderStatus, new: OrderStatus) -> str | None:
    """Check whether an order may move from ``current`` to ``new``.

    Args:
        current: Status currently stored on the order
        new: Requested status

    Returns:
        None if the transition is allowed, otherwise a human-readable reason
    """
    if current == new:
        return f"Order is already {current.value}"

    if current.is_terminal:
        return f"Order is {current.value} and can no longer change status"

    if new == OrderStatus.CANCELLED:
        return None

    if STATUS_SEQUENCE.index(new) < STATUS_SEQUENCE.index(current):
        return f"Cannot move order back from {current.value} to {new.value}"

    return None


class OrderItem(BaseModel):
    """Line of an order with a frozen price snapshot."""

    product_id: str = Field(..., description="Product identifier")
    product_name: str = Field(..., description="Product name at order time")
    quantity: int = Field(..., description="Ordered quantity", ge=1)
    unit_price: int = Field(..., description="Unit price at order time", ge=0)

    @property
    def subtotal(self) -> int:
        """Line subtotal in minor units."""
        return self.unit_price * self.quantity

    def to_dynamodb_item(self) -> dict[str, Any]:
        """Convert to a nested DynamoDB map."""
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
        }

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "OrderItem":
        """Create OrderItem from a nested DynamoDB map."""
        return cls(
            product_id=item["product_id"],
            product_name=item["product_name"],
            quantity=int(item["quantity"]),
            unit_price=int(item["unit_price"]),
        )


class Order(BaseModel):
    """Customer order placed with exactly one restaurant.

    Stored in DynamoDB with order_id as partition key. Secondary indexes on
    (restaurant_id, created_at) and order_number support dashboards and
    public tracking.
    """

    order_id: str = Field(..., description="Unique order identifier")
    order_number: str = Field(..., description="Human-readable order number")
    restaurant_id: str = Field(..., description="Restaurant fulfilling the order")
    user_id: str | None = Field(None, description="Registered customer, None for guests")
    customer_name: str = Field(..., description="Customer name")
    customer_phone: str = Field(..., description="Customer phone number")
    customer_email: str | None = Field(None, description="Customer email")
    address: str = Field(..., description="Delivery address")
    delivery_type: DeliveryType = Field(..., description="Delivery or pickup")
    payment_method: PaymentMethod = Field(..., description="Payment method")
    payment_status: PaymentStatus = Field(default=PaymentStatus.PENDING)
    status: OrderStatus = Field(default=OrderStatus.RECEIVED)
    total: int = Field(..., description="Sum of item subtotals, excluding delivery", ge=0)
    delivery_fee: int = Field(default=0, description="Delivery fee charged", ge=0)
    notes: str | None = Field(None, description="Customer notes")
    estimated_time: int | None = Field(None, description="Estimated minutes", ge=0)
    items: list[OrderItem] = Field(..., min_length=1)
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")

    @property
    def grand_total(self) -> int:
        """Amount due including delivery."""
        return self.total + self.delivery_fee

    def to_dynamodb_item(self) -> dict[str, Any]:
        """Convert to DynamoDB item format.

        Returns:
            dict: DynamoDB-compatible representation
        """
        item: dict[str, Any] = {
            "order_id": self.order_id,
            "order_number": self.order_number,
            "restaurant_id": self.restaurant_id,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "address": self.address,
            "delivery_type": self.delivery_type.value,
            "payment_method": self.payment_method.value,
            "payment_status": self.payment_status.value,
            "status": self.status.value,
            "total": self.total,
            "delivery_fee": self.delivery_fee,
            "items": [order_item.to_dynamodb_item() for order_item in self.items],
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

        for optional in ("user_id", "customer_email", "notes", "estimated_time"):
            value = getattr(self, optional)
            if value is not None:
                item[optional] = value

        return item

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "Order":
        """Create Order from DynamoDB item.

        Args:
            item: DynamoDB item dictionary

        Returns:
            Order: Parsed model instance
        """
        estimated_time = item.get("estimated_time")
        return cls(
            order_id=item["order_id"],
            order_number=item["order_number"],
            restaurant_id=item["restaurant_id"],
            user_id=item.get("user_id"),
            customer_name=item["customer_name"],
            customer_phone=item["customer_phone"],
            customer_email=item.get("customer_email"),
            address=item["address"],
            delivery_type=DeliveryType(item["delivery_type"]),
            payment_method=PaymentMethod(item["payment_method"]),
            payment_status=PaymentStatus(item["payment_status"]),
            status=OrderStatus(item["status"]),
            total=int(item["total"]),
            delivery_fee=int(item.get("delivery_fee", 0)),
            notes=item.get("notes"),
            estimated_time=int(estimated_time) if estimated_time is not None else None,
            items=[OrderItem.from_dynamodb_item(entry) for entry in item["items"]],
            created_at=datetime.fromisoformat(item["created_at"]),
            updated_at=datetime.fromisoformat(item["updated_at"]),
        )


class OrderLineRequest(BaseModel):
    """Requested order line as sent by the checkout form."""

    product_id: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1)
    unit_price: int | None = Field(
        None, description="Price seen by the client; informational only", ge=0
    )


class CheckoutDetails(BaseModel):
    """Customer and fulfilment details collected at checkout."""

    customer_name: str = Field(..., min_length=1, max_length=100)
    customer_phone: str = Field(..., min_length=9, max_length=15)
    customer_email: str | None = Field(None, description="Optional contact email")
    address: str = Field(..., min_length=1)
    delivery_type: DeliveryType = Field(default=DeliveryType.DELIVERY)
    payment_method: PaymentMethod = Field(default=PaymentMethod.CASH_ON_DELIVERY)
    notes: str | None = None
    user_id: str | None = None

    @field_validator("customer_email")
    @classmethod
    def validate_customer_email(cls, v: str | None) -> str | None:
        """Treat blank emails as absent and reject obviously malformed ones."""
        if v is None or v.strip() == "":
            return None
        if "@" not in v or v.startswith("@") or v.endswith("@"):
            raise ValueError("customer_email must be a valid email address")
        return v.strip()


class CreateOrderRequest(CheckoutDetails):
    """Full order creation request: checkout details plus lines."""

    items: list[OrderLineRequest] = Field(default_factory=list)


def filter_orders(
    orders: list[Order],
    status: OrderStatus | None = None,
    customer_type: CustomerType | None = None,
) -> list[Order]:
    """Keep the orders matching an optional status and customer type."""
    if status is not None:
        orders = [order for order in orders if order.status == status]
    if customer_type == CustomerType.GUEST:
        orders = [order for order in orders if order.user_id is None]
    elif customer_type == CustomerType.REGISTERED:
        orders = [order for order in orders if order.user_id is not None]
    return orders
