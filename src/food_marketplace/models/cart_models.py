"""Cart state models.

``CartState`` is the serialized form of a cart session, exchanged with the
persistence boundary (DynamoDB for server-mirrored carts).
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

MAX_NOTES_LENGTH = 500


class CartRestaurant(BaseModel):
    """Snapshot of the restaurant a cart is scoped to."""

    restaurant_id: str
    name: str
    delivery_fee: int = Field(default=0, ge=0)


class CartLine(BaseModel):
    """One product + quantity + notes entry, identified by its own line id."""

    line_id: str = Field(..., description="Unique line identifier")
    product_id: str = Field(..., description="Product identifier")
    name: str = Field(..., description="Product name when added")
    price: int = Field(..., description="Unit price when added", ge=0)
    image_url: str | None = None
    restaurant_id: str = Field(..., description="Restaurant the product belongs to")
    quantity: int = Field(default=1, ge=1)
    notes: str = Field(default="", max_length=MAX_NOTES_LENGTH)

    @property
    def subtotal(self) -> int:
        """Line subtotal in minor units."""
        return self.price * self.quantity


class CartState(BaseModel):
    """Serializable cart snapshot."""

    session_id: str | None = Field(None, description="Owning session for mirrored carts")
    lines: list[CartLine] = Field(default_factory=list)
    current_restaurant: CartRestaurant | None = None
    is_open: bool = False
    updated_at: datetime | None = None

    def to_dynamodb_item(self) -> dict[str, Any]:
        """Convert to DynamoDB item format.

        Returns:
            dict: DynamoDB-compatible representation
        """
        item: dict[str, Any] = self.model_dump(mode="json", exclude_none=True)
        # Optional line fields are dropped so nested maps carry no nulls.
        item["lines"] = [line.model_dump(mode="json", exclude_none=True) for line in self.lines]
        return item

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "CartState":
        """Create CartState from DynamoDB item.

        Numbers come back from DynamoDB as Decimal; pydantic coerces them.
        """
        return cls.model_validate(item)


class CartEventType(str, Enum):
    """Cart mutation notifications for the UI layer."""

    ITEM_ADDED = "item_added"
    ITEM_REMOVED = "item_removed"
    CLEARED = "cleared"


class CartEvent(BaseModel):
    """Notification emitted after a cart mutation."""

    event_type: CartEventType
    title: str
    message: str
