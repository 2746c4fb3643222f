"""Catalog models: restaurants and products.

Prices and fees are integers in minor currency units (e.g. XOF).
"""

from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field


def _rating_from_item(value: Any) -> float:
    return float(value) if value is not None else 0.0


class Restaurant(BaseModel):
    """Restaurant storefront."""

    restaurant_id: str = Field(..., description="Unique restaurant identifier")
    name: str = Field(..., description="Display name", min_length=1, max_length=100)
    description: str | None = Field(None, description="Restaurant description")
    address: str = Field(..., description="Street address")
    phone: str = Field(..., description="Contact phone number")
    email: str = Field(..., description="Contact email")
    cuisine: str = Field(..., description="Cuisine type")
    delivery_fee: int = Field(default=0, description="Delivery fee in minor units", ge=0)
    min_order_amount: int = Field(default=0, description="Minimum item subtotal", ge=0)
    is_active: bool = Field(default=True, description="Whether the restaurant takes orders")
    rating: float = Field(default=0.0, description="Average review rating", ge=0, le=5)
    rating_sum: int = Field(default=0, description="Sum of all review ratings", ge=0)
    rating_count: int = Field(default=0, description="Number of reviews", ge=0)
    likes_count: int = Field(default=0, description="Denormalized like counter", ge=0)
    image_url: str | None = Field(None, description="URL to restaurant image")

    def to_dynamodb_item(self) -> dict[str, Any]:
        """Convert to DynamoDB item format.

        Returns:
            dict: DynamoDB-compatible representation
        """
        item: dict[str, Any] = {
            "restaurant_id": self.restaurant_id,
            "name": self.name,
            "address": self.address,
            "phone": self.phone,
            "email": self.email,
            "cuisine": self.cuisine,
            "delivery_fee": self.delivery_fee,
            "min_order_amount": self.min_order_amount,
            "is_active": self.is_active,
            "rating": Decimal(str(self.rating)),
            "rating_sum": self.rating_sum,
            "rating_count": self.rating_count,
            "likes_count": self.likes_count,
        }

        if self.description is not None:
            item["description"] = self.description

        if self.image_url is not None:
            item["image_url"] = self.image_url

        return item

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "Restaurant":
        """Create Restaurant from DynamoDB item.

        Args:
            item: DynamoDB item dictionary

        Returns:
            Restaurant: Parsed model instance
        """
        return cls(
            restaurant_id=item["restaurant_id"],
            name=item["name"],
            description=item.get("description"),
            address=item["address"],
            phone=item["phone"],
            email=item["email"],
            cuisine=item["cuisine"],
            delivery_fee=int(item.get("delivery_fee", 0)),
            min_order_amount=int(item.get("min_order_amount", 0)),
            is_active=item.get("is_active", True),
            rating=_rating_from_item(item.get("rating")),
            rating_sum=int(item.get("rating_sum", 0)),
            rating_count=int(item.get("rating_count", 0)),
            likes_count=max(int(item.get("likes_count", 0)), 0),
            image_url=item.get("image_url"),
        )


class Product(BaseModel):
    """Product on a restaurant's menu."""

    product_id: str = Field(..., description="Unique product identifier")
    restaurant_id: str = Field(..., description="Restaurant this product belongs to")
    category_id: str = Field(..., description="Category this product belongs to")
    name: str = Field(..., description="Product name", min_length=1, max_length=100)
    description: str | None = Field(None, description="Product description")
    price: int = Field(..., description="Unit price in minor units", gt=0)
    image_url: str | None = Field(None, description="URL to product image")
    active: bool = Field(default=True, description="Whether the product can be ordered")
    rating: float = Field(default=0.0, description="Average review rating", ge=0, le=5)
    rating_sum: int = Field(default=0, description="Sum of all review ratings", ge=0)
    rating_count: int = Field(default=0, description="Number of reviews", ge=0)
    likes_count: int = Field(default=0, description="Denormalized like counter", ge=0)

    def to_dynamodb_item(self) -> dict[str, Any]:
        """Convert to DynamoDB item format."""
        item: dict[str, Any] = {
            "product_id": self.product_id,
            "restaurant_id": self.restaurant_id,
            "category_id": self.category_id,
            "name": self.name,
            "price": self.price,
            "active": self.active,
            "rating": Decimal(str(self.rating)),
            "rating_sum": self.rating_sum,
            "rating_count": self.rating_count,
            "likes_count": self.likes_count,
        }

        if self.description is not None:
            item["description"] = self.description

        if self.image_url is not None:
            item["image_url"] = self.image_url

        return item

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "Product":
        """Create Product from DynamoDB item."""
        return cls(
            product_id=item["product_id"],
            restaurant_id=item["restaurant_id"],
            category_id=item["category_id"],
            name=item["name"],
            description=item.get("description"),
            price=int(item["price"]),
            image_url=item.get("image_url"),
            active=item.get("active", True),
            rating=_rating_from_item(item.get("rating")),
            rating_sum=int(item.get("rating_sum", 0)),
            rating_count=int(item.get("rating_count", 0)),
            likes_count=max(int(item.get("likes_count", 0)), 0),
        )
