"""Like and review models."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator


class LikeTargetType(str, Enum):
    """Entities that can be liked."""

    PRODUCT = "PRODUCT"
    RESTAURANT = "RESTAURANT"


class LikeIdentity(BaseModel):
    """Who is liking: an account phone/email or an anonymous fingerprint."""

    user_phone: str | None = None
    user_email: str | None = None
    user_fingerprint: str | None = None

    @property
    def is_empty(self) -> bool:
        return not (self.user_phone or self.user_email or self.user_fingerprint)

    @property
    def key(self) -> str:
        """Stable dedupe key; phone wins over email, email over fingerprint."""
        if self.user_phone:
            return f"phone#{self.user_phone}"
        if self.user_email:
            return f"email#{self.user_email.lower()}"
        if self.user_fingerprint:
            return f"fp#{self.user_fingerprint}"
        raise ValueError("LikeIdentity has no identifying field")


def like_target_key(target_type: LikeTargetType, target_id: str) -> str:
    return f"{target_type.value}#{target_id}"


class Like(BaseModel):
    """Dedupe record: at most one like per identity per target.

    Stored in DynamoDB with (target_key, identity_key) as composite key.
    """

    target_type: LikeTargetType
    target_id: str
    identity: LikeIdentity
    created_at: datetime

    def to_dynamodb_item(self) -> dict[str, Any]:
        """Convert to DynamoDB item format."""
        item: dict[str, Any] = {
            "target_key": like_target_key(self.target_type, self.target_id),
            "identity_key": self.identity.key,
            "target_type": self.target_type.value,
            "target_id": self.target_id,
            "created_at": self.created_at.isoformat(),
        }
        item.update(self.identity.model_dump(exclude_none=True))
        return item

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "Like":
        """Create Like from DynamoDB item."""
        return cls(
            target_type=LikeTargetType(item["target_type"]),
            target_id=item["target_id"],
            identity=LikeIdentity(
                user_phone=item.get("user_phone"),
                user_email=item.get("user_email"),
                user_fingerprint=item.get("user_fingerprint"),
            ),
            created_at=datetime.fromisoformat(item["created_at"]),
        )


class Review(BaseModel):
    """Customer review of exactly one restaurant or one product."""

    review_id: str = Field(..., description="Unique review identifier")
    rating: int = Field(..., description="Star rating", ge=1, le=5)
    comment: str | None = Field(None, max_length=1000)
    customer_name: str = Field(..., min_length=1, max_length=100)
    customer_email: str | None = None
    restaurant_id: str | None = None
    product_id: str | None = None
    order_id: str | None = None
    created_at: datetime

    @model_validator(mode="after")
    def validate_single_target(self) -> "Review":
        """A review targets either a restaurant or a product, never both."""
        if bool(self.restaurant_id) == bool(self.product_id):
            raise ValueError("Exactly one of restaurant_id or product_id must be provided")
        return self

    @property
    def target_key(self) -> str:
        if self.restaurant_id:
            return like_target_key(LikeTargetType.RESTAURANT, self.restaurant_id)
        return like_target_key(LikeTargetType.PRODUCT, self.product_id or "")

    def to_dynamodb_item(self) -> dict[str, Any]:
        """Convert to DynamoDB item format."""
        item: dict[str, Any] = {
            "review_id": self.review_id,
            "target_key": self.target_key,
            "rating": self.rating,
            "customer_name": self.customer_name,
            "created_at": self.created_at.isoformat(),
        }

        for optional in ("comment", "customer_email", "restaurant_id", "product_id", "order_id"):
            value = getattr(self, optional)
            if value is not None:
                item[optional] = value

        return item

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "Review":
        """Create Review from DynamoDB item."""
        return cls(
            review_id=item["review_id"],
            rating=int(item["rating"]),
            comment=item.get("comment"),
            customer_name=item["customer_name"],
            customer_email=item.get("customer_email"),
            restaurant_id=item.get("restaurant_id"),
            product_id=item.get("product_id"),
            order_id=item.get("order_id"),
            created_at=datetime.fromisoformat(item["created_at"]),
        )
