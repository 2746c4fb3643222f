"""Customer reviews and the average ratings they feed."""

import logging
import uuid
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from food_marketplace.exceptions import NotFoundError, ValidationError
from food_marketplace.models.engagement_models import LikeTargetType, Review, like_target_key
from food_marketplace.repositories.base_repository import CounterMixin
from food_marketplace.repositories.catalog_repositories import (
    ProductRepository,
    RestaurantRepository,
)
from food_marketplace.repositories.engagement_repositories import ReviewRepository

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 50


class ReviewService:
    """Stores reviews and keeps the reviewed entity's ``rating`` current."""

    def __init__(
        self,
        review_repository: ReviewRepository,
        restaurant_repository: RestaurantRepository,
        product_repository: ProductRepository,
    ) -> None:
        self.review_repository = review_repository
        self.restaurant_repository = restaurant_repository
        self.product_repository = product_repository

    async def create_review(
        self,
        rating: int,
        customer_name: str,
        restaurant_id: str | None = None,
        product_id: str | None = None,
        comment: str | None = None,
        customer_email: str | None = None,
        order_id: str | None = None,
    ) -> Review:
        """Store a review and refresh the target's average rating.

        The rating is derived from running ``rating_sum``/``rating_count``
        aggregates written with the review, not from the review index.

        Raises:
            ValidationError: Rating outside 1..5, missing name, or not exactly
                one of restaurant_id / product_id
            NotFoundError: If the reviewed restaurant or product does not exist
        """
        try:
            review = Review(
                review_id=str(uuid.uuid4()),
                rating=rating,
                comment=comment,
                customer_name=customer_name,
                customer_email=customer_email,
                restaurant_id=restaurant_id,
                product_id=product_id,
                order_id=order_id,
                created_at=datetime.now(UTC),
            )
        except PydanticValidationError as e:
            raise ValidationError(e.errors()[0]["msg"]) from e

        if review.restaurant_id:
            target_id = review.restaurant_id
            target: CounterMixin = self.restaurant_repository
            if self.restaurant_repository.get_restaurant(target_id) is None:
                raise NotFoundError(f"Restaurant {target_id} not found")
        else:
            target_id = review.product_id or ""
            target = self.product_repository
            if self.product_repository.get_product(target_id) is None:
                raise NotFoundError(f"Product {target_id} not found")

        self.review_repository.save_review(review, target)
        average = target.refresh_rating(target_id)

        logger.info(
            f"Review {review.review_id} stored for {review.target_key}, average {average:.2f}"
        )
        return review

    async def list_reviews(
        self,
        restaurant_id: str | None = None,
        product_id: str | None = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> dict[str, Any]:
        """One page of a target's reviews, newest first.

        Returns:
            dict with ``reviews`` and ``pagination`` (page, limit, total, pages)

        Raises:
            ValidationError: Not exactly one target, or bad page/limit
        """
        if bool(restaurant_id) == bool(product_id):
            raise ValidationError("Exactly one of restaurant_id or product_id must be provided")
        if page < 1 or not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationError(f"page must be >= 1 and limit between 1 and {MAX_PAGE_SIZE}")

        if restaurant_id:
            target_key = like_target_key(LikeTargetType.RESTAURANT, restaurant_id)
        else:
            target_key = like_target_key(LikeTargetType.PRODUCT, product_id or "")

        reviews = self.review_repository.list_reviews_for_target(target_key)
        start = (page - 1) * limit
        total = len(reviews)

        return {
            "reviews": reviews[start : start + limit],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": (total + limit - 1) // limit,
            },
        }
