"""Likes on products and restaurants, deduplicated per identity."""

import logging
from datetime import UTC, datetime

from pydantic import BaseModel

from food_marketplace.exceptions import NotFoundError, ValidationError
from food_marketplace.models.engagement_models import Like, LikeIdentity, LikeTargetType
from food_marketplace.observability import traced
from food_marketplace.observability.metrics import record_like_change
from food_marketplace.repositories.base_repository import CounterMixin
from food_marketplace.repositories.catalog_repositories import (
    ProductRepository,
    RestaurantRepository,
)
from food_marketplace.repositories.engagement_repositories import LikeRepository

logger = logging.getLogger(__name__)


class LikeResult(BaseModel):
    """Outcome of a like command."""

    target_type: LikeTargetType
    target_id: str
    liked: bool
    likes_count: int


class LikeService:
    """Maintains like rows and the denormalized ``likes_count`` on targets.

    The like row and the counter change in one transaction, so repeated
    likes or unlikes from the same identity are no-ops and a failed write
    leaves neither behind.
    """

    def __init__(
        self,
        like_repository: LikeRepository,
        restaurant_repository: RestaurantRepository,
        product_repository: ProductRepository,
    ) -> None:
        self.like_repository = like_repository
        self.restaurant_repository = restaurant_repository
        self.product_repository = product_repository

    def _counter(self, target_type: LikeTargetType) -> CounterMixin:
        if target_type == LikeTargetType.RESTAURANT:
            return self.restaurant_repository
        return self.product_repository

    def _likes_count(self, target_type: LikeTargetType, target_id: str) -> int:
        if target_type == LikeTargetType.RESTAURANT:
            target = self.restaurant_repository.get_restaurant(target_id)
        else:
            target = self.product_repository.get_product(target_id)

        if target is None:
            raise NotFoundError(f"{target_type.value.capitalize()} {target_id} not found")
        return target.likes_count

    @staticmethod
    def _check_identity(identity: LikeIdentity) -> None:
        if identity.is_empty:
            raise ValidationError("A phone, email or fingerprint is required to like")

    @traced("like.set")
    async def set_like(
        self,
        target_type: LikeTargetType,
        target_id: str,
        identity: LikeIdentity,
        liked: bool,
    ) -> LikeResult:
        """Make the identity's like state on a target equal ``liked``.

        Args:
            target_type: PRODUCT or RESTAURANT
            target_id: Target identifier
            identity: Phone, email or fingerprint of the caller
            liked: Desired state

        Returns:
            LikeResult with the final state and counter

        Raises:
            ValidationError: If the identity is empty
            NotFoundError: If the target does not exist
        """
        self._check_identity(identity)
        self._likes_count(target_type, target_id)
        counter = self._counter(target_type)

        if liked:
            like = Like(
                target_type=target_type,
                target_id=target_id,
                identity=identity,
                created_at=datetime.now(UTC),
            )
            if self.like_repository.create_like(like, counter):
                record_like_change(target_type.value, 1)
                logger.info(f"{identity.key} liked {target_type.value} {target_id}")
        elif self.like_repository.delete_like(target_type, target_id, identity, counter):
            record_like_change(target_type.value, -1)
            logger.info(f"{identity.key} unliked {target_type.value} {target_id}")

        return LikeResult(
            target_type=target_type,
            target_id=target_id,
            liked=liked,
            likes_count=self._likes_count(target_type, target_id),
        )

    async def toggle(
        self, target_type: LikeTargetType, target_id: str, identity: LikeIdentity
    ) -> LikeResult:
        """Flip the identity's like state on a target."""
        currently = await self.is_liked(target_type, target_id, identity)
        return await self.set_like(target_type, target_id, identity, not currently)

    async def is_liked(
        self, target_type: LikeTargetType, target_id: str, identity: LikeIdentity
    ) -> bool:
        """Whether the identity currently likes the target."""
        self._check_identity(identity)
        return self.like_repository.get_like(target_type, target_id, identity) is not None
