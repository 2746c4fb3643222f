"""DynamoDB repositories for likes and reviews."""

import logging

from botocore.exceptions import ClientError

from food_marketplace.exceptions import NotFoundError
from food_marketplace.models.engagement_models import (
    Like,
    LikeIdentity,
    LikeTargetType,
    Review,
    like_target_key,
)
from food_marketplace.repositories.base_repository import (
    CANCELLED_BY_CONDITION,
    CounterMixin,
    DynamoDBRepository,
    cancellation_codes,
    is_conditional_check_failure,
)

logger = logging.getLogger(__name__)

REVIEW_TARGET_INDEX = "target_key-created_at-index"


class LikeRepository(DynamoDBRepository):
    """Like dedupe records with composite key (target_key, identity_key)."""

    @staticmethod
    def _key(target_type: LikeTargetType, target_id: str, identity: LikeIdentity) -> dict[str, str]:
        return {
            "target_key": like_target_key(target_type, target_id),
            "identity_key": identity.key,
        }

    def get_like(
        self, target_type: LikeTargetType, target_id: str, identity: LikeIdentity
    ) -> Like | None:
        """Retrieve the like an identity left on a target, if any."""
        try:
            response = self.table.get_item(Key=self._key(target_type, target_id, identity))
        except ClientError as e:
            raise self._storage_error("get like", e) from e

        if "Item" not in response:
            return None

        return Like.from_dynamodb_item(response["Item"])

    def create_like(self, like: Like, counter: CounterMixin) -> bool:
        """Insert a like record and add one to the target's ``likes_count``.

        Both writes happen in one transaction.

        Args:
            like: Like record to insert
            counter: Repository of the liked target's table

        Returns:
            bool: True if inserted, False if the identity already liked the
                target or the target no longer exists
        """
        try:
            self._transact_write(
                [
                    {
                        "Put": {
                            "TableName": self.table_name,
                            "Item": like.to_dynamodb_item(),
                            "ConditionExpression": "attribute_not_exists(target_key)",
                        }
                    },
                    counter.like_increment_update(like.target_id),
                ]
            )
            return True

        except ClientError as e:
            if CANCELLED_BY_CONDITION in cancellation_codes(e):
                return False
            raise self._storage_error("create like", e) from e

    def delete_like(
        self,
        target_type: LikeTargetType,
        target_id: str,
        identity: LikeIdentity,
        counter: CounterMixin,
    ) -> bool:
        """Delete a like record and remove one from the target's ``likes_count``.

        Both writes happen in one transaction. If the counter is already at
        zero the record is still deleted on its own.

        Returns:
            bool: True if deleted, False if there was nothing to delete
        """
        key = self._key(target_type, target_id, identity)
        try:
            self._transact_write(
                [
                    {
                        "Delete": {
                            "TableName": self.table_name,
                            "Key": key,
                            "ConditionExpression": "attribute_exists(target_key)",
                        }
                    },
                    counter.like_decrement_update(target_id),
                ]
            )
            return True

        except ClientError as e:
            codes = cancellation_codes(e)
            if codes[:1] == [CANCELLED_BY_CONDITION]:
                return False
            if codes[1:] != [CANCELLED_BY_CONDITION]:
                raise self._storage_error("delete like", e) from e

        logger.warning(f"likes_count of {key['target_key']} already at zero")
        return self._delete_record(key)

    def _delete_record(self, key: dict[str, str]) -> bool:
        try:
            self.table.delete_item(Key=key, ConditionExpression="attribute_exists(target_key)")
            return True

        except ClientError as e:
            if is_conditional_check_failure(e):
                return False
            raise self._storage_error("delete like", e) from e


class ReviewRepository(DynamoDBRepository):
    """Review records keyed by review_id, indexed by target."""

    def save_review(self, review: Review, target: CounterMixin) -> None:
        """Store a review and add its rating to the target's aggregates.

        Both writes happen in one transaction.

        Raises:
            NotFoundError: If the reviewed target no longer exists
        """
        target_id = review.restaurant_id or review.product_id or ""
        try:
            self._transact_write(
                [
                    {
                        "Put": {
                            "TableName": self.table_name,
                            "Item": review.to_dynamodb_item(),
                            "ConditionExpression": "attribute_not_exists(review_id)",
                        }
                    },
                    target.rating_update(target_id, review.rating),
                ]
            )
        except ClientError as e:
            if cancellation_codes(e)[1:] == [CANCELLED_BY_CONDITION]:
                raise NotFoundError(f"{review.target_key} not found") from e
            raise self._storage_error("save review", e) from e

    def list_reviews_for_target(self, target_key: str) -> list[Review]:
        """List all reviews for a restaurant or product, newest first.

        Uses a Global Secondary Index on (target_key, created_at).
        """
        try:
            items = self._query_all(
                IndexName=REVIEW_TARGET_INDEX,
                KeyConditionExpression="target_key = :target",
                ExpressionAttributeValues={":target": target_key},
                ScanIndexForward=False,
            )
        except ClientError as e:
            raise self._storage_error("list reviews", e) from e

        return [Review.from_dynamodb_item(item) for item in items]
