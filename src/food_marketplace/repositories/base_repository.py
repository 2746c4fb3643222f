"""Shared DynamoDB repository plumbing.

Expected outcomes (missing item, failed condition) are reported with simple
return values (None/False). Anything else from DynamoDB is logged with full
detail and raised as StorageError, which callers surface as a generic failure.
"""

import logging
from decimal import Decimal
from typing import Any

from botocore.exceptions import ClientError
from mypy_boto3_dynamodb.service_resource import DynamoDBServiceResource, Table

from food_marketplace.exceptions import StorageError

logger = logging.getLogger(__name__)

CONDITIONAL_CHECK_FAILED = "ConditionalCheckFailedException"
TRANSACTION_CANCELED = "TransactionCanceledException"
CANCELLED_BY_CONDITION = "ConditionalCheckFailed"


def is_conditional_check_failure(error: ClientError) -> bool:
    """Return True if the error is a failed ConditionExpression."""
    return error.response.get("Error", {}).get("Code") == CONDITIONAL_CHECK_FAILED


def cancellation_codes(error: ClientError) -> list[str]:
    """Per-entry cancellation reasons of a failed transaction, in TransactItems order.

    Empty when the error is not a cancelled transaction.
    """
    if error.response.get("Error", {}).get("Code") != TRANSACTION_CANCELED:
        return []
    reasons = error.response.get("CancellationReasons", [])  # type: ignore[typeddict-item]
    return [reason.get("Code", "None") for reason in reasons]


class DynamoDBRepository:
    """Base class binding a repository to one DynamoDB table."""

    def __init__(self, dynamodb_resource: DynamoDBServiceResource, table_name: str) -> None:
        """Initialize repository.

        Args:
            dynamodb_resource: Boto3 DynamoDB resource
            table_name: Name of the DynamoDB table
        """
        self.dynamodb = dynamodb_resource
        self.table_name = table_name
        self.table: Table = dynamodb_resource.Table(table_name)

    def _storage_error(self, action: str, error: ClientError) -> StorageError:
        logger.error(f"Failed to {action} in table {self.table_name}: {error}")
        return StorageError(f"Failed to {action}: {error}")

    def _transact_write(self, items: list[dict[str, Any]]) -> None:
        """Apply writes across tables atomically; raises ClientError on cancellation."""
        self.table.meta.client.transact_write_items(TransactItems=items)  # type: ignore[arg-type]

    def _query_all(self, **kwargs: Any) -> list[dict[str, Any]]:
        """Run a query, following LastEvaluatedKey pagination."""
        items: list[dict[str, Any]] = []
        while True:
            response = self.table.query(**kwargs)
            items.extend(response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                return items
            kwargs["ExclusiveStartKey"] = last_key

    def _scan_all(self, **kwargs: Any) -> list[dict[str, Any]]:
        """Run a scan, following LastEvaluatedKey pagination."""
        items: list[dict[str, Any]] = []
        while True:
            response = self.table.scan(**kwargs)
            items.extend(response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                return items
            kwargs["ExclusiveStartKey"] = last_key


class CounterMixin:
    """Denormalized counters on tables with ``likes_count`` and rating aggregates.

    The ``*_update`` builders return TransactWriteItems entries so a counter
    moves in the same transaction as the row it counts. Requires ``table``,
    ``table_name``, ``key_name`` and ``_storage_error`` on the host class.
    """

    key_name: str
    table_name: str

    def _counter_update(
        self,
        entity_id: str,
        expression: str,
        condition: str,
        values: dict[str, Any],
    ) -> dict[str, Any]:
        return {
            "Update": {
                "TableName": self.table_name,
                "Key": {self.key_name: entity_id},
                "UpdateExpression": expression,
                "ConditionExpression": condition,
                "ExpressionAttributeNames": {"#pk": self.key_name},
                "ExpressionAttributeValues": values,
            }
        }

    def like_increment_update(self, entity_id: str) -> dict[str, Any]:
        """Transaction entry adding one like; fails if the entity is missing."""
        return self._counter_update(
            entity_id, "ADD likes_count :one", "attribute_exists(#pk)", {":one": 1}
        )

    def like_decrement_update(self, entity_id: str) -> dict[str, Any]:
        """Transaction entry removing one like; fails at zero instead of going negative."""
        return self._counter_update(
            entity_id,
            "SET likes_count = likes_count - :one",
            "attribute_exists(#pk) AND likes_count > :zero",
            {":one": 1, ":zero": 0},
        )

    def rating_update(self, entity_id: str, rating: int) -> dict[str, Any]:
        """Transaction entry adding one review to ``rating_sum``/``rating_count``."""
        return self._counter_update(
            entity_id,
            "ADD rating_sum :rating, rating_count :one",
            "attribute_exists(#pk)",
            {":rating": rating, ":one": 1},
        )

    def refresh_rating(self, entity_id: str) -> float:
        """Recompute ``rating`` from the aggregates with a strongly consistent read.

        The write is conditioned on ``rating_count`` so a refresh based on
        stale aggregates never overwrites a newer one.

        Returns:
            float: The average rating, rounded to two decimals
        """
        try:
            response = self.table.get_item(  # type: ignore[attr-defined]
                Key={self.key_name: entity_id},
                ConsistentRead=True,
                ProjectionExpression="rating_sum, rating_count",
            )
        except ClientError as e:
            raise self._storage_error("read ratings", e) from e  # type: ignore[attr-defined]

        item = response.get("Item", {})
        count = int(item.get("rating_count", 0))
        if count == 0:
            return 0.0

        average = round(int(item.get("rating_sum", 0)) / count, 2)
        try:
            self.table.update_item(  # type: ignore[attr-defined]
                Key={self.key_name: entity_id},
                UpdateExpression="SET rating = :rating",
                ConditionExpression="rating_count = :count",
                ExpressionAttributeValues={
                    ":rating": Decimal(str(average)),
                    ":count": count,
                },
            )
        except ClientError as e:
            if not is_conditional_check_failure(e):
                raise self._storage_error("update rating", e) from e  # type: ignore[attr-defined]
            logger.info(f"Newer review on {entity_id} in {self.table_name}, rating left to it")
        return average
