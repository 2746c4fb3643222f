"""DynamoDB repository for orders.

Orders embed their items, so creating an order is a single conditional put:
either the whole order lands or nothing does. Status and payment changes are
compare-and-set updates conditioned on the value the caller last read.
"""

import logging
from datetime import datetime

from botocore.exceptions import ClientError

from food_marketplace.models.order_models import Order, OrderStatus, PaymentStatus
from food_marketplace.repositories.base_repository import (
    DynamoDBRepository,
    is_conditional_check_failure,
)

logger = logging.getLogger(__name__)

RESTAURANT_INDEX = "restaurant_id-created_at-index"
ORDER_NUMBER_INDEX = "order_number-index"
CUSTOMER_PHONE_INDEX = "customer_phone-created_at-index"
USER_INDEX = "user_id-created_at-index"


class OrderRepository(DynamoDBRepository):
    """Repository for order records keyed by order_id."""

    def create_order(self, order: Order) -> bool:
        """Persist a new order with its items.

        Args:
            order: Order to create

        Returns:
            bool: True if created, False if an order with this id already exists
        """
        try:
            self.table.put_item(
                Item=order.to_dynamodb_item(),
                ConditionExpression="attribute_not_exists(order_id)",
            )
            return True

        except ClientError as e:
            if is_conditional_check_failure(e):
                logger.warning(f"Order {order.order_id} already exists")
                return False
            raise self._storage_error("create order", e) from e

    def get_order(self, order_id: str) -> Order | None:
        """Retrieve an order by ID.

        Args:
            order_id: Order identifier

        Returns:
            Order if found, None otherwise
        """
        try:
            response = self.table.get_item(Key={"order_id": order_id})
        except ClientError as e:
            raise self._storage_error("get order", e) from e

        if "Item" not in response:
            return None

        return Order.from_dynamodb_item(response["Item"])

    def get_order_by_number(self, order_number: str) -> Order | None:
        """Retrieve an order by its human-readable number.

        Uses a Global Secondary Index on order_number.
        """
        try:
            response = self.table.query(
                IndexName=ORDER_NUMBER_INDEX,
                KeyConditionExpression="order_number = :num",
                ExpressionAttributeValues={":num": order_number},
                Limit=1,
            )
        except ClientError as e:
            raise self._storage_error("get order by number", e) from e

        items = response.get("Items", [])
        return Order.from_dynamodb_item(items[0]) if items else None

    def list_orders_for_restaurant(
        self,
        restaurant_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Order]:
        """List a restaurant's orders, newest first.

        Uses a Global Secondary Index on (restaurant_id, created_at).

        Args:
            restaurant_id: Restaurant identifier
            start: Optional inclusive lower bound on created_at
            end: Optional inclusive upper bound on created_at

        Returns:
            list: Orders (empty list if none found)
        """
        key_condition = "restaurant_id = :rid"
        values: dict[str, str] = {":rid": restaurant_id}

        if start is not None and end is not None:
            key_condition += " AND created_at BETWEEN :start AND :end"
            values[":start"] = start.isoformat()
            values[":end"] = end.isoformat()
        elif start is not None:
            key_condition += " AND created_at >= :start"
            values[":start"] = start.isoformat()
        elif end is not None:
            key_condition += " AND created_at <= :end"
            values[":end"] = end.isoformat()

        try:
            items = self._query_all(
                IndexName=RESTAURANT_INDEX,
                KeyConditionExpression=key_condition,
                ExpressionAttributeValues=values,
                ScanIndexForward=False,  # Most recent first
            )
        except ClientError as e:
            raise self._storage_error("list restaurant orders", e) from e

        return [Order.from_dynamodb_item(item) for item in items]

    def list_orders_between(self, start: datetime, end: datetime) -> list[Order]:
        """List all orders on the platform created within [start, end].

        Used by the admin finance view; results are sorted newest first.
        """
        try:
            items = self._scan_all(
                FilterExpression="created_at BETWEEN :start AND :end",
                ExpressionAttributeValues={
                    ":start": start.isoformat(),
                    ":end": end.isoformat(),
                },
            )
        except ClientError as e:
            raise self._storage_error("list orders", e) from e

        orders = [Order.from_dynamodb_item(item) for item in items]
        return sorted(orders, key=lambda order: order.created_at, reverse=True)

    def list_all_orders(self) -> list[Order]:
        """List every order on the platform, newest first (admin view)."""
        try:
            items = self._scan_all()
        except ClientError as e:
            raise self._storage_error("list all orders", e) from e

        orders = [Order.from_dynamodb_item(item) for item in items]
        return sorted(orders, key=lambda order: order.created_at, reverse=True)

    def list_orders_for_customer(
        self,
        phone: str | None = None,
        user_id: str | None = None,
    ) -> list[Order]:
        """List a customer's orders by phone number or account, newest first.

        Uses the (customer_phone, created_at) or (user_id, created_at) Global
        Secondary Index. The user_id index is sparse: guest orders have no
        user_id attribute.

        Raises:
            ValueError: If neither phone nor user_id is given
        """
        if phone:
            index, attribute, value = CUSTOMER_PHONE_INDEX, "customer_phone", phone
        elif user_id:
            index, attribute, value = USER_INDEX, "user_id", user_id
        else:
            raise ValueError("phone or user_id is required")

        try:
            items = self._query_all(
                IndexName=index,
                KeyConditionExpression=f"{attribute} = :key",
                ExpressionAttributeValues={":key": value},
                ScanIndexForward=False,
            )
        except ClientError as e:
            raise self._storage_error("list customer orders", e) from e

        return [Order.from_dynamodb_item(item) for item in items]

    def update_status(
        self,
        order_id: str,
        expected_status: OrderStatus,
        new_status: OrderStatus,
        updated_at: datetime,
        estimated_time: int | None = None,
        notes: str | None = None,
    ) -> bool:
        """Compare-and-set the order status.

        Args:
            order_id: Order identifier
            expected_status: Status the caller validated the transition against
            new_status: Status to store
            updated_at: Modification timestamp
            estimated_time: Optional new estimate in minutes
            notes: Optional replacement notes

        Returns:
            bool: True if updated, False if the stored status no longer matches
        """
        update_expression = "SET #status = :new, updated_at = :updated"
        values: dict[str, str | int] = {
            ":new": new_status.value,
            ":expected": expected_status.value,
            ":updated": updated_at.isoformat(),
        }

        if estimated_time is not None:
            update_expression += ", estimated_time = :eta"
            values[":eta"] = estimated_time

        if notes is not None:
            update_expression += ", notes = :notes"
            values[":notes"] = notes

        try:
            self.table.update_item(
                Key={"order_id": order_id},
                UpdateExpression=update_expression,
                ConditionExpression="#status = :expected",
                ExpressionAttributeNames={"#status": "status"},
                ExpressionAttributeValues=values,
            )
            return True

        except ClientError as e:
            if is_conditional_check_failure(e):
                return False
            raise self._storage_error("update order status", e) from e

    def update_payment_status(
        self,
        order_id: str,
        expected_status: PaymentStatus,
        new_status: PaymentStatus,
        updated_at: datetime,
    ) -> bool:
        """Compare-and-set the payment status.

        Returns:
            bool: True if updated, False if the stored payment status changed
        """
        try:
            self.table.update_item(
                Key={"order_id": order_id},
                UpdateExpression="SET payment_status = :new, updated_at = :updated",
                ConditionExpression="payment_status = :expected",
                ExpressionAttributeValues={
                    ":new": new_status.value,
                    ":expected": expected_status.value,
                    ":updated": updated_at.isoformat(),
                },
            )
            return True

        except ClientError as e:
            if is_conditional_check_failure(e):
                return False
            raise self._storage_error("update payment status", e) from e
