"""DynamoDB repositories for restaurants and products."""

from typing import Any

from botocore.exceptions import ClientError

from food_marketplace.models.catalog_models import Product, Restaurant
from food_marketplace.repositories.base_repository import CounterMixin, DynamoDBRepository


class RestaurantRepository(CounterMixin, DynamoDBRepository):
    """Repository for restaurant records keyed by restaurant_id."""

    key_name = "restaurant_id"

    def get_restaurant(self, restaurant_id: str) -> Restaurant | None:
        """Retrieve a restaurant.

        Args:
            restaurant_id: Restaurant identifier

        Returns:
            Restaurant if found, None otherwise
        """
        try:
            response = self.table.get_item(Key={"restaurant_id": restaurant_id})
        except ClientError as e:
            raise self._storage_error("get restaurant", e) from e

        if "Item" not in response:
            return None

        return Restaurant.from_dynamodb_item(response["Item"])

    def save_restaurant(self, restaurant: Restaurant) -> None:
        """Create or replace a restaurant record."""
        try:
            self.table.put_item(Item=restaurant.to_dynamodb_item())
        except ClientError as e:
            raise self._storage_error("save restaurant", e) from e

    def list_restaurants(self) -> list[Restaurant]:
        """List every restaurant, active or not."""
        try:
            items = self._scan_all()
        except ClientError as e:
            raise self._storage_error("list restaurants", e) from e

        return [Restaurant.from_dynamodb_item(item) for item in items]


class ProductRepository(CounterMixin, DynamoDBRepository):
    """Repository for product records keyed by product_id."""

    key_name = "product_id"

    def get_product(self, product_id: str) -> Product | None:
        """Retrieve a product.

        Args:
            product_id: Product identifier

        Returns:
            Product if found, None otherwise
        """
        try:
            response = self.table.get_item(Key={"product_id": product_id})
        except ClientError as e:
            raise self._storage_error("get product", e) from e

        if "Item" not in response:
            return None

        return Product.from_dynamodb_item(response["Item"])

    def get_products(self, product_ids: list[str]) -> dict[str, Product]:
        """Retrieve several products, skipping ids that do not exist.

        Args:
            product_ids: Product identifiers (duplicates allowed)

        Returns:
            dict: Products by product_id
        """
        products: dict[str, Product] = {}
        for product_id in dict.fromkeys(product_ids):
            product = self.get_product(product_id)
            if product is not None:
                products[product_id] = product
        return products

    def save_product(self, product: Product) -> None:
        """Create or replace a product record."""
        try:
            self.table.put_item(Item=product.to_dynamodb_item())
        except ClientError as e:
            raise self._storage_error("save product", e) from e

    def count_products(self) -> int:
        """Number of products in the catalog, following scan pagination."""
        total = 0
        kwargs: dict[str, Any] = {"Select": "COUNT"}
        try:
            while True:
                response = self.table.scan(**kwargs)
                total += response.get("Count", 0)
                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    return total
                kwargs["ExclusiveStartKey"] = last_key
        except ClientError as e:
            raise self._storage_error("count products", e) from e
