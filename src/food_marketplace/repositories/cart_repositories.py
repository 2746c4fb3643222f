"""DynamoDB repository for server-mirrored cart sessions."""

from botocore.exceptions import ClientError

from food_marketplace.models.cart_models import CartState
from food_marketplace.repositories.base_repository import DynamoDBRepository


class CartRepository(DynamoDBRepository):
    """Stores one CartState per session_id."""

    def get_cart(self, session_id: str) -> CartState | None:
        """Load a session's cart.

        Args:
            session_id: Client session identifier

        Returns:
            CartState if one was saved, None otherwise
        """
        try:
            response = self.table.get_item(Key={"session_id": session_id})
        except ClientError as e:
            raise self._storage_error("get cart", e) from e

        if "Item" not in response:
            return None

        return CartState.from_dynamodb_item(response["Item"])

    def save_cart(self, state: CartState) -> None:
        """Replace a session's cart."""
        if not state.session_id:
            raise ValueError("CartState.session_id is required to save a cart")

        try:
            self.table.put_item(Item=state.to_dynamodb_item())
        except ClientError as e:
            raise self._storage_error("save cart", e) from e

    def delete_cart(self, session_id: str) -> None:
        """Remove a session's cart."""
        try:
            self.table.delete_item(Key={"session_id": session_id})
        except ClientError as e:
            raise self._storage_error("delete cart", e) from e
