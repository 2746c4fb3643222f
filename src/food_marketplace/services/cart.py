"""Cart aggregate: a customer's in-progress selection before checkout.

A cart is bound to at most one restaurant at a time. ``current_restaurant`` is
None exactly when the cart has no lines; otherwise every line belongs to it.
Each ``add_item`` creates a new line, so the same product can appear on
several independently editable lines.
"""

import logging
import uuid
from collections.abc import Callable
from datetime import UTC, datetime

from food_marketplace.exceptions import ConflictError, NotFoundError, ValidationError
from food_marketplace.models.cart_models import (
    MAX_NOTES_LENGTH,
    CartEvent,
    CartEventType,
    CartLine,
    CartRestaurant,
    CartState,
)
from food_marketplace.models.catalog_models import Product, Restaurant

logger = logging.getLogger(__name__)

# Asked before a cart scoped to `current` is emptied to add from `requested`.
ConfirmClear = Callable[[CartRestaurant, CartRestaurant], bool]
CartListener = Callable[[CartEvent], None]


def _check_notes(notes: str) -> None:
    if len(notes) > MAX_NOTES_LENGTH:
        raise ValidationError(f"Notes must be at most {MAX_NOTES_LENGTH} characters")


class Cart:
    """Single-restaurant cart for one client session."""

    def __init__(
        self,
        session_id: str | None = None,
        listeners: list[CartListener] | None = None,
    ) -> None:
        """Create an empty cart.

        Args:
            session_id: Owning session, used when the cart is mirrored server-side
            listeners: Callbacks notified after add/remove/clear
        """
        self.session_id = session_id
        self.listeners: list[CartListener] = list(listeners or [])
        self.lines: list[CartLine] = []
        self.current_restaurant: CartRestaurant | None = None
        self.is_open = False
        self.updated_at: datetime | None = None

    @classmethod
    def from_state(cls, state: CartState, listeners: list[CartListener] | None = None) -> "Cart":
        """Rebuild a cart from its serialized form.

        Raises:
            ValidationError: If the state breaks the single-restaurant invariant
        """
        scope = state.current_restaurant
        if (scope is None) != (not state.lines):
            raise ValidationError("Cart scope does not match its lines")
        if scope is not None and any(
            line.restaurant_id != scope.restaurant_id for line in state.lines
        ):
            raise ValidationError("Cart lines belong to more than one restaurant")

        cart = cls(session_id=state.session_id, listeners=listeners)
        cart.lines = [line.model_copy() for line in state.lines]
        cart.current_restaurant = scope.model_copy() if scope else None
        cart.is_open = state.is_open
        cart.updated_at = state.updated_at
        return cart

    def to_state(self) -> CartState:
        """Serialize the cart for the persistence boundary."""
        return CartState(
            session_id=self.session_id,
            lines=[line.model_copy() for line in self.lines],
            current_restaurant=(
                self.current_restaurant.model_copy() if self.current_restaurant else None
            ),
            is_open=self.is_open,
            updated_at=self.updated_at,
        )

    # Mutations

    def add_item(
        self,
        product: Product,
        restaurant: Restaurant,
        quantity: int = 1,
        notes: str = "",
        confirm_clear: ConfirmClear | None = None,
    ) -> CartLine:
        """Append a new line for ``product``.

        Args:
            product: Product being added
            restaurant: Restaurant that sells the product
            quantity: Units on the new line (at least 1)
            notes: Free-text preparation instructions
            confirm_clear: Asked whether to empty a cart scoped to another
                restaurant; without it such adds are rejected

        Returns:
            CartLine: The line that was created

        Raises:
            ValidationError: Bad quantity/notes or product not sold by restaurant
            ConflictError: Cart holds another restaurant's items and clearing
                was not confirmed; the cart is left unchanged
        """
        if product.restaurant_id != restaurant.restaurant_id:
            raise ValidationError(
                f"Product {product.product_id} is not sold by restaurant {restaurant.restaurant_id}"
            )
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")
        _check_notes(notes)

        requested = CartRestaurant(
            restaurant_id=restaurant.restaurant_id,
            name=restaurant.name,
            delivery_fee=restaurant.delivery_fee,
        )

        current = self.current_restaurant
        if current is not None and current.restaurant_id != restaurant.restaurant_id:
            if confirm_clear is None or not confirm_clear(current, requested):
                raise ConflictError(
                    f"Your cart contains items from {current.name}. "
                    f"Clear it before adding items from {restaurant.name}."
                )
            logger.info(
                f"Cart {self.session_id} cleared to switch from "
                f"{current.restaurant_id} to {restaurant.restaurant_id}"
            )
            self.lines = []
            self.current_restaurant = None

        line = CartLine(
            line_id=f"{product.product_id}_{uuid.uuid4().hex[:12]}",
            product_id=product.product_id,
            name=product.name,
            price=product.price,
            image_url=product.image_url,
            restaurant_id=restaurant.restaurant_id,
            quantity=quantity,
            notes=notes,
        )

        self.lines.append(line)
        self.current_restaurant = requested
        self.is_open = True
        self._touch()
        self._emit(
            CartEventType.ITEM_ADDED, "Item added", f"{product.name} was added to your cart"
        )
        return line

    def remove_item(self, line_id: str) -> None:
        """Delete one line; an emptied cart loses its restaurant scope.

        Raises:
            NotFoundError: If no line has this id
        """
        line = self._get_line(line_id)
        self.lines = [entry for entry in self.lines if entry.line_id != line_id]
        if not self.lines:
            self.current_restaurant = None
        self._touch()
        self._emit(
            CartEventType.ITEM_REMOVED, "Item removed", f"{line.name} was removed from your cart"
        )

    def update_quantity(self, line_id: str, quantity: int) -> None:
        """Set a line's quantity; zero or less removes the line."""
        if quantity <= 0:
            self.remove_item(line_id)
            return

        self._get_line(line_id).quantity = quantity
        self._touch()

    def update_notes(self, line_id: str, notes: str) -> None:
        """Replace a line's preparation notes.

        Raises:
            ValidationError: If the notes are too long
            NotFoundError: If no line has this id
        """
        _check_notes(notes)
        self._get_line(line_id).notes = notes
        self._touch()

    def clear_cart(self) -> None:
        """Empty the cart, drop its scope and close the view."""
        self.lines = []
        self.current_restaurant = None
        self.is_open = False
        self._touch()
        self._emit(CartEventType.CLEARED, "Cart cleared", "Your cart is now empty")

    def open(self) -> None:
        self.is_open = True

    def close(self) -> None:
        self.is_open = False

    def toggle(self) -> None:
        self.is_open = not self.is_open

    # Queries

    @property
    def is_empty(self) -> bool:
        return not self.lines

    @property
    def subtotal(self) -> int:
        """Sum of price x quantity over all lines."""
        return sum(line.subtotal for line in self.lines)

    @property
    def item_count(self) -> int:
        """Total units across all lines."""
        return sum(line.quantity for line in self.lines)

    def get_item_quantity(self, product_id: str) -> int:
        """Units of a product across every line that holds it."""
        return sum(line.quantity for line in self.lines if line.product_id == product_id)

    def can_add_from_restaurant(self, restaurant_id: str) -> bool:
        return (
            self.current_restaurant is None
            or self.current_restaurant.restaurant_id == restaurant_id
        )

    def get_delivery_fee(self) -> int:
        """Delivery fee of the scoped restaurant, 0 for an empty cart."""
        return self.current_restaurant.delivery_fee if self.current_restaurant else 0

    def get_final_total(self) -> int:
        """Item subtotal plus delivery fee."""
        return self.subtotal + self.get_delivery_fee()

    def _get_line(self, line_id: str) -> CartLine:
        for line in self.lines:
            if line.line_id == line_id:
                return line
        raise NotFoundError(f"Cart line {line_id} not found")

    def _touch(self) -> None:
        self.updated_at = datetime.now(UTC)

    def _emit(self, event_type: CartEventType, title: str, message: str) -> None:
        event = CartEvent(event_type=event_type, title=title, message=message)
        for listener in self.listeners:
            listener(event)
