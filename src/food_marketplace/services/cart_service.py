"""Server-mirrored carts: the Cart aggregate persisted per session."""

import logging

from food_marketplace.exceptions import NotFoundError, ValidationError
from food_marketplace.models.cart_models import CartEvent, CartRestaurant, CartState
from food_marketplace.models.catalog_models import Product, Restaurant
from food_marketplace.models.order_models import (
    CheckoutDetails,
    CreateOrderRequest,
    Order,
    OrderLineRequest,
)
from food_marketplace.repositories.cart_repositories import CartRepository
from food_marketplace.repositories.catalog_repositories import (
    ProductRepository,
    RestaurantRepository,
)
from food_marketplace.services.cart import Cart
from food_marketplace.services.order_service import OrderService

logger = logging.getLogger(__name__)


def _log_event(event: CartEvent) -> None:
    logger.info(f"Cart event {event.event_type.value}: {event.message}")


class CartService:
    """Loads, mutates and saves a session's cart, and checks it out.

    Product and restaurant snapshots are resolved from the catalog so clients
    cannot inject their own prices or fees.
    """

    def __init__(
        self,
        cart_repository: CartRepository,
        product_repository: ProductRepository,
        restaurant_repository: RestaurantRepository,
        order_service: OrderService,
    ) -> None:
        """Initialize the CartService.

        Args:
            cart_repository: Repository storing cart sessions
            product_repository: Repository used to snapshot products
            restaurant_repository: Repository used to snapshot restaurants
            order_service: Service that turns carts into orders
        """
        self.cart_repository = cart_repository
        self.product_repository = product_repository
        self.restaurant_repository = restaurant_repository
        self.order_service = order_service

    def _load(self, session_id: str) -> Cart:
        state = self.cart_repository.get_cart(session_id)
        if state is None:
            return Cart(session_id=session_id, listeners=[_log_event])
        return Cart.from_state(state, listeners=[_log_event])

    def _save(self, cart: Cart) -> CartState:
        state = cart.to_state()
        if cart.is_empty:
            self.cart_repository.delete_cart(state.session_id or "")
        else:
            self.cart_repository.save_cart(state)
        return state

    def _resolve(self, product_id: str) -> tuple[Product, Restaurant]:
        product = self.product_repository.get_product(product_id)
        if product is None or not product.active:
            raise NotFoundError(f"Product {product_id} is no longer available")

        restaurant = self.restaurant_repository.get_restaurant(product.restaurant_id)
        if restaurant is None or not restaurant.is_active:
            raise NotFoundError(f"Restaurant {product.restaurant_id} is not available")

        return product, restaurant

    async def get_cart(self, session_id: str) -> CartState:
        """Current cart for a session; an unknown session has an empty cart."""
        return self._load(session_id).to_state()

    async def add_item(
        self,
        session_id: str,
        product_id: str,
        quantity: int = 1,
        notes: str = "",
        replace_existing: bool = False,
    ) -> CartState:
        """Add a new line to the session's cart.

        Args:
            session_id: Client session
            product_id: Product to add
            quantity: Units on the new line
            notes: Preparation notes
            replace_existing: Confirms emptying a cart scoped to another restaurant

        Raises:
            NotFoundError: Product or restaurant missing or inactive
            ConflictError: Cart holds another restaurant's items and
                replace_existing is False
        """
        product, restaurant = self._resolve(product_id)
        cart = self._load(session_id)

        def confirm(current: CartRestaurant, requested: CartRestaurant) -> bool:
            return replace_existing

        cart.add_item(product, restaurant, quantity=quantity, notes=notes, confirm_clear=confirm)
        return self._save(cart)

    async def update_line(
        self,
        session_id: str,
        line_id: str,
        quantity: int | None = None,
        notes: str | None = None,
    ) -> CartState:
        """Change a line's quantity and/or notes; quantity 0 removes it.

        Raises:
            ValidationError: If neither field is given or notes are too long
            NotFoundError: If the line does not exist
        """
        if quantity is None and notes is None:
            raise ValidationError("Nothing to update")

        cart = self._load(session_id)
        if notes is not None:
            cart.update_notes(line_id, notes)
        if quantity is not None:
            cart.update_quantity(line_id, quantity)
        return self._save(cart)

    async def remove_item(self, session_id: str, line_id: str) -> CartState:
        """Remove one line from the session's cart."""
        cart = self._load(session_id)
        cart.remove_item(line_id)
        return self._save(cart)

    async def clear(self, session_id: str) -> CartState:
        """Empty the session's cart."""
        cart = self._load(session_id)
        cart.clear_cart()
        return self._save(cart)

    async def checkout(self, session_id: str, details: CheckoutDetails) -> Order:
        """Turn the session's cart into an order.

        The cart is cleared only after the order is stored; if creation fails
        the cart is left as it was.

        Raises:
            ValidationError: If the cart is empty, plus any order creation error
        """
        cart = self._load(session_id)
        if cart.is_empty:
            raise ValidationError("Your cart is empty")

        request = CreateOrderRequest(
            **details.model_dump(),
            items=[
                OrderLineRequest(
                    product_id=line.product_id,
                    quantity=line.quantity,
                    unit_price=line.price,
                )
                for line in cart.lines
            ],
        )
        order = await self.order_service.create_order(request)

        cart.clear_cart()
        self._save(cart)
        logger.info(f"Cart {session_id} checked out as order {order.order_number}")
        return order
