"""Order lifecycle: creation from a cart and status transitions."""

import logging
import secrets
import time
import uuid
from datetime import UTC, datetime

from food_marketplace.auth.authorization import (
    Actor,
    authorize_admin,
    authorize_restaurant_access,
)
from food_marketplace.exceptions import (
    ConflictError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from food_marketplace.identifiers import BASE36_ALPHABET, to_base36
from food_marketplace.models.order_models import (
    CreateOrderRequest,
    CustomerType,
    DeliveryType,
    Order,
    OrderItem,
    OrderStatus,
    PaymentStatus,
    filter_orders,
    transition_error,
)
from food_marketplace.observability import traced
from food_marketplace.observability.metrics import (
    record_order_created,
    record_order_rejected,
    record_status_transition,
)
from food_marketplace.repositories.catalog_repositories import (
    ProductRepository,
    RestaurantRepository,
)
from food_marketplace.repositories.order_repositories import OrderRepository

logger = logging.getLogger(__name__)


def generate_order_number(now_ms: int | None = None) -> str:
    """Build a human-readable order number such as ``MNU-LZ7K2Q1A4F9XBC``.

    The millisecond timestamp keeps numbers roughly sortable; six random
    base36 characters separate orders placed in the same millisecond.
    """
    timestamp = now_ms if now_ms is not None else time.time_ns() // 1_000_000
    suffix = "".join(secrets.choice(BASE36_ALPHABET) for _ in range(6))
    return f"MNU-{to_base36(timestamp)}{suffix}".upper()


class OrderService:
    """Creates orders and moves them through their lifecycle.

    Restaurant managers and admins drive status changes; customers only create
    and read orders.
    """

    def __init__(
        self,
        order_repository: OrderRepository,
        product_repository: ProductRepository,
        restaurant_repository: RestaurantRepository,
    ) -> None:
        """Initialize the OrderService.

        Args:
            order_repository: Repository storing orders
            product_repository: Repository used to price order lines
            restaurant_repository: Repository used for fees and minimums
        """
        self.order_repository = order_repository
        self.product_repository = product_repository
        self.restaurant_repository = restaurant_repository

    @traced("order.create")
    async def create_order(self, request: CreateOrderRequest) -> Order:
        """Create an order from checkout lines.

        Prices are always looked up server-side; any client-sent unit price is
        only compared for logging. The order and its items are stored in one
        conditional write, so a failure leaves nothing behind.

        Args:
            request: Checkout details and lines

        Returns:
            The stored order, with payment status PENDING

        Raises:
            ValidationError: Empty order, inactive restaurant or amount below
                the restaurant minimum
            NotFoundError: A product is missing/inactive or the restaurant is gone
            ConflictError: Lines reference more than one restaurant
        """
        try:
            return self._create_order(request)
        except (ValidationError, NotFoundError, ConflictError) as e:
            record_order_rejected(type(e).__name__)
            raise

    def _create_order(self, request: CreateOrderRequest) -> Order:
        if not request.items:
            raise ValidationError("The order contains no products")

        products = self.product_repository.get_products([line.product_id for line in request.items])

        for line in request.items:
            product = products.get(line.product_id)
            if product is None or not product.active:
                raise NotFoundError(f"Product {line.product_id} is no longer available")

        restaurant_ids = {product.restaurant_id for product in products.values()}
        if len(restaurant_ids) != 1:
            raise ConflictError("All products in an order must come from the same restaurant")

        restaurant_id = restaurant_ids.pop()
        restaurant = self.restaurant_repository.get_restaurant(restaurant_id)
        if restaurant is None:
            raise NotFoundError(f"Restaurant {restaurant_id} not found")
        if not restaurant.is_active:
            raise ValidationError(f"{restaurant.name} is not accepting orders right now")

        items: list[OrderItem] = []
        for line in request.items:
            product = products[line.product_id]
            if line.unit_price is not None and line.unit_price != product.price:
                logger.warning(
                    f"Client price {line.unit_price} for product {product.product_id} "
                    f"differs from current price {product.price}; using current price"
                )
            items.append(
                OrderItem(
                    product_id=product.product_id,
                    product_name=product.name,
                    quantity=line.quantity,
                    unit_price=product.price,
                )
            )

        total = sum(item.subtotal for item in items)
        if total < restaurant.min_order_amount:
            raise ValidationError(
                f"Minimum order amount for {restaurant.name} is {restaurant.min_order_amount}"
            )

        now = datetime.now(UTC)
        order = Order(
            order_id=str(uuid.uuid4()),
            order_number=generate_order_number(),
            restaurant_id=restaurant_id,
            user_id=request.user_id,
            customer_name=request.customer_name,
            customer_phone=request.customer_phone,
            customer_email=request.customer_email,
            address=request.address,
            delivery_type=request.delivery_type,
            payment_method=request.payment_method,
            payment_status=PaymentStatus.PENDING,
            status=OrderStatus.RECEIVED,
            total=total,
            delivery_fee=(
                restaurant.delivery_fee if request.delivery_type == DeliveryType.DELIVERY else 0
            ),
            notes=request.notes,
            items=items,
            created_at=now,
            updated_at=now,
        )

        if not self.order_repository.create_order(order):
            raise StorageError(f"Order id collision for {order.order_id}")

        record_order_created(order.delivery_type.value, order.total)
        logger.info(
            f"Order {order.order_number} created for restaurant {restaurant_id} "
            f"with {len(items)} items, total {order.total}"
        )
        return order

    async def get_order(self, order_id: str) -> Order:
        """Get an order by ID.

        Raises:
            NotFoundError: If the order does not exist
        """
        order = self.order_repository.get_order(order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")
        return order

    async def get_order_by_number(self, order_number: str) -> Order:
        """Get an order by its public order number (customer tracking).

        Raises:
            NotFoundError: If no order has this number
        """
        order = self.order_repository.get_order_by_number(order_number)
        if order is None:
            raise NotFoundError(f"Order {order_number} not found")
        return order

    async def list_restaurant_orders(
        self,
        restaurant_id: str,
        actor: Actor,
        status: OrderStatus | None = None,
    ) -> list[Order]:
        """List a restaurant's orders, newest first, optionally by status."""
        authorize_restaurant_access(actor, restaurant_id)
        orders = self.order_repository.list_orders_for_restaurant(restaurant_id)
        return filter_orders(orders, status)

    async def list_orders(
        self,
        actor: Actor,
        status: OrderStatus | None = None,
        customer_type: CustomerType | None = None,
    ) -> list[Order]:
        """Every order on the platform, newest first (admins only).

        Raises:
            AuthorizationError: If the actor is not an admin
        """
        authorize_admin(actor)
        orders = self.order_repository.list_all_orders()
        return filter_orders(orders, status, customer_type)

    async def list_customer_orders(
        self,
        actor: Actor,
        phone: str | None = None,
        status: OrderStatus | None = None,
        customer_type: CustomerType | None = None,
    ) -> list[Order]:
        """A customer's order history, newest first.

        Guests look their orders up by the phone number given at checkout,
        the same way an order number is tracked. Without a phone the
        caller's own account is used.

        Raises:
            ValidationError: If there is neither a phone nor a caller account
        """
        if phone:
            orders = self.order_repository.list_orders_for_customer(phone=phone)
        elif actor.user_id:
            orders = self.order_repository.list_orders_for_customer(user_id=actor.user_id)
        else:
            raise ValidationError("A phone number is required to look up guest orders")
        return filter_orders(orders, status, customer_type)

    @traced("order.set_status")
    async def set_order_status(
        self,
        order_id: str,
        new_status: OrderStatus,
        actor: Actor,
        estimated_time: int | None = None,
        notes: str | None = None,
    ) -> Order:
        """Move an order to a new status.

        Args:
            order_id: Order to update
            new_status: Requested status
            actor: Caller; must be an admin or the order's restaurateur
            estimated_time: Optional new preparation/delivery estimate in minutes
            notes: Optional replacement notes

        Returns:
            The updated order

        Raises:
            NotFoundError: If the order does not exist
            AuthorizationError: If the actor cannot manage the order's restaurant
            ConflictError: Same-state, backward or post-terminal transition, or
                a concurrent update changed the status first
        """
        order = await self.get_order(order_id)
        authorize_restaurant_access(actor, order.restaurant_id)

        reason = transition_error(order.status, new_status)
        if reason is not None:
            raise ConflictError(reason)

        updated_at = datetime.now(UTC)
        applied = self.order_repository.update_status(
            order_id=order_id,
            expected_status=order.status,
            new_status=new_status,
            updated_at=updated_at,
            estimated_time=estimated_time,
            notes=notes,
        )
        if not applied:
            raise ConflictError(f"Order {order.order_number} was updated concurrently, reload it")

        record_status_transition(order.status.value, new_status.value)
        logger.info(
            f"Order {order.order_number} moved from {order.status.value} to {new_status.value}"
        )

        changes: dict[str, object] = {"status": new_status, "updated_at": updated_at}
        if estimated_time is not None:
            changes["estimated_time"] = estimated_time
        if notes is not None:
            changes["notes"] = notes
        return order.model_copy(update=changes)

    async def set_payment_status(
        self,
        order_id: str,
        payment_status: PaymentStatus,
        actor: Actor,
    ) -> Order:
        """Record the outcome of a payment.

        PAID and FAILED are final; only PENDING payments can change.

        Raises:
            NotFoundError: If the order does not exist
            AuthorizationError: If the actor cannot manage the order's restaurant
            ConflictError: If the payment is already settled or changed concurrently
        """
        order = await self.get_order(order_id)
        authorize_restaurant_access(actor, order.restaurant_id)

        if order.payment_status == payment_status:
            raise ConflictError(f"Payment is already {payment_status.value}")
        if order.payment_status != PaymentStatus.PENDING:
            raise ConflictError(f"Payment is {order.payment_status.value} and can no longer change")

        updated_at = datetime.now(UTC)
        applied = self.order_repository.update_payment_status(
            order_id=order_id,
            expected_status=order.payment_status,
            new_status=payment_status,
            updated_at=updated_at,
        )
        if not applied:
            raise ConflictError(f"Order {order.order_number} was updated concurrently, reload it")

        logger.info(f"Order {order.order_number} payment marked {payment_status.value}")
        return order.model_copy(update={"payment_status": payment_status, "updated_at": updated_at})
