"""Shared pytest fixtures and configuration for all tests."""

import os
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import pytest

# Keep composition roots from building real AWS clients at import time
os.environ.setdefault("ENVIRONMENT", "test")

from food_marketplace.auth.authorization import Actor, Role  # noqa: E402
from food_marketplace.models.catalog_models import Product, Restaurant  # noqa: E402
from food_marketplace.models.order_models import (  # noqa: E402
    DeliveryType,
    Order,
    OrderItem,
    OrderStatus,
    PaymentMethod,
)


@pytest.fixture
def restaurant() -> Restaurant:
    """Fixture providing an active restaurant with a 1500 delivery fee."""
    return Restaurant(
        restaurant_id="rest_1",
        name="Chez Awa",
        address="12 Rue Carnot, Dakar",
        phone="771234567",
        email="contact@chezawa.sn",
        cuisine="Senegalese",
        delivery_fee=1500,
        min_order_amount=0,
    )


@pytest.fixture
def other_restaurant() -> Restaurant:
    """Fixture providing a second restaurant."""
    return Restaurant(
        restaurant_id="rest_2",
        name="Pizza Plateau",
        address="5 Avenue Pompidou, Dakar",
        phone="778765432",
        email="hello@pizzaplateau.sn",
        cuisine="Italian",
        delivery_fee=1000,
    )


@pytest.fixture
def make_product() -> Callable[..., Product]:
    """Factory fixture for products."""

    def _make(
        product_id: str = "prod_1",
        restaurant_id: str = "rest_1",
        price: int = 200,
        name: str | None = None,
        active: bool = True,
    ) -> Product:
        return Product(
            product_id=product_id,
            restaurant_id=restaurant_id,
            category_id="cat_1",
            name=name or f"Product {product_id}",
            price=price,
            active=active,
        )

    return _make


@pytest.fixture
def make_order() -> Callable[..., Order]:
    """Factory fixture for stored orders."""

    def _make(
        order_id: str = "order_1",
        restaurant_id: str = "rest_1",
        status: OrderStatus = OrderStatus.RECEIVED,
        items: list[tuple[str, int, int]] | None = None,
        created_at: datetime | None = None,
        delivery_fee: int = 1500,
        user_id: str | None = None,
    ) -> Order:
        lines = items or [("prod_1", 2, 200)]
        order_items = [
            OrderItem(
                product_id=product_id,
                product_name=f"Product {product_id}",
                quantity=quantity,
                unit_price=unit_price,
            )
            for product_id, quantity, unit_price in lines
        ]
        timestamp = created_at or datetime(2024, 3, 10, 12, 0, tzinfo=UTC)
        return Order(
            order_id=order_id,
            order_number=f"MNU-{order_id.upper()}",
            restaurant_id=restaurant_id,
            user_id=user_id,
            customer_name="Fatou Diop",
            customer_phone="771112233",
            address="Sacre Coeur 3, Dakar",
            delivery_type=DeliveryType.DELIVERY,
            payment_method=PaymentMethod.CASH_ON_DELIVERY,
            status=status,
            total=sum(item.subtotal for item in order_items),
            delivery_fee=delivery_fee,
            items=order_items,
            created_at=timestamp,
            updated_at=timestamp,
        )

    return _make


@pytest.fixture
def admin() -> Actor:
    return Actor(role=Role.ADMIN, user_id="admin_1")


@pytest.fixture
def restaurateur() -> Actor:
    """Fixture providing the manager of rest_1."""
    return Actor(role=Role.RESTAURATOR, user_id="manager_1", restaurant_id="rest_1")


@pytest.fixture
def customer() -> Actor:
    return Actor(role=Role.CUSTOMER, user_id="user_1")


@pytest.fixture
def checkout_details() -> dict[str, Any]:
    """Fixture providing valid checkout form values."""
    return {
        "customer_name": "Fatou Diop",
        "customer_phone": "771112233",
        "customer_email": "fatou@example.com",
        "address": "Sacre Coeur 3, Dakar",
        "delivery_type": "DELIVERY",
        "payment_method": "CASH_ON_DELIVERY",
    }
