"""Unit tests for the FastAPI application."""

from collections.abc import Callable
from datetime import date
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from food_marketplace.auth.authorization import Actor, Role
from food_marketplace.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    StorageError,
)
from food_marketplace.handlers.api_handler import create_app, default_range
from food_marketplace.models.cart_models import CartLine, CartRestaurant, CartState
from food_marketplace.models.engagement_models import LikeIdentity, LikeTargetType
from food_marketplace.models.finance_models import (
    FinancialSummary,
    PlatformDashboard,
    RestaurantCounts,
)
from food_marketplace.models.order_models import CustomerType, Order, OrderStatus
from food_marketplace.services.cart_service import CartService
from food_marketplace.services.finance_service import FinanceService
from food_marketplace.services.like_service import LikeResult, LikeService
from food_marketplace.services.order_service import OrderService
from food_marketplace.services.review_service import ReviewService

API_KEY = "test-api-key"
HEADERS = {"X-API-Key": API_KEY}
ADMIN_HEADERS = {**HEADERS, "X-User-Role": "ADMIN", "X-User-Id": "admin_1"}
OWNER_HEADERS = {
    **HEADERS,
    "X-User-Role": "RESTAURATOR",
    "X-User-Id": "manager_1",
    "X-Restaurant-Id": "rest_1",
}


@pytest.fixture
def client() -> TestClient:
    """Create a test client with mocked services."""
    app = create_app(
        order_service=MagicMock(spec=OrderService),
        finance_service=MagicMock(spec=FinanceService),
        cart_service=MagicMock(spec=CartService),
        like_service=MagicMock(spec=LikeService),
        review_service=MagicMock(spec=ReviewService),
        gateway_keys=[API_KEY],
    )
    return TestClient(app)


@pytest.fixture
def order_body(checkout_details: dict[str, Any]) -> dict[str, Any]:
    return {**checkout_details, "items": [{"product_id": "prod_1", "quantity": 2}]}


@pytest.mark.unit
class TestHealthAndAuth:
    """Test suite for health check and gateway key handling."""

    def test_health_check(self, client: TestClient) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    def test_missing_key(self, client: TestClient) -> None:
        response = client.get("/carts/sess_1")

        assert response.status_code == 401

    def test_invalid_key(self, client: TestClient) -> None:
        response = client.get("/carts/sess_1", headers={"X-API-Key": "invalid-key"})

        assert response.status_code == 401

    def test_unknown_role(self, client: TestClient) -> None:
        response = client.get("/carts/sess_1", headers={**HEADERS, "X-User-Role": "CHEF"})

        assert response.status_code == 400


@pytest.mark.unit
class TestOrderEndpoints:
    """Test suite for order endpoints."""

    def test_create_order(
        self,
        client: TestClient,
        order_body: dict[str, Any],
        make_order: Callable[..., Order],
    ) -> None:
        """Test the order is returned in the success envelope with the caller's user id."""
        mock_create = AsyncMock(return_value=make_order(user_id="user_1"))
        client.app.state.order_service.create_order = mock_create

        response = client.post(
            "/orders", json=order_body, headers={**HEADERS, "X-User-Id": "user_1"}
        )

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["data"]["order_id"] == "order_1"
        assert body["data"]["status"] == "RECEIVED"
        request = mock_create.call_args.args[0]
        assert request.user_id == "user_1"
        assert request.items[0].product_id == "prod_1"

    def test_body_user_id_cannot_override_caller(
        self,
        client: TestClient,
        order_body: dict[str, Any],
        make_order: Callable[..., Order],
    ) -> None:
        """Test a customer cannot file an order under another account."""
        mock_create = AsyncMock(return_value=make_order(user_id="attacker"))
        client.app.state.order_service.create_order = mock_create

        response = client.post(
            "/orders",
            json={**order_body, "user_id": "victim"},
            headers={**HEADERS, "X-User-Id": "attacker"},
        )

        assert response.status_code == 201
        assert mock_create.call_args.args[0].user_id == "attacker"

    def test_anonymous_order_has_no_account(
        self,
        client: TestClient,
        order_body: dict[str, Any],
        make_order: Callable[..., Order],
    ) -> None:
        mock_create = AsyncMock(return_value=make_order())
        client.app.state.order_service.create_order = mock_create

        client.post("/orders", json={**order_body, "user_id": "victim"}, headers=HEADERS)

        assert mock_create.call_args.args[0].user_id is None

    def test_admin_may_order_for_a_customer(
        self,
        client: TestClient,
        order_body: dict[str, Any],
        make_order: Callable[..., Order],
    ) -> None:
        mock_create = AsyncMock(return_value=make_order(user_id="user_9"))
        client.app.state.order_service.create_order = mock_create

        client.post("/orders", json={**order_body, "user_id": "user_9"}, headers=ADMIN_HEADERS)

        assert mock_create.call_args.args[0].user_id == "user_9"

    def test_create_order_invalid_body(
        self, client: TestClient, order_body: dict[str, Any]
    ) -> None:
        order_body["customer_phone"] = "12"

        response = client.post("/orders", json=order_body, headers=HEADERS)

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"].startswith("customer_phone")

    def test_conflict_maps_to_409(self, client: TestClient, order_body: dict[str, Any]) -> None:
        client.app.state.order_service.create_order = AsyncMock(
            side_effect=ConflictError("An order can only contain items from one restaurant")
        )

        response = client.post("/orders", json=order_body, headers=HEADERS)

        assert response.status_code == 409
        assert response.json() == {
            "success": False,
            "error": "An order can only contain items from one restaurant",
        }

    def test_storage_error_is_not_leaked(
        self, client: TestClient, order_body: dict[str, Any]
    ) -> None:
        client.app.state.order_service.create_order = AsyncMock(
            side_effect=StorageError("ProvisionedThroughputExceededException on orders table")
        )

        response = client.post("/orders", json=order_body, headers=HEADERS)

        assert response.status_code == 503
        assert "ProvisionedThroughput" not in response.json()["error"]

    def test_get_order_by_owner(self, client: TestClient, make_order: Callable[..., Order]) -> None:
        client.app.state.order_service.get_order = AsyncMock(
            return_value=make_order(user_id="user_1")
        )

        response = client.get("/orders/order_1", headers={**HEADERS, "X-User-Id": "user_1"})

        assert response.status_code == 200
        assert response.json()["data"]["order_number"] == "MNU-ORDER_1"

    def test_get_order_by_stranger(
        self, client: TestClient, make_order: Callable[..., Order]
    ) -> None:
        client.app.state.order_service.get_order = AsyncMock(
            return_value=make_order(user_id="user_1")
        )

        response = client.get("/orders/order_1", headers={**HEADERS, "X-User-Id": "user_2"})

        assert response.status_code == 403
        assert response.json()["success"] is False

    def test_track_unknown_order(self, client: TestClient) -> None:
        client.app.state.order_service.get_order_by_number = AsyncMock(
            side_effect=NotFoundError("Order MNU-NOPE not found")
        )

        response = client.get("/orders/by-number/MNU-NOPE", headers=HEADERS)

        assert response.status_code == 404

    def test_customer_orders_by_phone(
        self, client: TestClient, make_order: Callable[..., Order]
    ) -> None:
        mock_list = AsyncMock(return_value=[make_order()])
        client.app.state.order_service.list_customer_orders = mock_list

        response = client.get(
            "/orders?phone=771112233&status=RECEIVED&customer_type=guest", headers=HEADERS
        )

        assert response.status_code == 200
        assert response.json()["data"][0]["order_number"] == "MNU-ORDER_1"
        assert mock_list.call_args.args[0] == Actor(role=Role.CUSTOMER)
        assert mock_list.call_args.kwargs == {
            "phone": "771112233",
            "status": OrderStatus.RECEIVED,
            "customer_type": CustomerType.GUEST,
        }

    def test_customer_orders_unknown_customer_type(self, client: TestClient) -> None:
        response = client.get("/orders?phone=771112233&customer_type=vip", headers=HEADERS)

        assert response.status_code == 400

    def test_admin_lists_all_orders(
        self, client: TestClient, make_order: Callable[..., Order]
    ) -> None:
        mock_list = AsyncMock(return_value=[make_order(), make_order("order_2")])
        client.app.state.order_service.list_orders = mock_list

        response = client.get("/admin/orders?customer_type=registered", headers=ADMIN_HEADERS)

        assert response.status_code == 200
        assert len(response.json()["data"]) == 2
        assert mock_list.call_args.kwargs["customer_type"] == CustomerType.REGISTERED

    def test_admin_orders_forbidden_for_restaurateur(self, client: TestClient) -> None:
        client.app.state.order_service.list_orders = AsyncMock(
            side_effect=AuthorizationError("Administrator access required")
        )

        response = client.get("/admin/orders", headers=OWNER_HEADERS)

        assert response.status_code == 403

    def test_update_status(self, client: TestClient, make_order: Callable[..., Order]) -> None:
        mock_update = AsyncMock(return_value=make_order(status=OrderStatus.CONFIRMED))
        client.app.state.order_service.set_order_status = mock_update

        response = client.put(
            "/orders/order_1/status",
            json={"status": "CONFIRMED", "estimated_time": 30},
            headers=OWNER_HEADERS,
        )

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "CONFIRMED"
        args = mock_update.call_args
        assert args.args[:2] == ("order_1", OrderStatus.CONFIRMED)
        assert args.args[2] == Actor(
            role=Role.RESTAURATOR, user_id="manager_1", restaurant_id="rest_1"
        )
        assert args.kwargs["estimated_time"] == 30

    def test_update_status_unknown_value(self, client: TestClient) -> None:
        response = client.put(
            "/orders/order_1/status", json={"status": "TELEPORTED"}, headers=OWNER_HEADERS
        )

        assert response.status_code == 400

    def test_list_restaurant_orders_with_filter(
        self, client: TestClient, make_order: Callable[..., Order]
    ) -> None:
        mock_list = AsyncMock(return_value=[make_order()])
        client.app.state.order_service.list_restaurant_orders = mock_list

        response = client.get("/restaurants/rest_1/orders?status=RECEIVED", headers=OWNER_HEADERS)

        assert response.status_code == 200
        assert len(response.json()["data"]) == 1
        assert mock_list.call_args.kwargs["status"] == OrderStatus.RECEIVED


@pytest.mark.unit
class TestFinanceEndpoints:
    """Test suite for finance endpoints."""

    def test_restaurant_finances(self, client: TestClient) -> None:
        mock_summary = AsyncMock(
            return_value=FinancialSummary(
                restaurant_id="rest_1",
                start_date=date(2024, 3, 1),
                end_date=date(2024, 3, 31),
                total_orders=3,
                total_revenue=4200,
            )
        )
        client.app.state.finance_service.compute_financial_summary = mock_summary

        response = client.get(
            "/restaurants/rest_1/finances?start_date=2024-03-01&end_date=2024-03-31",
            headers=OWNER_HEADERS,
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["total_revenue"] == 4200
        assert data["start_date"] == "2024-03-01"
        assert mock_summary.call_args.args[:3] == ("rest_1", date(2024, 3, 1), date(2024, 3, 31))

    def test_forbidden_restaurant(self, client: TestClient) -> None:
        client.app.state.finance_service.compute_financial_summary = AsyncMock(
            side_effect=AuthorizationError("Not allowed to access restaurant rest_2")
        )

        response = client.get("/restaurants/rest_2/finances", headers=OWNER_HEADERS)

        assert response.status_code == 403

    def test_admin_finances_are_platform_wide(self, client: TestClient) -> None:
        mock_summary = AsyncMock(
            return_value=FinancialSummary(start_date=date(2024, 3, 1), end_date=date(2024, 3, 2))
        )
        client.app.state.finance_service.compute_financial_summary = mock_summary

        response = client.get(
            "/admin/finances?start_date=2024-03-01&end_date=2024-03-02", headers=ADMIN_HEADERS
        )

        assert response.status_code == 200
        assert response.json()["data"]["restaurant_id"] is None
        assert mock_summary.call_args.args[0] is None

    def test_platform_dashboard(self, client: TestClient) -> None:
        mock_dashboard = AsyncMock(
            return_value=PlatformDashboard(
                restaurants=RestaurantCounts(total=3, active=2, inactive=1),
                total_products=40,
                total_revenue=9000,
            )
        )
        client.app.state.finance_service.get_platform_dashboard = mock_dashboard

        response = client.get("/admin/dashboard", headers=ADMIN_HEADERS)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["restaurants"] == {"total": 3, "active": 2, "inactive": 1}
        assert data["total_revenue"] == 9000
        assert mock_dashboard.call_args.args[0].role == Role.ADMIN

    def test_csv_export(self, client: TestClient) -> None:
        client.app.state.finance_service.export_orders_csv = AsyncMock(
            return_value="order_number,date\r\nMNU-1,2024-03-10\r\n"
        )

        response = client.get(
            "/restaurants/rest_1/finances/export?start_date=2024-03-01&end_date=2024-03-31",
            headers=OWNER_HEADERS,
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "orders-rest_1-2024-03-01-2024-03-31.csv" in response.headers["content-disposition"]
        assert response.text.startswith("order_number")

    def test_default_range_is_thirty_days(self) -> None:
        start, end = default_range(None, date(2024, 3, 31))

        assert start == date(2024, 3, 2)
        assert end == date(2024, 3, 31)


@pytest.mark.unit
class TestCartEndpoints:
    """Test suite for mirrored cart endpoints."""

    def test_add_item(self, client: TestClient) -> None:
        state = CartState(
            session_id="sess_1",
            lines=[
                CartLine(
                    line_id="line_1",
                    product_id="prod_1",
                    name="Thieboudienne",
                    price=200,
                    restaurant_id="rest_1",
                    quantity=2,
                )
            ],
            current_restaurant=CartRestaurant(
                restaurant_id="rest_1", name="Chez Awa", delivery_fee=1500
            ),
            is_open=True,
        )
        mock_add = AsyncMock(return_value=state)
        client.app.state.cart_service.add_item = mock_add

        response = client.post(
            "/carts/sess_1/items", json={"product_id": "prod_1", "quantity": 2}, headers=HEADERS
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["lines"][0]["quantity"] == 2
        assert data["current_restaurant"]["restaurant_id"] == "rest_1"
        mock_add.assert_awaited_once_with(
            "sess_1", "prod_1", quantity=2, notes="", replace_existing=False
        )

    def test_add_item_rejects_zero_quantity(self, client: TestClient) -> None:
        response = client.post(
            "/carts/sess_1/items", json={"product_id": "prod_1", "quantity": 0}, headers=HEADERS
        )

        assert response.status_code == 400

    def test_update_line(self, client: TestClient) -> None:
        mock_update = AsyncMock(return_value=CartState(session_id="sess_1"))
        client.app.state.cart_service.update_line = mock_update

        response = client.patch(
            "/carts/sess_1/items/line_1", json={"quantity": 0}, headers=HEADERS
        )

        assert response.status_code == 200
        mock_update.assert_awaited_once_with("sess_1", "line_1", quantity=0, notes=None)

    def test_checkout(
        self,
        client: TestClient,
        checkout_details: dict[str, Any],
        make_order: Callable[..., Order],
    ) -> None:
        mock_checkout = AsyncMock(return_value=make_order())
        client.app.state.cart_service.checkout = mock_checkout

        response = client.post("/carts/sess_1/checkout", json=checkout_details, headers=HEADERS)

        assert response.status_code == 201
        assert response.json()["data"]["total"] == 400
        assert mock_checkout.call_args.args[0] == "sess_1"

    def test_checkout_uses_caller_account(
        self,
        client: TestClient,
        checkout_details: dict[str, Any],
        make_order: Callable[..., Order],
    ) -> None:
        mock_checkout = AsyncMock(return_value=make_order(user_id="user_1"))
        client.app.state.cart_service.checkout = mock_checkout

        client.post(
            "/carts/sess_1/checkout",
            json={**checkout_details, "user_id": "user_2"},
            headers={**HEADERS, "X-User-Id": "user_1"},
        )

        assert mock_checkout.call_args.args[1].user_id == "user_1"


@pytest.mark.unit
class TestEngagementEndpoints:
    """Test suite for likes and reviews."""

    def test_like_without_state_toggles(self, client: TestClient) -> None:
        mock_toggle = AsyncMock(
            return_value=LikeResult(
                target_type=LikeTargetType.PRODUCT, target_id="prod_1", liked=True, likes_count=5
            )
        )
        client.app.state.like_service.toggle = mock_toggle

        response = client.post(
            "/likes",
            json={"target_type": "PRODUCT", "target_id": "prod_1", "user_fingerprint": "fp_1"},
            headers=HEADERS,
        )

        assert response.status_code == 200
        assert response.json()["data"] == {
            "target_type": "PRODUCT",
            "target_id": "prod_1",
            "liked": True,
            "likes_count": 5,
        }
        mock_toggle.assert_awaited_once_with(
            LikeTargetType.PRODUCT, "prod_1", LikeIdentity(user_fingerprint="fp_1")
        )

    def test_explicit_unlike(self, client: TestClient) -> None:
        mock_set = AsyncMock(
            return_value=LikeResult(
                target_type=LikeTargetType.RESTAURANT,
                target_id="rest_1",
                liked=False,
                likes_count=0,
            )
        )
        client.app.state.like_service.set_like = mock_set

        response = client.post(
            "/likes",
            json={
                "target_type": "RESTAURANT",
                "target_id": "rest_1",
                "user_phone": "771234567",
                "liked": False,
            },
            headers=HEADERS,
        )

        assert response.status_code == 200
        assert mock_set.call_args.args[3] is False

    def test_is_liked(self, client: TestClient) -> None:
        client.app.state.like_service.is_liked = AsyncMock(return_value=True)

        response = client.get(
            "/likes?target_type=PRODUCT&target_id=prod_1&user_email=awa@example.com",
            headers=HEADERS,
        )

        assert response.status_code == 200
        assert response.json()["data"]["liked"] is True

    def test_create_review_rating_out_of_range(self, client: TestClient) -> None:
        response = client.post(
            "/reviews",
            json={"rating": 6, "customer_name": "Awa", "restaurant_id": "rest_1"},
            headers=HEADERS,
        )

        assert response.status_code == 400
        assert response.json()["error"].startswith("rating")

    def test_list_reviews(self, client: TestClient) -> None:
        mock_list = AsyncMock(
            return_value={
                "reviews": [],
                "pagination": {"page": 2, "limit": 5, "total": 6, "pages": 2},
            }
        )
        client.app.state.review_service.list_reviews = mock_list

        response = client.get("/reviews?restaurant_id=rest_1&page=2&limit=5", headers=HEADERS)

        assert response.status_code == 200
        assert response.json()["data"]["pagination"]["pages"] == 2
        mock_list.assert_awaited_once_with(
            restaurant_id="rest_1", product_id=None, page=2, limit=5
        )
