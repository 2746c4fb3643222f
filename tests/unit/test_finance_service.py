"""Unit tests for financial aggregation."""

import csv
import io
from collections.abc import Callable
from datetime import UTC, date, datetime
from unittest.mock import MagicMock

import pytest

from food_marketplace.auth.authorization import Actor
from food_marketplace.exceptions import AuthorizationError, NotFoundError, ValidationError
from food_marketplace.models.catalog_models import Restaurant
from food_marketplace.models.order_models import Order, OrderStatus
from food_marketplace.repositories.catalog_repositories import (
    ProductRepository,
    RestaurantRepository,
)
from food_marketplace.repositories.order_repositories import OrderRepository
from food_marketplace.services.finance_service import (
    FinanceService,
    render_orders_csv,
    summarize_orders,
    top_products,
)

START = date(2024, 3, 1)
END = date(2024, 3, 31)


def _at(day: int, hour: int = 12) -> datetime:
    return datetime(2024, 3, day, hour, 0, tzinfo=UTC)


@pytest.mark.unit
class TestSummarizeOrders:
    """Test suite for the pure aggregation function."""

    def test_buckets_and_revenue(self, make_order: Callable[..., Order]) -> None:
        """Test only DELIVERED orders count as revenue."""
        orders = [
            make_order("o1", status=OrderStatus.DELIVERED, items=[("p1", 2, 1000)]),
            make_order("o2", status=OrderStatus.DELIVERED, items=[("p2", 1, 3000)]),
            make_order("o3", status=OrderStatus.DELIVERING, items=[("p1", 1, 1000)]),
            make_order("o4", status=OrderStatus.RECEIVED, items=[("p1", 1, 1000)]),
            make_order("o5", status=OrderStatus.CANCELLED, items=[("p1", 9, 1000)]),
        ]

        summary = summarize_orders(orders, START, END, restaurant_id="rest_1")

        assert summary.restaurant_id == "rest_1"
        assert summary.total_orders == 5
        assert summary.completed_orders == 2
        assert summary.pending_orders == 2
        assert summary.cancelled_orders == 1
        assert summary.total_revenue == 5000
        assert summary.pending_revenue == 2000
        assert summary.delivery_fees == 3000
        assert summary.average_order_value == 2500

    def test_no_completed_orders_average_is_zero(self, make_order: Callable[..., Order]) -> None:
        summary = summarize_orders([make_order(status=OrderStatus.RECEIVED)], START, END)

        assert summary.total_revenue == 0
        assert summary.average_order_value == 0

    def test_cancelled_orders_never_contribute_revenue(
        self, make_order: Callable[..., Order]
    ) -> None:
        orders = [make_order(f"o{i}", status=OrderStatus.CANCELLED) for i in range(3)]

        summary = summarize_orders(orders, START, END)

        assert summary.total_revenue == 0
        assert summary.pending_revenue == 0
        assert summary.top_products == []
        assert all(point.orders == 0 and point.revenue == 0 for point in summary.daily)

    def test_daily_series_covers_every_day(self, make_order: Callable[..., Order]) -> None:
        orders = [
            make_order("o1", status=OrderStatus.DELIVERED, created_at=_at(2), items=[("p", 1, 500)]),
            make_order("o2", status=OrderStatus.READY, created_at=_at(2, 20)),
            make_order("o3", status=OrderStatus.CANCELLED, created_at=_at(3)),
        ]

        summary = summarize_orders(orders, date(2024, 3, 1), date(2024, 3, 4))

        assert [point.date for point in summary.daily] == [
            date(2024, 3, 1),
            date(2024, 3, 2),
            date(2024, 3, 3),
            date(2024, 3, 4),
        ]
        assert summary.daily[1].orders == 2
        assert summary.daily[1].revenue == 500
        assert summary.daily[2].orders == 0

    def test_orders_outside_range_ignored(self, make_order: Callable[..., Order]) -> None:
        orders = [
            make_order("o1", status=OrderStatus.DELIVERED, created_at=_at(1, 0)),
            make_order(
                "o2",
                status=OrderStatus.DELIVERED,
                created_at=datetime(2024, 4, 1, 0, 0, tzinfo=UTC),
            ),
        ]

        summary = summarize_orders(orders, START, END)

        assert summary.total_orders == 1

    def test_top_products_sorted_and_truncated(self, make_order: Callable[..., Order]) -> None:
        orders = [
            make_order("o1", status=OrderStatus.DELIVERED, items=[("a", 5, 100), ("b", 2, 100)]),
            make_order("o2", status=OrderStatus.DELIVERED, items=[("b", 1, 100), ("c", 7, 100)]),
            make_order("o3", status=OrderStatus.RECEIVED, items=[("d", 50, 100)]),
        ]

        best = top_products(orders, top_n=2)

        assert [(p.product_id, p.quantity) for p in best] == [("c", 7), ("a", 5)]
        assert best[0].revenue == 700

    def test_received_preparing_delivered_counts_as_completed(
        self, make_order: Callable[..., Order]
    ) -> None:
        """Test an order that jumped PREPARING -> DELIVERED is completed revenue."""
        order = make_order(status=OrderStatus.RECEIVED, items=[("p1", 2, 1500)])
        order = order.model_copy(update={"status": OrderStatus.PREPARING})
        order = order.model_copy(update={"status": OrderStatus.DELIVERED})

        summary = summarize_orders([order], START, END)

        assert summary.completed_orders == 1
        assert summary.total_revenue == 3000


@pytest.mark.unit
class TestFinanceService:
    """Test suite for FinanceService entry points."""

    @pytest.fixture
    def order_repository(self) -> MagicMock:
        return MagicMock(spec=OrderRepository)

    @pytest.fixture
    def restaurant_repository(self, restaurant: Restaurant) -> MagicMock:
        repo = MagicMock(spec=RestaurantRepository)
        repo.get_restaurant.return_value = restaurant.model_copy(update={"rating": 4.5})
        return repo

    @pytest.fixture
    def product_repository(self) -> MagicMock:
        return MagicMock(spec=ProductRepository)

    @pytest.fixture
    def service(
        self,
        order_repository: MagicMock,
        restaurant_repository: MagicMock,
        product_repository: MagicMock,
    ) -> FinanceService:
        return FinanceService(
            order_repository=order_repository,
            restaurant_repository=restaurant_repository,
            product_repository=product_repository,
        )

    @pytest.mark.asyncio
    async def test_restaurant_summary_queries_whole_days(
        self,
        service: FinanceService,
        order_repository: MagicMock,
        make_order: Callable[..., Order],
        restaurateur: Actor,
    ) -> None:
        order_repository.list_orders_for_restaurant.return_value = [
            make_order(status=OrderStatus.DELIVERED)
        ]

        summary = await service.compute_financial_summary("rest_1", START, END, restaurateur)

        order_repository.list_orders_for_restaurant.assert_called_once_with(
            "rest_1",
            datetime(2024, 3, 1, 0, 0, tzinfo=UTC),
            datetime(2024, 3, 31, 23, 59, 59, 999999, tzinfo=UTC),
        )
        assert summary.completed_orders == 1
        assert summary.total_revenue == 400

    @pytest.mark.asyncio
    async def test_restaurateur_cannot_read_other_restaurant(
        self, service: FinanceService, order_repository: MagicMock, restaurateur: Actor
    ) -> None:
        with pytest.raises(AuthorizationError):
            await service.compute_financial_summary("rest_2", START, END, restaurateur)

        order_repository.list_orders_for_restaurant.assert_not_called()

    @pytest.mark.asyncio
    async def test_platform_summary_is_admin_only(
        self, service: FinanceService, restaurateur: Actor
    ) -> None:
        with pytest.raises(AuthorizationError):
            await service.compute_financial_summary(None, START, END, restaurateur)

    @pytest.mark.asyncio
    async def test_platform_summary_for_admin(
        self,
        service: FinanceService,
        order_repository: MagicMock,
        make_order: Callable[..., Order],
        admin: Actor,
    ) -> None:
        order_repository.list_orders_between.return_value = [
            make_order("o1", restaurant_id="rest_1", status=OrderStatus.DELIVERED),
            make_order("o2", restaurant_id="rest_2", status=OrderStatus.DELIVERED),
        ]

        summary = await service.compute_financial_summary(None, START, END, admin, top_n=1)

        assert summary.restaurant_id is None
        assert summary.completed_orders == 2
        assert len(summary.top_products) == 1

    @pytest.mark.asyncio
    async def test_inverted_range_rejected(self, service: FinanceService, admin: Actor) -> None:
        with pytest.raises(ValidationError):
            await service.compute_financial_summary("rest_1", END, START, admin)

    @pytest.mark.asyncio
    async def test_unknown_restaurant(
        self, service: FinanceService, restaurant_repository: MagicMock, admin: Actor
    ) -> None:
        restaurant_repository.get_restaurant.return_value = None

        with pytest.raises(NotFoundError):
            await service.compute_financial_summary("ghost", START, END, admin)

    @pytest.mark.asyncio
    async def test_dashboard_stats(
        self,
        service: FinanceService,
        order_repository: MagicMock,
        make_order: Callable[..., Order],
        restaurateur: Actor,
    ) -> None:
        order_repository.list_orders_for_restaurant.return_value = [
            make_order(f"o{i}", status=OrderStatus.DELIVERED, items=[("p1", 1, 1000)])
            for i in range(12)
        ] + [make_order("c1", status=OrderStatus.CANCELLED), make_order("r1")]

        stats = await service.get_dashboard_stats("rest_1", restaurateur)

        assert stats.total_orders == 14
        assert stats.completed_orders == 12
        assert stats.cancelled_orders == 1
        assert stats.pending_orders == 1
        assert stats.total_revenue == 12000
        assert stats.rating == 4.5
        assert len(stats.recent_orders) == 10
        assert stats.recent_orders[0].order_id == "o0"
        assert stats.top_selling_products[0].quantity == 12

    @pytest.mark.asyncio
    async def test_platform_dashboard(
        self,
        service: FinanceService,
        order_repository: MagicMock,
        restaurant_repository: MagicMock,
        product_repository: MagicMock,
        restaurant: Restaurant,
        other_restaurant: Restaurant,
        make_order: Callable[..., Order],
        admin: Actor,
    ) -> None:
        restaurant_repository.list_restaurants.return_value = [
            restaurant,
            other_restaurant.model_copy(update={"is_active": False}),
        ]
        product_repository.count_products.return_value = 42
        order_repository.list_all_orders.return_value = [
            make_order("o1", status=OrderStatus.DELIVERED, items=[("p1", 1, 3000)]),
            make_order("o2", status=OrderStatus.DELIVERED, items=[("p1", 1, 1000)]),
            make_order("o3", restaurant_id="ghost", status=OrderStatus.CANCELLED),
            make_order("o4", restaurant_id="rest_2", status=OrderStatus.PREPARING),
        ]

        dashboard = await service.get_platform_dashboard(admin, recent=3)

        assert dashboard.restaurants.model_dump() == {"total": 2, "active": 1, "inactive": 1}
        assert dashboard.total_products == 42
        assert dashboard.orders.model_dump() == {
            "total": 4,
            "pending": 1,
            "completed": 2,
            "cancelled": 1,
        }
        assert dashboard.total_revenue == 4000
        assert dashboard.average_order_value == 2000
        assert [entry.order_id for entry in dashboard.activity] == ["o1", "o2", "o3"]
        assert dashboard.activity[0].restaurant_name == "Chez Awa"
        assert dashboard.activity[2].restaurant_name is None

    @pytest.mark.asyncio
    async def test_platform_dashboard_is_admin_only(
        self,
        service: FinanceService,
        order_repository: MagicMock,
        restaurateur: Actor,
    ) -> None:
        with pytest.raises(AuthorizationError):
            await service.get_platform_dashboard(restaurateur)

        order_repository.list_all_orders.assert_not_called()

    @pytest.mark.asyncio
    async def test_platform_dashboard_without_orders(
        self,
        service: FinanceService,
        order_repository: MagicMock,
        restaurant_repository: MagicMock,
        product_repository: MagicMock,
        admin: Actor,
    ) -> None:
        restaurant_repository.list_restaurants.return_value = []
        product_repository.count_products.return_value = 0
        order_repository.list_all_orders.return_value = []

        dashboard = await service.get_platform_dashboard(admin)

        assert dashboard.average_order_value == 0.0
        assert dashboard.activity == []

    @pytest.mark.asyncio
    async def test_export_csv(
        self,
        service: FinanceService,
        order_repository: MagicMock,
        make_order: Callable[..., Order],
        restaurateur: Actor,
    ) -> None:
        order_repository.list_orders_for_restaurant.return_value = [
            make_order("o1", status=OrderStatus.DELIVERED),
            make_order("o2", status=OrderStatus.CANCELLED),
        ]

        content = await service.export_orders_csv("rest_1", START, END, restaurateur)

        rows = list(csv.reader(io.StringIO(content)))
        assert rows[0][0] == "date"
        assert len(rows) == 2
        assert rows[1][1] == "MNU-O1"


@pytest.mark.unit
class TestRenderOrdersCsv:
    """Test suite for CSV rendering."""

    def test_item_summary_column(self, make_order: Callable[..., Order]) -> None:
        order = make_order(items=[("p1", 2, 200), ("p2", 1, 300)])

        rows = list(csv.DictReader(io.StringIO(render_orders_csv([order]))))

        assert rows[0]["items"] == "2x Product p1 (200); 1x Product p2 (300)"
        assert rows[0]["total"] == "700"
        assert rows[0]["status"] == "RECEIVED"
