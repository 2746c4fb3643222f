"""Revenue and order statistics for restaurant and admin back offices.

Only DELIVERED orders count as revenue. Orders still in progress count as
pending revenue. Cancelled orders never contribute to either.
"""

import csv
import io
import logging
from collections.abc import Iterable
from datetime import UTC, date, datetime, time, timedelta

from food_marketplace.auth.authorization import Actor, authorize_admin, authorize_restaurant_access
from food_marketplace.exceptions import NotFoundError, ValidationError
from food_marketplace.models.finance_models import (
    ActivityEntry,
    DailyStat,
    DashboardStats,
    FinancialSummary,
    OrderCounts,
    PlatformDashboard,
    RecentOrder,
    RestaurantCounts,
    TopProduct,
)
from food_marketplace.models.order_models import PENDING_STATUSES, Order, OrderStatus
from food_marketplace.observability import traced
from food_marketplace.repositories.catalog_repositories import (
    ProductRepository,
    RestaurantRepository,
)
from food_marketplace.repositories.order_repositories import OrderRepository

logger = logging.getLogger(__name__)

DEFAULT_SUMMARY_TOP_N = 10
DEFAULT_DASHBOARD_TOP_N = 6
DEFAULT_RECENT_ORDERS = 10
MAX_RANGE_DAYS = 366

CSV_HEADER = [
    "date",
    "order_number",
    "customer_name",
    "customer_phone",
    "customer_email",
    "address",
    "delivery_type",
    "payment_method",
    "payment_status",
    "status",
    "total",
    "delivery_fee",
    "items",
    "notes",
]


def day_bounds(start_date: date, end_date: date) -> tuple[datetime, datetime]:
    """Expand an inclusive date range to UTC datetimes covering whole days."""
    return (
        datetime.combine(start_date, time.min, tzinfo=UTC),
        datetime.combine(end_date, time.max, tzinfo=UTC),
    )


def top_products(orders: Iterable[Order], top_n: int) -> list[TopProduct]:
    """Best sellers among delivered orders, by quantity then revenue."""
    sales: dict[str, TopProduct] = {}
    for order in orders:
        if order.status != OrderStatus.DELIVERED:
            continue
        for item in order.items:
            entry = sales.get(item.product_id)
            if entry is None:
                entry = sales[item.product_id] = TopProduct(
                    product_id=item.product_id, name=item.product_name, quantity=0, revenue=0
                )
            entry.quantity += item.quantity
            entry.revenue += item.subtotal

    ranked = sorted(sales.values(), key=lambda p: (-p.quantity, -p.revenue, p.product_id))
    return ranked[:top_n]


def summarize_orders(
    orders: list[Order],
    start_date: date,
    end_date: date,
    top_n: int = DEFAULT_SUMMARY_TOP_N,
    restaurant_id: str | None = None,
) -> FinancialSummary:
    """Aggregate orders created within [start_date, end_date] (UTC days).

    Orders outside the range are ignored, so callers may pass a superset.

    Args:
        orders: Candidate orders
        start_date: First day of the range
        end_date: Last day of the range (inclusive)
        top_n: Number of best sellers to keep
        restaurant_id: Restaurant the summary is for, None for platform-wide

    Returns:
        FinancialSummary with buckets, revenue, daily series and best sellers
    """
    start, end = day_bounds(start_date, end_date)
    in_range = [order for order in orders if start <= order.created_at <= end]

    daily: dict[date, DailyStat] = {}
    day = start_date
    while day <= end_date:
        daily[day] = DailyStat(date=day)
        day += timedelta(days=1)

    summary = FinancialSummary(
        restaurant_id=restaurant_id,
        start_date=start_date,
        end_date=end_date,
        total_orders=len(in_range),
    )

    for order in in_range:
        point = daily[order.created_at.astimezone(UTC).date()]

        if order.status == OrderStatus.CANCELLED:
            summary.cancelled_orders += 1
            continue

        point.orders += 1
        if order.status == OrderStatus.DELIVERED:
            summary.completed_orders += 1
            summary.total_revenue += order.total
            summary.delivery_fees += order.delivery_fee
            point.revenue += order.total
        elif order.status in PENDING_STATUSES:
            summary.pending_orders += 1
            summary.pending_revenue += order.total

    if summary.completed_orders:
        summary.average_order_value = summary.total_revenue / summary.completed_orders

    summary.daily = list(daily.values())
    summary.top_products = top_products(in_range, top_n)
    return summary


def render_orders_csv(orders: Iterable[Order]) -> str:
    """Render non-cancelled orders as CSV, one row per order."""
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(CSV_HEADER)

    for order in orders:
        if order.status == OrderStatus.CANCELLED:
            continue
        writer.writerow(
            [
                order.created_at.date().isoformat(),
                order.order_number,
                order.customer_name,
                order.customer_phone,
                order.customer_email or "",
                order.address,
                order.delivery_type.value,
                order.payment_method.value,
                order.payment_status.value,
                order.status.value,
                order.total,
                order.delivery_fee,
                "; ".join(
                    f"{item.quantity}x {item.product_name} ({item.unit_price})"
                    for item in order.items
                ),
                order.notes or "",
            ]
        )

    return buffer.getvalue()


class FinanceService:
    """Computes financial summaries, dashboards and exports from stored orders."""

    def __init__(
        self,
        order_repository: OrderRepository,
        restaurant_repository: RestaurantRepository,
        product_repository: ProductRepository,
        summary_top_n: int = DEFAULT_SUMMARY_TOP_N,
        dashboard_top_n: int = DEFAULT_DASHBOARD_TOP_N,
    ) -> None:
        """Initialize the FinanceService.

        Args:
            order_repository: Repository storing orders
            restaurant_repository: Repository used to check restaurants exist
            product_repository: Repository used for catalog counts
            summary_top_n: Default best-seller count for summaries
            dashboard_top_n: Default best-seller count for the dashboard widget
        """
        self.order_repository = order_repository
        self.restaurant_repository = restaurant_repository
        self.product_repository = product_repository
        self.summary_top_n = summary_top_n
        self.dashboard_top_n = dashboard_top_n

    def _check_range(self, start_date: date, end_date: date) -> None:
        if end_date < start_date:
            raise ValidationError("end_date must not be before start_date")
        if (end_date - start_date).days >= MAX_RANGE_DAYS:
            raise ValidationError(f"Date range must not exceed {MAX_RANGE_DAYS} days")

    def _require_restaurant(self, restaurant_id: str) -> None:
        if self.restaurant_repository.get_restaurant(restaurant_id) is None:
            raise NotFoundError(f"Restaurant {restaurant_id} not found")

    @traced("finance.summary")
    async def compute_financial_summary(
        self,
        restaurant_id: str | None,
        start_date: date,
        end_date: date,
        actor: Actor,
        top_n: int | None = None,
    ) -> FinancialSummary:
        """Summarize orders for one restaurant, or the whole platform.

        Args:
            restaurant_id: Restaurant to summarize; None for all restaurants
                (admins only)
            start_date: First day of the range
            end_date: Last day of the range (inclusive)
            actor: Caller identity
            top_n: Best-seller count, defaults to the configured value

        Raises:
            AuthorizationError: If the actor may not see these figures
            ValidationError: If the range is inverted or too long
            NotFoundError: If the restaurant does not exist
        """
        self._check_range(start_date, end_date)
        start, end = day_bounds(start_date, end_date)
        limit = top_n if top_n is not None else self.summary_top_n

        if restaurant_id is None:
            authorize_admin(actor)
            orders = self.order_repository.list_orders_between(start, end)
        else:
            authorize_restaurant_access(actor, restaurant_id)
            self._require_restaurant(restaurant_id)
            orders = self.order_repository.list_orders_for_restaurant(restaurant_id, start, end)

        return summarize_orders(orders, start_date, end_date, limit, restaurant_id)

    async def get_dashboard_stats(
        self,
        restaurant_id: str,
        actor: Actor,
        top_n: int | None = None,
        recent: int = DEFAULT_RECENT_ORDERS,
    ) -> DashboardStats:
        """Lifetime statistics for the restaurant dashboard."""
        authorize_restaurant_access(actor, restaurant_id)
        restaurant = self.restaurant_repository.get_restaurant(restaurant_id)
        if restaurant is None:
            raise NotFoundError(f"Restaurant {restaurant_id} not found")

        orders = self.order_repository.list_orders_for_restaurant(restaurant_id)
        stats = DashboardStats(
            restaurant_id=restaurant_id,
            total_orders=len(orders),
            rating=restaurant.rating,
        )

        for order in orders:
            if order.status == OrderStatus.DELIVERED:
                stats.completed_orders += 1
                stats.total_revenue += order.total
            elif order.status == OrderStatus.CANCELLED:
                stats.cancelled_orders += 1
            else:
                stats.pending_orders += 1

        stats.recent_orders = [
            RecentOrder(
                order_id=order.order_id,
                order_number=order.order_number,
                customer_name=order.customer_name,
                total=order.total,
                status=order.status,
                created_at=order.created_at,
                items_count=sum(item.quantity for item in order.items),
            )
            for order in orders[:recent]
        ]
        stats.top_selling_products = top_products(
            orders, top_n if top_n is not None else self.dashboard_top_n
        )
        return stats

    @traced("finance.platform_dashboard")
    async def get_platform_dashboard(
        self, actor: Actor, recent: int = DEFAULT_RECENT_ORDERS
    ) -> PlatformDashboard:
        """Lifetime platform statistics for admins.

        Args:
            actor: Caller identity; must be an admin
            recent: Number of latest orders in the activity feed

        Raises:
            AuthorizationError: If the actor is not an admin
        """
        authorize_admin(actor)

        restaurants = self.restaurant_repository.list_restaurants()
        names = {restaurant.restaurant_id: restaurant.name for restaurant in restaurants}
        active = sum(1 for restaurant in restaurants if restaurant.is_active)
        orders = self.order_repository.list_all_orders()

        dashboard = PlatformDashboard(
            restaurants=RestaurantCounts(
                total=len(restaurants), active=active, inactive=len(restaurants) - active
            ),
            total_products=self.product_repository.count_products(),
            orders=OrderCounts(total=len(orders)),
        )

        for order in orders:
            if order.status == OrderStatus.DELIVERED:
                dashboard.orders.completed += 1
                dashboard.total_revenue += order.total
            elif order.status == OrderStatus.CANCELLED:
                dashboard.orders.cancelled += 1
            else:
                dashboard.orders.pending += 1

        if dashboard.orders.completed:
            dashboard.average_order_value = round(
                dashboard.total_revenue / dashboard.orders.completed, 2
            )

        dashboard.activity = [
            ActivityEntry(
                order_id=order.order_id,
                order_number=order.order_number,
                customer_name=order.customer_name,
                restaurant_id=order.restaurant_id,
                restaurant_name=names.get(order.restaurant_id),
                amount=order.total,
                created_at=order.created_at,
            )
            for order in orders[:recent]
        ]

        logger.info(
            f"Platform dashboard: {len(restaurants)} restaurants, {len(orders)} orders, "
            f"revenue {dashboard.total_revenue}"
        )
        return dashboard

    async def export_orders_csv(
        self,
        restaurant_id: str,
        start_date: date,
        end_date: date,
        actor: Actor,
    ) -> str:
        """CSV export of a restaurant's non-cancelled orders within the range."""
        self._check_range(start_date, end_date)
        authorize_restaurant_access(actor, restaurant_id)
        self._require_restaurant(restaurant_id)

        start, end = day_bounds(start_date, end_date)
        orders = self.order_repository.list_orders_for_restaurant(restaurant_id, start, end)
        logger.info(f"Exporting {len(orders)} orders for restaurant {restaurant_id}")
        return render_orders_csv(orders)
