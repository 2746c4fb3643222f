"""Financial summary and dashboard models."""

from datetime import date, datetime

from pydantic import BaseModel, Field

from food_marketplace.models.order_models import OrderStatus


class DailyStat(BaseModel):
    """One point of the per-day chart series."""

    date: date
    orders: int = Field(default=0, ge=0, description="Non-cancelled orders created that day")
    revenue: int = Field(default=0, ge=0, description="Delivered revenue for that day")


class TopProduct(BaseModel):
    """Best-selling product among delivered orders."""

    product_id: str
    name: str
    quantity: int = Field(..., ge=0)
    revenue: int = Field(..., ge=0)


class FinancialSummary(BaseModel):
    """Revenue and order statistics for a restaurant (or the whole platform)."""

    restaurant_id: str | None = Field(None, description="None for the platform-wide view")
    start_date: date
    end_date: date
    total_orders: int = 0
    pending_orders: int = 0
    completed_orders: int = 0
    cancelled_orders: int = 0
    total_revenue: int = 0
    pending_revenue: int = 0
    delivery_fees: int = Field(default=0, description="Delivery fees of delivered orders")
    average_order_value: float = 0.0
    daily: list[DailyStat] = Field(default_factory=list)
    top_products: list[TopProduct] = Field(default_factory=list)


class RecentOrder(BaseModel):
    """Compact order row for dashboards."""

    order_id: str
    order_number: str
    customer_name: str
    total: int
    status: OrderStatus
    created_at: datetime
    items_count: int


class DashboardStats(BaseModel):
    """Lifetime statistics shown on the restaurant dashboard."""

    restaurant_id: str
    total_orders: int = 0
    pending_orders: int = 0
    completed_orders: int = 0
    cancelled_orders: int = 0
    total_revenue: int = 0
    rating: float = 0.0
    recent_orders: list[RecentOrder] = Field(default_factory=list)
    top_selling_products: list[TopProduct] = Field(default_factory=list)


class RestaurantCounts(BaseModel):
    total: int = 0
    active: int = 0
    inactive: int = 0


class OrderCounts(BaseModel):
    total: int = 0
    pending: int = 0
    completed: int = 0
    cancelled: int = 0


class ActivityEntry(BaseModel):
    """A recent order shown in the platform activity feed."""

    order_id: str
    order_number: str
    customer_name: str
    restaurant_id: str
    restaurant_name: str | None = Field(None, description="None if the restaurant was removed")
    amount: int
    created_at: datetime


class PlatformDashboard(BaseModel):
    """Platform-wide statistics for the admin home page."""

    restaurants: RestaurantCounts = Field(default_factory=RestaurantCounts)
    total_products: int = 0
    orders: OrderCounts = Field(default_factory=OrderCounts)
    total_revenue: int = Field(default=0, description="Totals of delivered orders")
    average_order_value: float = Field(default=0.0, description="Per delivered order")
    activity: list[ActivityEntry] = Field(default_factory=list)
