"""FastAPI application for the marketplace API."""

import logging
from datetime import UTC, date, datetime, timedelta
from typing import Any, TypeVar

from fastapi import Depends, FastAPI, Header, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from food_marketplace.auth.api_dependencies import ActorResolver
from food_marketplace.auth.authorization import Actor, Role, authorize_order_read
from food_marketplace.exceptions import MarketplaceError, StorageError
from food_marketplace.models.cart_models import MAX_NOTES_LENGTH
from food_marketplace.models.engagement_models import LikeIdentity, LikeTargetType
from food_marketplace.models.order_models import (
    CheckoutDetails,
    CreateOrderRequest,
    CustomerType,
    OrderStatus,
    PaymentStatus,
)
from food_marketplace.services.cart_service import CartService
from food_marketplace.services.finance_service import FinanceService
from food_marketplace.services.like_service import LikeService
from food_marketplace.services.order_service import OrderService
from food_marketplace.services.review_service import DEFAULT_PAGE_SIZE, ReviewService

logger = logging.getLogger(__name__)

DEFAULT_REPORT_DAYS = 30

CheckoutDetailsT = TypeVar("CheckoutDetailsT", bound=CheckoutDetails)


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str


class StatusUpdateRequest(BaseModel):
    """Body of a status change."""

    status: OrderStatus
    estimated_time: int | None = Field(None, ge=0, description="Minutes until ready/delivered")
    notes: str | None = None


class PaymentStatusUpdateRequest(BaseModel):
    """Body of a payment outcome."""

    payment_status: PaymentStatus


class AddCartItemRequest(BaseModel):
    """Body for adding a product to a cart."""

    product_id: str = Field(..., min_length=1)
    quantity: int = Field(default=1, ge=1)
    notes: str = Field(default="", max_length=MAX_NOTES_LENGTH)
    replace_existing: bool = Field(
        default=False, description="Empty a cart holding another restaurant's items first"
    )


class UpdateCartLineRequest(BaseModel):
    """Body for editing a cart line; quantity 0 removes it."""

    quantity: int | None = Field(None, ge=0)
    notes: str | None = Field(None, max_length=MAX_NOTES_LENGTH)


class LikeRequest(LikeIdentity):
    """Like command; ``liked`` omitted means toggle."""

    target_type: LikeTargetType
    target_id: str = Field(..., min_length=1)
    liked: bool | None = None


class CreateReviewRequest(BaseModel):
    """Body for posting a review."""

    rating: int = Field(..., ge=1, le=5)
    customer_name: str = Field(..., min_length=1, max_length=100)
    comment: str | None = Field(None, max_length=1000)
    customer_email: str | None = None
    restaurant_id: str | None = None
    product_id: str | None = None
    order_id: str | None = None


def success(data: Any) -> dict[str, Any]:
    return {"success": True, "data": data}


def bind_customer(body: CheckoutDetailsT, actor: Actor) -> CheckoutDetailsT:
    """Attach the order to the caller's account.

    Only admins may place an order on behalf of another user; everyone else
    gets the gateway identity, or no account when anonymous.
    """
    if actor.role == Role.ADMIN:
        user_id = body.user_id or actor.user_id
    else:
        user_id = actor.user_id
    if user_id == body.user_id:
        return body
    return body.model_copy(update={"user_id": user_id})


def default_range(start_date: date | None, end_date: date | None) -> tuple[date, date]:
    """Fill a missing range with the last DEFAULT_REPORT_DAYS days."""
    end = end_date or datetime.now(UTC).date()
    start = start_date or end - timedelta(days=DEFAULT_REPORT_DAYS - 1)
    return start, end


def create_app(
    order_service: OrderService,
    finance_service: FinanceService,
    cart_service: CartService,
    like_service: LikeService,
    review_service: ReviewService,
    gateway_keys: list[str],
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        order_service: Service for order creation and lifecycle
        finance_service: Service for summaries, dashboards and exports
        cart_service: Service for server-mirrored carts
        like_service: Service for likes
        review_service: Service for reviews
        gateway_keys: Keys accepted from the authentication gateway

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="Food Marketplace API",
        description="Carts, orders, finances, likes and reviews for the marketplace",
        version="1.0.0",
    )

    # Store services in app state for access in route handlers
    app.state.order_service = order_service
    app.state.finance_service = finance_service
    app.state.cart_service = cart_service
    app.state.like_service = like_service
    app.state.review_service = review_service
    app.state.actor_resolver = ActorResolver(gateway_keys=gateway_keys)

    @app.exception_handler(MarketplaceError)
    async def handle_marketplace_error(request: Request, exc: MarketplaceError) -> JSONResponse:
        if isinstance(exc, StorageError):
            logger.error(f"Storage failure on {request.method} {request.url.path}: {exc.message}")
        else:
            logger.info(
                f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}"
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": exc.public_message},
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(part) for part in first.get("loc", ())[1:])
        message = first.get("msg", "Invalid request")
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": f"{field}: {message}" if field else message},
        )

    def resolve_actor(
        x_api_key: str | None = Header(None),
        x_user_role: str | None = Header(None),
        x_user_id: str | None = Header(None),
        x_restaurant_id: str | None = Header(None),
    ) -> Actor:
        """Dependency resolving the caller from gateway headers."""
        actor: Actor = app.state.actor_resolver.resolve(
            x_api_key=x_api_key,
            x_user_role=x_user_role,
            x_user_id=x_user_id,
            x_restaurant_id=x_restaurant_id,
        )
        return actor

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(status="healthy")

    # Orders

    @app.post("/orders", status_code=201, tags=["Orders"])
    async def create_order(
        body: CreateOrderRequest,
        actor: Actor = Depends(resolve_actor),
    ) -> dict[str, Any]:
        """Place an order from checkout lines."""
        order = await app.state.order_service.create_order(bind_customer(body, actor))
        return success(order)

    @app.get("/orders", tags=["Orders"])
    async def list_customer_orders(
        phone: str | None = None,
        status: OrderStatus | None = None,
        customer_type: CustomerType | None = None,
        actor: Actor = Depends(resolve_actor),
    ) -> dict[str, Any]:
        """A customer's orders by checkout phone, or the caller's own account."""
        orders = await app.state.order_service.list_customer_orders(
            actor, phone=phone, status=status, customer_type=customer_type
        )
        return success(orders)

    @app.get("/orders/by-number/{order_number}", tags=["Orders"])
    async def track_order(
        order_number: str,
        _actor: Actor = Depends(resolve_actor),
    ) -> dict[str, Any]:
        """Public order tracking by order number."""
        order = await app.state.order_service.get_order_by_number(order_number)
        return success(order)

    @app.get("/orders/{order_id}", tags=["Orders"])
    async def get_order(
        order_id: str,
        actor: Actor = Depends(resolve_actor),
    ) -> dict[str, Any]:
        """Get an order; visible to its customer, its restaurant and admins."""
        order = await app.state.order_service.get_order(order_id)
        authorize_order_read(actor, order)
        return success(order)

    @app.put("/orders/{order_id}/status", tags=["Orders"])
    async def update_order_status(
        order_id: str,
        body: StatusUpdateRequest,
        actor: Actor = Depends(resolve_actor),
    ) -> dict[str, Any]:
        """Move an order through its lifecycle."""
        order = await app.state.order_service.set_order_status(
            order_id,
            body.status,
            actor,
            estimated_time=body.estimated_time,
            notes=body.notes,
        )
        return success(order)

    @app.put("/orders/{order_id}/payment-status", tags=["Orders"])
    async def update_payment_status(
        order_id: str,
        body: PaymentStatusUpdateRequest,
        actor: Actor = Depends(resolve_actor),
    ) -> dict[str, Any]:
        """Record a payment outcome."""
        order = await app.state.order_service.set_payment_status(
            order_id, body.payment_status, actor
        )
        return success(order)

    # Restaurant back office

    @app.get("/restaurants/{restaurant_id}/orders", tags=["Restaurants"])
    async def list_restaurant_orders(
        restaurant_id: str,
        status: OrderStatus | None = None,
        actor: Actor = Depends(resolve_actor),
    ) -> dict[str, Any]:
        """A restaurant's orders, newest first."""
        orders = await app.state.order_service.list_restaurant_orders(
            restaurant_id, actor, status=status
        )
        return success(orders)

    @app.get("/restaurants/{restaurant_id}/finances", tags=["Finances"])
    async def get_restaurant_finances(
        restaurant_id: str,
        start_date: date | None = None,
        end_date: date | None = None,
        top_n: int | None = None,
        actor: Actor = Depends(resolve_actor),
    ) -> dict[str, Any]:
        """Financial summary of a restaurant over a date range."""
        start, end = default_range(start_date, end_date)
        summary = await app.state.finance_service.compute_financial_summary(
            restaurant_id, start, end, actor, top_n=top_n
        )
        return success(summary)

    @app.get("/restaurants/{restaurant_id}/finances/export", tags=["Finances"])
    async def export_restaurant_finances(
        restaurant_id: str,
        start_date: date | None = None,
        end_date: date | None = None,
        actor: Actor = Depends(resolve_actor),
    ) -> Response:
        """CSV export of a restaurant's orders over a date range."""
        start, end = default_range(start_date, end_date)
        content = await app.state.finance_service.export_orders_csv(
            restaurant_id, start, end, actor
        )
        filename = f"orders-{restaurant_id}-{start.isoformat()}-{end.isoformat()}.csv"
        return Response(
            content=content,
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    @app.get("/restaurants/{restaurant_id}/dashboard", tags=["Restaurants"])
    async def get_dashboard(
        restaurant_id: str,
        actor: Actor = Depends(resolve_actor),
    ) -> dict[str, Any]:
        """Dashboard statistics for a restaurant."""
        stats = await app.state.finance_service.get_dashboard_stats(restaurant_id, actor)
        return success(stats)

    @app.get("/admin/finances", tags=["Finances"])
    async def get_platform_finances(
        start_date: date | None = None,
        end_date: date | None = None,
        top_n: int | None = None,
        actor: Actor = Depends(resolve_actor),
    ) -> dict[str, Any]:
        """Platform-wide financial summary (admins only)."""
        start, end = default_range(start_date, end_date)
        summary = await app.state.finance_service.compute_financial_summary(
            None, start, end, actor, top_n=top_n
        )
        return success(summary)

    @app.get("/admin/orders", tags=["Orders"])
    async def list_all_orders(
        status: OrderStatus | None = None,
        customer_type: CustomerType | None = None,
        actor: Actor = Depends(resolve_actor),
    ) -> dict[str, Any]:
        """Every order on the platform, newest first (admins only)."""
        orders = await app.state.order_service.list_orders(
            actor, status=status, customer_type=customer_type
        )
        return success(orders)

    @app.get("/admin/dashboard", tags=["Finances"])
    async def get_platform_dashboard(
        actor: Actor = Depends(resolve_actor),
    ) -> dict[str, Any]:
        """Platform-wide statistics (admins only)."""
        dashboard = await app.state.finance_service.get_platform_dashboard(actor)
        return success(dashboard)

    # Carts

    @app.get("/carts/{session_id}", tags=["Carts"])
    async def get_cart(
        session_id: str,
        _actor: Actor = Depends(resolve_actor),
    ) -> dict[str, Any]:
        state = await app.state.cart_service.get_cart(session_id)
        return success(state)

    @app.delete("/carts/{session_id}", tags=["Carts"])
    async def clear_cart(
        session_id: str,
        _actor: Actor = Depends(resolve_actor),
    ) -> dict[str, Any]:
        state = await app.state.cart_service.clear(session_id)
        return success(state)

    @app.post("/carts/{session_id}/items", tags=["Carts"])
    async def add_cart_item(
        session_id: str,
        body: AddCartItemRequest,
        _actor: Actor = Depends(resolve_actor),
    ) -> dict[str, Any]:
        """Add a product to the cart as a new line."""
        state = await app.state.cart_service.add_item(
            session_id,
            body.product_id,
            quantity=body.quantity,
            notes=body.notes,
            replace_existing=body.replace_existing,
        )
        return success(state)

    @app.patch("/carts/{session_id}/items/{line_id}", tags=["Carts"])
    async def update_cart_line(
        session_id: str,
        line_id: str,
        body: UpdateCartLineRequest,
        _actor: Actor = Depends(resolve_actor),
    ) -> dict[str, Any]:
        state = await app.state.cart_service.update_line(
            session_id, line_id, quantity=body.quantity, notes=body.notes
        )
        return success(state)

    @app.delete("/carts/{session_id}/items/{line_id}", tags=["Carts"])
    async def remove_cart_line(
        session_id: str,
        line_id: str,
        _actor: Actor = Depends(resolve_actor),
    ) -> dict[str, Any]:
        state = await app.state.cart_service.remove_item(session_id, line_id)
        return success(state)

    @app.post("/carts/{session_id}/checkout", status_code=201, tags=["Carts"])
    async def checkout_cart(
        session_id: str,
        body: CheckoutDetails,
        actor: Actor = Depends(resolve_actor),
    ) -> dict[str, Any]:
        """Place an order from the cart, then empty it."""
        order = await app.state.cart_service.checkout(session_id, bind_customer(body, actor))
        return success(order)

    # Likes and reviews

    @app.post("/likes", tags=["Engagement"])
    async def like(
        body: LikeRequest,
        _actor: Actor = Depends(resolve_actor),
    ) -> dict[str, Any]:
        """Like, unlike or toggle a product or restaurant."""
        identity = LikeIdentity(
            user_phone=body.user_phone,
            user_email=body.user_email,
            user_fingerprint=body.user_fingerprint,
        )
        if body.liked is None:
            result = await app.state.like_service.toggle(body.target_type, body.target_id, identity)
        else:
            result = await app.state.like_service.set_like(
                body.target_type, body.target_id, identity, body.liked
            )
        return success(result)

    @app.get("/likes", tags=["Engagement"])
    async def get_like(
        target_type: LikeTargetType,
        target_id: str,
        user_phone: str | None = None,
        user_email: str | None = None,
        user_fingerprint: str | None = None,
        _actor: Actor = Depends(resolve_actor),
    ) -> dict[str, Any]:
        """Whether an identity likes a target."""
        identity = LikeIdentity(
            user_phone=user_phone, user_email=user_email, user_fingerprint=user_fingerprint
        )
        liked = await app.state.like_service.is_liked(target_type, target_id, identity)
        return success({"target_type": target_type, "target_id": target_id, "liked": liked})

    @app.post("/reviews", status_code=201, tags=["Engagement"])
    async def create_review(
        body: CreateReviewRequest,
        _actor: Actor = Depends(resolve_actor),
    ) -> dict[str, Any]:
        review = await app.state.review_service.create_review(**body.model_dump())
        return success(review)

    @app.get("/reviews", tags=["Engagement"])
    async def list_reviews(
        restaurant_id: str | None = None,
        product_id: str | None = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        _actor: Actor = Depends(resolve_actor),
    ) -> dict[str, Any]:
        """Paginated reviews of a restaurant or product, newest first."""
        result = await app.state.review_service.list_reviews(
            restaurant_id=restaurant_id, product_id=product_id, page=page, limit=limit
        )
        return success(result)

    return app
