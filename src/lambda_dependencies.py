"""Shared dependency factory for the Lambda handler.

This module provides cached dependency initialization to optimize Lambda cold starts.
Dependencies are created once and reused across invocations within the same Lambda container.
"""

import logging
import os
from typing import Any

import boto3
from fastapi import FastAPI

from food_marketplace.handlers.api_handler import create_app
from food_marketplace.observability import configure_logging, setup_observability
from food_marketplace.repositories.cart_repositories import CartRepository
from food_marketplace.repositories.catalog_repositories import (
    ProductRepository,
    RestaurantRepository,
)
from food_marketplace.repositories.engagement_repositories import (
    LikeRepository,
    ReviewRepository,
)
from food_marketplace.repositories.order_repositories import OrderRepository
from food_marketplace.services.cart_service import CartService
from food_marketplace.services.finance_service import (
    DEFAULT_DASHBOARD_TOP_N,
    DEFAULT_SUMMARY_TOP_N,
    FinanceService,
)
from food_marketplace.services.like_service import LikeService
from food_marketplace.services.order_service import OrderService
from food_marketplace.services.review_service import ReviewService

logger = logging.getLogger(__name__)

# Module-level caches for Lambda container reuse
_dynamodb_resource: Any | None = None
_order_service: OrderService | None = None
_finance_service: FinanceService | None = None
_cart_service: CartService | None = None
_like_service: LikeService | None = None
_review_service: ReviewService | None = None
_fastapi_app: FastAPI | None = None


def get_dynamodb_resource() -> Any:
    """Create or retrieve cached DynamoDB resource.

    Returns:
        Boto3 DynamoDB resource configured for environment
    """
    global _dynamodb_resource

    if _dynamodb_resource is not None:
        return _dynamodb_resource

    endpoint_url = os.getenv("DYNAMODB_ENDPOINT")
    region = os.getenv("AWS_REGION", "us-east-1")

    if endpoint_url:
        access_key = os.getenv("AWS_ACCESS_KEY_ID")
        secret_key = os.getenv("AWS_SECRET_ACCESS_KEY")
        logger.info(f"Using local DynamoDB at {endpoint_url}")
        _dynamodb_resource = boto3.resource(
            "dynamodb",
            endpoint_url=endpoint_url,
            region_name=region,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
        )
    else:
        logger.info(f"Using AWS DynamoDB in region {region}")
        _dynamodb_resource = boto3.resource("dynamodb", region_name=region)

    return _dynamodb_resource


def _restaurant_repository() -> RestaurantRepository:
    table = os.getenv("DYNAMODB_RESTAURANTS_TABLE", "marketplace-restaurants")
    return RestaurantRepository(dynamodb_resource=get_dynamodb_resource(), table_name=table)


def _product_repository() -> ProductRepository:
    table = os.getenv("DYNAMODB_PRODUCTS_TABLE", "marketplace-products")
    return ProductRepository(dynamodb_resource=get_dynamodb_resource(), table_name=table)


def _order_repository() -> OrderRepository:
    table = os.getenv("DYNAMODB_ORDERS_TABLE", "marketplace-orders")
    return OrderRepository(dynamodb_resource=get_dynamodb_resource(), table_name=table)


def get_order_service() -> OrderService:
    """Create or retrieve cached order service."""
    global _order_service

    if _order_service is not None:
        return _order_service

    _order_service = OrderService(
        order_repository=_order_repository(),
        product_repository=_product_repository(),
        restaurant_repository=_restaurant_repository(),
    )

    logger.info("Order service initialized")
    return _order_service


def get_finance_service() -> FinanceService:
    """Create or retrieve cached finance service."""
    global _finance_service

    if _finance_service is not None:
        return _finance_service

    _finance_service = FinanceService(
        order_repository=_order_repository(),
        restaurant_repository=_restaurant_repository(),
        product_repository=_product_repository(),
        summary_top_n=int(os.getenv("FINANCE_TOP_PRODUCTS", str(DEFAULT_SUMMARY_TOP_N))),
        dashboard_top_n=int(os.getenv("DASHBOARD_TOP_PRODUCTS", str(DEFAULT_DASHBOARD_TOP_N))),
    )

    logger.info("Finance service initialized")
    return _finance_service


def get_cart_service() -> CartService:
    """Create or retrieve cached cart service."""
    global _cart_service

    if _cart_service is not None:
        return _cart_service

    carts_table = os.getenv("DYNAMODB_CARTS_TABLE", "marketplace-carts")
    _cart_service = CartService(
        cart_repository=CartRepository(
            dynamodb_resource=get_dynamodb_resource(), table_name=carts_table
        ),
        product_repository=_product_repository(),
        restaurant_repository=_restaurant_repository(),
        order_service=get_order_service(),
    )

    logger.info("Cart service initialized")
    return _cart_service


def get_like_service() -> LikeService:
    """Create or retrieve cached like service."""
    global _like_service

    if _like_service is not None:
        return _like_service

    likes_table = os.getenv("DYNAMODB_LIKES_TABLE", "marketplace-likes")
    _like_service = LikeService(
        like_repository=LikeRepository(
            dynamodb_resource=get_dynamodb_resource(), table_name=likes_table
        ),
        restaurant_repository=_restaurant_repository(),
        product_repository=_product_repository(),
    )

    logger.info("Like service initialized")
    return _like_service


def get_review_service() -> ReviewService:
    """Create or retrieve cached review service."""
    global _review_service

    if _review_service is not None:
        return _review_service

    reviews_table = os.getenv("DYNAMODB_REVIEWS_TABLE", "marketplace-reviews")
    _review_service = ReviewService(
        review_repository=ReviewRepository(
            dynamodb_resource=get_dynamodb_resource(), table_name=reviews_table
        ),
        restaurant_repository=_restaurant_repository(),
        product_repository=_product_repository(),
    )

    logger.info("Review service initialized")
    return _review_service


def get_fastapi_app() -> FastAPI:
    """Create or retrieve cached FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    global _fastapi_app

    if _fastapi_app is not None:
        return _fastapi_app

    keys_str = os.getenv("GATEWAY_API_KEY", "")
    gateway_keys = [key.strip() for key in keys_str.split(",") if key.strip()]

    if not gateway_keys:
        logger.warning("No GATEWAY_API_KEY configured - using development key")
        gateway_keys = ["dummy-key-for-development"]

    _fastapi_app = create_app(
        order_service=get_order_service(),
        finance_service=get_finance_service(),
        cart_service=get_cart_service(),
        like_service=get_like_service(),
        review_service=get_review_service(),
        gateway_keys=gateway_keys,
    )

    logger.info("FastAPI application initialized")
    return _fastapi_app


def initialize_lambda_environment() -> None:
    """Initialize Lambda environment with logging and observability.

    Should be called once during Lambda cold start.
    """
    log_level = os.getenv("LOG_LEVEL", "INFO")
    configure_logging(log_level)

    setup_observability(enable_exporters=os.getenv("OTEL_ENABLED", "true").lower() == "true")

    logger.info("Lambda environment initialized")
