"""Main application entry point for the marketplace service.

This module provides the FastAPI application factory and configuration
for running the service locally or in production.
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


def get_dynamodb_resource() -> Any:
    """Create DynamoDB resource with appropriate configuration.

    Returns:
        Boto3 DynamoDB resource configured for environment
    """
    # Check for local DynamoDB endpoint (for development)
    endpoint_url = os.getenv("DYNAMODB_ENDPOINT")
    region = os.getenv("AWS_REGION", "us-east-1")

    if endpoint_url:
        access_key = os.getenv("AWS_ACCESS_KEY_ID")
        secret_key = os.getenv("AWS_SECRET_ACCESS_KEY")
        logger.info(f"Using local DynamoDB at {endpoint_url}")
        return boto3.resource(
            "dynamodb",
            endpoint_url=endpoint_url,
            region_name=region,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
        )
    else:
        logger.info(f"Using AWS DynamoDB in region {region}")
        return boto3.resource("dynamodb", region_name=region)


def get_gateway_keys() -> list[str]:
    """Read comma-separated gateway keys from GATEWAY_API_KEY."""
    keys_str = os.getenv("GATEWAY_API_KEY", "")
    keys = [key.strip() for key in keys_str.split(",") if key.strip()]

    if not keys:
        logger.warning("No GATEWAY_API_KEY configured - using development key")
        keys = ["dummy-key-for-development"]

    return keys


def create_application() -> FastAPI:
    """Create and configure the FastAPI application with all dependencies.

    This factory function:
    1. Configures logging
    2. Creates the DynamoDB resource and repositories
    3. Creates services
    4. Creates the FastAPI app
    5. Sets up observability

    Returns:
        Configured FastAPI application instance
    """
    log_level = os.getenv("LOG_LEVEL", "INFO")
    configure_logging(log_level)

    logger.info("Initializing marketplace service...")

    dynamodb_resource = get_dynamodb_resource()

    restaurants_table = os.getenv("DYNAMODB_RESTAURANTS_TABLE", "marketplace-restaurants")
    products_table = os.getenv("DYNAMODB_PRODUCTS_TABLE", "marketplace-products")
    orders_table = os.getenv("DYNAMODB_ORDERS_TABLE", "marketplace-orders")
    carts_table = os.getenv("DYNAMODB_CARTS_TABLE", "marketplace-carts")
    likes_table = os.getenv("DYNAMODB_LIKES_TABLE", "marketplace-likes")
    reviews_table = os.getenv("DYNAMODB_REVIEWS_TABLE", "marketplace-reviews")

    restaurant_repository = RestaurantRepository(dynamodb_resource, restaurants_table)
    product_repository = ProductRepository(dynamodb_resource, products_table)
    order_repository = OrderRepository(dynamodb_resource, orders_table)
    cart_repository = CartRepository(dynamodb_resource, carts_table)
    like_repository = LikeRepository(dynamodb_resource, likes_table)
    review_repository = ReviewRepository(dynamodb_resource, reviews_table)

    logger.info(
        f"Repositories configured - orders: {orders_table}, products: {products_table}, "
        f"restaurants: {restaurants_table}"
    )

    order_service = OrderService(
        order_repository=order_repository,
        product_repository=product_repository,
        restaurant_repository=restaurant_repository,
    )
    finance_service = FinanceService(
        order_repository=order_repository,
        restaurant_repository=restaurant_repository,
        product_repository=product_repository,
        summary_top_n=int(os.getenv("FINANCE_TOP_PRODUCTS", str(DEFAULT_SUMMARY_TOP_N))),
        dashboard_top_n=int(os.getenv("DASHBOARD_TOP_PRODUCTS", str(DEFAULT_DASHBOARD_TOP_N))),
    )
    cart_service = CartService(
        cart_repository=cart_repository,
        product_repository=product_repository,
        restaurant_repository=restaurant_repository,
        order_service=order_service,
    )
    like_service = LikeService(
        like_repository=like_repository,
        restaurant_repository=restaurant_repository,
        product_repository=product_repository,
    )
    review_service = ReviewService(
        review_repository=review_repository,
        restaurant_repository=restaurant_repository,
        product_repository=product_repository,
    )

    logger.info("Services initialized")

    app = create_app(
        order_service=order_service,
        finance_service=finance_service,
        cart_service=cart_service,
        like_service=like_service,
        review_service=review_service,
        gateway_keys=get_gateway_keys(),
    )

    setup_observability(app, enable_exporters=os.getenv("OTEL_ENABLED", "true").lower() == "true")

    logger.info("Marketplace service initialized successfully")
    return app


# Create the FastAPI application instance (only when not in test mode)
# This prevents the app from being created during test collection
if os.getenv("ENVIRONMENT") != "test":  # noqa: SIM108
    app = create_application()
else:
    # Create a placeholder app for test imports
    app = FastAPI()


if __name__ == "__main__":
    """Run the application with uvicorn when executed directly."""
    import uvicorn

    port = int(os.getenv("PORT", "8001"))
    host = os.getenv("HOST", "0.0.0.0")

    logger.info(f"Starting development server on {host}:{port}")
    logger.info(f"API documentation available at http://{host}:{port}/docs")

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=True,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )
