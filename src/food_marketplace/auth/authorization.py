"""Caller identity and the allow/deny checks applied at every scoped entry point."""

from enum import Enum

from pydantic import BaseModel

from food_marketplace.exceptions import AuthorizationError
from food_marketplace.models.order_models import Order


class Role(str, Enum):
    """Roles supplied by the authentication gateway."""

    ADMIN = "ADMIN"
    RESTAURATOR = "RESTAURATOR"
    CUSTOMER = "CUSTOMER"


class Actor(BaseModel):
    """Authenticated caller.

    Attributes:
        role: Caller role
        user_id: Account identifier, None for anonymous customers
        restaurant_id: Restaurant a restaurateur manages, None otherwise
    """

    role: Role
    user_id: str | None = None
    restaurant_id: str | None = None


def can_access_restaurant(actor: Actor, restaurant_id: str) -> bool:
    """Whether the actor may manage or view back-office data of a restaurant."""
    if actor.role == Role.ADMIN:
        return True
    return actor.role == Role.RESTAURATOR and actor.restaurant_id == restaurant_id


def authorize_restaurant_access(actor: Actor, restaurant_id: str) -> None:
    """Raise AuthorizationError unless the actor may act on the restaurant.

    Args:
        actor: Caller identity
        restaurant_id: Restaurant owning the resource

    Raises:
        AuthorizationError: If the actor is neither an admin nor the
            restaurateur bound to this restaurant
    """
    if not can_access_restaurant(actor, restaurant_id):
        raise AuthorizationError(f"Not allowed to manage restaurant {restaurant_id}")


def authorize_admin(actor: Actor) -> None:
    """Raise AuthorizationError unless the actor is a platform admin."""
    if actor.role != Role.ADMIN:
        raise AuthorizationError("Administrator access required")


def authorize_order_read(actor: Actor, order: Order) -> None:
    """Raise AuthorizationError unless the actor placed the order or manages it."""
    if actor.user_id and order.user_id == actor.user_id:
        return
    if not can_access_restaurant(actor, order.restaurant_id):
        raise AuthorizationError(f"Not allowed to view order {order.order_number}")
