"""Gateway identity resolution for FastAPI endpoints.

The authentication gateway in front of this service checks user credentials
and forwards the caller identity as headers. Requests must carry a gateway key
so the headers cannot be forged by clients reaching the service directly.
"""

import hmac

from fastapi import HTTPException

from food_marketplace.auth.authorization import Actor, Role


class ActorResolver:
    """Validates the gateway key and turns identity headers into an Actor."""

    def __init__(self, gateway_keys: list[str]) -> None:
        """Initialize resolver with the accepted gateway keys.

        Args:
            gateway_keys: Keys configured on the gateway (several allow rotation)

        Raises:
            ValueError: If no key is provided
        """
        if not gateway_keys:
            raise ValueError("At least one gateway key must be provided")

        self.gateway_keys = list(gateway_keys)

    def validate_key(self, key: str) -> bool:
        """Constant-time comparison against every accepted key."""
        return any(hmac.compare_digest(key, valid) for valid in self.gateway_keys)

    def resolve(
        self,
        x_api_key: str | None,
        x_user_role: str | None,
        x_user_id: str | None = None,
        x_restaurant_id: str | None = None,
    ) -> Actor:
        """Build the caller identity from gateway headers.

        Missing role headers resolve to an anonymous customer.

        Raises:
            HTTPException: 401 if the gateway key is missing or invalid,
                400 if the role is unknown or a restaurateur has no restaurant
        """
        if not x_api_key:
            raise HTTPException(status_code=401, detail="Missing API key")

        if not self.validate_key(x_api_key):
            raise HTTPException(status_code=401, detail="Invalid API key")

        if not x_user_role:
            return Actor(role=Role.CUSTOMER, user_id=x_user_id)

        try:
            role = Role(x_user_role.upper())
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Unknown role '{x_user_role}'") from None

        if role == Role.RESTAURATOR and not x_restaurant_id:
            raise HTTPException(status_code=400, detail="Restaurateur without restaurant scope")

        return Actor(
            role=role,
            user_id=x_user_id,
            restaurant_id=x_restaurant_id if role == Role.RESTAURATOR else None,
        )
