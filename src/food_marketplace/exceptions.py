"""Domain error taxonomy for the marketplace service.

Services raise these; the API layer maps them to structured failure responses
using ``status_code`` and ``public_message``.
"""

GENERIC_STORAGE_MESSAGE = "Service temporarily unavailable, please try again"


class MarketplaceError(Exception):
    """Base class for all expected marketplace failures."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    @property
    def public_message(self) -> str:
        """Message that is safe to return to the caller."""
        return self.message


class ValidationError(MarketplaceError):
    """Missing or malformed input (empty cart, invalid rating, ...)."""

    status_code = 400


class NotFoundError(MarketplaceError):
    """A referenced product, restaurant, order or cart line does not exist."""

    status_code = 404


class AuthorizationError(MarketplaceError):
    """The actor lacks the role or restaurant scope for the operation."""

    status_code = 403


class ConflictError(MarketplaceError):
    """Cross-restaurant cart violation or illegal state transition."""

    status_code = 409


class StorageError(MarketplaceError):
    """Underlying persistence failure.

    The detailed message is kept for server-side logs only.
    """

    status_code = 503

    @property
    def public_message(self) -> str:
        return GENERIC_STORAGE_MESSAGE
