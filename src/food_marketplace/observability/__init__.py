"""OpenTelemetry instrumentation, metrics and structured logging."""

from food_marketplace.observability.config import configure_logging, setup_observability
from food_marketplace.observability.decorators import traced

__all__ = ["setup_observability", "configure_logging", "traced"]
