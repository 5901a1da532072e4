"""
Payment Service Factory

Provides a single entry point for obtaining a payment gateway instance.
The rest of the application stays agnostic about which implementation
is being used.

Environment Switching:
    - ENV_MODE=development → MockPaymentService (no API calls)
    - ENV_MODE=staging → StripePaymentService (test keys)
    - ENV_MODE=production → StripePaymentService (live keys)
"""

import logging
from functools import lru_cache

from foodorder.core.config import get_settings
from foodorder.services.payment.base import (
    BasePaymentService,
    BasketItem,
    CheckoutRequest,
    CheckoutSession,
    PaymentResult,
)
from foodorder.services.payment.mock import MockPaymentService
from foodorder.services.payment.stripe import StripePaymentService

logger = logging.getLogger(__name__)


@lru_cache()
def get_payment_service() -> BasePaymentService:
    """
    Get the configured payment service instance.

    The instance is cached (singleton) so the mock gateway keeps its
    checkout sessions between the create and callback requests.

    Raises:
        ValueError: If real services are enabled but STRIPE_SECRET_KEY is missing
    """
    settings = get_settings()

    if settings.is_development:
        logger.info("Payment Service: Using MockPaymentService (development mode)")
        return MockPaymentService(min_latency=0.1, max_latency=0.3)

    logger.info(
        f"Payment Service: Using StripePaymentService "
        f"({settings.env_mode.value} mode)"
    )
    return StripePaymentService()


def reset_payment_service() -> None:
    """Clear the cached payment service instance."""
    get_payment_service.cache_clear()
    logger.debug("Payment service cache cleared")


__all__ = [
    "get_payment_service",
    "reset_payment_service",
    "BasePaymentService",
    "BasketItem",
    "CheckoutRequest",
    "CheckoutSession",
    "PaymentResult",
    "MockPaymentService",
    "StripePaymentService",
]
