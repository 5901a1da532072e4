"""
Stripe Payment Service Implementation

Hosted checkout on Stripe Checkout Sessions using the official Stripe
Python SDK. Used when ENV_MODE=production or ENV_MODE=staging.

Requirements:
    - STRIPE_SECRET_KEY must be set in environment
    - STRIPE_API_BASE optionally points the SDK at another base URI

Mapping onto the checkout contract:
    - token           → Checkout Session id
    - order reference → client_reference_id
    - transaction id  → PaymentIntent id
    - basket item     → one line item with quantity 1 at the line price
"""

import html
import logging
from datetime import datetime
from decimal import Decimal

import stripe
from stripe import (
    APIConnectionError,
    AuthenticationError,
    InvalidRequestError,
    StripeError,
)

from foodorder.core.config import get_settings
from foodorder.services.payment.base import (
    BasePaymentService,
    CheckoutRequest,
    CheckoutSession,
    PaymentResult,
)

logger = logging.getLogger(__name__)


class StripePaymentService(BasePaymentService):
    """
    Production Stripe Checkout implementation.

    Configuration:
        Requires STRIPE_SECRET_KEY environment variable.
    """

    def __init__(self):
        """
        Initialize Stripe with API key from settings.

        Raises:
            ValueError: If STRIPE_SECRET_KEY is not configured
        """
        settings = get_settings()

        if not settings.stripe_secret_key:
            raise ValueError(
                "STRIPE_SECRET_KEY is required for production mode. "
                "Set it in your .env file or environment variables."
            )

        stripe.api_key = settings.stripe_secret_key
        if settings.stripe_api_base:
            stripe.api_base = settings.stripe_api_base

        self._settings = settings

        logger.info("StripePaymentService initialized")

    @property
    def provider_name(self) -> str:
        return "stripe"

    def _convert_to_cents(self, amount: Decimal) -> int:
        """Stripe expects amounts in the smallest currency unit."""
        return int((amount * 100).to_integral_value())

    def _convert_from_cents(self, cents: int) -> Decimal:
        return (Decimal(cents) / 100).quantize(Decimal("0.01"))

    def _elapsed_ms(self, start_time: datetime) -> float:
        return (datetime.now() - start_time).total_seconds() * 1000

    def _render_form(self, url: str) -> str:
        safe_url = html.escape(url, quote=True)
        return (
            f'<meta http-equiv="refresh" content="0;url={safe_url}">'
            f'<a href="{safe_url}">Continue to payment</a>'
        )

    async def initialize_checkout(self, request: CheckoutRequest) -> CheckoutSession:
        start_time = datetime.now()

        logger.info(f"Stripe: Creating checkout session for order #{request.order_id}")

        line_items = [
            {
                "price_data": {
                    "currency": request.currency,
                    "unit_amount": self._convert_to_cents(item.price),
                    "product_data": {
                        "name": item.name,
                        "metadata": {"basket_item_id": item.id, "category": item.category},
                    },
                },
                "quantity": 1,
            }
            for item in request.basket_items
        ]

        try:
            session = stripe.checkout.Session.create(
                mode="payment",
                line_items=line_items,
                client_reference_id=str(request.order_id),
                customer_email=request.buyer_email,
                success_url=f"{request.callback_url}?token={{CHECKOUT_SESSION_ID}}",
                cancel_url=f"{self._settings.payment_failure_url}?reason=cancelled",
                metadata={
                    "order_id": str(request.order_id),
                    "buyer_id": str(request.buyer_id or ""),
                    "buyer_ip": request.buyer_ip or "",
                },
            )

            logger.info(f"Stripe: Checkout session created - {session.id}")

            return CheckoutSession(
                success=True,
                token=session.id,
                checkout_form_content=self._render_form(session.url),
                payment_page_url=session.url,
                response_time_ms=self._elapsed_ms(start_time),
            )

        except InvalidRequestError as e:
            logger.error(f"Stripe: Invalid checkout request - {e}")
            return CheckoutSession(
                success=False,
                error_message=e.user_message or str(e),
                error_code="invalid_request",
                response_time_ms=self._elapsed_ms(start_time),
            )

        except AuthenticationError as e:
            logger.critical(f"Stripe: Authentication failed - {e}")
            return CheckoutSession(
                success=False,
                error_message="Payment service configuration error",
                error_code="authentication_error",
            )

        except APIConnectionError as e:
            logger.error(f"Stripe: Connection error - {e}")
            return CheckoutSession(
                success=False,
                error_message="Payment service temporarily unavailable",
                error_code="connection_error",
                response_time_ms=self._elapsed_ms(start_time),
            )

        except StripeError as e:
            logger.error(f"Stripe: Error - {e}")
            return CheckoutSession(
                success=False,
                error_message="Payment processing error",
                error_code="stripe_error",
                response_time_ms=self._elapsed_ms(start_time),
            )

    async def retrieve_checkout(self, token: str) -> PaymentResult:
        start_time = datetime.now()

        try:
            session = stripe.checkout.Session.retrieve(token)
        except InvalidRequestError as e:
            logger.warning(f"Stripe: Unknown checkout session {token} - {e}")
            return PaymentResult(
                success=False,
                error_message="Checkout session not found",
                error_code="not_found",
                response_time_ms=self._elapsed_ms(start_time),
            )
        except StripeError as e:
            logger.error(f"Stripe: Failed to retrieve checkout session - {e}")
            return PaymentResult(
                success=False,
                error_message="Payment service temporarily unavailable",
                error_code="stripe_error",
                response_time_ms=self._elapsed_ms(start_time),
            )

        payment_intent = session.payment_intent
        if payment_intent is not None and not isinstance(payment_intent, str):
            payment_intent = payment_intent.id

        paid_amount = None
        if session.amount_total is not None:
            paid_amount = self._convert_from_cents(session.amount_total)

        logger.info(
            f"Stripe: Checkout session {session.id} - "
            f"payment_status={session.payment_status}"
        )

        return PaymentResult(
            success=True,
            payment_status=session.payment_status,
            order_reference=session.client_reference_id,
            paid_amount=paid_amount,
            currency=session.currency,
            transaction_id=payment_intent,
            response_time_ms=self._elapsed_ms(start_time),
        )

    async def health_check(self) -> bool:
        """Make a lightweight API call to verify credentials and connectivity."""
        try:
            stripe.Account.retrieve()
            logger.debug("Stripe: Health check passed")
            return True

        except StripeError as e:
            logger.error(f"Stripe: Health check failed - {e}")
            return False
