"""
Mock Payment Service Implementation

Simulates a hosted-checkout gateway without making real API calls.
Used in development mode (ENV_MODE=development) to:
    - Walk the complete cart → order → callback flow locally
    - Run tests without a gateway account

Behavior:
    - Validates that basket lines add up to the charged price
    - Returns an HTML form that posts the session token to the callback URL
    - Optionally fails a share of checkouts (simulates declines)
    - Simulates response latency
"""

import asyncio
import html
import logging
import random
import uuid
from decimal import Decimal
from typing import Optional

from foodorder.services.payment.base import (
    BasePaymentService,
    CheckoutRequest,
    CheckoutSession,
    PaymentResult,
)

logger = logging.getLogger(__name__)


class MockPaymentService(BasePaymentService):
    """
    Mock implementation of the hosted-checkout gateway.

    Sessions live in process memory, keyed by token. Retrieving a known
    token always reports it as paid for the full session price.

    Attributes:
        failure_rate: Probability of a simulated checkout rejection (0.0-1.0)
        min_latency: Minimum simulated response time in seconds
        max_latency: Maximum simulated response time in seconds
    """

    DECLINE_REASONS = [
        ("card_declined", "Your card was declined."),
        ("insufficient_funds", "Your card has insufficient funds."),
        ("processing_error", "An error occurred while processing your card."),
    ]

    def __init__(
        self,
        failure_rate: float = 0.0,
        min_latency: float = 0.0,
        max_latency: float = 0.0,
    ):
        self.failure_rate = failure_rate
        self.min_latency = min_latency
        self.max_latency = max_latency
        self._sessions: dict[str, CheckoutRequest] = {}
        self._transactions: dict[str, str] = {}

        logger.info(
            f"MockPaymentService initialized "
            f"(failure_rate={failure_rate:.0%}, "
            f"latency={min_latency}-{max_latency}s)"
        )

    @property
    def provider_name(self) -> str:
        return "mock"

    def _generate_token(self) -> str:
        return f"cs_mock_{uuid.uuid4().hex[:24]}"

    def _generate_transaction_id(self) -> str:
        return f"pi_mock_{uuid.uuid4().hex[:24]}"

    async def _simulate_latency(self) -> float:
        """Sleep for a random latency; returns it in milliseconds."""
        latency = random.uniform(self.min_latency, self.max_latency)
        if latency > 0:
            await asyncio.sleep(latency)
        return latency * 1000

    def _should_fail(self) -> bool:
        return random.random() < self.failure_rate

    def _render_form(self, request: CheckoutRequest, token: str) -> str:
        amount = f"{request.price:.2f} {request.currency.upper()}"
        return (
            f'<form id="mock-checkout" method="post" '
            f'action="{html.escape(request.callback_url, quote=True)}">'
            f'<input type="hidden" name="token" value="{html.escape(token, quote=True)}">'
            f"<p>Order #{request.order_id}: {html.escape(amount)}</p>"
            f'<button type="submit">Pay</button>'
            f"</form>"
        )

    async def initialize_checkout(self, request: CheckoutRequest) -> CheckoutSession:
        latency_ms = await self._simulate_latency()

        logger.debug(f"Mock: Initializing checkout for order #{request.order_id} - {request.price}")

        if request.price <= 0:
            return CheckoutSession(
                success=False,
                error_message="Price must be greater than 0",
                error_code="invalid_price",
                response_time_ms=latency_ms,
            )

        basket_total = sum((item.price for item in request.basket_items), Decimal("0"))
        if basket_total != request.price:
            return CheckoutSession(
                success=False,
                error_message="Basket items total must be equal to price",
                error_code="basket_mismatch",
                response_time_ms=latency_ms,
            )

        if self._should_fail():
            error_code, error_message = random.choice(self.DECLINE_REASONS)
            logger.debug(f"Mock: Checkout rejected - {error_code}")
            return CheckoutSession(
                success=False,
                error_message=error_message,
                error_code=error_code,
                response_time_ms=latency_ms,
            )

        token = self._generate_token()
        self._sessions[token] = request

        logger.info(f"Mock: Checkout initialized - {token} - order #{request.order_id}")

        return CheckoutSession(
            success=True,
            token=token,
            checkout_form_content=self._render_form(request, token),
            response_time_ms=latency_ms,
        )

    async def retrieve_checkout(self, token: str) -> PaymentResult:
        latency_ms = await self._simulate_latency()

        request: Optional[CheckoutRequest] = self._sessions.get(token)
        if request is None:
            return PaymentResult(
                success=False,
                error_message="Checkout session not found",
                error_code="not_found",
                response_time_ms=latency_ms,
            )

        # Same transaction id for repeated callbacks on one session
        transaction_id = self._transactions.setdefault(token, self._generate_transaction_id())

        return PaymentResult(
            success=True,
            payment_status="paid",
            order_reference=str(request.order_id),
            paid_amount=request.price,
            currency=request.currency,
            transaction_id=transaction_id,
            response_time_ms=latency_ms,
        )

    async def health_check(self) -> bool:
        logger.debug("Mock: Health check passed")
        return True
