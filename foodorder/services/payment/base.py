"""
Payment Service Abstract Base Class

Defines the hosted-checkout contract for all payment gateway
implementations. Both MockPaymentService and StripePaymentService
implement these methods, so the order flow behaves identically
regardless of which gateway is active.

Flow:
    1. initialize_checkout() with an itemized basket → token + form content
    2. The payer completes the hosted form at the gateway
    3. The gateway calls back with the token
    4. retrieve_checkout(token) → paid amount, order reference, transaction id
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional


@dataclass
class BasketItem:
    """One itemized line sent to the gateway. Price is the line total."""
    id: str
    name: str
    category: str
    price: Decimal


@dataclass
class CheckoutRequest:
    """
    Everything the gateway needs to open a hosted checkout.

    Attributes:
        order_id: Local order id, echoed back by the gateway on retrieval
        price: Amount to charge; must equal the sum of basket item prices
        currency: Three-letter currency code
        callback_url: Where the gateway reports the result
        basket_items: Itemized lines including the delivery fee line
    """
    order_id: int
    price: Decimal
    currency: str
    callback_url: str
    basket_items: list[BasketItem] = field(default_factory=list)
    buyer_id: Optional[int] = None
    buyer_name: Optional[str] = None
    buyer_email: Optional[str] = None
    buyer_ip: Optional[str] = None
    shipping_address: Optional[str] = None
    city: Optional[str] = None


@dataclass
class CheckoutSession:
    """
    Result of initializing a hosted checkout.

    Attributes:
        success: Whether the gateway accepted the checkout
        token: Gateway token identifying the checkout session
        checkout_form_content: Renderable HTML for the payer
        payment_page_url: Direct URL of the hosted page, when the gateway has one
        error_message: Gateway error description on failure
        error_code: Machine-readable error code
    """
    success: bool
    token: Optional[str] = None
    checkout_form_content: Optional[str] = None
    payment_page_url: Optional[str] = None
    error_message: Optional[str] = None
    error_code: Optional[str] = None
    response_time_ms: float = 0.0


@dataclass
class PaymentResult:
    """
    Standardized result of retrieving a completed checkout.

    Attributes:
        success: Whether the retrieval call itself succeeded
        payment_status: Gateway payment status ("paid", "unpaid", ...)
        order_reference: The local order id the gateway echoed back
        paid_amount: Amount the gateway actually charged
        transaction_id: Gateway transaction identifier
    """
    success: bool
    payment_status: Optional[str] = None
    order_reference: Optional[str] = None
    paid_amount: Optional[Decimal] = None
    currency: Optional[str] = None
    transaction_id: Optional[str] = None
    error_message: Optional[str] = None
    error_code: Optional[str] = None
    response_time_ms: float = 0.0

    @property
    def is_paid(self) -> bool:
        return self.success and self.payment_status == "paid"


class BasePaymentService(ABC):
    """
    Abstract base class for hosted-checkout payment gateways.

    Example:
        >>> service = get_payment_service()  # Mock or Stripe
        >>> session = await service.initialize_checkout(request)
        >>> if session.success:
        ...     render(session.checkout_form_content)
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the name of the payment provider (e.g. "mock", "stripe")."""
        pass

    @abstractmethod
    async def initialize_checkout(self, request: CheckoutRequest) -> CheckoutSession:
        """
        Open a hosted checkout session for an order.

        Gateway-side rejections are reported through CheckoutSession.success,
        not raised.
        """
        pass

    @abstractmethod
    async def retrieve_checkout(self, token: str) -> PaymentResult:
        """
        Fetch the outcome of a checkout session by its token.

        Args:
            token: The token the gateway posted to the callback URL
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Verify connectivity to the payment gateway."""
        pass
