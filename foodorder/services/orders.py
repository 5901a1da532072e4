"""
Order Service

Turns a cart into a persisted order, opens a hosted checkout with the
payment gateway, and reconciles the gateway's asynchronous callback.

State machine:
    pending → paid → confirmed → preparing → on_the_way → delivered
    pending | paid → cancelled            (status update path)
    any non-terminal → cancelled          (customer cancellation)

There is no distributed transaction between the database and the gateway.
Completion is safe to repeat: a duplicate callback for an order that is
already paid returns without touching anything, and the paid amount is
checked against the stored total before the order is marked paid.
"""

import logging
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from foodorder.core.config import Settings
from foodorder.exceptions import (
    BadRequestError,
    InternalError,
    NotFoundError,
    UnauthorizedError,
)
from foodorder.models import (
    ORDER_FLOW,
    TERMINAL_STATUSES,
    Order,
    OrderItem,
    OrderStatus,
    User,
    UserRole,
)
from foodorder.repositories import OrderRepository, RestaurantRepository
from foodorder.schemas import (
    CartResponse,
    CheckoutFormResponse,
    OrderListResponse,
    OrderResponse,
    Pagination,
)
from foodorder.services.cache import BaseCacheService
from foodorder.services.payment import (
    BasePaymentService,
    BasketItem,
    CheckoutRequest,
)

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
AMOUNT_TOLERANCE = Decimal("0.01")
DELIVERY_BASKET_ID = "DELIVERY"
DEFAULT_ORDER_SORT = "created_at:desc"


def round_money(amount: Decimal) -> Decimal:
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def build_basket(cart: CartResponse) -> list[BasketItem]:
    """
    Itemize a cart for the gateway.

    One line per cart line priced at its rounded line total, plus a
    delivery line when the restaurant charges a fee.
    """
    basket = [
        BasketItem(
            id=str(line.menu_item_id),
            name=line.name,
            category=line.category or "Food",
            price=round_money(line.unit_price * line.quantity),
        )
        for line in cart.items
    ]
    delivery_fee = round_money(cart.delivery_fee)
    if delivery_fee > 0:
        basket.append(
            BasketItem(
                id=DELIVERY_BASKET_ID,
                name="Delivery Fee",
                category="Delivery",
                price=delivery_fee,
            )
        )
    return basket


def basket_total(basket: list[BasketItem]) -> Decimal:
    """Sum of the already-rounded basket prices; this is what the gateway validates."""
    return sum((item.price for item in basket), Decimal("0.00"))


def parse_order_sort(sort: Optional[str]) -> tuple[str, bool]:
    """
    Parse "field:direction" into (field, descending).

    Unknown fields fall back to created_at descending.
    """
    field, _, direction = (sort or DEFAULT_ORDER_SORT).partition(":")
    if field not in ("created_at", "total_amount", "status"):
        return "created_at", True
    return field, direction.lower() != "asc"


def orders_cache_pattern(user_id: int) -> str:
    return f"user:{user_id}:orders:*"


def orders_cache_key(
    user_id: int,
    page: int,
    limit: int,
    status: Optional[OrderStatus],
    sort_field: str,
    descending: bool,
) -> str:
    return (
        f"user:{user_id}:orders:page:{page}:limit:{limit}"
        f":status:{status.value if status else 'all'}"
        f":sort:{sort_field}:{'desc' if descending else 'asc'}"
    )


class OrderService:
    """
    Order placement, payment reconciliation and fulfilment updates.

    Args:
        order_repo: Order storage, including the paid-and-clear transaction
        restaurant_repo: Restaurant lookup for checkout validation
        payment_service: Hosted-checkout gateway
        cache: Cache holding paginated order listings
        settings: Currency, callback URL and cache TTL
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        restaurant_repo: RestaurantRepository,
        payment_service: BasePaymentService,
        cache: BaseCacheService,
        settings: Settings,
    ):
        self.order_repo = order_repo
        self.restaurant_repo = restaurant_repo
        self.payment_service = payment_service
        self.cache = cache
        self.settings = settings

    # =========================================================================
    # CHECKOUT
    # =========================================================================

    async def create_order_and_payment_form(
        self,
        user: User,
        cart: CartResponse,
        client_ip: Optional[str],
        delivery_address: Optional[str] = None,
        city: Optional[str] = None,
        note: Optional[str] = None,
    ) -> CheckoutFormResponse:
        """
        Persist a pending order from the cart and open a hosted checkout.

        Raises:
            BadRequestError: Empty or mixed cart, closed restaurant, order
                below minimum, or the gateway rejected the checkout
        """
        if not cart.items or cart.restaurant is None:
            raise BadRequestError("Your cart is empty")

        restaurant_ids = {line.restaurant_id for line in cart.items}
        if len(restaurant_ids) != 1:
            raise BadRequestError("Cart items must all belong to the same restaurant")

        restaurant = await self.restaurant_repo.get_by_id(restaurant_ids.pop())
        if restaurant is None:
            raise BadRequestError("Restaurant is no longer available")
        if not restaurant.is_open:
            raise BadRequestError(f"{restaurant.name} is currently closed")
        if cart.subtotal < restaurant.min_order_amount:
            raise BadRequestError(
                f"Minimum order amount for {restaurant.name} is {restaurant.min_order_amount:.2f}"
            )

        basket = build_basket(cart)
        total_amount = basket_total(basket)

        order = Order(
            user_id=user.id,
            restaurant=restaurant,
            status=OrderStatus.PENDING,
            total_amount=total_amount,
            delivery_fee=round_money(cart.delivery_fee),
            delivery_address=delivery_address or user.address,
            city=city or restaurant.city,
            note=note,
            client_ip=client_ip,
            items=[
                OrderItem(
                    menu_item_id=line.menu_item_id,
                    name=line.name,
                    unit_price=line.unit_price,
                    quantity=line.quantity,
                    line_total=round_money(line.unit_price * line.quantity),
                )
                for line in cart.items
            ],
        )
        await self.order_repo.add(order)

        logger.info(f"Order #{order.id} created for user {user.id} - total {total_amount}")

        checkout = await self.payment_service.initialize_checkout(
            CheckoutRequest(
                order_id=order.id,
                price=total_amount,
                currency=self.settings.payment_currency,
                callback_url=self.settings.payment_callback_url,
                basket_items=basket,
                buyer_id=user.id,
                buyer_name=user.name,
                buyer_email=user.email,
                buyer_ip=client_ip,
                shipping_address=order.delivery_address,
                city=order.city,
            )
        )

        if not checkout.success:
            logger.warning(
                f"Order #{order.id}: checkout rejected by {self.payment_service.provider_name} - "
                f"{checkout.error_code}: {checkout.error_message}"
            )
            raise BadRequestError(f"Payment gateway error: {checkout.error_message}")

        order.payment_token = checkout.token
        await self.order_repo.save(order)
        await self._invalidate_order_listings(user.id)

        return CheckoutFormResponse(
            order_id=order.id,
            total_amount=total_amount,
            checkout_form_content=checkout.checkout_form_content or "",
            payment_page_url=checkout.payment_page_url,
        )

    async def complete_payment(self, token: str) -> int:
        """
        Reconcile a gateway callback.

        Returns:
            The id of the paid order

        Raises:
            BadRequestError: Payment failed, unconfirmed, amount mismatch,
                or the order was cancelled
            NotFoundError: The echoed order reference is unknown
        """
        result = await self.payment_service.retrieve_checkout(token)

        if not result.is_paid:
            logger.warning(
                f"Payment for token {token} not confirmed - "
                f"status={result.payment_status} error={result.error_message}"
            )
            raise BadRequestError("Payment failed or was not confirmed")

        order = None
        if result.order_reference and result.order_reference.isdigit():
            order = await self.order_repo.get_by_id(int(result.order_reference))
        if order is None:
            raise NotFoundError("Order not found")

        if order.status == OrderStatus.CANCELLED:
            raise BadRequestError("Order was cancelled before payment completed")

        if order.status != OrderStatus.PENDING:
            logger.info(f"Order #{order.id} already {order.status.value}, ignoring duplicate callback")
            return order.id

        paid_amount = round_money(result.paid_amount if result.paid_amount is not None else Decimal("0"))
        order_amount = round_money(order.total_amount)
        if abs(paid_amount - order_amount) > AMOUNT_TOLERANCE:
            logger.error(
                f"Order #{order.id}: amount mismatch - expected {order_amount}, paid {paid_amount}"
            )
            raise BadRequestError(
                f"Amount mismatch - expected {order_amount}, received {paid_amount}"
            )

        try:
            claimed = await self.order_repo.mark_paid_and_clear_cart(order, result.transaction_id)
        except SQLAlchemyError as e:
            logger.exception(f"Order #{order.id}: could not record payment - {e}")
            raise InternalError("Payment received but the order could not be updated")

        if not claimed:
            if order.status == OrderStatus.CANCELLED:
                raise BadRequestError("Order was cancelled before payment completed")
            logger.info(f"Order #{order.id} completed by a concurrent callback")
            return order.id

        await self._invalidate_order_listings(order.user_id)

        logger.info(f"Order #{order.id} paid - transaction {result.transaction_id}")
        return order.id

    # =========================================================================
    # FULFILMENT
    # =========================================================================

    async def update_order_status(
        self,
        actor: User,
        order_id: int,
        new_status: OrderStatus,
    ) -> Order:
        """
        Move an order along the fulfilment flow.

        Only the owner of the order's restaurant or an admin may do this.

        Raises:
            NotFoundError: Unknown order
            UnauthorizedError: Actor is neither admin nor restaurant owner
            BadRequestError: Transition is not allowed
        """
        order = await self.order_repo.get_by_id(order_id)
        if order is None:
            raise NotFoundError("Order not found")

        is_admin = actor.role == UserRole.ADMIN
        is_owner = (
            actor.role == UserRole.RESTAURANT_OWNER
            and order.restaurant is not None
            and order.restaurant.owner_id == actor.id
        )
        if not (is_admin or is_owner):
            raise UnauthorizedError("You are not allowed to update this order")

        self._check_transition(order.status, new_status)

        if new_status == OrderStatus.DELIVERED:
            order.delivered_at = datetime.now(timezone.utc)
        order.status = new_status
        await self.order_repo.save(order)
        await self._invalidate_order_listings(order.user_id)

        logger.info(f"Order #{order.id} status → {new_status.value} by user {actor.id}")
        return order

    def _check_transition(self, current: OrderStatus, new_status: OrderStatus) -> None:
        if current in TERMINAL_STATUSES:
            raise BadRequestError(f"Order is already {current.value}")

        if new_status == OrderStatus.CANCELLED:
            if current not in (OrderStatus.PENDING, OrderStatus.PAID):
                raise BadRequestError(f"An order that is {current.value} can no longer be cancelled")
            return

        if new_status == OrderStatus.PAID:
            raise BadRequestError("Orders are marked paid by the payment callback only")

        if ORDER_FLOW.index(new_status) <= ORDER_FLOW.index(current):
            raise BadRequestError(
                f"Cannot move order from {current.value} to {new_status.value}"
            )

    async def cancel_order(self, user: User, order_id: int) -> Order:
        """
        Cancel one of the user's own orders. No refund is issued.

        Raises:
            NotFoundError: Order missing or not the user's
            BadRequestError: Order already delivered or cancelled
        """
        order = await self.order_repo.get_for_user(user.id, order_id)
        if order is None:
            raise NotFoundError("Order not found")

        if order.status in TERMINAL_STATUSES:
            raise BadRequestError("Order cannot be cancelled")

        order.status = OrderStatus.CANCELLED
        await self.order_repo.save(order)
        await self._invalidate_order_listings(user.id)

        logger.info(f"Order #{order.id} cancelled by user {user.id}")
        return order

    # =========================================================================
    # READS
    # =========================================================================

    async def get_order_details(self, user: User, order_id: int) -> OrderResponse:
        """Visible to the customer, the restaurant's owner and admins."""
        order = await self.order_repo.get_by_id(order_id)
        if order is None:
            raise NotFoundError("Order not found")

        allowed = (
            order.user_id == user.id
            or user.role == UserRole.ADMIN
            or (order.restaurant is not None and order.restaurant.owner_id == user.id)
        )
        if not allowed:
            raise NotFoundError("Order not found")

        return OrderResponse.model_validate(order)

    async def list_user_orders(
        self,
        user: User,
        page: int = 1,
        limit: int = 10,
        status: Optional[OrderStatus] = None,
        sort: Optional[str] = None,
    ) -> OrderListResponse:
        """
        Paginated order history, cached per (user, page, limit, status, sort).

        Cache problems never fail the request; the database is used instead.
        """
        sort_field, descending = parse_order_sort(sort)
        cache_key = orders_cache_key(user.id, page, limit, status, sort_field, descending)

        try:
            cached = await self.cache.get(cache_key)
            if cached:
                return OrderListResponse.model_validate_json(cached)
        except (ValidationError, ValueError) as e:
            logger.warning(f"Discarding unreadable order listing cache {cache_key}: {e}")
        except Exception as e:
            logger.warning(f"Cache get error for {cache_key}: {e}")

        orders, total = await self.order_repo.find_user_orders(
            user.id,
            page=page,
            limit=limit,
            status=status,
            sort_field=sort_field,
            descending=descending,
        )
        response = OrderListResponse(
            orders=[OrderResponse.model_validate(order) for order in orders],
            pagination=Pagination.build(page, limit, total),
        )

        try:
            await self.cache.set(
                cache_key,
                response.model_dump_json(),
                ttl=self.settings.orders_cache_ttl,
            )
        except Exception as e:
            logger.warning(f"Cache set error for {cache_key}: {e}")

        return response

    async def _invalidate_order_listings(self, user_id: int) -> None:
        try:
            await self.cache.delete_pattern(orders_cache_pattern(user_id))
        except Exception as e:
            logger.warning(f"Could not invalidate order listings of user {user_id}: {e}")
