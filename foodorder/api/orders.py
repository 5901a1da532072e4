"""
Order Endpoints

Checkout, the payment gateway callback, and fulfilment updates.
"""

import logging
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Form, Query, Request
from fastapi.responses import RedirectResponse

from foodorder.api.deps import (
    get_cart_service,
    get_current_user,
    get_order_service,
    require_roles,
)
from foodorder.core.config import Settings, get_settings
from foodorder.exceptions import AppError
from foodorder.models import User, UserRole
from foodorder.schemas import (
    CheckoutFormResponse,
    ErrorResponse,
    OrderCreateRequest,
    OrderResponse,
    OrderStatusResponse,
    OrderStatusUpdateRequest,
)
from foodorder.services import CartService, OrderService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["Orders"])


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


# =============================================================================
# CHECKOUT
# =============================================================================

@router.post(
    "",
    response_model=CheckoutFormResponse,
    responses={400: {"model": ErrorResponse}},
    summary="Create an order from the cart and start payment",
)
async def create_order(
    request: Request,
    data: Optional[OrderCreateRequest] = None,
    user: User = Depends(get_current_user),
    cart_service: CartService = Depends(get_cart_service),
    order_service: OrderService = Depends(get_order_service),
) -> CheckoutFormResponse:
    """
    Persist a pending order and return the gateway's hosted checkout form.

    The cart is left untouched until the gateway confirms payment.
    """
    data = data or OrderCreateRequest()
    cart = await cart_service.get_cart(user.id)
    return await order_service.create_order_and_payment_form(
        user,
        cart,
        client_ip=client_ip(request),
        delivery_address=data.delivery_address,
        city=data.city,
        note=data.note,
    )


async def handle_payment_callback(
    token: Optional[str],
    order_service: OrderService,
    settings: Settings,
) -> RedirectResponse:
    """Reconcile the payment and send the browser to the frontend result page."""
    if not token:
        url = f"{settings.payment_failure_url}?{urlencode({'reason': 'Missing payment token'})}"
        return RedirectResponse(url, status_code=303)

    try:
        order_id = await order_service.complete_payment(token)
    except AppError as e:
        logger.warning(f"Payment callback rejected: {e.message}")
        reason = e.message
    except Exception as e:
        logger.exception(f"Payment callback failed: {e}")
        reason = "Payment could not be processed"
    else:
        url = f"{settings.payment_success_url}?{urlencode({'orderId': order_id})}"
        return RedirectResponse(url, status_code=303)

    url = f"{settings.payment_failure_url}?{urlencode({'reason': reason})}"
    return RedirectResponse(url, status_code=303)


@router.post("/callback", include_in_schema=False)
async def payment_callback_form(
    token: Optional[str] = Form(None),
    order_service: OrderService = Depends(get_order_service),
    settings: Settings = Depends(get_settings),
) -> RedirectResponse:
    return await handle_payment_callback(token, order_service, settings)


@router.get("/callback", include_in_schema=False)
async def payment_callback_redirect(
    token: Optional[str] = Query(None),
    order_service: OrderService = Depends(get_order_service),
    settings: Settings = Depends(get_settings),
) -> RedirectResponse:
    return await handle_payment_callback(token, order_service, settings)


# =============================================================================
# ORDERS
# =============================================================================

@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Order details",
)
async def get_order(
    order_id: int,
    user: User = Depends(get_current_user),
    order_service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    return await order_service.get_order_details(user, order_id)


@router.patch(
    "/{order_id}/status",
    response_model=OrderStatusResponse,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Advance an order's status (restaurant owner or admin)",
)
async def update_order_status(
    order_id: int,
    data: OrderStatusUpdateRequest,
    user: User = Depends(require_roles(UserRole.RESTAURANT_OWNER, UserRole.ADMIN)),
    order_service: OrderService = Depends(get_order_service),
) -> OrderStatusResponse:
    order = await order_service.update_order_status(user, order_id, data.status)
    return OrderStatusResponse(
        message=f"Order status updated to {order.status.value}",
        order_id=order.id,
        status=order.status,
        delivered_at=order.delivered_at,
    )


@router.post(
    "/{order_id}/cancel",
    response_model=OrderStatusResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Cancel one of your orders",
)
async def cancel_order(
    order_id: int,
    user: User = Depends(get_current_user),
    order_service: OrderService = Depends(get_order_service),
) -> OrderStatusResponse:
    order = await order_service.cancel_order(user, order_id)
    return OrderStatusResponse(
        message="Order cancelled",
        order_id=order.id,
        status=order.status,
    )
