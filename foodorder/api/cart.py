"""
Cart Endpoints
"""

from fastapi import APIRouter, Depends, Query, status

from foodorder.api.deps import get_cart_service, get_current_user
from foodorder.models import User
from foodorder.schemas import (
    AddCartItemRequest,
    CartLineResponse,
    CartResponse,
    ErrorResponse,
    MessageResponse,
    UpdateCartItemRequest,
)
from foodorder.services import CartService

router = APIRouter(prefix="/cart", tags=["Cart"])


@router.get("", response_model=CartResponse, summary="Current cart with totals")
async def get_cart(
    user: User = Depends(get_current_user),
    cart_service: CartService = Depends(get_cart_service),
) -> CartResponse:
    return await cart_service.get_cart(user.id)


@router.post(
    "/items",
    response_model=CartLineResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Add an item to the cart",
)
async def add_item(
    data: AddCartItemRequest,
    clear_cart: bool = Query(False, description="Empty a cart holding another restaurant's items first"),
    user: User = Depends(get_current_user),
    cart_service: CartService = Depends(get_cart_service),
) -> CartLineResponse:
    line = await cart_service.add_item(
        user.id,
        data.menu_item_id,
        data.quantity,
        clear_cart=clear_cart,
    )
    return CartLineResponse(message="Item added to cart", item=line)


@router.patch(
    "/items/{cart_item_id}",
    response_model=CartLineResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Set a cart line's quantity (0 removes it)",
)
async def update_item(
    cart_item_id: int,
    data: UpdateCartItemRequest,
    user: User = Depends(get_current_user),
    cart_service: CartService = Depends(get_cart_service),
) -> CartLineResponse:
    line = await cart_service.update_quantity(user.id, cart_item_id, data.quantity)
    if line is None:
        return CartLineResponse(message="Item removed from cart")
    return CartLineResponse(message="Cart updated", item=line)


@router.delete("/items/{cart_item_id}", response_model=MessageResponse, summary="Remove a cart line")
async def remove_item(
    cart_item_id: int,
    user: User = Depends(get_current_user),
    cart_service: CartService = Depends(get_cart_service),
) -> MessageResponse:
    await cart_service.remove_item(user.id, cart_item_id)
    return MessageResponse(message="Item removed from cart")


@router.delete("", response_model=MessageResponse, summary="Empty the cart")
async def clear_cart(
    user: User = Depends(get_current_user),
    cart_service: CartService = Depends(get_cart_service),
) -> MessageResponse:
    removed = await cart_service.clear_cart(user.id)
    return MessageResponse(message=f"Cart cleared ({removed} item(s) removed)")
