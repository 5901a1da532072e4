"""
Cart Service

Keeps one active cart per user, restricted to a single restaurant at a
time. Adding an item from another restaurant is refused unless the caller
explicitly asks to clear the cart and start over.
"""

import logging
from decimal import Decimal
from typing import Optional, Sequence

from sqlalchemy.exc import IntegrityError

from foodorder.exceptions import BadRequestError, ConflictError, NotFoundError
from foodorder.models import CartItem
from foodorder.repositories import CartRepository, MenuRepository
from foodorder.schemas import CartLine, CartResponse, CartRestaurant

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


def to_cart_line(item: CartItem) -> CartLine:
    menu_item = item.menu_item
    return CartLine(
        id=item.id,
        menu_item_id=menu_item.id,
        restaurant_id=item.restaurant_id,
        name=menu_item.name,
        category=menu_item.category.name if menu_item.category else None,
        unit_price=menu_item.price,
        quantity=item.quantity,
        line_total=item.line_total,
    )


def build_cart(items: Sequence[CartItem]) -> CartResponse:
    """Compute subtotal, delivery fee and total for a user's cart lines."""
    if not items:
        return CartResponse()

    lines = [to_cart_line(item) for item in items]
    subtotal = sum((line.line_total for line in lines), ZERO)

    restaurant = items[0].restaurant
    delivery_fee = restaurant.delivery_fee if restaurant.delivery_fee is not None else ZERO

    return CartResponse(
        restaurant=CartRestaurant(
            id=restaurant.id,
            name=restaurant.name,
            delivery_fee=delivery_fee,
            min_order_amount=restaurant.min_order_amount,
            is_open=restaurant.is_open,
        ),
        items=lines,
        items_count=len(lines),
        subtotal=subtotal,
        delivery_fee=delivery_fee,
        total=subtotal + delivery_fee,
    )


class CartService:
    """
    Cart operations for a single user.

    Args:
        cart_repo: Cart line storage
        menu_repo: Menu item lookup
    """

    def __init__(self, cart_repo: CartRepository, menu_repo: MenuRepository):
        self.cart_repo = cart_repo
        self.menu_repo = menu_repo

    async def get_cart(self, user_id: int) -> CartResponse:
        items = await self.cart_repo.find_cart_by_user(user_id)
        return build_cart(items)

    async def add_item(
        self,
        user_id: int,
        menu_item_id: int,
        quantity: int,
        clear_cart: bool = False,
    ) -> CartLine:
        """
        Add a menu item to the user's cart.

        Args:
            user_id: Cart owner
            menu_item_id: Item to add
            quantity: Units to add (>= 1)
            clear_cart: Replace a cart that belongs to another restaurant

        Raises:
            BadRequestError: Quantity below 1 or item unavailable
            NotFoundError: Menu item does not exist
            ConflictError: Cart holds another restaurant's items and
                clear_cart was not requested
        """
        if quantity < 1:
            raise BadRequestError("Quantity must be at least 1")

        menu_item = await self.menu_repo.get_menu_item(menu_item_id)
        if menu_item is None:
            raise NotFoundError("Menu item not found")
        if not menu_item.is_available:
            raise BadRequestError(f"{menu_item.name} is currently unavailable")

        existing = await self.cart_repo.find_cart_by_user(user_id)
        other_restaurant = any(item.restaurant_id != menu_item.restaurant_id for item in existing)

        if other_restaurant:
            if not clear_cart:
                raise ConflictError(
                    "Your cart contains items from another restaurant. "
                    "Resubmit with clear_cart=true to empty it and add this item."
                )
            cleared = await self.cart_repo.clear(user_id)
            logger.info(f"Cart: cleared {cleared} line(s) of user {user_id} for restaurant switch")
            existing = []

        line = next((item for item in existing if item.menu_item_id == menu_item_id), None)

        try:
            if line is not None:
                line.quantity += quantity
            else:
                line = CartItem(
                    user_id=user_id,
                    menu_item=menu_item,
                    restaurant=menu_item.restaurant,
                    quantity=quantity,
                )
                await self.cart_repo.add_line(line)
            await self.cart_repo.commit()
        except IntegrityError:
            # A concurrent request inserted the same (user, menu item) line
            await self.cart_repo.rollback()
            raise ConflictError("Cart was modified concurrently, please retry")

        logger.debug(f"Cart: user {user_id} has {line.quantity} x menu item {menu_item_id}")
        return to_cart_line(line)

    async def update_quantity(
        self,
        user_id: int,
        cart_item_id: int,
        quantity: int,
    ) -> Optional[CartLine]:
        """
        Set a cart line's quantity. Zero removes the line.

        Returns:
            The updated line, or None when it was removed

        Raises:
            NotFoundError: The line does not belong to the user
            BadRequestError: Negative quantity
        """
        line = await self.cart_repo.get_user_line(user_id, cart_item_id)
        if line is None:
            raise NotFoundError("Cart item not found")

        if quantity < 0:
            raise BadRequestError("Quantity cannot be negative")

        if quantity == 0:
            await self.cart_repo.delete_line(user_id, cart_item_id)
            await self.cart_repo.commit()
            return None

        line.quantity = quantity
        await self.cart_repo.commit()
        return to_cart_line(line)

    async def remove_item(self, user_id: int, cart_item_id: int) -> int:
        removed = await self.cart_repo.delete_line(user_id, cart_item_id)
        await self.cart_repo.commit()
        return removed

    async def clear_cart(self, user_id: int) -> int:
        removed = await self.cart_repo.clear(user_id)
        await self.cart_repo.commit()
        return removed
