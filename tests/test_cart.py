from decimal import Decimal

import pytest
from sqlalchemy import select

from foodorder.exceptions import BadRequestError, ConflictError, NotFoundError
from foodorder.models import CartItem
from foodorder.repositories import CartRepository, MenuRepository
from foodorder.services import CartService


@pytest.fixture
async def menu(factory):
    customer = await factory.user()
    restaurant = await factory.restaurant(delivery_fee="10.00")
    category = await factory.category(restaurant)
    burger = await factory.menu_item(restaurant, category, price="100.00", name="Burger")
    fries = await factory.menu_item(restaurant, category, price="50.00", name="Fries")
    return customer, restaurant, burger, fries


async def test_empty_cart(cart_service, factory):
    customer = await factory.user()

    cart = await cart_service.get_cart(customer.id)

    assert cart.items == []
    assert cart.restaurant is None
    assert cart.total == Decimal("0.00")


async def test_add_then_get_has_one_line_per_menu_item(cart_service, menu):
    customer, restaurant, burger, fries = menu

    await cart_service.add_item(customer.id, burger.id, 1)
    await cart_service.add_item(customer.id, burger.id, 2)
    await cart_service.add_item(customer.id, fries.id, 1)

    cart = await cart_service.get_cart(customer.id)

    assert [line.menu_item_id for line in cart.items] == [burger.id, fries.id]
    assert cart.items[0].quantity == 3
    assert cart.items_count == 2
    assert cart.subtotal == Decimal("350.00")
    assert cart.delivery_fee == Decimal("10.00")
    assert cart.total == Decimal("360.00")
    assert cart.restaurant.id == restaurant.id


async def test_add_returns_line_with_category(cart_service, menu):
    customer, _, burger, _ = menu

    line = await cart_service.add_item(customer.id, burger.id, 2)

    assert line.name == "Burger"
    assert line.category == "Mains"
    assert line.line_total == Decimal("200.00")


async def test_add_rejects_invalid_quantity(cart_service, menu):
    customer, _, burger, _ = menu

    with pytest.raises(BadRequestError):
        await cart_service.add_item(customer.id, burger.id, 0)


async def test_add_unknown_menu_item(cart_service, factory):
    customer = await factory.user()

    with pytest.raises(NotFoundError):
        await cart_service.add_item(customer.id, 9999, 1)


async def test_add_unavailable_menu_item(cart_service, factory):
    customer = await factory.user()
    restaurant = await factory.restaurant()
    category = await factory.category(restaurant)
    item = await factory.menu_item(restaurant, category, is_available=False)

    with pytest.raises(BadRequestError):
        await cart_service.add_item(customer.id, item.id, 1)


async def test_cross_restaurant_add_conflicts_without_flag(cart_service, factory, menu):
    customer, _, burger, _ = menu
    other = await factory.restaurant()
    other_category = await factory.category(other)
    kebab = await factory.menu_item(other, other_category, price="80.00")

    await cart_service.add_item(customer.id, burger.id, 1)

    with pytest.raises(ConflictError):
        await cart_service.add_item(customer.id, kebab.id, 1)

    cart = await cart_service.get_cart(customer.id)
    assert [line.menu_item_id for line in cart.items] == [burger.id]


async def test_cross_restaurant_add_with_clear_cart_replaces(cart_service, factory, menu):
    customer, _, burger, fries = menu
    other = await factory.restaurant()
    other_category = await factory.category(other)
    kebab = await factory.menu_item(other, other_category, price="80.00")

    await cart_service.add_item(customer.id, burger.id, 1)
    await cart_service.add_item(customer.id, fries.id, 1)
    await cart_service.add_item(customer.id, kebab.id, 1, clear_cart=True)

    cart = await cart_service.get_cart(customer.id)
    assert [line.menu_item_id for line in cart.items] == [kebab.id]
    assert {line.restaurant_id for line in cart.items} == {other.id}


async def test_update_quantity(cart_service, menu):
    customer, _, burger, _ = menu
    line = await cart_service.add_item(customer.id, burger.id, 1)

    updated = await cart_service.update_quantity(customer.id, line.id, 4)

    assert updated.quantity == 4
    assert updated.line_total == Decimal("400.00")


async def test_update_quantity_zero_removes_line(cart_service, menu):
    customer, _, burger, _ = menu
    line = await cart_service.add_item(customer.id, burger.id, 1)

    assert await cart_service.update_quantity(customer.id, line.id, 0) is None

    cart = await cart_service.get_cart(customer.id)
    assert cart.items == []


async def test_update_quantity_negative(cart_service, menu):
    customer, _, burger, _ = menu
    line = await cart_service.add_item(customer.id, burger.id, 1)

    with pytest.raises(BadRequestError):
        await cart_service.update_quantity(customer.id, line.id, -1)


async def test_update_other_users_line_is_not_found(cart_service, factory, menu):
    customer, _, burger, _ = menu
    intruder = await factory.user()
    line = await cart_service.add_item(customer.id, burger.id, 1)

    with pytest.raises(NotFoundError):
        await cart_service.update_quantity(intruder.id, line.id, 3)


async def test_remove_and_clear_are_idempotent(cart_service, menu):
    customer, _, burger, fries = menu
    line = await cart_service.add_item(customer.id, burger.id, 1)
    await cart_service.add_item(customer.id, fries.id, 1)

    assert await cart_service.remove_item(customer.id, line.id) == 1
    assert await cart_service.remove_item(customer.id, line.id) == 0
    assert await cart_service.clear_cart(customer.id) == 1
    assert await cart_service.clear_cart(customer.id) == 0


class RacingCartRepository(CartRepository):
    """Lets another session insert the same line right after the cart lookup."""

    def __init__(self, session, session_maker, line):
        super().__init__(session)
        self.session_maker = session_maker
        self.line = line

    async def find_cart_by_user(self, user_id):
        lines = await super().find_cart_by_user(user_id)
        if self.line is not None:
            async with self.session_maker() as other:
                other.add(CartItem(**self.line))
                await other.commit()
            self.line = None
        return lines


async def test_concurrent_insert_of_same_line_conflicts(session, session_maker, menu):
    customer, restaurant, burger, _ = menu
    customer_id, burger_id = customer.id, burger.id
    racing_line = {
        "user_id": customer_id,
        "menu_item_id": burger_id,
        "restaurant_id": restaurant.id,
        "quantity": 2,
    }
    service = CartService(
        RacingCartRepository(session, session_maker, racing_line),
        MenuRepository(session),
    )

    with pytest.raises(ConflictError):
        await service.add_item(customer_id, burger_id, 1)

    result = await session.execute(
        select(CartItem.quantity).where(CartItem.user_id == customer_id)
    )
    assert result.scalars().all() == [2]
