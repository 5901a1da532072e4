from decimal import Decimal

import pytest

from foodorder.exceptions import BadRequestError, ConflictError, NotFoundError
from foodorder.models import Order, OrderStatus, UserRole
from foodorder.schemas import (
    CategoryCreate,
    MenuItemCreate,
    RestaurantCreate,
    RestaurantUpdate,
    SearchType,
)
from foodorder.services.restaurants import menu_cache_key


async def test_list_only_open_restaurants_best_rated_first(restaurant_service, factory):
    good = await factory.restaurant(name="Good", rating="4.20")
    best = await factory.restaurant(name="Best", rating="4.90")
    await factory.restaurant(name="Closed", rating="5.00", is_open=False)

    listing = await restaurant_service.list_restaurants()

    assert [r.id for r in listing.restaurants] == [best.id, good.id]
    assert listing.pagination.total_items == 2
    assert listing.pagination.total_pages == 1


async def test_list_filters_and_paginates(restaurant_service, factory):
    for _ in range(3):
        await factory.restaurant(city="Ankara")
    await factory.restaurant(city="Izmir")

    first_page = await restaurant_service.list_restaurants(page=1, limit=2, city="Ankara")
    second_page = await restaurant_service.list_restaurants(page=2, limit=2, city="Ankara")

    assert len(first_page.restaurants) == 2
    assert len(second_page.restaurants) == 1
    assert first_page.pagination.total_pages == 2
    assert {r.city for r in first_page.restaurants + second_page.restaurants} == {"Ankara"}


async def test_get_restaurant_not_found(restaurant_service):
    with pytest.raises(NotFoundError):
        await restaurant_service.get_restaurant(404)


async def test_menu_is_cached_and_invalidated_on_write(restaurant_service, factory, cache):
    restaurant = await factory.restaurant()
    category = await factory.category(restaurant, name="Pizza")
    await factory.menu_item(restaurant, category, price="12.00", name="Margherita")

    menu = await restaurant_service.get_menu(restaurant.id)

    assert menu.restaurant.id == restaurant.id
    assert [c.name for c in menu.categories] == ["Pizza"]
    assert [i.name for i in menu.categories[0].items] == ["Margherita"]
    assert await cache.get(menu_cache_key(restaurant.id)) is not None
    assert await restaurant_service.get_menu(restaurant.id) == menu

    await restaurant_service.add_menu_item(
        restaurant.id,
        MenuItemCreate(name="Diavola", price=Decimal("14.00"), category_id=category.id),
    )

    assert await cache.get(menu_cache_key(restaurant.id)) is None
    menu = await restaurant_service.get_menu(restaurant.id)
    assert [i.name for i in menu.categories[0].items] == ["Margherita", "Diavola"]


async def test_menu_of_unknown_restaurant(restaurant_service):
    with pytest.raises(NotFoundError):
        await restaurant_service.get_menu(404)


async def test_get_menu_item_details(restaurant_service, factory):
    restaurant = await factory.restaurant(name="Pasta Place")
    category = await factory.category(restaurant, name="Pasta")
    item = await factory.menu_item(restaurant, category, name="Carbonara")

    details = await restaurant_service.get_menu_item(item.id)

    assert details.name == "Carbonara"
    assert details.restaurant.name == "Pasta Place"
    assert details.category.name == "Pasta"


@pytest.mark.parametrize("search_type, has_restaurants, has_items", [
    (SearchType.ALL, True, True),
    (SearchType.RESTAURANT, True, False),
    (SearchType.MENU_ITEM, False, True),
])
async def test_search_types(restaurant_service, factory, search_type, has_restaurants, has_items):
    restaurant = await factory.restaurant(name="Kebab House")
    category = await factory.category(restaurant)
    await factory.menu_item(restaurant, category, name="Adana Kebab")

    result = await restaurant_service.search("kebab", search_type=search_type)

    assert (result.restaurants is not None) == has_restaurants
    assert (result.menu_items is not None) == has_items
    if has_restaurants:
        assert [r.name for r in result.restaurants] == ["Kebab House"]
    if has_items:
        assert [i.name for i in result.menu_items] == ["Adana Kebab"]


async def test_create_and_update_restaurant(restaurant_service, factory):
    owner = await factory.user(role=UserRole.RESTAURANT_OWNER)

    restaurant = await restaurant_service.create_restaurant(
        RestaurantCreate(
            name="Lahmacun Corner",
            cuisine="Turkish",
            city="Istanbul",
            district="Besiktas",
            address="2 Coast Road",
            delivery_fee=Decimal("7.50"),
            owner_id=owner.id,
        )
    )
    assert restaurant.id is not None
    assert restaurant.owner_id == owner.id

    updated = await restaurant_service.update_restaurant(
        restaurant.id, RestaurantUpdate(is_open=False, delivery_fee=Decimal("5.00"))
    )
    assert updated.is_open is False
    assert updated.delivery_fee == Decimal("5.00")
    assert updated.name == "Lahmacun Corner"


async def test_owner_must_be_restaurant_owner(restaurant_service, factory):
    customer = await factory.user()

    with pytest.raises(BadRequestError):
        await restaurant_service.create_restaurant(
            RestaurantCreate(
                name="Nope",
                cuisine="Any",
                city="Istanbul",
                district="Fatih",
                address="3 Side Street",
                owner_id=customer.id,
            )
        )


async def test_add_menu_item_rejects_foreign_category(restaurant_service, factory):
    restaurant = await factory.restaurant()
    other = await factory.restaurant()
    foreign_category = await factory.category(other)

    with pytest.raises(NotFoundError):
        await restaurant_service.add_menu_item(
            restaurant.id,
            MenuItemCreate(name="Soup", price=Decimal("5.00"), category_id=foreign_category.id),
        )


async def test_create_category(restaurant_service, factory):
    restaurant = await factory.restaurant()

    category = await restaurant_service.create_category(restaurant.id, CategoryCreate(name="Desserts"))

    assert category.restaurant_id == restaurant.id
    menu = await restaurant_service.get_menu(restaurant.id)
    assert [c.name for c in menu.categories] == ["Desserts"]


async def test_delete_restaurant(restaurant_service, factory):
    restaurant = await factory.restaurant()

    await restaurant_service.delete_restaurant(restaurant.id)

    with pytest.raises(NotFoundError):
        await restaurant_service.get_restaurant(restaurant.id)


async def test_delete_restaurant_with_orders_conflicts(restaurant_service, factory, session):
    customer = await factory.user()
    restaurant = await factory.restaurant()
    session.add(
        Order(
            user_id=customer.id,
            restaurant=restaurant,
            status=OrderStatus.DELIVERED,
            total_amount=Decimal("20.00"),
            delivery_address=customer.address,
            items=[],
        )
    )
    await session.commit()

    with pytest.raises(ConflictError):
        await restaurant_service.delete_restaurant(restaurant.id)
