"""
Restaurant Catalogue Service

Browsing, search and admin maintenance of restaurants and their menus.

Menus are read far more often than they change, so each restaurant's menu
is cached as JSON under ``restaurant_menu:{id}``. Every menu write drops
that key; readers rebuild it on the next miss.
"""

import logging
from typing import Optional

from pydantic import ValidationError

from foodorder.core.config import Settings
from foodorder.exceptions import BadRequestError, ConflictError, NotFoundError
from foodorder.models import Category, MenuItem, Restaurant, UserRole
from foodorder.repositories import (
    MenuRepository,
    RestaurantFilters,
    RestaurantRepository,
    UserRepository,
)
from foodorder.schemas import (
    CategoryCreate,
    MenuCategory,
    MenuEntry,
    MenuItemCreate,
    MenuItemDetail,
    Pagination,
    RefBrief,
    RestaurantCreate,
    RestaurantListResponse,
    RestaurantMenu,
    RestaurantResponse,
    RestaurantUpdate,
    SearchResponse,
    SearchType,
)
from foodorder.services.cache import BaseCacheService

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 10


def menu_cache_key(restaurant_id: int) -> str:
    return f"restaurant_menu:{restaurant_id}"


class RestaurantService:
    """
    Args:
        restaurant_repo: Restaurant storage
        menu_repo: Category and menu item storage
        user_repo: Owner lookup when assigning a restaurant owner
        cache: Menu cache
        settings: Menu cache TTL
    """

    def __init__(
        self,
        restaurant_repo: RestaurantRepository,
        menu_repo: MenuRepository,
        user_repo: UserRepository,
        cache: BaseCacheService,
        settings: Settings,
    ):
        self.restaurant_repo = restaurant_repo
        self.menu_repo = menu_repo
        self.user_repo = user_repo
        self.cache = cache
        self.settings = settings

    # =========================================================================
    # BROWSING
    # =========================================================================

    async def list_restaurants(
        self,
        page: int = 1,
        limit: int = 10,
        city: Optional[str] = None,
        cuisine: Optional[str] = None,
        min_rating: Optional[float] = None,
        search: Optional[str] = None,
    ) -> RestaurantListResponse:
        """Open restaurants, best rated first."""
        restaurants, total = await self.restaurant_repo.find_open_restaurants(
            RestaurantFilters(city=city, cuisine=cuisine, min_rating=min_rating, search=search),
            page=page,
            limit=limit,
        )
        return RestaurantListResponse(
            restaurants=[RestaurantResponse.model_validate(r) for r in restaurants],
            pagination=Pagination.build(page, limit, total),
        )

    async def get_restaurant(self, restaurant_id: int) -> Restaurant:
        restaurant = await self.restaurant_repo.get_by_id(restaurant_id)
        if restaurant is None:
            raise NotFoundError("Restaurant not found")
        return restaurant

    async def get_menu(self, restaurant_id: int) -> RestaurantMenu:
        """
        A restaurant's categories with their items.

        Served from cache when possible. Cache failures fall through to the
        database and never fail the request.
        """
        key = menu_cache_key(restaurant_id)

        try:
            cached = await self.cache.get(key)
            if cached:
                logger.debug(f"Menu cache hit for restaurant {restaurant_id}")
                return RestaurantMenu.model_validate_json(cached)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable menu cache {key}: {e}")
        except Exception as e:
            logger.warning(f"Cache get error for {key}: {e}")

        restaurant = await self.get_restaurant(restaurant_id)
        categories = await self.menu_repo.find_menu_categories(restaurant_id)

        menu = RestaurantMenu(
            restaurant=RefBrief.model_validate(restaurant),
            categories=[
                MenuCategory(
                    id=category.id,
                    name=category.name,
                    items=[MenuEntry.model_validate(item) for item in category.menu_items],
                )
                for category in categories
            ],
        )

        try:
            await self.cache.set(key, menu.model_dump_json(), ttl=self.settings.menu_cache_ttl)
        except Exception as e:
            logger.warning(f"Cache set error for {key}: {e}")

        return menu

    async def get_menu_item(self, menu_item_id: int) -> MenuItemDetail:
        menu_item = await self.menu_repo.get_menu_item(menu_item_id)
        if menu_item is None:
            raise NotFoundError("Menu item not found")
        return MenuItemDetail.model_validate(menu_item)

    async def search(
        self,
        q: Optional[str],
        search_type: SearchType = SearchType.ALL,
        city: Optional[str] = None,
    ) -> SearchResponse:
        """Search restaurants by name and menu items by name or description."""
        response = SearchResponse()

        if search_type in (SearchType.RESTAURANT, SearchType.ALL):
            restaurants = await self.restaurant_repo.search_restaurants(q, city, limit=SEARCH_LIMIT)
            response.restaurants = [RestaurantResponse.model_validate(r) for r in restaurants]

        if search_type in (SearchType.MENU_ITEM, SearchType.ALL):
            items = await self.menu_repo.search_menu_items(q, city, limit=SEARCH_LIMIT)
            response.menu_items = [MenuItemDetail.model_validate(item) for item in items]

        return response

    # =========================================================================
    # ADMIN
    # =========================================================================

    async def create_restaurant(self, data: RestaurantCreate) -> Restaurant:
        if data.owner_id is not None:
            await self._check_owner(data.owner_id)

        restaurant = Restaurant(**data.model_dump())
        await self.restaurant_repo.add(restaurant)

        logger.info(f"Restaurant #{restaurant.id} created: {restaurant.name}")
        return restaurant

    async def update_restaurant(self, restaurant_id: int, data: RestaurantUpdate) -> Restaurant:
        restaurant = await self.get_restaurant(restaurant_id)

        changes = data.model_dump(exclude_unset=True)
        if changes.get("owner_id") is not None:
            await self._check_owner(changes["owner_id"])

        for field, value in changes.items():
            setattr(restaurant, field, value)
        await self.restaurant_repo.save(restaurant)
        await self._invalidate_menu(restaurant_id)

        logger.info(f"Restaurant #{restaurant.id} updated: {sorted(changes)}")
        return restaurant

    async def delete_restaurant(self, restaurant_id: int) -> None:
        """
        Raises:
            NotFoundError: Unknown restaurant
            ConflictError: The restaurant has order history
        """
        restaurant = await self.get_restaurant(restaurant_id)
        if await self.restaurant_repo.has_orders(restaurant_id):
            raise ConflictError("Restaurant has orders and cannot be deleted; close it instead")

        await self.restaurant_repo.delete(restaurant)
        await self._invalidate_menu(restaurant_id)
        logger.info(f"Restaurant #{restaurant_id} deleted")

    async def create_category(self, restaurant_id: int, data: CategoryCreate) -> Category:
        await self.get_restaurant(restaurant_id)

        category = Category(
            name=data.name,
            description=data.description,
            restaurant_id=restaurant_id,
            menu_items=[],
        )
        await self.menu_repo.add_category(category)
        await self._invalidate_menu(restaurant_id)
        return category

    async def add_menu_item(self, restaurant_id: int, data: MenuItemCreate) -> MenuItemDetail:
        """
        Raises:
            NotFoundError: Unknown restaurant or category of another restaurant
        """
        restaurant = await self.get_restaurant(restaurant_id)
        category = await self.menu_repo.get_category(restaurant_id, data.category_id)
        if category is None:
            raise NotFoundError("Category not found for this restaurant")

        menu_item = MenuItem(
            name=data.name,
            description=data.description,
            price=data.price,
            image_url=data.image_url,
            is_available=data.is_available,
            restaurant=restaurant,
            category=category,
        )
        await self.menu_repo.add_menu_item(menu_item)
        await self._invalidate_menu(restaurant_id)

        logger.info(f"Menu item #{menu_item.id} added to restaurant #{restaurant_id}")
        return MenuItemDetail.model_validate(menu_item)

    async def _check_owner(self, owner_id: int) -> None:
        owner = await self.user_repo.get_by_id(owner_id)
        if owner is None or owner.role not in (UserRole.RESTAURANT_OWNER, UserRole.ADMIN):
            raise BadRequestError("owner_id must reference a restaurant owner account")

    async def _invalidate_menu(self, restaurant_id: int) -> None:
        try:
            await self.cache.delete(menu_cache_key(restaurant_id))
        except Exception as e:
            logger.warning(f"Could not invalidate menu cache of restaurant {restaurant_id}: {e}")
