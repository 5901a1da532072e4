"""
Restaurant Catalogue Endpoints

Browsing is open to any signed-in user; writes require an admin.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from foodorder.api.deps import get_current_user, get_restaurant_service, require_admin
from foodorder.models import User
from foodorder.schemas import (
    CategoryCreate,
    CategoryResponse,
    ErrorResponse,
    MenuItemCreate,
    MenuItemDetail,
    MessageResponse,
    RestaurantCreate,
    RestaurantListResponse,
    RestaurantMenu,
    RestaurantResponse,
    RestaurantUpdate,
    SearchResponse,
    SearchType,
)
from foodorder.services import RestaurantService

router = APIRouter(prefix="/restaurants", tags=["Restaurants"])


# =============================================================================
# BROWSING
# =============================================================================

@router.get("", response_model=RestaurantListResponse, summary="List open restaurants")
async def list_restaurants(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    city: Optional[str] = None,
    cuisine: Optional[str] = None,
    min_rating: Optional[float] = Query(None, ge=0, le=5),
    search: Optional[str] = None,
    user: User = Depends(get_current_user),
    restaurant_service: RestaurantService = Depends(get_restaurant_service),
) -> RestaurantListResponse:
    return await restaurant_service.list_restaurants(
        page=page,
        limit=limit,
        city=city,
        cuisine=cuisine,
        min_rating=min_rating,
        search=search,
    )


@router.get("/search", response_model=SearchResponse, summary="Search restaurants and dishes")
async def search(
    q: Optional[str] = Query(None, max_length=100),
    type: SearchType = Query(SearchType.ALL),
    city: Optional[str] = None,
    user: User = Depends(get_current_user),
    restaurant_service: RestaurantService = Depends(get_restaurant_service),
) -> SearchResponse:
    return await restaurant_service.search(q, search_type=type, city=city)


@router.get(
    "/menu-items/{menu_item_id}",
    response_model=MenuItemDetail,
    responses={404: {"model": ErrorResponse}},
    summary="Menu item details",
)
async def get_menu_item(
    menu_item_id: int,
    user: User = Depends(get_current_user),
    restaurant_service: RestaurantService = Depends(get_restaurant_service),
) -> MenuItemDetail:
    return await restaurant_service.get_menu_item(menu_item_id)


@router.get(
    "/{restaurant_id}",
    response_model=RestaurantResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Restaurant details",
)
async def get_restaurant(
    restaurant_id: int,
    user: User = Depends(get_current_user),
    restaurant_service: RestaurantService = Depends(get_restaurant_service),
) -> RestaurantResponse:
    return RestaurantResponse.model_validate(await restaurant_service.get_restaurant(restaurant_id))


@router.get(
    "/{restaurant_id}/menu",
    response_model=RestaurantMenu,
    responses={404: {"model": ErrorResponse}},
    summary="Restaurant menu grouped by category",
)
async def get_menu(
    restaurant_id: int,
    user: User = Depends(get_current_user),
    restaurant_service: RestaurantService = Depends(get_restaurant_service),
) -> RestaurantMenu:
    return await restaurant_service.get_menu(restaurant_id)


# =============================================================================
# ADMIN
# =============================================================================

@router.post(
    "",
    response_model=RestaurantResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a restaurant (admin)",
)
async def create_restaurant(
    data: RestaurantCreate,
    admin: User = Depends(require_admin),
    restaurant_service: RestaurantService = Depends(get_restaurant_service),
) -> RestaurantResponse:
    return RestaurantResponse.model_validate(await restaurant_service.create_restaurant(data))


@router.patch(
    "/{restaurant_id}",
    response_model=RestaurantResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Update a restaurant (admin)",
)
async def update_restaurant(
    restaurant_id: int,
    data: RestaurantUpdate,
    admin: User = Depends(require_admin),
    restaurant_service: RestaurantService = Depends(get_restaurant_service),
) -> RestaurantResponse:
    restaurant = await restaurant_service.update_restaurant(restaurant_id, data)
    return RestaurantResponse.model_validate(restaurant)


@router.delete(
    "/{restaurant_id}",
    response_model=MessageResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Delete a restaurant (admin)",
)
async def delete_restaurant(
    restaurant_id: int,
    admin: User = Depends(require_admin),
    restaurant_service: RestaurantService = Depends(get_restaurant_service),
) -> MessageResponse:
    await restaurant_service.delete_restaurant(restaurant_id)
    return MessageResponse(message="Restaurant deleted")


@router.post(
    "/{restaurant_id}/categories",
    response_model=CategoryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a menu category (admin)",
)
async def create_category(
    restaurant_id: int,
    data: CategoryCreate,
    admin: User = Depends(require_admin),
    restaurant_service: RestaurantService = Depends(get_restaurant_service),
) -> CategoryResponse:
    category = await restaurant_service.create_category(restaurant_id, data)
    return CategoryResponse.model_validate(category)


@router.post(
    "/{restaurant_id}/menu-items",
    response_model=MenuItemDetail,
    status_code=status.HTTP_201_CREATED,
    summary="Add a menu item (admin)",
)
async def add_menu_item(
    restaurant_id: int,
    data: MenuItemCreate,
    admin: User = Depends(require_admin),
    restaurant_service: RestaurantService = Depends(get_restaurant_service),
) -> MenuItemDetail:
    return await restaurant_service.add_menu_item(restaurant_id, data)
