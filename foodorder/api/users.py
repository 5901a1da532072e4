"""
User Profile Endpoints
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from foodorder.api.deps import get_current_user, get_order_service, get_user_service
from foodorder.models import OrderStatus, User
from foodorder.schemas import OrderListResponse, UserResponse, UserUpdateRequest
from foodorder.services import OrderService, UserService

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me", response_model=UserResponse, summary="Current user profile")
async def get_me(
    user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
) -> UserResponse:
    return UserResponse.model_validate(await user_service.get_me(user))


@router.patch("/me", response_model=UserResponse, summary="Update current user profile")
async def update_me(
    data: UserUpdateRequest,
    user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
) -> UserResponse:
    updated = await user_service.update_me(
        user,
        name=data.name,
        address=data.address,
        password=data.password,
    )
    return UserResponse.model_validate(updated)


@router.get("/me/orders", response_model=OrderListResponse, summary="Order history")
async def list_my_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[OrderStatus] = Query(None),
    sort: Optional[str] = Query(None, description='"field:direction", e.g. "total_amount:asc"'),
    user: User = Depends(get_current_user),
    order_service: OrderService = Depends(get_order_service),
) -> OrderListResponse:
    return await order_service.list_user_orders(user, page=page, limit=limit, status=status, sort=sort)
