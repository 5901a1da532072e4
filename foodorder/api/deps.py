"""
FastAPI Dependencies

Builds repositories and services per request from the shared session,
cache and payment gateway, and resolves the authenticated user.

Guards are composed per route:

    @router.patch("/{order_id}/status")
    async def update_status(user: User = Depends(require_roles(UserRole.ADMIN, ...))):
        ...
"""

import uuid
from typing import Optional

from fastapi import Cookie, Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from foodorder.core.config import Settings, get_settings
from foodorder.database import get_db
from foodorder.exceptions import UnauthorizedError
from foodorder.models import User, UserRole
from foodorder.repositories import (
    CartRepository,
    MenuRepository,
    OrderRepository,
    RestaurantRepository,
    UserRepository,
)
from foodorder.services import (
    AuthService,
    CartService,
    OrderService,
    RestaurantService,
    UserService,
)
from foodorder.services.cache import BaseCacheService, get_cache_service
from foodorder.services.payment import BasePaymentService, get_payment_service

ACCESS_TOKEN_COOKIE = "access_token"
REFRESH_TOKEN_COOKIE = "refresh_token"


def get_correlation_id(x_correlation_id: Optional[str] = Header(None)) -> str:
    return x_correlation_id or str(uuid.uuid4())


# =============================================================================
# SERVICES
# =============================================================================

def get_auth_service(
    db: AsyncSession = Depends(get_db),
    cache: BaseCacheService = Depends(get_cache_service),
    settings: Settings = Depends(get_settings),
) -> AuthService:
    return AuthService(UserRepository(db), cache, settings)


def get_user_service(db: AsyncSession = Depends(get_db)) -> UserService:
    return UserService(UserRepository(db))


def get_restaurant_service(
    db: AsyncSession = Depends(get_db),
    cache: BaseCacheService = Depends(get_cache_service),
    settings: Settings = Depends(get_settings),
) -> RestaurantService:
    return RestaurantService(
        RestaurantRepository(db),
        MenuRepository(db),
        UserRepository(db),
        cache,
        settings,
    )


def get_cart_service(db: AsyncSession = Depends(get_db)) -> CartService:
    return CartService(CartRepository(db), MenuRepository(db))


def get_order_service(
    db: AsyncSession = Depends(get_db),
    cache: BaseCacheService = Depends(get_cache_service),
    payment_service: BasePaymentService = Depends(get_payment_service),
    settings: Settings = Depends(get_settings),
) -> OrderService:
    return OrderService(
        OrderRepository(db),
        RestaurantRepository(db),
        payment_service,
        cache,
        settings,
    )


# =============================================================================
# AUTHENTICATION
# =============================================================================

def extract_access_token(
    access_token: Optional[str] = Cookie(None, alias=ACCESS_TOKEN_COOKIE),
    authorization: Optional[str] = Header(None),
) -> Optional[str]:
    """The access token from the cookie, or from an "Authorization: Bearer" header."""
    if access_token:
        return access_token
    if authorization:
        scheme, _, credentials = authorization.partition(" ")
        if scheme.lower() == "bearer" and credentials:
            return credentials.strip()
    return None


async def get_current_user(
    access_token: Optional[str] = Depends(extract_access_token),
    auth_service: AuthService = Depends(get_auth_service),
) -> User:
    return await auth_service.authenticate(access_token)


def require_roles(*roles: UserRole):
    """Dependency factory: the current user must hold one of the given roles."""

    async def checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise UnauthorizedError("You do not have permission to perform this action")
        return user

    return checker


require_admin = require_roles(UserRole.ADMIN)
