"""
Shared fixtures.

Every test gets a fresh in-memory SQLite database (aiosqlite, one shared
connection), the in-memory cache and a zero-latency mock gateway.
"""

import os

os.environ.setdefault("ENV_MODE", "development")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import dataclasses
from decimal import Decimal
from typing import Optional

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from foodorder import models  # noqa: F401
from foodorder.core.config import get_settings
from foodorder.core.security import get_password_hash
from foodorder.database import Base
from foodorder.models import Category, MenuItem, Restaurant, User, UserRole
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
from foodorder.services.cache import MemoryCacheService
from foodorder.services.payment import MockPaymentService, PaymentResult

TEST_PASSWORD = "secret123"


class SkewedPaymentService(MockPaymentService):
    """Mock gateway that reports a different paid amount or status than requested."""

    def __init__(self, skew: Decimal = Decimal("0.00"), payment_status: str = "paid"):
        super().__init__()
        self.skew = skew
        self.payment_status = payment_status

    async def retrieve_checkout(self, token: str) -> PaymentResult:
        result = await super().retrieve_checkout(token)
        if not result.success:
            return result
        return dataclasses.replace(
            result,
            paid_amount=result.paid_amount + self.skew,
            payment_status=self.payment_status,
        )


class Factory:
    """Seeds rows through a session and commits each one."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self._counter = 0

    def _next(self) -> int:
        self._counter += 1
        return self._counter

    async def _save(self, obj):
        self.session.add(obj)
        await self.session.commit()
        return obj

    async def user(
        self,
        role: UserRole = UserRole.CUSTOMER,
        email: Optional[str] = None,
        password: str = TEST_PASSWORD,
    ) -> User:
        n = self._next()
        return await self._save(
            User(
                email=email or f"user{n}@example.com",
                password_hash=get_password_hash(password),
                name=f"User {n}",
                role=role,
                address=f"{n} Main Street",
            )
        )

    async def restaurant(
        self,
        owner: Optional[User] = None,
        delivery_fee: str = "10.00",
        min_order_amount: str = "0.00",
        is_open: bool = True,
        city: str = "Istanbul",
        name: Optional[str] = None,
        rating: str = "4.50",
    ) -> Restaurant:
        n = self._next()
        return await self._save(
            Restaurant(
                name=name or f"Restaurant {n}",
                description="Home cooking",
                cuisine="Turkish",
                city=city,
                district="Kadikoy",
                address=f"{n} Market Street",
                phone="555-0100",
                delivery_fee=Decimal(delivery_fee),
                min_order_amount=Decimal(min_order_amount),
                rating=Decimal(rating),
                review_count=0,
                delivery_time=30,
                is_open=is_open,
                owner_id=owner.id if owner else None,
            )
        )

    async def category(self, restaurant: Restaurant, name: str = "Mains") -> Category:
        return await self._save(
            Category(name=name, restaurant_id=restaurant.id, menu_items=[])
        )

    async def menu_item(
        self,
        restaurant: Restaurant,
        category: Category,
        price: str = "50.00",
        name: Optional[str] = None,
        is_available: bool = True,
    ) -> MenuItem:
        n = self._next()
        return await self._save(
            MenuItem(
                name=name or f"Dish {n}",
                description="Tasty",
                price=Decimal(price),
                is_available=is_available,
                restaurant=restaurant,
                category=category,
            )
        )


# =============================================================================
# DATABASE
# =============================================================================

@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def factory(session) -> Factory:
    return Factory(session)


# =============================================================================
# CLIENTS
# =============================================================================

@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def cache() -> MemoryCacheService:
    return MemoryCacheService()


@pytest.fixture
def payment() -> MockPaymentService:
    return MockPaymentService()


# =============================================================================
# SERVICES
# =============================================================================

@pytest.fixture
def auth_service(session, cache, settings) -> AuthService:
    return AuthService(UserRepository(session), cache, settings)


@pytest.fixture
def user_service(session) -> UserService:
    return UserService(UserRepository(session))


@pytest.fixture
def restaurant_service(session, cache, settings) -> RestaurantService:
    return RestaurantService(
        RestaurantRepository(session),
        MenuRepository(session),
        UserRepository(session),
        cache,
        settings,
    )


@pytest.fixture
def cart_service(session) -> CartService:
    return CartService(CartRepository(session), MenuRepository(session))


def make_order_service(session, payment, cache, settings) -> OrderService:
    return OrderService(
        OrderRepository(session),
        RestaurantRepository(session),
        payment,
        cache,
        settings,
    )


@pytest.fixture
def order_service(session, payment, cache, settings) -> OrderService:
    return make_order_service(session, payment, cache, settings)
