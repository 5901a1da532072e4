"""
Repository Layer

Intention-revealing data access over an AsyncSession. Services receive
repositories through their constructors and never build queries
themselves. Every repository in one request shares the same session, so
a commit on any of them commits the whole unit of work.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from foodorder.models import (
    CartItem,
    Category,
    MenuItem,
    Order,
    OrderStatus,
    Restaurant,
    User,
)


class BaseRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()


# =============================================================================
# USERS
# =============================================================================

class UserRepository(BaseRepository):

    async def get_by_id(self, user_id: int) -> Optional[User]:
        return await self.session.get(User, user_id)

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def add(self, user: User) -> User:
        self.session.add(user)
        await self.session.commit()
        return user

    async def save(self, user: User) -> User:
        await self.session.commit()
        return user


# =============================================================================
# RESTAURANTS / MENU
# =============================================================================

@dataclass
class RestaurantFilters:
    city: Optional[str] = None
    cuisine: Optional[str] = None
    min_rating: Optional[float] = None
    search: Optional[str] = None


class RestaurantRepository(BaseRepository):

    async def get_by_id(self, restaurant_id: int) -> Optional[Restaurant]:
        return await self.session.get(Restaurant, restaurant_id)

    async def find_open_restaurants(
        self,
        filters: RestaurantFilters,
        page: int,
        limit: int,
    ) -> tuple[Sequence[Restaurant], int]:
        """Open restaurants matching the filters, best rated first."""
        conditions = [Restaurant.is_open.is_(True)]

        if filters.city:
            conditions.append(Restaurant.city == filters.city)
        if filters.cuisine:
            conditions.append(Restaurant.cuisine == filters.cuisine)
        if filters.min_rating is not None:
            conditions.append(Restaurant.rating >= filters.min_rating)
        if filters.search:
            term = f"%{filters.search}%"
            conditions.append(
                or_(
                    Restaurant.name.ilike(term),
                    Restaurant.description.ilike(term),
                    Restaurant.address.ilike(term),
                )
            )

        count_query = select(func.count(Restaurant.id)).where(*conditions)
        total = (await self.session.execute(count_query)).scalar() or 0

        query = (
            select(Restaurant)
            .where(*conditions)
            .order_by(Restaurant.rating.desc(), Restaurant.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = await self.session.execute(query)
        return result.scalars().all(), total

    async def search_restaurants(
        self,
        q: Optional[str],
        city: Optional[str],
        limit: int = 10,
    ) -> Sequence[Restaurant]:
        query = select(Restaurant)
        if q:
            query = query.where(Restaurant.name.ilike(f"%{q}%"))
        if city:
            query = query.where(Restaurant.city == city)
        result = await self.session.execute(query.order_by(Restaurant.id).limit(limit))
        return result.scalars().all()

    async def add(self, restaurant: Restaurant) -> Restaurant:
        self.session.add(restaurant)
        await self.session.commit()
        return restaurant

    async def save(self, restaurant: Restaurant) -> Restaurant:
        await self.session.commit()
        return restaurant

    async def delete(self, restaurant: Restaurant) -> None:
        await self.session.delete(restaurant)
        await self.session.commit()

    async def has_orders(self, restaurant_id: int) -> bool:
        result = await self.session.execute(
            select(func.count(Order.id)).where(Order.restaurant_id == restaurant_id)
        )
        return (result.scalar() or 0) > 0


class MenuRepository(BaseRepository):

    async def get_menu_item(self, menu_item_id: int) -> Optional[MenuItem]:
        return await self.session.get(MenuItem, menu_item_id)

    async def get_category(self, restaurant_id: int, category_id: int) -> Optional[Category]:
        result = await self.session.execute(
            select(Category).where(
                Category.id == category_id,
                Category.restaurant_id == restaurant_id,
            )
        )
        return result.scalar_one_or_none()

    async def find_menu_categories(self, restaurant_id: int) -> Sequence[Category]:
        """Categories of a restaurant with their menu items."""
        result = await self.session.execute(
            select(Category)
            .where(Category.restaurant_id == restaurant_id)
            .order_by(Category.id)
        )
        return result.scalars().all()

    async def search_menu_items(
        self,
        q: Optional[str],
        city: Optional[str],
        limit: int = 10,
    ) -> Sequence[MenuItem]:
        query = select(MenuItem).join(Restaurant, MenuItem.restaurant_id == Restaurant.id)
        if q:
            term = f"%{q}%"
            query = query.where(or_(MenuItem.name.ilike(term), MenuItem.description.ilike(term)))
        if city:
            query = query.where(Restaurant.city == city)
        result = await self.session.execute(query.order_by(MenuItem.id).limit(limit))
        return result.scalars().all()

    async def add_category(self, category: Category) -> Category:
        self.session.add(category)
        await self.session.commit()
        return category

    async def add_menu_item(self, menu_item: MenuItem) -> MenuItem:
        self.session.add(menu_item)
        await self.session.commit()
        return menu_item


# =============================================================================
# CART
# =============================================================================

class CartRepository(BaseRepository):

    async def find_cart_by_user(self, user_id: int) -> Sequence[CartItem]:
        result = await self.session.execute(
            select(CartItem).where(CartItem.user_id == user_id).order_by(CartItem.id)
        )
        return result.scalars().all()

    async def get_user_line(self, user_id: int, cart_item_id: int) -> Optional[CartItem]:
        result = await self.session.execute(
            select(CartItem).where(
                CartItem.id == cart_item_id,
                CartItem.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def add_line(self, cart_item: CartItem) -> None:
        self.session.add(cart_item)
        await self.session.flush()

    async def delete_line(self, user_id: int, cart_item_id: int) -> int:
        result = await self.session.execute(
            delete(CartItem).where(
                CartItem.id == cart_item_id,
                CartItem.user_id == user_id,
            )
        )
        return result.rowcount or 0

    async def clear(self, user_id: int) -> int:
        result = await self.session.execute(delete(CartItem).where(CartItem.user_id == user_id))
        return result.rowcount or 0


# =============================================================================
# ORDERS
# =============================================================================

ORDER_SORT_FIELDS = {
    "created_at": Order.created_at,
    "total_amount": Order.total_amount,
    "status": Order.status,
}


class OrderRepository(BaseRepository):

    async def add(self, order: Order) -> Order:
        self.session.add(order)
        await self.session.commit()
        return order

    async def save(self, order: Order) -> Order:
        await self.session.commit()
        return order

    async def get_by_id(self, order_id: int) -> Optional[Order]:
        return await self.session.get(Order, order_id)

    async def get_for_user(self, user_id: int, order_id: int) -> Optional[Order]:
        result = await self.session.execute(
            select(Order).where(Order.id == order_id, Order.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def find_user_orders(
        self,
        user_id: int,
        page: int,
        limit: int,
        status: Optional[OrderStatus] = None,
        sort_field: str = "created_at",
        descending: bool = True,
    ) -> tuple[Sequence[Order], int]:
        conditions = [Order.user_id == user_id]
        if status is not None:
            conditions.append(Order.status == status)

        total = (
            await self.session.execute(select(func.count(Order.id)).where(*conditions))
        ).scalar() or 0

        column = ORDER_SORT_FIELDS.get(sort_field, Order.created_at)
        ordering = column.desc() if descending else column.asc()

        result = await self.session.execute(
            select(Order)
            .where(*conditions)
            .order_by(ordering, Order.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return result.scalars().all(), total

    async def mark_paid_and_clear_cart(self, order: Order, transaction_id: Optional[str]) -> bool:
        """
        Mark a pending order paid and empty its owner's cart in one transaction.

        The status change is conditional on the row still being pending, so
        of several concurrent callers only one clears the cart.

        Returns:
            True if this call moved the order to paid, False if it was no
            longer pending
        """
        try:
            result = await self.session.execute(
                update(Order)
                .where(Order.id == order.id, Order.status == OrderStatus.PENDING)
                .values(status=OrderStatus.PAID, payment_transaction_id=transaction_id)
                .execution_options(synchronize_session=False)
            )
            claimed = result.rowcount == 1
            if claimed:
                await self.session.execute(delete(CartItem).where(CartItem.user_id == order.user_id))
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        await self.session.refresh(order)
        return claimed
