"""
SQLAlchemy Database Models

Tables for users, restaurants, categories, menu items, cart items,
orders and order item snapshots.

Relationships the services always need are loaded with "selectin" so
nothing triggers lazy IO on an async session.
"""

import enum
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from foodorder.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserRole(str, enum.Enum):
    CUSTOMER = "customer"
    ADMIN = "admin"
    RESTAURANT_OWNER = "restaurant_owner"


class OrderStatus(str, enum.Enum):
    """Order status workflow."""
    PENDING = "pending"
    PAID = "paid"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    ON_THE_WAY = "on_the_way"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


# Forward-only fulfilment flow; CANCELLED sits outside it.
ORDER_FLOW = [
    OrderStatus.PENDING,
    OrderStatus.PAID,
    OrderStatus.CONFIRMED,
    OrderStatus.PREPARING,
    OrderStatus.ON_THE_WAY,
    OrderStatus.DELIVERED,
]

TERMINAL_STATUSES = {OrderStatus.DELIVERED, OrderStatus.CANCELLED}


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(100), nullable=False)
    role = Column(Enum(UserRole), default=UserRole.CUSTOMER, nullable=False)
    address = Column(String(256), nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<User #{self.id} {self.email} ({self.role.value})>"


class Restaurant(Base):
    __tablename__ = "restaurants"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(150), nullable=False, index=True)
    description = Column(Text, nullable=True)
    cuisine = Column(String(50), nullable=False)

    # =========================================================================
    # LOCATION
    # =========================================================================
    city = Column(String(50), nullable=False, index=True)
    district = Column(String(50), nullable=False)
    address = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=True)

    # =========================================================================
    # PRICING
    # =========================================================================
    delivery_fee = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    min_order_amount = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))

    rating = Column(Numeric(3, 2), nullable=False, default=Decimal("0.00"))
    review_count = Column(Integer, default=0)
    delivery_time = Column(Integer, nullable=False, default=30)  # minutes
    image_url = Column(String(500), nullable=True)
    is_open = Column(Boolean, default=True, nullable=False, index=True)

    owner_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<Restaurant #{self.id} {self.name}>"


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    restaurant_id = Column(
        Integer, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False, index=True
    )

    menu_items = relationship(
        "MenuItem", back_populates="category", lazy="selectin", order_by="MenuItem.id"
    )

    def __repr__(self):
        return f"<Category #{self.id} {self.name}>"


class MenuItem(Base):
    __tablename__ = "menu_items"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(150), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    image_url = Column(String(500), nullable=True)
    is_available = Column(Boolean, default=True, nullable=False)

    restaurant_id = Column(
        Integer, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    category_id = Column(
        Integer, ForeignKey("categories.id", ondelete="CASCADE"), nullable=False, index=True
    )

    restaurant = relationship("Restaurant", lazy="selectin")
    category = relationship("Category", back_populates="menu_items", lazy="selectin")

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<MenuItem #{self.id} {self.name} {self.price}>"


class CartItem(Base):
    """
    One (user, menu item) pairing with a quantity.

    restaurant_id is denormalized from the menu item so the
    single-restaurant rule can be checked without a join.
    """
    __tablename__ = "cart_items"
    __table_args__ = (
        UniqueConstraint("user_id", "menu_item_id", name="uq_cart_user_menu_item"),
        CheckConstraint("quantity > 0", name="ck_cart_quantity_positive"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    menu_item_id = Column(Integer, ForeignKey("menu_items.id", ondelete="CASCADE"), nullable=False)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)

    menu_item = relationship("MenuItem", lazy="selectin")
    restaurant = relationship("Restaurant", lazy="selectin")

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    @property
    def line_total(self) -> Decimal:
        return self.menu_item.price * self.quantity


class Order(Base):
    """
    One checkout attempt.

    Created as PENDING before the customer is sent to the hosted checkout;
    the gateway callback moves it to PAID.
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id"), nullable=False, index=True)

    status = Column(Enum(OrderStatus), default=OrderStatus.PENDING, nullable=False, index=True)

    # =========================================================================
    # PRICING
    # =========================================================================
    total_amount = Column(Numeric(10, 2), nullable=False)
    delivery_fee = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))

    # =========================================================================
    # DELIVERY
    # =========================================================================
    delivery_address = Column(String(255), nullable=False)
    city = Column(String(50), nullable=True)
    note = Column(Text, nullable=True)
    client_ip = Column(String(45), nullable=True)

    # =========================================================================
    # PAYMENT INFO
    # =========================================================================
    payment_token = Column(String(255), nullable=True, index=True)
    payment_transaction_id = Column(String(255), nullable=True)

    # =========================================================================
    # TIMESTAMPS
    # =========================================================================
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    restaurant = relationship("Restaurant", lazy="selectin")
    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrderItem.id",
    )

    def __repr__(self):
        return f"<Order #{self.id} - user {self.user_id} - {self.status.value}>"


class OrderItem(Base):
    """Frozen copy of a cart line at checkout time."""
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    menu_item_id = Column(Integer, ForeignKey("menu_items.id", ondelete="SET NULL"), nullable=True)
    name = Column(String(150), nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    quantity = Column(Integer, nullable=False)
    line_total = Column(Numeric(10, 2), nullable=False)

    order = relationship("Order", back_populates="items")
