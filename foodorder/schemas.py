"""
Pydantic Schemas for Request/Response Validation

Money fields are Decimals internally and serialize to JSON numbers.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, PlainSerializer, field_validator

from foodorder.models import OrderStatus, UserRole

Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


# =============================================================================
# ENUMS
# =============================================================================

class SearchType(str, Enum):
    RESTAURANT = "restaurant"
    MENU_ITEM = "menu_item"
    ALL = "all"


# =============================================================================
# SHARED
# =============================================================================

class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(
            current_page=page,
            total_pages=(total + limit - 1) // limit,
            total_items=total,
            items_per_page=limit,
        )


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[str] = None
    correlation_id: Optional[str] = None


class HealthResponse(BaseModel):
    status: str
    database: str
    cache: str
    payment_service: str
    timestamp: datetime


# =============================================================================
# AUTH / USERS
# =============================================================================

class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    name: str = Field(..., min_length=2, max_length=100)
    address: str = Field(..., min_length=1, max_length=256)
    role: UserRole = UserRole.CUSTOMER

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: UserRole) -> UserRole:
        if v == UserRole.ADMIN:
            raise ValueError("Admin accounts cannot be self-registered")
        return v


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class RefreshTokenRequest(BaseModel):
    refresh_token: Optional[str] = None


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: str
    role: UserRole
    address: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class UserUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    address: Optional[str] = Field(None, min_length=1, max_length=256)
    password: Optional[str] = Field(None, min_length=6, max_length=128)


class LoginResponse(BaseModel):
    message: str = "Login successful"
    user: UserResponse


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


# =============================================================================
# RESTAURANTS / MENU
# =============================================================================

class RestaurantResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    cuisine: str
    city: str
    district: str
    address: str
    phone: Optional[str] = None
    rating: Money
    review_count: int
    delivery_time: int
    min_order_amount: Money
    delivery_fee: Money
    image_url: Optional[str] = None
    is_open: bool
    owner_id: Optional[int] = None


class RestaurantListResponse(BaseModel):
    restaurants: List[RestaurantResponse]
    pagination: Pagination


class RestaurantCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    description: Optional[str] = None
    cuisine: str = Field(..., min_length=1, max_length=50)
    city: str = Field(..., min_length=1, max_length=50)
    district: str = Field(..., min_length=1, max_length=50)
    address: str = Field(..., min_length=1, max_length=255)
    phone: Optional[str] = Field(None, max_length=20)
    delivery_fee: Decimal = Field(Decimal("0.00"), ge=0, max_digits=10, decimal_places=2)
    min_order_amount: Decimal = Field(Decimal("0.00"), ge=0, max_digits=10, decimal_places=2)
    delivery_time: int = Field(30, ge=1)
    rating: Decimal = Field(Decimal("0.00"), ge=0, le=5)
    image_url: Optional[str] = Field(None, max_length=500)
    is_open: bool = True
    owner_id: Optional[int] = None


class RestaurantUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    description: Optional[str] = None
    cuisine: Optional[str] = Field(None, max_length=50)
    city: Optional[str] = Field(None, max_length=50)
    district: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=20)
    delivery_fee: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    min_order_amount: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    delivery_time: Optional[int] = Field(None, ge=1)
    rating: Optional[Decimal] = Field(None, ge=0, le=5)
    image_url: Optional[str] = Field(None, max_length=500)
    is_open: Optional[bool] = None
    owner_id: Optional[int] = None


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None


class CategoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    restaurant_id: int


class MenuItemCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    description: Optional[str] = None
    price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    category_id: int
    image_url: Optional[str] = Field(None, max_length=500)
    is_available: bool = True


class MenuEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    price: Money
    image_url: Optional[str] = None
    is_available: bool


class RefBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str


class MenuItemDetail(MenuEntry):
    restaurant: RefBrief
    category: RefBrief


class MenuCategory(BaseModel):
    id: int
    name: str
    items: List[MenuEntry]


class RestaurantMenu(BaseModel):
    restaurant: RefBrief
    categories: List[MenuCategory]


class SearchResponse(BaseModel):
    restaurants: Optional[List[RestaurantResponse]] = None
    menu_items: Optional[List[MenuItemDetail]] = None


# =============================================================================
# CART
# =============================================================================

class AddCartItemRequest(BaseModel):
    menu_item_id: int
    quantity: int = Field(1, ge=1, le=99)


class UpdateCartItemRequest(BaseModel):
    # Range checked in CartService so a negative value is a 400, not a 422
    quantity: int


class CartRestaurant(BaseModel):
    id: int
    name: str
    delivery_fee: Money
    min_order_amount: Money
    is_open: bool


class CartLine(BaseModel):
    id: int
    menu_item_id: int
    restaurant_id: int
    name: str
    category: Optional[str] = None
    unit_price: Money
    quantity: int
    line_total: Money


class CartResponse(BaseModel):
    restaurant: Optional[CartRestaurant] = None
    items: List[CartLine] = []
    items_count: int = 0
    subtotal: Money = Decimal("0.00")
    delivery_fee: Money = Decimal("0.00")
    total: Money = Decimal("0.00")


class CartLineResponse(BaseModel):
    message: str
    item: Optional[CartLine] = None


# =============================================================================
# ORDERS
# =============================================================================

class OrderCreateRequest(BaseModel):
    delivery_address: Optional[str] = Field(None, min_length=1, max_length=255)
    city: Optional[str] = Field(None, max_length=50)
    note: Optional[str] = Field(None, max_length=500)


class CheckoutFormResponse(BaseModel):
    order_id: int
    total_amount: Money
    checkout_form_content: str
    payment_page_url: Optional[str] = None


class OrderItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    unit_price: Money
    quantity: int
    line_total: Money


class OrderRestaurant(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    phone: Optional[str] = None
    address: Optional[str] = None


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    restaurant: OrderRestaurant
    items: List[OrderItemResponse]
    status: OrderStatus
    delivery_fee: Money
    total_amount: Money
    delivery_address: str
    city: Optional[str] = None
    note: Optional[str] = None
    payment_transaction_id: Optional[str] = None
    delivered_at: Optional[datetime] = None
    created_at: datetime


class OrderListResponse(BaseModel):
    orders: List[OrderResponse]
    pagination: Pagination


class OrderStatusUpdateRequest(BaseModel):
    status: OrderStatus


class OrderStatusResponse(BaseModel):
    message: str
    order_id: int
    status: OrderStatus
    delivered_at: Optional[datetime] = None
