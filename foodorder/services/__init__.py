"""
                        Services Module

Business logic behind the HTTP API. Services receive their repositories
and clients through the constructor; FastAPI dependencies build them per
request.

Services:
    - auth: Registration, login and token rotation
    - users: Profile read/update
    - restaurants: Catalogue browsing, search and admin maintenance
    - cart: Single-restaurant cart
    - orders: Checkout, payment reconciliation and fulfilment
    - cache: In-memory (development) or Redis (production) key-value store
    - payment: Mock (development) or Stripe Checkout (production) gateway
"""

from foodorder.services.auth import AuthService
from foodorder.services.cart import CartService
from foodorder.services.orders import OrderService
from foodorder.services.restaurants import RestaurantService
from foodorder.services.users import UserService

__all__ = [
    "AuthService",
    "CartService",
    "OrderService",
    "RestaurantService",
    "UserService",
]
