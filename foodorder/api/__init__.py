"""
HTTP API routers, mounted under settings.api_prefix.
"""

from fastapi import APIRouter

from foodorder.api import auth, cart, orders, restaurants, users

api_router = APIRouter()
api_router.include_router(auth.router)
api_router.include_router(users.router)
api_router.include_router(restaurants.router)
api_router.include_router(cart.router)
api_router.include_router(orders.router)

__all__ = ["api_router"]
