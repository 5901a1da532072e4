"""
User Profile Service
"""

import logging
from typing import Optional

from foodorder.core.security import get_password_hash
from foodorder.models import User
from foodorder.repositories import UserRepository

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, user_repo: UserRepository):
        self.user_repo = user_repo

    async def get_me(self, user: User) -> User:
        return user

    async def update_me(
        self,
        user: User,
        name: Optional[str] = None,
        address: Optional[str] = None,
        password: Optional[str] = None,
    ) -> User:
        """Update the caller's own profile. Fields left as None are unchanged."""
        if name is not None:
            user.name = name
        if address is not None:
            user.address = address
        if password is not None:
            user.password_hash = get_password_hash(password)

        await self.user_repo.save(user)
        logger.info(f"User #{user.id} updated their profile")
        return user
