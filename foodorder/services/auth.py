"""
Authentication Service

Registration, credential checks and the access/refresh token lifecycle.

Refresh tokens are opaque and live only in the cache as
``refresh_token:{token} -> user_id``. Every refresh deletes the presented
token and issues a new one, so a token can be used at most once.
"""

import logging
from typing import Optional

from foodorder.core.config import Settings
from foodorder.core.security import (
    DUMMY_PASSWORD_HASH,
    create_access_token,
    decode_access_token,
    generate_refresh_token,
    get_password_hash,
    verify_password,
)
from foodorder.exceptions import ConflictError, UnauthorizedError
from foodorder.models import User, UserRole
from foodorder.repositories import UserRepository
from foodorder.schemas import TokenPair
from foodorder.services.cache import BaseCacheService

logger = logging.getLogger(__name__)


def refresh_token_key(token: str) -> str:
    return f"refresh_token:{token}"


class AuthService:
    def __init__(self, user_repo: UserRepository, cache: BaseCacheService, settings: Settings):
        self.user_repo = user_repo
        self.cache = cache
        self.settings = settings

    async def register(
        self,
        email: str,
        password: str,
        name: str,
        address: str,
        role: UserRole = UserRole.CUSTOMER,
    ) -> User:
        """
        Create a user account.

        Raises:
            ConflictError: Email already registered
        """
        email = email.lower()
        if await self.user_repo.get_by_email(email) is not None:
            raise ConflictError("Email is already registered")

        user = User(
            email=email,
            password_hash=get_password_hash(password),
            name=name,
            address=address,
            role=role,
        )
        await self.user_repo.add(user)

        logger.info(f"User #{user.id} registered ({user.role.value})")
        return user

    async def login(self, email: str, password: str) -> tuple[User, TokenPair]:
        """
        Check credentials and issue a token pair.

        Raises:
            UnauthorizedError: Unknown email or wrong password
        """
        user = await self.user_repo.get_by_email(email.lower())

        # Unknown emails still pay for one hash verification
        password_ok = verify_password(
            password,
            user.password_hash if user is not None else DUMMY_PASSWORD_HASH,
        )
        if user is None or not password_ok:
            logger.info(f"Login failed for {email}")
            raise UnauthorizedError("Invalid email or password")

        tokens = await self._issue_tokens(user)
        logger.info(f"User #{user.id} logged in")
        return user, tokens

    async def refresh(self, refresh_token: Optional[str]) -> tuple[User, TokenPair]:
        """
        Rotate a refresh token.

        Raises:
            UnauthorizedError: Token missing, unknown, expired, or its user
                no longer exists
        """
        if not refresh_token:
            raise UnauthorizedError("Refresh token is missing")

        key = refresh_token_key(refresh_token)
        user_id = await self.cache.pop(key)
        if user_id is None:
            raise UnauthorizedError("Invalid or expired refresh token")

        user = await self.user_repo.get_by_id(int(user_id))
        if user is None:
            raise UnauthorizedError("User no longer exists")

        tokens = await self._issue_tokens(user)
        logger.debug(f"Refresh token rotated for user #{user.id}")
        return user, tokens

    async def logout(self, refresh_token: Optional[str]) -> None:
        if refresh_token:
            await self.cache.delete(refresh_token_key(refresh_token))

    async def authenticate(self, access_token: Optional[str]) -> User:
        """
        Resolve the user behind an access token.

        Raises:
            UnauthorizedError: Missing, invalid or expired token, deleted
                user, or the account's email changed since issue
        """
        if not access_token:
            raise UnauthorizedError("Not authenticated")

        payload = decode_access_token(access_token)
        try:
            user_id = int(payload["sub"])
        except (TypeError, ValueError):
            raise UnauthorizedError("Malformed access token")

        user = await self.user_repo.get_by_id(user_id)
        if user is None or user.email != payload["email"]:
            raise UnauthorizedError("Invalid or expired access token")
        return user

    async def _issue_tokens(self, user: User) -> TokenPair:
        access_token = create_access_token(user.id, user.email, user.role.value)
        refresh_token = generate_refresh_token()
        await self.cache.set(
            refresh_token_key(refresh_token),
            str(user.id),
            ttl=self.settings.refresh_token_ttl,
        )
        return TokenPair(access_token=access_token, refresh_token=refresh_token)
