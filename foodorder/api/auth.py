"""
Auth Endpoints

Tokens are delivered as HTTP-only cookies and also returned in the body
for clients that prefer the Authorization header.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Cookie, Depends, Response, status

from foodorder.api.deps import (
    ACCESS_TOKEN_COOKIE,
    REFRESH_TOKEN_COOKIE,
    get_auth_service,
)
from foodorder.core.config import Settings, get_settings
from foodorder.schemas import (
    ErrorResponse,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    RefreshTokenRequest,
    RegisterRequest,
    TokenPair,
    UserResponse,
)
from foodorder.services import AuthService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


def set_auth_cookies(response: Response, tokens: TokenPair, settings: Settings) -> None:
    common = {"httponly": True, "samesite": "strict", "secure": settings.is_production}
    response.set_cookie(
        ACCESS_TOKEN_COOKIE,
        tokens.access_token,
        max_age=settings.access_token_expire_minutes * 60,
        **common,
    )
    response.set_cookie(
        REFRESH_TOKEN_COOKIE,
        tokens.refresh_token,
        max_age=settings.refresh_token_ttl,
        **common,
    )


def clear_auth_cookies(response: Response, settings: Settings) -> None:
    for name in (ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE):
        response.delete_cookie(name, httponly=True, samesite="strict", secure=settings.is_production)


@router.post(
    "/register",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}},
    summary="Create an account",
)
async def register(
    data: RegisterRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> UserResponse:
    user = await auth_service.register(
        email=data.email,
        password=data.password,
        name=data.name,
        address=data.address,
        role=data.role,
    )
    return UserResponse.model_validate(user)


@router.post(
    "/login",
    response_model=LoginResponse,
    responses={401: {"model": ErrorResponse}},
    summary="Log in and receive token cookies",
)
async def login(
    data: LoginRequest,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
) -> LoginResponse:
    user, tokens = await auth_service.login(data.email, data.password)
    set_auth_cookies(response, tokens, settings)
    return LoginResponse(user=UserResponse.model_validate(user))


@router.post(
    "/refresh",
    response_model=TokenPair,
    responses={401: {"model": ErrorResponse}},
    summary="Rotate the refresh token",
)
async def refresh(
    response: Response,
    data: Optional[RefreshTokenRequest] = None,
    refresh_cookie: Optional[str] = Cookie(None, alias=REFRESH_TOKEN_COOKIE),
    auth_service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
) -> TokenPair:
    """The refresh token is read from the cookie, or from the body when no cookie is sent."""
    token = refresh_cookie or (data.refresh_token if data else None)
    _, tokens = await auth_service.refresh(token)
    set_auth_cookies(response, tokens, settings)
    return tokens


@router.post("/logout", response_model=MessageResponse, summary="Log out")
async def logout(
    response: Response,
    refresh_cookie: Optional[str] = Cookie(None, alias=REFRESH_TOKEN_COOKIE),
    auth_service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
) -> MessageResponse:
    await auth_service.logout(refresh_cookie)
    clear_auth_cookies(response, settings)
    return MessageResponse(message="Logged out")
