"""Account and session endpoints under ``/v1/auth``.

Access tokens travel in the response body; refresh tokens only ever live
in an HttpOnly cookie scoped to this router's path.
"""

import contextlib
from collections.abc import Callable
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response, status

from src.auth.dependencies import ClientInfo, CurrentUser, RefreshTokenCookie
from src.auth.models import User
from src.auth.schemas import (
    ChangePasswordRequest,
    LoginRequest,
    MessageResponse,
    SignupRequest,
    SignupResponse,
    TokenResponse,
    UserResponse,
)
from src.auth.service import AuthError, AuthService, InvalidTokenError
from src.config.settings import get_settings


router = APIRouter(prefix="/v1/auth", tags=["auth"])

_auth_service_getter: Callable[[], AuthService] | None = None


def set_auth_service_getter(getter: Callable[[], AuthService]) -> None:
    global _auth_service_getter  # noqa: PLW0603
    _auth_service_getter = getter


def get_auth_service() -> AuthService:
    if _auth_service_getter is None:
        raise RuntimeError("AuthService getter not set")
    return _auth_service_getter()


AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]


AUTH_ERROR_STATUS = {
    "invalid_credentials": status.HTTP_401_UNAUTHORIZED,
    "invalid_token": status.HTTP_401_UNAUTHORIZED,
    "user_not_found": status.HTTP_404_NOT_FOUND,
    "user_exists": status.HTTP_409_CONFLICT,
    "too_many_attempts": status.HTTP_429_TOO_MANY_REQUESTS,
}


def handle_auth_error(error: AuthError) -> HTTPException:
    return HTTPException(
        status_code=AUTH_ERROR_STATUS.get(error.code, status.HTTP_400_BAD_REQUEST),
        detail=error.message,
    )


def _set_refresh_cookie(response: Response, refresh_token: str) -> None:
    settings = get_settings()
    response.set_cookie(
        key=settings.auth_cookie_name,
        value=refresh_token,
        max_age=settings.auth_refresh_token_expire_days * 86400,
        path=settings.auth_cookie_path,
        secure=settings.auth_cookie_secure,
        httponly=settings.auth_cookie_httponly,
        samesite=settings.auth_cookie_samesite,
    )


def _clear_refresh_cookie(response: Response) -> None:
    settings = get_settings()
    response.delete_cookie(key=settings.auth_cookie_name, path=settings.auth_cookie_path)


async def _open_session(
    auth_service: AuthService,
    user: User,
    response: Response,
    client_info: tuple[str | None, str | None],
) -> TokenResponse:
    """Issue both tokens; the refresh one goes into the cookie."""
    user_agent, ip_address = client_info
    access_token, refresh_token = await auth_service.create_tokens(
        user, user_agent, ip_address
    )
    _set_refresh_cookie(response, refresh_token)
    return TokenResponse(
        access_token=access_token,
        expires_in=get_settings().auth_access_token_expire_minutes * 60,
    )


@router.post(
    "/signup",
    response_model=SignupResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"description": "Email already registered"}},
)
async def signup(
    data: SignupRequest,
    response: Response,
    auth_service: AuthServiceDep,
    client_info: ClientInfo,
) -> SignupResponse:
    """Create a learner account and log it in."""
    try:
        user = await auth_service.register_user(data)
    except AuthError as e:
        raise handle_auth_error(e) from e

    tokens = await _open_session(auth_service, user, response, client_info)
    return SignupResponse(
        user=auth_service.to_response(user),
        access_token=tokens.access_token,
        expires_in=tokens.expires_in,
    )


@router.post(
    "/login",
    response_model=TokenResponse,
    responses={
        401: {"description": "Invalid credentials"},
        429: {"description": "Too many failed attempts"},
    },
)
async def login(
    data: LoginRequest,
    response: Response,
    auth_service: AuthServiceDep,
    client_info: ClientInfo,
) -> TokenResponse:
    try:
        user = await auth_service.authenticate_user(data.email, data.password)
    except AuthError as e:
        raise handle_auth_error(e) from e
    return await _open_session(auth_service, user, response, client_info)


@router.post("/refresh", response_model=TokenResponse)
async def refresh(
    response: Response,
    auth_service: AuthServiceDep,
    client_info: ClientInfo,
    refresh_token: RefreshTokenCookie,
) -> TokenResponse:
    """Exchange the cookie for a new access token, rotating the cookie."""
    if not refresh_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Refresh token missing",
        )

    user_agent, ip_address = client_info
    try:
        access_token, rotated = await auth_service.refresh_tokens(
            refresh_token, user_agent, ip_address
        )
    except AuthError as e:
        _clear_refresh_cookie(response)
        raise handle_auth_error(e) from e

    _set_refresh_cookie(response, rotated)
    return TokenResponse(
        access_token=access_token,
        expires_in=get_settings().auth_access_token_expire_minutes * 60,
    )


@router.post("/logout", response_model=MessageResponse)
async def logout(
    response: Response,
    auth_service: AuthServiceDep,
    refresh_token: RefreshTokenCookie,
) -> MessageResponse:
    # Logging out with a stale cookie still clears it
    if refresh_token:
        with contextlib.suppress(InvalidTokenError):
            await auth_service.revoke_token(refresh_token)
    _clear_refresh_cookie(response)
    return MessageResponse(message="Logged out")


@router.get("/me", response_model=UserResponse)
async def get_me(caller: CurrentUser, auth_service: AuthServiceDep) -> UserResponse:
    user = await auth_service.get_user_by_id(caller.id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="User not found"
        )
    return auth_service.to_response(user)


@router.put("/me/password", response_model=MessageResponse)
async def change_password(
    data: ChangePasswordRequest,
    caller: CurrentUser,
    auth_service: AuthServiceDep,
) -> MessageResponse:
    try:
        await auth_service.change_password(
            user_id=caller.id,
            current_password=data.current_password,
            new_password=data.new_password,
        )
    except AuthError as e:
        raise handle_auth_error(e) from e
    return MessageResponse(message="Password changed")
