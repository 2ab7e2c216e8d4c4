"""FastAPI dependencies for authentication.

Provides dependency injection for:
- The authenticated caller, built from the access token claims
- The admin-only check
- Refresh token cookie and client info for the session endpoints
"""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError

from src.auth.permissions import Caller, UserRole
from src.auth.security import decode_access_token
from src.config.settings import get_settings
from src.core.context import set_user_id
from src.core.middleware import get_client_ip


def get_token_from_header(request: Request) -> str | None:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None

    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1]


def get_refresh_token_from_cookie(request: Request) -> str | None:
    return request.cookies.get(get_settings().auth_cookie_name)


async def get_client_info(request: Request) -> tuple[str | None, str | None]:
    """Return ``(user_agent, ip_address)`` for the refresh token audit trail."""
    return request.headers.get("user-agent"), get_client_ip(request)


def _caller_from_token(token: str) -> Caller:
    payload = decode_access_token(token)
    try:
        user_id = UUID(payload["sub"])
    except (KeyError, ValueError) as e:
        raise JWTError("Invalid subject claim") from e

    set_user_id(user_id)
    return Caller(id=user_id, role=payload.get("role", UserRole.LEARNER.value))


async def get_current_user(
    token: Annotated[str | None, Depends(get_token_from_header)],
) -> Caller:
    """Authenticated caller, or 401.

    Raises:
        HTTPException(401): If token is missing, invalid, or expired
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return _caller_from_token(token)
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


async def get_current_user_optional(
    token: Annotated[str | None, Depends(get_token_from_header)],
) -> Caller | None:
    """Caller if a valid token was sent, None otherwise."""
    if not token:
        return None
    try:
        return _caller_from_token(token)
    except JWTError:
        return None


async def require_admin(
    caller: Annotated[Caller, Depends(get_current_user)],
) -> Caller:
    """Authenticated admin, or 403."""
    if not caller.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return caller


# ==============================================================================
# Type Aliases
# ==============================================================================

CurrentUser = Annotated[Caller, Depends(get_current_user)]
OptionalUser = Annotated[Caller | None, Depends(get_current_user_optional)]
AdminUser = Annotated[Caller, Depends(require_admin)]
ClientInfo = Annotated[tuple[str | None, str | None], Depends(get_client_info)]
RefreshTokenCookie = Annotated[str | None, Depends(get_refresh_token_from_cookie)]
