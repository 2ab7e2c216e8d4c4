"""Password hashing and JWT handling.

Passwords are hashed with Argon2id. Access and refresh tokens are HS256
JWTs distinguished by a ``type`` claim, so one can never be replayed as
the other.
"""

from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import uuid4

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from jose import JWTError, jwt

from src.config.settings import get_settings


ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

# OWASP baseline parameters for Argon2id
_password_hasher = PasswordHasher(
    time_cost=2,
    memory_cost=19456,
    parallelism=1,
    hash_len=32,
    salt_len=16,
)


def hash_password(password: str) -> str:
    """Hash a password; the result embeds salt and parameters.

    Example:
        >>> hash_password("password123").startswith("$argon2id$")
        True
    """
    return _password_hasher.hash(password)


def verify_password(password: str, password_hash: str) -> tuple[bool, str | None]:
    """Verify a password against its hash.

    Returns:
        ``(is_valid, new_hash)``. ``new_hash`` is set when the stored hash
        was produced with outdated parameters and should be replaced.
    """
    try:
        _password_hasher.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False, None

    if _password_hasher.check_needs_rehash(password_hash):
        return True, hash_password(password)
    return True, None


def _encode(claims: dict[str, Any], token_type: str, lifetime: timedelta) -> str:
    settings = get_settings()
    now = datetime.now(UTC)
    payload = {**claims, "iat": now, "exp": now + lifetime, "type": token_type}
    return jwt.encode(payload, settings.auth_secret_key, algorithm=settings.auth_algorithm)


def _decode(token: str, token_type: str) -> dict[str, Any]:
    settings = get_settings()
    payload = jwt.decode(
        token,
        settings.auth_secret_key,
        algorithms=[settings.auth_algorithm],
    )
    if payload.get("type") != token_type:
        msg = f"Invalid token type: expected '{token_type}'"
        raise JWTError(msg)
    if "sub" not in payload:
        msg = "Token missing sub claim"
        raise JWTError(msg)
    return payload


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """Create a short-lived access token.

    Args:
        data: Claims, typically ``{"sub": user_id, "email": ..., "role": ...}``
        expires_delta: Lifetime override (default from settings)
    """
    lifetime = expires_delta or timedelta(
        minutes=get_settings().auth_access_token_expire_minutes
    )
    return _encode(data, ACCESS_TOKEN_TYPE, lifetime)


def create_refresh_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> tuple[str, str]:
    """Create a refresh token carrying a unique ``jti``.

    Returns:
        ``(token, jti)``; the jti is stored server-side for revocation.
    """
    jti = str(uuid4())
    lifetime = expires_delta or timedelta(
        days=get_settings().auth_refresh_token_expire_days
    )
    return _encode({**data, "jti": jti}, REFRESH_TOKEN_TYPE, lifetime), jti


def decode_access_token(token: str) -> dict[str, Any]:
    """Validate signature, expiry and type of an access token.

    Raises:
        JWTError: If the token is invalid, expired, or not an access token.
    """
    return _decode(token, ACCESS_TOKEN_TYPE)


def decode_refresh_token(token: str) -> dict[str, Any]:
    """Validate a refresh token and require its ``jti`` claim.

    Raises:
        JWTError: If the token is invalid, expired, or not a refresh token.
    """
    payload = _decode(token, REFRESH_TOKEN_TYPE)
    if "jti" not in payload:
        msg = "Refresh token missing jti claim"
        raise JWTError(msg)
    return payload
