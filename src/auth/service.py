"""Authentication service layer.

Business logic for:
- Signup with race-free email uniqueness
- Login, with a per-email attempt limit when Redis is available
- Token issue, rotation and revocation
- Password changes and account queries
"""

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from src.auth.models import RefreshToken, User
from src.auth.permissions import UserRole
from src.auth.schemas import SignupRequest, UserResponse
from src.auth.security import (
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    hash_password,
    verify_password,
)
from src.config.settings import get_settings


if TYPE_CHECKING:
    import redis.asyncio as redis
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class AuthError(Exception):
    """Base authentication error."""

    def __init__(self, message: str, code: str = "auth_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class InvalidCredentialsError(AuthError):
    """Invalid email or password."""

    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message, "invalid_credentials")


class UserExistsError(AuthError):
    """Email already registered."""

    def __init__(self, message: str = "Email already registered"):
        super().__init__(message, "user_exists")
        self.field = "email"


class UserNotFoundError(AuthError):
    """User not found."""

    def __init__(self, message: str = "User not found"):
        super().__init__(message, "user_not_found")


class InvalidTokenError(AuthError):
    """Invalid, expired or revoked token."""

    def __init__(self, message: str = "Invalid or expired token"):
        super().__init__(message, "invalid_token")


class TooManyAttemptsError(AuthError):
    """Login attempt limit reached for this email."""

    def __init__(self, message: str = "Too many login attempts, try again later"):
        super().__init__(message, "too_many_attempts")


# ==============================================================================
# Auth Service
# ==============================================================================


class AuthService:
    """Account management and token operations."""

    LOGIN_WINDOW_SECONDS = 60

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        redis: "redis.Redis | None" = None,
    ):
        """Initialize with Cassandra session.

        Args:
            session: Cassandra session with ``aexecute`` support
            keyspace: Keyspace name for queries
            redis: Optional Redis client for login rate limiting
        """
        self.session = session
        self.keyspace = keyspace
        self.redis = redis
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements."""
        self._get_user_by_id = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.users WHERE id = ?"
        )
        self._list_users = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.users"
        )
        self._insert_user = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.users
            (id, email, name, password_hash, role, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """)
        self._update_user_password = self.session.prepare(f"""
            UPDATE {self.keyspace}.users
            SET password_hash = ?, updated_at = ?
            WHERE id = ?
        """)

        # Email reservation (lightweight transaction)
        self._reserve_email = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.users_by_email (email, user_id)
            VALUES (?, ?)
            IF NOT EXISTS
        """)
        self._get_user_id_by_email = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.users_by_email WHERE email = ?"
        )

        # Refresh tokens
        self._get_token_by_jti = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.refresh_tokens WHERE jti = ?"
        )
        self._insert_token = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.refresh_tokens
            (jti, user_id, expires_at, revoked, revoked_at, created_at,
             user_agent, ip_address)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """)
        self._revoke_token = self.session.prepare(f"""
            UPDATE {self.keyspace}.refresh_tokens
            SET revoked = ?, revoked_at = ?
            WHERE jti = ?
        """)

    # ==========================================================================
    # User Operations
    # ==========================================================================

    async def get_user_by_id(self, user_id: UUID) -> User | None:
        result = await self.session.aexecute(self._get_user_by_id, [user_id])
        row = result.one()
        return User.from_row(row) if row else None

    async def get_user_by_email(self, email: str) -> User | None:
        result = await self.session.aexecute(
            self._get_user_id_by_email, [email.lower().strip()]
        )
        row = result.one()
        return await self.get_user_by_id(row.user_id) if row else None

    async def list_users(self) -> list[User]:
        """All accounts, newest first."""
        rows = await self.session.aexecute(self._list_users)
        users = [User.from_row(row) for row in rows]
        return sorted(users, key=lambda u: u.created_at, reverse=True)

    async def is_email_available(self, email: str) -> bool:
        return await self.get_user_by_email(email) is None

    async def register_user(
        self,
        data: SignupRequest,
        role: UserRole = UserRole.LEARNER,
    ) -> User:
        """Create an account.

        The email is reserved first with ``IF NOT EXISTS``; only the
        request that wins the reservation writes the user row.

        Raises:
            UserExistsError: If the email is already registered
        """
        user = User(
            email=data.email,
            name=data.name,
            password_hash=hash_password(data.password),
            role=role.value,
        )

        result = await self.session.aexecute(self._reserve_email, [user.email, user.id])
        if not result.was_applied:
            logger.info("signup_rejected_email_taken", email=user.email)
            raise UserExistsError

        await self.session.aexecute(
            self._insert_user,
            [
                user.id,
                user.email,
                user.name,
                user.password_hash,
                user.role,
                user.created_at,
                user.updated_at,
            ],
        )
        logger.info("user_registered", user_id=str(user.id), role=user.role)
        return user

    async def authenticate_user(self, email: str, password: str) -> User:
        """Check credentials, rehashing the password if parameters changed.

        Raises:
            TooManyAttemptsError: If the attempt limit was reached
            InvalidCredentialsError: If email or password is wrong
        """
        await self.check_login_rate_limit(email)

        user = await self.get_user_by_email(email)
        if not user:
            await self.record_failed_login(email)
            raise InvalidCredentialsError

        is_valid, new_hash = verify_password(password, user.password_hash)
        if not is_valid:
            await self.record_failed_login(email)
            logger.info("login_failed", user_id=str(user.id))
            raise InvalidCredentialsError

        if new_hash:
            user.password_hash = new_hash
            user.updated_at = datetime.now(UTC)
            await self.session.aexecute(
                self._update_user_password,
                [new_hash, user.updated_at, user.id],
            )

        await self.reset_login_attempts(email)
        return user

    async def change_password(
        self,
        user_id: UUID,
        current_password: str,
        new_password: str,
    ) -> None:
        """Change a password after verifying the current one.

        Raises:
            UserNotFoundError: If user doesn't exist
            InvalidCredentialsError: If current password is wrong
        """
        user = await self.get_user_by_id(user_id)
        if not user:
            raise UserNotFoundError

        is_valid, _ = verify_password(current_password, user.password_hash)
        if not is_valid:
            raise InvalidCredentialsError("Current password is incorrect")

        await self.session.aexecute(
            self._update_user_password,
            [hash_password(new_password), datetime.now(UTC), user.id],
        )
        logger.info("password_changed", user_id=str(user.id))

    # ==========================================================================
    # Login Rate Limiting
    # ==========================================================================

    @staticmethod
    def _login_key(email: str) -> str:
        return f"auth:login:{email.lower().strip()}"

    async def check_login_rate_limit(self, email: str) -> None:
        """Raise if the email exhausted its attempts in the current window."""
        if not self.redis:
            return

        attempts = await self.redis.get(self._login_key(email))
        limit = get_settings().auth_login_rate_limit_per_minute
        if attempts and int(attempts) >= limit:
            logger.warning("login_rate_limited", email=email)
            raise TooManyAttemptsError

    async def record_failed_login(self, email: str) -> None:
        if not self.redis:
            return

        key = self._login_key(email)
        pipe = self.redis.pipeline()
        pipe.incr(key)
        pipe.expire(key, self.LOGIN_WINDOW_SECONDS)
        await pipe.execute()

    async def reset_login_attempts(self, email: str) -> None:
        if self.redis:
            await self.redis.delete(self._login_key(email))

    # ==========================================================================
    # Token Operations
    # ==========================================================================

    async def create_tokens(
        self,
        user: User,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> tuple[str, str]:
        """Issue an access token and a stored refresh token.

        Returns:
            Tuple of (access_token, refresh_token)
        """
        settings = get_settings()
        claims = {"sub": str(user.id), "email": user.email, "role": user.role}

        access_token = create_access_token(claims)
        refresh_token, jti = create_refresh_token(claims)

        now = datetime.now(UTC)
        await self.session.aexecute(
            self._insert_token,
            [
                UUID(jti),
                user.id,
                now + timedelta(days=settings.auth_refresh_token_expire_days),
                False,
                None,
                now,
                user_agent,
                ip_address,
            ],
        )
        return access_token, refresh_token

    async def _load_valid_token(self, refresh_token: str) -> RefreshToken:
        try:
            payload = decode_refresh_token(refresh_token)
            jti = UUID(payload["jti"])
        except Exception as e:
            raise InvalidTokenError from e

        result = await self.session.aexecute(self._get_token_by_jti, [jti])
        row = result.one()
        if not row:
            raise InvalidTokenError

        stored = RefreshToken.from_row(row)
        if not stored.is_valid():
            raise InvalidTokenError
        return stored

    async def refresh_tokens(
        self,
        refresh_token: str,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> tuple[str, str]:
        """Rotate a refresh token: revoke it and issue a new pair.

        Raises:
            InvalidTokenError: If the token is invalid, revoked, or its
                user no longer exists
        """
        stored = await self._load_valid_token(refresh_token)
        await self.session.aexecute(
            self._revoke_token, [True, datetime.now(UTC), stored.jti]
        )

        user = await self.get_user_by_id(stored.user_id)
        if not user:
            raise InvalidTokenError

        return await self.create_tokens(user, user_agent, ip_address)

    async def revoke_token(self, refresh_token: str) -> None:
        """Revoke a refresh token (logout).

        Raises:
            InvalidTokenError: If token is invalid
        """
        stored = await self._load_valid_token(refresh_token)
        await self.session.aexecute(
            self._revoke_token, [True, datetime.now(UTC), stored.jti]
        )
        logger.info("refresh_token_revoked", user_id=str(stored.user_id))

    def to_response(self, user: User) -> UserResponse:
        return UserResponse(
            id=user.id,
            name=user.name,
            email=user.email,
            role=UserRole(user.role),
            created_at=user.created_at,
            updated_at=user.updated_at,
        )
