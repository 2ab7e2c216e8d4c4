"""Database models for authentication.

Cassandra table definitions for:
- users: account records, keyed by id
- users_by_email: email reservation, written with IF NOT EXISTS so two
  concurrent signups cannot claim the same address
- refresh_tokens: issued refresh tokens, for rotation and revocation
"""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from src.auth.permissions import UserRole
from src.utils.identifiers import ensure_utc_aware


USER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.users (
    id UUID PRIMARY KEY,
    email TEXT,
    name TEXT,
    password_hash TEXT,
    role TEXT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

USER_BY_EMAIL_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.users_by_email (
    email TEXT PRIMARY KEY,
    user_id UUID
)
"""

REFRESH_TOKEN_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.refresh_tokens (
    jti UUID PRIMARY KEY,
    user_id UUID,
    expires_at TIMESTAMP,
    revoked BOOLEAN,
    revoked_at TIMESTAMP,
    created_at TIMESTAMP,
    user_agent TEXT,
    ip_address TEXT
)
"""

AUTH_TABLES_CQL = [
    USER_TABLE_CQL,
    USER_BY_EMAIL_TABLE_CQL,
    REFRESH_TOKEN_TABLE_CQL,
]
class User:
    """An account. ``email`` is stored lower-cased and stripped."""

    def __init__(
        self,
        email: str,
        name: str,
        password_hash: str,
        role: str = UserRole.LEARNER.value,
        id: UUID | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.id = id or uuid4()
        self.email = email.strip().lower()
        self.name = name
        self.password_hash = password_hash
        self.role = role
        self.created_at = ensure_utc_aware(created_at) or datetime.now(UTC)
        self.updated_at = ensure_utc_aware(updated_at)

    @classmethod
    def from_row(cls, row: Any) -> "User":
        return cls(
            id=row.id,
            email=row.email,
            name=row.name,
            password_hash=row.password_hash,
            role=row.role,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def __repr__(self) -> str:
        return f"<User {self.email} role={self.role}>"


class RefreshToken:
    """Issued refresh token; ``jti`` is the token's own id claim."""

    def __init__(
        self,
        jti: UUID,
        user_id: UUID,
        expires_at: datetime,
        revoked: bool = False,
        revoked_at: datetime | None = None,
        created_at: datetime | None = None,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ):
        self.jti = jti
        self.user_id = user_id
        self.expires_at = ensure_utc_aware(expires_at)
        self.revoked = revoked
        self.revoked_at = ensure_utc_aware(revoked_at)
        self.created_at = ensure_utc_aware(created_at) or datetime.now(UTC)
        self.user_agent = user_agent
        self.ip_address = ip_address

    @classmethod
    def from_row(cls, row: Any) -> "RefreshToken":
        return cls(
            jti=row.jti,
            user_id=row.user_id,
            expires_at=row.expires_at,
            revoked=bool(row.revoked),
            revoked_at=row.revoked_at,
            created_at=row.created_at,
            user_agent=row.user_agent,
            ip_address=row.ip_address,
        )

    def is_valid(self) -> bool:
        if self.revoked or self.expires_at is None:
            return False
        return datetime.now(UTC) < self.expires_at

    def __repr__(self) -> str:
        return f"<RefreshToken {self.jti} revoked={self.revoked}>"
