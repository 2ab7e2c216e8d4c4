"""Tests for AuthService against the in-memory session."""

import asyncio

import pytest

from src.auth.schemas import SignupRequest
from src.auth.service import (
    AuthService,
    InvalidCredentialsError,
    InvalidTokenError,
    TooManyAttemptsError,
    UserExistsError,
)
from src.main import AppState
from tests.conftest import KEYSPACE, FakeCassandraSession


def _signup(email: str = "bia@example.com") -> SignupRequest:
    return SignupRequest(
        name="Bia",
        email=email,
        password="password123",
        passwordConfirmation="password123",
    )


class FakeRedis:
    """Counter store with the calls the login limiter makes."""

    def __init__(self) -> None:
        self.values: dict[str, int] = {}

    async def get(self, key: str) -> str | None:
        value = self.values.get(key)
        return None if value is None else str(value)

    async def delete(self, key: str) -> None:
        self.values.pop(key, None)

    def pipeline(self) -> "FakeRedis._Pipeline":
        return FakeRedis._Pipeline(self)

    class _Pipeline:
        def __init__(self, redis: "FakeRedis") -> None:
            self.redis = redis
            self.ops: list[str] = []

        def incr(self, key: str) -> None:
            self.ops.append(key)

        def expire(self, key: str, seconds: int) -> None:
            pass

        async def execute(self) -> None:
            for key in self.ops:
                self.redis.values[key] = self.redis.values.get(key, 0) + 1


class TestRegistration:
    """Tests for register_user."""

    async def test_email_is_normalized(self, services: AppState) -> None:
        user = await services.auth_service.register_user(_signup("Bia@Example.COM"))
        assert user.email == "bia@example.com"
        assert await services.auth_service.get_user_by_email("BIA@example.com")

    async def test_concurrent_signups_one_wins(
        self, services: AppState, session: FakeCassandraSession
    ) -> None:
        """Two signups racing on one email create exactly one account."""
        results = await asyncio.gather(
            services.auth_service.register_user(_signup()),
            services.auth_service.register_user(_signup()),
            return_exceptions=True,
        )
        errors = [r for r in results if isinstance(r, Exception)]
        assert len(errors) == 1
        assert isinstance(errors[0], UserExistsError)
        assert len(session.rows("users")) == 1


class TestTokens:
    """Tests for token rotation and revocation."""

    async def test_rotated_refresh_token_cannot_be_reused(
        self, services: AppState
    ) -> None:
        auth = services.auth_service
        user = await auth.register_user(_signup())
        _, refresh_token = await auth.create_tokens(user)

        await auth.refresh_tokens(refresh_token)
        with pytest.raises(InvalidTokenError):
            await auth.refresh_tokens(refresh_token)

    async def test_garbage_refresh_token(self, services: AppState) -> None:
        with pytest.raises(InvalidTokenError):
            await services.auth_service.revoke_token("garbage")


class TestLoginRateLimit:
    """Tests for the per-email attempt limit."""

    async def test_limit_after_failures(self, session: FakeCassandraSession) -> None:
        auth = AuthService(session=session, keyspace=KEYSPACE, redis=FakeRedis())
        await auth.register_user(_signup())

        for _ in range(10):
            with pytest.raises(InvalidCredentialsError):
                await auth.authenticate_user("bia@example.com", "wrong-password")

        with pytest.raises(TooManyAttemptsError):
            await auth.authenticate_user("bia@example.com", "password123")

    async def test_success_resets_counter(self, session: FakeCassandraSession) -> None:
        redis = FakeRedis()
        auth = AuthService(session=session, keyspace=KEYSPACE, redis=redis)
        await auth.register_user(_signup())

        with pytest.raises(InvalidCredentialsError):
            await auth.authenticate_user("bia@example.com", "wrong-password")
        await auth.authenticate_user("bia@example.com", "password123")
        assert redis.values == {}
