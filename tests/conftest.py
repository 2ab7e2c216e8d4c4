"""Shared fixtures.

Services run against ``FakeCassandraSession``, an in-memory stand-in that
understands the handful of CQL shapes the services prepare, including
``IF NOT EXISTS`` inserts and ``IF col = ?`` updates. Every ``aexecute``
yields to the event loop before touching the store, so ``asyncio.gather``
interleaves concurrent operations the way separate requests would.
"""

import asyncio
import os
import re
from collections.abc import Iterator
from types import SimpleNamespace
from typing import Any
from uuid import UUID, uuid4


os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("LOG_REQUESTS", "false")
os.environ.setdefault("BUNNY_LIBRARY_ID", "12345")
os.environ.setdefault("BUNNY_CDN_HOSTNAME", "vz-test.b-cdn.net")
os.environ.setdefault("BUNNY_TOKEN_KEY", "test-token-key")
os.environ.setdefault("BUNNY_API_KEY", "test-api-key")
os.environ.setdefault("BUNNY_STORAGE_ZONE", "test-zone")
os.environ.setdefault("BUNNY_STORAGE_API_KEY", "test-storage-key")
os.environ.setdefault("BUNNY_IMAGES_CDN_HOSTNAME", "img-test.b-cdn.net")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from src.auth.permissions import Caller, UserRole  # noqa: E402
from src.auth.security import create_access_token  # noqa: E402
from src.main import AppState, app, app_state, init_services  # noqa: E402


KEYSPACE = "elearning_test"

PRIMARY_KEYS: dict[str, tuple[str, ...]] = {
    "users": ("id",),
    "users_by_email": ("email",),
    "refresh_tokens": ("jti",),
    "courses": ("id",),
    "courses_by_slug": ("slug",),
    "enrollments": ("course_id", "user_id"),
    "enrollments_by_user": ("user_id", "course_id"),
}

_SELECT = re.compile(r"^SELECT \* FROM (?:\w+\.)?(\w+)(?: WHERE (.+))?$", re.I)
_INSERT = re.compile(
    r"^INSERT INTO (?:\w+\.)?(\w+) \(([^)]+)\) VALUES \(([^)]+)\)( IF NOT EXISTS)?$",
    re.I,
)
_UPDATE = re.compile(
    r"^UPDATE (?:\w+\.)?(\w+) SET (.+?) WHERE (.+?)(?: IF (\w+) = \?)?$", re.I
)
_DELETE = re.compile(r"^DELETE FROM (?:\w+\.)?(\w+) WHERE (.+)$", re.I)


def _normalize(query: str) -> str:
    return " ".join(query.split())


def _columns(clause: str, separator: str) -> list[str]:
    return [part.split("=")[0].strip() for part in clause.split(separator)]


def _copy(value: Any) -> Any:
    if isinstance(value, set | frozenset):
        return set(value)
    return value


class FakePreparedStatement:
    def __init__(self, query: str):
        self.query = _normalize(query)


class FakeResult:
    def __init__(self, rows: list[SimpleNamespace] | None = None, applied: bool = True):
        self._rows = rows or []
        self._applied = applied

    def one(self) -> SimpleNamespace | None:
        return self._rows[0] if self._rows else None

    def __iter__(self) -> Iterator[SimpleNamespace]:
        return iter(self._rows)

    @property
    def was_applied(self) -> bool:
        return self._applied


class FakeCassandraSession:
    """In-memory session supporting ``prepare`` and ``aexecute``."""

    def __init__(self) -> None:
        self.tables: dict[str, dict[tuple, dict[str, Any]]] = {
            name: {} for name in PRIMARY_KEYS
        }
        self.executed: list[str] = []
        # Number of upcoming conditional updates to report as not applied
        self.fail_conditional_updates = 0

    def prepare(self, query: str) -> FakePreparedStatement:
        return FakePreparedStatement(query)

    async def aexecute(self, statement: Any, params: list[Any] | None = None) -> FakeResult:
        await asyncio.sleep(0)
        query = (
            statement.query
            if isinstance(statement, FakePreparedStatement)
            else _normalize(statement)
        )
        self.executed.append(query)
        params = list(params or [])

        if match := _SELECT.match(query):
            return self._select(match, params)
        if match := _INSERT.match(query):
            return self._insert(match, params)
        if match := _UPDATE.match(query):
            return self._update(match, params)
        if match := _DELETE.match(query):
            return self._delete(match, params)
        return FakeResult()

    # ------------------------------------------------------------------

    def _key(self, table: str, values: dict[str, Any]) -> tuple:
        return tuple(values[col] for col in PRIMARY_KEYS[table])

    def _select(self, match: re.Match, params: list[Any]) -> FakeResult:
        table, where = match.group(1), match.group(2)
        criteria = dict(zip(_columns(where, " AND "), params, strict=True)) if where else {}
        rows = [
            SimpleNamespace(**{k: _copy(v) for k, v in row.items()})
            for row in self.tables[table].values()
            if all(row.get(col) == value for col, value in criteria.items())
        ]
        return FakeResult(rows)

    def _insert(self, match: re.Match, params: list[Any]) -> FakeResult:
        table = match.group(1)
        columns = [col.strip() for col in match.group(2).split(",")]
        values = {col: _copy(value) for col, value in zip(columns, params, strict=True)}
        key = self._key(table, values)

        if match.group(4) and key in self.tables[table]:
            return FakeResult(applied=False)
        self.tables[table][key] = values
        return FakeResult()

    def _update(self, match: re.Match, params: list[Any]) -> FakeResult:
        table = match.group(1)
        set_cols = _columns(match.group(2), ",")
        where_cols = _columns(match.group(3), " AND ")
        condition_col = match.group(4)

        set_values = dict(zip(set_cols, params[: len(set_cols)], strict=True))
        where_params = params[len(set_cols) : len(set_cols) + len(where_cols)]
        where = dict(zip(where_cols, where_params, strict=True))
        key = self._key(table, where)
        row = self.tables[table].get(key)

        if condition_col:
            expected = params[-1]
            if self.fail_conditional_updates > 0:
                self.fail_conditional_updates -= 1
                return FakeResult(applied=False)
            if row is None or row.get(condition_col) != expected:
                return FakeResult(applied=False)

        if row is None:
            row = dict(where)
            self.tables[table][key] = row
        row.update({col: _copy(value) for col, value in set_values.items()})
        return FakeResult()

    def _delete(self, match: re.Match, params: list[Any]) -> FakeResult:
        table = match.group(1)
        where = dict(zip(_columns(match.group(2), " AND "), params, strict=True))
        self.tables[table].pop(self._key(table, where), None)
        return FakeResult()

    def rows(self, table: str) -> list[dict[str, Any]]:
        return list(self.tables[table].values())


# ==============================================================================
# Fixtures
# ==============================================================================


@pytest.fixture
def session() -> FakeCassandraSession:
    return FakeCassandraSession()


@pytest.fixture
def services(session: FakeCassandraSession) -> Iterator[AppState]:
    """Services wired the same way the app lifespan wires them."""
    init_services(session, KEYSPACE)
    yield app_state
    app_state.cassandra_session = None
    app_state.auth_service = None
    app_state.course_service = None
    app_state.enrollment_service = None
    app_state.playback_access_service = None


@pytest.fixture
def client(services: AppState) -> Iterator[TestClient]:
    """HTTP client; the lifespan is not run, services come from ``services``."""
    test_client = TestClient(app, raise_server_exceptions=False)
    yield test_client
    app.dependency_overrides.clear()


def auth_headers(caller: Caller) -> dict[str, str]:
    token = create_access_token(
        {"sub": str(caller.id), "email": f"{caller.id}@example.com", "role": caller.role}
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def learner() -> Caller:
    return Caller(id=uuid4(), role=UserRole.LEARNER.value)


@pytest.fixture
def other_learner() -> Caller:
    return Caller(id=uuid4(), role=UserRole.LEARNER.value)


@pytest.fixture
def admin() -> Caller:
    return Caller(id=uuid4(), role=UserRole.ADMIN.value)


@pytest.fixture
def learner_headers(learner: Caller) -> dict[str, str]:
    return auth_headers(learner)


@pytest.fixture
def admin_headers(admin: Caller) -> dict[str, str]:
    return auth_headers(admin)


def course_payload(
    lessons: int = 6,
    *,
    modules: int = 2,
    free: tuple[int, ...] = (0,),
    title: str = "Design Patterns in Practice",
    published: bool = True,
    **overrides: Any,
) -> dict[str, Any]:
    """Course body with ``lessons`` video lessons spread over ``modules``.

    Lesson indexes listed in ``free`` are free previews.
    """
    module_items: list[dict[str, Any]] = [
        {"title": f"Module {n + 1}", "lessons": []} for n in range(modules)
    ]
    for index in range(lessons):
        module_items[index % modules]["lessons"].append(
            {
                "title": f"Lesson {index + 1}",
                "contentType": "video",
                "mediaRef": str(uuid4()),
                "durationSeconds": 300,
                "isFree": index in free,
            }
        )
    payload = {
        "title": title,
        "description": "A practical walk through the classic design patterns.",
        "price": "49.90",
        "category": "programming",
        "level": "intermediate",
        "isPublished": published,
        "modules": module_items,
    }
    payload.update(overrides)
    return payload


def lesson_ids(course: dict[str, Any]) -> list[UUID]:
    """Lesson ids of a course response, in curriculum order."""
    return [
        UUID(lesson["id"]) for module in course["modules"] for lesson in module["lessons"]
    ]
