"""Shared fixtures.

Services run against ``FakeCassandraSession``, an in-memory stand-in for a
cassandra-asyncio-driver session that understands the handful of CQL
statement shapes the services prepare.
"""

import os
import re
import tempfile
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from types import SimpleNamespace
from typing import Any


os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_FORMAT", "json")
os.environ.setdefault("LOG_LEVEL", "INFO")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="blog-test-logs-"))
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault(
    "AUTH_SECRET_KEY", "test-secret-key-for-signing-tokens-32-chars"
)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from blog.auth.models import User  # noqa: E402
from blog.auth.schemas import RegisterRequest  # noqa: E402
from blog.auth.service import AuthService  # noqa: E402
from blog.comments.service import CommentService  # noqa: E402
from blog.config.settings import Settings  # noqa: E402
from blog.notifications.service import NotificationService  # noqa: E402
from blog.posts.schemas import PostResponse  # noqa: E402
from blog.posts.service import PostService  # noqa: E402
from blog.storage.service import ImageUpload, LocalDiskStorage  # noqa: E402
from blog.users.service import UserService  # noqa: E402


KEYSPACE = "test_blog"

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 64

POST_BODY = "<p>This body is comfortably longer than twenty characters.</p>"


# ==============================================================================
# In-memory Cassandra session
# ==============================================================================

PRIMARY_KEYS: dict[str, tuple[str, ...]] = {
    "users": ("user_id",),
    "posts": ("post_id",),
    "posts_by_author": ("author_id", "created_at", "post_id"),
    "comments": ("post_id", "created_at", "comment_id"),
    "comments_by_id": ("comment_id",),
}

_INSERT = re.compile(r"^INSERT INTO (\S+) \((.+?)\) VALUES")
_SELECT = re.compile(r"^SELECT .+? FROM (\S+)(?: WHERE (.+?))?$")
_UPDATE = re.compile(r"^UPDATE (\S+) SET (.+?) WHERE (.+)$")
_DELETE = re.compile(r"^DELETE FROM (\S+) WHERE (.+)$")
_ASSIGN = re.compile(r"^(\w+) = (?:(\w+) ([+-]) )?\?$")
_CONDITION = re.compile(r"^(\w+) (=|IN) \?$")


class FakeStatement:
    """A prepared statement: just the normalized query text."""

    def __init__(self, query: str):
        self.query = " ".join(query.split())


class FakeResultSet(list):
    def one(self) -> Any:
        return self[0] if self else None


def _copy(value: Any) -> Any:
    return set(value) if isinstance(value, set) else value


def _table(name: str) -> str:
    return name.split(".")[-1]


class FakeCassandraSession:
    """Dict-backed session supporting prepare/execute/aexecute.

    Reads return ``SimpleNamespace`` rows; empty collections come back as
    None, as they do from Cassandra. Every executed statement is recorded in
    ``executed`` as ``(query, params)``.
    """

    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {
            name: [] for name in PRIMARY_KEYS
        }
        self.executed: list[tuple[str, list[Any]]] = []

    def prepare(self, query: str) -> FakeStatement:
        return FakeStatement(query)

    async def aexecute(self, statement: Any, params: Any = None) -> FakeResultSet:
        return self.execute(statement, params)

    def execute(self, statement: Any, params: Any = None) -> FakeResultSet:
        query = (
            statement.query
            if isinstance(statement, FakeStatement)
            else " ".join(str(statement).split())
        )
        params = list(params or [])
        self.executed.append((query, params))

        verb = query.split(" ", 1)[0].upper()
        handler = {
            "INSERT": self._insert,
            "SELECT": self._select,
            "UPDATE": self._update,
            "DELETE": self._delete,
        }[verb]
        return handler(query, params)

    # Helpers for tests

    def rows(self, table: str) -> list[dict[str, Any]]:
        return self.tables[table]

    def writes(self) -> list[str]:
        return [
            query for query, _ in self.executed if not query.startswith("SELECT")
        ]

    # Statement handlers

    def _insert(self, query: str, params: list[Any]) -> FakeResultSet:
        match = _INSERT.match(query)
        table = _table(match.group(1))
        columns = [column.strip() for column in match.group(2).split(",")]
        row = {column: _copy(value) for column, value in zip(columns, params)}

        keys = PRIMARY_KEYS[table]
        for existing in self.tables[table]:
            if all(existing.get(key) == row.get(key) for key in keys):
                existing.update(row)
                break
        else:
            self.tables[table].append(row)
        return FakeResultSet()

    def _select(self, query: str, params: list[Any]) -> FakeResultSet:
        query = query.replace(" ALLOW FILTERING", "")
        query = re.sub(r" ORDER BY \w+(?: ASC| DESC)?", "", query)
        limit = None
        if query.endswith(" LIMIT ?"):
            query = query[: -len(" LIMIT ?")]
            limit = params.pop()

        match = _SELECT.match(query)
        table = _table(match.group(1))
        conditions = self._conditions(match.group(2), params)

        rows = [row for row in self.tables[table] if self._matches(row, conditions)]
        if limit is not None:
            rows = rows[:limit]
        return FakeResultSet(
            SimpleNamespace(
                **{
                    key: (None if value == set() else _copy(value))
                    for key, value in row.items()
                }
            )
            for row in rows
        )

    def _update(self, query: str, params: list[Any]) -> FakeResultSet:
        match = _UPDATE.match(query)
        table = _table(match.group(1))
        assignments = [
            _ASSIGN.match(part.strip()).groups()
            for part in match.group(2).split(",")
        ]
        set_params = params[: len(assignments)]
        conditions = self._conditions(match.group(3), params[len(assignments) :])

        targets = [
            row for row in self.tables[table] if self._matches(row, conditions)
        ]
        if not targets:
            new_row = {column: value for column, _, value in conditions}
            self.tables[table].append(new_row)
            targets = [new_row]

        for row in targets:
            for (column, _, operator), value in zip(assignments, set_params):
                if operator == "+":
                    row[column] = set(row.get(column) or ()) | set(value)
                elif operator == "-":
                    row[column] = set(row.get(column) or ()) - set(value)
                else:
                    row[column] = _copy(value)
        return FakeResultSet()

    def _delete(self, query: str, params: list[Any]) -> FakeResultSet:
        match = _DELETE.match(query)
        table = _table(match.group(1))
        conditions = self._conditions(match.group(2), params)
        self.tables[table] = [
            row for row in self.tables[table] if not self._matches(row, conditions)
        ]
        return FakeResultSet()

    @staticmethod
    def _conditions(
        clause: str | None, params: list[Any]
    ) -> list[tuple[str, str, Any]]:
        if not clause:
            return []
        parts = [
            _CONDITION.match(part.strip()).groups() for part in clause.split(" AND ")
        ]
        return [
            (column, operator, value)
            for (column, operator), value in zip(parts, params)
        ]

    @staticmethod
    def _matches(row: dict[str, Any], conditions: list[tuple[str, str, Any]]) -> bool:
        for column, operator, value in conditions:
            if operator == "IN":
                if row.get(column) not in value:
                    return False
            elif row.get(column) != value:
                return False
        return True


# ==============================================================================
# Fixtures
# ==============================================================================


@pytest.fixture
def fake_session() -> FakeCassandraSession:
    return FakeCassandraSession()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        upload_dir=str(tmp_path / "uploads"),
        server_url="http://testserver",
        redis_enabled=False,
        firebase_enabled=False,
    )


@pytest.fixture
def storage(settings: Settings) -> LocalDiskStorage:
    return LocalDiskStorage(settings)


@pytest.fixture
def auth_service(fake_session: FakeCassandraSession) -> AuthService:
    return AuthService(session=fake_session, keyspace=KEYSPACE)


@pytest.fixture
def comment_service(
    fake_session: FakeCassandraSession, auth_service: AuthService
) -> CommentService:
    return CommentService(
        session=fake_session, keyspace=KEYSPACE, auth_service=auth_service
    )


@pytest.fixture
def post_service(
    fake_session: FakeCassandraSession,
    auth_service: AuthService,
    comment_service: CommentService,
    storage: LocalDiskStorage,
) -> PostService:
    return PostService(
        session=fake_session,
        keyspace=KEYSPACE,
        auth_service=auth_service,
        comment_service=comment_service,
        storage=storage,
    )


@pytest.fixture
def notification_service(
    fake_session: FakeCassandraSession, auth_service: AuthService
) -> NotificationService:
    return NotificationService(
        session=fake_session, keyspace=KEYSPACE, auth_service=auth_service
    )


@pytest.fixture
def user_service(
    fake_session: FakeCassandraSession,
    auth_service: AuthService,
    post_service: PostService,
    storage: LocalDiskStorage,
) -> UserService:
    return UserService(
        session=fake_session,
        keyspace=KEYSPACE,
        auth_service=auth_service,
        post_service=post_service,
        storage=storage,
    )


@pytest.fixture
def make_user(auth_service: AuthService) -> Callable[..., Awaitable[User]]:
    """Register a user; the password is always ``secret123``."""

    async def _make_user(username: str = "reader") -> User:
        return await auth_service.register_user(
            RegisterRequest(
                username=username,
                email=f"{username}@example.com",
                password="secret123",
            )
        )

    return _make_user


@pytest.fixture
def make_post(post_service: PostService) -> Callable[..., Awaitable[PostResponse]]:
    async def _make_post(
        author: User,
        title: str = "A post worth reading",
        tags: list[str] | None = None,
        cover_image: ImageUpload | None = None,
    ) -> PostResponse:
        return await post_service.create_post(
            author_id=author.id,
            title=title,
            content=POST_BODY,
            tags=tags,
            cover_image=cover_image,
        )

    return _make_post


@pytest.fixture
def app(fake_session: FakeCassandraSession, settings: Settings, storage):
    """Application wired to the in-memory session (lifespan not run)."""
    from blog.main import attach_services, create_app

    application = create_app()
    attach_services(
        application, session=fake_session, settings=settings, storage=storage
    )
    return application


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def auth_headers(auth_service: AuthService) -> Callable[[User], dict[str, str]]:
    def _headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {auth_service.create_token_for_user(user)}"}

    return _headers


@pytest.fixture(autouse=True)
def ticking_clock(monkeypatch):
    """Each new post or comment is stamped one second after the previous one."""

    class TickingDatetime(datetime):
        current = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)

        @classmethod
        def now(cls, tz=None):
            cls.current += timedelta(seconds=1)
            return cls.current

    monkeypatch.setattr("blog.comments.models.datetime", TickingDatetime)
    monkeypatch.setattr("blog.posts.models.datetime", TickingDatetime)
    return TickingDatetime
