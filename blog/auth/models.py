"""Database models for users.

Email and username are unique; both have a secondary index so logins and
availability checks do not scan the table.
"""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4


USER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.users (
    user_id UUID PRIMARY KEY,
    username TEXT,
    email TEXT,
    password_hash TEXT,
    avatar_url TEXT,
    avatar_storage_path TEXT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

USER_EMAIL_INDEX_CQL = """
CREATE INDEX IF NOT EXISTS users_email_idx ON {keyspace}.users (email)
"""

USER_USERNAME_INDEX_CQL = """
CREATE INDEX IF NOT EXISTS users_username_idx ON {keyspace}.users (username)
"""

AUTH_TABLES_CQL = [
    USER_TABLE_CQL,
    USER_EMAIL_INDEX_CQL,
    USER_USERNAME_INDEX_CQL,
]


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware (Cassandra returns naive datetimes)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


class User:
    """A registered author or reader.

    Attributes:
        id: Unique identifier (UUID)
        username: Unique public handle, 3-30 characters
        email: Unique email address, stored lowercased
        password_hash: Argon2id hashed password
        avatar_url: Public URL of the avatar image, if any
        avatar_storage_path: Where the avatar lives in storage, for cleanup
        created_at: Account creation timestamp
        updated_at: Last update timestamp
    """

    def __init__(
        self,
        id: UUID | None = None,
        username: str = "",
        email: str = "",
        password_hash: str = "",
        avatar_url: str | None = None,
        avatar_storage_path: str | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.id = id or uuid4()
        self.username = username.strip()
        self.email = email.lower().strip()
        self.password_hash = password_hash
        self.avatar_url = avatar_url
        self.avatar_storage_path = avatar_storage_path
        self.created_at = ensure_utc_aware(created_at) or datetime.now(UTC)
        self.updated_at = ensure_utc_aware(updated_at)

    @classmethod
    def from_row(cls, row: Any) -> "User":
        """Create User instance from Cassandra row."""
        return cls(
            id=row.user_id,
            username=row.username or "",
            email=row.email or "",
            password_hash=row.password_hash or "",
            avatar_url=row.avatar_url,
            avatar_storage_path=getattr(row, "avatar_storage_path", None),
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def __repr__(self) -> str:
        return f"<User {self.username} ({self.id})>"
