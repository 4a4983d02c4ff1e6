"""Database models for posts.

- posts: one row per post, likes kept as a set of user IDs
- posts_by_author: author's posts newest first, for profiles and the
  unread-reply feed
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from blog.auth.models import ensure_utc_aware


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

POST_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.posts (
    post_id UUID PRIMARY KEY,
    title TEXT,
    content TEXT,
    excerpt TEXT,
    author_id UUID,
    tags SET<TEXT>,
    cover_image_url TEXT,
    cover_image_path TEXT,
    likes SET<UUID>,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

POSTS_BY_AUTHOR_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.posts_by_author (
    author_id UUID,
    created_at TIMESTAMP,
    post_id UUID,
    title TEXT,
    PRIMARY KEY ((author_id), created_at, post_id)
) WITH CLUSTERING ORDER BY (created_at DESC, post_id ASC)
"""

POSTS_TABLES_CQL = [
    POST_TABLE_CQL,
    POSTS_BY_AUTHOR_TABLE_CQL,
]


# ==============================================================================
# Data Classes
# ==============================================================================


@dataclass
class Post:
    """A published post. ``author_id`` never changes after creation."""

    id: UUID
    title: str
    content: str
    excerpt: str
    author_id: UUID
    tags: set[str] = field(default_factory=set)
    cover_image_url: str | None = None
    cover_image_path: str | None = None
    likes: set[UUID] = field(default_factory=set)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row: Any) -> "Post":
        """Create from Cassandra row."""
        return cls(
            id=row.post_id,
            title=row.title or "",
            content=row.content or "",
            excerpt=row.excerpt or "",
            author_id=row.author_id,
            tags=set(row.tags or ()),
            cover_image_url=row.cover_image_url,
            cover_image_path=row.cover_image_path,
            likes=set(row.likes or ()),
            created_at=ensure_utc_aware(row.created_at) or datetime.now(UTC),
            updated_at=ensure_utc_aware(row.updated_at),
        )

    def is_owned_by(self, user_id: UUID) -> bool:
        return self.author_id == user_id


@dataclass
class AuthoredPost:
    """Row of posts_by_author."""

    author_id: UUID
    post_id: UUID
    title: str
    created_at: datetime

    @classmethod
    def from_row(cls, row: Any) -> "AuthoredPost":
        return cls(
            author_id=row.author_id,
            post_id=row.post_id,
            title=row.title or "",
            created_at=ensure_utc_aware(row.created_at) or datetime.now(UTC),
        )


# ==============================================================================
# Factory Functions
# ==============================================================================


def create_post(
    title: str,
    content: str,
    excerpt: str,
    author_id: UUID,
    tags: list[str] | None = None,
    cover_image_url: str | None = None,
    cover_image_path: str | None = None,
) -> Post:
    """Create a new post with no likes."""
    now = datetime.now(UTC)
    return Post(
        id=uuid4(),
        title=title,
        content=content,
        excerpt=excerpt,
        author_id=author_id,
        tags=set(tags or ()),
        cover_image_url=cover_image_url,
        cover_image_path=cover_image_path,
        created_at=now,
        updated_at=now,
    )
