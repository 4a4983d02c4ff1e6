"""Database models for post comments.

Comments form a tree of depth at most one: top-level comments written by
readers, and replies to them written only by the post's author.

- comments: partitioned by post so a post's whole thread is one read
- comments_by_id: O(1) lookup of a comment's clustering position
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from blog.auth.models import ensure_utc_aware


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

COMMENT_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comments (
    post_id UUID,
    created_at TIMESTAMP,
    comment_id UUID,
    parent_id UUID,
    author_id UUID,
    content TEXT,
    is_owner_reply BOOLEAN,
    read_by SET<UUID>,
    PRIMARY KEY ((post_id), created_at, comment_id)
) WITH CLUSTERING ORDER BY (created_at DESC, comment_id ASC)
"""

COMMENTS_BY_ID_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comments_by_id (
    comment_id UUID PRIMARY KEY,
    post_id UUID,
    created_at TIMESTAMP
)
"""

COMMENTS_TABLES_CQL = [
    COMMENT_TABLE_CQL,
    COMMENTS_BY_ID_TABLE_CQL,
]


# ==============================================================================
# Data Classes
# ==============================================================================


@dataclass
class Comment:
    """A comment or an owner reply on a post.

    ``is_owner_reply`` is fixed when the comment is written; ``read_by`` is
    the only field that changes afterwards.
    """

    comment_id: UUID
    post_id: UUID
    parent_id: UUID | None
    author_id: UUID
    content: str
    is_owner_reply: bool
    read_by: set[UUID] = field(default_factory=set)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_row(cls, row: Any) -> "Comment":
        """Create Comment from Cassandra row."""
        return cls(
            comment_id=row.comment_id,
            post_id=row.post_id,
            parent_id=row.parent_id,
            author_id=row.author_id,
            content=row.content or "",
            is_owner_reply=bool(row.is_owner_reply),
            read_by=set(row.read_by or ()),
            created_at=ensure_utc_aware(row.created_at) or datetime.now(UTC),
        )

    @property
    def is_top_level(self) -> bool:
        return self.parent_id is None

    def is_read_by(self, user_id: UUID) -> bool:
        return user_id in self.read_by


@dataclass
class CommentLookup:
    """Row of comments_by_id: where to find a comment in its partition."""

    comment_id: UUID
    post_id: UUID
    created_at: datetime

    @classmethod
    def from_row(cls, row: Any) -> "CommentLookup":
        return cls(
            comment_id=row.comment_id,
            post_id=row.post_id,
            created_at=row.created_at,
        )


# ==============================================================================
# Factory Functions
# ==============================================================================


def create_comment(
    post_id: UUID,
    author_id: UUID,
    content: str,
    parent_id: UUID | None = None,
    is_owner_reply: bool = False,
) -> Comment:
    """Create a new, unread comment."""
    return Comment(
        comment_id=uuid4(),
        post_id=post_id,
        parent_id=parent_id,
        author_id=author_id,
        content=content,
        is_owner_reply=is_owner_reply,
        read_by=set(),
        created_at=datetime.now(UTC),
    )
