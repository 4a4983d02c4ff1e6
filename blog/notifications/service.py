"""Notification service layer.

A notification is a comment on one of the user's posts, written by someone
else, that the user has not marked as read. Marking happens through the
comment endpoints, so this service only reads.
"""

import math
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from blog.auth.schemas import PublicUserResponse
from blog.comments.models import Comment
from blog.posts.models import AuthoredPost

from .schemas import NotificationPostResponse, NotificationResponse


if TYPE_CHECKING:
    from cassandra.cluster import Session

    from blog.auth.service import AuthService


logger = structlog.get_logger(__name__)


DEFAULT_LIMIT = 20
MAX_LIMIT = 50


def normalize_limit(
    limit: int | str | None,
    default: int = DEFAULT_LIMIT,
    maximum: int = MAX_LIMIT,
) -> int:
    """Clamp a requested feed size to [1, maximum].

    Missing or non-numeric values fall back to ``default``; fractional
    values are truncated.
    """
    try:
        value = math.trunc(float(limit)) if limit is not None else default
    except (TypeError, ValueError, OverflowError):
        value = default
    return max(1, min(value, maximum))


class NotificationService:
    """Derives a user's unread-reply feed."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        auth_service: "AuthService",
        default_limit: int = DEFAULT_LIMIT,
        max_limit: int = MAX_LIMIT,
    ):
        self.session = session
        self.keyspace = keyspace
        self.auth_service = auth_service
        self.default_limit = default_limit
        self.max_limit = max_limit
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for better performance."""
        self._get_posts_by_author = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.posts_by_author WHERE author_id = ?"
        )
        self._get_comments_by_post = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.comments WHERE post_id = ?"
        )

    async def get_unread_reply_notifications(
        self,
        user_id: UUID,
        limit: int | str | None = None,
    ) -> list[NotificationResponse]:
        """Unread comments by others on the user's posts, newest first.

        Args:
            user_id: Post author whose feed is built
            limit: Maximum entries, clamped to [1, max_limit]

        Returns:
            At most ``limit`` notifications; empty if the user has no posts.
        """
        limit = normalize_limit(limit, self.default_limit, self.max_limit)

        rows = await self.session.aexecute(self._get_posts_by_author, [user_id])
        posts = {entry.post_id: entry for entry in map(AuthoredPost.from_row, rows)}
        if not posts:
            return []

        unread: list[Comment] = []
        for post_id in posts:
            rows = await self.session.aexecute(self._get_comments_by_post, [post_id])
            for comment in map(Comment.from_row, rows):
                if comment.author_id != user_id and not comment.is_read_by(user_id):
                    unread.append(comment)

        unread.sort(key=lambda c: c.created_at, reverse=True)
        unread = unread[:limit]

        users = await self.auth_service.get_users_by_ids(c.author_id for c in unread)

        logger.debug(
            "unread_replies_computed",
            posts=len(posts),
            returned=len(unread),
            limit=limit,
        )

        return [
            NotificationResponse(
                id=comment.comment_id,
                content=comment.content,
                created_at=comment.created_at,
                post=NotificationPostResponse(
                    id=comment.post_id, title=posts[comment.post_id].title
                ),
                author=(
                    PublicUserResponse.from_user(users[comment.author_id])
                    if comment.author_id in users
                    else None
                ),
            )
            for comment in unread
        ]
