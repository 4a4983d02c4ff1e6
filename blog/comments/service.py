"""Comment service layer.

Business logic for:
- Adding comments and owner replies with the one-level nesting rule
- Building a post's comment tree
- Read receipts on comments, restricted to the post owner
- Visible comment counts (owner replies excluded)
- Rate limiting per author (Redis, optional)
"""

from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from blog.auth.schemas import PublicUserResponse

from .models import Comment, CommentLookup, create_comment
from .schemas import CommentReadResponse, CommentResponse, CommentWithRepliesResponse


if TYPE_CHECKING:
    from cassandra.cluster import Session
    from redis.asyncio import Redis

    from blog.auth.service import AuthService


logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class CommentError(Exception):
    """Base comment error."""

    def __init__(self, message: str, code: str = "comment_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class EmptyContentError(CommentError):
    """Comment content is blank after trimming."""

    def __init__(self, message: str = "Comment content is required"):
        super().__init__(message, "empty_content")


class PostNotFoundError(CommentError):
    """The post being commented on does not exist."""

    def __init__(self, message: str = "Post not found"):
        super().__init__(message, "post_not_found")


class ParentCommentNotFoundError(CommentError):
    """Parent comment missing or attached to another post."""

    def __init__(self, message: str = "Parent comment not found"):
        super().__init__(message, "parent_not_found")


class NestingTooDeepError(CommentError):
    """Attempt to reply to a reply."""

    def __init__(self, message: str = "Replies are only allowed on top-level comments"):
        super().__init__(message, "nesting_too_deep")


class ReplyNotAuthorizedError(CommentError):
    """Someone other than the post owner tried to reply."""

    def __init__(self, message: str = "Only the post owner can reply to comments"):
        super().__init__(message, "not_authorized_to_reply")


class ReadNotAuthorizedError(CommentError):
    """Someone other than the post owner tried to mark a comment as read."""

    def __init__(self, message: str = "Only the post owner can mark comments as read"):
        super().__init__(message, "not_authorized")


class CommentNotFoundError(CommentError):
    """Comment not found on the given post."""

    def __init__(self, message: str = "Comment not found"):
        super().__init__(message, "comment_not_found")


class RateLimitExceededError(CommentError):
    """Rate limit exceeded."""

    def __init__(self, message: str = "Too many comments, try again later"):
        super().__init__(message, "rate_limit_exceeded")


# ==============================================================================
# Tree helpers
# ==============================================================================


def build_comment_tree(
    comments: Iterable[Comment],
) -> list[tuple[Comment, list[Comment]]]:
    """Group comments into (top-level, replies) pairs.

    Top-level comments come newest first and replies oldest first. Replies
    whose parent is not among the top-level comments are dropped.
    """
    top_level: list[Comment] = []
    replies_by_parent: dict[UUID, list[Comment]] = {}

    for comment in comments:
        if comment.is_top_level:
            top_level.append(comment)
        else:
            replies_by_parent.setdefault(comment.parent_id, []).append(comment)

    top_level.sort(key=lambda c: c.created_at, reverse=True)
    return [
        (
            parent,
            sorted(
                replies_by_parent.get(parent.comment_id, []),
                key=lambda c: c.created_at,
            ),
        )
        for parent in top_level
    ]


def count_visible_comments(tree: Sequence[CommentWithRepliesResponse]) -> int:
    """Number of comments in a tree, not counting owner replies."""
    total = 0
    for comment in tree:
        for item in (comment, *comment.replies):
            if not item.is_owner_reply:
                total += 1
    return total


# ==============================================================================
# Comment Service
# ==============================================================================


class CommentService:
    """Comments, owner replies and read receipts."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        auth_service: "AuthService",
        redis: "Redis | None" = None,
        comments_per_minute: int = 10,
        comments_per_hour: int = 100,
    ):
        """Initialize with Cassandra session and optional Redis.

        Args:
            session: Cassandra session with aexecute() support
            keyspace: Keyspace name for queries
            auth_service: Used to resolve author identities
            redis: Client for rate limiting; None disables it
            comments_per_minute: Per-author limit
            comments_per_hour: Per-author limit
        """
        self.session = session
        self.keyspace = keyspace
        self.auth_service = auth_service
        self.redis = redis
        self.comments_per_minute = comments_per_minute
        self.comments_per_hour = comments_per_hour
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient queries."""
        self._get_post_author = self.session.prepare(
            f"SELECT post_id, author_id FROM {self.keyspace}.posts WHERE post_id = ?"
        )

        self._insert_comment = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.comments
            (post_id, created_at, comment_id, parent_id, author_id, content,
             is_owner_reply, read_by)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._insert_comment_lookup = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.comments_by_id
            (comment_id, post_id, created_at)
            VALUES (?, ?, ?)
        """)

        self._get_comment_lookup = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.comments_by_id WHERE comment_id = ?"
        )

        self._get_comment = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.comments
            WHERE post_id = ? AND created_at = ? AND comment_id = ?
        """)

        self._get_comments_by_post = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.comments WHERE post_id = ?"
        )

        self._add_reader = self.session.prepare(f"""
            UPDATE {self.keyspace}.comments SET read_by = read_by + ?
            WHERE post_id = ? AND created_at = ? AND comment_id = ?
        """)

        self._delete_comments_by_post = self.session.prepare(
            f"DELETE FROM {self.keyspace}.comments WHERE post_id = ?"
        )

        self._delete_comment_lookup = self.session.prepare(
            f"DELETE FROM {self.keyspace}.comments_by_id WHERE comment_id = ?"
        )

    # ==========================================================================
    # Rate Limiting (Redis-based)
    # ==========================================================================

    async def check_rate_limit(self, user_id: UUID) -> None:
        """Raise RateLimitExceededError if the author is over a limit."""
        if not self.redis:
            return

        minute_count = await self.redis.get(f"comments:rate:{user_id}:minute")
        if minute_count and int(minute_count) >= self.comments_per_minute:
            raise RateLimitExceededError("Too many comments per minute, slow down")

        hour_count = await self.redis.get(f"comments:rate:{user_id}:hour")
        if hour_count and int(hour_count) >= self.comments_per_hour:
            raise RateLimitExceededError("Hourly comment limit reached")

    async def increment_rate_limit(self, user_id: UUID) -> None:
        """Increment rate limit counters."""
        if not self.redis:
            return

        key_minute = f"comments:rate:{user_id}:minute"
        key_hour = f"comments:rate:{user_id}:hour"

        pipe = self.redis.pipeline()
        pipe.incr(key_minute)
        pipe.expire(key_minute, 60)
        pipe.incr(key_hour)
        pipe.expire(key_hour, 3600)
        await pipe.execute()

    # ==========================================================================
    # Lookups
    # ==========================================================================

    async def get_post_author_id(self, post_id: UUID) -> UUID | None:
        """Author of a post, or None if the post does not exist."""
        rows = await self.session.aexecute(self._get_post_author, [post_id])
        row = rows.one()
        return row.author_id if row else None

    async def find_comment_by_id(self, comment_id: UUID) -> Comment | None:
        """Find a comment by ID through the lookup table."""
        rows = await self.session.aexecute(self._get_comment_lookup, [comment_id])
        lookup_row = rows.one()
        if not lookup_row:
            return None

        lookup = CommentLookup.from_row(lookup_row)
        rows = await self.session.aexecute(
            self._get_comment,
            [lookup.post_id, lookup.created_at, lookup.comment_id],
        )
        row = rows.one()
        return Comment.from_row(row) if row else None

    async def get_comments_for_post(self, post_id: UUID) -> list[Comment]:
        rows = await self.session.aexecute(self._get_comments_by_post, [post_id])
        return [Comment.from_row(row) for row in rows]

    async def _get_authors(
        self, author_ids: Iterable[UUID]
    ) -> dict[UUID, PublicUserResponse]:
        users = await self.auth_service.get_users_by_ids(author_ids)
        return {
            user_id: PublicUserResponse.from_user(user)
            for user_id, user in users.items()
        }

    # ==========================================================================
    # Operations
    # ==========================================================================

    async def add_comment(
        self,
        post_id: UUID,
        author_id: UUID,
        content: str,
        parent_comment_id: UUID | None = None,
    ) -> CommentResponse:
        """Add a top-level comment, or an owner reply to one.

        Checks run in this order and nothing is written if any fails.

        Args:
            post_id: Post being commented on
            author_id: Authenticated commenter
            content: Comment text, trimmed before storing
            parent_comment_id: Top-level comment being replied to, if any

        Returns:
            The stored comment with its author's public identity

        Raises:
            EmptyContentError: Content is blank after trimming
            PostNotFoundError: Post does not exist
            ParentCommentNotFoundError: Parent missing or on another post
            NestingTooDeepError: Parent is itself a reply
            ReplyNotAuthorizedError: Replier is not the post owner
            RateLimitExceededError: Author is over a rate limit
        """
        content = (content or "").strip()
        if not content:
            raise EmptyContentError

        post_author_id = await self.get_post_author_id(post_id)
        if post_author_id is None:
            raise PostNotFoundError

        if parent_comment_id is not None:
            parent = await self.find_comment_by_id(parent_comment_id)
            if parent is None or parent.post_id != post_id:
                raise ParentCommentNotFoundError
            if not parent.is_top_level:
                raise NestingTooDeepError
            if author_id != post_author_id:
                raise ReplyNotAuthorizedError

        await self.check_rate_limit(author_id)

        comment = create_comment(
            post_id=post_id,
            author_id=author_id,
            content=content,
            parent_id=parent_comment_id,
            is_owner_reply=(
                parent_comment_id is not None and author_id == post_author_id
            ),
        )

        await self.session.aexecute(
            self._insert_comment,
            [
                comment.post_id,
                comment.created_at,
                comment.comment_id,
                comment.parent_id,
                comment.author_id,
                comment.content,
                comment.is_owner_reply,
                set(),
            ],
        )
        await self.session.aexecute(
            self._insert_comment_lookup,
            [comment.comment_id, comment.post_id, comment.created_at],
        )

        await self.increment_rate_limit(author_id)

        logger.info(
            "comment_created",
            comment_id=str(comment.comment_id),
            post_id=str(post_id),
            parent_id=str(parent_comment_id) if parent_comment_id else None,
            is_owner_reply=comment.is_owner_reply,
        )

        authors = await self._get_authors([author_id])
        return CommentResponse.from_comment(comment, authors.get(author_id))

    async def list_comments_for_post(
        self, post_id: UUID
    ) -> list[CommentWithRepliesResponse]:
        """A post's comment tree: top-level newest first, replies oldest first.

        An unknown post simply has no comments.
        """
        tree = build_comment_tree(await self.get_comments_for_post(post_id))

        author_ids = [parent.author_id for parent, _ in tree]
        author_ids += [reply.author_id for _, replies in tree for reply in replies]
        authors = await self._get_authors(author_ids)

        items = []
        for parent, replies in tree:
            item = CommentWithRepliesResponse.from_comment(
                parent, authors.get(parent.author_id)
            )
            item.replies = [
                CommentResponse.from_comment(reply, authors.get(reply.author_id))
                for reply in replies
            ]
            items.append(item)
        return items

    async def mark_comment_as_read(
        self,
        post_id: UUID,
        comment_id: UUID,
        requester_id: UUID,
    ) -> CommentReadResponse:
        """Record that the post owner has read a comment.

        Idempotent: a second call performs no write.

        Raises:
            PostNotFoundError: Post does not exist
            ReadNotAuthorizedError: Requester is not the post owner
            CommentNotFoundError: Comment missing or on another post
        """
        post_author_id = await self.get_post_author_id(post_id)
        if post_author_id is None:
            raise PostNotFoundError
        if requester_id != post_author_id:
            raise ReadNotAuthorizedError

        comment = await self.find_comment_by_id(comment_id)
        if comment is None or comment.post_id != post_id:
            raise CommentNotFoundError

        if not comment.is_read_by(requester_id):
            await self.session.aexecute(
                self._add_reader,
                [
                    {requester_id},
                    comment.post_id,
                    comment.created_at,
                    comment.comment_id,
                ],
            )
            comment.read_by.add(requester_id)
            logger.info(
                "comment_marked_read",
                comment_id=str(comment_id),
                post_id=str(post_id),
            )

        return CommentReadResponse(
            id=comment.comment_id,
            read_by=sorted(comment.read_by, key=str),
        )

    async def count_visible_comments_for_post(self, post_id: UUID) -> int:
        """Comments on a post, not counting owner replies."""
        comments = await self.get_comments_for_post(post_id)
        return sum(not comment.is_owner_reply for comment in comments)

    async def count_visible_comments_for_posts(
        self, post_ids: Iterable[UUID]
    ) -> dict[UUID, int]:
        return {
            post_id: await self.count_visible_comments_for_post(post_id)
            for post_id in post_ids
        }

    async def delete_comments_for_post(self, post_id: UUID) -> int:
        """Delete every comment of a post. Returns how many were removed."""
        comments = await self.get_comments_for_post(post_id)
        for comment in comments:
            await self.session.aexecute(
                self._delete_comment_lookup, [comment.comment_id]
            )
        await self.session.aexecute(self._delete_comments_by_post, [post_id])

        logger.info("post_comments_deleted", post_id=str(post_id), count=len(comments))
        return len(comments)
