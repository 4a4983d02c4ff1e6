"""Post service layer.

Business logic for:
- Listing with title search, tag filter and pagination
- Creating and editing posts with sanitized HTML and tag normalization
- Cover image storage, replacement and cleanup
- Likes
- Deleting posts together with their comments
"""

import math
import re
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from blog.auth.schemas import PublicUserResponse
from blog.comments.service import count_visible_comments
from blog.storage.service import ImageUpload, StoredImage, delete_quietly

from .models import AuthoredPost, Post, create_post
from .sanitizer import (
    build_excerpt,
    extract_plain_text,
    normalize_tags,
    sanitize_html,
)
from .schemas import (
    CONTENT_MIN_LENGTH,
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    MIN_PAGE_SIZE,
    TITLE_MAX_LENGTH,
    TITLE_MIN_LENGTH,
    LikeToggleResponse,
    PaginationResponse,
    PostDetailResponse,
    PostListResponse,
    PostResponse,
    PostSummaryResponse,
)


if TYPE_CHECKING:
    from cassandra.cluster import Session

    from blog.auth.service import AuthService
    from blog.comments.service import CommentService
    from blog.storage.service import ImageStorage


logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class PostError(Exception):
    """Base post error."""

    def __init__(self, message: str, code: str = "post_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class PostNotFoundError(PostError):
    """Post not found."""

    def __init__(self, message: str = "Post not found"):
        super().__init__(message, "post_not_found")


class PostPermissionDeniedError(PostError):
    """Caller does not own the post."""

    def __init__(self, message: str = "You can only modify your own posts"):
        super().__init__(message, "permission_denied")


class PostValidationError(PostError):
    """Invalid title or content."""

    def __init__(self, message: str):
        super().__init__(message, "validation_error")


_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def parse_query_int(raw: str | None) -> int | None:
    """Leading integer of a query value, or None when there is none."""
    if raw is None:
        return None
    match = _LEADING_INT.match(raw)
    return int(match.group(1)) if match else None


def clamp_page_size(limit: int | None) -> int:
    if not limit:
        return DEFAULT_PAGE_SIZE
    return max(MIN_PAGE_SIZE, min(limit, MAX_PAGE_SIZE))


def _clean_title(title: str) -> str:
    title = (title or "").strip()
    if not TITLE_MIN_LENGTH <= len(title) <= TITLE_MAX_LENGTH:
        msg = (
            f"Title must be between {TITLE_MIN_LENGTH} and "
            f"{TITLE_MAX_LENGTH} characters"
        )
        raise PostValidationError(msg)
    return title


def _clean_content(content: str) -> tuple[str, str]:
    """Sanitized HTML and its excerpt."""
    safe_html = sanitize_html(content or "")
    plain_text = extract_plain_text(safe_html)
    if len(plain_text) < CONTENT_MIN_LENGTH:
        msg = f"Content must be at least {CONTENT_MIN_LENGTH} characters"
        raise PostValidationError(msg)
    return safe_html, build_excerpt(plain_text)


# ==============================================================================
# Post Service
# ==============================================================================


class PostService:
    """Posts, likes and cover images."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        auth_service: "AuthService",
        comment_service: "CommentService",
        storage: "ImageStorage",
    ):
        self.session = session
        self.keyspace = keyspace
        self.auth_service = auth_service
        self.comment_service = comment_service
        self.storage = storage
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for better performance."""
        self._insert_post = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.posts
            (post_id, title, content, excerpt, author_id, tags, cover_image_url,
             cover_image_path, likes, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._insert_post_by_author = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.posts_by_author
            (author_id, created_at, post_id, title)
            VALUES (?, ?, ?, ?)
        """)

        self._get_post = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.posts WHERE post_id = ?"
        )

        self._get_posts_by_ids = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.posts WHERE post_id IN ?"
        )

        # Full scan: title search has no index to use
        self._get_all_posts = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.posts"
        )

        self._get_posts_by_author = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.posts_by_author
            WHERE author_id = ?
            ORDER BY created_at DESC
        """)

        self._update_post = self.session.prepare(f"""
            UPDATE {self.keyspace}.posts
            SET title = ?, content = ?, excerpt = ?, tags = ?, cover_image_url = ?,
                cover_image_path = ?, updated_at = ?
            WHERE post_id = ?
        """)

        self._update_post_by_author_title = self.session.prepare(f"""
            UPDATE {self.keyspace}.posts_by_author SET title = ?
            WHERE author_id = ? AND created_at = ? AND post_id = ?
        """)

        self._add_like = self.session.prepare(
            f"UPDATE {self.keyspace}.posts SET likes = likes + ? WHERE post_id = ?"
        )

        self._remove_like = self.session.prepare(
            f"UPDATE {self.keyspace}.posts SET likes = likes - ? WHERE post_id = ?"
        )

        self._delete_post = self.session.prepare(
            f"DELETE FROM {self.keyspace}.posts WHERE post_id = ?"
        )

        self._delete_post_by_author = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.posts_by_author
            WHERE author_id = ? AND created_at = ? AND post_id = ?
        """)

    # ==========================================================================
    # Helpers
    # ==========================================================================

    async def find_post_by_id(self, post_id: UUID) -> Post | None:
        rows = await self.session.aexecute(self._get_post, [post_id])
        row = rows.one()
        return Post.from_row(row) if row else None

    async def _get_owned_post(self, post_id: UUID, requester_id: UUID) -> Post:
        post = await self.find_post_by_id(post_id)
        if post is None:
            raise PostNotFoundError
        if not post.is_owned_by(requester_id):
            raise PostPermissionDeniedError
        return post

    async def _get_authors(
        self, author_ids: Iterable[UUID]
    ) -> dict[UUID, PublicUserResponse]:
        users = await self.auth_service.get_users_by_ids(author_ids)
        return {
            user_id: PublicUserResponse.from_user(user)
            for user_id, user in users.items()
        }

    async def _summaries(self, posts: list[Post]) -> list[PostSummaryResponse]:
        authors = await self._get_authors(post.author_id for post in posts)
        counts = await self.comment_service.count_visible_comments_for_posts(
            post.id for post in posts
        )
        return [
            PostSummaryResponse.from_post(
                post, authors.get(post.author_id), counts.get(post.id, 0)
            )
            for post in posts
        ]

    async def _to_response(self, post: Post) -> PostResponse:
        authors = await self._get_authors([post.author_id])
        count = await self.comment_service.count_visible_comments_for_post(post.id)
        return PostResponse.from_post(post, authors.get(post.author_id), count)

    async def _store_cover(self, image: ImageUpload | None) -> StoredImage | None:
        if image is None:
            return None
        return await self.storage.save(image, prefix="cover")

    # ==========================================================================
    # Queries
    # ==========================================================================

    async def list_posts(
        self,
        page: int = 1,
        limit: int | None = None,
        search: str | None = None,
        tag: str | None = None,
    ) -> PostListResponse:
        """Newest posts first, optionally filtered.

        Args:
            page: 1-based page number
            limit: Page size, clamped to 3-24 (default 9)
            search: Case-insensitive substring of the title
            tag: Comma-separated tags; a post matches if it has any of them
        """
        page = max(page or 1, 1)
        limit = clamp_page_size(limit)

        rows = await self.session.aexecute(self._get_all_posts)
        posts = [Post.from_row(row) for row in rows]

        if search and search.strip():
            needle = search.strip().lower()
            posts = [post for post in posts if needle in post.title.lower()]

        wanted_tags = set(normalize_tags(tag))
        if wanted_tags:
            posts = [post for post in posts if post.tags & wanted_tags]

        posts.sort(key=lambda post: post.created_at, reverse=True)
        total = len(posts)
        start = (page - 1) * limit

        return PostListResponse(
            posts=await self._summaries(posts[start : start + limit]),
            pagination=PaginationResponse(
                total=total,
                page=page,
                pages=max(math.ceil(total / limit), 1),
            ),
        )

    async def get_post(self, post_id: UUID) -> PostDetailResponse:
        """A post with its comment tree.

        Raises:
            PostNotFoundError: If the post does not exist
        """
        post = await self.find_post_by_id(post_id)
        if post is None:
            raise PostNotFoundError

        comments = await self.comment_service.list_comments_for_post(post_id)
        authors = await self._get_authors([post.author_id])
        return PostDetailResponse(
            post=PostResponse.from_post(
                post, authors.get(post.author_id), count_visible_comments(comments)
            ),
            comments=comments,
        )

    async def get_posts_by_author(self, author_id: UUID) -> list[PostSummaryResponse]:
        """An author's posts, newest first."""
        rows = await self.session.aexecute(self._get_posts_by_author, [author_id])
        authored = [AuthoredPost.from_row(row) for row in rows]
        if not authored:
            return []

        rows = await self.session.aexecute(
            self._get_posts_by_ids, [[entry.post_id for entry in authored]]
        )
        posts = [Post.from_row(row) for row in rows]
        posts.sort(key=lambda post: post.created_at, reverse=True)
        return await self._summaries(posts)

    # ==========================================================================
    # Mutations
    # ==========================================================================

    async def create_post(
        self,
        author_id: UUID,
        title: str,
        content: str,
        tags: Iterable[str] | str | None = None,
        cover_image: ImageUpload | None = None,
    ) -> PostResponse:
        """Publish a post.

        Raises:
            PostValidationError: Title or content too short
            StorageError: Cover image rejected or not stored
        """
        title = _clean_title(title)
        safe_html, excerpt = _clean_content(content)

        cover = await self._store_cover(cover_image)
        post = create_post(
            title=title,
            content=safe_html,
            excerpt=excerpt,
            author_id=author_id,
            tags=normalize_tags(tags),
            cover_image_url=cover.url if cover else None,
            cover_image_path=cover.storage_path if cover else None,
        )

        try:
            await self.session.aexecute(
                self._insert_post,
                [
                    post.id,
                    post.title,
                    post.content,
                    post.excerpt,
                    post.author_id,
                    post.tags,
                    post.cover_image_url,
                    post.cover_image_path,
                    post.likes,
                    post.created_at,
                    post.updated_at,
                ],
            )
            await self.session.aexecute(
                self._insert_post_by_author,
                [post.author_id, post.created_at, post.id, post.title],
            )
        except Exception:
            await delete_quietly(self.storage, post.cover_image_path)
            raise

        logger.info("post_created", post_id=str(post.id), tags=sorted(post.tags))
        return await self._to_response(post)

    async def update_post(
        self,
        post_id: UUID,
        requester_id: UUID,
        title: str | None = None,
        content: str | None = None,
        tags: Iterable[str] | str | None = None,
        cover_image: ImageUpload | None = None,
    ) -> PostResponse:
        """Edit a post; fields left as None are unchanged.

        A new cover image replaces the old one, which is then cleaned up.

        Raises:
            PostNotFoundError: If the post does not exist
            PostPermissionDeniedError: If the requester is not the author
            PostValidationError: Title or content too short
        """
        post = await self._get_owned_post(post_id, requester_id)
        title_changed = False

        if title is not None:
            new_title = _clean_title(title)
            title_changed = new_title != post.title
            post.title = new_title
        if content is not None:
            post.content, post.excerpt = _clean_content(content)
        if tags is not None:
            post.tags = set(normalize_tags(tags))

        old_cover_path = None
        cover = await self._store_cover(cover_image)
        if cover:
            old_cover_path = post.cover_image_path
            post.cover_image_url = cover.url
            post.cover_image_path = cover.storage_path

        post.updated_at = datetime.now(UTC)
        try:
            await self.session.aexecute(
                self._update_post,
                [
                    post.title,
                    post.content,
                    post.excerpt,
                    post.tags,
                    post.cover_image_url,
                    post.cover_image_path,
                    post.updated_at,
                    post.id,
                ],
            )
        except Exception:
            if cover:
                await delete_quietly(self.storage, cover.storage_path)
            raise

        if title_changed:
            await self.session.aexecute(
                self._update_post_by_author_title,
                [post.title, post.author_id, post.created_at, post.id],
            )

        await delete_quietly(self.storage, old_cover_path)

        logger.info("post_updated", post_id=str(post.id))
        return await self._to_response(post)

    async def delete_post(self, post_id: UUID, requester_id: UUID) -> None:
        """Delete a post, its comments and its cover image.

        Raises:
            PostNotFoundError: If the post does not exist
            PostPermissionDeniedError: If the requester is not the author
        """
        post = await self._get_owned_post(post_id, requester_id)

        await self.comment_service.delete_comments_for_post(post.id)
        await self.session.aexecute(
            self._delete_post_by_author,
            [post.author_id, post.created_at, post.id],
        )
        await self.session.aexecute(self._delete_post, [post.id])
        await delete_quietly(self.storage, post.cover_image_path)

        logger.info("post_deleted", post_id=str(post.id))

    async def toggle_like(self, post_id: UUID, user_id: UUID) -> LikeToggleResponse:
        """Like the post, or remove the like if already given.

        Raises:
            PostNotFoundError: If the post does not exist
        """
        post = await self.find_post_by_id(post_id)
        if post is None:
            raise PostNotFoundError

        if user_id in post.likes:
            await self.session.aexecute(self._remove_like, [{user_id}, post.id])
            post.likes.discard(user_id)
            liked = False
        else:
            await self.session.aexecute(self._add_like, [{user_id}, post.id])
            post.likes.add(user_id)
            liked = True

        logger.debug("post_like_toggled", post_id=str(post.id), liked=liked)
        return LikeToggleResponse(likes=len(post.likes), liked=liked)
