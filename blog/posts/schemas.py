"""Pydantic schemas for posts."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from blog.auth.schemas import PublicUserResponse
from blog.comments.schemas import CommentWithRepliesResponse

from .models import Post


TITLE_MIN_LENGTH = 3
TITLE_MAX_LENGTH = 150
CONTENT_MIN_LENGTH = 20

DEFAULT_PAGE_SIZE = 9
MIN_PAGE_SIZE = 3
MAX_PAGE_SIZE = 24


class PostSummaryResponse(BaseModel):
    """A post as shown in listings and profiles."""

    id: UUID
    title: str
    excerpt: str
    author: PublicUserResponse | None = None
    tags: list[str] = Field(default_factory=list)
    cover_image: str | None = None
    likes: list[UUID] = Field(default_factory=list)
    comment_count: int = 0
    created_at: datetime
    updated_at: datetime | None = None

    @classmethod
    def from_post(
        cls,
        post: Post,
        author: PublicUserResponse | None = None,
        comment_count: int = 0,
    ) -> "PostSummaryResponse":
        return cls(
            id=post.id,
            title=post.title,
            excerpt=post.excerpt,
            author=author,
            tags=sorted(post.tags),
            cover_image=post.cover_image_url,
            likes=sorted(post.likes, key=str),
            comment_count=comment_count,
            created_at=post.created_at,
            updated_at=post.updated_at,
        )


class PostResponse(PostSummaryResponse):
    """A post with its full HTML content."""

    content: str

    @classmethod
    def from_post(
        cls,
        post: Post,
        author: PublicUserResponse | None = None,
        comment_count: int = 0,
    ) -> "PostResponse":
        summary = PostSummaryResponse.from_post(post, author, comment_count)
        return cls(**summary.model_dump(), content=post.content)


class PostDetailResponse(BaseModel):
    """A post page: the post and its comment tree."""

    post: PostResponse
    comments: list[CommentWithRepliesResponse]


class PaginationResponse(BaseModel):
    total: int
    page: int
    pages: int


class PostListResponse(BaseModel):
    posts: list[PostSummaryResponse]
    pagination: PaginationResponse


class LikeToggleResponse(BaseModel):
    """Like count after the toggle and whether the caller now likes the post."""

    likes: int
    liked: bool


class MessageResponse(BaseModel):
    message: str
