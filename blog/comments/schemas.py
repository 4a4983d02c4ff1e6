"""Pydantic schemas for post comments."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from blog.auth.schemas import PublicUserResponse

from .models import Comment


COMMENT_MAX_LENGTH = 500


# ==============================================================================
# Request Schemas
# ==============================================================================


class CreateCommentRequest(BaseModel):
    """A new comment, or a reply when ``parent_comment_id`` is set."""

    content: str = Field(default="", max_length=COMMENT_MAX_LENGTH)
    parent_comment_id: UUID | None = None

    @field_validator("content", mode="before")
    @classmethod
    def strip_content(cls, v: object) -> object:
        """Strip whitespace; blank content is rejected by the service."""
        return v.strip() if isinstance(v, str) else v


# ==============================================================================
# Response Schemas
# ==============================================================================


class CommentResponse(BaseModel):
    """A single comment with its author's public identity."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    post_id: UUID
    parent_comment_id: UUID | None = None
    author: PublicUserResponse | None = None
    content: str
    is_owner_reply: bool = False
    read_by: list[UUID] = Field(default_factory=list)
    created_at: datetime

    @classmethod
    def from_comment(
        cls,
        comment: Comment,
        author: PublicUserResponse | None = None,
    ) -> "CommentResponse":
        """Create response from a Comment entity.

        Args:
            comment: Comment entity
            author: Resolved author identity, None if the account is gone
        """
        return cls(
            id=comment.comment_id,
            post_id=comment.post_id,
            parent_comment_id=comment.parent_id,
            author=author,
            content=comment.content,
            is_owner_reply=comment.is_owner_reply,
            read_by=sorted(comment.read_by, key=str),
            created_at=comment.created_at,
        )


class CommentWithRepliesResponse(CommentResponse):
    """Top-level comment with its replies, oldest first."""

    replies: list[CommentResponse] = Field(default_factory=list)


class CommentListResponse(BaseModel):
    """A post's comment tree."""

    items: list[CommentWithRepliesResponse]
    total_count: int


class CommentReadResponse(BaseModel):
    """Result of marking a comment as read."""

    id: UUID
    read_by: list[UUID]
