"""Comment API endpoints, nested under their post."""

from uuid import UUID

import structlog
from fastapi import APIRouter, status

from blog.auth.dependencies import CurrentUser

from .dependencies import CommentServiceDep, handle_comment_error
from .schemas import (
    CommentListResponse,
    CommentReadResponse,
    CommentResponse,
    CreateCommentRequest,
)
from .service import CommentError, count_visible_comments


logger = structlog.get_logger(__name__)


router = APIRouter(prefix="/api/posts", tags=["comments"])


@router.get(
    "/{post_id}/comments",
    response_model=CommentListResponse,
    summary="List a post's comments",
)
async def list_comments(
    post_id: UUID,
    comment_service: CommentServiceDep,
) -> CommentListResponse:
    """Comment tree of a post; ``total_count`` excludes owner replies."""
    items = await comment_service.list_comments_for_post(post_id)
    return CommentListResponse(items=items, total_count=count_visible_comments(items))


@router.post(
    "/{post_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Comment on a post or reply to a comment",
)
async def add_comment(
    post_id: UUID,
    data: CreateCommentRequest,
    comment_service: CommentServiceDep,
    user: CurrentUser,
) -> CommentResponse:
    """Add a comment. Only the post owner may set ``parent_comment_id``."""
    try:
        return await comment_service.add_comment(
            post_id=post_id,
            author_id=user.id,
            content=data.content,
            parent_comment_id=data.parent_comment_id,
        )
    except CommentError as e:
        logger.info("comment_rejected", post_id=str(post_id), reason=e.code)
        raise handle_comment_error(e) from e


@router.patch(
    "/{post_id}/comments/{comment_id}/read",
    response_model=CommentReadResponse,
    summary="Mark a comment as read",
)
async def mark_comment_read(
    post_id: UUID,
    comment_id: UUID,
    comment_service: CommentServiceDep,
    user: CurrentUser,
) -> CommentReadResponse:
    try:
        return await comment_service.mark_comment_as_read(
            post_id=post_id,
            comment_id=comment_id,
            requester_id=user.id,
        )
    except CommentError as e:
        raise handle_comment_error(e) from e
