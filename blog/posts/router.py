"""Post API endpoints.

Create and update take multipart form data so a cover image can be sent
along with the post.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, File, Form, UploadFile, status

from blog.auth.dependencies import CurrentUser
from blog.storage.dependencies import handle_storage_error, read_image_upload
from blog.storage.service import StorageError

from .dependencies import PostServiceDep, handle_post_error
from .schemas import (
    LikeToggleResponse,
    MessageResponse,
    PostDetailResponse,
    PostListResponse,
    PostResponse,
)
from .service import PostError, parse_query_int


router = APIRouter(prefix="/api/posts", tags=["posts"])


@router.get("", response_model=PostListResponse, summary="List posts")
async def list_posts(
    post_service: PostServiceDep,
    page: str | None = None,
    limit: str | None = None,
    search: str | None = None,
    tag: str | None = None,
) -> PostListResponse:
    """Newest posts first.

    Non-numeric page and limit values fall back to the defaults; numeric
    ones are clamped.
    """
    return await post_service.list_posts(
        page=parse_query_int(page) or 1,
        limit=parse_query_int(limit),
        search=search,
        tag=tag,
    )


@router.get("/{post_id}", response_model=PostDetailResponse, summary="Get a post")
async def get_post(post_id: UUID, post_service: PostServiceDep) -> PostDetailResponse:
    try:
        return await post_service.get_post(post_id)
    except PostError as e:
        raise handle_post_error(e) from e


@router.post(
    "",
    response_model=PostResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a post",
)
async def create_post(
    post_service: PostServiceDep,
    user: CurrentUser,
    title: Annotated[str, Form()],
    content: Annotated[str, Form()],
    tags: Annotated[list[str] | None, Form()] = None,
    cover_image: Annotated[UploadFile | None, File()] = None,
) -> PostResponse:
    """Create a post. ``tags`` may be repeated or comma-separated."""
    try:
        return await post_service.create_post(
            author_id=user.id,
            title=title,
            content=content,
            tags=tags,
            cover_image=await read_image_upload(cover_image),
        )
    except PostError as e:
        raise handle_post_error(e) from e
    except StorageError as e:
        raise handle_storage_error(e) from e


@router.put("/{post_id}", response_model=PostResponse, summary="Update a post")
async def update_post(
    post_id: UUID,
    post_service: PostServiceDep,
    user: CurrentUser,
    title: Annotated[str | None, Form()] = None,
    content: Annotated[str | None, Form()] = None,
    tags: Annotated[list[str] | None, Form()] = None,
    cover_image: Annotated[UploadFile | None, File()] = None,
) -> PostResponse:
    """Update a post. Only the author may do this."""
    try:
        return await post_service.update_post(
            post_id=post_id,
            requester_id=user.id,
            title=title,
            content=content,
            tags=tags,
            cover_image=await read_image_upload(cover_image),
        )
    except PostError as e:
        raise handle_post_error(e) from e
    except StorageError as e:
        raise handle_storage_error(e) from e


@router.delete("/{post_id}", response_model=MessageResponse, summary="Delete a post")
async def delete_post(
    post_id: UUID,
    post_service: PostServiceDep,
    user: CurrentUser,
) -> MessageResponse:
    """Delete a post with its comments. Only the author may do this."""
    try:
        await post_service.delete_post(post_id, requester_id=user.id)
    except PostError as e:
        raise handle_post_error(e) from e
    return MessageResponse(message="Post deleted")


@router.post(
    "/{post_id}/like",
    response_model=LikeToggleResponse,
    summary="Like or unlike a post",
)
async def toggle_like(
    post_id: UUID,
    post_service: PostServiceDep,
    user: CurrentUser,
) -> LikeToggleResponse:
    try:
        return await post_service.toggle_like(post_id, user.id)
    except PostError as e:
        raise handle_post_error(e) from e
