"""User profile API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, File, Form, HTTPException, UploadFile, status

from blog.auth.dependencies import CurrentUser
from blog.auth.schemas import UserResponse
from blog.storage.dependencies import handle_storage_error, read_image_upload
from blog.storage.service import StorageError

from .dependencies import UserServiceDep, handle_user_error
from .schemas import UserProfileResponse
from .service import UserError


router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("/{user_id}", response_model=UserProfileResponse, summary="User profile")
async def get_profile(
    user_id: UUID, user_service: UserServiceDep
) -> UserProfileResponse:
    try:
        return await user_service.get_user_profile(user_id)
    except UserError as e:
        raise handle_user_error(e) from e


@router.patch("/{user_id}", response_model=UserResponse, summary="Update profile")
async def update_profile(
    user_id: UUID,
    user_service: UserServiceDep,
    user: CurrentUser,
    username: Annotated[str | None, Form()] = None,
    avatar: Annotated[UploadFile | None, File()] = None,
) -> UserResponse:
    """Change username and/or avatar of the caller's own account."""
    if user.id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "message": "You can only update your own profile",
                "code": "not_authorized",
            },
        )

    try:
        return await user_service.update_user_profile(
            user_id,
            username=username,
            avatar=await read_image_upload(avatar),
        )
    except UserError as e:
        raise handle_user_error(e) from e
    except StorageError as e:
        raise handle_storage_error(e) from e
