"""Pydantic schemas for user profiles."""

from datetime import datetime
from typing import TYPE_CHECKING

from blog.auth.schemas import PublicUserResponse
from blog.posts.schemas import PostSummaryResponse

from pydantic import BaseModel


if TYPE_CHECKING:
    from blog.auth.models import User


class ProfileUserResponse(PublicUserResponse):
    created_at: datetime

    @classmethod
    def from_user(cls, user: "User") -> "ProfileUserResponse":
        return cls(
            id=user.id,
            username=user.username,
            avatar=user.avatar_url,
            created_at=user.created_at,
        )


class UserProfileResponse(BaseModel):
    """A user's public profile with their posts, newest first."""

    user: ProfileUserResponse
    posts: list[PostSummaryResponse]
