"""Request/response schemas for authentication and user identities."""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


if TYPE_CHECKING:
    from blog.auth.models import User


USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 30
PASSWORD_MIN_LENGTH = 6


class RegisterRequest(BaseModel):
    """New account data."""

    username: str = Field(
        ...,
        min_length=USERNAME_MIN_LENGTH,
        max_length=USERNAME_MAX_LENGTH,
        description="Public username",
    )
    email: EmailStr = Field(..., description="Email address")
    password: str = Field(
        ..., min_length=PASSWORD_MIN_LENGTH, max_length=128, description="Password"
    )

    @field_validator("username", mode="before")
    @classmethod
    def strip_username(cls, v: str) -> str:
        return v.strip() if isinstance(v, str) else v


class LoginRequest(BaseModel):
    """Login credentials."""

    email: EmailStr = Field(..., description="Email address")
    password: str = Field(..., min_length=1, description="Password")


class PublicUserResponse(BaseModel):
    """What other users may see about someone: id, username and avatar."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    username: str
    avatar: str | None = None

    @classmethod
    def from_user(cls, user: "User") -> "PublicUserResponse":
        return cls(id=user.id, username=user.username, avatar=user.avatar_url)


class UserResponse(PublicUserResponse):
    """The authenticated user's own account."""

    email: str
    created_at: datetime

    @classmethod
    def from_user(cls, user: "User") -> "UserResponse":
        return cls(
            id=user.id,
            username=user.username,
            avatar=user.avatar_url,
            email=user.email,
            created_at=user.created_at,
        )


class AuthResponse(BaseModel):
    """Register/login result."""

    user: UserResponse
    token: str
    token_type: str = "bearer"


class AuthenticatedUser(BaseModel):
    """Identity extracted from a valid access token."""

    id: UUID
    email: str | None = None
    username: str | None = None
