"""Pydantic schemas for notifications."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from blog.auth.schemas import PublicUserResponse


class NotificationPostResponse(BaseModel):
    id: UUID
    title: str


class NotificationResponse(BaseModel):
    """A comment on one of the user's posts that the user has not read."""

    id: UUID
    content: str
    created_at: datetime
    post: NotificationPostResponse
    author: PublicUserResponse | None = None
