"""Notification API endpoints."""

from uuid import UUID

from fastapi import APIRouter, HTTPException, status

from blog.auth.dependencies import CurrentUser

from .dependencies import NotificationServiceDep
from .schemas import NotificationResponse


router = APIRouter(prefix="/api/users", tags=["notifications"])


@router.get(
    "/{user_id}/notifications",
    response_model=list[NotificationResponse],
    summary="Unread comments on the user's posts",
)
async def list_notifications(
    user_id: UUID,
    notification_service: NotificationServiceDep,
    user: CurrentUser,
    limit: str | None = None,
) -> list[NotificationResponse]:
    """Newest unread comments first. ``limit`` defaults to 20, at most 50."""
    if user.id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "message": "You can only view your own notifications",
                "code": "not_authorized",
            },
        )

    return await notification_service.get_unread_reply_notifications(
        user_id, limit=limit
    )
