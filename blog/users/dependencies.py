"""FastAPI dependencies for user profiles."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import UserError, UserService


async def get_user_service(request: Request) -> UserService:
    """Get user service from app state."""
    user_service = getattr(request.app.state, "user_service", None)
    if user_service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="User service not available",
        )
    return user_service


UserServiceDep = Annotated[UserService, Depends(get_user_service)]


def handle_user_error(error: UserError) -> HTTPException:
    """Convert user errors to HTTP exceptions."""
    status_map = {
        "user_not_found": status.HTTP_404_NOT_FOUND,
        "invalid_username": status.HTTP_400_BAD_REQUEST,
        "username_taken": status.HTTP_409_CONFLICT,
    }

    return HTTPException(
        status_code=status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail={"message": error.message, "code": error.code},
    )
