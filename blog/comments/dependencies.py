"""FastAPI dependencies for comments."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import CommentError, CommentService


async def get_comment_service(request: Request) -> CommentService:
    """Get comment service from app state."""
    comment_service = getattr(request.app.state, "comment_service", None)
    if comment_service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Comment service not available",
        )
    return comment_service


CommentServiceDep = Annotated[CommentService, Depends(get_comment_service)]


def handle_comment_error(error: CommentError) -> HTTPException:
    """Convert comment errors to HTTP exceptions.

    Args:
        error: Comment error

    Returns:
        HTTPException with appropriate status code
    """
    status_map = {
        "empty_content": status.HTTP_400_BAD_REQUEST,
        "post_not_found": status.HTTP_404_NOT_FOUND,
        "parent_not_found": status.HTTP_404_NOT_FOUND,
        "nesting_too_deep": status.HTTP_400_BAD_REQUEST,
        "not_authorized_to_reply": status.HTTP_403_FORBIDDEN,
        "not_authorized": status.HTTP_403_FORBIDDEN,
        "comment_not_found": status.HTTP_404_NOT_FOUND,
        "rate_limit_exceeded": status.HTTP_429_TOO_MANY_REQUESTS,
    }

    return HTTPException(
        status_code=status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail={"message": error.message, "code": error.code},
    )
