"""FastAPI dependencies for posts."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import PostError, PostService


async def get_post_service(request: Request) -> PostService:
    """Get post service from app state."""
    post_service = getattr(request.app.state, "post_service", None)
    if post_service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Post service not available",
        )
    return post_service


PostServiceDep = Annotated[PostService, Depends(get_post_service)]


def handle_post_error(error: PostError) -> HTTPException:
    """Convert post errors to HTTP exceptions."""
    status_map = {
        "post_not_found": status.HTTP_404_NOT_FOUND,
        "permission_denied": status.HTTP_403_FORBIDDEN,
        "validation_error": status.HTTP_400_BAD_REQUEST,
    }

    return HTTPException(
        status_code=status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail={"message": error.message, "code": error.code},
    )
