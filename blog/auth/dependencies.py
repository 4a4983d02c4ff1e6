"""FastAPI dependencies for authentication.

Provides dependency injection for:
- Current user extraction from the bearer token
- The auth service
- Mapping of auth errors to HTTP responses
"""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError

from blog.auth.schemas import AuthenticatedUser
from blog.auth.security import decode_access_token
from blog.auth.service import AuthError, AuthService
from blog.core.context import set_user_id


def get_token_from_header(request: Request) -> str | None:
    """Extract Bearer token from Authorization header.

    Returns:
        Token string or None if not present
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None

    expected_parts = 2
    parts = auth_header.split()
    if len(parts) != expected_parts or parts[0].lower() != "bearer":
        return None

    return parts[1]


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"message": message, "code": "not_authenticated"},
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    token: Annotated[str | None, Depends(get_token_from_header)],
) -> AuthenticatedUser:
    """Get current authenticated user from the access token.

    Raises:
        HTTPException(401): If token is missing, invalid, or expired
    """
    if not token:
        raise _unauthorized("Not authorized, no token")

    try:
        payload = decode_access_token(token)
        user_id = UUID(payload["sub"])
    except (JWTError, ValueError) as e:
        raise _unauthorized("Not authorized, invalid or expired token") from e

    # Set user_id in context for logging
    set_user_id(user_id)

    return AuthenticatedUser(
        id=user_id,
        email=payload.get("email"),
        username=payload.get("username"),
    )


async def get_auth_service(request: Request) -> AuthService:
    """Get auth service from app state."""
    auth_service = getattr(request.app.state, "auth_service", None)
    if auth_service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication service not available",
        )
    return auth_service


# Type aliases for dependency injection
CurrentUser = Annotated[AuthenticatedUser, Depends(get_current_user)]
AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]


def handle_auth_error(error: AuthError) -> HTTPException:
    """Convert auth errors to HTTP exceptions."""
    status_map = {
        "invalid_credentials": status.HTTP_401_UNAUTHORIZED,
        "user_exists": status.HTTP_409_CONFLICT,
        "user_not_found": status.HTTP_404_NOT_FOUND,
    }

    return HTTPException(
        status_code=status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail={"message": error.message, "code": error.code},
    )
