"""Authentication API endpoints: register, login and current account."""

import structlog
from fastapi import APIRouter, HTTPException, status

from blog.auth.dependencies import AuthServiceDep, CurrentUser, handle_auth_error
from blog.auth.schemas import AuthResponse, LoginRequest, RegisterRequest, UserResponse
from blog.auth.service import AuthError


logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new account",
)
async def register(data: RegisterRequest, auth_service: AuthServiceDep) -> AuthResponse:
    """Create an account and return it with an access token.

    Returns 409 if the username or email is already taken.
    """
    try:
        user = await auth_service.register_user(data)
    except AuthError as e:
        raise handle_auth_error(e) from e

    return AuthResponse(
        user=UserResponse.from_user(user),
        token=auth_service.create_token_for_user(user),
    )


@router.post("/login", response_model=AuthResponse, summary="Log in")
async def login(data: LoginRequest, auth_service: AuthServiceDep) -> AuthResponse:
    try:
        user = await auth_service.authenticate_user(data.email, data.password)
    except AuthError as e:
        logger.info("login_failed", email=data.email, reason=e.code)
        raise handle_auth_error(e) from e

    logger.info("user_logged_in", user_id=str(user.id))
    return AuthResponse(
        user=UserResponse.from_user(user),
        token=auth_service.create_token_for_user(user),
    )


@router.get("/me", response_model=UserResponse, summary="Current account")
async def get_me(user: CurrentUser, auth_service: AuthServiceDep) -> UserResponse:
    account = await auth_service.get_user_by_id(user.id)
    if account is None:
        # Token outlived the account
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"message": "User no longer exists", "code": "not_authenticated"},
        )
    return UserResponse.from_user(account)
