"""Blog Platform API - Main Application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from blog.auth.router import router as auth_router
from blog.auth.service import AuthService
from blog.comments.router import router as comments_router
from blog.comments.service import CommentService
from blog.config import Settings, get_settings
from blog.core.context import get_request_id
from blog.core.database import init_async_cassandra, shutdown_async_cassandra
from blog.core.logging import configure_structlog, get_logger
from blog.core.middleware import RequestContextMiddleware
from blog.core.redis import init_redis, shutdown_redis
from blog.health import router as health_router
from blog.notifications.router import router as notifications_router
from blog.notifications.service import NotificationService
from blog.posts.router import router as posts_router
from blog.posts.service import PostService
from blog.storage.service import ImageStorage, LocalDiskStorage, create_image_storage
from blog.users.router import router as users_router
from blog.users.service import UserService


# Configure logging early (before creating logger)
settings = get_settings()
configure_structlog(settings, log_dir=Path(settings.log_dir))

logger = get_logger(__name__)


def attach_services(
    app: FastAPI,
    session: Any,
    settings: Settings,
    storage: ImageStorage,
    redis_client: Any = None,
) -> None:
    """Build every service over one session and expose it on ``app.state``."""
    keyspace = settings.cassandra_keyspace

    auth_service = AuthService(session=session, keyspace=keyspace)
    comment_service = CommentService(
        session=session,
        keyspace=keyspace,
        auth_service=auth_service,
        redis=redis_client,
        comments_per_minute=settings.comments_per_minute,
        comments_per_hour=settings.comments_per_hour,
    )
    post_service = PostService(
        session=session,
        keyspace=keyspace,
        auth_service=auth_service,
        comment_service=comment_service,
        storage=storage,
    )

    app.state.cassandra_session = session
    app.state.redis = redis_client
    app.state.storage = storage
    app.state.auth_service = auth_service
    app.state.comment_service = comment_service
    app.state.post_service = post_service
    app.state.notification_service = NotificationService(
        session=session,
        keyspace=keyspace,
        auth_service=auth_service,
        default_limit=settings.notifications_default_limit,
        max_limit=settings.notifications_max_limit,
    )
    app.state.user_service = UserService(
        session=session,
        keyspace=keyspace,
        auth_service=auth_service,
        post_service=post_service,
        storage=storage,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings = get_settings()
    logger.info(
        "starting_application",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )

    # Redis is optional: without it comments are simply not rate limited
    redis_client = None
    if settings.redis_enabled:
        try:
            redis_client = await init_redis()
            logger.info("redis_initialized")
        except Exception as e:
            logger.warning(
                "redis_init_skipped",
                error=str(e),
                message="Running without Redis - comment rate limiting disabled",
            )

    try:
        session = await init_async_cassandra()
        logger.info("cassandra_initialized")

        attach_services(
            app,
            session=session,
            settings=settings,
            storage=create_image_storage(settings),
            redis_client=redis_client,
        )
        logger.info(
            "services_initialized",
            redis_enabled=redis_client is not None,
            storage=type(app.state.storage).__name__,
        )
    except Exception as e:
        logger.warning(
            "database_init_skipped",
            error=str(e),
            message="Running without database connection",
        )

    yield

    # Shutdown
    logger.info("shutting_down_application")
    await shutdown_redis()
    await shutdown_async_cassandra()


def _error_content(detail: Any) -> dict[str, Any]:
    """Split an ``HTTPException`` detail into message and optional code."""
    if isinstance(detail, dict):
        content = {"message": str(detail.get("message", ""))}
        if detail.get("code"):
            content["code"] = detail["code"]
        return content
    return {"message": str(detail)}


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    # debug stays off so Starlette never renders stack traces in responses
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Blog Platform - API",
        debug=False,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
    )

    # Request context middleware (added first - outermost)
    app.add_middleware(
        RequestContextMiddleware,
        log_requests=settings.log_requests,
        exclude_paths=settings.log_exclude_paths,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    def _get_request_id_safe(request: Request) -> str | None:
        """Get request_id from request state or context."""
        if hasattr(request.state, "request_id"):
            return request.state.request_id
        return get_request_id()

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> ORJSONResponse:
        """Handle HTTP exceptions, keeping the domain error code when present."""
        request_id = _get_request_id_safe(request)

        logger.warning(
            "http_exception",
            status_code=exc.status_code,
            detail=str(exc.detail),
            path=request.url.path,
            method=request.method,
        )

        content = _error_content(exc.detail)
        if exc.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR:
            content = {"message": "Internal server error"}

        return ORJSONResponse(
            status_code=exc.status_code,
            content={
                "error": True,
                **content,
                "status_code": exc.status_code,
                "request_id": request_id,
            },
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        """Handle validation errors with per-field details."""
        request_id = _get_request_id_safe(request)

        logger.warning(
            "validation_error",
            errors=exc.errors(),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": True,
                "message": "Validation error",
                "code": "validation_error",
                "status_code": 422,
                "request_id": request_id,
                "details": [
                    {
                        "field": ".".join(str(loc) for loc in err.get("loc", [])),
                        "message": err.get("msg", "Invalid value"),
                    }
                    for err in exc.errors()
                ],
            },
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> ORJSONResponse:
        """Catch-all handler for unhandled exceptions.

        Details are logged with the stack trace; the response stays generic.
        """
        request_id = _get_request_id_safe(request)

        logger.exception(
            "unhandled_exception",
            error_type=type(exc).__name__,
            error_message=str(exc),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": True,
                "message": "An unexpected error occurred. Please try again later.",
                "status_code": 500,
                "request_id": request_id,
            },
        )

    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(posts_router)
    app.include_router(comments_router)
    app.include_router(notifications_router)
    app.include_router(users_router)

    if not settings.firebase_configured:
        app.mount(
            LocalDiskStorage.URL_PREFIX,
            StaticFiles(directory=settings.upload_dir, check_dir=False),
            name="uploads",
        )

    @app.get("/", include_in_schema=False)
    async def root(request: Request) -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": "Blog Platform API",
            "version": settings.app_version,
            "docs": f"{request.url}docs",
        }

    return app


app = create_app()
