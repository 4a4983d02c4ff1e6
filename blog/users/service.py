"""User profile service layer."""

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from blog.auth.models import User
from blog.auth.schemas import USERNAME_MAX_LENGTH, USERNAME_MIN_LENGTH, UserResponse
from blog.storage.service import ImageUpload, delete_quietly

from .schemas import ProfileUserResponse, UserProfileResponse


if TYPE_CHECKING:
    from cassandra.cluster import Session

    from blog.auth.service import AuthService
    from blog.posts.service import PostService
    from blog.storage.service import ImageStorage


logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class UserError(Exception):
    """Base user profile error."""

    def __init__(self, message: str, code: str = "user_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class UserNotFoundError(UserError):
    def __init__(self, message: str = "User not found"):
        super().__init__(message, "user_not_found")


class InvalidUsernameError(UserError):
    def __init__(self, message: str):
        super().__init__(message, "invalid_username")


class UsernameTakenError(UserError):
    def __init__(self, message: str = "That username is already taken"):
        super().__init__(message, "username_taken")


# ==============================================================================
# User Service
# ==============================================================================


class UserService:
    """Profiles: reading them, renaming, and avatar replacement."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        auth_service: "AuthService",
        post_service: "PostService",
        storage: "ImageStorage",
    ):
        self.session = session
        self.keyspace = keyspace
        self.auth_service = auth_service
        self.post_service = post_service
        self.storage = storage
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for better performance."""
        self._update_username = self.session.prepare(f"""
            UPDATE {self.keyspace}.users SET username = ?, updated_at = ?
            WHERE user_id = ?
        """)
        self._update_avatar = self.session.prepare(f"""
            UPDATE {self.keyspace}.users
            SET avatar_url = ?, avatar_storage_path = ?, updated_at = ?
            WHERE user_id = ?
        """)

    async def _get_user(self, user_id: UUID) -> User:
        user = await self.auth_service.get_user_by_id(user_id)
        if user is None:
            raise UserNotFoundError
        return user

    async def get_user_profile(self, user_id: UUID) -> UserProfileResponse:
        """Public profile with the user's posts, newest first.

        Raises:
            UserNotFoundError: If the user does not exist
        """
        user = await self._get_user(user_id)
        return UserProfileResponse(
            user=ProfileUserResponse.from_user(user),
            posts=await self.post_service.get_posts_by_author(user.id),
        )

    async def update_user_profile(
        self,
        user_id: UUID,
        username: str | None = None,
        avatar: ImageUpload | None = None,
    ) -> UserResponse:
        """Change username and/or avatar. Unchanged input writes nothing.

        The previous avatar is deleted (best effort) once the new one is
        saved on the account.

        Raises:
            UserNotFoundError: If the user does not exist
            InvalidUsernameError: Blank or wrong length
            UsernameTakenError: Another account uses the name
            StorageError: Avatar rejected or not stored
        """
        user = await self._get_user(user_id)
        now = datetime.now(UTC)

        if username is not None:
            new_username = username.strip()
            if not new_username:
                raise InvalidUsernameError("Username cannot be empty")
            if not USERNAME_MIN_LENGTH <= len(new_username) <= USERNAME_MAX_LENGTH:
                raise InvalidUsernameError(
                    f"Username must be between {USERNAME_MIN_LENGTH} and "
                    f"{USERNAME_MAX_LENGTH} characters"
                )

            if new_username != user.username:
                existing = await self.auth_service.get_user_by_username(new_username)
                if existing is not None and existing.id != user.id:
                    raise UsernameTakenError
                await self.session.aexecute(
                    self._update_username, [new_username, now, user.id]
                )
                logger.info(
                    "username_changed",
                    old_username=user.username,
                    new_username=new_username,
                )
                user.username = new_username
                user.updated_at = now

        if avatar is not None:
            stored = await self.storage.save(avatar, prefix="avatar")
            old_path = user.avatar_storage_path
            try:
                await self.session.aexecute(
                    self._update_avatar,
                    [stored.url, stored.storage_path, now, user.id],
                )
            except Exception:
                await delete_quietly(self.storage, stored.storage_path)
                raise

            await delete_quietly(self.storage, old_path)
            user.avatar_url = stored.url
            user.avatar_storage_path = stored.storage_path
            user.updated_at = now
            logger.info("avatar_updated", storage_path=stored.storage_path)

        return UserResponse.from_user(user)
