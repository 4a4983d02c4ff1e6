"""Authentication service layer.

Business logic for:
- User registration and login
- Token creation
- User lookups shared with other modules
"""

from collections.abc import Iterable
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from blog.auth.models import User
from blog.auth.schemas import RegisterRequest
from blog.auth.security import create_access_token, hash_password, verify_password


if TYPE_CHECKING:
    from cassandra.cluster import Session


logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class AuthError(Exception):
    """Base authentication error."""

    def __init__(self, message: str, code: str = "auth_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class InvalidCredentialsError(AuthError):
    """Invalid email or password."""

    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message, "invalid_credentials")


class UserExistsError(AuthError):
    """Username or email already registered."""

    def __init__(
        self,
        message: str = "Username or email already in use",
        field: str | None = None,
    ):
        super().__init__(message, "user_exists")
        self.field = field  # "email" or "username"


class UserNotFoundError(AuthError):
    """User not found."""

    def __init__(self, message: str = "User not found"):
        super().__init__(message, "user_not_found")


# ==============================================================================
# Auth Service
# ==============================================================================


class AuthService:
    """User accounts and credentials."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session.

        Args:
            session: Cassandra session with aexecute() support
            keyspace: Keyspace name for queries
        """
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for better performance."""
        self._get_user_by_id = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.users WHERE user_id = ?"
        )
        self._get_users_by_ids = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.users WHERE user_id IN ?"
        )
        self._get_user_by_email = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.users WHERE email = ?"
        )
        self._get_user_by_username = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.users WHERE username = ?"
        )
        self._insert_user = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.users (
                user_id, username, email, password_hash, avatar_url,
                avatar_storage_path, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """)
        self._update_password = self.session.prepare(f"""
            UPDATE {self.keyspace}.users SET password_hash = ?
            WHERE user_id = ?
        """)

    # ==========================================================================
    # Lookups
    # ==========================================================================

    async def get_user_by_id(self, user_id: UUID) -> User | None:
        """Find user by ID."""
        rows = await self.session.aexecute(self._get_user_by_id, [user_id])
        row = rows.one()
        return User.from_row(row) if row else None

    async def get_users_by_ids(self, user_ids: Iterable[UUID]) -> dict[UUID, User]:
        """Batch lookup, keyed by user ID. Unknown IDs are simply absent."""
        unique_ids = list(dict.fromkeys(user_ids))
        if not unique_ids:
            return {}
        rows = await self.session.aexecute(self._get_users_by_ids, [unique_ids])
        return {row.user_id: User.from_row(row) for row in rows}

    async def get_user_by_email(self, email: str) -> User | None:
        """Find user by email address (case-insensitive)."""
        rows = await self.session.aexecute(
            self._get_user_by_email, [email.lower().strip()]
        )
        row = rows.one()
        return User.from_row(row) if row else None

    async def get_user_by_username(self, username: str) -> User | None:
        """Find user by exact username."""
        rows = await self.session.aexecute(
            self._get_user_by_username, [username.strip()]
        )
        row = rows.one()
        return User.from_row(row) if row else None

    # ==========================================================================
    # Registration and login
    # ==========================================================================

    async def register_user(self, data: RegisterRequest) -> User:
        """Register a new user.

        Raises:
            UserExistsError: If email or username already exists
        """
        if await self.get_user_by_email(data.email):
            raise UserExistsError(field="email")
        if await self.get_user_by_username(data.username):
            raise UserExistsError(field="username")

        user = User(
            username=data.username,
            email=data.email,
            password_hash=hash_password(data.password),
        )
        await self.session.aexecute(
            self._insert_user,
            [
                user.id,
                user.username,
                user.email,
                user.password_hash,
                user.avatar_url,
                user.avatar_storage_path,
                user.created_at,
                user.updated_at,
            ],
        )

        logger.info("user_registered", user_id=str(user.id), username=user.username)
        return user

    async def authenticate_user(self, email: str, password: str) -> User:
        """Authenticate user with email and password.

        Raises:
            InvalidCredentialsError: If email or password is wrong
        """
        user = await self.get_user_by_email(email)
        if not user:
            raise InvalidCredentialsError

        is_valid, new_hash = verify_password(password, user.password_hash)
        if not is_valid:
            raise InvalidCredentialsError

        # Update hash if needed (algorithm params changed)
        if new_hash:
            await self.session.aexecute(self._update_password, [new_hash, user.id])
            user.password_hash = new_hash

        return user

    def create_token_for_user(self, user: User) -> str:
        return create_access_token(
            {"sub": str(user.id), "email": user.email, "username": user.username}
        )
