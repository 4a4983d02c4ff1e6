"""Image storage backends.

Both backends validate uploads the same way (size, declared type, magic
bytes) and return a ``StoredImage`` whose ``storage_path`` is what must be
persisted to delete the file later.
"""

import asyncio
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, NamedTuple, Protocol
from urllib.parse import quote
from uuid import uuid4

import structlog


if TYPE_CHECKING:
    from google.cloud.storage import Bucket

from blog.config.settings import Settings
from blog.utils.magic_bytes import IMAGE_EXTENSIONS, validate_image_bytes


logger = structlog.get_logger(__name__)

# Non-standard names browsers send for JPEG uploads
CONTENT_TYPE_ALIASES = {"image/jpg": "image/jpeg", "image/pjpeg": "image/jpeg"}


class StorageError(Exception):
    """Base error for storage operations."""

    def __init__(self, message: str, code: str = "storage_error") -> None:
        self.message = message
        self.code = code
        super().__init__(message)


class StorageNotConfiguredError(StorageError):
    """Error when Firebase Storage is not configured."""

    def __init__(self, message: str = "Firebase Storage is not configured") -> None:
        super().__init__(message, "storage_not_configured")


class StorageUploadError(StorageError):
    """Error while writing or deleting a stored file."""

    def __init__(self, message: str) -> None:
        super().__init__(message, "upload_error")


class StorageValidationError(StorageError):
    """Error when file content is not an acceptable image."""

    def __init__(self, message: str) -> None:
        super().__init__(message, "validation_error")


class FileTooLargeError(StorageError):
    """Error when file exceeds size limit."""

    def __init__(self, size: int, max_size: int) -> None:
        message = (
            f"File size ({size / 1024 / 1024:.2f} MB) exceeds "
            f"maximum allowed ({max_size / 1024 / 1024:.2f} MB)"
        )
        super().__init__(message, "file_too_large")


class InvalidContentTypeError(StorageError):
    """Error when content type is not allowed."""

    def __init__(self, content_type: str, allowed: list[str]) -> None:
        message = (
            f"Content type '{content_type}' is not allowed. "
            f"Allowed: {', '.join(allowed)}"
        )
        super().__init__(message, "invalid_content_type")


class ImageUpload(NamedTuple):
    """An image received from a client, not yet stored."""

    content: bytes
    content_type: str
    filename: str | None = None


class StoredImage(NamedTuple):
    """Location of a stored image."""

    url: str
    storage_path: str


class ImageStorage(Protocol):
    """Interface shared by the storage backends."""

    async def save(self, image: ImageUpload, prefix: str) -> StoredImage: ...

    async def delete(self, storage_path: str) -> bool: ...


def validate_image(image: ImageUpload, settings: Settings) -> str:
    """Validate an upload and return its detected MIME type.

    Raises:
        FileTooLargeError: If the file exceeds the size limit.
        InvalidContentTypeError: If the declared type is not allowed.
        StorageValidationError: If the content is not an allowed image.
    """
    max_size = settings.upload_max_file_size_bytes
    if len(image.content) > max_size:
        raise FileTooLargeError(len(image.content), max_size)

    allowed = settings.upload_allowed_image_types
    declared = image.content_type.split(";")[0].strip().lower()
    declared = CONTENT_TYPE_ALIASES.get(declared, declared)
    if declared not in allowed:
        raise InvalidContentTypeError(declared, allowed)

    is_valid, detected_type, error_msg = validate_image_bytes(
        image.content[:64], declared, frozenset(allowed)
    )
    if not is_valid or detected_type is None:
        logger.warning(
            "magic_bytes_validation_failed",
            declared_type=declared,
            detected_type=detected_type,
            error=error_msg,
        )
        raise StorageValidationError(error_msg or "Invalid file content")

    return detected_type


def build_file_name(prefix: str, content_type: str) -> str:
    """Unique file name such as ``cover-20240101120000-<hex>.png``."""
    timestamp = datetime.now(UTC).strftime("%Y%m%d%H%M%S")
    return f"{prefix}-{timestamp}-{uuid4().hex}{IMAGE_EXTENSIONS[content_type]}"


async def delete_quietly(storage: ImageStorage, storage_path: str | None) -> None:
    """Delete a stored image, logging instead of raising on failure.

    Used when an image is replaced or its owner is deleted: a leftover file
    must never fail the request that triggered the cleanup.
    """
    if not storage_path:
        return
    try:
        await storage.delete(storage_path)
    except Exception as e:
        logger.warning(
            "image_cleanup_failed",
            storage_path=storage_path,
            error=str(e),
            error_type=type(e).__name__,
        )


# =============================================================================
# Local disk
# =============================================================================


class LocalDiskStorage:
    """Stores images under ``settings.upload_dir``.

    Files are served by the application at ``/uploads/<name>``, so the
    stored path is just the file name.
    """

    URL_PREFIX = "/uploads"

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.upload_dir = Path(settings.upload_dir)

    def public_url(self, file_name: str) -> str:
        base = self.settings.server_url.rstrip("/")
        return f"{base}{self.URL_PREFIX}/{quote(file_name)}"

    def _resolve(self, storage_path: str) -> Path:
        path = (self.upload_dir / storage_path).resolve()
        if self.upload_dir.resolve() not in path.parents:
            raise StorageValidationError(f"Invalid storage path: {storage_path}")
        return path

    async def save(self, image: ImageUpload, prefix: str) -> StoredImage:
        """Validate and write an image to the upload directory.

        Raises:
            StorageError: If validation or the write fails.
        """
        content_type = validate_image(image, self.settings)
        file_name = build_file_name(prefix, content_type)
        path = self._resolve(file_name)

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            await asyncio.to_thread(path.write_bytes, image.content)
        except OSError as e:
            logger.exception("upload_failed", storage_path=file_name, error=str(e))
            raise StorageUploadError(f"Failed to store file: {e}") from e

        logger.info(
            "image_stored",
            backend="disk",
            storage_path=file_name,
            content_type=content_type,
            file_size=len(image.content),
        )
        return StoredImage(url=self.public_url(file_name), storage_path=file_name)

    async def delete(self, storage_path: str) -> bool:
        """Delete a stored file.

        Returns:
            True if deleted, False if it did not exist.
        """
        path = self._resolve(storage_path)
        if not path.exists():
            logger.warning("delete_file_not_found", storage_path=storage_path)
            return False

        try:
            await asyncio.to_thread(path.unlink)
        except OSError as e:
            raise StorageUploadError(f"Failed to delete file: {e}") from e

        logger.info("image_deleted", backend="disk", storage_path=storage_path)
        return True


# =============================================================================
# Firebase Storage
# =============================================================================

# Firebase app singleton
_firebase_app = None
_storage_bucket: "Bucket | None" = None


def _init_firebase(settings: Settings) -> "Bucket":
    """Initialize Firebase Admin SDK and get the storage bucket.

    Raises:
        StorageNotConfiguredError: If Firebase is not configured.
    """
    global _firebase_app, _storage_bucket  # noqa: PLW0603

    if _storage_bucket is not None:
        return _storage_bucket

    if not settings.firebase_configured:
        raise StorageNotConfiguredError

    # Lazy import to avoid loading Firebase SDK unless needed
    import firebase_admin  # noqa: PLC0415
    from firebase_admin import credentials, storage  # noqa: PLC0415

    creds_path = settings.firebase_credentials_path
    if not creds_path or not Path(creds_path).exists():
        raise StorageNotConfiguredError(
            f"Firebase credentials file not found: {creds_path}"
        )

    try:
        if _firebase_app is None:
            _firebase_app = firebase_admin.initialize_app(
                credentials.Certificate(creds_path),
                {"storageBucket": settings.firebase_storage_bucket},
            )
            logger.info(
                "firebase_initialized", bucket=settings.firebase_storage_bucket
            )
        _storage_bucket = storage.bucket()
        return _storage_bucket

    except Exception as e:
        logger.exception("firebase_init_failed", error=str(e))
        raise StorageNotConfiguredError(f"Failed to initialize Firebase: {e}") from e


class FirebaseStorageService:
    """Stores images in a public Firebase Storage bucket."""

    ROOT_FOLDER = "blog"

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._bucket: Bucket | None = None

    def _get_bucket(self) -> "Bucket":
        if self._bucket is None:
            self._bucket = _init_firebase(self.settings)
        return self._bucket

    def _generate_public_url(self, storage_path: str) -> str:
        encoded_path = "/".join(
            quote(part, safe="") for part in storage_path.split("/")
        )
        return (
            f"https://storage.googleapis.com/"
            f"{self.settings.firebase_storage_bucket}/{encoded_path}"
        )

    async def save(self, image: ImageUpload, prefix: str) -> StoredImage:
        """Validate and upload an image.

        Args:
            image: The uploaded file.
            prefix: Folder and file-name prefix (``cover``, ``avatar``).

        Returns:
            Public URL and bucket path of the stored file.

        Raises:
            StorageNotConfiguredError: If Firebase is not configured.
            StorageValidationError: If the content is not an allowed image.
            StorageUploadError: If upload fails.
        """
        if not self.settings.firebase_configured:
            raise StorageNotConfiguredError

        content_type = validate_image(image, self.settings)
        storage_path = (
            f"{self.ROOT_FOLDER}/{prefix}s/{build_file_name(prefix, content_type)}"
        )

        try:
            blob = self._get_bucket().blob(storage_path)
            # File names are unique, so the content never changes
            blob.cache_control = "public, max-age=31536000, immutable"
            await asyncio.to_thread(
                blob.upload_from_string, image.content, content_type=content_type
            )
            await asyncio.to_thread(blob.make_public)
        except StorageError:
            raise
        except Exception as e:
            logger.exception("upload_failed", storage_path=storage_path, error=str(e))
            raise StorageUploadError(f"Failed to upload file: {e}") from e

        logger.info(
            "image_stored",
            backend="firebase",
            storage_path=storage_path,
            content_type=content_type,
            file_size=len(image.content),
        )
        return StoredImage(
            url=self._generate_public_url(storage_path), storage_path=storage_path
        )

    async def delete(self, storage_path: str) -> bool:
        """Delete a file from the bucket.

        Returns:
            True if deleted, False if not found.
        """
        try:
            blob = self._get_bucket().blob(storage_path)
            if not await asyncio.to_thread(blob.exists):
                logger.warning("delete_file_not_found", storage_path=storage_path)
                return False
            await asyncio.to_thread(blob.delete)
        except StorageError:
            raise
        except Exception as e:
            raise StorageUploadError(f"Failed to delete file: {e}") from e

        logger.info("image_deleted", backend="firebase", storage_path=storage_path)
        return True


def create_image_storage(settings: Settings) -> ImageStorage:
    """Pick the Firebase backend when configured, local disk otherwise."""
    if settings.firebase_configured:
        return FirebaseStorageService(settings)
    return LocalDiskStorage(settings)
