"""Image storage for post covers and avatars.

Files go to Firebase Storage when it is configured and to the local
upload directory otherwise.
"""

from .service import (
    FileTooLargeError,
    FirebaseStorageService,
    ImageStorage,
    ImageUpload,
    InvalidContentTypeError,
    LocalDiskStorage,
    StorageError,
    StorageNotConfiguredError,
    StorageUploadError,
    StorageValidationError,
    StoredImage,
    create_image_storage,
    delete_quietly,
)


__all__ = [
    "FileTooLargeError",
    "FirebaseStorageService",
    "ImageStorage",
    "ImageUpload",
    "InvalidContentTypeError",
    "LocalDiskStorage",
    "StorageError",
    "StorageNotConfiguredError",
    "StorageUploadError",
    "StorageValidationError",
    "StoredImage",
    "create_image_storage",
    "delete_quietly",
]
