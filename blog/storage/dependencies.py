"""FastAPI helpers for image uploads."""

from fastapi import HTTPException, UploadFile, status

from blog.storage.service import ImageUpload, StorageError


async def read_image_upload(file: UploadFile | None) -> ImageUpload | None:
    """Read an optional multipart file into an ImageUpload.

    Browsers send an empty part when no file was picked; that counts as
    no upload.
    """
    if file is None or not file.filename:
        return None
    content = await file.read()
    if not content:
        return None
    return ImageUpload(
        content=content,
        content_type=file.content_type or "application/octet-stream",
        filename=file.filename,
    )


def handle_storage_error(error: StorageError) -> HTTPException:
    """Convert storage errors to HTTP exceptions."""
    status_map = {
        "file_too_large": status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        "invalid_content_type": status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
        "validation_error": status.HTTP_400_BAD_REQUEST,
        "storage_not_configured": status.HTTP_503_SERVICE_UNAVAILABLE,
    }

    return HTTPException(
        status_code=status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail={"message": error.message, "code": error.code},
    )
