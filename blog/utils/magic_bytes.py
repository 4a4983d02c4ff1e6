"""Magic bytes detection for uploaded images.

Cover images and avatars are served back to browsers, so the declared
Content-Type is never trusted on its own: the first bytes of the file must
match a known raster image signature. SVG is deliberately not recognized.
"""

from typing import NamedTuple


MIN_BYTES_FOR_DETECTION = 4
WEBP_HEADER_LENGTH = 12


class MagicSignature(NamedTuple):
    """Magic bytes signature for a file type."""

    bytes_pattern: bytes
    mime_type: str
    offset: int = 0


# Reference: https://en.wikipedia.org/wiki/List_of_file_signatures
MAGIC_SIGNATURES: list[MagicSignature] = [
    MagicSignature(b"\xff\xd8\xff", "image/jpeg"),
    MagicSignature(b"\x89PNG\r\n\x1a\n", "image/png"),
    MagicSignature(b"GIF87a", "image/gif"),
    MagicSignature(b"GIF89a", "image/gif"),
    MagicSignature(b"BM", "image/bmp"),
    MagicSignature(b"ftypavif", "image/avif", offset=4),
]

# Extension used when storing a file of a detected type
IMAGE_EXTENSIONS: dict[str, str] = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/bmp": ".bmp",
    "image/avif": ".avif",
}


def detect_image_type(data: bytes) -> str | None:
    """Detect an image MIME type from the file's magic bytes.

    Args:
        data: First 64+ bytes of file content.

    Returns:
        Detected MIME type or None if unknown.
    """
    if len(data) < MIN_BYTES_FOR_DETECTION:
        return None

    # WebP is RIFF with WEBP at offset 8; other RIFF files are not images
    if data[:4] == b"RIFF":
        if len(data) >= WEBP_HEADER_LENGTH and data[8:12] == b"WEBP":
            return "image/webp"
        return None

    for sig in MAGIC_SIGNATURES:
        end = sig.offset + len(sig.bytes_pattern)
        if data[sig.offset : end] == sig.bytes_pattern:
            return sig.mime_type

    return None


def validate_image_bytes(
    data: bytes,
    declared_type: str | None,
    allowed_types: frozenset[str],
) -> tuple[bool, str | None, str | None]:
    """Validate file content against the declared Content-Type.

    The detected type must be allowed and, when a type was declared, both
    must be images. An exact match is not required since browsers often
    report ``image/jpg`` or a generic type for valid files.

    Args:
        data: First 64+ bytes of file content.
        declared_type: Content-Type sent with the upload.
        allowed_types: MIME types accepted for storage.

    Returns:
        Tuple of (is_valid, detected_type, error_message).
    """
    detected_type = detect_image_type(data)
    if detected_type is None:
        return (False, None, "Unable to detect an image type from file content")

    if detected_type not in allowed_types:
        return (
            False,
            detected_type,
            f"File type '{detected_type}' is not allowed. "
            f"Allowed: {', '.join(sorted(allowed_types))}",
        )

    if declared_type:
        declared_base = declared_type.split(";")[0].strip().lower()
        if not declared_base.startswith("image/"):
            return (
                False,
                detected_type,
                f"Declared type '{declared_base}' is not an image",
            )

    return (True, detected_type, None)
