"""Utility modules for the blog API."""

from blog.utils.magic_bytes import detect_image_type, validate_image_bytes


__all__ = ["detect_image_type", "validate_image_bytes"]
