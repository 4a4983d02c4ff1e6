"""Async HTTP client for the blog API."""

from .client import BlogClient, BlogClientError, BulkReadResult


__all__ = ["BlogClient", "BlogClientError", "BulkReadResult"]
