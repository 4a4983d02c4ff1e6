"""Thin async client over the blog HTTP API.

Covers the comment and notification endpoints a reader or post owner
drives from a UI, including marking a whole notification feed as read.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog


logger = structlog.get_logger(__name__)


class BlogClientError(Exception):
    """Request failed at the transport level or with an error status."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        code: str | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.code = code
        super().__init__(message)


@dataclass
class BulkReadResult:
    """Outcome of marking several notifications as read.

    ``failed`` maps a comment id to the error it produced. Items marked
    before a failure stay marked.
    """

    succeeded: list[str] = field(default_factory=list)
    failed: dict[str, BlogClientError] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


class BlogClient:
    """Async client bound to one API base URL and, optionally, one token."""

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    async def __aenter__(self) -> "BlogClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = await self._client.request(
                method, url, headers=self._headers(), **kwargs
            )
        except httpx.TimeoutException as e:
            logger.error("api_request_timeout", method=method, path=path)
            raise BlogClientError(f"Request timed out: {method} {path}") from e
        except httpx.RequestError as e:
            logger.error("api_request_error", method=method, path=path, error=str(e))
            raise BlogClientError(f"Request failed: {e}") from e

        if response.is_error:
            message = response.reason_phrase
            code = None
            try:
                body = response.json()
            except ValueError:
                body = None
            if isinstance(body, dict):
                message = body.get("message") or message
                code = body.get("code")

            logger.warning(
                "api_request_rejected",
                method=method,
                path=path,
                status_code=response.status_code,
                code=code,
            )
            raise BlogClientError(message, status_code=response.status_code, code=code)

        return response.json()

    # ==========================================================================
    # Comments
    # ==========================================================================

    async def list_comments(self, post_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/api/posts/{post_id}/comments")

    async def add_comment(
        self,
        post_id: str,
        content: str,
        parent_comment_id: str | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"content": content}
        if parent_comment_id:
            payload["parent_comment_id"] = parent_comment_id
        return await self._request(
            "POST", f"/api/posts/{post_id}/comments", json=payload
        )

    async def mark_comment_as_read(
        self, post_id: str, comment_id: str
    ) -> dict[str, Any]:
        return await self._request(
            "PATCH", f"/api/posts/{post_id}/comments/{comment_id}/read"
        )

    # ==========================================================================
    # Notifications
    # ==========================================================================

    async def get_notifications(
        self, user_id: str, limit: int | None = None
    ) -> list[dict[str, Any]]:
        params = {"limit": limit} if limit is not None else None
        return await self._request(
            "GET", f"/api/users/{user_id}/notifications", params=params
        )

    async def mark_all_notifications_read(
        self, notifications: Iterable[Mapping[str, Any]]
    ) -> BulkReadResult:
        """Mark every notification's comment as read, one request at a time.

        Entries without a post id are skipped. A failing item is recorded
        and the remaining items are still attempted.
        """
        result = BulkReadResult()

        for notification in notifications:
            comment_id = str(notification.get("id"))
            post = notification.get("post") or {}
            post_id = post.get("id")
            if not post_id:
                result.skipped.append(comment_id)
                continue

            try:
                await self.mark_comment_as_read(str(post_id), comment_id)
            except BlogClientError as e:
                result.failed[comment_id] = e
                continue
            result.succeeded.append(comment_id)

        logger.info(
            "notifications_marked_read",
            succeeded=len(result.succeeded),
            failed=len(result.failed),
            skipped=len(result.skipped),
        )
        return result
