"""Reply targeting and read tracking for a post's comment view.

A notification links to ``/posts/<id>?replyTo=<comment_id>``. When the post
author opens such a link, the referenced thread becomes the reply context
once; after that the author's own choices win. While the author views the
post, unread top-level comments are marked as read, each at most once.
"""

from collections.abc import Sequence
from typing import Protocol
from uuid import UUID


class _Reply(Protocol):
    id: UUID


class _Thread(Protocol):
    id: UUID
    author: object | None
    read_by: list[UUID]
    replies: Sequence[_Reply]


def resolve_reply_target(
    comments: Sequence[_Thread],
    target_id: UUID | str | None,
) -> _Thread | None:
    """Top-level comment that should become the reply context.

    A direct match wins; otherwise the parent of a matching reply; otherwise
    None, including for an empty or unknown target.
    """
    if not target_id:
        return None
    target = str(target_id)

    for comment in comments:
        if str(comment.id) == target:
            return comment

    for comment in comments:
        if any(str(reply.id) == target for reply in comment.replies):
            return comment

    return None


class ReplyTargetSelector:
    """Applies ``resolve_reply_target`` at most once per navigation target.

    ``replying_to`` is the current reply context. Navigating to a different
    target re-arms the auto-selection; choosing or clearing manually does not.
    """

    def __init__(self, target_id: UUID | str | None = None) -> None:
        self.target_id = str(target_id) if target_id else None
        self.replying_to: _Thread | None = None
        self._auto_selected = False

    def navigate(self, target_id: UUID | str | None) -> None:
        target = str(target_id) if target_id else None
        if target != self.target_id:
            self.target_id = target
            self._auto_selected = False

    def choose(self, comment: _Thread) -> None:
        self.replying_to = comment

    def clear(self) -> None:
        self.replying_to = None

    def apply(
        self,
        comments: Sequence[_Thread],
        *,
        is_author: bool,
        is_authenticated: bool,
    ) -> _Thread | None:
        """Auto-select the reply context if allowed; return the current one.

        Only the authenticated post author gets auto-selection, only when no
        context is chosen yet, and only once for the current target. A
        target that does not resolve (comments not loaded yet) leaves the
        selector armed.
        """
        if (
            not self.target_id
            or not is_author
            or not is_authenticated
            or self.replying_to is not None
            or self._auto_selected
        ):
            return self.replying_to

        match = resolve_reply_target(comments, self.target_id)
        if match is not None:
            self.replying_to = match
            self._auto_selected = True
        return self.replying_to


class UnreadCommentTracker:
    """Per-view set of comments already submitted for marking as read."""

    def __init__(self) -> None:
        self._submitted: set[str] = set()

    def pending(
        self,
        comments: Sequence[_Thread],
        viewer_id: UUID | str | None,
        *,
        is_author: bool,
    ) -> list[UUID]:
        """Unread top-level comments to mark now; each is returned once.

        Comments written by the viewer are skipped, as are comments already
        submitted during this view.
        """
        if not is_author or not viewer_id:
            return []
        viewer = str(viewer_id)

        ready: list[UUID] = []
        for comment in comments:
            author_id = getattr(comment.author, "id", None)
            if author_id is not None and str(author_id) == viewer:
                continue
            if viewer in {str(reader) for reader in comment.read_by}:
                continue
            key = str(comment.id)
            if key in self._submitted:
                continue
            self._submitted.add(key)
            ready.append(comment.id)
        return ready

    def release(self, comment_id: UUID | str) -> None:
        """Forget a comment whose read request failed so it is retried."""
        self._submitted.discard(str(comment_id))
