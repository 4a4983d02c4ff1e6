"""Comment system module.

Provides the one-level comment tree of a post:
- Top-level comments by readers, replies only by the post owner
- Owner replies excluded from visible counts
- Read receipts driving the owner's unread-reply notifications

Note: Router is not exported here to avoid circular imports.
Import directly from blog.comments.router when needed.
"""

from .models import COMMENTS_TABLES_CQL, Comment
from .reply_target import (
    ReplyTargetSelector,
    UnreadCommentTracker,
    resolve_reply_target,
)
from .service import CommentService, count_visible_comments


__all__ = [
    "COMMENTS_TABLES_CQL",
    "Comment",
    "CommentService",
    "ReplyTargetSelector",
    "UnreadCommentTracker",
    "count_visible_comments",
    "resolve_reply_target",
]
