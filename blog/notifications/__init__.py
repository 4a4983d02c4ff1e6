"""Unread-reply notifications for post authors.

Nothing is stored: the feed is recomputed from the author's posts and their
comments' read receipts on every request.
"""

from .service import NotificationService


__all__ = ["NotificationService"]
