"""Tests for the derived unread-reply feed."""

import pytest

from blog.comments.service import CommentService
from blog.notifications.service import NotificationService, normalize_limit


@pytest.fixture
async def owner(make_user):
    return await make_user("owner")


@pytest.fixture
async def reader(make_user):
    return await make_user("reader")


class TestNormalizeLimit:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            (None, 20),
            ("abc", 20),
            ("", 20),
            ("5", 5),
            (7, 7),
            (0, 1),
            (-3, 1),
            (51, 50),
            ("1000", 50),
            ("2.5", 2),
            ("0.5", 1),
            ("nan", 20),
            ("inf", 20),
        ],
    )
    def test_clamps_and_defaults(self, raw, expected):
        assert normalize_limit(raw) == expected


class TestUnreadReplyNotifications:
    @pytest.mark.asyncio
    async def test_scenario_from_comment_to_read(
        self,
        comment_service: CommentService,
        notification_service: NotificationService,
        make_post,
        owner,
        reader,
    ):
        """A reader's comment shows up for the owner until it is marked read."""
        # Arrange
        post = await make_post(owner, title="My first post")
        comment = await comment_service.add_comment(post.id, reader.id, "Nice!")

        # Act
        feed = await notification_service.get_unread_reply_notifications(owner.id)

        # Assert
        assert len(feed) == 1
        entry = feed[0]
        assert entry.id == comment.id
        assert entry.content == "Nice!"
        assert entry.post.id == post.id
        assert entry.post.title == "My first post"
        assert entry.author.username == "reader"

        # Act - owner reads it
        await comment_service.mark_comment_as_read(post.id, comment.id, owner.id)

        # Assert
        assert await notification_service.get_unread_reply_notifications(
            owner.id
        ) == []

    @pytest.mark.asyncio
    async def test_own_comments_and_other_posts_excluded(
        self,
        comment_service: CommentService,
        notification_service: NotificationService,
        make_post,
        owner,
        reader,
    ):
        # Arrange
        own_post = await make_post(owner)
        readers_post = await make_post(reader, title="Reader's post")
        await comment_service.add_comment(own_post.id, owner.id, "My own note")
        await comment_service.add_comment(readers_post.id, owner.id, "Hi reader")

        # Act
        owner_feed = await notification_service.get_unread_reply_notifications(
            owner.id
        )
        reader_feed = await notification_service.get_unread_reply_notifications(
            reader.id
        )

        # Assert
        assert owner_feed == []
        assert [entry.post.id for entry in reader_feed] == [readers_post.id]

    @pytest.mark.asyncio
    async def test_newest_first_across_posts(
        self,
        comment_service: CommentService,
        notification_service: NotificationService,
        make_post,
        owner,
        reader,
    ):
        # Arrange
        first_post = await make_post(owner, title="First post")
        second_post = await make_post(owner, title="Second post")
        oldest = await comment_service.add_comment(first_post.id, reader.id, "a")
        middle = await comment_service.add_comment(second_post.id, reader.id, "b")
        newest = await comment_service.add_comment(first_post.id, reader.id, "c")

        # Act
        feed = await notification_service.get_unread_reply_notifications(owner.id)

        # Assert
        assert [entry.id for entry in feed] == [newest.id, middle.id, oldest.id]

    @pytest.mark.asyncio
    async def test_limit_truncates_newest_first(
        self,
        comment_service: CommentService,
        notification_service: NotificationService,
        make_post,
        owner,
        reader,
    ):
        # Arrange
        post = await make_post(owner)
        created = [
            await comment_service.add_comment(post.id, reader.id, f"comment {i}")
            for i in range(4)
        ]

        # Act
        feed = await notification_service.get_unread_reply_notifications(
            owner.id, limit="2"
        )
        fallback = await notification_service.get_unread_reply_notifications(
            owner.id, limit="many"
        )

        # Assert
        assert [entry.id for entry in feed] == [created[3].id, created[2].id]
        assert len(fallback) == 4

    @pytest.mark.asyncio
    async def test_user_without_posts(
        self, notification_service: NotificationService, reader
    ):
        assert await notification_service.get_unread_reply_notifications(
            reader.id
        ) == []
