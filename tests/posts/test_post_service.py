"""Tests for the post service."""

from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from blog.comments.service import CommentService
from blog.posts.service import (
    PostNotFoundError,
    PostPermissionDeniedError,
    PostService,
    PostValidationError,
    clamp_page_size,
    parse_query_int,
)
from blog.storage.service import ImageUpload, StorageUploadError
from tests.conftest import PNG_BYTES, POST_BODY


@pytest.fixture
async def author(make_user):
    return await make_user("author")


@pytest.fixture
async def reader(make_user):
    return await make_user("reader")


def _cover() -> ImageUpload:
    return ImageUpload(PNG_BYTES, "image/png", "cover.png")


class TestCreatePost:
    @pytest.mark.asyncio
    async def test_creates_post_and_author_index(
        self, post_service: PostService, fake_session, author
    ):
        # Act
        post = await post_service.create_post(
            author_id=author.id,
            title="  Hello world  ",
            content='<p onclick="x()">' + "Long enough body text. " * 2 + "</p>",
            tags="Python, web, python",
        )

        # Assert
        assert post.title == "Hello world"
        assert "onclick" not in post.content
        assert post.excerpt.startswith("Long enough body text.")
        assert post.tags == ["python", "web"]
        assert post.likes == []
        assert post.comment_count == 0
        assert post.author.username == "author"

        index = fake_session.rows("posts_by_author")
        assert [(row["author_id"], row["post_id"]) for row in index] == [
            (author.id, post.id)
        ]

    @pytest.mark.asyncio
    async def test_short_title_rejected(self, post_service: PostService, author):
        with pytest.raises(PostValidationError):
            await post_service.create_post(author.id, "Hi", POST_BODY)

    @pytest.mark.asyncio
    async def test_content_measured_without_markup(
        self, post_service: PostService, fake_session, author
    ):
        """Markup does not count towards the minimum content length."""
        with pytest.raises(PostValidationError):
            await post_service.create_post(
                author.id, "Valid title", "<p><strong>short</strong></p>" * 3
            )
        assert fake_session.rows("posts") == []

    @pytest.mark.asyncio
    async def test_cover_image_stored(
        self, post_service: PostService, storage, author
    ):
        post = await post_service.create_post(
            author.id, "With a cover", POST_BODY, cover_image=_cover()
        )

        assert post.cover_image.startswith("http://testserver/uploads/cover-")
        assert len(list(storage.upload_dir.iterdir())) == 1

    @pytest.mark.asyncio
    async def test_cover_removed_when_insert_fails(
        self, post_service: PostService, fake_session, storage, author
    ):
        # Arrange
        fake_session.aexecute = AsyncMock(side_effect=RuntimeError("write timeout"))

        # Act / Assert
        with pytest.raises(RuntimeError):
            await post_service.create_post(
                author.id, "With a cover", POST_BODY, cover_image=_cover()
            )
        assert list(storage.upload_dir.iterdir()) == []


class TestListPosts:
    @pytest.mark.asyncio
    async def test_newest_first_with_pagination(
        self, post_service: PostService, make_post, author
    ):
        # Arrange
        created = [await make_post(author, title=f"Post number {i}") for i in range(5)]

        # Act
        page_one = await post_service.list_posts(page=1, limit=3)
        page_two = await post_service.list_posts(page=2, limit=3)

        # Assert
        assert [p.id for p in page_one.posts] == [c.id for c in created[:1:-1]]
        assert [p.id for p in page_two.posts] == [created[1].id, created[0].id]
        assert page_one.pagination.total == 5
        assert page_one.pagination.pages == 2

    @pytest.mark.asyncio
    async def test_search_and_tag_filters(
        self, post_service: PostService, make_post, author
    ):
        # Arrange
        python_post = await make_post(author, title="Learning Python", tags=["code"])
        travel_post = await make_post(author, title="Trip to Lisbon", tags=["travel"])
        await make_post(author, title="Cooking rice", tags=["food"])

        # Act
        by_title = await post_service.list_posts(search="python")
        by_tags = await post_service.list_posts(tag="travel, CODE")

        # Assert
        assert [p.id for p in by_title.posts] == [python_post.id]
        assert {p.id for p in by_tags.posts} == {python_post.id, travel_post.id}

    @pytest.mark.asyncio
    async def test_comment_count_excludes_owner_replies(
        self,
        post_service: PostService,
        comment_service: CommentService,
        make_post,
        author,
        reader,
    ):
        # Arrange
        post = await make_post(author)
        comment = await comment_service.add_comment(post.id, reader.id, "Hello")
        await comment_service.add_comment(
            post.id, author.id, "Thanks", parent_comment_id=comment.id
        )

        # Act
        listing = await post_service.list_posts()
        detail = await post_service.get_post(post.id)

        # Assert
        assert listing.posts[0].comment_count == 1
        assert detail.post.comment_count == 1
        assert len(detail.comments) == 1
        assert len(detail.comments[0].replies) == 1

    @pytest.mark.parametrize(
        ("limit", "expected"), [(None, 9), (0, 9), (1, 3), (10, 10), (100, 24)]
    )
    def test_page_size_clamped(self, limit, expected):
        assert clamp_page_size(limit) == expected

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [(None, None), ("", None), ("abc", None), ("3", 3), (" 2x", 2), ("-4", -4)],
    )
    def test_parse_query_int(self, raw, expected):
        assert parse_query_int(raw) == expected

    @pytest.mark.asyncio
    async def test_empty_listing_reports_one_page(self, post_service: PostService):
        listing = await post_service.list_posts(search="nothing matches")

        assert listing.posts == []
        assert listing.pagination.total == 0
        assert listing.pagination.pages == 1


class TestUpdatePost:
    @pytest.mark.asyncio
    async def test_partial_update(
        self, post_service: PostService, fake_session, make_post, author
    ):
        # Arrange
        post = await make_post(author, title="Original title", tags=["a"])

        # Act
        updated = await post_service.update_post(
            post.id, author.id, title="Renamed title"
        )

        # Assert
        assert updated.title == "Renamed title"
        assert updated.tags == ["a"]
        assert updated.content == post.content
        assert fake_session.rows("posts_by_author")[0]["title"] == "Renamed title"

    @pytest.mark.asyncio
    async def test_new_cover_replaces_old(
        self, post_service: PostService, storage, make_post, author
    ):
        # Arrange
        post = await make_post(author, cover_image=_cover())
        old_name = post.cover_image.rsplit("/", 1)[-1]

        # Act
        updated = await post_service.update_post(
            post.id, author.id, cover_image=_cover()
        )

        # Assert
        new_name = updated.cover_image.rsplit("/", 1)[-1]
        assert new_name != old_name
        assert [path.name for path in storage.upload_dir.iterdir()] == [new_name]

    @pytest.mark.asyncio
    async def test_only_author_may_update(
        self, post_service: PostService, make_post, author, reader
    ):
        post = await make_post(author)

        with pytest.raises(PostPermissionDeniedError):
            await post_service.update_post(post.id, reader.id, title="Hijacked")

    @pytest.mark.asyncio
    async def test_unknown_post(self, post_service: PostService, author):
        with pytest.raises(PostNotFoundError):
            await post_service.update_post(uuid4(), author.id, title="Anything")


class TestDeletePost:
    @pytest.mark.asyncio
    async def test_cascades_comments_and_cover(
        self,
        post_service: PostService,
        comment_service: CommentService,
        fake_session,
        storage,
        make_post,
        author,
        reader,
    ):
        # Arrange
        post = await make_post(author, cover_image=_cover())
        await comment_service.add_comment(post.id, reader.id, "Hello")

        # Act
        await post_service.delete_post(post.id, author.id)

        # Assert
        assert fake_session.rows("posts") == []
        assert fake_session.rows("posts_by_author") == []
        assert fake_session.rows("comments") == []
        assert fake_session.rows("comments_by_id") == []
        assert list(storage.upload_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_cover_cleanup_failure_does_not_fail_delete(
        self, post_service: PostService, fake_session, make_post, author
    ):
        # Arrange
        post = await make_post(author, cover_image=_cover())
        post_service.storage = AsyncMock()
        post_service.storage.delete.side_effect = StorageUploadError("offline")

        # Act
        await post_service.delete_post(post.id, author.id)

        # Assert
        assert fake_session.rows("posts") == []

    @pytest.mark.asyncio
    async def test_only_author_may_delete(
        self, post_service: PostService, fake_session, make_post, author, reader
    ):
        post = await make_post(author)

        with pytest.raises(PostPermissionDeniedError):
            await post_service.delete_post(post.id, reader.id)
        assert len(fake_session.rows("posts")) == 1


class TestToggleLike:
    @pytest.mark.asyncio
    async def test_like_then_unlike(
        self, post_service: PostService, make_post, author, reader
    ):
        post = await make_post(author)

        liked = await post_service.toggle_like(post.id, reader.id)
        unliked = await post_service.toggle_like(post.id, reader.id)

        assert (liked.likes, liked.liked) == (1, True)
        assert (unliked.likes, unliked.liked) == (0, False)

    @pytest.mark.asyncio
    async def test_likes_are_per_user(
        self, post_service: PostService, make_post, author, reader
    ):
        post = await make_post(author)

        await post_service.toggle_like(post.id, reader.id)
        result = await post_service.toggle_like(post.id, author.id)

        assert result.likes == 2
        detail = await post_service.get_post(post.id)
        assert set(detail.post.likes) == {reader.id, author.id}

    @pytest.mark.asyncio
    async def test_unknown_post(self, post_service: PostService, reader):
        with pytest.raises(PostNotFoundError):
            await post_service.toggle_like(uuid4(), reader.id)
