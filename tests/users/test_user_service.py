"""Tests for public profiles and profile editing."""

from uuid import uuid4

import pytest

from blog.storage.service import ImageUpload, StorageValidationError
from blog.users.service import (
    InvalidUsernameError,
    UsernameTakenError,
    UserNotFoundError,
    UserService,
)
from tests.conftest import PNG_BYTES


@pytest.fixture
async def ana(make_user):
    return await make_user("ana")


class TestGetUserProfile:
    @pytest.mark.asyncio
    async def test_profile_lists_posts_newest_first(
        self, user_service: UserService, make_post, ana
    ):
        # Arrange
        older = await make_post(ana, title="Older post")
        newer = await make_post(ana, title="Newer post")

        # Act
        profile = await user_service.get_user_profile(ana.id)

        # Assert
        assert profile.user.username == "ana"
        assert "email" not in profile.user.model_dump()
        assert [post.id for post in profile.posts] == [newer.id, older.id]

    @pytest.mark.asyncio
    async def test_profile_without_posts(self, user_service: UserService, ana):
        profile = await user_service.get_user_profile(ana.id)
        assert profile.posts == []

    @pytest.mark.asyncio
    async def test_unknown_user(self, user_service: UserService):
        with pytest.raises(UserNotFoundError):
            await user_service.get_user_profile(uuid4())


class TestUpdateUserProfile:
    @pytest.mark.asyncio
    async def test_rename(self, user_service: UserService, fake_session, ana):
        updated = await user_service.update_user_profile(ana.id, username=" ana_2 ")

        assert updated.username == "ana_2"
        assert fake_session.rows("users")[0]["username"] == "ana_2"

    @pytest.mark.asyncio
    async def test_same_username_writes_nothing(
        self, user_service: UserService, fake_session, ana
    ):
        fake_session.executed.clear()

        await user_service.update_user_profile(ana.id, username="ana")

        assert fake_session.writes() == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("username", "message"),
        [
            ("   ", "Username cannot be empty"),
            ("ab", "between 3 and 30"),
            ("x" * 31, "between 3 and 30"),
        ],
    )
    async def test_invalid_username(
        self, user_service: UserService, ana, username, message
    ):
        with pytest.raises(InvalidUsernameError, match=message):
            await user_service.update_user_profile(ana.id, username=username)

    @pytest.mark.asyncio
    async def test_taken_username(self, user_service: UserService, make_user, ana):
        await make_user("bruno")

        with pytest.raises(UsernameTakenError):
            await user_service.update_user_profile(ana.id, username="bruno")

    @pytest.mark.asyncio
    async def test_avatar_replaced_and_old_file_removed(
        self, user_service: UserService, storage, ana
    ):
        # Arrange
        first = await user_service.update_user_profile(
            ana.id, avatar=ImageUpload(PNG_BYTES, "image/png")
        )

        # Act
        second = await user_service.update_user_profile(
            ana.id, avatar=ImageUpload(PNG_BYTES, "image/png")
        )

        # Assert
        assert first.avatar != second.avatar
        assert second.avatar.startswith("http://testserver/uploads/avatar-")
        stored = [path.name for path in storage.upload_dir.iterdir()]
        assert stored == [second.avatar.rsplit("/", 1)[-1]]

    @pytest.mark.asyncio
    async def test_invalid_avatar_leaves_profile_unchanged(
        self, user_service: UserService, fake_session, ana
    ):
        with pytest.raises(StorageValidationError):
            await user_service.update_user_profile(
                ana.id, avatar=ImageUpload(b"<svg></svg>" * 4, "image/png")
            )
        assert fake_session.rows("users")[0]["avatar_url"] is None
