"""Unit tests for UserService."""

from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest

from crushquest.services.user_service import UserNotFoundError, UserService, UserServiceError
from supabase_mocks import make_query, route_tables


@pytest.fixture
def sample_user_row():
    """Sample user data from database."""
    return {
        "id": "user-123",
        "user_name": "johndoe",
        "email": "john@example.com",
        "avatar_url": None,
        "followers_only": None,
        "deleted_at": None,
        "is_admin": False,
        "created_at": "2025-01-01T00:00:00+00:00",
        "updated_at": "2025-01-01T00:00:00+00:00",
    }


class TestGetUser:
    @pytest.mark.unit
    def test_found(self, sample_user_row):
        service = UserService(supabase=route_tables(users=make_query(data=[sample_user_row])))

        user = service.get_user_by_id("user-123")

        assert user.user_name == "johndoe"
        assert user.followers_only is False

    @pytest.mark.unit
    def test_not_found(self):
        service = UserService(supabase=route_tables(users=make_query(data=[])))

        assert service.get_user_by_id("nope") is None


class TestCreateUserIfNotExists:
    @pytest.mark.unit
    def test_existing_user_returned(self, sample_user_row):
        users = make_query(data=[sample_user_row])
        service = UserService(supabase=route_tables(users=users))

        user, created = service.create_user_if_not_exists("user-123", "john@example.com")

        assert created is False
        assert user.id == "user-123"
        users.insert.assert_not_called()

    @pytest.mark.unit
    def test_new_user_named_from_email(self, sample_user_row):
        users = make_query(results=[MagicMock(data=[]), MagicMock(data=[sample_user_row])])
        service = UserService(supabase=route_tables(users=users))

        _, created = service.create_user_if_not_exists("user-123", "John.Doe+focus@example.com")

        assert created is True
        users.insert.assert_called_once_with(
            {
                "id": "user-123",
                "email": "John.Doe+focus@example.com",
                "user_name": "johndoefocus",
            }
        )

    @pytest.mark.unit
    def test_fallback_user_name(self, sample_user_row):
        users = make_query(results=[MagicMock(data=[]), MagicMock(data=[sample_user_row])])
        service = UserService(supabase=route_tables(users=users))

        service.create_user_if_not_exists("abcdef123456", "...@example.com")

        assert users.insert.call_args[0][0]["user_name"] == "user_abcdef12"

    @pytest.mark.unit
    def test_insert_returns_nothing(self):
        users = make_query(results=[MagicMock(data=[]), MagicMock(data=[])])
        service = UserService(supabase=route_tables(users=users))

        with pytest.raises(UserServiceError):
            service.create_user_if_not_exists("user-123", "john@example.com")


class TestPrivacy:
    @pytest.mark.unit
    def test_set_followers_only(self, sample_user_row):
        users = make_query(data=[{**sample_user_row, "followers_only": True}])
        service = UserService(supabase=route_tables(users=users))

        user = service.set_followers_only("user-123", True)

        assert user.followers_only is True
        update = users.update.call_args[0][0]
        assert update["followers_only"] is True
        assert "updated_at" in update

    @pytest.mark.unit
    def test_unknown_user(self):
        service = UserService(supabase=route_tables(users=make_query(data=[])))

        with pytest.raises(UserNotFoundError):
            service.set_followers_only("nope", True)


class TestSoftDelete:
    @pytest.mark.unit
    def test_soft_delete_stamps_deleted_at(self, sample_user_row):
        users = make_query(data=[sample_user_row])
        service = UserService(supabase=route_tables(users=users))

        with patch("crushquest.services.user_service.forget_deleted_status") as forget:
            deleted_at = service.soft_delete_user("user-123")

        assert isinstance(deleted_at, datetime)
        assert users.update.call_args[0][0] == {"deleted_at": deleted_at.isoformat()}
        forget.assert_called_once_with("user-123")

    @pytest.mark.unit
    def test_soft_delete_unknown_user(self):
        service = UserService(supabase=route_tables(users=make_query(data=[])))

        with pytest.raises(UserNotFoundError):
            service.soft_delete_user("nope")

    @pytest.mark.unit
    def test_restore_clears_deleted_at(self, sample_user_row):
        users = make_query(data=[sample_user_row])
        service = UserService(supabase=route_tables(users=users))

        with patch("crushquest.services.user_service.forget_deleted_status") as forget:
            user = service.restore_user("user-123")

        assert user.is_active
        users.update.assert_called_once_with({"deleted_at": None})
        forget.assert_called_once_with("user-123")
