"""Unit tests for users router endpoints.

Tests:
- GET /me, PATCH /me/privacy, DELETE /me, POST /me/restore
- GET /search, GET /suggested - user discovery
- GET /{user_id} - public profile, hidden user, store errors
- GET /{user_id}/stats, /stats/completions - ranges, buckets
- GET /{user_id}/pomodoros - profile page, hidden author
- GET /{user_id}/pomodoros/locate - found, empty, hidden, bad range
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from crushquest.core.auth import OptionalViewer, Viewer
from crushquest.models.feed import PageLocation, UserPomodoroPage
from crushquest.models.pomodoro import FeedPost
from crushquest.models.profile import (
    CompletionBucket,
    CompletionSeries,
    PublicUserProfile,
    StatsBucket,
    SuggestedUser,
    UserCard,
    UserDataUnavailableError,
    UserStats,
)
from crushquest.models.user import UserNotFoundError, UserProfile
from supabase_mocks import make_author, make_post_row

PREFIX = "/api/v1/users"
VIEWER_ID = "viewer-uuid-12345"


def _profile(**overrides) -> UserProfile:
    data = {"id": VIEWER_ID, "user_name": "viewer", "email": "viewer@example.com"}
    data.update(overrides)
    return UserProfile(**data)


@pytest.fixture
def mock_user_service():
    return MagicMock()


@pytest.fixture
def mock_feed_service():
    return MagicMock()


@pytest.fixture
def mock_pagination_service():
    return MagicMock()


@pytest.fixture
def mock_profile_service():
    return MagicMock()


@pytest.fixture
def mock_stats_service():
    return MagicMock()


@pytest.fixture
def mock_discovery_service():
    return MagicMock()


@pytest.fixture
def client(
    mock_user_service,
    mock_feed_service,
    mock_pagination_service,
    mock_profile_service,
    mock_stats_service,
    mock_discovery_service,
):
    from crushquest.core.auth import (
        get_viewer_from_state,
        require_viewer_allow_deleted,
        require_viewer_from_state,
    )
    from crushquest.main import app
    from crushquest.routers.users import (
        get_discovery_service,
        get_feed_service,
        get_pagination_service,
        get_profile_service,
        get_stats_service,
        get_user_service,
    )

    viewer = Viewer(user_id=VIEWER_ID, email="viewer@example.com")
    app.dependency_overrides[require_viewer_from_state] = lambda: viewer
    app.dependency_overrides[require_viewer_allow_deleted] = lambda: viewer
    app.dependency_overrides[get_viewer_from_state] = lambda: OptionalViewer(
        user_id=VIEWER_ID, is_authenticated=True
    )
    app.dependency_overrides[get_user_service] = lambda: mock_user_service
    app.dependency_overrides[get_feed_service] = lambda: mock_feed_service
    app.dependency_overrides[get_pagination_service] = lambda: mock_pagination_service
    app.dependency_overrides[get_profile_service] = lambda: mock_profile_service
    app.dependency_overrides[get_stats_service] = lambda: mock_stats_service
    app.dependency_overrides[get_discovery_service] = lambda: mock_discovery_service

    with TestClient(app, raise_server_exceptions=False) as c:
        yield c

    app.dependency_overrides.clear()


# =============================================================================
# /me
# =============================================================================


class TestMe:
    @pytest.mark.unit
    def test_get_profile(self, client, mock_user_service):
        mock_user_service.create_user_if_not_exists.return_value = (_profile(), False)

        response = client.get(f"{PREFIX}/me")

        assert response.status_code == 200
        assert response.json()["user_name"] == "viewer"
        assert response.json()["followers_only"] is False
        mock_user_service.create_user_if_not_exists.assert_called_once_with(
            VIEWER_ID, "viewer@example.com"
        )

    @pytest.mark.unit
    def test_set_followers_only(self, client, mock_user_service):
        mock_user_service.set_followers_only.return_value = _profile(followers_only=True)

        response = client.patch(f"{PREFIX}/me/privacy", json={"followers_only": True})

        assert response.status_code == 200
        assert response.json()["followers_only"] is True
        mock_user_service.set_followers_only.assert_called_once_with(VIEWER_ID, True)

    @pytest.mark.unit
    def test_privacy_requires_flag(self, client):
        assert client.patch(f"{PREFIX}/me/privacy", json={}).status_code == 422

    @pytest.mark.unit
    def test_delete_account(self, client, mock_user_service):
        deleted_at = datetime(2025, 1, 6, 12, 0, tzinfo=timezone.utc)
        mock_user_service.soft_delete_user.return_value = deleted_at

        response = client.delete(f"{PREFIX}/me")

        assert response.status_code == 200
        assert response.json()["deleted_at"].startswith("2025-01-06T12:00:00")

    @pytest.mark.unit
    def test_delete_unknown_account(self, client, mock_user_service):
        mock_user_service.soft_delete_user.side_effect = UserNotFoundError("gone")

        response = client.delete(f"{PREFIX}/me")

        assert response.status_code == 404
        assert response.json()["code"] == "USER_NOT_FOUND"

    @pytest.mark.unit
    def test_restore(self, client, mock_user_service):
        mock_user_service.restore_user.return_value = _profile()

        response = client.post(f"{PREFIX}/me/restore")

        assert response.status_code == 200
        assert response.json()["deleted_at"] is None


# =============================================================================
# Profile page
# =============================================================================


class TestUserPomodoros:
    @pytest.mark.unit
    def test_page(self, client, mock_feed_service):
        mock_feed_service.get_user_pomodoros.return_value = UserPomodoroPage(
            posts=[FeedPost(**make_post_row("doro-1", make_author("a")))],
            total=41,
            page=3,
            page_size=20,
        )

        response = client.get(f"{PREFIX}/a/pomodoros", params={"page": 3})

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 41
        assert body["page"] == 3
        assert body["message"] is None
        mock_feed_service.get_user_pomodoros.assert_called_once_with("a", 3, 20, VIEWER_ID)

    @pytest.mark.unit
    def test_hidden_author_is_empty_page(self, client, mock_feed_service):
        mock_feed_service.get_user_pomodoros.return_value = UserPomodoroPage()

        response = client.get(f"{PREFIX}/private/pomodoros")

        assert response.status_code == 200
        assert response.json()["posts"] == []
        assert response.json()["message"] == "No pomodoros found"

    @pytest.mark.unit
    def test_page_size_bounds(self, client):
        assert client.get(f"{PREFIX}/a/pomodoros", params={"page_size": 101}).status_code == 422


class TestLocatePomodoroPage:
    PARAMS = {"start": "2025-01-06T00:00:00Z", "end": "2025-01-12T23:59:59Z"}

    @pytest.mark.unit
    def test_found(self, client, mock_feed_service, mock_pagination_service):
        mock_feed_service.can_view_user.return_value = True
        mock_pagination_service.find_first_pomodoro_in_range.return_value = PageLocation(
            pomodoro_id="doro-7", page_number=2, total_count=120
        )

        response = client.get(f"{PREFIX}/a/pomodoros/locate", params=self.PARAMS)

        assert response.status_code == 200
        assert response.json() == {"pomodoro_id": "doro-7", "page_number": 2, "total_count": 120}
        args = mock_pagination_service.find_first_pomodoro_in_range.call_args[0]
        assert args[0] == "a"
        assert args[3] == 20

    @pytest.mark.unit
    def test_empty_range(self, client, mock_feed_service, mock_pagination_service):
        mock_feed_service.can_view_user.return_value = True
        mock_pagination_service.find_first_pomodoro_in_range.return_value = None

        response = client.get(f"{PREFIX}/a/pomodoros/locate", params=self.PARAMS)

        assert response.status_code == 404

    @pytest.mark.unit
    def test_hidden_author(self, client, mock_feed_service, mock_pagination_service):
        mock_feed_service.can_view_user.return_value = False

        response = client.get(f"{PREFIX}/a/pomodoros/locate", params=self.PARAMS)

        assert response.status_code == 404
        mock_pagination_service.find_first_pomodoro_in_range.assert_not_called()

    @pytest.mark.unit
    def test_start_after_end(self, client, mock_pagination_service):
        response = client.get(
            f"{PREFIX}/a/pomodoros/locate",
            params={"start": "2025-01-12T00:00:00Z", "end": "2025-01-06T00:00:00Z"},
        )

        assert response.status_code == 400
        mock_pagination_service.find_first_pomodoro_in_range.assert_not_called()

    @pytest.mark.unit
    def test_mixed_offset_bounds_compared_as_utc(
        self, client, mock_feed_service, mock_pagination_service
    ):
        mock_feed_service.can_view_user.return_value = True
        mock_pagination_service.find_first_pomodoro_in_range.return_value = PageLocation(
            pomodoro_id="doro-1", page_number=1, total_count=3
        )

        response = client.get(
            f"{PREFIX}/a/pomodoros/locate",
            params={"start": "2025-01-01T00:00:00Z", "end": "2025-01-07T00:00:00"},
        )

        assert response.status_code == 200
        _, start, end, _ = mock_pagination_service.find_first_pomodoro_in_range.call_args[0]
        assert start == datetime(2025, 1, 1, tzinfo=timezone.utc)
        assert end == datetime(2025, 1, 7, tzinfo=timezone.utc)

    @pytest.mark.unit
    def test_offset_bounds_converted_before_ordering(self, client, mock_pagination_service):
        # 02:00+05:00 is 21:00 UTC on the 6th, after the naive 20:00 end
        response = client.get(
            f"{PREFIX}/a/pomodoros/locate",
            params={"start": "2025-01-07T02:00:00+05:00", "end": "2025-01-06T20:00:00"},
        )

        assert response.status_code == 400


# =============================================================================
# Discovery
# =============================================================================


class TestUserDiscovery:
    @pytest.mark.unit
    def test_search(self, client, mock_discovery_service):
        mock_discovery_service.search_users.return_value = [
            UserCard(user_id="ann", user_name="ann", is_following=True, follower_count=5)
        ]

        response = client.get(f"{PREFIX}/search", params={"q": "an"})

        assert response.status_code == 200
        assert response.json()["users"][0]["user_id"] == "ann"
        assert response.json()["users"][0]["is_following"] is True
        mock_discovery_service.search_users.assert_called_once_with("an", VIEWER_ID, None)

    @pytest.mark.unit
    def test_search_requires_term(self, client, mock_discovery_service):
        assert client.get(f"{PREFIX}/search").status_code == 422
        mock_discovery_service.search_users.assert_not_called()

    @pytest.mark.unit
    def test_suggested(self, client, mock_discovery_service):
        mock_discovery_service.get_suggested_users.return_value = [
            SuggestedUser(user_id="bob", user_name="bob", suggestion_score=55)
        ]

        response = client.get(f"{PREFIX}/suggested", params={"limit": 5})

        assert response.status_code == 200
        assert response.json()["users"][0]["suggestion_score"] == 55
        mock_discovery_service.get_suggested_users.assert_called_once_with(VIEWER_ID, 5)

    @pytest.mark.unit
    def test_suggested_limit_bounds(self, client):
        assert client.get(f"{PREFIX}/suggested", params={"limit": 51}).status_code == 422

    @pytest.mark.unit
    def test_store_error_is_503(self, client, mock_discovery_service):
        mock_discovery_service.search_users.side_effect = UserDataUnavailableError("down")

        response = client.get(f"{PREFIX}/search", params={"q": "an"})

        assert response.status_code == 503
        assert response.json()["code"] == "USER_DATA_UNAVAILABLE"


# =============================================================================
# Public profile and stats
# =============================================================================


class TestPublicProfile:
    @pytest.mark.unit
    def test_profile(self, client, mock_profile_service):
        mock_profile_service.get_public_profile.return_value = PublicUserProfile(
            user_id="a",
            user_name="alice",
            follower_count=3,
            following_count=1,
            total_completions=12,
            week_completions=2,
            can_view_pomodoros=True,
        )

        response = client.get(f"{PREFIX}/a", params={"tz": "Asia/Tokyo"})

        assert response.status_code == 200
        assert response.json()["follower_count"] == 3
        assert response.json()["week_completions"] == 2
        mock_profile_service.get_public_profile.assert_called_once_with(
            "a", VIEWER_ID, "Asia/Tokyo"
        )

    @pytest.mark.unit
    def test_hidden_user_is_404(self, client, mock_profile_service):
        mock_profile_service.get_public_profile.side_effect = UserNotFoundError("blocked")

        response = client.get(f"{PREFIX}/blocked-user")

        assert response.status_code == 404
        assert response.json()["code"] == "USER_NOT_FOUND"

    @pytest.mark.unit
    def test_static_paths_not_treated_as_user_ids(
        self, client, mock_profile_service, mock_discovery_service
    ):
        mock_discovery_service.get_suggested_users.return_value = []

        assert client.get(f"{PREFIX}/suggested").status_code == 200
        mock_profile_service.get_public_profile.assert_not_called()


class TestUserStats:
    @pytest.mark.unit
    def test_stats_with_range(self, client, mock_stats_service):
        mock_stats_service.get_user_stats.return_value = UserStats(
            user_id="a", timezone="UTC", completed_pomodoros=4, total_days=7
        )

        response = client.get(
            f"{PREFIX}/a/stats",
            params={"start": "2025-01-06T00:00:00+05:00", "end": "2025-01-12T23:59:59"},
        )

        assert response.status_code == 200
        assert response.json()["completed_pomodoros"] == 4
        user_id, viewer_id, start, end, tz = mock_stats_service.get_user_stats.call_args[0]
        assert (user_id, viewer_id, tz) == ("a", VIEWER_ID, None)
        assert start == datetime(2025, 1, 5, 19, 0, tzinfo=timezone.utc)
        assert end == datetime(2025, 1, 12, 23, 59, 59, tzinfo=timezone.utc)

    @pytest.mark.unit
    def test_open_range(self, client, mock_stats_service):
        mock_stats_service.get_user_stats.return_value = UserStats(user_id="a", timezone="UTC")

        response = client.get(f"{PREFIX}/a/stats")

        assert response.status_code == 200
        mock_stats_service.get_user_stats.assert_called_once_with(
            "a", VIEWER_ID, None, None, None
        )

    @pytest.mark.unit
    def test_stats_start_after_end(self, client, mock_stats_service):
        response = client.get(
            f"{PREFIX}/a/stats",
            params={"start": "2025-01-12T00:00:00Z", "end": "2025-01-06T00:00:00Z"},
        )

        assert response.status_code == 400
        mock_stats_service.get_user_stats.assert_not_called()

    @pytest.mark.unit
    def test_completion_series(self, client, mock_stats_service):
        mock_stats_service.get_completion_series.return_value = CompletionSeries(
            user_id="a",
            bucket=StatsBucket.WEEK,
            timezone="America/New_York",
            buckets=[
                CompletionBucket(
                    bucket_start="2025-01-06",
                    count=2,
                    range_start=datetime(2025, 1, 6, 5, tzinfo=timezone.utc),
                    range_end=datetime(2025, 1, 13, 4, 59, 59, 999999, tzinfo=timezone.utc),
                )
            ],
        )

        response = client.get(
            f"{PREFIX}/a/stats/completions",
            params={"bucket": "week", "tz": "America/New_York"},
        )

        assert response.status_code == 200
        bucket = response.json()["buckets"][0]
        assert bucket["bucket_start"] == "2025-01-06"
        assert bucket["range_start"].startswith("2025-01-06T05:00:00")
        mock_stats_service.get_completion_series.assert_called_once_with(
            "a", StatsBucket.WEEK, VIEWER_ID, None, None, "America/New_York"
        )

    @pytest.mark.unit
    def test_unknown_bucket(self, client, mock_stats_service):
        response = client.get(f"{PREFIX}/a/stats/completions", params={"bucket": "year"})

        assert response.status_code == 422
        mock_stats_service.get_completion_series.assert_not_called()
