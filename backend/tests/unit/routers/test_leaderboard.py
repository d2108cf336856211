"""Unit tests for leaderboard router endpoints.

Tests:
- GET /global - anonymous and signed-in, timezone passthrough
- GET /friends - requires authentication
- Empty and failed boards
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from crushquest.core.auth import OptionalViewer, Viewer
from crushquest.models.feed import QueryError
from crushquest.models.leaderboard import LeaderboardEntry, LeaderboardResult, LeaderboardScope

PREFIX = "/api/v1/leaderboard"
VIEWER_ID = "viewer-uuid-12345"
WEEK_START = datetime(2025, 1, 6, 5, 0, tzinfo=timezone.utc)


def _result(scope, rows=(), error=None) -> LeaderboardResult:
    return LeaderboardResult(
        scope=scope,
        week_start=WEEK_START,
        timezone="America/New_York",
        rows=list(rows),
        error=error,
    )


@pytest.fixture
def mock_leaderboard_service():
    service = MagicMock()
    service.get_global_leaderboard = AsyncMock(return_value=_result(LeaderboardScope.GLOBAL))
    service.get_friends_leaderboard = AsyncMock(return_value=_result(LeaderboardScope.FRIENDS))
    return service


@pytest.fixture
def client(mock_leaderboard_service):
    from crushquest.main import app
    from crushquest.routers.leaderboard import get_leaderboard_service

    app.dependency_overrides[get_leaderboard_service] = lambda: mock_leaderboard_service

    with TestClient(app, raise_server_exceptions=False) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
def signed_in(client):
    from crushquest.core.auth import get_viewer_from_state, require_viewer_from_state
    from crushquest.main import app

    app.dependency_overrides[require_viewer_from_state] = lambda: Viewer(user_id=VIEWER_ID)
    app.dependency_overrides[get_viewer_from_state] = lambda: OptionalViewer(
        user_id=VIEWER_ID, is_authenticated=True
    )
    return client


class TestGlobalLeaderboard:
    @pytest.mark.unit
    def test_anonymous(self, client, mock_leaderboard_service):
        mock_leaderboard_service.get_global_leaderboard.return_value = _result(
            LeaderboardScope.GLOBAL,
            rows=[LeaderboardEntry(user_id="a", user_name="alice", completion_count=3)],
        )

        response = client.get(f"{PREFIX}/global")

        assert response.status_code == 200
        body = response.json()
        assert body["scope"] == "global"
        assert body["timezone"] == "America/New_York"
        assert body["rows"][0]["completion_count"] == 3
        assert body["message"] is None
        mock_leaderboard_service.get_global_leaderboard.assert_awaited_once_with(None, None)

    @pytest.mark.unit
    def test_timezone_passed_through(self, signed_in, mock_leaderboard_service):
        signed_in.get(f"{PREFIX}/global", params={"tz": "America/Los_Angeles"})

        mock_leaderboard_service.get_global_leaderboard.assert_awaited_once_with(
            VIEWER_ID, "America/Los_Angeles"
        )

    @pytest.mark.unit
    def test_failed_query_is_empty_board(self, client, mock_leaderboard_service):
        mock_leaderboard_service.get_global_leaderboard.return_value = _result(
            LeaderboardScope.GLOBAL, error=QueryError(source="posts", message="timeout")
        )

        response = client.get(f"{PREFIX}/global")

        assert response.status_code == 200
        assert response.json()["rows"] == []
        assert response.json()["message"] == "No pomodoros found"


class TestFriendsLeaderboard:
    @pytest.mark.unit
    def test_signed_in(self, signed_in, mock_leaderboard_service):
        mock_leaderboard_service.get_friends_leaderboard.return_value = _result(
            LeaderboardScope.FRIENDS,
            rows=[
                LeaderboardEntry(
                    user_id="a", user_name="alice", completion_count=2, is_following=True
                )
            ],
        )

        response = signed_in.get(f"{PREFIX}/friends")

        assert response.status_code == 200
        assert response.json()["rows"][0]["is_following"] is True
        mock_leaderboard_service.get_friends_leaderboard.assert_awaited_once_with(VIEWER_ID, None)

    @pytest.mark.unit
    def test_requires_auth(self, client, mock_leaderboard_service):
        response = client.get(f"{PREFIX}/friends")

        assert response.status_code == 401
        mock_leaderboard_service.get_friends_leaderboard.assert_not_awaited()
