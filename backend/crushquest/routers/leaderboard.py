"""
Leaderboard endpoints.

Endpoints:
- GET /global: This week's top authors the viewer can see
- GET /friends: This week's ranking of the viewer and the users they follow

`tz` is an IANA timezone name that decides when "this week" started.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from crushquest.core.auth import (
    OptionalViewer,
    Viewer,
    get_viewer_from_state,
    require_viewer_from_state,
)
from crushquest.core.rate_limit import limiter
from crushquest.models.feed import EMPTY_FEED_MESSAGE
from crushquest.models.leaderboard import LeaderboardResponse, LeaderboardResult
from crushquest.services.leaderboard_service import LeaderboardService

router = APIRouter()


def get_leaderboard_service() -> LeaderboardService:
    """Dependency to get LeaderboardService instance."""
    return LeaderboardService()


def _leaderboard_response(result: LeaderboardResult) -> LeaderboardResponse:
    return LeaderboardResponse(
        scope=result.scope,
        week_start=result.week_start,
        timezone=result.timezone,
        rows=result.rows,
        message=None if result.rows else EMPTY_FEED_MESSAGE,
    )


@router.get("/global", response_model=LeaderboardResponse)
@limiter.limit("30/minute")
async def global_leaderboard(
    request: Request,
    tz: Optional[str] = Query(None, max_length=64, description="IANA timezone name"),
    viewer: OptionalViewer = Depends(get_viewer_from_state),
    leaderboard_service: LeaderboardService = Depends(get_leaderboard_service),
) -> LeaderboardResponse:
    result = await leaderboard_service.get_global_leaderboard(viewer.user_id, tz)
    return _leaderboard_response(result)


@router.get("/friends", response_model=LeaderboardResponse)
@limiter.limit("30/minute")
async def friends_leaderboard(
    request: Request,
    tz: Optional[str] = Query(None, max_length=64, description="IANA timezone name"),
    viewer: Viewer = Depends(require_viewer_from_state),
    leaderboard_service: LeaderboardService = Depends(get_leaderboard_service),
) -> LeaderboardResponse:
    result = await leaderboard_service.get_friends_leaderboard(viewer.user_id, tz)
    return _leaderboard_response(result)
