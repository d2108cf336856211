"""
Feed endpoints.

Endpoints:
- GET /: Home feed in global or following mode
- GET /search: Search completed pomodoros by task or notes

Store failures degrade to an empty feed with a message, never an error
status.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from crushquest.core.auth import OptionalViewer, get_viewer_from_state
from crushquest.core.constants import MAX_FEED_FETCH_LIMIT, SEARCH_TERM_MAX_LENGTH
from crushquest.core.rate_limit import limiter
from crushquest.models.feed import EMPTY_FEED_MESSAGE, FeedMode, FeedResponse, FeedResult
from crushquest.services.feed_service import FeedService

router = APIRouter()


def get_feed_service() -> FeedService:
    """Dependency to get FeedService instance."""
    return FeedService()


def _feed_response(result: FeedResult, mode: FeedMode) -> FeedResponse:
    return FeedResponse(
        mode=mode,
        posts=result.posts,
        message=None if result.posts else EMPTY_FEED_MESSAGE,
    )


@router.get("", response_model=FeedResponse)
@limiter.limit("60/minute")
async def get_feed(
    request: Request,
    mode: FeedMode = Query(FeedMode.GLOBAL, description="global or following"),
    limit: Optional[int] = Query(None, ge=1, le=MAX_FEED_FETCH_LIMIT),
    viewer: OptionalViewer = Depends(get_viewer_from_state),
    feed_service: FeedService = Depends(get_feed_service),
) -> FeedResponse:
    """Most recent completed pomodoros the viewer may see, newest first."""
    result = await feed_service.get_feed(limit, viewer.user_id, mode)
    return _feed_response(result, mode)


@router.get("/search", response_model=FeedResponse)
@limiter.limit("30/minute")
async def search_feed(
    request: Request,
    q: str = Query(..., min_length=1, max_length=SEARCH_TERM_MAX_LENGTH),
    viewer: OptionalViewer = Depends(get_viewer_from_state),
    feed_service: FeedService = Depends(get_feed_service),
) -> FeedResponse:
    """Search tasks and notes. Results follow global-feed visibility."""
    result = feed_service.search_pomodoros(q, viewer.user_id)
    return _feed_response(result, FeedMode.GLOBAL)
