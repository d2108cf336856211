"""
User profile endpoints.

Endpoints:
- GET /me: Current user's profile (created on first sign-in)
- PATCH /me/privacy: Toggle followers-only visibility
- DELETE /me: Soft-delete the account
- POST /me/restore: Undo a soft delete
- GET /search: Find users by name
- GET /suggested: Users worth following
- GET /{user_id}: Another user's public profile
- GET /{user_id}/stats: Completion totals over an optional range
- GET /{user_id}/stats/completions: Completions per day, week or month
- GET /{user_id}/pomodoros: An author's profile page of pomodoros
- GET /{user_id}/pomodoros/locate: Page holding the first pomodoro in a date range
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from crushquest.core.auth import (
    OptionalViewer,
    Viewer,
    get_viewer_from_state,
    require_viewer_allow_deleted,
    require_viewer_from_state,
)
from crushquest.core.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from crushquest.core.rate_limit import limiter
from crushquest.models.feed import EMPTY_FEED_MESSAGE, PageLocation, UserPomodoroPageResponse
from crushquest.models.profile import (
    CompletionSeries,
    PublicUserProfile,
    StatsBucket,
    SuggestedUsersResponse,
    UserSearchResponse,
    UserStats,
)
from crushquest.models.user import DeleteAccountResponse, PrivacySettingsUpdate, UserProfile
from crushquest.services.discovery_service import DiscoveryService
from crushquest.services.feed_service import FeedService
from crushquest.services.pagination_service import PaginationService
from crushquest.services.profile_service import ProfileService
from crushquest.services.stats_service import StatsService
from crushquest.services.user_service import UserService

router = APIRouter()


def _as_utc(value: datetime) -> datetime:
    """Bounds without an offset are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _utc_range(
    start: Optional[datetime], end: Optional[datetime]
) -> tuple[Optional[datetime], Optional[datetime]]:
    start = _as_utc(start) if start is not None else None
    end = _as_utc(end) if end is not None else None
    if start is not None and end is not None and start > end:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="start must not be after end"
        )
    return start, end


def get_user_service() -> UserService:
    """Dependency to get UserService instance."""
    return UserService()


def get_feed_service() -> FeedService:
    """Dependency to get FeedService instance."""
    return FeedService()


def get_pagination_service() -> PaginationService:
    """Dependency to get PaginationService instance."""
    return PaginationService()


def get_profile_service() -> ProfileService:
    return ProfileService()


def get_stats_service() -> StatsService:
    return StatsService()


def get_discovery_service() -> DiscoveryService:
    return DiscoveryService()


@router.get("/me", response_model=UserProfile)
async def get_my_profile(
    viewer: Viewer = Depends(require_viewer_from_state),
    user_service: UserService = Depends(get_user_service),
) -> UserProfile:
    """Get current user's profile, creating it on first sign-in."""
    profile, _ = user_service.create_user_if_not_exists(viewer.user_id, viewer.email)
    return profile


@router.patch("/me/privacy", response_model=UserProfile)
@limiter.limit("15/minute")
async def update_privacy(
    request: Request,
    update: PrivacySettingsUpdate,
    viewer: Viewer = Depends(require_viewer_from_state),
    user_service: UserService = Depends(get_user_service),
) -> UserProfile:
    return user_service.set_followers_only(viewer.user_id, update.followers_only)


@router.delete("/me", response_model=DeleteAccountResponse)
@limiter.limit("5/minute")
async def delete_my_account(
    request: Request,
    viewer: Viewer = Depends(require_viewer_from_state),
    user_service: UserService = Depends(get_user_service),
) -> DeleteAccountResponse:
    """Soft-delete the account. Posts disappear from every feed immediately."""
    deleted_at = user_service.soft_delete_user(viewer.user_id)
    return DeleteAccountResponse(
        message="Account deleted. Sign back in and restore it to undo.",
        deleted_at=deleted_at,
    )


@router.post("/me/restore", response_model=UserProfile)
@limiter.limit("5/minute")
async def restore_my_account(
    request: Request,
    viewer: Viewer = Depends(require_viewer_allow_deleted),
    user_service: UserService = Depends(get_user_service),
) -> UserProfile:
    return user_service.restore_user(viewer.user_id)


# Static paths are registered before /{user_id} so they are not captured by it


@router.get("/search", response_model=UserSearchResponse)
@limiter.limit("30/minute")
async def search_users(
    request: Request,
    q: str = Query(..., min_length=1, max_length=100),
    limit: Optional[int] = Query(None, ge=1, le=50),
    viewer: Viewer = Depends(require_viewer_from_state),
    discovery_service: DiscoveryService = Depends(get_discovery_service),
) -> UserSearchResponse:
    """Active users whose name contains `q`, most followed first."""
    return UserSearchResponse(users=discovery_service.search_users(q, viewer.user_id, limit))


@router.get("/suggested", response_model=SuggestedUsersResponse)
@limiter.limit("30/minute")
async def get_suggested_users(
    request: Request,
    limit: Optional[int] = Query(None, ge=1, le=50),
    viewer: Viewer = Depends(require_viewer_from_state),
    discovery_service: DiscoveryService = Depends(get_discovery_service),
) -> SuggestedUsersResponse:
    return SuggestedUsersResponse(
        users=discovery_service.get_suggested_users(viewer.user_id, limit)
    )


@router.get("/{user_id}", response_model=PublicUserProfile)
@limiter.limit("60/minute")
async def get_public_profile(
    request: Request,
    user_id: str,
    tz: Optional[str] = Query(None, description="IANA timezone for the week count"),
    viewer: OptionalViewer = Depends(get_viewer_from_state),
    profile_service: ProfileService = Depends(get_profile_service),
) -> PublicUserProfile:
    """Another user's profile. Deleted or blocked users are 404."""
    return profile_service.get_public_profile(user_id, viewer.user_id, tz)


@router.get("/{user_id}/stats", response_model=UserStats)
@limiter.limit("60/minute")
async def get_user_stats(
    request: Request,
    user_id: str,
    start: Optional[datetime] = Query(None, description="Range start (inclusive)"),
    end: Optional[datetime] = Query(None, description="Range end (inclusive)"),
    tz: Optional[str] = Query(None, description="IANA timezone for day boundaries"),
    viewer: OptionalViewer = Depends(get_viewer_from_state),
    stats_service: StatsService = Depends(get_stats_service),
) -> UserStats:
    start, end = _utc_range(start, end)
    return stats_service.get_user_stats(user_id, viewer.user_id, start, end, tz)


@router.get("/{user_id}/stats/completions", response_model=CompletionSeries)
@limiter.limit("60/minute")
async def get_completion_series(
    request: Request,
    user_id: str,
    bucket: StatsBucket = Query(StatsBucket.DAY),
    start: Optional[datetime] = Query(None, description="Range start (inclusive)"),
    end: Optional[datetime] = Query(None, description="Range end (inclusive)"),
    tz: Optional[str] = Query(None, description="IANA timezone for bucket boundaries"),
    viewer: OptionalViewer = Depends(get_viewer_from_state),
    stats_service: StatsService = Depends(get_stats_service),
) -> CompletionSeries:
    """
    Completions per local day, week or month, oldest first.

    Each bucket's range_start / range_end can be passed straight to
    /{user_id}/pomodoros/locate.
    """
    start, end = _utc_range(start, end)
    return stats_service.get_completion_series(
        user_id, bucket, viewer.user_id, start, end, tz
    )


@router.get("/{user_id}/pomodoros", response_model=UserPomodoroPageResponse)
@limiter.limit("60/minute")
async def get_user_pomodoros(
    request: Request,
    user_id: str,
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    viewer: OptionalViewer = Depends(get_viewer_from_state),
    feed_service: FeedService = Depends(get_feed_service),
) -> UserPomodoroPageResponse:
    """An author's completed pomodoros, newest first. Hidden authors show an empty page."""
    result = feed_service.get_user_pomodoros(user_id, page, page_size, viewer.user_id)
    return UserPomodoroPageResponse(
        posts=result.posts,
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        message=None if result.posts else EMPTY_FEED_MESSAGE,
    )


@router.get("/{user_id}/pomodoros/locate", response_model=PageLocation)
@limiter.limit("60/minute")
async def locate_pomodoro_page(
    request: Request,
    user_id: str,
    start: datetime = Query(..., description="Range start (inclusive)"),
    end: datetime = Query(..., description="Range end (inclusive)"),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    viewer: OptionalViewer = Depends(get_viewer_from_state),
    feed_service: FeedService = Depends(get_feed_service),
    pagination_service: PaginationService = Depends(get_pagination_service),
) -> PageLocation:
    """Find the earliest pomodoro in [start, end] and the profile page it is on."""
    start, end = _utc_range(start, end)

    location = None
    if feed_service.can_view_user(user_id, viewer.user_id):
        location = pagination_service.find_first_pomodoro_in_range(
            user_id, start, end, page_size
        )
    if location is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="No pomodoros in this range"
        )
    return location
