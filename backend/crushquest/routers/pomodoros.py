"""
Pomodoro endpoints.

Endpoints:
- POST /: Record a pomodoro
- GET /{pomodoro_id}: Pomodoro detail (visibility checked)
- PATCH /{pomodoro_id}: Edit own pomodoro
- DELETE /{pomodoro_id}: Delete own pomodoro with its likes and comments
- POST /{pomodoro_id}/like, DELETE /{pomodoro_id}/like
- POST /{pomodoro_id}/comments
- DELETE /comments/{comment_id}: Delete own comment
"""

from fastapi import APIRouter, Depends, Request, status

from crushquest.core.auth import (
    OptionalViewer,
    Viewer,
    get_viewer_from_state,
    require_viewer_from_state,
)
from crushquest.core.rate_limit import limiter
from crushquest.models.pomodoro import (
    CommentCreate,
    CommentInfo,
    DeletedResponse,
    FeedPost,
    LikeResponse,
    PomodoroCreate,
    PomodoroRecord,
    PomodoroUpdate,
)
from crushquest.services.feed_service import FeedService
from crushquest.services.pomodoro_service import PomodoroService

router = APIRouter()


def get_pomodoro_service() -> PomodoroService:
    """Dependency to get PomodoroService instance."""
    return PomodoroService()


def get_feed_service() -> FeedService:
    """Dependency to get FeedService instance."""
    return FeedService()


# =============================================================================
# Static Routes (MUST come before parameterized routes)
# =============================================================================


@router.post("", response_model=PomodoroRecord, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
async def create_pomodoro(
    request: Request,
    data: PomodoroCreate,
    viewer: Viewer = Depends(require_viewer_from_state),
    pomodoro_service: PomodoroService = Depends(get_pomodoro_service),
) -> PomodoroRecord:
    return pomodoro_service.create_pomodoro(viewer.user_id, data)


@router.delete("/comments/{comment_id}", response_model=DeletedResponse)
@limiter.limit("30/minute")
async def delete_comment(
    request: Request,
    comment_id: str,
    viewer: Viewer = Depends(require_viewer_from_state),
    pomodoro_service: PomodoroService = Depends(get_pomodoro_service),
) -> DeletedResponse:
    return pomodoro_service.delete_comment(viewer.user_id, comment_id)


# =============================================================================
# Parameterized Routes
# =============================================================================


@router.get("/{pomodoro_id}", response_model=FeedPost)
async def get_pomodoro(
    pomodoro_id: str,
    viewer: OptionalViewer = Depends(get_viewer_from_state),
    feed_service: FeedService = Depends(get_feed_service),
) -> FeedPost:
    """Pomodoro detail. Hidden and missing pomodoros are both 404."""
    return feed_service.get_pomodoro_detail(pomodoro_id, viewer.user_id)


@router.patch("/{pomodoro_id}", response_model=PomodoroRecord)
@limiter.limit("30/minute")
async def update_pomodoro(
    request: Request,
    pomodoro_id: str,
    data: PomodoroUpdate,
    viewer: Viewer = Depends(require_viewer_from_state),
    pomodoro_service: PomodoroService = Depends(get_pomodoro_service),
) -> PomodoroRecord:
    return pomodoro_service.update_pomodoro(viewer.user_id, pomodoro_id, data)


@router.delete("/{pomodoro_id}", response_model=DeletedResponse)
@limiter.limit("30/minute")
async def delete_pomodoro(
    request: Request,
    pomodoro_id: str,
    viewer: Viewer = Depends(require_viewer_from_state),
    pomodoro_service: PomodoroService = Depends(get_pomodoro_service),
) -> DeletedResponse:
    return pomodoro_service.delete_pomodoro(viewer.user_id, pomodoro_id)


@router.post("/{pomodoro_id}/like", response_model=LikeResponse)
@limiter.limit("60/minute")
async def like_pomodoro(
    request: Request,
    pomodoro_id: str,
    viewer: Viewer = Depends(require_viewer_from_state),
    pomodoro_service: PomodoroService = Depends(get_pomodoro_service),
) -> LikeResponse:
    return pomodoro_service.like_pomodoro(viewer.user_id, pomodoro_id)


@router.delete("/{pomodoro_id}/like", response_model=LikeResponse)
@limiter.limit("60/minute")
async def unlike_pomodoro(
    request: Request,
    pomodoro_id: str,
    viewer: Viewer = Depends(require_viewer_from_state),
    pomodoro_service: PomodoroService = Depends(get_pomodoro_service),
) -> LikeResponse:
    return pomodoro_service.unlike_pomodoro(viewer.user_id, pomodoro_id)


@router.post(
    "/{pomodoro_id}/comments", response_model=CommentInfo, status_code=status.HTTP_201_CREATED
)
@limiter.limit("30/minute")
async def add_comment(
    request: Request,
    pomodoro_id: str,
    data: CommentCreate,
    viewer: Viewer = Depends(require_viewer_from_state),
    pomodoro_service: PomodoroService = Depends(get_pomodoro_service),
) -> CommentInfo:
    return pomodoro_service.add_comment(viewer.user_id, pomodoro_id, data)
