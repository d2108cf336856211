"""
Follow and block endpoints.

Endpoints:
- POST /follow/{user_id}: Follow, or request to follow a followers-only user
- DELETE /follow/{user_id}: Unfollow
- GET /requests: Pending follow requests addressed to me
- POST /requests/{request_id}/approve, POST /requests/{request_id}/reject
- DELETE /requests/to/{user_id}: Cancel my pending request
- POST /block/{user_id}, DELETE /block/{user_id}
- GET /blocks: Users I blocked
- GET /block-status/{user_id}: Block state in both directions
- GET /{user_id}/followers, GET /{user_id}/following: Paginated lists
"""

from fastapi import APIRouter, Depends, Query, Request

from crushquest.core.auth import Viewer, require_viewer_from_state
from crushquest.core.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from crushquest.core.rate_limit import limiter
from crushquest.models.social import (
    BlockListResponse,
    BlockStatus,
    FollowListResponse,
    FollowRequestListResponse,
    FollowResponse,
    RelationshipActionResponse,
)
from crushquest.services.relationship_service import RelationshipService

router = APIRouter()


def get_relationship_service() -> RelationshipService:
    """Dependency to get RelationshipService instance."""
    return RelationshipService()


# =============================================================================
# Static Routes (MUST come before parameterized routes)
# =============================================================================


@router.get("/requests", response_model=FollowRequestListResponse)
@limiter.limit("60/minute")
async def list_follow_requests(
    request: Request,
    viewer: Viewer = Depends(require_viewer_from_state),
    relationship_service: RelationshipService = Depends(get_relationship_service),
) -> FollowRequestListResponse:
    return relationship_service.list_incoming_requests(viewer.user_id)


@router.get("/blocks", response_model=BlockListResponse)
@limiter.limit("60/minute")
async def list_blocked_users(
    request: Request,
    viewer: Viewer = Depends(require_viewer_from_state),
    relationship_service: RelationshipService = Depends(get_relationship_service),
) -> BlockListResponse:
    return relationship_service.list_blocked(viewer.user_id)


@router.post("/follow/{user_id}", response_model=FollowResponse)
@limiter.limit("30/minute")
async def follow_user(
    request: Request,
    user_id: str,
    viewer: Viewer = Depends(require_viewer_from_state),
    relationship_service: RelationshipService = Depends(get_relationship_service),
) -> FollowResponse:
    """Follow a public user; followers-only users receive a request instead."""
    return relationship_service.follow(viewer.user_id, user_id)


@router.delete("/follow/{user_id}", response_model=RelationshipActionResponse)
@limiter.limit("30/minute")
async def unfollow_user(
    request: Request,
    user_id: str,
    viewer: Viewer = Depends(require_viewer_from_state),
    relationship_service: RelationshipService = Depends(get_relationship_service),
) -> RelationshipActionResponse:
    return relationship_service.unfollow(viewer.user_id, user_id)


@router.post("/requests/{request_id}/approve", response_model=FollowResponse)
@limiter.limit("30/minute")
async def approve_follow_request(
    request: Request,
    request_id: str,
    viewer: Viewer = Depends(require_viewer_from_state),
    relationship_service: RelationshipService = Depends(get_relationship_service),
) -> FollowResponse:
    return relationship_service.approve_request(viewer.user_id, request_id)


@router.post("/requests/{request_id}/reject", response_model=RelationshipActionResponse)
@limiter.limit("30/minute")
async def reject_follow_request(
    request: Request,
    request_id: str,
    viewer: Viewer = Depends(require_viewer_from_state),
    relationship_service: RelationshipService = Depends(get_relationship_service),
) -> RelationshipActionResponse:
    return relationship_service.reject_request(viewer.user_id, request_id)


@router.delete("/requests/to/{user_id}", response_model=RelationshipActionResponse)
@limiter.limit("30/minute")
async def cancel_follow_request(
    request: Request,
    user_id: str,
    viewer: Viewer = Depends(require_viewer_from_state),
    relationship_service: RelationshipService = Depends(get_relationship_service),
) -> RelationshipActionResponse:
    return relationship_service.cancel_request(viewer.user_id, user_id)


@router.post("/block/{user_id}", response_model=BlockStatus)
@limiter.limit("30/minute")
async def block_user(
    request: Request,
    user_id: str,
    viewer: Viewer = Depends(require_viewer_from_state),
    relationship_service: RelationshipService = Depends(get_relationship_service),
) -> BlockStatus:
    """Block a user. Follows and follow requests between you are removed."""
    return relationship_service.block(viewer.user_id, user_id)


@router.delete("/block/{user_id}", response_model=RelationshipActionResponse)
@limiter.limit("30/minute")
async def unblock_user(
    request: Request,
    user_id: str,
    viewer: Viewer = Depends(require_viewer_from_state),
    relationship_service: RelationshipService = Depends(get_relationship_service),
) -> RelationshipActionResponse:
    return relationship_service.unblock(viewer.user_id, user_id)


@router.get("/block-status/{user_id}", response_model=BlockStatus)
async def get_block_status(
    user_id: str,
    viewer: Viewer = Depends(require_viewer_from_state),
    relationship_service: RelationshipService = Depends(get_relationship_service),
) -> BlockStatus:
    return relationship_service.get_block_status(viewer.user_id, user_id)


# =============================================================================
# Parameterized Routes
# =============================================================================


@router.get("/{user_id}/followers", response_model=FollowListResponse)
@limiter.limit("60/minute")
async def list_followers(
    request: Request,
    user_id: str,
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    viewer: Viewer = Depends(require_viewer_from_state),
    relationship_service: RelationshipService = Depends(get_relationship_service),
) -> FollowListResponse:
    return relationship_service.list_followers(user_id, page, page_size)


@router.get("/{user_id}/following", response_model=FollowListResponse)
@limiter.limit("60/minute")
async def list_following(
    request: Request,
    user_id: str,
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    viewer: Viewer = Depends(require_viewer_from_state),
    relationship_service: RelationshipService = Depends(get_relationship_service),
) -> FollowListResponse:
    return relationship_service.list_following(user_id, page, page_size)
