"""
Follow, follow-request and block models.

Edges are directional rows (`follows.follower_id -> following_id`,
`blocks.blocker_id -> blocked_id`); a block hides content both ways.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from crushquest.models.user import ProfileSummary


class BlockEdge(BaseModel):
    blocker_id: str
    blocked_id: str


class FollowOutcome(str, Enum):
    """Result of POST /social/follow/{id}."""

    FOLLOWING = "following"
    REQUESTED = "requested"


class FollowResponse(BaseModel):
    user_id: str
    status: FollowOutcome


class RelationshipActionResponse(BaseModel):
    """Generic acknowledgement for unfollow, unblock, reject and cancel."""

    user_id: str
    action: str


class FollowListEntry(ProfileSummary):
    followed_at: Optional[datetime] = None


class FollowListResponse(BaseModel):
    users: list[FollowListEntry]
    total: int
    page: int
    page_size: int


class FollowRequestInfo(BaseModel):
    """A pending follow request, with the requester's profile."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    requester_id: str
    target_id: str
    status: str = "pending"
    created_at: Optional[datetime] = None
    requester: Optional[ProfileSummary] = Field(
        None, validation_alias=AliasChoices("requester", "users")
    )


class FollowRequestListResponse(BaseModel):
    requests: list[FollowRequestInfo]


class BlockedUserInfo(BaseModel):
    user: ProfileSummary
    blocked_at: Optional[datetime] = None


class BlockListResponse(BaseModel):
    blocked: list[BlockedUserInfo]


class BlockStatus(BaseModel):
    """Both block directions between the viewer and another user."""

    user_id: str
    i_blocked: bool = False
    they_blocked: bool = False

    @property
    def is_blocked(self) -> bool:
        return self.i_blocked or self.they_blocked


# =============================================================================
# Exceptions
# =============================================================================


class RelationshipServiceError(Exception):
    """Base exception for follow/block errors."""

    pass


class SelfFollowError(RelationshipServiceError):
    pass


class SelfBlockError(RelationshipServiceError):
    pass


class BlockedRelationshipError(RelationshipServiceError):
    """A block exists between the two users in either direction."""

    pass


class FollowRequestNotFoundError(RelationshipServiceError):
    pass


class RelationshipCacheError(RelationshipServiceError):
    """
    The change was saved but cached relationship sets could not be invalidated.

    Retrying the same action re-runs the invalidation.
    """

    pass
