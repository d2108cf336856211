"""
Public profiles, user discovery and completion stats.

Rows for user cards come back from PostgREST with embedded aggregates
(`followers:follows!following_id(count)` parses as `[{"count": n}]`); the
validators here flatten them so services deal in plain ints.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from crushquest.models.user import AuthorSummary


class PublicUserProfile(BaseModel):
    """GET /users/{user_id}: another user's profile as the viewer may see it."""

    user_id: str
    user_name: str
    avatar_url: Optional[str] = None
    created_at: Optional[datetime] = None
    followers_only: bool = False
    is_following: bool = False
    follower_count: int = Field(0, ge=0)
    following_count: int = Field(0, ge=0)
    total_completions: int = Field(0, ge=0)
    week_completions: int = Field(0, ge=0)
    can_view_pomodoros: bool = False


class UserCardRow(AuthorSummary):
    """A users row with follower and completion counts embedded."""

    model_config = ConfigDict(populate_by_name=True)

    follower_count: int = Field(0, validation_alias=AliasChoices("follower_count", "followers"))
    completion_count: int = Field(
        0, validation_alias=AliasChoices("completion_count", "completions")
    )

    @field_validator("follower_count", "completion_count", mode="before")
    @classmethod
    def flatten_embedded_count(cls, v: Any) -> Any:
        if isinstance(v, list):
            return v[0].get("count", 0) if v else 0
        return 0 if v is None else v


class UserCard(BaseModel):
    """A user search result."""

    user_id: str
    user_name: str
    avatar_url: Optional[str] = None
    is_following: bool = False
    follower_count: int = 0
    completion_count: int = 0


class SuggestedUser(UserCard):
    suggestion_score: int = 0


class UserSearchResponse(BaseModel):
    users: list[UserCard]


class SuggestedUsersResponse(BaseModel):
    users: list[SuggestedUser]


# =============================================================================
# Stats
# =============================================================================


class PomodoroLaunch(BaseModel):
    """A pomodoro row as the stats queries read it."""

    id: str
    launch_at: datetime
    completed: bool = False


class StatsBucket(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class UserStats(BaseModel):
    """
    Completion stats over an optional [range_start, range_end] window.

    Without a window the stats cover all time, and `total_days` counts from
    the day of the user's first pomodoro to today.
    """

    user_id: str
    timezone: str
    range_start: Optional[datetime] = None
    range_end: Optional[datetime] = None
    total_pomodoros: int = 0
    completed_pomodoros: int = 0
    active_days: int = 0
    total_days: int = 0


class CompletionBucket(BaseModel):
    """
    Completions in one local day, week (from Monday) or month.

    `range_start` / `range_end` are the bucket's inclusive UTC bounds, ready
    to pass to the profile-page locate endpoint.
    """

    bucket_start: date
    count: int = Field(..., ge=0)
    range_start: datetime
    range_end: datetime


class CompletionSeries(BaseModel):
    user_id: str
    bucket: StatsBucket
    timezone: str
    buckets: list[CompletionBucket] = Field(default_factory=list)


# =============================================================================
# Exceptions
# =============================================================================


class UserDataUnavailableError(Exception):
    """Profile, stats or discovery data could not be read from the store."""

    pass
