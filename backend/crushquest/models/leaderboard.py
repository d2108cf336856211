"""Weekly leaderboard models."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from crushquest.models.feed import QueryError
from crushquest.models.user import AuthorSummary


class LeaderboardScope(str, Enum):
    GLOBAL = "global"
    FRIENDS = "friends"


class LeaderboardEntry(BaseModel):
    """
    One ranked user.

    Keyed by `user_id`. `is_following` is None on the global board. On the
    friends board it is True for every followed user and False on the
    viewer's own row, because nobody follows themselves. Clients that need to
    pick out the viewer's row compare `user_id`, not this flag.
    """

    user_id: str
    user_name: str
    avatar_url: Optional[str] = None
    completion_count: int = Field(..., ge=0)
    is_following: Optional[bool] = None


class LeaderboardResult(BaseModel):
    scope: LeaderboardScope
    week_start: datetime
    timezone: str
    rows: list[LeaderboardEntry] = Field(default_factory=list)
    error: Optional[QueryError] = None


class LeaderboardResponse(BaseModel):
    scope: LeaderboardScope
    week_start: datetime
    timezone: str
    rows: list[LeaderboardEntry]
    message: Optional[str] = None


class CompletionRow(BaseModel):
    """A completed pomodoro inside the leaderboard window, author joined."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str
    launch_at: datetime
    author: AuthorSummary = Field(validation_alias=AliasChoices("author", "users"))
