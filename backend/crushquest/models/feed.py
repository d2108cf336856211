"""
Feed, profile-page and pagination result shapes.

Services return these instead of raising on store failures: a populated
`error` means the query failed and `posts` is empty, never partial.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from crushquest.models.pomodoro import FeedPost

EMPTY_FEED_MESSAGE = "No pomodoros found"


class FeedMode(str, Enum):
    """Which authors a feed draws from."""

    GLOBAL = "global"
    FOLLOWING = "following"


class QueryError(BaseModel):
    """A failed store query, kept alongside the (empty) result."""

    source: str
    message: str


class FeedResult(BaseModel):
    posts: list[FeedPost] = Field(default_factory=list)
    error: Optional[QueryError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class FeedResponse(BaseModel):
    """GET /feed and /feed/search. `message` is set when the list is empty."""

    mode: FeedMode
    posts: list[FeedPost]
    message: Optional[str] = None


class UserPomodoroPage(BaseModel):
    """One page of an author's completed pomodoros, newest first."""

    posts: list[FeedPost] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = 20
    error: Optional[QueryError] = None


class UserPomodoroPageResponse(BaseModel):
    posts: list[FeedPost]
    total: int
    page: int
    page_size: int
    message: Optional[str] = None


class PageLocation(BaseModel):
    """Where the earliest pomodoro in a date range lands on the profile page."""

    pomodoro_id: str
    page_number: int = Field(..., ge=1)
    total_count: int = Field(..., ge=0)
