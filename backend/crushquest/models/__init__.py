"""Pydantic models for Crush Quest API."""

from crushquest.models.feed import (
    FeedMode,
    FeedResponse,
    FeedResult,
    PageLocation,
    QueryError,
    UserPomodoroPage,
)
from crushquest.models.leaderboard import LeaderboardEntry, LeaderboardResult, LeaderboardScope
from crushquest.models.pomodoro import (
    CommentNotFoundError,
    FeedPost,
    NotCommentOwnerError,
    NotPomodoroOwnerError,
    PomodoroNotFoundError,
    PomodoroServiceError,
)
from crushquest.models.profile import (
    CompletionSeries,
    PublicUserProfile,
    StatsBucket,
    SuggestedUser,
    UserCard,
    UserDataUnavailableError,
    UserStats,
)
from crushquest.models.social import (
    BlockedRelationshipError,
    FollowRequestNotFoundError,
    RelationshipCacheError,
    RelationshipServiceError,
    SelfBlockError,
    SelfFollowError,
)
from crushquest.models.user import AuthorSummary, UserNotFoundError, UserProfile, UserServiceError

__all__ = [
    # Feed models
    "FeedMode",
    "FeedPost",
    "FeedResponse",
    "FeedResult",
    "PageLocation",
    "QueryError",
    "UserPomodoroPage",
    # Leaderboard models
    "LeaderboardEntry",
    "LeaderboardResult",
    "LeaderboardScope",
    # Profile models
    "CompletionSeries",
    "PublicUserProfile",
    "StatsBucket",
    "SuggestedUser",
    "UserCard",
    "UserStats",
    # User models
    "AuthorSummary",
    "UserProfile",
    # Exceptions
    "BlockedRelationshipError",
    "CommentNotFoundError",
    "FollowRequestNotFoundError",
    "RelationshipCacheError",
    "NotCommentOwnerError",
    "NotPomodoroOwnerError",
    "PomodoroNotFoundError",
    "PomodoroServiceError",
    "RelationshipServiceError",
    "SelfBlockError",
    "SelfFollowError",
    "UserDataUnavailableError",
    "UserNotFoundError",
    "UserServiceError",
]
