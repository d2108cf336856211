"""
Pomodoro ("doro") models.

A pomodoro row arrives from the store with its author, likes and comments
embedded under PostgREST's relation names (`users`, `likes`, `comments`).
Validation aliases map those names onto clearer field names; responses are
serialized with the field names.
"""

from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from crushquest.core.constants import COMMENT_MAX_LENGTH, NOTES_MAX_LENGTH, TASK_MAX_LENGTH
from crushquest.models.user import AuthorSummary, ProfileSummary

# ===========================================
# Embedded records
# ===========================================


class LikeInfo(BaseModel):
    """A like embedded on a pomodoro."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    user_id: str
    user: Optional[ProfileSummary] = Field(
        None, validation_alias=AliasChoices("user", "users")
    )


class CommentInfo(BaseModel):
    """A comment embedded on a pomodoro."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    user_id: str
    comment_text: str
    created_at: Optional[datetime] = None
    user: Optional[ProfileSummary] = Field(
        None, validation_alias=AliasChoices("user", "users")
    )


# ===========================================
# Pomodoro records
# ===========================================


class PomodoroRecord(BaseModel):
    """A pomodoro row without joins (create/update responses)."""

    id: str
    user_id: str
    launch_at: datetime
    task: str
    notes: Optional[str] = None
    image_url: Optional[str] = None
    completed: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class FeedPost(PomodoroRecord):
    """A completed pomodoro as shown in feeds, with author and reactions."""

    model_config = ConfigDict(populate_by_name=True)

    author: AuthorSummary = Field(validation_alias=AliasChoices("author", "users"))
    likes: list[LikeInfo] = Field(default_factory=list)
    comments: list[CommentInfo] = Field(default_factory=list)

    def liked_by(self, user_id: Optional[str]) -> bool:
        return user_id is not None and any(like.user_id == user_id for like in self.likes)


# ===========================================
# Request Models
# ===========================================


class PomodoroCreate(BaseModel):
    """POST /pomodoros: record a session."""

    launch_at: datetime
    task: str = Field(..., min_length=1, max_length=TASK_MAX_LENGTH)
    notes: Optional[str] = Field(None, max_length=NOTES_MAX_LENGTH)
    image_url: Optional[str] = None
    completed: bool = True


class PomodoroUpdate(BaseModel):
    """PATCH /pomodoros/{id}. Only provided fields are updated."""

    task: Optional[str] = Field(None, min_length=1, max_length=TASK_MAX_LENGTH)
    notes: Optional[str] = Field(None, max_length=NOTES_MAX_LENGTH)
    image_url: Optional[str] = None
    completed: Optional[bool] = None


class CommentCreate(BaseModel):
    comment_text: str = Field(..., min_length=1, max_length=COMMENT_MAX_LENGTH)


# ===========================================
# Response Models
# ===========================================


class LikeResponse(BaseModel):
    pomodoro_id: str
    liked: bool


class DeletedResponse(BaseModel):
    id: str
    deleted: bool = True


# ===========================================
# Exceptions
# ===========================================


class PomodoroServiceError(Exception):
    """Base exception for pomodoro service errors."""

    pass


class PomodoroNotFoundError(PomodoroServiceError):
    """Pomodoro missing, or not visible to the viewer."""

    pass


class NotPomodoroOwnerError(PomodoroServiceError):
    """Only the author may modify or delete a pomodoro."""

    pass


class CommentNotFoundError(PomodoroServiceError):
    """Comment missing."""

    pass


class NotCommentOwnerError(PomodoroServiceError):
    """Only the commenter may delete a comment."""

    pass
