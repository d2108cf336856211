"""
Pydantic models for users and the author data embedded in posts.

`followers_only` is normalized here and nowhere else: legacy rows may carry
NULL, which parses to False (the column default since the followers-only
migration). Everything downstream can treat the flag as a plain bool.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator


class ProfileSummary(BaseModel):
    """Minimal user card (likes, comments, follower lists)."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_name: str
    avatar_url: Optional[str] = None


class VisibilityFlags(BaseModel):
    """users.followers_only / deleted_at, as stored."""

    followers_only: bool = False
    deleted_at: Optional[datetime] = None

    @field_validator("followers_only", mode="before")
    @classmethod
    def normalize_followers_only(cls, v: Any) -> Any:
        return False if v is None else v

    @property
    def is_active(self) -> bool:
        return self.deleted_at is None


class AuthorSummary(VisibilityFlags):
    """Author joined onto a pomodoro row, with the fields visibility needs."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_name: str
    avatar_url: Optional[str] = None


class UserProfile(VisibilityFlags):
    """Full profile for the authenticated user (GET /users/me)."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_name: str
    email: Optional[str] = None
    avatar_url: Optional[str] = None
    is_admin: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PrivacySettingsUpdate(BaseModel):
    """PATCH /users/me/privacy."""

    followers_only: bool


class DeleteAccountResponse(BaseModel):
    """Response for DELETE /users/me."""

    message: str
    deleted_at: datetime


# =============================================================================
# Exceptions
# =============================================================================


class UserServiceError(Exception):
    """Base exception for user service errors."""

    pass


class UserNotFoundError(UserServiceError):
    """User not found (or soft-deleted)."""

    pass
