"""
User profile service.

Handles:
- Profile lookup, created on first sign-in
- The followers-only privacy flag
- Soft delete and restore of an account
"""

import logging
import re
from datetime import datetime, timezone
from typing import Optional

from supabase import Client

from crushquest.core.auth import forget_deleted_status
from crushquest.core.database import get_supabase
from crushquest.models.user import UserNotFoundError, UserProfile, UserServiceError

logger = logging.getLogger(__name__)


class UserService:
    """Service for user profile operations."""

    def __init__(self, supabase: Optional[Client] = None):
        self._supabase = supabase

    @property
    def supabase(self) -> Client:
        if self._supabase is None:
            self._supabase = get_supabase()
        return self._supabase

    def get_user_by_id(self, user_id: str) -> Optional[UserProfile]:
        """Fetch a user by id (the Supabase auth uid), deleted or not."""
        result = self.supabase.table("users").select("*").eq("id", user_id).execute()
        if not result.data:
            return None
        return UserProfile(**result.data[0])

    def create_user_if_not_exists(self, user_id: str, email: str) -> tuple[UserProfile, bool]:
        """
        Return the user's profile, creating it on first sign-in.

        Returns:
            (profile, created)
        """
        existing = self.get_user_by_id(user_id)
        if existing is not None:
            return existing, False

        user_name = _user_name_from_email(email) or f"user_{user_id[:8]}"
        result = (
            self.supabase.table("users")
            .insert({"id": user_id, "email": email, "user_name": user_name})
            .execute()
        )
        if not result.data:
            raise UserServiceError(f"Failed to create user {user_id}")

        logger.info("Created user %s", user_id)
        return UserProfile(**result.data[0]), True

    def set_followers_only(self, user_id: str, followers_only: bool) -> UserProfile:
        """
        Toggle followers-only visibility.

        Existing followers keep access; new followers must be approved.
        """
        result = (
            self.supabase.table("users")
            .update(
                {
                    "followers_only": followers_only,
                    "updated_at": datetime.now(timezone.utc).isoformat(),
                }
            )
            .eq("id", user_id)
            .execute()
        )
        if not result.data:
            raise UserNotFoundError(f"User {user_id} not found")
        return UserProfile(**result.data[0])

    def soft_delete_user(self, user_id: str) -> datetime:
        """
        Soft-delete an account by stamping deleted_at.

        The account disappears from feeds and leaderboards immediately and
        can be restored by signing back in.

        Raises:
            UserNotFoundError: If user not found
        """
        now = datetime.now(timezone.utc)
        result = (
            self.supabase.table("users")
            .update({"deleted_at": now.isoformat()})
            .eq("id", user_id)
            .execute()
        )
        if not result.data:
            raise UserNotFoundError(f"User {user_id} not found")

        forget_deleted_status(user_id)
        logger.info("Soft-deleted user %s", user_id)
        return now

    def restore_user(self, user_id: str) -> UserProfile:
        result = (
            self.supabase.table("users").update({"deleted_at": None}).eq("id", user_id).execute()
        )
        if not result.data:
            raise UserNotFoundError(f"User {user_id} not found")

        forget_deleted_status(user_id)
        logger.info("Restored user %s", user_id)
        return UserProfile(**result.data[0])


def _user_name_from_email(email: str) -> str:
    local_part = email.split("@")[0] if email else ""
    return re.sub(r"[^a-z0-9_]", "", local_part.lower())[:30]
