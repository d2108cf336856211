"""
Public user profiles.

Another user's profile card: name, avatar, follower / following counts,
completion totals, and whether the viewer may open their pomodoros.
Soft-deleted users and users blocked in either direction look missing.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from supabase import Client

from crushquest.core.database import STORE_ERRORS, get_supabase
from crushquest.models.profile import PublicUserProfile, UserDataUnavailableError
from crushquest.models.user import AuthorSummary, UserNotFoundError
from crushquest.services.leaderboard_service import resolve_timezone, week_start_utc
from crushquest.services.relationship_service import RelationshipService
from crushquest.services.visibility import can_view_author

logger = logging.getLogger(__name__)

PROFILE_COLUMNS = "id, user_name, avatar_url, followers_only, deleted_at, created_at"


class ProfileService:
    """Service for other users' public profiles."""

    def __init__(
        self,
        supabase: Optional[Client] = None,
        relationships: Optional[RelationshipService] = None,
    ) -> None:
        self._supabase = supabase
        self._relationships = relationships

    @property
    def supabase(self) -> Client:
        if self._supabase is None:
            self._supabase = get_supabase()
        return self._supabase

    @property
    def relationships(self) -> RelationshipService:
        if self._relationships is None:
            self._relationships = RelationshipService(supabase=self._supabase)
        return self._relationships

    def get_public_profile(
        self,
        user_id: str,
        viewer_id: Optional[str] = None,
        tz_name: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> PublicUserProfile:
        """
        Profile of `user_id` as `viewer_id` sees it.

        Followers-only users still show their card; `can_view_pomodoros`
        says whether their posts are open to the viewer. `week_completions`
        counts from Monday 00:00 in `tz_name`.

        Raises:
            UserNotFoundError: missing, soft-deleted, or blocked either way
            UserDataUnavailableError: a store query failed
        """
        try:
            result = (
                self.supabase.table("users").select(PROFILE_COLUMNS).eq("id", user_id).execute()
            )
            if not result.data:
                raise UserNotFoundError(f"User {user_id} not found")
            row = result.data[0]
            author = AuthorSummary(**row)
            if not author.is_active:
                raise UserNotFoundError(f"User {user_id} not found")

            context = self.relationships.load_context(viewer_id)
            if context.is_blocked_with(user_id):
                raise UserNotFoundError(f"User {user_id} not found")

            _, resolved_tz = resolve_timezone(tz_name)
            week_start = week_start_utc(now or datetime.now(timezone.utc), resolved_tz)
            follower_count = self._count_active_edges(user_id, "following_id", "follower_id")
            following_count = self._count_active_edges(user_id, "follower_id", "following_id")
            total_completions = self._count_completions(user_id)
            week_completions = self._count_completions(user_id, since=week_start)
        except STORE_ERRORS as e:
            logger.error(
                "Public profile lookup failed for %s: %s",
                user_id,
                e,
                extra={"viewer_id": viewer_id},
            )
            raise UserDataUnavailableError(f"Profile {user_id} unavailable") from e

        return PublicUserProfile(
            user_id=author.id,
            user_name=author.user_name,
            avatar_url=author.avatar_url,
            created_at=row.get("created_at"),
            followers_only=author.followers_only,
            is_following=context.follows(user_id) and not context.is_self(user_id),
            follower_count=follower_count,
            following_count=following_count,
            total_completions=total_completions,
            week_completions=week_completions,
            can_view_pomodoros=can_view_author(context, user_id, author.followers_only),
        )

    def _count_active_edges(self, user_id: str, match_column: str, other_column: str) -> int:
        """Follow edges on `match_column` whose other end is not soft-deleted."""
        result = (
            self.supabase.table("follows")
            .select(f"id, other:{other_column}!inner(deleted_at)", count="exact", head=True)
            .eq(match_column, user_id)
            .is_("other.deleted_at", "null")
            .execute()
        )
        return result.count or 0

    def _count_completions(self, user_id: str, since: Optional[datetime] = None) -> int:
        query = (
            self.supabase.table("pomodoros")
            .select("id", count="exact", head=True)
            .eq("user_id", user_id)
            .eq("completed", True)
        )
        if since is not None:
            query = query.gte("launch_at", since.isoformat())
        return query.execute().count or 0
