"""
Finding people to follow.

Handles:
- Searching active users by name
- Suggesting users from the viewer's graph and recent activity

Neither list ever includes the viewer, soft-deleted users, or anyone
blocked in either direction. Suggestions also skip users already followed.
"""

import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from supabase import Client

from crushquest.core.config import get_settings
from crushquest.core.constants import USER_CARD_SELECT
from crushquest.core.database import STORE_ERRORS, get_supabase
from crushquest.models.profile import (
    SuggestedUser,
    UserCard,
    UserCardRow,
    UserDataUnavailableError,
)
from crushquest.services.feed_service import clean_search_term
from crushquest.services.relationship_service import RelationshipService
from crushquest.services.visibility import RelationshipContext

logger = logging.getLogger(__name__)

# Suggestion weights
MUTUAL_FOLLOW_POINTS = 50
ENGAGEMENT_POINTS = 10
RECENT_COMPLETION_POINTS = 5
RECENT_ACTIVITY_DAYS = 7


def is_discoverable(context: RelationshipContext, row: UserCardRow) -> bool:
    """Active, not the viewer, and not blocked either way."""
    return (
        context.complete
        and row.is_active
        and not context.is_self(row.id)
        and not context.is_blocked_with(row.id)
    )


def score_suggestions(
    context: RelationshipContext,
    followed_by_followed: Iterable[str],
    engaged_user_ids: Iterable[str],
    recently_active_ids: Iterable[str],
) -> Counter:
    """
    Weighted suggestion scores.

    50 per followed user who follows them, 10 per like or comment they left
    on the viewer's posts, 5 per completion in the last week. Users the
    viewer follows, blocked users and the viewer are dropped.
    """
    scores: Counter = Counter()
    for user_id in followed_by_followed:
        scores[user_id] += MUTUAL_FOLLOW_POINTS
    for user_id in engaged_user_ids:
        scores[user_id] += ENGAGEMENT_POINTS
    for user_id in recently_active_ids:
        scores[user_id] += RECENT_COMPLETION_POINTS

    return Counter(
        {
            user_id: score
            for user_id, score in scores.items()
            if not context.is_self(user_id)
            and not context.follows(user_id)
            and not context.is_blocked_with(user_id)
        }
    )


class DiscoveryService:
    """Service for user search and follow suggestions."""

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

    # =========================================================================
    # Search
    # =========================================================================

    def search_users(
        self, term: str, viewer_id: str, limit: Optional[int] = None
    ) -> list[UserCard]:
        """
        Users whose name contains `term`, most followed first.

        Raises:
            UserDataUnavailableError: a store query failed
        """
        settings = get_settings()
        limit = limit or settings.user_search_limit
        cleaned = clean_search_term(term)
        if not cleaned:
            return []

        try:
            context = self.relationships.load_context(viewer_id)
            excluded = sorted(context.blocked_ids | context.blocker_ids | {viewer_id})
            result = (
                self.supabase.table("users")
                .select(USER_CARD_SELECT)
                .ilike("user_name", f"%{cleaned}%")
                .is_("deleted_at", "null")
                .not_.in_("id", excluded)
                .eq("completions.completed", True)
                .order("user_name")
                .limit(settings.discovery_scan_limit)
                .execute()
            )
        except STORE_ERRORS as e:
            logger.error("User search failed: %s", e, extra={"viewer_id": viewer_id})
            raise UserDataUnavailableError("User search unavailable") from e

        rows = [UserCardRow(**row) for row in result.data or []]
        cards = [
            UserCard(
                user_id=row.id,
                user_name=row.user_name,
                avatar_url=row.avatar_url,
                is_following=context.follows(row.id),
                follower_count=row.follower_count,
                completion_count=row.completion_count,
            )
            for row in rows
            if is_discoverable(context, row)
        ]
        cards.sort(key=lambda card: (-card.follower_count, card.user_name))
        return cards[:limit]

    # =========================================================================
    # Suggestions
    # =========================================================================

    def get_suggested_users(
        self,
        viewer_id: str,
        limit: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> list[SuggestedUser]:
        """
        Users worth following, highest score first, then by name.

        Raises:
            UserDataUnavailableError: a store query failed
        """
        settings = get_settings()
        limit = limit or settings.suggested_users_limit
        scan = settings.discovery_scan_limit
        since = (now or datetime.now(timezone.utc)) - timedelta(days=RECENT_ACTIVITY_DAYS)

        try:
            context = self.relationships.load_context(viewer_id)
            scores = score_suggestions(
                context,
                self._followed_by_followed(context, scan),
                self._engaged_user_ids(viewer_id, scan),
                self._recently_active_ids(since, scan),
            )
            if not scores:
                return []

            # Overfetch so soft-deleted candidates don't shrink the list
            candidates = [user_id for user_id, _ in scores.most_common(limit * 2)]
            result = (
                self.supabase.table("users")
                .select(USER_CARD_SELECT)
                .in_("id", candidates)
                .is_("deleted_at", "null")
                .eq("completions.completed", True)
                .execute()
            )
        except STORE_ERRORS as e:
            logger.error("Suggested users failed: %s", e, extra={"viewer_id": viewer_id})
            raise UserDataUnavailableError("Suggestions unavailable") from e

        suggestions = [
            SuggestedUser(
                user_id=row.id,
                user_name=row.user_name,
                avatar_url=row.avatar_url,
                is_following=False,
                follower_count=row.follower_count,
                completion_count=row.completion_count,
                suggestion_score=scores[row.id],
            )
            for row in (UserCardRow(**data) for data in result.data or [])
            if is_discoverable(context, row)
        ]
        suggestions.sort(key=lambda s: (-s.suggestion_score, s.user_name))
        return suggestions[:limit]

    def _followed_by_followed(self, context: RelationshipContext, scan: int) -> list[str]:
        if not context.following_ids:
            return []
        result = (
            self.supabase.table("follows")
            .select("following_id")
            .in_("follower_id", sorted(context.following_ids))
            .limit(scan)
            .execute()
        )
        return [row["following_id"] for row in result.data or []]

    def _engaged_user_ids(self, viewer_id: str, scan: int) -> list[str]:
        """Authors of likes and comments on the viewer's pomodoros."""
        user_ids: list[str] = []
        for table in ("likes", "comments"):
            result = (
                self.supabase.table(table)
                .select("user_id, pomodoro:pomodoro_id!inner(user_id)")
                .eq("pomodoro.user_id", viewer_id)
                .limit(scan)
                .execute()
            )
            user_ids.extend(row["user_id"] for row in result.data or [])
        return user_ids

    def _recently_active_ids(self, since: datetime, scan: int) -> list[str]:
        result = (
            self.supabase.table("pomodoros")
            .select("user_id")
            .eq("completed", True)
            .gte("launch_at", since.isoformat())
            .order("launch_at", desc=True)
            .limit(scan)
            .execute()
        )
        return [row["user_id"] for row in result.data or []]
