"""
Weekly leaderboards.

A week starts Monday 00:00 in the caller's timezone, so the same posts can
count toward different weeks for viewers in different zones. Without a
usable timezone the configured default (America/New_York) applies.

- Global board: every author the viewer may see (public, followed or self)
- Friends board: the viewer plus the users they follow

Blocked authors (either direction) and soft-deleted authors never rank.
"""

import asyncio
import logging
from collections import Counter
from datetime import datetime, time, timedelta, timezone
from typing import Iterable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from supabase import Client

from crushquest.core.config import get_settings
from crushquest.core.constants import LEADERBOARD_SELECT
from crushquest.core.database import STORE_ERRORS, fetch_all_rows, get_supabase
from crushquest.models.feed import QueryError
from crushquest.models.leaderboard import (
    CompletionRow,
    LeaderboardEntry,
    LeaderboardResult,
    LeaderboardScope,
)
from crushquest.models.user import AuthorSummary
from crushquest.services.relationship_service import RelationshipService
from crushquest.services.visibility import RelationshipContext, can_view_author

logger = logging.getLogger(__name__)


def resolve_timezone(tz_name: Optional[str]) -> tuple[ZoneInfo, str]:
    """ZoneInfo for `tz_name`, or the configured default when unknown/missing."""
    if tz_name:
        try:
            return ZoneInfo(tz_name), tz_name
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown timezone %r, using default", tz_name)
    default = get_settings().leaderboard_default_timezone
    return ZoneInfo(default), default


def week_start_utc(now: datetime, tz_name: Optional[str]) -> datetime:
    """Monday 00:00 of `now`'s week in `tz_name`, expressed in UTC."""
    tz, _ = resolve_timezone(tz_name)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    local_now = now.astimezone(tz)
    monday = local_now.date() - timedelta(days=local_now.weekday())
    return datetime.combine(monday, time.min, tzinfo=tz).astimezone(timezone.utc)


def _in_scope(
    context: RelationshipContext, author_id: str, followers_only: bool, scope: LeaderboardScope
) -> bool:
    if scope is LeaderboardScope.GLOBAL:
        return can_view_author(context, author_id, followers_only)
    # Friends: self or followed, never blocked
    if not context.complete or context.is_blocked_with(author_id):
        return False
    return context.is_self(author_id) or context.follows(author_id)


def rank_weekly_completions(
    rows: Iterable[CompletionRow],
    window_start: datetime,
    context: RelationshipContext,
    scope: LeaderboardScope,
    limit: int,
) -> list[LeaderboardEntry]:
    """Count completions per author and rank by count desc, then user_name."""
    counts: Counter[str] = Counter()
    authors: dict[str, AuthorSummary] = {}
    for row in rows:
        if row.launch_at < window_start or not row.author.is_active:
            continue
        if not _in_scope(context, row.user_id, row.author.followers_only, scope):
            continue
        counts[row.user_id] += 1
        authors[row.user_id] = row.author

    ranked = sorted(
        counts.items(), key=lambda item: (-item[1], authors[item[0]].user_name, item[0])
    )

    entries = []
    for user_id, count in ranked[:limit]:
        author = authors[user_id]
        entries.append(
            LeaderboardEntry(
                user_id=user_id,
                user_name=author.user_name,
                avatar_url=author.avatar_url,
                completion_count=count,
                is_following=(
                    context.follows(user_id) and not context.is_self(user_id)
                    if scope is LeaderboardScope.FRIENDS
                    else None
                ),
            )
        )
    return entries


class LeaderboardService:
    """Service for the weekly global and friends leaderboards."""

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

    async def get_global_leaderboard(
        self,
        viewer_id: Optional[str] = None,
        tz_name: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> LeaderboardResult:
        return await self._build(
            LeaderboardScope.GLOBAL,
            viewer_id,
            tz_name,
            now,
            get_settings().global_leaderboard_limit,
        )

    async def get_friends_leaderboard(
        self,
        viewer_id: str,
        tz_name: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> LeaderboardResult:
        return await self._build(
            LeaderboardScope.FRIENDS,
            viewer_id,
            tz_name,
            now,
            get_settings().friends_leaderboard_limit,
        )

    async def _build(
        self,
        scope: LeaderboardScope,
        viewer_id: Optional[str],
        tz_name: Optional[str],
        now: Optional[datetime],
        limit: int,
    ) -> LeaderboardResult:
        _, resolved_tz = resolve_timezone(tz_name)
        window_start = week_start_utc(now or datetime.now(timezone.utc), resolved_tz)
        empty = LeaderboardResult(scope=scope, week_start=window_start, timezone=resolved_tz)

        rows, context = await asyncio.gather(
            asyncio.to_thread(self._fetch_completions, window_start),
            asyncio.to_thread(self.relationships.load_context, viewer_id),
            return_exceptions=True,
        )

        for source, outcome in (("posts", rows), ("relationships", context)):
            if isinstance(outcome, STORE_ERRORS):
                logger.error(
                    "Leaderboard %s query failed (%s): %s",
                    source,
                    scope.value,
                    outcome,
                    extra={"viewer_id": viewer_id},
                )
                return empty.model_copy(
                    update={"error": QueryError(source=source, message=str(outcome))}
                )
            if isinstance(outcome, BaseException):
                raise outcome

        return empty.model_copy(
            update={"rows": rank_weekly_completions(rows, window_start, context, scope, limit)}
        )

    def _fetch_completions(self, window_start: datetime) -> list[CompletionRow]:
        """Every completed pomodoro since window_start, read in id-ordered batches."""
        rows = fetch_all_rows(
            lambda: self.supabase.table("pomodoros")
            .select(LEADERBOARD_SELECT, count="exact")
            .eq("completed", True)
            .gte("launch_at", window_start.isoformat())
            .order("id"),
            get_settings().store_fetch_batch_size,
        )
        return [CompletionRow(**row) for row in rows if row.get("users")]
