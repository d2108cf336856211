"""
Per-user completion stats.

Handles:
- Totals over an optional date range (pomodoros, completions, active days)
- Completions bucketed by local day, week (Monday start) or month

Every bucket carries its inclusive UTC bounds, which the profile-page
locate endpoint takes to jump to the bucket's first pomodoro.
"""

import logging
from collections import Counter
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, Optional
from zoneinfo import ZoneInfo

from supabase import Client

from crushquest.core.config import get_settings
from crushquest.core.constants import STATS_SELECT
from crushquest.core.database import STORE_ERRORS, fetch_all_rows, get_supabase
from crushquest.models.profile import (
    CompletionBucket,
    CompletionSeries,
    PomodoroLaunch,
    StatsBucket,
    UserDataUnavailableError,
    UserStats,
)
from crushquest.models.user import UserNotFoundError
from crushquest.services.feed_service import FeedService
from crushquest.services.leaderboard_service import resolve_timezone

logger = logging.getLogger(__name__)


def bucket_start_for(day: date, bucket: StatsBucket) -> date:
    """First local day of the bucket holding `day`."""
    bucket = StatsBucket(bucket)
    if bucket is StatsBucket.DAY:
        return day
    if bucket is StatsBucket.WEEK:
        return day - timedelta(days=day.weekday())
    if bucket is StatsBucket.MONTH:
        return day.replace(day=1)
    raise ValueError(f"Unknown stats bucket: {bucket!r}")


def next_bucket_start(start: date, bucket: StatsBucket) -> date:
    bucket = StatsBucket(bucket)
    if bucket is StatsBucket.DAY:
        return start + timedelta(days=1)
    if bucket is StatsBucket.WEEK:
        return start + timedelta(days=7)
    # Day 28 plus four days always lands in the next month
    return (start.replace(day=28) + timedelta(days=4)).replace(day=1)


def local_midnight_utc(day: date, tz: ZoneInfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz).astimezone(timezone.utc)


def bucket_completions(
    launches: Iterable[datetime], bucket: StatsBucket, tz: ZoneInfo
) -> list[CompletionBucket]:
    """Count launches per local bucket. Empty buckets are left out."""
    counts = Counter(bucket_start_for(launch.astimezone(tz).date(), bucket) for launch in launches)
    return [
        CompletionBucket(
            bucket_start=start,
            count=counts[start],
            range_start=local_midnight_utc(start, tz),
            range_end=local_midnight_utc(next_bucket_start(start, bucket), tz)
            - timedelta(microseconds=1),
        )
        for start in sorted(counts)
    ]


def summarize_launches(
    user_id: str,
    launches: list[PomodoroLaunch],
    tz: ZoneInfo,
    tz_name: str,
    range_start: Optional[datetime],
    range_end: Optional[datetime],
    now: datetime,
) -> UserStats:
    """
    Totals for UserStats.

    `total_days` spans the range's local days. An open start begins at the
    first pomodoro and an open end stops at today; no pomodoros and no start
    means zero days.
    """
    completed_days = {
        launch.launch_at.astimezone(tz).date() for launch in launches if launch.completed
    }

    if range_start is not None:
        first_day: Optional[date] = range_start.astimezone(tz).date()
    elif launches:
        first_day = min(launch.launch_at for launch in launches).astimezone(tz).date()
    else:
        first_day = None
    last_day = (range_end or now).astimezone(tz).date()
    total_days = max(0, (last_day - first_day).days + 1) if first_day else 0

    return UserStats(
        user_id=user_id,
        timezone=tz_name,
        range_start=range_start,
        range_end=range_end,
        total_pomodoros=len(launches),
        completed_pomodoros=sum(1 for launch in launches if launch.completed),
        active_days=len(completed_days),
        total_days=total_days,
    )


class StatsService:
    """Service for user completion stats."""

    def __init__(self, supabase: Optional[Client] = None, feed: Optional[FeedService] = None):
        self._supabase = supabase
        self._feed = feed

    @property
    def supabase(self) -> Client:
        if self._supabase is None:
            self._supabase = get_supabase()
        return self._supabase

    @property
    def feed(self) -> FeedService:
        if self._feed is None:
            self._feed = FeedService(supabase=self._supabase)
        return self._feed

    def get_user_stats(
        self,
        user_id: str,
        viewer_id: Optional[str] = None,
        range_start: Optional[datetime] = None,
        range_end: Optional[datetime] = None,
        tz_name: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> UserStats:
        """
        Totals for `user_id` over [range_start, range_end] (either may be open).

        Raises:
            UserNotFoundError: the viewer may not see the user
            UserDataUnavailableError: the pomodoro scan failed
        """
        tz, resolved_tz = resolve_timezone(tz_name)
        launches = self._visible_launches(user_id, viewer_id, range_start, range_end)
        return summarize_launches(
            user_id,
            launches,
            tz,
            resolved_tz,
            range_start,
            range_end,
            now or datetime.now(timezone.utc),
        )

    def get_completion_series(
        self,
        user_id: str,
        bucket: StatsBucket,
        viewer_id: Optional[str] = None,
        range_start: Optional[datetime] = None,
        range_end: Optional[datetime] = None,
        tz_name: Optional[str] = None,
    ) -> CompletionSeries:
        """Completed pomodoros per day, week or month, oldest bucket first."""
        bucket = StatsBucket(bucket)
        tz, resolved_tz = resolve_timezone(tz_name)
        launches = self._visible_launches(
            user_id, viewer_id, range_start, range_end, completed_only=True
        )
        return CompletionSeries(
            user_id=user_id,
            bucket=bucket,
            timezone=resolved_tz,
            buckets=bucket_completions((launch.launch_at for launch in launches), bucket, tz),
        )

    def _visible_launches(
        self,
        user_id: str,
        viewer_id: Optional[str],
        range_start: Optional[datetime],
        range_end: Optional[datetime],
        completed_only: bool = False,
    ) -> list[PomodoroLaunch]:
        if range_start and range_end and range_start > range_end:
            raise ValueError("range_start must not be after range_end")
        if not self.feed.can_view_user(user_id, viewer_id):
            raise UserNotFoundError(f"User {user_id} not found")

        def build_query():
            query = (
                self.supabase.table("pomodoros")
                .select(STATS_SELECT, count="exact")
                .eq("user_id", user_id)
            )
            if completed_only:
                query = query.eq("completed", True)
            if range_start is not None:
                query = query.gte("launch_at", range_start.isoformat())
            if range_end is not None:
                query = query.lte("launch_at", range_end.isoformat())
            return query.order("id")

        try:
            rows = fetch_all_rows(build_query, get_settings().store_fetch_batch_size)
        except STORE_ERRORS as e:
            logger.error("Stats scan failed for %s: %s", user_id, e, extra={"viewer_id": viewer_id})
            raise UserDataUnavailableError(f"Stats for {user_id} unavailable") from e
        return [PomodoroLaunch(**row) for row in rows]
