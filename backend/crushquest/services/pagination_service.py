"""
Locate the profile page that holds a date range.

Profile pages list an author's completed pomodoros newest first. Given a
date range (a calendar click), find the earliest pomodoro in the range and
the page it falls on so the client can jump straight to it.
"""

import logging
import math
from datetime import datetime
from typing import Optional

from supabase import Client

from crushquest.core.database import STORE_ERRORS, get_supabase
from crushquest.models.feed import PageLocation

logger = logging.getLogger(__name__)


def page_number_for_position(position: int, page_size: int) -> int:
    """1-indexed page holding the 1-indexed `position`."""
    if page_size < 1:
        raise ValueError("page_size must be at least 1")
    return max(1, math.ceil(position / page_size))


class PaginationService:
    """Service for profile-page lookups."""

    def __init__(self, supabase: Optional[Client] = None) -> None:
        self._supabase = supabase

    @property
    def supabase(self) -> Client:
        if self._supabase is None:
            self._supabase = get_supabase()
        return self._supabase

    def find_first_pomodoro_in_range(
        self,
        user_id: str,
        range_start: datetime,
        range_end: datetime,
        page_size: int,
    ) -> Optional[PageLocation]:
        """
        Earliest completed pomodoro in [range_start, range_end] and its page.

        Returns None when the range is empty or a lookup fails; failures are
        logged, never raised. The total count degrades to 0 on error.

        Raises:
            ValueError: page_size < 1
        """
        if page_size < 1:
            raise ValueError("page_size must be at least 1")

        try:
            first = (
                self.supabase.table("pomodoros")
                .select("id, launch_at")
                .eq("user_id", user_id)
                .eq("completed", True)
                .gte("launch_at", range_start.isoformat())
                .lte("launch_at", range_end.isoformat())
                .order("launch_at")
                .limit(1)
                .execute()
            )
        except STORE_ERRORS as e:
            logger.error("Range lookup failed for user %s: %s", user_id, e)
            return None

        if not first.data:
            return None
        target = first.data[0]

        try:
            newer = (
                self.supabase.table("pomodoros")
                .select("id", count="exact", head=True)
                .eq("user_id", user_id)
                .eq("completed", True)
                .gt("launch_at", target["launch_at"])
                .execute()
            )
        except STORE_ERRORS as e:
            logger.error("Newer-count lookup failed for user %s: %s", user_id, e)
            return None

        newer_count = newer.count or 0
        return PageLocation(
            pomodoro_id=target["id"],
            page_number=page_number_for_position(newer_count + 1, page_size),
            total_count=self.count_completed(user_id),
        )

    def count_completed(self, user_id: str) -> int:
        """All completed pomodoros by the author, 0 if the count fails."""
        try:
            result = (
                self.supabase.table("pomodoros")
                .select("id", count="exact", head=True)
                .eq("user_id", user_id)
                .eq("completed", True)
                .execute()
            )
        except STORE_ERRORS as e:
            logger.warning("Total count failed for user %s: %s", user_id, e)
            return 0
        return result.count or 0
