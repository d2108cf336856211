"""
Feed assembly.

Handles:
- The home feed (global / following), newest completed pomodoros first
- Single pomodoro detail, subject to the same visibility policy
- An author's profile page of pomodoros (offset paging)
- Task / notes search over public content

Store failures come back as a FeedResult / UserPomodoroPage carrying a
QueryError and no posts. A partial list is never returned as success.
"""

import asyncio
import logging
from typing import Optional

from supabase import Client

from crushquest.core.config import get_settings
from crushquest.core.constants import MAX_FEED_FETCH_LIMIT, POMODORO_FEED_SELECT
from crushquest.core.database import STORE_ERRORS, get_supabase
from crushquest.models.feed import FeedMode, FeedResult, QueryError, UserPomodoroPage
from crushquest.models.pomodoro import FeedPost, PomodoroNotFoundError
from crushquest.models.user import VisibilityFlags
from crushquest.services.relationship_service import RelationshipService
from crushquest.services.visibility import (
    RelationshipContext,
    can_view_author,
    filter_visible_posts,
)

logger = logging.getLogger(__name__)

# Characters with meaning inside a PostgREST or=(...) filter
_SEARCH_RESERVED = str.maketrans({c: " " for c in ",()%*\\"})


def clean_search_term(term: str) -> str:
    """Strip PostgREST filter syntax and collapse whitespace."""
    return " ".join(term.translate(_SEARCH_RESERVED).split())


def parse_posts(rows: Optional[list[dict]]) -> list[FeedPost]:
    """Parse joined pomodoro rows. Rows whose author did not join are dropped."""
    return [FeedPost(**row) for row in rows or [] if row.get("users")]


class FeedService:
    """Service for reading pomodoros through the visibility policy."""

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
    # Home feed
    # =========================================================================

    async def get_feed(
        self,
        page_size: Optional[int] = None,
        viewer_id: Optional[str] = None,
        mode: FeedMode = FeedMode.GLOBAL,
    ) -> FeedResult:
        """
        Most recent visible pomodoros for the viewer.

        The post query and the relationship queries run concurrently and are
        both awaited before filtering. The fetch window is applied before
        filtering, so a feed can hold fewer than `page_size` posts.
        """
        mode = FeedMode(mode)
        if page_size is None:
            page_size = get_settings().feed_fetch_limit
        if page_size < 1:
            raise ValueError("page_size must be at least 1")
        page_size = min(page_size, MAX_FEED_FETCH_LIMIT)

        posts, context = await asyncio.gather(
            asyncio.to_thread(self._fetch_recent_posts, page_size),
            asyncio.to_thread(self.relationships.load_context, viewer_id),
            return_exceptions=True,
        )

        for source, outcome in (("posts", posts), ("relationships", context)):
            if isinstance(outcome, STORE_ERRORS):
                logger.error(
                    "Feed %s query failed: %s",
                    source,
                    outcome,
                    extra={"viewer_id": viewer_id, "feed_mode": mode.value},
                )
                return FeedResult(error=QueryError(source=source, message=str(outcome)))
            if isinstance(outcome, BaseException):
                raise outcome

        return FeedResult(posts=filter_visible_posts(posts, context, mode))

    def _fetch_recent_posts(self, limit: int) -> list[FeedPost]:
        result = (
            self.supabase.table("pomodoros")
            .select(POMODORO_FEED_SELECT)
            .eq("completed", True)
            .order("launch_at", desc=True)
            .limit(limit)
            .execute()
        )
        return parse_posts(result.data)

    # =========================================================================
    # Detail
    # =========================================================================

    def get_pomodoro_detail(self, pomodoro_id: str, viewer_id: Optional[str]) -> FeedPost:
        """
        A single pomodoro, if the viewer may see its author.

        Unfinished pomodoros are only shown to their author. Hidden, blocked
        and missing pomodoros all raise PomodoroNotFoundError.
        """
        result = (
            self.supabase.table("pomodoros")
            .select(POMODORO_FEED_SELECT)
            .eq("id", pomodoro_id)
            .execute()
        )
        posts = parse_posts(result.data)
        if not posts:
            raise PomodoroNotFoundError(f"Pomodoro {pomodoro_id} not found")
        post = posts[0]

        if post.user_id == viewer_id:
            return post

        if not post.completed or not post.author.is_active:
            raise PomodoroNotFoundError(f"Pomodoro {pomodoro_id} not found")

        context = self._load_context_or_fail_closed(viewer_id)
        if not can_view_author(context, post.author.id, post.author.followers_only):
            raise PomodoroNotFoundError(f"Pomodoro {pomodoro_id} not found")
        return post

    # =========================================================================
    # Profile page
    # =========================================================================

    def get_user_pomodoros(
        self,
        user_id: str,
        page: int = 1,
        page_size: Optional[int] = None,
        viewer_id: Optional[str] = None,
    ) -> UserPomodoroPage:
        """One page of an author's completed pomodoros, newest first."""
        if page_size is None:
            page_size = get_settings().default_page_size
        if page < 1 or page_size < 1:
            raise ValueError("page and page_size must be at least 1")
        empty = UserPomodoroPage(page=page, page_size=page_size)

        if user_id != viewer_id:
            try:
                author = self._get_author_flags(user_id)
                context = self.relationships.load_context(viewer_id)
            except STORE_ERRORS as e:
                logger.error(
                    "Profile visibility lookup failed for %s: %s",
                    user_id,
                    e,
                    extra={"viewer_id": viewer_id},
                )
                return empty.model_copy(
                    update={"error": QueryError(source="relationships", message=str(e))}
                )
            if author is None or not author.is_active:
                return empty
            if not can_view_author(context, user_id, author.followers_only):
                return empty

        offset = (page - 1) * page_size
        try:
            result = (
                self.supabase.table("pomodoros")
                .select(POMODORO_FEED_SELECT, count="exact")
                .eq("user_id", user_id)
                .eq("completed", True)
                .order("launch_at", desc=True)
                .range(offset, offset + page_size - 1)
                .execute()
            )
        except STORE_ERRORS as e:
            logger.error("Profile pomodoro query failed for %s: %s", user_id, e)
            return empty.model_copy(update={"error": QueryError(source="posts", message=str(e))})

        return UserPomodoroPage(
            posts=parse_posts(result.data),
            total=result.count or 0,
            page=page,
            page_size=page_size,
        )

    def can_view_user(self, user_id: str, viewer_id: Optional[str]) -> bool:
        """Whether the viewer may see the author's profile. False on lookup errors."""
        if user_id == viewer_id:
            return True
        try:
            author = self._get_author_flags(user_id)
        except STORE_ERRORS as e:
            logger.warning("Author lookup failed for %s: %s", user_id, e)
            return False
        if author is None or not author.is_active:
            return False
        context = self._load_context_or_fail_closed(viewer_id)
        return can_view_author(context, user_id, author.followers_only)

    # =========================================================================
    # Search
    # =========================================================================

    def search_pomodoros(self, term: str, viewer_id: Optional[str] = None) -> FeedResult:
        """Case-insensitive task / notes match, filtered as a global feed."""
        cleaned = clean_search_term(term)
        if not cleaned:
            return FeedResult()

        pattern = f"%{cleaned}%"
        try:
            result = (
                self.supabase.table("pomodoros")
                .select(POMODORO_FEED_SELECT)
                .eq("completed", True)
                .or_(f"task.ilike.{pattern},notes.ilike.{pattern}")
                .order("launch_at", desc=True)
                .limit(get_settings().feed_fetch_limit)
                .execute()
            )
            context = self.relationships.load_context(viewer_id)
        except STORE_ERRORS as e:
            logger.error("Pomodoro search failed: %s", e, extra={"viewer_id": viewer_id})
            return FeedResult(error=QueryError(source="search", message=str(e)))

        return FeedResult(
            posts=filter_visible_posts(parse_posts(result.data), context, FeedMode.GLOBAL)
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _get_author_flags(self, user_id: str) -> Optional[VisibilityFlags]:
        result = (
            self.supabase.table("users")
            .select("followers_only, deleted_at")
            .eq("id", user_id)
            .execute()
        )
        if not result.data:
            return None
        return VisibilityFlags(**result.data[0])

    def _load_context_or_fail_closed(self, viewer_id: Optional[str]) -> RelationshipContext:
        try:
            return self.relationships.load_context(viewer_id)
        except STORE_ERRORS as e:
            logger.warning(
                "Relationship lookup failed, hiding content: %s", e, extra={"viewer_id": viewer_id}
            )
            return RelationshipContext.unavailable(viewer_id)
