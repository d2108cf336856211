"""
Pomodoro writes: sessions, likes and comments.

Only the author may edit or delete a pomodoro; only the commenter may
delete a comment. Liking and commenting require that the viewer can see
the pomodoro, which rules out blocked users in either direction.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from supabase import Client

from crushquest.core.database import get_supabase
from crushquest.models.pomodoro import (
    CommentCreate,
    CommentInfo,
    CommentNotFoundError,
    DeletedResponse,
    LikeResponse,
    NotCommentOwnerError,
    NotPomodoroOwnerError,
    PomodoroCreate,
    PomodoroNotFoundError,
    PomodoroRecord,
    PomodoroServiceError,
    PomodoroUpdate,
)
from crushquest.services.feed_service import FeedService

logger = logging.getLogger(__name__)


class PomodoroService:
    """Service for creating and modifying pomodoros and their reactions."""

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

    # =========================================================================
    # Pomodoros
    # =========================================================================

    def create_pomodoro(self, user_id: str, data: PomodoroCreate) -> PomodoroRecord:
        payload = data.model_dump(mode="json")
        payload["user_id"] = user_id

        result = self.supabase.table("pomodoros").insert(payload).execute()
        if not result.data:
            raise PomodoroServiceError("Failed to create pomodoro")

        logger.info("Pomodoro created for user %s", user_id)
        return PomodoroRecord(**result.data[0])

    def update_pomodoro(
        self, user_id: str, pomodoro_id: str, data: PomodoroUpdate
    ) -> PomodoroRecord:
        """Apply the provided fields. Raises NotPomodoroOwnerError for non-authors."""
        current = self._get_owned_pomodoro(user_id, pomodoro_id)

        updates = data.model_dump(exclude_unset=True)
        if not updates:
            return PomodoroRecord(**current)
        updates["updated_at"] = datetime.now(timezone.utc).isoformat()

        result = (
            self.supabase.table("pomodoros").update(updates).eq("id", pomodoro_id).execute()
        )
        if not result.data:
            raise PomodoroNotFoundError(f"Pomodoro {pomodoro_id} not found")
        return PomodoroRecord(**result.data[0])

    def delete_pomodoro(self, user_id: str, pomodoro_id: str) -> DeletedResponse:
        """Delete a pomodoro with its likes and comments."""
        self._get_owned_pomodoro(user_id, pomodoro_id)

        self.supabase.table("likes").delete().eq("pomodoro_id", pomodoro_id).execute()
        self.supabase.table("comments").delete().eq("pomodoro_id", pomodoro_id).execute()
        self.supabase.table("pomodoros").delete().eq("id", pomodoro_id).execute()

        logger.info("Pomodoro %s deleted by %s", pomodoro_id, user_id)
        return DeletedResponse(id=pomodoro_id)

    def _get_owned_pomodoro(self, user_id: str, pomodoro_id: str) -> dict:
        result = self.supabase.table("pomodoros").select("*").eq("id", pomodoro_id).execute()
        if not result.data:
            raise PomodoroNotFoundError(f"Pomodoro {pomodoro_id} not found")
        row = result.data[0]
        if row["user_id"] != user_id:
            raise NotPomodoroOwnerError(f"Pomodoro {pomodoro_id} belongs to another user")
        return row

    # =========================================================================
    # Likes
    # =========================================================================

    def like_pomodoro(self, user_id: str, pomodoro_id: str) -> LikeResponse:
        """Like a visible pomodoro. Liking twice is a no-op."""
        post = self.feed.get_pomodoro_detail(pomodoro_id, user_id)
        if post.liked_by(user_id):
            return LikeResponse(pomodoro_id=pomodoro_id, liked=True)

        self.supabase.table("likes").insert(
            {"pomodoro_id": pomodoro_id, "user_id": user_id}
        ).execute()
        return LikeResponse(pomodoro_id=pomodoro_id, liked=True)

    def unlike_pomodoro(self, user_id: str, pomodoro_id: str) -> LikeResponse:
        self.supabase.table("likes").delete().eq("pomodoro_id", pomodoro_id).eq(
            "user_id", user_id
        ).execute()
        return LikeResponse(pomodoro_id=pomodoro_id, liked=False)

    # =========================================================================
    # Comments
    # =========================================================================

    def add_comment(self, user_id: str, pomodoro_id: str, data: CommentCreate) -> CommentInfo:
        self.feed.get_pomodoro_detail(pomodoro_id, user_id)

        result = (
            self.supabase.table("comments")
            .insert(
                {
                    "pomodoro_id": pomodoro_id,
                    "user_id": user_id,
                    "comment_text": data.comment_text,
                }
            )
            .execute()
        )
        if not result.data:
            raise PomodoroServiceError("Failed to add comment")
        return CommentInfo(**result.data[0])

    def delete_comment(self, user_id: str, comment_id: str) -> DeletedResponse:
        result = (
            self.supabase.table("comments").select("id, user_id").eq("id", comment_id).execute()
        )
        if not result.data:
            raise CommentNotFoundError(f"Comment {comment_id} not found")
        if result.data[0]["user_id"] != user_id:
            raise NotCommentOwnerError(f"Comment {comment_id} belongs to another user")

        self.supabase.table("comments").delete().eq("id", comment_id).execute()
        return DeletedResponse(id=comment_id)
