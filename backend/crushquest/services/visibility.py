"""
Feed visibility policy.

Pure functions over a viewer's RelationshipContext; no I/O happens here.
Rules, in precedence order:

1. An incomplete context (relationship data failed to load) shows nothing.
2. A block in either direction hides the author in every mode.
3. The viewer always sees their own posts.
4. Global mode shows authors who are not followers-only, plus followed ones.
5. Following mode shows followed authors, whatever their privacy flag.
"""

from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict

from crushquest.models.feed import FeedMode
from crushquest.models.pomodoro import FeedPost
from crushquest.models.social import BlockEdge


class RelationshipContext(BaseModel):
    """Everything the policy knows about the viewer's social graph."""

    model_config = ConfigDict(frozen=True)

    viewer_id: Optional[str] = None
    following_ids: frozenset[str] = frozenset()
    blocked_ids: frozenset[str] = frozenset()
    blocker_ids: frozenset[str] = frozenset()
    complete: bool = True

    @classmethod
    def anonymous(cls) -> "RelationshipContext":
        return cls()

    @classmethod
    def unavailable(cls, viewer_id: Optional[str]) -> "RelationshipContext":
        """Context for a viewer whose follows or blocks could not be read."""
        return cls(viewer_id=viewer_id, complete=False)

    @classmethod
    def from_edges(
        cls,
        viewer_id: str,
        following_ids: Iterable[str],
        block_edges: Iterable[BlockEdge],
    ) -> "RelationshipContext":
        blocked: set[str] = set()
        blockers: set[str] = set()
        for edge in block_edges:
            if edge.blocker_id == viewer_id:
                blocked.add(edge.blocked_id)
            if edge.blocked_id == viewer_id:
                blockers.add(edge.blocker_id)
        return cls(
            viewer_id=viewer_id,
            following_ids=frozenset(following_ids),
            blocked_ids=frozenset(blocked),
            blocker_ids=frozenset(blockers),
        )

    def is_blocked_with(self, user_id: str) -> bool:
        return user_id in self.blocked_ids or user_id in self.blocker_ids

    def is_self(self, user_id: str) -> bool:
        return self.viewer_id is not None and user_id == self.viewer_id

    def follows(self, user_id: str) -> bool:
        return user_id in self.following_ids


def is_post_visible(
    context: RelationshipContext,
    author_id: str,
    author_followers_only: bool,
    mode: FeedMode,
) -> bool:
    """Decide whether a post by `author_id` belongs in the viewer's feed."""
    mode = FeedMode(mode)
    if not context.complete:
        return False
    if context.is_blocked_with(author_id):
        return False
    if context.is_self(author_id):
        return True

    if mode is FeedMode.GLOBAL:
        return not author_followers_only or context.follows(author_id)
    if mode is FeedMode.FOLLOWING:
        return context.follows(author_id)

    raise ValueError(f"Unknown feed mode: {mode!r}")


def can_view_author(
    context: RelationshipContext, author_id: str, author_followers_only: bool
) -> bool:
    """Visible in either mode: self, public, or followed, and never blocked."""
    return any(
        is_post_visible(context, author_id, author_followers_only, mode) for mode in FeedMode
    )


def filter_visible_posts(
    posts: Iterable[FeedPost], context: RelationshipContext, mode: FeedMode
) -> list[FeedPost]:
    """Drop soft-deleted and hidden authors, preserving input order."""
    return [
        post
        for post in posts
        if post.author.is_active
        and is_post_visible(context, post.author.id, post.author.followers_only, mode)
    ]
