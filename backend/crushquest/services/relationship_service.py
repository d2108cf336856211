"""
Follow, follow-request and block management.

Handles:
- Loading a viewer's follow set and block edges (Redis cached)
- Building the RelationshipContext the visibility policy runs on
- Following public users, requesting to follow followers-only users
- Approving, rejecting and cancelling follow requests
- Blocking (which severs follows and requests both ways) and unblocking
- Follower / following / blocked lists

Every mutation that changes either user's relationship sets moves both
users to a new cache generation. When that fails the mutation raises
RelationshipCacheError rather than leave a stale block set live.
"""

import logging
from typing import Any, Optional
from uuid import uuid4

from supabase import Client

from crushquest.core.cache import cache_delete, cache_get, cache_set
from crushquest.core.config import get_settings
from crushquest.core.constants import (
    BLOCKS_CACHE_KEY,
    FOLLOWING_CACHE_KEY,
    PROFILE_SUMMARY_COLUMNS,
    RELATIONSHIP_GENERATION_KEY,
)
from crushquest.core.database import get_supabase
from crushquest.models.social import (
    BlockedRelationshipError,
    BlockedUserInfo,
    BlockEdge,
    BlockListResponse,
    BlockStatus,
    FollowListEntry,
    FollowListResponse,
    FollowOutcome,
    FollowRequestInfo,
    FollowRequestListResponse,
    FollowRequestNotFoundError,
    FollowResponse,
    RelationshipActionResponse,
    RelationshipCacheError,
    SelfBlockError,
    SelfFollowError,
)
from crushquest.models.user import UserNotFoundError, VisibilityFlags
from crushquest.services.visibility import RelationshipContext

logger = logging.getLogger(__name__)

PENDING = "pending"


class RelationshipService:
    """Service for the follow and block graphs."""

    def __init__(self, supabase: Optional[Client] = None) -> None:
        self._supabase = supabase

    @property
    def supabase(self) -> Client:
        if self._supabase is None:
            self._supabase = get_supabase()
        return self._supabase

    # =========================================================================
    # Relationship reads
    # =========================================================================

    def get_following_ids(self, user_id: str, use_cache: bool = True) -> set[str]:
        """Users `user_id` follows. Store errors propagate."""
        cache_key = FOLLOWING_CACHE_KEY.format(user_id=user_id)
        generation = self._generation(user_id)
        if use_cache:
            cached = self._read_cached(cache_key, generation)
            if cached is not None:
                return set(cached)

        result = (
            self.supabase.table("follows")
            .select("following_id")
            .eq("follower_id", user_id)
            .execute()
        )
        following_ids = {row["following_id"] for row in result.data or []}
        self._fill_cache(cache_key, generation, sorted(following_ids))
        return following_ids

    def get_block_edges(self, user_id: str, use_cache: bool = True) -> list[BlockEdge]:
        """Every block edge touching `user_id`, in one disjunctive query."""
        cache_key = BLOCKS_CACHE_KEY.format(user_id=user_id)
        generation = self._generation(user_id)
        if use_cache:
            cached = self._read_cached(cache_key, generation)
            if cached is not None:
                return [BlockEdge(**edge) for edge in cached]

        result = (
            self.supabase.table("blocks")
            .select("blocker_id, blocked_id")
            .or_(f"blocker_id.eq.{user_id},blocked_id.eq.{user_id}")
            .execute()
        )
        edges = [BlockEdge(**row) for row in result.data or []]
        self._fill_cache(cache_key, generation, [edge.model_dump() for edge in edges])
        return edges

    def load_context(self, viewer_id: Optional[str]) -> RelationshipContext:
        """
        Build the viewer's RelationshipContext.

        Anonymous viewers get an empty context. Store errors propagate so the
        caller can decide between failing closed and reporting the error.
        """
        if viewer_id is None:
            return RelationshipContext.anonymous()
        return RelationshipContext.from_edges(
            viewer_id,
            self.get_following_ids(viewer_id),
            self.get_block_edges(viewer_id),
        )

    def get_block_status(
        self, viewer_id: str, other_id: str, use_cache: bool = True
    ) -> BlockStatus:
        """Both block directions between the viewer and another user."""
        edges = self.get_block_edges(viewer_id, use_cache=use_cache)
        return BlockStatus(
            user_id=other_id,
            i_blocked=any(
                e.blocker_id == viewer_id and e.blocked_id == other_id for e in edges
            ),
            they_blocked=any(
                e.blocker_id == other_id and e.blocked_id == viewer_id for e in edges
            ),
        )

    # =========================================================================
    # Follows
    # =========================================================================

    def follow(self, viewer_id: str, target_id: str) -> FollowResponse:
        """
        Follow a user, or request to when they are followers-only.

        Idempotent: an existing follow or pending request is reported as-is.

        Raises:
            SelfFollowError: viewer_id == target_id
            UserNotFoundError: target missing or soft-deleted
            BlockedRelationshipError: a block exists in either direction
        """
        if viewer_id == target_id:
            raise SelfFollowError("Cannot follow yourself")

        target = self._get_active_user_flags(target_id)

        if self.get_block_status(viewer_id, target_id, use_cache=False).is_blocked:
            raise BlockedRelationshipError(f"Cannot follow user {target_id}")

        if target_id in self.get_following_ids(viewer_id, use_cache=False):
            return FollowResponse(user_id=target_id, status=FollowOutcome.FOLLOWING)

        if target.followers_only:
            existing = (
                self.supabase.table("follow_requests")
                .select("id")
                .eq("requester_id", viewer_id)
                .eq("target_id", target_id)
                .eq("status", PENDING)
                .execute()
            )
            if not existing.data:
                self.supabase.table("follow_requests").insert(
                    {"requester_id": viewer_id, "target_id": target_id, "status": PENDING}
                ).execute()
                logger.info("Follow request %s -> %s created", viewer_id, target_id)
            return FollowResponse(user_id=target_id, status=FollowOutcome.REQUESTED)

        self.supabase.table("follows").insert(
            {"follower_id": viewer_id, "following_id": target_id}
        ).execute()
        self._invalidate(viewer_id, target_id)
        logger.info("User %s followed %s", viewer_id, target_id)
        return FollowResponse(user_id=target_id, status=FollowOutcome.FOLLOWING)

    def unfollow(self, viewer_id: str, target_id: str) -> RelationshipActionResponse:
        """Remove a follow edge. Unfollowing someone not followed is a no-op."""
        self.supabase.table("follows").delete().eq("follower_id", viewer_id).eq(
            "following_id", target_id
        ).execute()
        self._invalidate(viewer_id, target_id)
        return RelationshipActionResponse(user_id=target_id, action="unfollowed")

    def list_followers(self, user_id: str, page: int, page_size: int) -> FollowListResponse:
        return self._list_follow_edges(
            user_id, page, page_size, match_column="following_id", other_column="follower_id"
        )

    def list_following(self, user_id: str, page: int, page_size: int) -> FollowListResponse:
        return self._list_follow_edges(
            user_id, page, page_size, match_column="follower_id", other_column="following_id"
        )

    def _list_follow_edges(
        self,
        user_id: str,
        page: int,
        page_size: int,
        match_column: str,
        other_column: str,
    ) -> FollowListResponse:
        offset = (page - 1) * page_size
        result = (
            self.supabase.table("follows")
            .select(
                f"created_at, users:{other_column} ({PROFILE_SUMMARY_COLUMNS})",
                count="exact",
            )
            .eq(match_column, user_id)
            .order("created_at", desc=True)
            .range(offset, offset + page_size - 1)
            .execute()
        )

        users = [
            FollowListEntry(**row["users"], followed_at=row.get("created_at"))
            for row in result.data or []
            if row.get("users")
        ]
        return FollowListResponse(
            users=users, total=result.count or 0, page=page, page_size=page_size
        )

    # =========================================================================
    # Follow requests
    # =========================================================================

    def list_incoming_requests(self, viewer_id: str) -> FollowRequestListResponse:
        """Pending requests addressed to the viewer, newest first."""
        result = (
            self.supabase.table("follow_requests")
            .select(
                "id, requester_id, target_id, status, created_at, "
                f"users:requester_id ({PROFILE_SUMMARY_COLUMNS})"
            )
            .eq("target_id", viewer_id)
            .eq("status", PENDING)
            .order("created_at", desc=True)
            .execute()
        )
        return FollowRequestListResponse(
            requests=[FollowRequestInfo(**row) for row in result.data or []]
        )

    def approve_request(self, viewer_id: str, request_id: str) -> FollowResponse:
        """Turn a pending request into a follow edge (requester -> viewer)."""
        request_row = self._get_pending_request(viewer_id, request_id)
        requester_id = request_row["requester_id"]

        self.supabase.table("follows").insert(
            {"follower_id": requester_id, "following_id": viewer_id}
        ).execute()
        self.supabase.table("follow_requests").delete().eq("id", request_id).execute()
        self._invalidate(viewer_id, requester_id)

        logger.info("Follow request %s approved by %s", request_id, viewer_id)
        return FollowResponse(user_id=requester_id, status=FollowOutcome.FOLLOWING)

    def reject_request(self, viewer_id: str, request_id: str) -> RelationshipActionResponse:
        request_row = self._get_pending_request(viewer_id, request_id)
        self.supabase.table("follow_requests").delete().eq("id", request_id).execute()
        return RelationshipActionResponse(user_id=request_row["requester_id"], action="rejected")

    def cancel_request(self, viewer_id: str, target_id: str) -> RelationshipActionResponse:
        """Withdraw the viewer's own pending request to `target_id`."""
        result = (
            self.supabase.table("follow_requests")
            .delete()
            .eq("requester_id", viewer_id)
            .eq("target_id", target_id)
            .eq("status", PENDING)
            .execute()
        )
        if not result.data:
            raise FollowRequestNotFoundError(f"No pending request to {target_id}")
        return RelationshipActionResponse(user_id=target_id, action="cancelled")

    def _get_pending_request(self, viewer_id: str, request_id: str) -> dict:
        result = (
            self.supabase.table("follow_requests")
            .select("id, requester_id, target_id, status")
            .eq("id", request_id)
            .eq("target_id", viewer_id)
            .eq("status", PENDING)
            .execute()
        )
        if not result.data:
            raise FollowRequestNotFoundError(f"Follow request {request_id} not found")
        return result.data[0]

    # =========================================================================
    # Blocks
    # =========================================================================

    def block(self, viewer_id: str, target_id: str) -> BlockStatus:
        """
        Block a user.

        Removes pending follow requests and follows in both directions before
        inserting the block edge. Blocking an already-blocked user only re-runs
        the cache invalidation, so a retry after RelationshipCacheError
        completes the block.
        """
        if viewer_id == target_id:
            raise SelfBlockError("Cannot block yourself")

        status = self.get_block_status(viewer_id, target_id, use_cache=False)
        if status.i_blocked:
            self._invalidate(viewer_id, target_id)
            return status

        pair = (
            "and({a}.eq.{viewer},{b}.eq.{target}),and({a}.eq.{target},{b}.eq.{viewer})"
        )
        self.supabase.table("follow_requests").delete().or_(
            pair.format(a="requester_id", b="target_id", viewer=viewer_id, target=target_id)
        ).execute()
        self.supabase.table("follows").delete().or_(
            pair.format(a="follower_id", b="following_id", viewer=viewer_id, target=target_id)
        ).execute()
        self.supabase.table("blocks").insert(
            {"blocker_id": viewer_id, "blocked_id": target_id}
        ).execute()
        self._invalidate(viewer_id, target_id)

        logger.info("User %s blocked %s", viewer_id, target_id)
        return BlockStatus(user_id=target_id, i_blocked=True, they_blocked=status.they_blocked)

    def unblock(self, viewer_id: str, target_id: str) -> RelationshipActionResponse:
        self.supabase.table("blocks").delete().eq("blocker_id", viewer_id).eq(
            "blocked_id", target_id
        ).execute()
        self._invalidate(viewer_id, target_id)
        return RelationshipActionResponse(user_id=target_id, action="unblocked")

    def list_blocked(self, viewer_id: str) -> BlockListResponse:
        """Users the viewer has blocked (not those who blocked the viewer)."""
        result = (
            self.supabase.table("blocks")
            .select(f"created_at, users:blocked_id ({PROFILE_SUMMARY_COLUMNS})")
            .eq("blocker_id", viewer_id)
            .order("created_at", desc=True)
            .execute()
        )
        return BlockListResponse(
            blocked=[
                BlockedUserInfo(user=row["users"], blocked_at=row.get("created_at"))
                for row in result.data or []
                if row.get("users")
            ]
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _get_active_user_flags(self, user_id: str) -> VisibilityFlags:
        result = (
            self.supabase.table("users")
            .select("followers_only, deleted_at")
            .eq("id", user_id)
            .execute()
        )
        if not result.data:
            raise UserNotFoundError(f"User {user_id} not found")
        flags = VisibilityFlags(**result.data[0])
        if not flags.is_active:
            raise UserNotFoundError(f"User {user_id} not found")
        return flags

    # Cached sets are stored as {"generation": ..., "value": ...}. A fill
    # records the generation it read before querying the store, and a
    # mutation moves every touched user to a fresh generation after its
    # writes commit. A fill that raced the mutation is then never served.

    def _generation(self, user_id: str) -> Optional[str]:
        return cache_get(RELATIONSHIP_GENERATION_KEY.format(user_id=user_id))

    def _read_cached(self, cache_key: str, generation: Optional[str]) -> Optional[Any]:
        cached = cache_get(cache_key)
        if not isinstance(cached, dict) or cached.get("generation") != generation:
            return None
        return cached.get("value")

    def _fill_cache(self, cache_key: str, generation: Optional[str], value: Any) -> None:
        cache_set(cache_key, {"generation": generation, "value": value})

    def _invalidate(self, *user_ids: str) -> None:
        """
        Start a new cache generation for each user and drop their cached sets.

        Raises:
            RelationshipCacheError: a generation could not be bumped, so
                entries filled before the change could still be served
        """
        # Generation keys outlive the entries they guard
        ttl = get_settings().relationship_cache_ttl * 2
        keys = []
        bumped = True
        for user_id in user_ids:
            generation_key = RELATIONSHIP_GENERATION_KEY.format(user_id=user_id)
            bumped = cache_set(generation_key, uuid4().hex, ttl=ttl) and bumped
            keys.append(FOLLOWING_CACHE_KEY.format(user_id=user_id))
            keys.append(BLOCKS_CACHE_KEY.format(user_id=user_id))
        cache_delete(*keys)

        if not bumped:
            logger.error("Relationship cache invalidation failed for users=%s", user_ids)
            raise RelationshipCacheError(f"Cache invalidation failed for {user_ids}")
