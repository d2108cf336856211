"""
Global exception handlers for FastAPI.

Maps domain exceptions to HTTP responses, eliminating try/except
boilerplate from routers. Register with register_exception_handlers(app).
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


def error_response(status_code: int, detail: str, code: Optional[str] = None) -> JSONResponse:
    """Build a standardized error JSON response."""
    content: dict = {"detail": detail}
    if code:
        content["code"] = code
    return JSONResponse(status_code=status_code, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    """Register all domain exception handlers on the FastAPI app."""
    # Pomodoro exceptions
    from crushquest.models.pomodoro import (
        CommentNotFoundError,
        NotCommentOwnerError,
        NotPomodoroOwnerError,
        PomodoroNotFoundError,
    )

    # Relationship exceptions
    from crushquest.models.social import (
        BlockedRelationshipError,
        FollowRequestNotFoundError,
        RelationshipCacheError,
        SelfBlockError,
        SelfFollowError,
    )

    # Profile, stats and discovery exceptions
    from crushquest.models.profile import UserDataUnavailableError

    # User exceptions
    from crushquest.models.user import UserNotFoundError

    # --- Pomodoro handlers ---

    @app.exception_handler(PomodoroNotFoundError)
    async def _pomodoro_not_found(request: Request, exc: PomodoroNotFoundError) -> JSONResponse:
        return error_response(404, "Pomodoro not found.", "POMODORO_NOT_FOUND")

    @app.exception_handler(NotPomodoroOwnerError)
    async def _not_pomodoro_owner(request: Request, exc: NotPomodoroOwnerError) -> JSONResponse:
        return error_response(403, "You can only modify your own pomodoros.", "NOT_POMODORO_OWNER")

    @app.exception_handler(CommentNotFoundError)
    async def _comment_not_found(request: Request, exc: CommentNotFoundError) -> JSONResponse:
        return error_response(404, "Comment not found.", "COMMENT_NOT_FOUND")

    @app.exception_handler(NotCommentOwnerError)
    async def _not_comment_owner(request: Request, exc: NotCommentOwnerError) -> JSONResponse:
        return error_response(403, "You can only delete your own comments.", "NOT_COMMENT_OWNER")

    # --- Relationship handlers ---

    @app.exception_handler(SelfFollowError)
    async def _self_follow(request: Request, exc: SelfFollowError) -> JSONResponse:
        return error_response(400, "You cannot follow yourself.", "SELF_FOLLOW")

    @app.exception_handler(SelfBlockError)
    async def _self_block(request: Request, exc: SelfBlockError) -> JSONResponse:
        return error_response(400, "You cannot block yourself.", "SELF_BLOCK")

    @app.exception_handler(BlockedRelationshipError)
    async def _blocked(request: Request, exc: BlockedRelationshipError) -> JSONResponse:
        return error_response(403, "This user is unavailable.", "BLOCKED_RELATIONSHIP")

    @app.exception_handler(FollowRequestNotFoundError)
    async def _follow_request_not_found(
        request: Request, exc: FollowRequestNotFoundError
    ) -> JSONResponse:
        return error_response(404, "Follow request not found.", "FOLLOW_REQUEST_NOT_FOUND")

    @app.exception_handler(RelationshipCacheError)
    async def _relationship_cache(request: Request, exc: RelationshipCacheError) -> JSONResponse:
        return error_response(
            503,
            "Your change was saved but is not visible everywhere yet. Please retry.",
            "RELATIONSHIP_CACHE_STALE",
        )

    # --- User handlers ---

    @app.exception_handler(UserNotFoundError)
    async def _user_not_found(request: Request, exc: UserNotFoundError) -> JSONResponse:
        return error_response(404, "User not found.", "USER_NOT_FOUND")

    @app.exception_handler(UserDataUnavailableError)
    async def _user_data_unavailable(
        request: Request, exc: UserDataUnavailableError
    ) -> JSONResponse:
        return error_response(503, "User data is unavailable right now.", "USER_DATA_UNAVAILABLE")

    # --- Catch-all ---

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return error_response(500, "Internal server error.", "INTERNAL_ERROR")
