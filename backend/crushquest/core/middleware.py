"""
Middleware for FastAPI.

Contains:
- CorrelationIDMiddleware: Extracts/generates request correlation IDs
- JWTValidationMiddleware: Verifies Supabase JWTs and attaches the viewer
"""

import logging
import uuid
from contextvars import ContextVar

from fastapi import HTTPException, Request
from jose import JWTError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from crushquest.core.auth import OptionalViewer, decode_token

logger = logging.getLogger(__name__)

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")


def get_correlation_id() -> str:
    """Get the current correlation ID from context."""
    return correlation_id_var.get()


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Tag every request with a correlation ID.

    Taken from X-Request-ID / X-Correlation-ID when the client sends one,
    generated otherwise, exposed to log records through a ContextVar and
    echoed back in the X-Request-ID response header.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        correlation_id = (
            request.headers.get("X-Request-ID")
            or request.headers.get("X-Correlation-ID")
            or str(uuid.uuid4())
        )
        request.state.correlation_id = correlation_id
        token = correlation_id_var.set(correlation_id)

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = correlation_id
            return response
        finally:
            correlation_id_var.reset(token)


class JWTValidationMiddleware(BaseHTTPMiddleware):
    """
    Attach an OptionalViewer to request.state.viewer.

    Requests without a valid Bearer token continue as anonymous; the reason
    a token was rejected is kept in request.state.token_error so protected
    endpoints can report it.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request.state.viewer = OptionalViewer()
        request.state.token_error = None

        auth_header = request.headers.get("Authorization")
        if auth_header and auth_header.startswith("Bearer "):
            token = auth_header[len("Bearer ") :]
            try:
                claims = await decode_token(token)
                if claims.get("sub"):
                    request.state.viewer = OptionalViewer(
                        user_id=claims["sub"],
                        email=claims.get("email"),
                        is_authenticated=True,
                    )
            except JWTError as e:
                request.state.token_error = str(e)
            except HTTPException as e:
                request.state.token_error = str(e.detail)

        return await call_next(request)
