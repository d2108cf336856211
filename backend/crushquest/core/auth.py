"""
Supabase JWT authentication.

Tokens are issued by Supabase Auth and verified here against the project's
JWKS. The `sub` claim is the auth uid, which is also the primary key of the
`users` table, so the verified subject is used directly as the viewer id.

JWTValidationMiddleware decodes the token once per request and stores an
OptionalViewer on request.state; routers depend on get_viewer_from_state or
require_viewer_from_state.
"""

import asyncio
import logging
import time
from typing import Optional

import httpx
from fastapi import HTTPException, Request, status
from jose import JWTError, jwt
from pydantic import BaseModel

from crushquest.core.config import get_settings
from crushquest.core.database import get_supabase

logger = logging.getLogger(__name__)

JWT_ALGORITHMS = ["RS256", "ES256"]
JWT_AUDIENCE = "authenticated"


class Viewer(BaseModel):
    """Authenticated viewer resolved from a verified JWT."""

    user_id: str
    email: str = ""


class OptionalViewer(BaseModel):
    """Viewer for endpoints that also serve anonymous requests."""

    user_id: Optional[str] = None
    email: Optional[str] = None
    is_authenticated: bool = False


class JWKSCache:
    """Signing keys fetched from Supabase, refreshed after TTL seconds."""

    TTL: int = 3600

    def __init__(self) -> None:
        self._keys: Optional[dict] = None
        self._fetched_at: float = 0.0
        self._lock: Optional[asyncio.Lock] = None

    def _get_lock(self) -> asyncio.Lock:
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    def _is_fresh(self) -> bool:
        return self._keys is not None and (time.time() - self._fetched_at) < self.TTL

    async def get_keys(self) -> dict:
        if self._is_fresh():
            assert self._keys is not None
            return self._keys

        async with self._get_lock():
            # Another task may have refreshed while we waited
            if self._is_fresh():
                assert self._keys is not None
                return self._keys
            self._keys = await self._fetch_keys()
            self._fetched_at = time.time()
            return self._keys

    async def _fetch_keys(self) -> dict:
        jwks_url = f"{get_settings().supabase_url}/auth/v1/.well-known/jwks.json"
        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(jwks_url, timeout=10.0)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPError as e:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail=f"Failed to fetch JWKS: {e}",
            )

    def invalidate(self) -> None:
        self._keys = None
        self._fetched_at = 0.0


_jwks_cache = JWKSCache()


class DeletedUserCache:
    """Short-lived memo of users.deleted_at lookups, keyed by user id."""

    TTL: int = 60

    def __init__(self, ttl_seconds: int = TTL):
        self._entries: dict[str, tuple[bool, float]] = {}
        self._ttl = ttl_seconds

    def get(self, user_id: str) -> Optional[bool]:
        entry = self._entries.get(user_id)
        if entry is None:
            return None
        is_deleted, expires_at = entry
        if time.time() > expires_at:
            self._entries.pop(user_id, None)
            return None
        return is_deleted

    def set(self, user_id: str, is_deleted: bool) -> None:
        self._entries[user_id] = (is_deleted, time.time() + self._ttl)

    def discard(self, user_id: str) -> None:
        self._entries.pop(user_id, None)


_deleted_user_cache = DeletedUserCache()


def forget_deleted_status(user_id: str) -> None:
    """Drop the memoized deleted flag after a soft delete or restore."""
    _deleted_user_cache.discard(user_id)


async def get_signing_key(token: str) -> dict:
    """Return the JWKS entry matching the token's `kid` header."""
    jwks = await _jwks_cache.get_keys()

    try:
        header = jwt.get_unverified_header(token)
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    keys = jwks.get("keys", [])
    for key in keys:
        if key.get("kid") == header.get("kid"):
            return key

    # Projects without key ids publish a single key
    if keys:
        return keys[0]

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="No matching signing key found",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def decode_token(token: str) -> dict:
    """Verify signature, audience and expiry. Raises JWTError on failure."""
    signing_key = await get_signing_key(token)
    return jwt.decode(token, signing_key, algorithms=JWT_ALGORITHMS, audience=JWT_AUDIENCE)


async def get_viewer_from_state(request: Request) -> OptionalViewer:
    """Viewer attached by JWTValidationMiddleware, anonymous if absent."""
    viewer = getattr(request.state, "viewer", None)
    if viewer is not None:
        return viewer
    return OptionalViewer()


def _is_account_deleted(user_id: str) -> bool:
    cached = _deleted_user_cache.get(user_id)
    if cached is not None:
        return cached

    try:
        result = get_supabase().table("users").select("deleted_at").eq("id", user_id).execute()
    except Exception as e:
        # Fail open on lookup errors so a store hiccup is not an auth outage
        logger.warning("Failed to check deleted status for user %s: %s", user_id, e)
        return False

    is_deleted = bool(result.data and result.data[0].get("deleted_at"))
    _deleted_user_cache.set(user_id, is_deleted)
    return is_deleted


async def require_viewer_from_state(request: Request) -> Viewer:
    """Require an authenticated, non-deleted viewer. Raises 401 otherwise."""
    viewer = getattr(request.state, "viewer", None)

    if viewer is None or not viewer.is_authenticated:
        token_error = getattr(request.state, "token_error", None)
        detail = f"Authentication failed: {token_error}" if token_error else "Authentication required"
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )

    if _is_account_deleted(viewer.user_id):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="This account has been deactivated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return Viewer(user_id=viewer.user_id, email=viewer.email or "")


async def require_viewer_allow_deleted(request: Request) -> Viewer:
    """Authenticated viewer without the deleted-account check (account restore)."""
    viewer = getattr(request.state, "viewer", None)
    if viewer is None or not viewer.is_authenticated:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return Viewer(user_id=viewer.user_id, email=viewer.email or "")
