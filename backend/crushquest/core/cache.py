"""
Redis cache helpers for the relationship sets.

Follow and block sets are read on every feed and leaderboard request, so
they are cached as JSON for a few minutes. Redis errors are logged and
swallowed: reads degrade to a store round-trip. Writes and deletes report
failure so callers that must invalidate can act on it.
"""

import json
import logging
from typing import Any, Optional

from redis import Redis

from crushquest.core.config import get_settings

logger = logging.getLogger(__name__)

_cache_client: Optional[Redis] = None


def _get_cache_client() -> Redis:
    """Lazy-init sync Redis client for caching."""
    global _cache_client
    if _cache_client is None:
        _cache_client = Redis.from_url(
            get_settings().redis_url,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
    return _cache_client


def cache_get(key: str) -> Optional[Any]:
    """Return the decoded value, or None on miss or error."""
    try:
        raw = _get_cache_client().get(key)
        if raw is None:
            return None
        return json.loads(raw)
    except Exception:
        logger.warning("Cache get failed for key=%s", key, exc_info=True)
        return None


def cache_set(key: str, value: Any, ttl: Optional[int] = None) -> bool:
    """Store a JSON-encoded value with a TTL in seconds. False when the write failed."""
    if ttl is None:
        ttl = get_settings().relationship_cache_ttl
    try:
        _get_cache_client().set(key, json.dumps(value, default=str), ex=ttl)
        return True
    except Exception:
        logger.warning("Cache set failed for key=%s", key, exc_info=True)
        return False


def cache_delete(*keys: str) -> bool:
    """Delete one or more keys. False when the delete failed."""
    if not keys:
        return True
    try:
        _get_cache_client().delete(*keys)
        return True
    except Exception:
        logger.warning("Cache delete failed for keys=%s", keys, exc_info=True)
        return False


def cache_ping() -> bool:
    """Connectivity check used by the health endpoint."""
    return bool(_get_cache_client().ping())


def reset_cache_client() -> None:
    """Reset sync Redis client (for testing)."""
    global _cache_client
    _cache_client = None
