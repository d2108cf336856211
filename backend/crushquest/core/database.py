from typing import Any, Callable, Optional

import httpx
from postgrest.exceptions import APIError
from supabase import Client, create_client

from crushquest.core.config import get_settings

_supabase_client: Optional[Client] = None

# Errors raised by the supabase client when a query fails or the
# PostgREST endpoint cannot be reached.
STORE_ERRORS: tuple[type[Exception], ...] = (APIError, httpx.HTTPError)


def get_supabase() -> Client:
    """Get Supabase client instance."""
    global _supabase_client
    if _supabase_client is None:
        settings = get_settings()
        _supabase_client = create_client(settings.supabase_url, settings.supabase_service_role_key)
    return _supabase_client


def reset_supabase() -> None:
    """Drop the cached client (for testing)."""
    global _supabase_client
    _supabase_client = None


def fetch_all_rows(build_query: Callable[[], Any], batch_size: int) -> list[dict]:
    """
    Read every row of a query in range() batches.

    PostgREST truncates a response at its max-rows cap, so a single request
    can silently drop rows. `build_query` returns a fresh, stably ordered
    builder selected with count="exact"; batches are read until that count
    has been consumed or a batch comes back empty.
    """
    rows: list[dict] = []
    while True:
        result = build_query().range(len(rows), len(rows) + batch_size - 1).execute()
        batch = result.data or []
        rows.extend(batch)
        if not batch or len(rows) >= (result.count or 0):
            return rows
