from functools import lru_cache
from typing import ClassVar

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Required secrets (validated at startup)
    REQUIRED_SECRETS: ClassVar[list[str]] = [
        "supabase_url",
        "supabase_anon_key",
        "supabase_service_role_key",
    ]

    # Environment (development, staging, production)
    environment: str = "development"

    # App
    app_name: str = "Crush Quest API"
    debug: bool = False
    api_prefix: str = "/api/v1"

    # CORS
    cors_origins: list[str] = ["http://localhost:5173"]

    # Supabase
    supabase_url: str = ""
    supabase_anon_key: str = ""
    supabase_service_role_key: str = ""

    # Rows per request for full scans; keep at or below PostgREST max-rows
    store_fetch_batch_size: int = 1000

    # Redis (relationship cache + rate limit storage)
    redis_url: str = "redis://localhost:6379"
    relationship_cache_ttl: int = 300

    # Feed & pagination
    feed_fetch_limit: int = 20
    default_page_size: int = 20

    # Leaderboard
    leaderboard_default_timezone: str = "America/New_York"
    global_leaderboard_limit: int = 50
    friends_leaderboard_limit: int = 20

    # User discovery
    user_search_limit: int = 20
    suggested_users_limit: int = 15
    discovery_scan_limit: int = 500

    # Rate limiting
    rate_limit_enabled: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    @model_validator(mode="after")
    def validate_required_secrets(self) -> "Settings":
        """Refuse to start when a required secret is empty."""
        missing = [
            name.upper()
            for name in self.REQUIRED_SECRETS
            if not (getattr(self, name, "") or "").strip()
        ]

        if missing:
            raise ValueError(
                f"Missing required secrets: {', '.join(missing)}. "
                "Set these environment variables before starting the application."
            )

        return self

    @model_validator(mode="after")
    def validate_cors_origins_in_production(self) -> "Settings":
        """Validate CORS origins are safe in production."""
        from urllib.parse import urlparse

        if self.environment != "production":
            return self

        unsafe_hostnames = {"localhost", "127.0.0.1", "0.0.0.0"}

        for origin in self.cors_origins:
            if origin == "*":
                raise ValueError(
                    "Wildcard (*) CORS origin is not allowed in production. "
                    "Specify exact origins instead."
                )

            hostname = urlparse(origin).hostname or ""
            if hostname in unsafe_hostnames:
                raise ValueError(
                    f"CORS origin '{origin}' uses hostname '{hostname}' which is not "
                    f"allowed in production. Use HTTPS production URLs instead."
                )

        return self

    @model_validator(mode="after")
    def validate_paging_limits(self) -> "Settings":
        """Page sizes and fetch windows must be positive."""
        for name in ("feed_fetch_limit", "default_page_size", "store_fetch_batch_size"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name.upper()} must be at least 1")
        return self


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
