import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded

from crushquest.core.cache import reset_cache_client
from crushquest.core.config import get_settings
from crushquest.core.exceptions import register_exception_handlers
from crushquest.core.logging_config import setup_logging
from crushquest.core.middleware import CorrelationIDMiddleware, JWTValidationMiddleware
from crushquest.core.rate_limit import limiter, rate_limit_exceeded_handler
from crushquest.routers import feed, health, leaderboard, pomodoros, social, users

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    setup_logging()
    logger.info("Starting %s...", settings.app_name)
    yield
    logger.info("Shutting down %s...", settings.app_name)
    reset_cache_client()


app = FastAPI(
    title=settings.app_name,
    description="Pomodoro accountability feed API for Crush Quest",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# JWT validation middleware (runs after CORS, before routes)
app.add_middleware(JWTValidationMiddleware)

# Correlation IDs (outermost, so every log line of the request carries one)
app.add_middleware(CorrelationIDMiddleware)

# Rate limiting (slowapi + Redis)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# Global exception handlers (domain exceptions → HTTP responses)
register_exception_handlers(app)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(feed.router, prefix=f"{settings.api_prefix}/feed", tags=["Feed"])
app.include_router(
    pomodoros.router, prefix=f"{settings.api_prefix}/pomodoros", tags=["Pomodoros"]
)
app.include_router(users.router, prefix=f"{settings.api_prefix}/users", tags=["Users"])
app.include_router(social.router, prefix=f"{settings.api_prefix}/social", tags=["Social"])
app.include_router(
    leaderboard.router, prefix=f"{settings.api_prefix}/leaderboard", tags=["Leaderboard"]
)
