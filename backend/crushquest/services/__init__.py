"""Business logic services for Crush Quest API."""

from crushquest.services.discovery_service import DiscoveryService
from crushquest.services.feed_service import FeedService
from crushquest.services.leaderboard_service import LeaderboardService
from crushquest.services.pagination_service import PaginationService
from crushquest.services.pomodoro_service import PomodoroService
from crushquest.services.profile_service import ProfileService
from crushquest.services.relationship_service import RelationshipService
from crushquest.services.stats_service import StatsService
from crushquest.services.user_service import UserService

__all__ = [
    "DiscoveryService",
    "FeedService",
    "LeaderboardService",
    "PaginationService",
    "PomodoroService",
    "ProfileService",
    "RelationshipService",
    "StatsService",
    "UserService",
]
