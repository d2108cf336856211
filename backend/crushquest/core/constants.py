"""
Application constants for Crush Quest.

Column lists and limits shared by the feed, pagination and leaderboard layers.
"""

# Pagination
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
MAX_FEED_FETCH_LIMIT = 100

# Content limits
TASK_MAX_LENGTH = 200
NOTES_MAX_LENGTH = 2000
COMMENT_MAX_LENGTH = 1000
SEARCH_TERM_MAX_LENGTH = 100

# Author columns embedded wherever a pomodoro row is shown
AUTHOR_COLUMNS = "id, user_name, avatar_url, followers_only, deleted_at"

# Pomodoro select with author, likes and comments embedded
POMODORO_FEED_SELECT = (
    "*, "
    f"users:user_id ({AUTHOR_COLUMNS}), "
    "likes (id, user_id, users:user_id (id, user_name, avatar_url)), "
    "comments (id, comment_text, user_id, created_at, users:user_id (id, user_name, avatar_url))"
)

# Leaderboard rows only need the author and the launch time
LEADERBOARD_SELECT = f"id, user_id, launch_at, users:user_id ({AUTHOR_COLUMNS})"

# Profile columns for follower / following / blocked lists
PROFILE_SUMMARY_COLUMNS = "id, user_name, avatar_url"

# Cache keys
FOLLOWING_CACHE_KEY = "follows:{user_id}:following"
BLOCKS_CACHE_KEY = "blocks:{user_id}:edges"
RELATIONSHIP_GENERATION_KEY = "relationships:{user_id}:generation"

# User cards for search and suggestions: profile plus embedded counts.
# Filter with eq("completions.completed", True) so only completions count.
USER_CARD_SELECT = (
    f"{AUTHOR_COLUMNS}, "
    "followers:follows!following_id(count), "
    "completions:pomodoros(count)"
)

# Stats rows only need the launch time and completion flag
STATS_SELECT = "id, launch_at, completed"
