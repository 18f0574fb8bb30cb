"""
Courier - Centralized Constants
===============================

All magic numbers and constants are defined here for maintainability.
Import from this module instead of hardcoding values.

Author: Courier Maintainers
"""

# =============================================================================
# Time Constants (in seconds)
# =============================================================================

SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 3600
SECONDS_PER_DAY = 86400

# =============================================================================
# Network Constants
# =============================================================================

HEALTH_CHECK_PORT = 8080

# =============================================================================
# Interval Constants (in seconds)
# =============================================================================

AUTO_CLOSE_CHECK_INTERVAL = 5 * SECONDS_PER_MINUTE  # Idle sweep cadence
AUTO_CLOSE_STARTUP_DELAY = 30                       # Let the cache warm up first

# =============================================================================
# Cache Constants
# =============================================================================

CACHE_TTL = 300                       # 5 minutes - channel/membership hints
CHANNEL_CACHE_SIZE = 50
MEMBERSHIP_CACHE_SIZE = 500
PENDING_SELECTION_TTL = 300           # 5 minutes to answer a selection prompt

# =============================================================================
# Modmail Defaults
# =============================================================================

DEFAULT_REPLY_COOLDOWN = 3            # seconds between DMs handled per user
DEFAULT_IDLE_HOURS = 72
DEFAULT_WARNING_HOURS = 48
DEFAULT_RECENT_WINDOW_MINUTES = 60
DEFAULT_DELETE_DELAY = 10             # seconds before a closed channel is removed
DEFAULT_BLOCK_NOTICE_COOLDOWN = SECONDS_PER_HOUR

DEFAULT_CATEGORY_NAME = "MODMAIL TICKETS"
DEFAULT_LOG_CHANNEL_NAME = "modmail-logs"
DEFAULT_SERVER_LOG_CHANNEL_NAME = "server-logs"
DEFAULT_STAFF_ROLE_NAME = "Staff"

NEW_CONVERSATION_VALUE = "new_conversation"
CHANNEL_MISSING_REASON = "channel missing"
INACTIVITY_REASON = "inactivity"

# =============================================================================
# Server Log Categories
# =============================================================================

# Category key -> enabled by default for new guilds
DEFAULT_LOG_CATEGORIES = {
    "MESSAGES": True,
    "MEMBERS": True,
    "VOICE": True,
    "ROLES": True,
    "CHANNELS": True,
    "SERVER": True,
}

# =============================================================================
# Discord Limits
# =============================================================================

CHANNEL_NAME_MAX = 90
EMBED_DESCRIPTION_MAX = 4000
EMBED_FIELD_MAX = 1024
SELECT_OPTIONS_MAX = 25
SUBJECT_MAX = 50
TRANSCRIPT_MESSAGE_LIMIT = 500

# =============================================================================
# Database Constants
# =============================================================================

DB_CONNECTION_TIMEOUT = 30.0
SQLITE_BUSY_TIMEOUT = 5000            # milliseconds

# =============================================================================
# Timeout Constants (in seconds)
# =============================================================================

API_TIMEOUT = 10
