"""
Courier - Configuration Module
==============================

Centralized configuration management with environment variable validation.

DESIGN:
    This module provides a single source of truth for all configuration,
    loaded from environment variables at startup. Using a dataclass ensures
    type safety and immutability once loaded.

    Key patterns:
    - Singleton pattern via get_config() ensures one Config instance
    - Validation happens once at load time, not on every access
    - Permission helpers centralize authorization logic

Author: Courier Maintainers
"""

import os
from dataclasses import dataclass
from typing import Optional
from zoneinfo import ZoneInfo

from src.core.constants import (
    DEFAULT_REPLY_COOLDOWN,
    DEFAULT_IDLE_HOURS,
    DEFAULT_WARNING_HOURS,
    DEFAULT_RECENT_WINDOW_MINUTES,
    DEFAULT_DELETE_DELAY,
    DEFAULT_BLOCK_NOTICE_COOLDOWN,
    HEALTH_CHECK_PORT,
)


# =============================================================================
# Timezone Configuration
# =============================================================================

NY_TZ = ZoneInfo("America/New_York")
"""
Eastern timezone for consistent timestamps across all bot operations.

DESIGN:
    Using America/New_York instead of a fixed UTC offset ensures automatic
    handling of EST/EDT transitions. All log timestamps and scheduled
    operations use this timezone.
"""


# =============================================================================
# Configuration Dataclass
# =============================================================================

@dataclass
class Config:
    """
    Bot configuration loaded from environment variables.

    DESIGN:
        Required fields raise ConfigValidationError if missing.
        Optional fields have sensible defaults for development.
        All IDs are integers to prevent string comparison bugs.

    Attributes:
        discord_token: Discord bot authentication token.
        client_id: Application (client) ID used for invite links.
        owner_id: User ID of the bot owner (always treated as staff).
        support_guild_id: Guild that receives a copy of the slash commands.
        reply_cooldown_seconds: Minimum gap between handled DMs per user.
        modmail_idle_hours: Inactivity before a thread is auto-closed.
        modmail_warning_hours: Inactivity before the user is warned.
        modmail_recent_window_minutes: Auto-forward window for several threads.
    """

    # -------------------------------------------------------------------------
    # Required: Discord
    # -------------------------------------------------------------------------

    discord_token: str
    client_id: int

    # -------------------------------------------------------------------------
    # Optional: Ownership
    # -------------------------------------------------------------------------

    owner_id: Optional[int] = None
    support_guild_id: Optional[int] = None

    # -------------------------------------------------------------------------
    # Optional: Rate Limiting
    # -------------------------------------------------------------------------

    reply_cooldown_seconds: int = DEFAULT_REPLY_COOLDOWN
    block_notice_cooldown: int = DEFAULT_BLOCK_NOTICE_COOLDOWN

    # -------------------------------------------------------------------------
    # Optional: Modmail Lifecycle
    # -------------------------------------------------------------------------

    modmail_idle_hours: int = DEFAULT_IDLE_HOURS
    modmail_warning_hours: int = DEFAULT_WARNING_HOURS
    modmail_recent_window_minutes: int = DEFAULT_RECENT_WINDOW_MINUTES
    modmail_delete_delay: int = DEFAULT_DELETE_DELAY

    # -------------------------------------------------------------------------
    # Optional: Webhooks & Monitoring
    # -------------------------------------------------------------------------

    error_webhook_url: Optional[str] = None
    health_check_port: int = HEALTH_CHECK_PORT


# =============================================================================
# Embed Colors
# =============================================================================

class EmbedColors:
    """
    Standardized color palette for Discord embeds.

    Public embeds (DMs to users): GREEN, GOLD and TEAL.
    Internal logs: can use the full palette including RED.
    """

    GREEN = 0x1F5E2E    # #1F5E2E - Primary success/positive
    GOLD = 0xE6B84A     # #E6B84A - Warnings/info/neutral
    RED = 0xDC3545      # #DC3545 - Negative actions (deletes, leaves, closes)
    BLUE = 0x3498DB     # #3498DB - Informational logs
    TEAL = 0x1ABC9C     # #1ABC9C - Modmail
    ORANGE = 0xFF9800   # #FF9800 - High priority / warnings
    BLURPLE = 0x5865F2  # #5865F2 - Discord blurple / info

    # Semantic aliases for clarity
    SUCCESS = GREEN
    ERROR = GOLD
    WARNING = GOLD
    INFO = BLUE

    # Log-specific colors
    LOG_NEGATIVE = RED
    LOG_WARNING = GOLD
    LOG_POSITIVE = GREEN
    LOG_INFO = BLUE

    MODMAIL = TEAL
    MODMAIL_STAFF = GREEN
    MODMAIL_CLOSED = RED


# =============================================================================
# Validation
# =============================================================================

class ConfigValidationError(Exception):
    """
    Raised when required configuration is missing or invalid.

    DESIGN:
        Custom exception type allows callers to distinguish config
        errors from other startup failures.
    """

    pass


def _parse_int(value: Optional[str], name: str) -> int:
    """
    Parse string to integer with descriptive error handling.

    Args:
        value: String value from environment variable.
        name: Variable name for error messages.

    Returns:
        Parsed integer value.

    Raises:
        ConfigValidationError: If value is missing or not a valid integer.
    """
    if not value:
        raise ConfigValidationError(f"Missing required: {name}")
    try:
        return int(value)
    except ValueError:
        raise ConfigValidationError(f"Invalid integer for {name}: {value}")


def _parse_int_optional(value: Optional[str]) -> Optional[int]:
    """
    Parse optional string to integer, returning None on failure.

    Args:
        value: String value from environment variable, may be None.

    Returns:
        Parsed integer or None if parsing fails.
    """
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _parse_int_with_default(value: Optional[str], default: int, name: str, min_val: int = None, max_val: int = None) -> int:
    """
    Parse optional integer with default and range validation.

    Args:
        value: String value from environment variable.
        default: Default value if not set or invalid.
        name: Variable name for warning messages.
        min_val: Minimum allowed value (inclusive).
        max_val: Maximum allowed value (inclusive).

    Returns:
        Parsed integer within valid range, or default.
    """
    if not value:
        return default
    try:
        parsed = int(value)
        if min_val is not None and parsed < min_val:
            from src.core.logger import logger
            logger.warning(f"Config {name}={parsed} below min {min_val}, using {min_val}")
            return min_val
        if max_val is not None and parsed > max_val:
            from src.core.logger import logger
            logger.warning(f"Config {name}={parsed} above max {max_val}, using {max_val}")
            return max_val
        return parsed
    except ValueError:
        from src.core.logger import logger
        logger.warning(f"Config {name}='{value}' invalid, using default {default}")
        return default


def _validate_url(value: Optional[str], name: str) -> Optional[str]:
    """
    Validate URL format for webhooks.

    Args:
        value: URL string to validate.
        name: Variable name for warning messages.

    Returns:
        URL if valid, None if invalid or empty.
    """
    if not value:
        return None
    if not value.startswith(("https://", "http://")):
        from src.core.logger import logger
        logger.warning(f"Config {name} invalid URL format, ignoring")
        return None
    return value


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config() -> Config:
    """
    Load and validate configuration from environment variables.

    DESIGN:
        Validates all required variables upfront before creating the
        Config object. This fail-fast approach prevents partial
        initialization and unclear runtime errors.

    Returns:
        Validated Config object with all settings.

    Raises:
        ConfigValidationError: If any required variable is missing or invalid.
    """
    missing = []

    # -------------------------------------------------------------------------
    # Collect Required Variables
    # -------------------------------------------------------------------------

    discord_token = os.getenv("DISCORD_TOKEN")
    if not discord_token:
        missing.append("DISCORD_TOKEN")

    client_id_str = os.getenv("CLIENT_ID")
    if not client_id_str:
        missing.append("CLIENT_ID")

    # -------------------------------------------------------------------------
    # Fail Fast on Missing Required
    # -------------------------------------------------------------------------

    if missing:
        raise ConfigValidationError(
            f"Missing required environment variables: {', '.join(missing)}"
        )

    client_id = _parse_int(client_id_str, "CLIENT_ID")

    # -------------------------------------------------------------------------
    # Build Config Object
    # -------------------------------------------------------------------------

    return Config(
        discord_token=discord_token,
        client_id=client_id,
        owner_id=_parse_int_optional(os.getenv("OWNER_ID")),
        support_guild_id=_parse_int_optional(os.getenv("SUPPORT_GUILD_ID")),
        reply_cooldown_seconds=_parse_int_with_default(
            os.getenv("REPLY_COOLDOWN_SECONDS"), DEFAULT_REPLY_COOLDOWN,
            "REPLY_COOLDOWN_SECONDS", min_val=0, max_val=300
        ),
        block_notice_cooldown=_parse_int_with_default(
            os.getenv("BLOCK_NOTICE_COOLDOWN"), DEFAULT_BLOCK_NOTICE_COOLDOWN,
            "BLOCK_NOTICE_COOLDOWN", min_val=0, max_val=86400
        ),
        modmail_idle_hours=_parse_int_with_default(
            os.getenv("MODMAIL_IDLE_HOURS"), DEFAULT_IDLE_HOURS,
            "MODMAIL_IDLE_HOURS", min_val=1, max_val=24 * 30
        ),
        modmail_warning_hours=_parse_int_with_default(
            os.getenv("MODMAIL_WARNING_HOURS"), DEFAULT_WARNING_HOURS,
            "MODMAIL_WARNING_HOURS", min_val=0, max_val=24 * 30
        ),
        modmail_recent_window_minutes=_parse_int_with_default(
            os.getenv("MODMAIL_RECENT_WINDOW_MINUTES"), DEFAULT_RECENT_WINDOW_MINUTES,
            "MODMAIL_RECENT_WINDOW_MINUTES", min_val=0, max_val=24 * 60
        ),
        modmail_delete_delay=_parse_int_with_default(
            os.getenv("MODMAIL_DELETE_DELAY"), DEFAULT_DELETE_DELAY,
            "MODMAIL_DELETE_DELAY", min_val=0, max_val=3600
        ),
        error_webhook_url=_validate_url(os.getenv("ERROR_WEBHOOK_URL"), "ERROR_WEBHOOK_URL"),
        health_check_port=_parse_int_with_default(
            os.getenv("HEALTH_CHECK_PORT"), HEALTH_CHECK_PORT,
            "HEALTH_CHECK_PORT", min_val=0, max_val=65535
        ),
    )


# =============================================================================
# Global Config Instance
# =============================================================================

_config: Optional[Config] = None


def get_config() -> Config:
    """
    Get the global configuration instance, loading if needed.

    DESIGN:
        Singleton pattern ensures config is loaded once and reused.

    Returns:
        The global Config instance.

    Raises:
        ConfigValidationError: On first call if config is invalid.
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config


# =============================================================================
# Config Validation & Logging
# =============================================================================

def validate_and_log_config() -> None:
    """
    Validate configuration and log results at startup.

    Raises:
        ConfigValidationError: If required configuration is missing.
    """
    from src.core.logger import logger

    config = get_config()

    if config.modmail_warning_hours >= config.modmail_idle_hours:
        logger.warning("Idle warning is not sent before auto-close", [
            ("Warning Hours", str(config.modmail_warning_hours)),
            ("Idle Hours", str(config.modmail_idle_hours)),
        ])

    optional_features = []
    if config.support_guild_id:
        optional_features.append("Support Guild Commands")
    if config.error_webhook_url:
        optional_features.append("Error Webhook")
    if config.health_check_port:
        optional_features.append("Health Endpoint")

    logger.tree("Configuration Validated", [
        ("Required", "✅ All required variables set"),
        ("Optional Features", ", ".join(optional_features) if optional_features else "None"),
        ("Idle Close", f"{config.modmail_idle_hours}h (warn at {config.modmail_warning_hours}h)"),
        ("Recent Window", f"{config.modmail_recent_window_minutes}m" if config.modmail_recent_window_minutes else "Disabled"),
        ("Reply Cooldown", f"{config.reply_cooldown_seconds}s"),
    ], emoji="⚙️")


# =============================================================================
# Permission Helpers
# =============================================================================

def is_owner(user_id: int) -> bool:
    """
    Check if user is the bot owner.

    Args:
        user_id: Discord user ID to check.

    Returns:
        True if user is the configured owner.
    """
    owner_id = get_config().owner_id
    return owner_id is not None and user_id == owner_id


def has_staff_role(member, settings=None) -> bool:
    """
    Check if a member can act as modmail staff in their guild.

    Args:
        member: Discord member object to check.
        settings: GuildSettings for the member's guild (for the staff role).

    Returns:
        True if member is owner, admin, server manager or has the staff role.
    """
    if member is None:
        return False

    if is_owner(member.id):
        return True

    permissions = getattr(member, "guild_permissions", None)
    if permissions is None:
        return False

    if permissions.administrator or permissions.manage_guild:
        return True

    staff_role_id = settings.staff_role_id if settings is not None else None
    if staff_role_id:
        for role in getattr(member, "roles", []):
            if role.id == staff_role_id:
                return True

    return False


async def check_staff_permission(interaction) -> bool:
    """
    Check staff permission and send error if not authorized.

    Args:
        interaction: Discord interaction to check.

    Returns:
        True if authorized, False if not (error already sent).
    """
    settings = None
    if interaction.guild is not None:
        from src.core.database import get_db
        settings = get_db().get_guild_settings(interaction.guild.id)

    if not has_staff_role(interaction.user, settings):
        await interaction.response.send_message(
            "❌ You don't have permission to use this command.",
            ephemeral=True
        )
        return False
    return True


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    # Core classes
    "Config",
    "ConfigValidationError",
    "EmbedColors",
    # Constants
    "NY_TZ",
    # Functions
    "get_config",
    "load_config",
    "validate_and_log_config",
    # Permission helpers
    "is_owner",
    "has_staff_role",
    "check_staff_permission",
]
