"""
Courier - Log Categories
========================

Log category definitions for the server logging service.

Author: Courier Maintainers
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from src.core.constants import DEFAULT_LOG_CATEGORIES


class LogCategory(Enum):
    """Log categories; values are the keys stored in enabled_categories."""
    MESSAGES = "MESSAGES"
    MEMBERS = "MEMBERS"
    VOICE = "VOICE"
    ROLES = "ROLES"
    CHANNELS = "CHANNELS"
    SERVER = "SERVER"


@dataclass(frozen=True)
class CategoryInfo:
    """Display data for a category."""
    name: str
    description: str
    emoji: str
    default: bool


CATEGORY_INFO: Dict[LogCategory, CategoryInfo] = {
    LogCategory.MESSAGES: CategoryInfo(
        name="Messages",
        description="Logs message edits and deletions",
        emoji="💬",
        default=DEFAULT_LOG_CATEGORIES["MESSAGES"],
    ),
    LogCategory.MEMBERS: CategoryInfo(
        name="Members",
        description="Logs member joins, leaves, and updates",
        emoji="👥",
        default=DEFAULT_LOG_CATEGORIES["MEMBERS"],
    ),
    LogCategory.VOICE: CategoryInfo(
        name="Voice",
        description="Logs voice channel activity",
        emoji="🔊",
        default=DEFAULT_LOG_CATEGORIES["VOICE"],
    ),
    LogCategory.ROLES: CategoryInfo(
        name="Roles",
        description="Logs role creations, deletions, and updates",
        emoji="👑",
        default=DEFAULT_LOG_CATEGORIES["ROLES"],
    ),
    LogCategory.CHANNELS: CategoryInfo(
        name="Channels",
        description="Logs channel creations, deletions, and updates",
        emoji="📝",
        default=DEFAULT_LOG_CATEGORIES["CHANNELS"],
    ),
    LogCategory.SERVER: CategoryInfo(
        name="Server",
        description="Logs server setting changes and other server-wide events",
        emoji="🏰",
        default=DEFAULT_LOG_CATEGORIES["SERVER"],
    ),
}


def parse_category(value: str) -> Optional[LogCategory]:
    """Category from a user-supplied key, case-insensitive."""
    try:
        return LogCategory(value.strip().upper())
    except ValueError:
        return None


__all__ = ["LogCategory", "CategoryInfo", "CATEGORY_INFO", "parse_category"]
