"""
Courier - Database Module
=========================

SQLite persistence for guild settings, modmail threads, blocks and
pending selections.

Author: Courier Maintainers
"""

from src.core.database.manager import (
    DatabaseManager,
    get_db,
    DATA_DIR,
    DB_PATH,
)
from src.core.database.base import _safe_json_loads

# Export type definitions
from src.core.database.models import (
    GuildSettings,
    ModmailThreadRecord,
    BlockedUserRecord,
    PendingMessageRecord,
)

__all__ = [
    # Main interface
    "DatabaseManager",
    "get_db",
    "DATA_DIR",
    "DB_PATH",
    # Helpers
    "_safe_json_loads",
    # Types
    "GuildSettings",
    "ModmailThreadRecord",
    "BlockedUserRecord",
    "PendingMessageRecord",
]
