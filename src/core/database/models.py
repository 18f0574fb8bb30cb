"""
Courier - Database Type Definitions
===================================

Record types returned from the database.

DESIGN:
    Thread, block and pending rows are plain dicts typed with TypedDict.
    Guild settings carry lookup helpers, so they are a dataclass built
    from the row with the JSON columns already decoded.

Author: Courier Maintainers
"""

import sqlite3
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, TypedDict

from src.core.database.base import _safe_json_loads


class ModmailThreadRecord(TypedDict, total=False):
    """Type for modmail thread records."""
    id: int
    channel_id: int
    user_id: int
    guild_id: int
    open: int
    subject: Optional[str]
    created_at: float
    last_message_at: float
    message_count: int
    warning_sent: int
    closed_at: Optional[float]
    closed_by: Optional[int]
    close_reason: Optional[str]


class BlockedUserRecord(TypedDict, total=False):
    """Type for blocked user records."""
    id: int
    user_id: int
    guild_id: int
    blocked_by: Optional[int]
    reason: Optional[str]
    blocked_at: float
    active: int


class PendingMessageRecord(TypedDict, total=False):
    """Type for pending message records (attachments already decoded)."""
    user_id: int
    content: Optional[str]
    attachments: List[str]
    created_at: float


def _to_int(value: Any) -> Optional[int]:
    """Snowflakes may be stored as strings in older JSON blobs."""
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass
class GuildSettings:
    """
    Per-guild configuration.

    Attributes:
        guild_id: Discord guild ID.
        modmail_enabled: Authoritative modmail flag.
        settings: Decoded JSON blob, {"modmail": {...}}.
        logging_channel_id: Default channel for server logs.
        ignored_channels: Channel IDs excluded from server logs.
        ignored_roles: Role IDs whose members are excluded from server logs.
        enabled_categories: {CATEGORY: bool} for server log categories.
        category_channels: {CATEGORY: channel_id} overrides.
        setup_completed: Whether /setup has been run.
    """

    guild_id: int
    modmail_enabled: bool = False
    settings: Dict[str, Any] = field(default_factory=dict)
    logging_channel_id: Optional[int] = None
    ignored_channels: List[int] = field(default_factory=list)
    ignored_roles: List[int] = field(default_factory=list)
    enabled_categories: Dict[str, bool] = field(default_factory=dict)
    category_channels: Dict[str, int] = field(default_factory=dict)
    setup_completed: bool = False
    created_at: float = 0.0
    updated_at: float = 0.0

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "GuildSettings":
        """Build settings from a guild_settings row."""
        settings = _safe_json_loads(row["settings"], default={})
        if not isinstance(settings, dict):
            settings = {}

        return cls(
            guild_id=row["guild_id"],
            modmail_enabled=bool(row["modmail_enabled"]),
            settings=settings,
            logging_channel_id=row["logging_channel_id"],
            ignored_channels=[int(c) for c in _safe_json_loads(row["ignored_channels"], default=[])],
            ignored_roles=[int(r) for r in _safe_json_loads(row["ignored_roles"], default=[])],
            enabled_categories=_safe_json_loads(row["enabled_categories"], default={}),
            category_channels=_safe_json_loads(row["category_channels"], default={}),
            setup_completed=bool(row["setup_completed"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    # -------------------------------------------------------------------------
    # Modmail Projection
    # -------------------------------------------------------------------------

    @property
    def modmail(self) -> Dict[str, Any]:
        modmail = self.settings.get("modmail")
        return modmail if isinstance(modmail, dict) else {}

    @property
    def nested_modmail_enabled(self) -> Optional[bool]:
        """settings.modmail.enabled if explicitly set to a boolean, else None."""
        value = self.modmail.get("enabled")
        return value if isinstance(value, bool) else None

    @property
    def modmail_category_id(self) -> Optional[int]:
        return _to_int(self.modmail.get("categoryId"))

    @property
    def modmail_log_channel_id(self) -> Optional[int]:
        return _to_int(self.modmail.get("logChannelId"))

    @property
    def staff_role_id(self) -> Optional[int]:
        return _to_int(self.modmail.get("staffRoleId"))

    # -------------------------------------------------------------------------
    # Server Log Helpers
    # -------------------------------------------------------------------------

    def is_channel_ignored(self, channel_id: int) -> bool:
        return channel_id in self.ignored_channels

    def is_role_ignored(self, role_id: int) -> bool:
        return role_id in self.ignored_roles

    def is_category_enabled(self, category: str) -> bool:
        """Only an explicit True enables a category."""
        return self.enabled_categories.get(category) is True

    def get_category_channel(self, category: str) -> Optional[int]:
        """Category override if set, otherwise the default logging channel."""
        override = _to_int(self.category_channels.get(category))
        return override if override else self.logging_channel_id


__all__ = [
    "ModmailThreadRecord",
    "BlockedUserRecord",
    "PendingMessageRecord",
    "GuildSettings",
]
