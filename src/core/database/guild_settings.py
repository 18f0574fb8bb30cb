"""
Courier - Guild Settings Mixin
==============================

Per-guild configuration: modmail flags, log channels, ignore lists.

DESIGN:
    Rows are created lazily ("find or create") the first time a guild is
    referenced. modmail_enabled is the authoritative flag and every write
    to it also writes the settings.modmail.enabled projection in the same
    UPDATE, so the two can't drift through this code path.

Author: Courier Maintainers
"""

import time
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from src.core.logger import logger
from src.core.constants import DEFAULT_LOG_CATEGORIES
from src.core.database.base import _json_dumps, _safe_json_loads
from src.core.database.models import GuildSettings

if TYPE_CHECKING:
    from .manager import DatabaseManager


# Keys accepted inside settings.modmail
MODMAIL_SETTING_KEYS = ("categoryId", "logChannelId", "staffRoleId")


class GuildSettingsMixin:
    """Mixin for guild settings operations."""

    # =========================================================================
    # Lookup
    # =========================================================================

    def get_guild_settings(self: "DatabaseManager", guild_id: int) -> GuildSettings:
        """
        Get settings for a guild, creating the row with defaults if missing.

        Args:
            guild_id: Discord guild ID.

        Returns:
            GuildSettings for the guild.
        """
        row = self.fetchone(
            "SELECT * FROM guild_settings WHERE guild_id = ?",
            (guild_id,)
        )
        if row:
            return GuildSettings.from_row(row)

        now = time.time()
        self.execute(
            """
            INSERT OR IGNORE INTO guild_settings
            (guild_id, modmail_enabled, settings, enabled_categories, category_channels,
             ignored_channels, ignored_roles, created_at, updated_at)
            VALUES (?, 0, ?, ?, '{}', '[]', '[]', ?, ?)
            """,
            (
                guild_id,
                _json_dumps({"modmail": {"enabled": False}}),
                _json_dumps(dict(DEFAULT_LOG_CATEGORIES)),
                now,
                now,
            )
        )
        logger.debug("Guild Settings Created", [("Guild ID", str(guild_id))])

        row = self.fetchone(
            "SELECT * FROM guild_settings WHERE guild_id = ?",
            (guild_id,)
        )
        return GuildSettings.from_row(row)

    def get_all_guild_settings(self: "DatabaseManager") -> List[GuildSettings]:
        """Get every stored guild settings row."""
        rows = self.fetchall("SELECT * FROM guild_settings ORDER BY guild_id")
        return [GuildSettings.from_row(row) for row in rows]

    def is_modmail_enabled(self: "DatabaseManager", guild_id: int) -> bool:
        """Check the authoritative modmail flag without creating a row."""
        row = self.fetchone(
            "SELECT modmail_enabled FROM guild_settings WHERE guild_id = ?",
            (guild_id,)
        )
        return bool(row["modmail_enabled"]) if row else False

    # =========================================================================
    # Modmail Flags
    # =========================================================================

    def set_modmail_enabled(self: "DatabaseManager", guild_id: int, enabled: bool) -> None:
        """
        Enable or disable modmail for a guild.

        Writes the column and the settings.modmail.enabled projection in one
        statement inside a transaction.

        Args:
            guild_id: Discord guild ID.
            enabled: New flag value.
        """
        self.get_guild_settings(guild_id)

        with self.transaction() as tx:
            tx.execute("SELECT settings FROM guild_settings WHERE guild_id = ?", (guild_id,))
            row = tx.fetchone()
            settings = _safe_json_loads(row["settings"] if row else None, default={})
            if not isinstance(settings, dict):
                settings = {}
            modmail = settings.get("modmail")
            if not isinstance(modmail, dict):
                modmail = {}
            modmail["enabled"] = bool(enabled)
            settings["modmail"] = modmail

            tx.execute(
                """
                UPDATE guild_settings
                SET modmail_enabled = ?, settings = ?, updated_at = ?
                WHERE guild_id = ?
                """,
                (1 if enabled else 0, _json_dumps(settings), time.time(), guild_id)
            )

        logger.tree("Modmail Flag Updated", [
            ("Guild ID", str(guild_id)),
            ("Enabled", str(bool(enabled))),
        ], emoji="📬")

    def update_modmail_settings(
        self: "DatabaseManager",
        guild_id: int,
        **values: Any,
    ) -> GuildSettings:
        """
        Update keys inside settings.modmail (categoryId, logChannelId, staffRoleId).

        The enabled projection is not touched here; use set_modmail_enabled.

        Args:
            guild_id: Discord guild ID.
            **values: Keys from MODMAIL_SETTING_KEYS; None clears a key.

        Returns:
            Updated GuildSettings.
        """
        unknown = set(values) - set(MODMAIL_SETTING_KEYS)
        if unknown:
            raise ValueError(f"Unknown modmail setting(s): {', '.join(sorted(unknown))}")

        self.get_guild_settings(guild_id)

        with self.transaction() as tx:
            tx.execute("SELECT settings FROM guild_settings WHERE guild_id = ?", (guild_id,))
            row = tx.fetchone()
            settings = _safe_json_loads(row["settings"] if row else None, default={})
            if not isinstance(settings, dict):
                settings = {}
            modmail = settings.get("modmail")
            if not isinstance(modmail, dict):
                modmail = {}
            for key, value in values.items():
                if value is None:
                    modmail.pop(key, None)
                else:
                    modmail[key] = str(value)
            settings["modmail"] = modmail

            tx.execute(
                "UPDATE guild_settings SET settings = ?, updated_at = ? WHERE guild_id = ?",
                (_json_dumps(settings), time.time(), guild_id)
            )

        logger.tree("Modmail Settings Updated", [
            ("Guild ID", str(guild_id)),
            *[(key, str(value) if value is not None else "Cleared") for key, value in values.items()],
        ], emoji="⚙️")

        return self.get_guild_settings(guild_id)

    def write_modmail_flags(
        self: "DatabaseManager",
        guild_id: int,
        column_value: bool,
        nested_value: Optional[bool],
    ) -> None:
        """
        Write both flags independently.

        Lets tests seed rows shaped like older versions wrote them. Bot code
        paths go through set_modmail_enabled.
        """
        settings = self.get_guild_settings(guild_id).settings
        modmail = dict(settings.get("modmail") or {})
        if nested_value is None:
            modmail.pop("enabled", None)
        else:
            modmail["enabled"] = nested_value
        settings["modmail"] = modmail

        self.execute(
            """
            UPDATE guild_settings
            SET modmail_enabled = ?, settings = ?, updated_at = ?
            WHERE guild_id = ?
            """,
            (1 if column_value else 0, _json_dumps(settings), time.time(), guild_id)
        )

    # =========================================================================
    # Server Log Settings
    # =========================================================================

    def set_logging_channel(
        self: "DatabaseManager",
        guild_id: int,
        channel_id: Optional[int],
    ) -> None:
        """Set (or clear) the default server log channel."""
        self.get_guild_settings(guild_id)
        self.execute(
            "UPDATE guild_settings SET logging_channel_id = ?, updated_at = ? WHERE guild_id = ?",
            (channel_id, time.time(), guild_id)
        )
        logger.tree("Logging Channel Updated", [
            ("Guild ID", str(guild_id)),
            ("Channel ID", str(channel_id) if channel_id else "Cleared"),
        ], emoji="📝")

    def set_category_channel(
        self: "DatabaseManager",
        guild_id: int,
        category: str,
        channel_id: Optional[int],
    ) -> None:
        """Route one log category to its own channel (None removes the override)."""
        channels = dict(self.get_guild_settings(guild_id).category_channels)
        if channel_id is None:
            channels.pop(category, None)
        else:
            channels[category] = channel_id

        self.execute(
            "UPDATE guild_settings SET category_channels = ?, updated_at = ? WHERE guild_id = ?",
            (_json_dumps(channels), time.time(), guild_id)
        )
        logger.tree("Category Channel Updated", [
            ("Guild ID", str(guild_id)),
            ("Category", category),
            ("Channel ID", str(channel_id) if channel_id else "Default"),
        ], emoji="📝")

    def set_category_enabled(
        self: "DatabaseManager",
        guild_id: int,
        category: str,
        enabled: bool,
    ) -> None:
        """Enable or disable one server log category."""
        categories = dict(self.get_guild_settings(guild_id).enabled_categories)
        categories[category] = bool(enabled)

        self.execute(
            "UPDATE guild_settings SET enabled_categories = ?, updated_at = ? WHERE guild_id = ?",
            (_json_dumps(categories), time.time(), guild_id)
        )
        logger.tree("Log Category Toggled", [
            ("Guild ID", str(guild_id)),
            ("Category", category),
            ("Enabled", str(bool(enabled))),
        ], emoji="🔀")

    def toggle_ignored_channel(self: "DatabaseManager", guild_id: int, channel_id: int) -> bool:
        """
        Toggle a channel in the ignore list.

        Returns:
            True if the channel is now ignored, False if it was removed.
        """
        return self._toggle_ignored(guild_id, "ignored_channels", channel_id)

    def toggle_ignored_role(self: "DatabaseManager", guild_id: int, role_id: int) -> bool:
        """
        Toggle a role in the ignore list.

        Returns:
            True if the role is now ignored, False if it was removed.
        """
        return self._toggle_ignored(guild_id, "ignored_roles", role_id)

    def _toggle_ignored(
        self: "DatabaseManager",
        guild_id: int,
        column: str,
        target_id: int,
    ) -> bool:
        settings = self.get_guild_settings(guild_id)
        current: List[int] = list(getattr(settings, column))

        if target_id in current:
            current.remove(target_id)
            ignored = False
        else:
            current.append(target_id)
            ignored = True

        # column is one of two fixed names, never user input
        self.execute(
            f"UPDATE guild_settings SET {column} = ?, updated_at = ? WHERE guild_id = ?",
            (_json_dumps(current), time.time(), guild_id)
        )
        logger.tree("Ignore List Updated", [
            ("Guild ID", str(guild_id)),
            ("List", column),
            ("Target ID", str(target_id)),
            ("Ignored", str(ignored)),
        ], emoji="🙈")
        return ignored

    # =========================================================================
    # Setup & Reset
    # =========================================================================

    def mark_setup_completed(self: "DatabaseManager", guild_id: int) -> None:
        """Flag that /setup finished for this guild."""
        self.get_guild_settings(guild_id)
        self.execute(
            "UPDATE guild_settings SET setup_completed = 1, updated_at = ? WHERE guild_id = ?",
            (time.time(), guild_id)
        )

    def reset_guild_settings(self: "DatabaseManager", guild_id: int) -> GuildSettings:
        """
        Reset a guild row to defaults (modmail disabled, no channels).

        Threads and blocks are left untouched.
        """
        now = time.time()
        self.execute(
            """
            INSERT INTO guild_settings
            (guild_id, modmail_enabled, settings, logging_channel_id, ignored_channels,
             ignored_roles, enabled_categories, category_channels, setup_completed,
             created_at, updated_at)
            VALUES (?, 0, ?, NULL, '[]', '[]', ?, '{}', 0, ?, ?)
            ON CONFLICT(guild_id) DO UPDATE SET
                modmail_enabled = 0,
                settings = excluded.settings,
                logging_channel_id = NULL,
                ignored_channels = '[]',
                ignored_roles = '[]',
                enabled_categories = excluded.enabled_categories,
                category_channels = '{}',
                setup_completed = 0,
                updated_at = excluded.updated_at
            """,
            (
                guild_id,
                _json_dumps({"modmail": {"enabled": False}}),
                _json_dumps(dict(DEFAULT_LOG_CATEGORIES)),
                now,
                now,
            )
        )
        logger.tree("Guild Settings Reset", [
            ("Guild ID", str(guild_id)),
        ], emoji="♻️")
        return self.get_guild_settings(guild_id)

    def get_settings_summary(self: "DatabaseManager") -> Dict[str, int]:
        """Counts used by /status."""
        row = self.fetchone(
            """
            SELECT COUNT(*) AS total,
                   COALESCE(SUM(modmail_enabled), 0) AS modmail_enabled,
                   COALESCE(SUM(setup_completed), 0) AS setup_completed
            FROM guild_settings
            """
        )
        return {
            "total": row["total"] if row else 0,
            "modmail_enabled": row["modmail_enabled"] if row else 0,
            "setup_completed": row["setup_completed"] if row else 0,
        }


__all__ = ["GuildSettingsMixin", "MODMAIL_SETTING_KEYS"]
