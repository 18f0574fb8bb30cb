"""
Database Schema Module
======================

Table definitions and migrations.

Author: Courier Maintainers
"""

import sqlite3
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.core.database.manager import DatabaseManager


class SchemaMixin:
    """Mixin for database schema initialization."""

    def _init_tables(self: "DatabaseManager") -> None:
        """
        Initialize all database tables.

        DESIGN: Tables are created if not exist, allowing safe restarts.
        Partial unique indexes enforce the "one open row" invariants at
        the storage level so concurrent handlers can't create duplicates.
        """
        conn = self._ensure_connection()
        cursor = conn.cursor()

        # -----------------------------------------------------------------
        # Guild Settings Table
        # DESIGN: One row per guild, created lazily on first reference.
        # modmail_enabled is authoritative; settings.modmail.enabled is a
        # projection kept for older rows and written alongside it.
        # -----------------------------------------------------------------
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS guild_settings (
                guild_id INTEGER PRIMARY KEY,
                modmail_enabled INTEGER NOT NULL DEFAULT 0,
                settings TEXT NOT NULL DEFAULT '{}',
                logging_channel_id INTEGER,
                ignored_channels TEXT NOT NULL DEFAULT '[]',
                ignored_roles TEXT NOT NULL DEFAULT '[]',
                enabled_categories TEXT NOT NULL DEFAULT '{}',
                category_channels TEXT NOT NULL DEFAULT '{}',
                setup_completed INTEGER NOT NULL DEFAULT 0,
                created_at REAL NOT NULL,
                updated_at REAL NOT NULL
            )
        """)
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_guild_settings_modmail ON guild_settings(modmail_enabled)"
        )

        # -----------------------------------------------------------------
        # Modmail Threads Table
        # DESIGN: id is the stable thread id; channel_id is a mutable
        # pointer to the staff channel currently backing the thread.
        # -----------------------------------------------------------------
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS modmail_threads (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                channel_id INTEGER NOT NULL UNIQUE,
                user_id INTEGER NOT NULL,
                guild_id INTEGER NOT NULL,
                open INTEGER NOT NULL DEFAULT 1,
                subject TEXT,
                created_at REAL NOT NULL,
                last_message_at REAL NOT NULL,
                message_count INTEGER NOT NULL DEFAULT 0,
                warning_sent INTEGER NOT NULL DEFAULT 0,
                closed_at REAL,
                closed_by INTEGER,
                close_reason TEXT
            )
        """)
        cursor.execute(
            """CREATE UNIQUE INDEX IF NOT EXISTS idx_modmail_threads_open
               ON modmail_threads(user_id, guild_id) WHERE open = 1"""
        )
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_modmail_threads_user ON modmail_threads(user_id, open)"
        )
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_modmail_threads_activity ON modmail_threads(open, last_message_at)"
        )

        # Migrations for modmail_threads
        for col in [
            "warning_sent INTEGER NOT NULL DEFAULT 0",
            "close_reason TEXT",
        ]:
            try:
                cursor.execute(f"ALTER TABLE modmail_threads ADD COLUMN {col}")
            except sqlite3.OperationalError:
                pass

        # -----------------------------------------------------------------
        # Blocked Users Table
        # DESIGN: Rows are deactivated, never deleted, to keep history.
        # -----------------------------------------------------------------
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS blocked_users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL,
                guild_id INTEGER NOT NULL,
                blocked_by INTEGER,
                reason TEXT,
                blocked_at REAL NOT NULL,
                active INTEGER NOT NULL DEFAULT 1
            )
        """)
        cursor.execute(
            """CREATE UNIQUE INDEX IF NOT EXISTS idx_blocked_users_active
               ON blocked_users(user_id, guild_id) WHERE active = 1"""
        )

        # -----------------------------------------------------------------
        # Pending Messages Table
        # DESIGN: The DM that triggered a selection prompt, one per user.
        # -----------------------------------------------------------------
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS pending_messages (
                user_id INTEGER PRIMARY KEY,
                content TEXT,
                attachments TEXT NOT NULL DEFAULT '[]',
                created_at REAL NOT NULL
            )
        """)
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_pending_messages_created ON pending_messages(created_at)"
        )

        conn.commit()


__all__ = ["SchemaMixin"]
