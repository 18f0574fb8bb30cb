"""
Courier - Modmail Threads Mixin
===============================

Thread record operations for modmail conversations.

DESIGN:
    A thread is identified by its autoincrement id. channel_id points at
    the staff channel currently backing it and can be re-pointed when a
    channel is recreated. The partial unique index on (user_id, guild_id)
    WHERE open = 1 guarantees one open thread per user per guild; an
    insert that loses that race re-fetches the winner.

Author: Courier Maintainers
"""

import sqlite3
import time
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

from src.core.logger import logger
from src.core.constants import SUBJECT_MAX, SECONDS_PER_DAY
from src.core.database.models import ModmailThreadRecord

if TYPE_CHECKING:
    from .manager import DatabaseManager


class ModmailMixin:
    """Mixin for modmail thread operations."""

    # =========================================================================
    # Create
    # =========================================================================

    def create_thread_record(
        self: "DatabaseManager",
        user_id: int,
        guild_id: int,
        channel_id: int,
        subject: Optional[str] = None,
    ) -> Tuple[ModmailThreadRecord, bool]:
        """
        Create an open thread for a user in a guild.

        Args:
            user_id: Discord user ID.
            guild_id: Guild ID.
            channel_id: Staff channel backing the thread.
            subject: Opening message, trimmed to SUBJECT_MAX chars.

        Returns:
            (record, created). created is False when an open thread already
            existed and that record is returned instead.

        Raises:
            sqlite3.IntegrityError: If the conflict was not on the open-thread
                index (e.g. the channel is already bound to another thread).
        """
        now = time.time()
        trimmed = (subject or "")[:SUBJECT_MAX] or None

        try:
            cursor = self.execute(
                """
                INSERT INTO modmail_threads
                (channel_id, user_id, guild_id, open, subject, created_at,
                 last_message_at, message_count, warning_sent)
                VALUES (?, ?, ?, 1, ?, ?, ?, 1, 0)
                """,
                (channel_id, user_id, guild_id, trimmed, now, now)
            )
        except sqlite3.IntegrityError:
            existing = self.get_open_thread(user_id, guild_id)
            if existing is None:
                raise
            logger.debug("Modmail Thread Already Open", [
                ("User ID", str(user_id)),
                ("Guild ID", str(guild_id)),
                ("Thread ID", str(existing["id"])),
            ])
            return existing, False

        record = self.get_thread(cursor.lastrowid)

        logger.tree("Modmail Thread Created", [
            ("Thread ID", str(cursor.lastrowid)),
            ("User ID", str(user_id)),
            ("Guild ID", str(guild_id)),
            ("Channel ID", str(channel_id)),
        ], emoji="📬")

        return record, True

    # =========================================================================
    # Lookup
    # =========================================================================

    def get_thread(self: "DatabaseManager", thread_id: int) -> Optional[ModmailThreadRecord]:
        """Get a thread by its internal id."""
        row = self.fetchone("SELECT * FROM modmail_threads WHERE id = ?", (thread_id,))
        return dict(row) if row else None

    def get_thread_by_channel(self: "DatabaseManager", channel_id: int) -> Optional[ModmailThreadRecord]:
        """Get the thread currently bound to a channel."""
        row = self.fetchone(
            "SELECT * FROM modmail_threads WHERE channel_id = ?",
            (channel_id,)
        )
        return dict(row) if row else None

    def get_open_thread(
        self: "DatabaseManager",
        user_id: int,
        guild_id: int,
    ) -> Optional[ModmailThreadRecord]:
        """Get the open thread for a user in a guild."""
        row = self.fetchone(
            "SELECT * FROM modmail_threads WHERE user_id = ? AND guild_id = ? AND open = 1",
            (user_id, guild_id)
        )
        return dict(row) if row else None

    def get_open_threads_for_user(self: "DatabaseManager", user_id: int) -> List[ModmailThreadRecord]:
        """Get every open thread for a user, most recently active first."""
        rows = self.fetchall(
            """
            SELECT * FROM modmail_threads
            WHERE user_id = ? AND open = 1
            ORDER BY last_message_at DESC, id DESC
            """,
            (user_id,)
        )
        return [dict(row) for row in rows]

    def get_open_threads_in_guild(self: "DatabaseManager", guild_id: int) -> List[ModmailThreadRecord]:
        """Get every open thread in a guild."""
        rows = self.fetchall(
            "SELECT * FROM modmail_threads WHERE guild_id = ? AND open = 1 ORDER BY id",
            (guild_id,)
        )
        return [dict(row) for row in rows]

    def count_open_threads(self: "DatabaseManager") -> int:
        """Count open threads across all guilds."""
        row = self.fetchone("SELECT COUNT(*) AS total FROM modmail_threads WHERE open = 1")
        return row["total"] if row else 0

    # =========================================================================
    # Activity
    # =========================================================================

    def record_thread_activity(self: "DatabaseManager", thread_id: int) -> None:
        """Bump message count, refresh last_message_at and clear the idle warning."""
        self.execute(
            """
            UPDATE modmail_threads
            SET message_count = message_count + 1,
                last_message_at = ?,
                warning_sent = 0
            WHERE id = ?
            """,
            (time.time(), thread_id)
        )

    def mark_thread_warned(self: "DatabaseManager", thread_id: int) -> None:
        """Record that the idle warning was delivered."""
        self.execute(
            "UPDATE modmail_threads SET warning_sent = 1 WHERE id = ?",
            (thread_id,)
        )

    def update_thread_channel(
        self: "DatabaseManager",
        thread_id: int,
        channel_id: int,
    ) -> None:
        """Re-point a thread at a recreated channel."""
        self.execute(
            "UPDATE modmail_threads SET channel_id = ? WHERE id = ?",
            (channel_id, thread_id)
        )
        logger.tree("Modmail Thread Rebound", [
            ("Thread ID", str(thread_id)),
            ("New Channel", str(channel_id)),
        ], emoji="🔗")

    # =========================================================================
    # Close
    # =========================================================================

    def close_thread_record(
        self: "DatabaseManager",
        thread_id: int,
        closed_by: Optional[int],
        reason: Optional[str] = None,
    ) -> bool:
        """
        Close an open thread.

        Args:
            thread_id: Internal thread id.
            closed_by: Staff member (or bot) who closed it.
            reason: Close reason.

        Returns:
            True if the thread transitioned, False if it was already closed.
        """
        cursor = self.execute(
            """
            UPDATE modmail_threads
            SET open = 0, closed_at = ?, closed_by = ?, close_reason = ?
            WHERE id = ? AND open = 1
            """,
            (time.time(), closed_by, reason, thread_id)
        )
        if cursor.rowcount > 0:
            logger.tree("Modmail Thread Closed", [
                ("Thread ID", str(thread_id)),
                ("Closed By", str(closed_by)),
                ("Reason", reason or "None"),
            ], emoji="📪")
        return cursor.rowcount > 0

    # =========================================================================
    # Idle Sweep Queries
    # =========================================================================

    def get_idle_threads(self: "DatabaseManager", cutoff: float) -> List[ModmailThreadRecord]:
        """Open threads whose last activity is older than cutoff."""
        rows = self.fetchall(
            """
            SELECT * FROM modmail_threads
            WHERE open = 1 AND last_message_at < ?
            ORDER BY last_message_at
            """,
            (cutoff,)
        )
        return [dict(row) for row in rows]

    def get_threads_needing_warning(
        self: "DatabaseManager",
        warn_cutoff: float,
        close_cutoff: float,
    ) -> List[ModmailThreadRecord]:
        """Open, unwarned threads idle past warn_cutoff but not yet due to close."""
        rows = self.fetchall(
            """
            SELECT * FROM modmail_threads
            WHERE open = 1 AND warning_sent = 0
              AND last_message_at < ? AND last_message_at >= ?
            ORDER BY last_message_at
            """,
            (warn_cutoff, close_cutoff)
        )
        return [dict(row) for row in rows]

    # =========================================================================
    # Stats
    # =========================================================================

    def get_modmail_stats(self: "DatabaseManager", guild_id: int) -> Dict[str, float]:
        """
        Thread statistics for a guild.

        Returns:
            Dict with total, open, closed, last_24h, avg_messages and
            avg_duration_hours (closed threads only).
        """
        since = time.time() - SECONDS_PER_DAY
        row = self.fetchone(
            """
            SELECT
                COUNT(*) AS total,
                COALESCE(SUM(CASE WHEN open = 1 THEN 1 ELSE 0 END), 0) AS open_count,
                COALESCE(SUM(CASE WHEN created_at >= ? THEN 1 ELSE 0 END), 0) AS last_24h,
                AVG(message_count) AS avg_messages,
                AVG(CASE WHEN open = 0 THEN closed_at - created_at END) AS avg_duration
            FROM modmail_threads
            WHERE guild_id = ?
            """,
            (since, guild_id)
        )
        total = row["total"] if row else 0
        open_count = row["open_count"] if row else 0
        return {
            "total": total,
            "open": open_count,
            "closed": total - open_count,
            "last_24h": row["last_24h"] if row else 0,
            "avg_messages": round(row["avg_messages"] or 0, 1) if row else 0,
            "avg_duration_hours": round((row["avg_duration"] or 0) / 3600, 1) if row else 0,
        }


__all__ = ["ModmailMixin"]
