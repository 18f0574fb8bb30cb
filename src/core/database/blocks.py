"""
Courier - Blocked Users Mixin
=============================

Per-guild modmail blocks.

Author: Courier Maintainers
"""

import time
from typing import TYPE_CHECKING, List, Optional

from src.core.logger import logger
from src.core.database.models import BlockedUserRecord

if TYPE_CHECKING:
    from .manager import DatabaseManager


class BlocksMixin:
    """Mixin for modmail block operations."""

    def block_user(
        self: "DatabaseManager",
        user_id: int,
        guild_id: int,
        blocked_by: int,
        reason: Optional[str] = None,
    ) -> bool:
        """
        Block a user from opening modmail in a guild.

        Blocking an already-blocked user refreshes reason, actor and time.

        Returns:
            True if a new block was created, False if an existing one was refreshed.
        """
        now = time.time()
        with self.transaction() as tx:
            tx.execute(
                """
                UPDATE blocked_users
                SET blocked_by = ?, reason = ?, blocked_at = ?
                WHERE user_id = ? AND guild_id = ? AND active = 1
                """,
                (blocked_by, reason, now, user_id, guild_id)
            )
            created = tx.rowcount == 0
            if created:
                tx.execute(
                    """
                    INSERT INTO blocked_users
                    (user_id, guild_id, blocked_by, reason, blocked_at, active)
                    VALUES (?, ?, ?, ?, ?, 1)
                    """,
                    (user_id, guild_id, blocked_by, reason, now)
                )

        logger.tree("Modmail User Blocked", [
            ("User ID", str(user_id)),
            ("Guild ID", str(guild_id)),
            ("Blocked By", str(blocked_by)),
            ("Reason", (reason[:50] + "...") if reason and len(reason) > 50 else (reason or "None")),
            ("Refreshed", str(not created)),
        ], emoji="🚫")
        return created

    def unblock_user(self: "DatabaseManager", user_id: int, guild_id: int) -> bool:
        """
        Deactivate a user's block.

        Returns:
            True if a block was lifted.
        """
        cursor = self.execute(
            "UPDATE blocked_users SET active = 0 WHERE user_id = ? AND guild_id = ? AND active = 1",
            (user_id, guild_id)
        )
        if cursor.rowcount > 0:
            logger.tree("Modmail User Unblocked", [
                ("User ID", str(user_id)),
                ("Guild ID", str(guild_id)),
            ], emoji="✅")
        return cursor.rowcount > 0

    def is_user_blocked(self: "DatabaseManager", user_id: int, guild_id: int) -> bool:
        """Check for an active block."""
        row = self.fetchone(
            "SELECT 1 FROM blocked_users WHERE user_id = ? AND guild_id = ? AND active = 1",
            (user_id, guild_id)
        )
        return row is not None

    def get_block(
        self: "DatabaseManager",
        user_id: int,
        guild_id: int,
    ) -> Optional[BlockedUserRecord]:
        """Get the active block for a user, if any."""
        row = self.fetchone(
            "SELECT * FROM blocked_users WHERE user_id = ? AND guild_id = ? AND active = 1",
            (user_id, guild_id)
        )
        return dict(row) if row else None

    def get_blocked_users(self: "DatabaseManager", guild_id: int) -> List[BlockedUserRecord]:
        """All active blocks in a guild, newest first."""
        rows = self.fetchall(
            "SELECT * FROM blocked_users WHERE guild_id = ? AND active = 1 ORDER BY blocked_at DESC",
            (guild_id,)
        )
        return [dict(row) for row in rows]


__all__ = ["BlocksMixin"]
