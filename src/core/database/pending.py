"""
Courier - Pending Messages Mixin
================================

Stores the DM that triggered a guild/thread selection prompt.

DESIGN:
    One row per user; a newer prompt replaces the older message. Rows
    expire after PENDING_SELECTION_TTL and are deleted when consumed so
    a message is delivered at most once.

Author: Courier Maintainers
"""

import time
from typing import TYPE_CHECKING, List, Optional

from src.core.logger import logger
from src.core.constants import PENDING_SELECTION_TTL
from src.core.database.base import _json_dumps, _safe_json_loads
from src.core.database.models import PendingMessageRecord

if TYPE_CHECKING:
    from .manager import DatabaseManager


class PendingMixin:
    """Mixin for pending selection messages."""

    def save_pending_message(
        self: "DatabaseManager",
        user_id: int,
        content: Optional[str],
        attachments: Optional[List[str]] = None,
    ) -> None:
        """
        Store the message a user sent before being asked to pick a destination.

        Args:
            user_id: Discord user ID.
            content: Message text.
            attachments: Attachment URLs.
        """
        self.execute(
            """
            INSERT OR REPLACE INTO pending_messages
            (user_id, content, attachments, created_at)
            VALUES (?, ?, ?, ?)
            """,
            (user_id, content, _json_dumps(attachments or []), time.time())
        )
        logger.debug("Pending Message Saved", [("User ID", str(user_id))])

    def get_pending_message(
        self: "DatabaseManager",
        user_id: int,
        max_age: int = PENDING_SELECTION_TTL,
    ) -> Optional[PendingMessageRecord]:
        """
        Get a user's pending message without consuming it.

        Expired rows are deleted and reported as missing.
        """
        row = self.fetchone(
            "SELECT * FROM pending_messages WHERE user_id = ?",
            (user_id,)
        )
        if not row:
            return None

        if time.time() - row["created_at"] > max_age:
            self.delete_pending_message(user_id)
            return None

        record = dict(row)
        record["attachments"] = _safe_json_loads(row["attachments"], default=[])
        return record

    def pop_pending_message(
        self: "DatabaseManager",
        user_id: int,
        max_age: int = PENDING_SELECTION_TTL,
    ) -> Optional[PendingMessageRecord]:
        """Get and delete a user's pending message."""
        record = self.get_pending_message(user_id, max_age)
        if record is not None:
            self.delete_pending_message(user_id)
        return record

    def delete_pending_message(self: "DatabaseManager", user_id: int) -> None:
        """Delete a user's pending message."""
        self.execute("DELETE FROM pending_messages WHERE user_id = ?", (user_id,))

    def cleanup_expired_pending_messages(
        self: "DatabaseManager",
        max_age: int = PENDING_SELECTION_TTL,
    ) -> int:
        """
        Delete pending messages older than max_age.

        Returns:
            Number of rows deleted.
        """
        cutoff = time.time() - max_age
        cursor = self.execute(
            "DELETE FROM pending_messages WHERE created_at < ?",
            (cutoff,)
        )
        count = cursor.rowcount
        if count > 0:
            logger.debug("Expired Pending Messages Cleaned", [("Count", str(count))])
        return count


__all__ = ["PendingMixin"]
