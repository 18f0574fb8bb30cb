"""
Courier - Modmail Auto-Close Mixin
==================================

Idle warning and auto-close for quiet threads.

Author: Courier Maintainers
"""

import asyncio
import time
from datetime import timedelta
from typing import TYPE_CHECKING, Dict

import discord

from src.core.constants import (
    AUTO_CLOSE_CHECK_INTERVAL,
    AUTO_CLOSE_STARTUP_DELAY,
    INACTIVITY_REASON,
    SECONDS_PER_HOUR,
)
from src.core.database import ModmailThreadRecord
from src.core.logger import logger
from src.utils.discord_rate_limit import log_http_error
from src.utils.retry import safe_fetch_user

from .embeds import build_idle_warning_embed

if TYPE_CHECKING:
    from .service import ModmailService


class AutoCloseMixin:
    """Mixin for the idle sweep."""

    async def _auto_close_loop(self: "ModmailService") -> None:
        """Background task that sweeps idle threads."""
        await self.bot.wait_until_ready()
        await asyncio.sleep(AUTO_CLOSE_STARTUP_DELAY)

        while self._running:
            try:
                await self.sweep_idle_threads(
                    timedelta(hours=self.config.modmail_idle_hours)
                )
                self.db.cleanup_expired_pending_messages()
                self.channel_cache.cleanup_expired()
                self.membership_cache.cleanup_expired()
            except Exception as e:
                logger.error("Modmail Auto-Close Check Failed", [
                    ("Error Type", type(e).__name__),
                    ("Error", str(e)[:200]),
                ])

            await asyncio.sleep(AUTO_CLOSE_CHECK_INTERVAL)

    async def sweep_idle_threads(
        self: "ModmailService",
        idle_threshold: timedelta,
    ) -> Dict[str, int]:
        """
        Warn and close idle threads.

        Args:
            idle_threshold: Threads quiet for longer than this are closed.

        Returns:
            {"warned", "closed", "failed"} counts for this sweep.
        """
        now = time.time()
        idle_seconds = idle_threshold.total_seconds()
        close_cutoff = now - idle_seconds
        warn_seconds = self.config.modmail_warning_hours * SECONDS_PER_HOUR
        results = {"warned": 0, "closed": 0, "failed": 0}

        if 0 < warn_seconds < idle_seconds:
            hours_left = max(1, int((idle_seconds - warn_seconds) // SECONDS_PER_HOUR))
            for thread in self.db.get_threads_needing_warning(now - warn_seconds, close_cutoff):
                try:
                    await self._send_idle_warning(thread, hours_left)
                    results["warned"] += 1
                except Exception as e:
                    results["failed"] += 1
                    logger.error("Modmail Idle Warning Failed", [
                        ("Thread ID", str(thread["id"])),
                        ("Error Type", type(e).__name__),
                        ("Error", str(e)[:100]),
                    ])

        for thread in self.db.get_idle_threads(close_cutoff):
            try:
                success, _ = await self.close_thread(thread, None, INACTIVITY_REASON)
                if success:
                    results["closed"] += 1
            except Exception as e:
                results["failed"] += 1
                logger.error("Modmail Auto-Close Failed", [
                    ("Thread ID", str(thread["id"])),
                    ("Error Type", type(e).__name__),
                    ("Error", str(e)[:100]),
                ])

        if any(results.values()):
            logger.tree("Modmail Idle Sweep", [
                ("Warned", str(results["warned"])),
                ("Closed", str(results["closed"])),
                ("Failed", str(results["failed"])),
                ("Threshold", f"{idle_seconds / SECONDS_PER_HOUR:g}h"),
            ], emoji="⏰")

        return results

    async def _send_idle_warning(
        self: "ModmailService",
        thread: ModmailThreadRecord,
        hours_left: int,
    ) -> None:
        """Best-effort warning to the user and the staff channel."""
        guild = self.bot.get_guild(thread["guild_id"])
        embed = build_idle_warning_embed(guild.name if guild else "the server", hours_left)

        user = await safe_fetch_user(self.bot, thread["user_id"])
        if user is not None:
            try:
                await user.send(embed=embed)
            except discord.HTTPException as e:
                log_http_error(e, "Idle Warning DM", [("Thread ID", str(thread["id"]))])

        channel = await self.resolve_thread_channel(thread["channel_id"])
        if channel is not None:
            try:
                await channel.send(embed=embed)
            except discord.HTTPException as e:
                log_http_error(e, "Idle Warning Channel", [("Thread ID", str(thread["id"]))])

        # Marked even when both sends failed
        self.db.mark_thread_warned(thread["id"])


__all__ = ["AutoCloseMixin"]
