"""
Courier - Modmail Thread Router
===============================

Decides where an inbound DM goes and which thread a staff channel belongs to.

DESIGN:
    Routing is a pure decision: it reads the store and Discord caches and
    returns a RouteDecision. The DM handler acts on it. The only write the
    router performs is closing threads whose channel Discord reports as
    deleted (and rebinding a recreated channel). A failed lookup is not a
    deletion; those threads stay open.

    Order of checks for a DM:
        candidates (shared, enabled, not blocked) -> open threads ->
        recent window -> create / prompt

Author: Courier Maintainers
"""

import asyncio
import sqlite3
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

import discord

from src.core.constants import (
    API_TIMEOUT,
    CHANNEL_MISSING_REASON,
    NEW_CONVERSATION_VALUE,
    SECONDS_PER_MINUTE,
    SELECT_OPTIONS_MAX,
)
from src.core.database import ModmailThreadRecord
from src.core.logger import logger
from src.utils.retry import fetch_channel_strict, safe_fetch_channel

from .constants import parse_channel_user_prefix

if TYPE_CHECKING:
    from .service import ModmailService


# =============================================================================
# Decision Types
# =============================================================================

class RouteAction(Enum):
    """What the DM handler should do with an inbound message."""
    NO_DESTINATION = "no_destination"
    FORWARD = "forward"
    PROMPT_THREAD_SELECT = "prompt_thread_select"
    CREATE = "create"
    PROMPT_GUILD_SELECT = "prompt_guild_select"


@dataclass
class RouteOption:
    """One entry of a selection prompt."""
    label: str
    value: str


@dataclass
class RouteDecision:
    """
    Result of routing a DM.

    Attributes:
        action: What to do.
        thread: Target thread for FORWARD.
        guild_id: Target guild for CREATE.
        options: Choices for the PROMPT_* actions.
        lost_threads: Threads closed during routing because their channel vanished.
        reason: Why NO_DESTINATION ("no_guilds", "blocked", "unavailable").
        blocked_guild_ids: Shared guilds that refused the user.
        auto_selected: FORWARD picked one of several open threads by recency.
    """
    action: RouteAction
    thread: Optional[ModmailThreadRecord] = None
    guild_id: Optional[int] = None
    options: List[RouteOption] = field(default_factory=list)
    lost_threads: List[ModmailThreadRecord] = field(default_factory=list)
    reason: Optional[str] = None
    blocked_guild_ids: List[int] = field(default_factory=list)
    auto_selected: bool = False


REASON_NO_GUILDS = "no_guilds"
REASON_BLOCKED = "blocked"
REASON_UNAVAILABLE = "unavailable"


def thread_sort_key(thread: ModmailThreadRecord) -> Tuple[float, int]:
    """Most recent activity first; ties go to the newer thread."""
    return (thread["last_message_at"], thread["id"])


# =============================================================================
# Router Mixin
# =============================================================================

class RouterMixin:
    """Mixin for DM and channel routing."""

    # =========================================================================
    # Candidate Guilds
    # =========================================================================

    async def get_mutual_guild_ids(self: "ModmailService", user_id: int) -> Tuple[int, ...]:
        """
        Guild IDs the bot shares with a user.

        DESIGN:
            The member cache answers most lookups. Guilds with modmail
            enabled get an API fetch when the member isn't cached, since a
            false negative there would strand the user. Only a complete,
            non-empty scan is cached: a guild skipped (modmail off, store
            error) or whose fetch failed leaves membership unknown, and
            the next DM scans again.
        """
        cached = self.membership_cache.get(user_id)
        if cached is not None:
            return cached

        mutual: List[int] = []
        complete = True
        for guild in self.bot.guilds:
            if guild.get_member(user_id) is not None:
                mutual.append(guild.id)
                continue

            try:
                enabled = self.db.is_modmail_enabled(guild.id)
            except sqlite3.Error as e:
                logger.warning("Modmail Membership Check Skipped", [
                    ("Guild", str(guild.id)),
                    ("Error", str(e)[:100]),
                ])
                complete = False
                continue
            if not enabled:
                complete = False
                continue

            try:
                await asyncio.wait_for(guild.fetch_member(user_id), timeout=API_TIMEOUT)
                mutual.append(guild.id)
            except discord.NotFound:
                continue
            except (discord.HTTPException, asyncio.TimeoutError) as e:
                complete = False
                logger.debug("Member Fetch Failed", [
                    ("Guild", str(guild.id)),
                    ("User", str(user_id)),
                    ("Error", type(e).__name__),
                ])

        result = tuple(mutual)
        if result and complete:
            self.membership_cache.set(user_id, result)
        return result

    async def get_candidate_guilds(
        self: "ModmailService",
        user_id: int,
    ) -> Tuple[List[discord.Guild], List[int]]:
        """
        Guilds that would accept a DM from this user.

        Returns:
            (candidates, blocked_guild_ids). A guild whose settings or block
            lookup fails is left out of both lists.
        """
        candidates: List[discord.Guild] = []
        blocked: List[int] = []

        for guild_id in await self.get_mutual_guild_ids(user_id):
            guild = self.bot.get_guild(guild_id)
            if guild is None:
                continue
            try:
                if not self.db.is_modmail_enabled(guild_id):
                    continue
                if self.db.is_user_blocked(user_id, guild_id):
                    blocked.append(guild_id)
                    continue
            except sqlite3.Error as e:
                logger.warning("Modmail Guild Excluded (Lookup Failed)", [
                    ("Guild", f"{guild.name} ({guild_id})"),
                    ("User", str(user_id)),
                    ("Error", str(e)[:100]),
                ])
                continue
            candidates.append(guild)

        candidates.sort(key=lambda g: (g.name.lower(), g.id))
        return candidates, blocked

    # =========================================================================
    # Channel Liveness
    # =========================================================================

    async def resolve_thread_channel(
        self: "ModmailService",
        channel_id: int,
    ) -> Optional[discord.abc.GuildChannel]:
        """Channel backing a thread, via the channel cache."""
        channel = self.channel_cache.get(channel_id)
        if channel is not None:
            return channel

        channel = await safe_fetch_channel(self.bot, channel_id)
        if channel is not None:
            self.channel_cache.set(channel_id, channel)
        return channel

    async def is_thread_channel_deleted(
        self: "ModmailService",
        channel_id: int,
    ) -> bool:
        """
        True only when Discord confirms the channel no longer exists.

        Forbidden, timeouts and other API errors leave the question open and
        return False, so an outage never closes a thread.
        """
        if self.channel_cache.get(channel_id) is not None:
            return False

        try:
            channel = await fetch_channel_strict(self.bot, channel_id)
        except discord.NotFound:
            return True
        except (discord.HTTPException, asyncio.TimeoutError) as e:
            logger.warning("Thread Channel Check Failed", [
                ("Channel", str(channel_id)),
                ("Error", type(e).__name__),
                ("Status", str(getattr(e, "status", "-"))),
            ])
            return False

        self.channel_cache.set(channel_id, channel)
        return False

    async def _filter_live_threads(
        self: "ModmailService",
        threads: List[ModmailThreadRecord],
    ) -> Tuple[List[ModmailThreadRecord], List[ModmailThreadRecord]]:
        """Split threads into (live, lost), closing the lost ones."""
        live: List[ModmailThreadRecord] = []
        lost: List[ModmailThreadRecord] = []

        for thread in threads:
            if not await self.is_thread_channel_deleted(thread["channel_id"]):
                live.append(thread)
                continue

            self.db.close_thread_record(thread["id"], None, CHANNEL_MISSING_REASON)
            lost.append(thread)
            logger.warning("Modmail Thread Lost", [
                ("Thread ID", str(thread["id"])),
                ("User", str(thread["user_id"])),
                ("Guild", str(thread["guild_id"])),
                ("Channel", str(thread["channel_id"])),
            ])

        return live, lost

    # =========================================================================
    # DM Routing
    # =========================================================================

    async def route_inbound_dm(
        self: "ModmailService",
        user_id: int,
        message: Optional[discord.Message] = None,
    ) -> RouteDecision:
        """
        Decide where a DM from user_id goes.

        Args:
            user_id: The DM author.
            message: The DM itself (only used for logging).

        Returns:
            RouteDecision. Never raises for store failures; those become
            NO_DESTINATION with reason "unavailable".
        """
        candidates, blocked = await self.get_candidate_guilds(user_id)

        if not candidates:
            reason = REASON_BLOCKED if blocked else REASON_NO_GUILDS
            logger.debug("Modmail DM Has No Destination", [
                ("User", str(user_id)),
                ("Reason", reason),
            ])
            return RouteDecision(
                action=RouteAction.NO_DESTINATION,
                reason=reason,
                blocked_guild_ids=blocked,
            )

        guild_names: Dict[int, str] = {g.id: g.name for g in candidates}

        try:
            open_threads = [
                t for t in self.db.get_open_threads_for_user(user_id)
                if t["guild_id"] in guild_names
            ]
            live, lost = await self._filter_live_threads(open_threads)
        except sqlite3.Error as e:
            logger.error("Modmail Thread Store Unavailable", [
                ("User", str(user_id)),
                ("Error", str(e)[:100]),
            ])
            return RouteDecision(action=RouteAction.NO_DESTINATION, reason=REASON_UNAVAILABLE)

        if len(live) == 1:
            return RouteDecision(action=RouteAction.FORWARD, thread=live[0], lost_threads=lost)

        if len(live) > 1:
            live.sort(key=thread_sort_key, reverse=True)
            latest = live[0]
            window = self.config.modmail_recent_window_minutes * SECONDS_PER_MINUTE

            if window > 0 and time.time() - latest["last_message_at"] <= window:
                return RouteDecision(
                    action=RouteAction.FORWARD,
                    thread=latest,
                    lost_threads=lost,
                    auto_selected=True,
                )

            options = [
                RouteOption(label=guild_names[t["guild_id"]], value=str(t["id"]))
                for t in live[:SELECT_OPTIONS_MAX - 1]
            ]
            options.append(RouteOption(label="New Conversation", value=NEW_CONVERSATION_VALUE))
            return RouteDecision(
                action=RouteAction.PROMPT_THREAD_SELECT,
                options=options,
                lost_threads=lost,
            )

        if len(candidates) == 1:
            return RouteDecision(
                action=RouteAction.CREATE,
                guild_id=candidates[0].id,
                lost_threads=lost,
            )

        return RouteDecision(
            action=RouteAction.PROMPT_GUILD_SELECT,
            options=[
                RouteOption(label=g.name, value=str(g.id))
                for g in candidates[:SELECT_OPTIONS_MAX]
            ],
            lost_threads=lost,
        )

    async def get_new_conversation_options(
        self: "ModmailService",
        user_id: int,
    ) -> List[RouteOption]:
        """Candidate guilds where the user has no open thread yet."""
        candidates, _ = await self.get_candidate_guilds(user_id)
        open_guilds = {t["guild_id"] for t in self.db.get_open_threads_for_user(user_id)}
        return [
            RouteOption(label=g.name, value=str(g.id))
            for g in candidates
            if g.id not in open_guilds
        ][:SELECT_OPTIONS_MAX]

    # =========================================================================
    # Channel Routing
    # =========================================================================

    async def route_channel_event(
        self: "ModmailService",
        channel_id: int,
    ) -> Optional[ModmailThreadRecord]:
        """
        Find the thread a staff channel belongs to.

        DESIGN:
            A miss falls back to the channel name, but only for channels in
            the guild's modmail category. The name carries the first 8
            digits of the user id; a single open thread in that guild whose
            user id matches, and whose own channel is gone, is rebound here.
        """
        thread = self.db.get_thread_by_channel(channel_id)
        if thread is not None:
            return thread

        channel = self.bot.get_channel(channel_id)
        guild = getattr(channel, "guild", None)
        if channel is None or guild is None:
            return None

        settings = self.db.get_guild_settings(guild.id)
        category_id = settings.modmail_category_id
        if category_id is None or getattr(channel, "category_id", None) != category_id:
            return None

        uid_prefix = parse_channel_user_prefix(getattr(channel, "name", ""))
        if uid_prefix is None:
            return None

        matches = [
            t for t in self.db.get_open_threads_in_guild(guild.id)
            if str(t["user_id"]).startswith(uid_prefix)
        ]
        if len(matches) != 1:
            if matches:
                logger.warning("Modmail Channel Match Ambiguous", [
                    ("Channel", f"#{channel.name} ({channel_id})"),
                    ("Matches", str(len(matches))),
                ])
            return None

        thread = matches[0]
        if not await self.is_thread_channel_deleted(thread["channel_id"]):
            return None

        self.db.update_thread_channel(thread["id"], channel_id)
        self.channel_cache.delete(thread["channel_id"])
        return self.db.get_thread(thread["id"])


__all__ = [
    "RouteAction",
    "RouteOption",
    "RouteDecision",
    "RouterMixin",
    "REASON_NO_GUILDS",
    "REASON_BLOCKED",
    "REASON_UNAVAILABLE",
    "thread_sort_key",
]
