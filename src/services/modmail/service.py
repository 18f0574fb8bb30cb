"""
Courier - Modmail Service
=========================

Thread lifecycle: create, relay, close.

Author: Courier Maintainers
"""

import asyncio
import sqlite3
import time
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Dict, Optional, Tuple, Union

import discord

from src.core.config import NY_TZ, get_config
from src.core.constants import AUTO_CLOSE_CHECK_INTERVAL
from src.core.database import GuildSettings, ModmailThreadRecord, get_db
from src.core.logger import logger
from src.utils.async_utils import create_safe_task, gather_with_logging
from src.utils.cache import AnnouncementCache, ChannelCache, Cooldowns, MembershipCache
from src.utils.discord_rate_limit import add_reaction_safe, log_http_error
from src.utils.retry import safe_fetch_user, safe_send

from .auto_close import AutoCloseMixin
from .constants import DELIVERED_REACTION, MODMAIL_EMOJI, SENT_REACTION, build_channel_name
from .embeds import (
    build_close_notice_embed,
    build_delivered_embed,
    build_log_closed_embed,
    build_log_created_embed,
    build_log_transcript_embed,
    build_staff_actions_embed,
    build_staff_reply_embed,
    build_thread_closed_dm_embed,
    build_thread_summary_embed,
    build_user_message_embed,
)
from .handlers import InboundMixin
from .models import Direction, InboundMessage, ThreadDeliveryError, as_inbound
from .router import RouterMixin
from .transcript import create_transcript_file
from .views import ThreadActionsView

if TYPE_CHECKING:
    from src.bot import CourierBot


ALREADY_CLOSED = "Thread is already closed"


class ModmailService(RouterMixin, InboundMixin, AutoCloseMixin):
    """
    Multi-guild modmail.

    DESIGN:
        Each conversation is a row in modmail_threads plus a private text
        channel under the guild's modmail category. The row's id is the
        stable identity; channel_id is a pointer that can be rebound.

        Mixins:
        - RouterMixin: where a DM or channel message belongs
        - InboundMixin: DM, staff message and selection handlers
        - AutoCloseMixin: idle warning and close sweep
    """

    def __init__(self, bot: "CourierBot") -> None:
        self.bot = bot
        self.config = get_config()
        self.db = get_db()
        self.channel_cache = ChannelCache()
        self.membership_cache = MembershipCache()
        self.prompt_cooldowns = Cooldowns()
        self.block_notice_cooldowns = Cooldowns()
        self._announced_threads = AnnouncementCache(timedelta(hours=self.config.modmail_idle_hours))
        self._pending_deletions: Dict[int, asyncio.Task] = {}
        self._auto_close_task: Optional[asyncio.Task] = None
        self._running: bool = False

        logger.tree("Modmail Service Initialized", [
            ("Idle Close", f"{self.config.modmail_idle_hours}h"),
            ("Idle Warning", f"{self.config.modmail_warning_hours}h"),
            ("Recent Window", f"{self.config.modmail_recent_window_minutes}m"),
            ("Delete Delay", f"{self.config.modmail_delete_delay}s"),
        ], emoji=MODMAIL_EMOJI)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        """Start the idle sweep."""
        if self._running:
            return

        self._running = True
        self._auto_close_task = create_safe_task(
            self._auto_close_loop(), "Modmail Auto-Close Loop"
        )

        logger.tree("Modmail Service Started", [
            ("Open Threads", str(self.db.count_open_threads())),
            ("Check Interval", f"{AUTO_CLOSE_CHECK_INTERVAL}s"),
        ], emoji=MODMAIL_EMOJI)

    async def stop(self) -> None:
        """Stop the idle sweep and pending channel deletions."""
        self._running = False
        if self._auto_close_task and not self._auto_close_task.done():
            self._auto_close_task.cancel()
            try:
                await self._auto_close_task
            except asyncio.CancelledError:
                pass

        for task in list(self._pending_deletions.values()):
            if not task.done():
                task.cancel()
        self._pending_deletions.clear()

        logger.info("Modmail Service Stopped")

    # =========================================================================
    # Create
    # =========================================================================

    def _build_overwrites(
        self,
        guild: discord.Guild,
        settings: GuildSettings,
    ) -> Dict[Union[discord.Role, discord.Member], discord.PermissionOverwrite]:
        """Hidden from @everyone, open to the staff role and the bot."""
        overwrites: Dict[Union[discord.Role, discord.Member], discord.PermissionOverwrite] = {
            guild.default_role: discord.PermissionOverwrite(view_channel=False),
            guild.me: discord.PermissionOverwrite(
                view_channel=True,
                send_messages=True,
                embed_links=True,
                attach_files=True,
                read_message_history=True,
                manage_channels=True,
            ),
        }

        staff_role = guild.get_role(settings.staff_role_id) if settings.staff_role_id else None
        if staff_role is not None:
            overwrites[staff_role] = discord.PermissionOverwrite(
                view_channel=True,
                send_messages=True,
                attach_files=True,
                read_message_history=True,
            )

        return overwrites

    async def create_thread(
        self,
        user: Union[discord.User, discord.Member],
        guild_id: int,
        message: Union[discord.Message, InboundMessage, None],
    ) -> Tuple[Optional[ModmailThreadRecord], str]:
        """
        Open a thread for a user in a guild.

        Args:
            user: The user writing in.
            guild_id: Destination guild.
            message: The opening message.

        Returns:
            (thread, message). thread is None when the thread couldn't be
            opened; message then explains why.
        """
        inbound = as_inbound(message)
        if inbound.author is None:
            inbound.author = user

        guild = self.bot.get_guild(guild_id)
        if guild is None:
            return None, "That server is no longer available."

        settings = self.db.get_guild_settings(guild_id)
        category_id = settings.modmail_category_id
        if category_id is None:
            return None, f"Modmail is not set up on **{guild.name}** yet."

        category = guild.get_channel(category_id)
        if not isinstance(category, discord.CategoryChannel):
            logger.warning("Modmail Category Missing", [
                ("Guild", f"{guild.name} ({guild.id})"),
                ("Category ID", str(category_id)),
            ])
            return None, f"The modmail category on **{guild.name}** is missing. Please contact the server staff."

        name = build_channel_name(user.name, user.id, int(time.time()))
        topic = f"Modmail thread with {user} ({user.id}) | Created: {datetime.now(NY_TZ).isoformat()}"

        try:
            channel = await guild.create_text_channel(
                name=name,
                category=category,
                topic=topic,
                overwrites=self._build_overwrites(guild, settings),
                reason=f"Modmail thread for {user} ({user.id})",
            )
        except discord.Forbidden as e:
            log_http_error(e, "Create Modmail Channel", [
                ("Guild", f"{guild.name} ({guild.id})"),
                ("User", str(user.id)),
            ])
            return None, f"I don't have permission to open a conversation on **{guild.name}**."
        except discord.HTTPException as e:
            log_http_error(e, "Create Modmail Channel", [
                ("Guild", f"{guild.name} ({guild.id})"),
                ("User", str(user.id)),
            ])
            return None, "Discord refused to open the conversation. Please try again later."

        try:
            record, created = self.db.create_thread_record(
                user.id, guild_id, channel.id, inbound.content or None
            )
        except sqlite3.Error as e:
            logger.error("Modmail Thread Record Failed", [
                ("Guild", str(guild_id)),
                ("User", str(user.id)),
                ("Error", str(e)[:100]),
            ])
            await self._delete_channel_now(channel, "Modmail thread could not be saved")
            return None, "Something went wrong saving your conversation. Please try again."

        if not created:
            # Lost the race against another DM; keep the existing thread
            await self._delete_channel_now(channel, "Duplicate modmail thread")
            try:
                await self.forward_to_thread(record, inbound, Direction.USER_TO_STAFF)
            except ThreadDeliveryError as e:
                return None, e.reason
            return record, "Your message was added to your open conversation."

        self.channel_cache.set(channel.id, channel)
        member = guild.get_member(user.id)

        try:
            await channel.send(embed=build_thread_summary_embed(user, member, inbound))
            await channel.send(
                embed=build_staff_actions_embed(),
                view=ThreadActionsView(record["id"]),
            )
        except discord.HTTPException as e:
            log_http_error(e, "Post Modmail Summary", [
                ("Thread ID", str(record["id"])),
                ("Channel", str(channel.id)),
            ])
            self.db.close_thread_record(record["id"], None, "creation failed")
            await self._delete_channel_now(channel, "Modmail summary could not be posted")
            return None, "Discord refused to open the conversation. Please try again later."

        await self._send_modmail_log(
            settings,
            build_log_created_embed(user, channel, record),
        )

        if inbound.source is not None:
            await add_reaction_safe(inbound.source, DELIVERED_REACTION)
        await safe_send(user, embed=build_delivered_embed(guild.name, new_thread=True))

        logger.tree("Modmail Thread Opened", [
            ("User", f"{user} ({user.id})"),
            ("Guild", f"{guild.name} ({guild.id})"),
            ("Channel", f"#{channel.name} ({channel.id})"),
            ("Thread ID", str(record["id"])),
            ("Attachments", str(len(inbound.attachments))),
        ], emoji=MODMAIL_EMOJI)

        return record, "Your message has been delivered."

    # =========================================================================
    # Relay
    # =========================================================================

    async def forward_to_thread(
        self,
        thread: ModmailThreadRecord,
        message: Union[discord.Message, InboundMessage],
        direction: Direction,
    ) -> None:
        """
        Relay a message across a thread and record the activity.

        Raises:
            ThreadDeliveryError: The message didn't reach the other side.
        """
        inbound = as_inbound(message)

        if direction is Direction.USER_TO_STAFF:
            await self._relay_to_staff(thread, inbound)
        else:
            await self._relay_to_user(thread, inbound)

        self.db.record_thread_activity(thread["id"])

    async def _relay_to_staff(self, thread: ModmailThreadRecord, inbound: InboundMessage) -> None:
        channel = await self.resolve_thread_channel(thread["channel_id"])
        if channel is None:
            raise ThreadDeliveryError("The staff channel for this conversation could not be reached. Please try again shortly.")

        author = inbound.author or await safe_fetch_user(self.bot, thread["user_id"])
        if author is None:
            raise ThreadDeliveryError("Your account could not be resolved.")

        try:
            await channel.send(embed=build_user_message_embed(author, inbound))
        except discord.HTTPException as e:
            log_http_error(e, "Relay To Staff", [
                ("Thread ID", str(thread["id"])),
                ("Channel", str(thread["channel_id"])),
            ])
            if isinstance(e, discord.NotFound):
                self.channel_cache.delete(thread["channel_id"])
            raise ThreadDeliveryError("Your message could not reach the staff. Please try again.", e) from e

        if inbound.source is not None:
            await add_reaction_safe(inbound.source, DELIVERED_REACTION)

    async def _relay_to_user(self, thread: ModmailThreadRecord, inbound: InboundMessage) -> None:
        user = await safe_fetch_user(self.bot, thread["user_id"])
        if user is None:
            raise ThreadDeliveryError("The user could not be found.")

        guild = self.bot.get_guild(thread["guild_id"])
        guild_name = guild.name if guild else "the server"
        staff_name = inbound.author.display_name if inbound.author else "Staff"

        try:
            await user.send(embed=build_staff_reply_embed(guild_name, staff_name, inbound))
        except discord.Forbidden as e:
            log_http_error(e, "Relay To User", [
                ("Thread ID", str(thread["id"])),
                ("User", str(thread["user_id"])),
            ])
            raise ThreadDeliveryError("The user has DMs closed or has blocked the bot.", e) from e
        except discord.HTTPException as e:
            log_http_error(e, "Relay To User", [
                ("Thread ID", str(thread["id"])),
                ("User", str(thread["user_id"])),
            ])
            raise ThreadDeliveryError("Discord refused the message. Please try again.", e) from e

        if inbound.source is not None:
            await add_reaction_safe(inbound.source, SENT_REACTION)

    # =========================================================================
    # Close
    # =========================================================================

    async def close_thread(
        self,
        thread: ModmailThreadRecord,
        actor_id: Optional[int],
        reason: Optional[str] = None,
    ) -> Tuple[bool, str]:
        """
        Close a thread once.

        Args:
            thread: The thread (may be a stale copy).
            actor_id: Staff member closing it, None for automatic closes.
            reason: Close reason.

        Returns:
            (success, message).
        """
        if not self.db.close_thread_record(thread["id"], actor_id, reason):
            return False, ALREADY_CLOSED

        closed = self.db.get_thread(thread["id"]) or thread
        self._announced_threads.delete(closed["user_id"])

        guild = self.bot.get_guild(closed["guild_id"])
        guild_name = guild.name if guild else str(closed["guild_id"])
        channel = await self.resolve_thread_channel(closed["channel_id"])

        transcript = None
        if channel is not None:
            transcript = await create_transcript_file(closed, channel, guild_name)

        operations = [
            ("DM User", self._notify_user_closed(closed, guild_name, reason)),
            ("Log Close", self._send_modmail_log(
                self.db.get_guild_settings(closed["guild_id"]),
                build_log_closed_embed(closed, actor_id, reason),
                file=transcript,
            )),
        ]
        if channel is not None:
            operations.append(("Close Notice", channel.send(
                embed=build_close_notice_embed(actor_id, reason, self.config.modmail_delete_delay),
            )))
        await gather_with_logging(*operations, context="Close Modmail Thread")

        if channel is not None:
            self._schedule_channel_deletion(closed["id"], channel)

        logger.tree("Modmail Thread Closed", [
            ("Thread ID", str(closed["id"])),
            ("User", str(closed["user_id"])),
            ("Guild", guild_name),
            ("Closed By", str(actor_id) if actor_id else "Automatic"),
            ("Reason", reason or "None"),
            ("Messages", str(closed.get("message_count", 0))),
        ], emoji="🔒")

        return True, "Thread closed."

    async def _notify_user_closed(
        self,
        thread: ModmailThreadRecord,
        guild_name: str,
        reason: Optional[str],
    ) -> None:
        user = await safe_fetch_user(self.bot, thread["user_id"])
        if user is None:
            return
        try:
            await user.send(embed=build_thread_closed_dm_embed(guild_name, reason))
        except discord.HTTPException as e:
            log_http_error(e, "Thread Closed DM", [("User", str(thread["user_id"]))])

    # =========================================================================
    # Transcript
    # =========================================================================

    async def export_transcript(
        self,
        thread: ModmailThreadRecord,
        requested_by: discord.abc.User,
    ) -> Optional[discord.File]:
        """
        Build a transcript on demand and note it in the log channel.

        Returns:
            The .txt file, or None when the thread channel is gone.
        """
        channel = await self.resolve_thread_channel(thread["channel_id"])
        if channel is None:
            return None

        guild = self.bot.get_guild(thread["guild_id"])
        file = await create_transcript_file(thread, channel, guild.name if guild else None)

        await self._send_modmail_log(
            self.db.get_guild_settings(thread["guild_id"]),
            build_log_transcript_embed(thread, requested_by),
        )
        logger.tree("Modmail Transcript Exported", [
            ("Thread ID", str(thread["id"])),
            ("Requested By", f"{requested_by} ({requested_by.id})"),
        ], emoji="📄")
        return file

    # =========================================================================
    # Channel Deletion
    # =========================================================================

    def _schedule_channel_deletion(self, thread_id: int, channel: discord.abc.GuildChannel) -> None:
        """Delete the channel after the configured delay, without waiting."""
        task = create_safe_task(
            self._delete_channel_later(channel),
            f"Delete Modmail Channel {channel.id}",
        )
        self._pending_deletions[thread_id] = task
        task.add_done_callback(lambda _: self._pending_deletions.pop(thread_id, None))

    async def _delete_channel_later(self, channel: discord.abc.GuildChannel) -> None:
        await asyncio.sleep(self.config.modmail_delete_delay)
        await self._delete_channel_now(channel, "Modmail thread closed")

    async def _delete_channel_now(self, channel: discord.abc.GuildChannel, reason: str) -> None:
        self.channel_cache.delete(channel.id)
        try:
            await channel.delete(reason=reason)
        except discord.NotFound:
            pass
        except discord.HTTPException as e:
            log_http_error(e, "Delete Modmail Channel", [
                ("Channel", str(channel.id)),
                ("Reason", reason),
            ])

    # =========================================================================
    # Log Channel
    # =========================================================================

    async def _send_modmail_log(
        self,
        settings: GuildSettings,
        embed: discord.Embed,
        file: Optional[discord.File] = None,
    ) -> None:
        """Post to the guild's modmail log channel, if one is configured."""
        channel_id = settings.modmail_log_channel_id
        if channel_id is None:
            return

        channel = await self.resolve_thread_channel(channel_id)
        if channel is None:
            logger.debug("Modmail Log Channel Missing", [
                ("Guild", str(settings.guild_id)),
                ("Channel", str(channel_id)),
            ])
            return

        kwargs = {"embed": embed}
        if file is not None:
            kwargs["file"] = file
        await safe_send(channel, **kwargs)


__all__ = ["ModmailService", "ALREADY_CLOSED"]
