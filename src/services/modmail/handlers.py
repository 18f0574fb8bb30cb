"""
Courier - Modmail Inbound Handlers
==================================

Acts on routing decisions for DMs, staff channel messages and the
destination selection menus.

DESIGN:
    Every DM gets some visible outcome: a reaction, a prompt, or a
    notice. Notices that could repeat (no destination, blocked) are
    rate limited per user instead of suppressed.

Author: Courier Maintainers
"""

import sqlite3
from typing import TYPE_CHECKING, List, Optional, Tuple, Union

import discord

from src.core.config import EmbedColors
from src.core.constants import CHANNEL_MISSING_REASON, NEW_CONVERSATION_VALUE
from src.core.database import ModmailThreadRecord
from src.core.logger import logger
from src.utils.discord_rate_limit import log_http_error
from src.utils.retry import safe_send

from .embeds import (
    build_guild_select_embed,
    build_notice_embed,
    build_staff_reply_embed,
    build_thread_select_embed,
)
from .models import Direction, InboundMessage, ThreadDeliveryError
from .router import (
    REASON_BLOCKED,
    REASON_UNAVAILABLE,
    RouteAction,
    RouteDecision,
)
from .views import GuildSelectView, ThreadSelectView

if TYPE_CHECKING:
    from .service import ModmailService


INTERNAL_NOTE_PREFIXES = ("!", "#")

NO_GUILDS_NOTICE = (
    "None of the servers we share have modmail enabled, so your message could not be delivered."
)
BLOCKED_NOTICE = "You have been blocked from contacting the staff of this server through modmail."
UNAVAILABLE_NOTICE = "Sorry, modmail is temporarily unavailable. Please try again in a few minutes."
EXPIRED_NOTICE = "This selection has expired. Please send your message again."
EMPTY_NOTICE = "Only text and attachments can be relayed to staff."


class InboundMixin:
    """Mixin for DM, staff message and selection handling."""

    # =========================================================================
    # DMs
    # =========================================================================

    async def handle_dm(self: "ModmailService", message: discord.Message) -> None:
        """Route a DM and act on the decision."""
        user = message.author
        inbound = InboundMessage.from_message(message)

        if inbound.is_empty:
            await self._dm_notice(user, EMPTY_NOTICE)
            return

        decision = await self.route_inbound_dm(user.id, message)

        if decision.lost_threads:
            await self._notify_lost_threads(user, decision.lost_threads)

        if decision.action is RouteAction.NO_DESTINATION:
            await self._handle_no_destination(user, decision)
            return

        if decision.action is RouteAction.FORWARD:
            await self._forward_dm(user, decision.thread, inbound, decision.auto_selected)
            return

        if decision.action is RouteAction.CREATE:
            thread, reply = await self.create_thread(user, decision.guild_id, inbound)
            if thread is None:
                await self._dm_notice(user, reply, EmbedColors.ERROR)
            return

        await self._prompt_selection(user, decision, inbound)

    async def _handle_no_destination(
        self: "ModmailService",
        user: discord.abc.User,
        decision: RouteDecision,
    ) -> None:
        if decision.reason == REASON_BLOCKED:
            if self.block_notice_cooldowns.try_acquire(user.id, self.config.block_notice_cooldown):
                names = [
                    g.name for g in (self.bot.get_guild(gid) for gid in decision.blocked_guild_ids) if g
                ]
                notice = BLOCKED_NOTICE
                if len(names) > 1:
                    notice = (
                        "You have been blocked from contacting staff through modmail on: "
                        + ", ".join(f"**{n}**" for n in names)
                    )
                await self._dm_notice(user, notice, EmbedColors.ERROR)
            else:
                logger.debug("Block Notice Suppressed", [("User", str(user.id))])
            return

        if decision.reason == REASON_UNAVAILABLE:
            await self._dm_notice(user, UNAVAILABLE_NOTICE, EmbedColors.ERROR)
            return

        if self.prompt_cooldowns.try_acquire(("no_guilds", user.id), self.config.reply_cooldown_seconds):
            await self._dm_notice(user, NO_GUILDS_NOTICE)

    async def _forward_dm(
        self: "ModmailService",
        user: discord.abc.User,
        thread: ModmailThreadRecord,
        inbound: InboundMessage,
        auto_selected: bool,
    ) -> None:
        try:
            await self.forward_to_thread(thread, inbound, Direction.USER_TO_STAFF)
        except ThreadDeliveryError as e:
            await self._dm_notice(user, e.reason, EmbedColors.ERROR)
            return

        if auto_selected and self._announced_threads.get(user.id) != thread["id"]:
            guild = self.bot.get_guild(thread["guild_id"])
            await self._dm_notice(
                user,
                f"Continuing your conversation with **{guild.name if guild else 'the server'}**. "
                "Wait a while before your next message to choose another server.",
                EmbedColors.INFO,
            )
        self._announced_threads.set(user.id, thread["id"])

    async def _prompt_selection(
        self: "ModmailService",
        user: discord.abc.User,
        decision: RouteDecision,
        inbound: InboundMessage,
    ) -> None:
        """Store the DM and ask the user where it should go."""
        try:
            self._store_pending(user.id, inbound)
        except sqlite3.Error as e:
            logger.error("Pending Message Save Failed", [
                ("User", str(user.id)),
                ("Error", str(e)[:100]),
            ])
            await self._dm_notice(user, UNAVAILABLE_NOTICE, EmbedColors.ERROR)
            return

        self._announced_threads.delete(user.id)

        if not self.prompt_cooldowns.try_acquire(("prompt", user.id), self.config.reply_cooldown_seconds):
            logger.debug("Selection Prompt Merged", [("User", str(user.id))])
            return

        if decision.action is RouteAction.PROMPT_THREAD_SELECT:
            embed = build_thread_select_embed()
            view = ThreadSelectView(user.id, decision.options)
        else:
            embed = build_guild_select_embed()
            view = GuildSelectView(user.id, decision.options)

        sent = await safe_send(user, embed=embed, view=view)
        logger.tree("Modmail Selection Prompted", [
            ("User", f"{user} ({user.id})"),
            ("Type", "Thread" if decision.action is RouteAction.PROMPT_THREAD_SELECT else "Server"),
            ("Options", str(len(decision.options))),
            ("Delivered", "Yes" if sent else "No"),
        ], emoji="📋")

    def _store_pending(self: "ModmailService", user_id: int, inbound: InboundMessage) -> None:
        """Save the DM for later delivery, appending to an unanswered prompt."""
        existing = self.db.get_pending_message(user_id)
        content = inbound.content
        attachments = list(inbound.attachments)
        if existing is not None:
            previous = existing.get("content") or ""
            content = f"{previous}\n{content}" if previous and content else (previous or content)
            attachments = list(existing.get("attachments") or []) + attachments
        self.db.save_pending_message(user_id, content, attachments)

    async def _notify_lost_threads(
        self: "ModmailService",
        user: discord.abc.User,
        lost: List[ModmailThreadRecord],
    ) -> None:
        names = []
        for thread in lost:
            guild = self.bot.get_guild(thread["guild_id"])
            names.append(guild.name if guild else str(thread["guild_id"]))
        await self._dm_notice(
            user,
            "Your previous conversation with "
            + ", ".join(f"**{n}**" for n in names)
            + " was lost because its staff channel was deleted. Your message will start a new one.",
        )

    async def _dm_notice(
        self: "ModmailService",
        user: discord.abc.User,
        text: str,
        color: int = EmbedColors.WARNING,
    ) -> None:
        await safe_send(user, embed=build_notice_embed(text, color))

    # =========================================================================
    # Selections
    # =========================================================================

    async def handle_guild_selection(
        self: "ModmailService",
        interaction: discord.Interaction,
        user_id: int,
        guild_id: int,
    ) -> None:
        """Deliver the pending DM to the chosen guild."""
        if interaction.user.id != user_id:
            await interaction.response.send_message("This menu isn't for you.", ephemeral=True)
            return

        pending = self.db.pop_pending_message(user_id)
        if pending is None:
            await interaction.response.edit_message(embed=build_notice_embed(EXPIRED_NOTICE), view=None)
            return

        candidates, _ = await self.get_candidate_guilds(user_id)
        guild = next((g for g in candidates if g.id == guild_id), None)
        if guild is None:
            await interaction.response.edit_message(
                embed=build_notice_embed("You can no longer contact that server through modmail.", EmbedColors.ERROR),
                view=None,
            )
            return

        await interaction.response.edit_message(
            embed=build_notice_embed(f"Sending your message to **{guild.name}**...", EmbedColors.INFO),
            view=None,
        )

        inbound = InboundMessage.from_pending(pending, interaction.user)
        existing = self.db.get_open_thread(user_id, guild_id)
        if existing is not None:
            if not await self.is_thread_channel_deleted(existing["channel_id"]):
                await self._deliver_selected(interaction.user, existing, inbound)
                return
            await self.close_thread(existing, None, CHANNEL_MISSING_REASON)

        thread, reply = await self.create_thread(interaction.user, guild_id, inbound)
        if thread is None:
            await self._dm_notice(interaction.user, reply, EmbedColors.ERROR)
            return
        self._announced_threads.set(user_id, thread["id"])

    async def handle_thread_selection(
        self: "ModmailService",
        interaction: discord.Interaction,
        user_id: int,
        value: str,
    ) -> None:
        """Deliver the pending DM to the chosen thread, or start a new conversation."""
        if interaction.user.id != user_id:
            await interaction.response.send_message("This menu isn't for you.", ephemeral=True)
            return

        if value == NEW_CONVERSATION_VALUE:
            if self.db.get_pending_message(user_id) is None:
                await interaction.response.edit_message(embed=build_notice_embed(EXPIRED_NOTICE), view=None)
                return
            options = await self.get_new_conversation_options(user_id)
            if not options:
                await interaction.response.edit_message(
                    embed=build_notice_embed(
                        "You already have an open conversation with every server available. "
                        "Pick one of them instead."
                    ),
                    view=None,
                )
                self.db.delete_pending_message(user_id)
                return
            await interaction.response.edit_message(
                embed=build_guild_select_embed(),
                view=GuildSelectView(user_id, options),
            )
            return

        pending = self.db.pop_pending_message(user_id)
        if pending is None:
            await interaction.response.edit_message(embed=build_notice_embed(EXPIRED_NOTICE), view=None)
            return

        thread = self.db.get_thread(int(value))
        if thread is None or not thread["open"] or thread["user_id"] != user_id:
            await interaction.response.edit_message(
                embed=build_notice_embed("That conversation has been closed. Please send your message again."),
                view=None,
            )
            return

        guild = self.bot.get_guild(thread["guild_id"])
        await interaction.response.edit_message(
            embed=build_notice_embed(
                f"Sending your message to **{guild.name if guild else 'the server'}**...",
                EmbedColors.INFO,
            ),
            view=None,
        )
        await self._deliver_selected(interaction.user, thread, InboundMessage.from_pending(pending, interaction.user))

    async def _deliver_selected(
        self: "ModmailService",
        user: discord.abc.User,
        thread: ModmailThreadRecord,
        inbound: InboundMessage,
    ) -> None:
        try:
            await self.forward_to_thread(thread, inbound, Direction.USER_TO_STAFF)
        except ThreadDeliveryError as e:
            await self._dm_notice(user, e.reason, EmbedColors.ERROR)
            return

        guild = self.bot.get_guild(thread["guild_id"])
        self._announced_threads.set(user.id, thread["id"])
        await self._dm_notice(
            user,
            f"Your message was delivered to the staff of **{guild.name if guild else 'the server'}**.",
            EmbedColors.SUCCESS,
        )

    # =========================================================================
    # Staff Side
    # =========================================================================

    async def handle_staff_message(self: "ModmailService", message: discord.Message) -> bool:
        """
        Relay a message typed in a thread channel to the user.

        Returns:
            True if the message belonged to an open thread and was handled.
        """
        if message.author.bot or message.content.startswith(INTERNAL_NOTE_PREFIXES):
            return False

        thread = await self.route_channel_event(message.channel.id)
        if thread is None or not thread["open"]:
            return False

        inbound = InboundMessage.from_message(message)
        if inbound.is_empty:
            return False

        try:
            await self.forward_to_thread(thread, inbound, Direction.STAFF_TO_USER)
        except ThreadDeliveryError as e:
            await safe_send(message.channel, f"⚠️ Not delivered: {e.reason}")
        return True

    async def reply_from_staff(
        self: "ModmailService",
        thread: ModmailThreadRecord,
        staff: Union[discord.Member, discord.User],
        text: str,
    ) -> Tuple[bool, str]:
        """
        Send a reply written in a modal or slash command.

        The reply is echoed into the thread channel so staff can see it.
        """
        inbound = InboundMessage(content=text, author=staff)
        try:
            await self.forward_to_thread(thread, inbound, Direction.STAFF_TO_USER)
        except ThreadDeliveryError as e:
            return False, e.reason

        channel = await self.resolve_thread_channel(thread["channel_id"])
        if channel is not None:
            guild = self.bot.get_guild(thread["guild_id"])
            try:
                await channel.send(embed=build_staff_reply_embed(
                    guild.name if guild else "the server", staff.display_name, inbound,
                ))
            except discord.HTTPException as e:
                log_http_error(e, "Echo Staff Reply", [("Thread ID", str(thread["id"]))])

        return True, "Reply sent."

    async def resolve_interaction_thread(
        self: "ModmailService",
        channel_id: int,
    ) -> Optional[ModmailThreadRecord]:
        """Open thread for a staff channel, or None."""
        thread = await self.route_channel_event(channel_id)
        if thread is None or not thread["open"]:
            return None
        return thread


__all__ = ["InboundMixin", "INTERNAL_NOTE_PREFIXES"]
