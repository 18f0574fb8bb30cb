"""
Courier - Message Events
========================

Routes message create, delete and edit events.

DESIGN:
    on_message is the recovery boundary for modmail traffic: DMs go to
    ModmailService.handle_dm, guild messages are offered to
    handle_staff_message. Anything unexpected is logged with a traceback
    and the DM author gets a generic reply.

Author: Courier Maintainers
"""

from typing import TYPE_CHECKING, List

import discord
from discord.ext import commands

from src.core.logger import logger
from src.utils.error_handler import ErrorHandler
from src.utils.retry import safe_send

if TYPE_CHECKING:
    from src.bot import CourierBot


GENERIC_DM_ERROR = "Sorry, something went wrong while handling your message. Please try again."


class MessageEvents(commands.Cog):
    """Message event handlers."""

    def __init__(self, bot: "CourierBot") -> None:
        self.bot = bot

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        """
        Event handler for messages.

        DESIGN: Two-path routing:
        1. DM from a user -> modmail inbound
        2. Guild message -> staff relay when the channel is a thread
        """
        if message.author.bot or self.bot.modmail_service is None:
            return

        if message.guild is None:
            try:
                await self.bot.modmail_service.handle_dm(message)
            except Exception as e:
                ErrorHandler.handle(
                    e,
                    location="Modmail DM",
                    user_id=message.author.id,
                    message_id=message.id,
                )
                await safe_send(message.channel, GENERIC_DM_ERROR)
            return

        try:
            await self.bot.modmail_service.handle_staff_message(message)
        except Exception as e:
            ErrorHandler.handle(
                e,
                location="Modmail Staff Message",
                guild_id=message.guild.id,
                channel_id=message.channel.id,
                user_id=message.author.id,
            )
            await safe_send(message.channel, "⚠️ Something went wrong relaying that message.")

    @commands.Cog.listener()
    async def on_message_delete(self, message: discord.Message) -> None:
        if message.guild is None or message.author.bot or self.bot.logging_service is None:
            return
        try:
            await self.bot.logging_service.log_message_delete(message)
        except Exception as e:
            ErrorHandler.handle(e, location="Log Message Delete", guild_id=message.guild.id)

    @commands.Cog.listener()
    async def on_message_edit(self, before: discord.Message, after: discord.Message) -> None:
        if after.guild is None or after.author.bot or self.bot.logging_service is None:
            return
        # Embed unfurls fire edits with unchanged content
        if before.content == after.content:
            return
        try:
            await self.bot.logging_service.log_message_edit(before, after)
        except Exception as e:
            ErrorHandler.handle(e, location="Log Message Edit", guild_id=after.guild.id)

    @commands.Cog.listener()
    async def on_bulk_message_delete(self, messages: List[discord.Message]) -> None:
        if not messages or messages[0].guild is None or self.bot.logging_service is None:
            return
        try:
            await self.bot.logging_service.log_bulk_delete(messages)
        except Exception as e:
            ErrorHandler.handle(e, location="Log Bulk Delete", guild_id=messages[0].guild.id)
        logger.debug("Bulk Delete Handled", [("Count", str(len(messages)))])


async def setup(bot: "CourierBot") -> None:
    """Register the message events cog with the bot."""
    await bot.add_cog(MessageEvents(bot))
