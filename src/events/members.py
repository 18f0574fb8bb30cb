"""
Courier - Member Events
=======================

Handles member join, leave, update and voice events for server logs.

DESIGN:
    Member changes also invalidate the modmail membership cache, so a
    user who just joined or left a server is routed against fresh data
    on their next DM.

Author: Courier Maintainers
"""

from typing import TYPE_CHECKING

import discord
from discord.ext import commands

from src.utils.error_handler import ErrorHandler

if TYPE_CHECKING:
    from src.bot import CourierBot


class MemberEvents(commands.Cog):
    """Member event handlers."""

    def __init__(self, bot: "CourierBot") -> None:
        self.bot = bot

    def _forget_membership(self, user_id: int) -> None:
        if self.bot.modmail_service is not None:
            self.bot.modmail_service.membership_cache.delete(user_id)

    @commands.Cog.listener()
    async def on_member_join(self, member: discord.Member) -> None:
        self._forget_membership(member.id)
        if self.bot.logging_service is None:
            return
        try:
            await self.bot.logging_service.log_member_join(member)
        except Exception as e:
            ErrorHandler.handle(e, location="Log Member Join", guild_id=member.guild.id, user_id=member.id)

    @commands.Cog.listener()
    async def on_member_remove(self, member: discord.Member) -> None:
        self._forget_membership(member.id)
        if self.bot.logging_service is None:
            return
        try:
            await self.bot.logging_service.log_member_leave(member)
        except Exception as e:
            ErrorHandler.handle(e, location="Log Member Leave", guild_id=member.guild.id, user_id=member.id)

    @commands.Cog.listener()
    async def on_member_update(self, before: discord.Member, after: discord.Member) -> None:
        """Nickname and role changes."""
        if self.bot.logging_service is None:
            return
        try:
            await self.bot.logging_service.log_member_update(before, after)
        except Exception as e:
            ErrorHandler.handle(e, location="Log Member Update", guild_id=after.guild.id, user_id=after.id)

    @commands.Cog.listener()
    async def on_voice_state_update(
        self,
        member: discord.Member,
        before: discord.VoiceState,
        after: discord.VoiceState,
    ) -> None:
        if self.bot.logging_service is None or member.bot:
            return
        try:
            await self.bot.logging_service.log_voice_state(member, before, after)
        except Exception as e:
            ErrorHandler.handle(e, location="Log Voice State", guild_id=member.guild.id, user_id=member.id)


async def setup(bot: "CourierBot") -> None:
    """Register the member events cog with the bot."""
    await bot.add_cog(MemberEvents(bot))
