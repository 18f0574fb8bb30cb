"""
Courier - Channel, Role & Guild Events
======================================

Handles channel, role and guild events.

DESIGN:
    Server log events are forwarded to LoggingService, which applies the
    per-guild category and ignore settings. on_guild_join creates the
    settings row up front so /modmail-setup status has something to show.

Author: Courier Maintainers
"""

from typing import TYPE_CHECKING

import discord
from discord.ext import commands

from src.core.logger import logger
from src.utils.error_handler import ErrorHandler

if TYPE_CHECKING:
    from src.bot import CourierBot


class ChannelEvents(commands.Cog):
    """Channel, role and guild event handlers."""

    def __init__(self, bot: "CourierBot") -> None:
        self.bot = bot

    async def _forward(self, location: str, guild_id: int, coro) -> None:
        try:
            await coro
        except Exception as e:
            ErrorHandler.handle(e, location=location, guild_id=guild_id)

    # =========================================================================
    # Channel Events
    # =========================================================================

    @commands.Cog.listener()
    async def on_guild_channel_create(self, channel: discord.abc.GuildChannel) -> None:
        if self.bot.logging_service:
            await self._forward(
                "Log Channel Create", channel.guild.id,
                self.bot.logging_service.log_channel_create(channel),
            )

    @commands.Cog.listener()
    async def on_guild_channel_delete(self, channel: discord.abc.GuildChannel) -> None:
        """Log the deletion and drop the channel from the modmail cache."""
        if self.bot.modmail_service is not None:
            self.bot.modmail_service.channel_cache.delete(channel.id)

        if self.bot.logging_service:
            await self._forward(
                "Log Channel Delete", channel.guild.id,
                self.bot.logging_service.log_channel_delete(channel),
            )

    @commands.Cog.listener()
    async def on_guild_channel_update(
        self,
        before: discord.abc.GuildChannel,
        after: discord.abc.GuildChannel,
    ) -> None:
        if self.bot.logging_service:
            await self._forward(
                "Log Channel Update", after.guild.id,
                self.bot.logging_service.log_channel_update(before, after),
            )

    # =========================================================================
    # Role Events
    # =========================================================================

    @commands.Cog.listener()
    async def on_guild_role_create(self, role: discord.Role) -> None:
        if self.bot.logging_service:
            await self._forward(
                "Log Role Create", role.guild.id,
                self.bot.logging_service.log_role_create(role),
            )

    @commands.Cog.listener()
    async def on_guild_role_delete(self, role: discord.Role) -> None:
        if self.bot.logging_service:
            await self._forward(
                "Log Role Delete", role.guild.id,
                self.bot.logging_service.log_role_delete(role),
            )

    @commands.Cog.listener()
    async def on_guild_role_update(self, before: discord.Role, after: discord.Role) -> None:
        if self.bot.logging_service:
            await self._forward(
                "Log Role Update", after.guild.id,
                self.bot.logging_service.log_role_update(before, after),
            )

    # =========================================================================
    # Guild Events
    # =========================================================================

    @commands.Cog.listener()
    async def on_guild_update(self, before: discord.Guild, after: discord.Guild) -> None:
        if self.bot.logging_service:
            await self._forward(
                "Log Server Update", after.id,
                self.bot.logging_service.log_server_update(before, after),
            )

    @commands.Cog.listener()
    async def on_guild_join(self, guild: discord.Guild) -> None:
        """Create the settings row for a new guild."""
        try:
            settings = self.bot.db.get_guild_settings(guild.id)
        except Exception as e:
            ErrorHandler.handle(e, location="Guild Join Settings", guild_id=guild.id)
            return

        logger.tree("Joined Guild", [
            ("Guild", f"{guild.name} ({guild.id})"),
            ("Members", str(guild.member_count or "?")),
            ("Modmail", "Enabled" if settings.modmail_enabled else "Run /setup"),
            ("Total Guilds", str(len(self.bot.guilds))),
        ], emoji="🎉")

    @commands.Cog.listener()
    async def on_guild_remove(self, guild: discord.Guild) -> None:
        """Settings and threads are kept in case the bot is re-invited."""
        logger.tree("Removed From Guild", [
            ("Guild", f"{guild.name} ({guild.id})"),
            ("Total Guilds", str(len(self.bot.guilds))),
        ], emoji="👋")


async def setup(bot: "CourierBot") -> None:
    """Register the channel events cog with the bot."""
    await bot.add_cog(ChannelEvents(bot))
