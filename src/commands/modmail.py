"""
Courier - Modmail Command Cog
=============================

Staff slash commands for working inside modmail threads.

DESIGN:
    close and reply act on the thread bound to the channel the command is
    run in, resolved through the router so a rebound channel still works.
    block and unblock are per guild and need Administrator or Manage
    Server; closing and replying only need the staff role.

Features:
    - /modmail close [reason]
    - /modmail reply <message>
    - /modmail block <user> [reason]
    - /modmail unblock <user>

Author: Courier Maintainers
"""

from typing import TYPE_CHECKING, Optional

import discord
from discord import app_commands
from discord.ext import commands

from src.core.config import EmbedColors, check_staff_permission, is_owner
from src.core.logger import logger
from src.utils.footer import set_footer

if TYPE_CHECKING:
    from src.bot import CourierBot
    from src.services.modmail import ModmailService


NOT_A_THREAD = "❌ This command only works inside an open modmail thread."
SERVICE_UNAVAILABLE = "❌ Modmail service unavailable."
BLOCK_PERMISSION_DENIED = "❌ Blocking requires Administrator or Manage Server."


def can_manage_blocks(member: discord.abc.User) -> bool:
    """Administrator, Manage Server or the bot owner."""
    if is_owner(member.id):
        return True
    permissions = getattr(member, "guild_permissions", None)
    return bool(permissions and (permissions.administrator or permissions.manage_guild))


# =============================================================================
# Modmail Cog
# =============================================================================

class ModmailCog(commands.Cog):
    """Thread commands for staff."""

    modmail = app_commands.Group(
        name="modmail",
        description="Modmail thread commands",
        guild_only=True,
    )

    def __init__(self, bot: "CourierBot") -> None:
        self.bot = bot

        logger.tree("Modmail Cog Loaded", [
            ("Commands", "/modmail close, reply, block, unblock"),
        ], emoji="📬")

    @property
    def service(self) -> Optional["ModmailService"]:
        return getattr(self.bot, "modmail_service", None)

    # =========================================================================
    # Close / Reply
    # =========================================================================

    @modmail.command(name="close", description="Close this modmail thread")
    @app_commands.describe(reason="Reason shown to the user")
    async def close(
        self,
        interaction: discord.Interaction,
        reason: Optional[str] = None,
    ) -> None:
        """Close the thread bound to this channel."""
        if not await check_staff_permission(interaction):
            return
        if self.service is None:
            await interaction.response.send_message(SERVICE_UNAVAILABLE, ephemeral=True)
            return

        await interaction.response.defer(ephemeral=True)

        thread = await self.service.resolve_interaction_thread(interaction.channel_id)
        if thread is None:
            await interaction.followup.send(NOT_A_THREAD, ephemeral=True)
            return

        success, message = await self.service.close_thread(thread, interaction.user.id, reason)
        await interaction.followup.send(
            f"🔒 {message}" if success else f"❌ {message}",
            ephemeral=True,
        )

    @modmail.command(name="reply", description="Reply to the user of this modmail thread")
    @app_commands.describe(message="Message to send to the user")
    async def reply(
        self,
        interaction: discord.Interaction,
        message: app_commands.Range[str, 1, 2000],
    ) -> None:
        """Send a staff reply to the thread's user."""
        if not await check_staff_permission(interaction):
            return
        if self.service is None:
            await interaction.response.send_message(SERVICE_UNAVAILABLE, ephemeral=True)
            return

        await interaction.response.defer(ephemeral=True)

        thread = await self.service.resolve_interaction_thread(interaction.channel_id)
        if thread is None:
            await interaction.followup.send(NOT_A_THREAD, ephemeral=True)
            return

        success, result = await self.service.reply_from_staff(thread, interaction.user, message)
        await interaction.followup.send(
            f"✅ {result}" if success else f"❌ Not delivered: {result}",
            ephemeral=True,
        )

    # =========================================================================
    # Block / Unblock
    # =========================================================================

    @modmail.command(name="block", description="Block a user from opening modmail in this server")
    @app_commands.describe(user="User to block", reason="Why they are blocked")
    async def block(
        self,
        interaction: discord.Interaction,
        user: discord.User,
        reason: Optional[app_commands.Range[str, 1, 500]] = None,
    ) -> None:
        """Block a user for this guild."""
        if not can_manage_blocks(interaction.user):
            await interaction.response.send_message(BLOCK_PERMISSION_DENIED, ephemeral=True)
            return

        if user.bot:
            await interaction.response.send_message("❌ Bots can't use modmail anyway.", ephemeral=True)
            return

        guild = interaction.guild
        created = self.bot.db.block_user(user.id, guild.id, interaction.user.id, reason)

        logger.tree("Modmail Block Command", [
            ("Guild", f"{guild.name} ({guild.id})"),
            ("User", f"{user} ({user.id})"),
            ("By", f"{interaction.user} ({interaction.user.id})"),
            ("New", str(created)),
        ], emoji="🚫")

        embed = discord.Embed(
            title="🚫 User Blocked" if created else "🚫 Block Updated",
            description=f"{user.mention} can no longer open modmail threads in this server.",
            color=EmbedColors.LOG_NEGATIVE,
        )
        embed.add_field(name="User", value=f"{user} (`{user.id}`)", inline=True)
        embed.add_field(name="Reason", value=reason or "No reason provided", inline=True)
        set_footer(embed)
        await interaction.response.send_message(embed=embed, ephemeral=True)

    @modmail.command(name="unblock", description="Allow a blocked user to open modmail again")
    @app_commands.describe(user="User to unblock")
    async def unblock(self, interaction: discord.Interaction, user: discord.User) -> None:
        """Lift a user's block for this guild."""
        if not can_manage_blocks(interaction.user):
            await interaction.response.send_message(BLOCK_PERMISSION_DENIED, ephemeral=True)
            return

        guild = interaction.guild
        removed = self.bot.db.unblock_user(user.id, guild.id)
        if not removed:
            await interaction.response.send_message(
                f"ℹ️ {user.mention} is not blocked in this server.",
                ephemeral=True,
            )
            return

        if self.service is not None:
            self.service.block_notice_cooldowns.reset(user.id)

        logger.tree("Modmail Unblock Command", [
            ("Guild", f"{guild.name} ({guild.id})"),
            ("User", f"{user} ({user.id})"),
            ("By", f"{interaction.user} ({interaction.user.id})"),
        ], emoji="✅")

        await interaction.response.send_message(
            f"✅ {user.mention} can open modmail threads again.",
            ephemeral=True,
        )


# =============================================================================
# Setup
# =============================================================================

async def setup(bot: "CourierBot") -> None:
    """Load the Modmail cog."""
    await bot.add_cog(ModmailCog(bot))


__all__ = ["ModmailCog", "can_manage_blocks"]
