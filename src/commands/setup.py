"""
Courier - Setup Command Cog
===========================

Guild onboarding and modmail configuration commands.

DESIGN:
    /setup is idempotent: existing channels with the default names are
    reused instead of duplicated, so running it twice just repairs the
    configuration. /modmail-setup lets admins point modmail at channels
    they created themselves. /reset wipes the guild row back to defaults
    behind a confirmation button.

Features:
    - /setup [staff_role]: Create category + log channels and enable modmail
    - /modmail-setup enable <category> <staff_role> [log_channel]
    - /modmail-setup disable
    - /modmail-setup status
    - /reset: Reset guild settings (with confirmation)

Author: Courier Maintainers
"""

from typing import TYPE_CHECKING, Dict, List, Optional, Tuple, Union

import discord
from discord import app_commands
from discord.ext import commands

from src.core.config import EmbedColors, get_config
from src.core.constants import (
    DEFAULT_CATEGORY_NAME,
    DEFAULT_LOG_CHANNEL_NAME,
    DEFAULT_SERVER_LOG_CHANNEL_NAME,
    DEFAULT_STAFF_ROLE_NAME,
)
from src.core.database import GuildSettings
from src.core.logger import logger
from src.utils.discord_rate_limit import log_http_error
from src.utils.footer import set_footer

if TYPE_CHECKING:
    from src.bot import CourierBot


# =============================================================================
# Constants
# =============================================================================

RESET_CONFIRM_TIMEOUT = 60
"""Seconds the /reset confirmation stays clickable."""

REQUIRED_CATEGORY_PERMISSIONS = (
    "view_channel",
    "manage_channels",
    "send_messages",
    "embed_links",
    "attach_files",
    "read_message_history",
    "add_reactions",
)
"""Permissions the bot needs inside the modmail category."""


Overwrites = Dict[Union[discord.Role, discord.Member], discord.PermissionOverwrite]


def _staff_overwrites(guild: discord.Guild, staff_role: Optional[discord.Role]) -> Overwrites:
    """Private to staff and the bot."""
    overwrites: Overwrites = {
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
    if staff_role is not None:
        overwrites[staff_role] = discord.PermissionOverwrite(
            view_channel=True,
            send_messages=True,
            read_message_history=True,
        )
    return overwrites


def missing_category_permissions(
    category: discord.CategoryChannel,
    member: discord.Member,
) -> List[str]:
    """Names of required permissions the member lacks in the category."""
    permissions = category.permissions_for(member)
    return [name for name in REQUIRED_CATEGORY_PERMISSIONS if not getattr(permissions, name)]


def build_modmail_status_embed(guild: discord.Guild, settings: GuildSettings) -> discord.Embed:
    """Current modmail configuration for a guild."""
    enabled = settings.modmail_enabled
    embed = discord.Embed(
        title="📬 Modmail Status",
        color=EmbedColors.SUCCESS if enabled else EmbedColors.WARNING,
    )
    embed.add_field(name="Enabled", value="✅ Yes" if enabled else "❌ No", inline=True)
    embed.add_field(
        name="Setup Completed",
        value="Yes" if settings.setup_completed else "No",
        inline=True,
    )

    category_id = settings.modmail_category_id
    embed.add_field(
        name="Category",
        value=f"<#{category_id}>" if category_id else "Not set",
        inline=False,
    )
    log_channel_id = settings.modmail_log_channel_id
    embed.add_field(
        name="Log Channel",
        value=f"<#{log_channel_id}>" if log_channel_id else "Not set",
        inline=True,
    )
    staff_role_id = settings.staff_role_id
    embed.add_field(
        name="Staff Role",
        value=f"<@&{staff_role_id}>" if staff_role_id else "Not set",
        inline=True,
    )
    set_footer(embed)
    return embed


# =============================================================================
# Reset Confirmation View
# =============================================================================

class ResetConfirmView(discord.ui.View):
    """Confirm/cancel buttons for /reset, usable only by the invoker."""

    def __init__(self, invoker_id: int, guild_id: int) -> None:
        super().__init__(timeout=RESET_CONFIRM_TIMEOUT)
        self.invoker_id = invoker_id
        self.guild_id = guild_id
        self.confirmed: Optional[bool] = None

    async def interaction_check(self, interaction: discord.Interaction) -> bool:
        if interaction.user.id != self.invoker_id:
            await interaction.response.send_message(
                "Only the person who ran /reset can confirm it.",
                ephemeral=True,
            )
            return False
        return True

    @discord.ui.button(label="Reset", style=discord.ButtonStyle.danger, emoji="♻️")
    async def confirm(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        bot: "CourierBot" = interaction.client
        bot.db.reset_guild_settings(self.guild_id)
        self.confirmed = True
        self.stop()

        logger.tree("Guild Reset Confirmed", [
            ("Guild ID", str(self.guild_id)),
            ("By", f"{interaction.user} ({interaction.user.id})"),
        ], emoji="♻️")

        await interaction.response.edit_message(
            content="♻️ Settings reset to defaults. Modmail is disabled until you run /setup again.",
            view=None,
        )

    @discord.ui.button(label="Cancel", style=discord.ButtonStyle.secondary)
    async def cancel(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        self.confirmed = False
        self.stop()
        await interaction.response.edit_message(content="Reset cancelled.", view=None)


# =============================================================================
# Setup Cog
# =============================================================================

class SetupCog(commands.Cog):
    """
    Guild onboarding commands.

    DESIGN:
        All commands are guild-only. default_permissions hides them from
        members without Administrator; has_permissions enforces it at
        invoke time.
    """

    modmail_setup = app_commands.Group(
        name="modmail-setup",
        description="Configure modmail for this server",
        guild_only=True,
        default_permissions=discord.Permissions(administrator=True),
    )

    def __init__(self, bot: "CourierBot") -> None:
        self.bot = bot
        self.config = get_config()

        logger.tree("Setup Cog Loaded", [
            ("Commands", "/setup, /modmail-setup, /reset"),
        ], emoji="⚙️")

    # =========================================================================
    # /setup
    # =========================================================================

    @app_commands.command(name="setup", description="Create modmail and log channels and enable modmail")
    @app_commands.describe(staff_role="Role that can see and answer modmail threads")
    @app_commands.guild_only()
    @app_commands.default_permissions(administrator=True)
    @app_commands.checks.has_permissions(administrator=True)
    async def setup_command(
        self,
        interaction: discord.Interaction,
        staff_role: Optional[discord.Role] = None,
    ) -> None:
        """Create the default category and channels, then enable modmail."""
        await interaction.response.defer(ephemeral=True)
        guild = interaction.guild

        role = staff_role or discord.utils.get(guild.roles, name=DEFAULT_STAFF_ROLE_NAME)

        try:
            category, modmail_logs, server_logs, created = await self._ensure_channels(guild, role)
        except discord.Forbidden:
            await interaction.followup.send(
                "❌ I need the **Manage Channels** permission to run setup.",
                ephemeral=True,
            )
            return
        except discord.HTTPException as e:
            log_http_error(e, "Setup Channels", [("Guild", f"{guild.name} ({guild.id})")])
            await interaction.followup.send(
                "❌ Discord rejected channel creation. Please try again in a moment.",
                ephemeral=True,
            )
            return

        self.bot.db.update_modmail_settings(
            guild.id,
            categoryId=category.id,
            logChannelId=modmail_logs.id,
            staffRoleId=role.id if role else None,
        )
        self.bot.db.set_logging_channel(guild.id, server_logs.id)
        self.bot.db.set_modmail_enabled(guild.id, True)
        self.bot.db.mark_setup_completed(guild.id)

        logger.tree("Guild Setup Completed", [
            ("Guild", f"{guild.name} ({guild.id})"),
            ("By", f"{interaction.user} ({interaction.user.id})"),
            ("Category", f"{category.name} ({category.id})"),
            ("Staff Role", role.name if role else "None"),
            ("Created", ", ".join(created) if created else "Nothing (reused)"),
        ], emoji="✅")

        embed = discord.Embed(
            title="✅ Setup Complete",
            description="Modmail is enabled. Members can now DM me to reach your staff.",
            color=EmbedColors.SUCCESS,
        )
        embed.add_field(name="Modmail Category", value=category.mention, inline=False)
        embed.add_field(name="Modmail Logs", value=modmail_logs.mention, inline=True)
        embed.add_field(name="Server Logs", value=server_logs.mention, inline=True)
        embed.add_field(
            name="Staff Role",
            value=role.mention if role else f"None (create a **{DEFAULT_STAFF_ROLE_NAME}** role or pass one)",
            inline=False,
        )
        set_footer(embed)
        await interaction.followup.send(embed=embed, ephemeral=True)

    async def _ensure_channels(
        self,
        guild: discord.Guild,
        staff_role: Optional[discord.Role],
    ) -> Tuple[discord.CategoryChannel, discord.TextChannel, discord.TextChannel, List[str]]:
        """Find or create the category and both log channels."""
        created: List[str] = []
        overwrites = _staff_overwrites(guild, staff_role)
        reason = "Courier setup"

        category = discord.utils.get(guild.categories, name=DEFAULT_CATEGORY_NAME)
        if category is None:
            category = await guild.create_category(
                DEFAULT_CATEGORY_NAME, overwrites=overwrites, reason=reason,
            )
            created.append("category")

        modmail_logs = discord.utils.get(category.text_channels, name=DEFAULT_LOG_CHANNEL_NAME)
        if modmail_logs is None:
            modmail_logs = await guild.create_text_channel(
                DEFAULT_LOG_CHANNEL_NAME,
                category=category,
                overwrites=overwrites,
                topic="Modmail thread log",
                reason=reason,
            )
            created.append(DEFAULT_LOG_CHANNEL_NAME)

        server_logs = discord.utils.get(guild.text_channels, name=DEFAULT_SERVER_LOG_CHANNEL_NAME)
        if server_logs is None:
            server_logs = await guild.create_text_channel(
                DEFAULT_SERVER_LOG_CHANNEL_NAME,
                overwrites=overwrites,
                topic="Server activity log",
                reason=reason,
            )
            created.append(DEFAULT_SERVER_LOG_CHANNEL_NAME)

        return category, modmail_logs, server_logs, created

    # =========================================================================
    # /modmail-setup
    # =========================================================================

    @modmail_setup.command(name="enable", description="Enable modmail using existing channels")
    @app_commands.describe(
        category="Category where modmail threads will be created",
        staff_role="Role that can view and answer modmail threads",
        log_channel="Channel where modmail logs will be sent",
    )
    @app_commands.checks.has_permissions(administrator=True)
    async def modmail_enable(
        self,
        interaction: discord.Interaction,
        category: discord.CategoryChannel,
        staff_role: discord.Role,
        log_channel: Optional[discord.TextChannel] = None,
    ) -> None:
        """Point modmail at an admin-chosen category and enable it."""
        guild = interaction.guild
        missing = missing_category_permissions(category, guild.me)
        if missing:
            await interaction.response.send_message(
                "❌ I'm missing these permissions in that category: "
                + ", ".join(f"`{name}`" for name in missing),
                ephemeral=True,
            )
            return

        self.bot.db.update_modmail_settings(
            guild.id,
            categoryId=category.id,
            staffRoleId=staff_role.id,
            logChannelId=log_channel.id if log_channel else None,
        )
        self.bot.db.set_modmail_enabled(guild.id, True)
        settings = self.bot.db.get_guild_settings(guild.id)

        logger.tree("Modmail Enabled", [
            ("Guild", f"{guild.name} ({guild.id})"),
            ("By", f"{interaction.user} ({interaction.user.id})"),
            ("Category", f"{category.name} ({category.id})"),
            ("Staff Role", staff_role.name),
            ("Log Channel", log_channel.name if log_channel else "None"),
        ], emoji="📬")

        await interaction.response.send_message(
            embed=build_modmail_status_embed(guild, settings),
            ephemeral=True,
        )

    @modmail_setup.command(name="disable", description="Disable modmail (open threads stay open)")
    @app_commands.checks.has_permissions(administrator=True)
    async def modmail_disable(self, interaction: discord.Interaction) -> None:
        """Stop accepting new modmail for this guild."""
        guild = interaction.guild
        self.bot.db.set_modmail_enabled(guild.id, False)

        logger.tree("Modmail Disabled", [
            ("Guild", f"{guild.name} ({guild.id})"),
            ("By", f"{interaction.user} ({interaction.user.id})"),
        ], emoji="📪")

        await interaction.response.send_message(
            "📪 Modmail disabled. Existing threads can still be answered and closed.",
            ephemeral=True,
        )

    @modmail_setup.command(name="status", description="Show the modmail configuration")
    async def modmail_status(self, interaction: discord.Interaction) -> None:
        settings = self.bot.db.get_guild_settings(interaction.guild.id)
        await interaction.response.send_message(
            embed=build_modmail_status_embed(interaction.guild, settings),
            ephemeral=True,
        )

    # =========================================================================
    # /reset
    # =========================================================================

    @app_commands.command(name="reset", description="Reset all bot settings for this server")
    @app_commands.guild_only()
    @app_commands.default_permissions(administrator=True)
    @app_commands.checks.has_permissions(administrator=True)
    async def reset(self, interaction: discord.Interaction) -> None:
        """Ask for confirmation, then reset the guild row."""
        view = ResetConfirmView(interaction.user.id, interaction.guild.id)
        await interaction.response.send_message(
            "⚠️ This disables modmail and clears every log setting for this server. "
            "Open threads and blocks are kept. Continue?",
            view=view,
            ephemeral=True,
        )


# =============================================================================
# Setup
# =============================================================================

async def setup(bot: "CourierBot") -> None:
    """Load the Setup cog."""
    await bot.add_cog(SetupCog(bot))


__all__ = ["SetupCog", "ResetConfirmView", "build_modmail_status_embed", "missing_category_permissions"]
