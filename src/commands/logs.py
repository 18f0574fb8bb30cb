"""
Courier - Server Log Command Cog
================================

Slash commands that configure per-guild server logging.

DESIGN:
    Every command edits the guild_settings row through the database
    mixin and answers ephemerally. LoggingService reads the row on each
    event, so changes apply immediately without a cache to invalidate.

Features:
    - /logs channel <channel>: Default log channel
    - /logs category <category> [channel]: Per-category channel override
    - /logs view: Current configuration
    - /ignore channel|role: Toggle ignore list entries
    - /ignore list: Show ignored channels and roles
    - /categories: Toggle every category from one select menu
    - /enable <category>, /disable <category>

Author: Courier Maintainers
"""

from typing import TYPE_CHECKING, List, Optional

import discord
from discord import app_commands
from discord.ext import commands

from src.core.config import EmbedColors
from src.core.database import GuildSettings
from src.core.logger import logger
from src.services.server_logs import CATEGORY_INFO, LogCategory, parse_category
from src.utils.footer import set_footer

if TYPE_CHECKING:
    from src.bot import CourierBot


# =============================================================================
# Constants
# =============================================================================

CATEGORY_CHOICES = [
    app_commands.Choice(name=f"{info.emoji} {info.name}", value=category.value)
    for category, info in CATEGORY_INFO.items()
]
"""Slash command choices for every log category."""

CATEGORIES_VIEW_TIMEOUT = 120
"""Seconds the /categories select stays usable."""

ADMIN_PERMISSIONS = discord.Permissions(manage_guild=True)


def _format_ids(ids: List[int], mention: str) -> str:
    if not ids:
        return "None"
    return "\n".join(mention.format(target_id) for target_id in ids)


def build_logs_view_embed(settings: GuildSettings) -> discord.Embed:
    """Logging configuration overview."""
    embed = discord.Embed(
        title="📊 Logging Configuration",
        color=EmbedColors.INFO,
    )
    embed.add_field(
        name="Main Logging Channel",
        value=f"<#{settings.logging_channel_id}>" if settings.logging_channel_id else "Not set",
        inline=False,
    )

    for category, info in CATEGORY_INFO.items():
        status = "✅ Enabled" if settings.is_category_enabled(category.value) else "❌ Disabled"
        override = settings.category_channels.get(category.value)
        channel = f"<#{override}>" if override else "Main channel"
        embed.add_field(
            name=f"{info.emoji} {info.name}",
            value=f"{status}\n{channel}",
            inline=True,
        )

    embed.add_field(
        name="Ignored",
        value=f"{len(settings.ignored_channels)} channel(s), {len(settings.ignored_roles)} role(s)",
        inline=False,
    )
    set_footer(embed)
    return embed


def build_category_summary_embed(settings: GuildSettings, title: str) -> discord.Embed:
    """Enabled/disabled split of the categories."""
    enabled = []
    disabled = []
    for category, info in CATEGORY_INFO.items():
        line = f"{info.emoji} {info.name}"
        if settings.is_category_enabled(category.value):
            enabled.append(line)
        else:
            disabled.append(line)

    embed = discord.Embed(title=title, color=EmbedColors.SUCCESS)
    embed.add_field(name="✅ Enabled Categories", value="\n".join(enabled) or "No categories enabled", inline=True)
    embed.add_field(name="❌ Disabled Categories", value="\n".join(disabled) or "No categories disabled", inline=True)
    set_footer(embed)
    return embed


# =============================================================================
# Categories Select
# =============================================================================

class CategoriesSelect(discord.ui.Select):
    """Multi-select: chosen categories are enabled, the rest disabled."""

    def __init__(self, settings: GuildSettings) -> None:
        options = [
            discord.SelectOption(
                label=info.name,
                value=category.value,
                description=info.description[:100],
                emoji=info.emoji,
                default=settings.is_category_enabled(category.value),
            )
            for category, info in CATEGORY_INFO.items()
        ]
        super().__init__(
            placeholder="Select the categories to log",
            min_values=0,
            max_values=len(options),
            options=options,
        )

    async def callback(self, interaction: discord.Interaction) -> None:
        bot: "CourierBot" = interaction.client
        guild_id = interaction.guild.id
        selected = set(self.values)

        for category in LogCategory:
            bot.db.set_category_enabled(guild_id, category.value, category.value in selected)

        settings = bot.db.get_guild_settings(guild_id)
        logger.tree("Log Categories Updated", [
            ("Guild ID", str(guild_id)),
            ("By", f"{interaction.user} ({interaction.user.id})"),
            ("Enabled", ", ".join(sorted(selected)) or "None"),
        ], emoji="🔀")

        await interaction.response.edit_message(
            embed=build_category_summary_embed(settings, "📋 Log Categories Updated"),
            view=None,
        )


class CategoriesView(discord.ui.View):
    def __init__(self, invoker_id: int, settings: GuildSettings) -> None:
        super().__init__(timeout=CATEGORIES_VIEW_TIMEOUT)
        self.invoker_id = invoker_id
        self.add_item(CategoriesSelect(settings))

    async def interaction_check(self, interaction: discord.Interaction) -> bool:
        if interaction.user.id != self.invoker_id:
            await interaction.response.send_message(
                "Only the person who ran /categories can use this menu.",
                ephemeral=True,
            )
            return False
        return True


# =============================================================================
# Logs Cog
# =============================================================================

class LogsCog(commands.Cog):
    """
    Server logging configuration commands.

    DESIGN:
        Groups carry default_permissions so the whole tree is hidden from
        regular members; every command also runs has_permissions.
    """

    logs = app_commands.Group(
        name="logs",
        description="Configure server log channels",
        guild_only=True,
        default_permissions=ADMIN_PERMISSIONS,
    )
    ignore = app_commands.Group(
        name="ignore",
        description="Channels and roles to leave out of server logs",
        guild_only=True,
        default_permissions=ADMIN_PERMISSIONS,
    )

    def __init__(self, bot: "CourierBot") -> None:
        self.bot = bot

        logger.tree("Logs Cog Loaded", [
            ("Commands", "/logs, /ignore, /categories, /enable, /disable"),
            ("Categories", str(len(CATEGORY_INFO))),
        ], emoji="📝")

    # =========================================================================
    # /logs
    # =========================================================================

    @logs.command(name="channel", description="Set the main server log channel")
    @app_commands.describe(channel="Channel that receives server logs")
    @app_commands.checks.has_permissions(manage_guild=True)
    async def logs_channel(self, interaction: discord.Interaction, channel: discord.TextChannel) -> None:
        self.bot.db.set_logging_channel(interaction.guild.id, channel.id)
        await interaction.response.send_message(
            f"✅ Server logs will be sent to {channel.mention}.",
            ephemeral=True,
        )

    @logs.command(name="category", description="Send one log category to its own channel")
    @app_commands.describe(
        category="The log category to configure",
        channel="Channel for this category (leave empty to use the main channel)",
    )
    @app_commands.choices(category=CATEGORY_CHOICES)
    @app_commands.checks.has_permissions(manage_guild=True)
    async def logs_category(
        self,
        interaction: discord.Interaction,
        category: app_commands.Choice[str],
        channel: Optional[discord.TextChannel] = None,
    ) -> None:
        log_category = parse_category(category.value)
        info = CATEGORY_INFO[log_category]
        self.bot.db.set_category_channel(
            interaction.guild.id,
            log_category.value,
            channel.id if channel else None,
        )

        if channel:
            message = f"✅ {info.emoji} **{info.name}** logs will be sent to {channel.mention}."
        else:
            message = f"✅ {info.emoji} **{info.name}** logs will use the main logging channel."
        await interaction.response.send_message(message, ephemeral=True)

    @logs.command(name="view", description="View the current logging configuration")
    async def logs_view(self, interaction: discord.Interaction) -> None:
        settings = self.bot.db.get_guild_settings(interaction.guild.id)
        await interaction.response.send_message(embed=build_logs_view_embed(settings), ephemeral=True)

    # =========================================================================
    # /ignore
    # =========================================================================

    @ignore.command(name="channel", description="Ignore or unignore a channel for logging")
    @app_commands.describe(channel="The channel to ignore or unignore")
    @app_commands.checks.has_permissions(manage_guild=True)
    async def ignore_channel(
        self,
        interaction: discord.Interaction,
        channel: discord.abc.GuildChannel,
    ) -> None:
        ignored = self.bot.db.toggle_ignored_channel(interaction.guild.id, channel.id)
        await interaction.response.send_message(
            f"🙈 {channel.mention} is now ignored." if ignored
            else f"👀 {channel.mention} will be logged again.",
            ephemeral=True,
        )

    @ignore.command(name="role", description="Ignore or unignore a role for logging")
    @app_commands.describe(role="The role to ignore or unignore")
    @app_commands.checks.has_permissions(manage_guild=True)
    async def ignore_role(self, interaction: discord.Interaction, role: discord.Role) -> None:
        ignored = self.bot.db.toggle_ignored_role(interaction.guild.id, role.id)
        await interaction.response.send_message(
            f"🙈 Members with {role.mention} are now ignored." if ignored
            else f"👀 Members with {role.mention} will be logged again.",
            ephemeral=True,
            allowed_mentions=discord.AllowedMentions.none(),
        )

    @ignore.command(name="list", description="List ignored channels and roles")
    async def ignore_list(self, interaction: discord.Interaction) -> None:
        settings = self.bot.db.get_guild_settings(interaction.guild.id)
        embed = discord.Embed(title="🙈 Ignored for Logging", color=EmbedColors.INFO)
        embed.add_field(
            name="📝 Ignored Channels",
            value=_format_ids(settings.ignored_channels, "<#{}>")[:1024],
            inline=True,
        )
        embed.add_field(
            name="👑 Ignored Roles",
            value=_format_ids(settings.ignored_roles, "<@&{}>")[:1024],
            inline=True,
        )
        set_footer(embed)
        await interaction.response.send_message(embed=embed, ephemeral=True)

    # =========================================================================
    # /categories, /enable, /disable
    # =========================================================================

    @app_commands.command(name="categories", description="Manage all logging categories at once")
    @app_commands.guild_only()
    @app_commands.default_permissions(manage_guild=True)
    @app_commands.checks.has_permissions(manage_guild=True)
    async def categories(self, interaction: discord.Interaction) -> None:
        settings = self.bot.db.get_guild_settings(interaction.guild.id)
        embed = build_category_summary_embed(settings, "📋 Log Categories")
        embed.add_field(
            name="Instructions",
            value="Categories that are selected will be enabled. Unselected categories will be disabled.",
            inline=False,
        )
        await interaction.response.send_message(
            embed=embed,
            view=CategoriesView(interaction.user.id, settings),
            ephemeral=True,
        )

    @app_commands.command(name="enable", description="Enable a logging category")
    @app_commands.describe(category="The logging category to enable")
    @app_commands.choices(category=CATEGORY_CHOICES)
    @app_commands.guild_only()
    @app_commands.default_permissions(manage_guild=True)
    @app_commands.checks.has_permissions(manage_guild=True)
    async def enable(self, interaction: discord.Interaction, category: app_commands.Choice[str]) -> None:
        await self._set_category(interaction, category.value, True)

    @app_commands.command(name="disable", description="Disable a logging category")
    @app_commands.describe(category="The logging category to disable")
    @app_commands.choices(category=CATEGORY_CHOICES)
    @app_commands.guild_only()
    @app_commands.default_permissions(manage_guild=True)
    @app_commands.checks.has_permissions(manage_guild=True)
    async def disable(self, interaction: discord.Interaction, category: app_commands.Choice[str]) -> None:
        await self._set_category(interaction, category.value, False)

    async def _set_category(
        self,
        interaction: discord.Interaction,
        value: str,
        enabled: bool,
    ) -> None:
        log_category = parse_category(value)
        info = CATEGORY_INFO[log_category]
        self.bot.db.set_category_enabled(interaction.guild.id, log_category.value, enabled)

        embed = discord.Embed(
            title=f"{info.emoji} {info.name} Logging {'Enabled' if enabled else 'Disabled'}",
            description=info.description,
            color=EmbedColors.SUCCESS if enabled else EmbedColors.WARNING,
        )
        set_footer(embed)
        await interaction.response.send_message(embed=embed, ephemeral=True)


# =============================================================================
# Setup
# =============================================================================

async def setup(bot: "CourierBot") -> None:
    """Load the Logs cog."""
    await bot.add_cog(LogsCog(bot))


__all__ = ["LogsCog", "CategoriesView", "build_logs_view_embed", "build_category_summary_embed"]
