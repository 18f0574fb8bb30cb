"""
Courier - Info Command Cog
==========================

General information commands.

Features:
    - /ping: Gateway latency
    - /help: Command overview
    - /stats: Modmail statistics for this server
    - /status: Bot health and system resources

Author: Courier Maintainers
"""

from datetime import datetime
from typing import TYPE_CHECKING, Dict

import discord
import psutil
from discord import app_commands
from discord.ext import commands

from src.core.config import EmbedColors
from src.core.logger import logger
from src.utils.footer import set_footer

if TYPE_CHECKING:
    from src.bot import CourierBot


# =============================================================================
# Constants
# =============================================================================

PROGRESS_BAR_WIDTH = 10
LATENCY_THRESHOLD_MS = 500

HELP_SECTIONS = (
    ("📬 Modmail", (
        "DM me to contact the staff of a server we share.",
        "`/modmail close [reason]` close the thread in this channel",
        "`/modmail reply <message>` answer the user",
        "`/modmail block|unblock <user>` manage blocks",
    )),
    ("⚙️ Setup", (
        "`/setup [staff_role]` create channels and enable modmail",
        "`/modmail-setup enable|disable|status`",
        "`/reset` reset this server's settings",
    )),
    ("📝 Server Logs", (
        "`/logs channel|category|view`",
        "`/ignore channel|role|list`",
        "`/categories`, `/enable`, `/disable`",
    )),
    ("ℹ️ Info", (
        "`/ping`, `/stats`, `/status`, `/help`",
    )),
)


def _create_progress_bar(value: float, max_val: float = 100, width: int = PROGRESS_BAR_WIDTH) -> str:
    """Create a Unicode progress bar."""
    if max_val <= 0:
        return "░" * width

    ratio = min(value / max_val, 1.0)
    filled = int(ratio * width)
    return "█" * filled + "░" * (width - filled)


def _format_uptime(start: datetime) -> str:
    delta = datetime.now() - start
    days = delta.days
    hours, remainder = divmod(delta.seconds, 3600)
    minutes = remainder // 60
    if days:
        return f"{days}d {hours}h {minutes}m"
    if hours:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def get_system_resources() -> Dict[str, float]:
    """Process memory, CPU, system memory and disk usage."""
    try:
        process = psutil.Process()
        disk = psutil.disk_usage("/")
        return {
            "bot_mem_mb": round(process.memory_info().rss / (1024 * 1024), 1),
            "cpu_percent": round(psutil.cpu_percent(interval=None), 1),
            "sys_mem_percent": round(psutil.virtual_memory().percent, 1),
            "disk_percent": round(disk.percent, 1),
        }
    except psutil.Error as e:
        logger.debug("System Resources Unavailable", [("Error", str(e)[:100])])
        return {}


# =============================================================================
# Info Cog
# =============================================================================

class InfoCog(commands.Cog):
    """Information commands available to everyone."""

    def __init__(self, bot: "CourierBot") -> None:
        self.bot = bot

        logger.tree("Info Cog Loaded", [
            ("Commands", "/ping, /help, /stats, /status"),
        ], emoji="ℹ️")

    @app_commands.command(name="ping", description="Check the bot's latency")
    async def ping(self, interaction: discord.Interaction) -> None:
        latency_ms = round(self.bot.latency * 1000)
        await interaction.response.send_message(f"🏓 Pong! `{latency_ms}ms`", ephemeral=True)

    @app_commands.command(name="help", description="Show what the bot can do")
    async def help(self, interaction: discord.Interaction) -> None:
        embed = discord.Embed(
            title="📬 Courier Help",
            description="Multi-server modmail and server logging.",
            color=EmbedColors.MODMAIL,
        )
        for name, lines in HELP_SECTIONS:
            embed.add_field(name=name, value="\n".join(lines), inline=False)
        set_footer(embed)
        await interaction.response.send_message(embed=embed, ephemeral=True)

    @app_commands.command(name="stats", description="Modmail statistics for this server")
    @app_commands.guild_only()
    async def stats(self, interaction: discord.Interaction) -> None:
        """Thread counts and averages for the current guild."""
        stats = self.bot.db.get_modmail_stats(interaction.guild.id)

        embed = discord.Embed(
            title="📊 Modmail Statistics",
            description=f"**{interaction.guild.name}**",
            color=EmbedColors.MODMAIL,
        )
        embed.add_field(name="Total Threads", value=f"`{stats['total']}`", inline=True)
        embed.add_field(name="Open", value=f"`{stats['open']}`", inline=True)
        embed.add_field(name="Closed", value=f"`{stats['closed']}`", inline=True)
        embed.add_field(name="Last 24h", value=f"`{stats['last_24h']}`", inline=True)
        embed.add_field(name="Avg Messages", value=f"`{stats['avg_messages']}`", inline=True)
        embed.add_field(name="Avg Duration", value=f"`{stats['avg_duration_hours']}h`", inline=True)
        set_footer(embed)
        await interaction.response.send_message(embed=embed, ephemeral=True)

    @app_commands.command(name="status", description="Bot health and resource usage")
    async def status(self, interaction: discord.Interaction) -> None:
        """Uptime, latency, guild counts and system resources."""
        latency_ms = round(self.bot.latency * 1000)
        latency_indicator = " ⚠️" if latency_ms > LATENCY_THRESHOLD_MS else ""
        summary = self.bot.db.get_settings_summary()

        lines = [
            f"**Uptime:** `{_format_uptime(self.bot.start_time)}`",
            f"**Latency:** `{latency_ms}ms`{latency_indicator}",
            f"**Guilds:** `{len(self.bot.guilds)}` "
            f"({summary['modmail_enabled']} with modmail, {summary['setup_completed']} set up)",
            f"**Open Threads:** `{self.bot.db.count_open_threads()}`",
        ]

        resources = get_system_resources()
        if resources:
            lines.append("")
            lines.append("**System Resources**")
            lines.append(f"`CPU ` {_create_progress_bar(resources['cpu_percent'])} `{resources['cpu_percent']:>5.1f}%`")
            lines.append(f"`MEM ` {_create_progress_bar(resources['sys_mem_percent'])} `{resources['sys_mem_percent']:>5.1f}%`")
            lines.append(f"`DISK` {_create_progress_bar(resources['disk_percent'])} `{resources['disk_percent']:>5.1f}%`")
            lines.append(f"*Bot: {resources['bot_mem_mb']}MB*")

        embed = discord.Embed(
            title="🟢 Courier Status",
            description="\n".join(lines),
            color=EmbedColors.SUCCESS,
        )
        set_footer(embed)
        await interaction.response.send_message(embed=embed, ephemeral=True)


# =============================================================================
# Setup
# =============================================================================

async def setup(bot: "CourierBot") -> None:
    """Load the Info cog."""
    await bot.add_cog(InfoCog(bot))


__all__ = ["InfoCog", "get_system_resources"]
