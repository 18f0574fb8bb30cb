"""
Courier - Main Bot Class
========================

Core Discord client for Courier, a multi-server modmail bot with
per-server activity logging.

Features:
- Modmail threads routed from DMs to the right server
- Idle warning and auto-close sweep
- Persistent buttons and selects that survive restarts
- Per-server activity logs by category
- Health check HTTP endpoint

Author: Courier Maintainers
"""

from datetime import datetime

import discord
from discord import app_commands
from discord.ext import commands

from src.core.logger import logger
from src.core.config import get_config
from src.core.database import get_db
from src.utils.cache import Cooldowns
from src.utils.error_handler import ErrorHandler
from src.utils.interaction import safe_respond


GENERIC_COMMAND_ERROR = "❌ Something went wrong while running that command."


# =============================================================================
# Command Tree
# =============================================================================

class CourierTree(app_commands.CommandTree):
    """
    Command tree with a per-user cooldown and a single error boundary.

    DESIGN:
        interaction_check runs before every slash command, so one
        Cooldowns table covers all of them. Component interactions are
        not throttled here; they go through DynamicItem callbacks.
    """

    def __init__(self, client: "CourierBot") -> None:
        super().__init__(client)
        self.cooldowns = Cooldowns()

    async def interaction_check(self, interaction: discord.Interaction) -> bool:
        seconds = get_config().reply_cooldown_seconds
        if seconds <= 0:
            return True

        remaining = self.cooldowns.remaining(interaction.user.id, seconds)
        if remaining > 0:
            await safe_respond(
                interaction,
                f"⏳ Slow down! Try again in {remaining:.1f}s.",
                ephemeral=True,
            )
            return False

        self.cooldowns.touch(interaction.user.id)
        return True

    async def on_error(
        self,
        interaction: discord.Interaction,
        error: app_commands.AppCommandError,
    ) -> None:
        """Answer permission failures plainly; log everything else."""
        if isinstance(error, (app_commands.MissingPermissions, app_commands.NoPrivateMessage)):
            if isinstance(error, app_commands.NoPrivateMessage):
                message = "❌ This command can only be used in a server."
            else:
                message = "❌ You need the " + ", ".join(
                    f"**{perm.replace('_', ' ').title()}**" for perm in error.missing_permissions
                ) + " permission to use this command."
            await safe_respond(interaction, message, ephemeral=True)
            return

        if isinstance(error, app_commands.CheckFailure):
            await safe_respond(interaction, "❌ You can't use this command here.", ephemeral=True)
            return

        original = getattr(error, "original", error)
        command_name = interaction.command.qualified_name if interaction.command else "unknown"
        ErrorHandler.handle(
            original,
            location=f"Slash Command /{command_name}",
            interaction=interaction,
        )
        await safe_respond(interaction, GENERIC_COMMAND_ERROR, ephemeral=True)


# =============================================================================
# CourierBot Class
# =============================================================================

class CourierBot(commands.Bot):
    """
    Main Discord bot class for Courier.

    DESIGN: Central orchestrator that:
    - Routes Discord events to cogs
    - Holds references to services for cross-service communication
    - Manages bot lifecycle (startup, shutdown)

    SERVICE INITIALIZATION ORDER:
    1. setup_hook (before on_ready):
       - Command cog loading
       - Event cog loading
       - Persistent modmail components
       - Command tree syncing

    2. on_ready:
       - Footer avatar cache
       - Settings consistency audit
       - Logging Service
       - Modmail Service (idle sweep)
       - Health Check Server
    """

    # =========================================================================
    # Initialization
    # =========================================================================

    def __init__(self) -> None:
        """Initialize the bot with necessary intents and configuration."""
        self.config = get_config()

        intents = discord.Intents.default()
        intents.message_content = True
        intents.members = True
        intents.dm_messages = True
        intents.voice_states = True

        super().__init__(
            command_prefix=commands.when_mentioned,
            intents=intents,
            help_command=None,
            application_id=self.config.client_id,
            tree_cls=CourierTree,
        )

        self.db = get_db()
        self.start_time: datetime = datetime.now()

        # Service placeholders
        self.modmail_service = None
        self.logging_service = None
        self.health_server = None

        # Ready state guard
        self._ready_initialized: bool = False

        logger.info("Bot Instance Created")

    # =========================================================================
    # Setup Hook
    # =========================================================================

    async def setup_hook(self) -> None:
        """Load cogs, register persistent components and sync commands before on_ready."""
        # Load command cogs
        from src.commands import COMMAND_COGS
        for cog in COMMAND_COGS:
            try:
                await self.load_extension(cog)
                logger.info(f"Cog Loaded: {cog.split('.')[-1]}")
            except Exception as e:
                logger.error("Failed to Load Cog", [("Cog", cog), ("Error", str(e))])

        # Load event cogs
        from src.events import EVENT_COGS
        for cog in EVENT_COGS:
            try:
                await self.load_extension(cog)
                logger.debug(f"Event Cog Loaded: {cog.split('.')[-1]}")
            except Exception as e:
                logger.error("Failed to Load Event Cog", [("Cog", cog), ("Error", str(e))])

        # Register persistent views
        from src.services.modmail import setup_modmail_views
        setup_modmail_views(self)

        await self._sync_commands()

    async def _sync_commands(self) -> None:
        """Sync globally, and copy to the support guild for instant updates."""
        try:
            synced = await self.tree.sync()
            logger.tree("Commands Synced", [("Count", str(len(synced)))], emoji="✅")
        except discord.HTTPException as e:
            logger.error("Command Sync Failed", [("Error", str(e))])
            return

        if not self.config.support_guild_id:
            return

        guild = discord.Object(id=self.config.support_guild_id)
        try:
            self.tree.copy_global_to(guild=guild)
            guild_synced = await self.tree.sync(guild=guild)
            logger.tree("Support Guild Commands Synced", [
                ("Guild ID", str(self.config.support_guild_id)),
                ("Count", str(len(guild_synced))),
            ], emoji="✅")
        except discord.HTTPException as e:
            logger.warning("Support Guild Sync Failed", [
                ("Guild ID", str(self.config.support_guild_id)),
                ("Error", str(e)[:100]),
            ])

    # =========================================================================
    # On Ready
    # =========================================================================

    async def on_ready(self) -> None:
        """Initialize services when bot is ready."""
        if self._ready_initialized:
            logger.info("Bot Reconnected (skipping re-initialization)")
            return

        self._ready_initialized = True

        if not self.user:
            return

        logger.tree("BOT ONLINE", [
            ("Name", self.user.name),
            ("ID", str(self.user.id)),
            ("Guilds", str(len(self.guilds))),
        ], emoji="🚀")

        from src.utils.footer import init_footer
        init_footer(self)

        if self.config.error_webhook_url:
            logger.set_webhook(self.config.error_webhook_url)

        from src.services.settings_fixer import audit_and_fix
        try:
            audit_and_fix(self.db)
        except Exception as e:
            ErrorHandler.handle(e, location="Settings Audit")

        await self._init_services()

        logger.tree("COURIER READY", [
            ("Guilds", str(len(self.guilds))),
            ("Open Threads", str(self.db.count_open_threads())),
            ("Modmail Service", "Running" if self.modmail_service else "Stopped"),
            ("Logging Service", "Ready" if self.logging_service else "Missing"),
            ("Health Server", "Running" if self.health_server else "Disabled"),
        ], emoji="📬")

    # =========================================================================
    # Service Initialization
    # =========================================================================

    async def _init_services(self) -> None:
        """Initialize all services after Discord connection."""
        try:
            from src.services.server_logs import LoggingService
            self.logging_service = LoggingService(self)

            from src.services.modmail import ModmailService
            self.modmail_service = ModmailService(self)
            await self.modmail_service.start()

            if self.config.health_check_port:
                from src.core.health import HealthCheckServer
                self.health_server = HealthCheckServer(self, self.config.health_check_port)
                await self.health_server.start()

        except Exception as e:
            ErrorHandler.handle(e, location="Service Initialization", critical=True)

    # =========================================================================
    # Shutdown
    # =========================================================================

    async def shutdown(self) -> None:
        """Graceful shutdown with proper cleanup."""
        logger.info("Initiating Graceful Shutdown")

        if self.modmail_service:
            await self.modmail_service.stop()

        if self.health_server:
            await self.health_server.stop()

        self.db.close()
        await super().close()

        logger.tree("SHUTDOWN COMPLETE", [
            ("Uptime", str(datetime.now() - self.start_time)),
        ], emoji="🛑")

    async def close(self) -> None:
        """Override close to ensure proper shutdown."""
        await self.shutdown()


# =============================================================================
# Module Export
# =============================================================================

__all__ = ["CourierBot", "CourierTree"]
