"""
Courier - Health Check Server
=============================

HTTP health check endpoint for external monitoring.

DESIGN:
    Provides a lightweight HTTP server that external monitoring tools
    (like uptime checkers or orchestration systems) can ping to verify
    the bot is running and responsive.

    The /health endpoint returns JSON with connection state, whether the
    modmail service is running, guild count and open modmail threads,
    without exposing sensitive information.

Author: Courier Maintainers
"""

import sqlite3
from datetime import datetime
from typing import TYPE_CHECKING

from aiohttp import web

from src.core.logger import logger
from src.core.config import NY_TZ
from src.core.database import get_db

if TYPE_CHECKING:
    from src.bot import CourierBot


# =============================================================================
# Health Check Server
# =============================================================================

class HealthCheckServer:
    """
    Simple HTTP health check server for monitoring.

    DESIGN:
        Uses aiohttp for async HTTP serving within the bot's event loop.
        Binds to 0.0.0.0 to accept external connections.
        Returns JSON responses for easy parsing by monitoring tools.

    Attributes:
        bot: Reference to the main bot instance.
        port: Port number for the HTTP server.
        app: aiohttp Application instance.
        runner: aiohttp AppRunner for lifecycle management.
    """

    # =========================================================================
    # Initialization
    # =========================================================================

    def __init__(self, bot: "CourierBot", port: int = 8080) -> None:
        """
        Initialize the health check server.

        Args:
            bot: Main bot instance for status queries.
            port: Port to listen on (default 8080).
        """
        self.bot = bot
        self.port = port
        self.app = web.Application()
        self.runner: web.AppRunner = None

        # Setup routes
        self.app.router.add_get("/health", self.health_handler)
        self.app.router.add_get("/", self.health_handler)

    # =========================================================================
    # Request Handlers
    # =========================================================================

    async def health_handler(self, request: web.Request) -> web.Response:
        """
        Handle health check requests.

        DESIGN:
            "healthy" means connected to Discord with the modmail service
            running. "starting" covers the window before on_ready finishes.
            A thread store that can't be read turns the answer into
            "degraded" with a 503, since DMs would fail closed.

        Returns:
            JSON response with bot status.
        """
        is_connected = self.bot.is_ready()
        modmail_running = self.bot.modmail_service is not None

        status = {
            "status": "healthy" if is_connected and modmail_running else "starting",
            "bot": "Courier",
            "connected": is_connected,
            "modmail": "running" if modmail_running else "stopped",
            "guilds": len(self.bot.guilds),
            "open_threads": None,
            "latency_ms": round(self.bot.latency * 1000) if is_connected else None,
            "timestamp": datetime.now(NY_TZ).isoformat(),
        }

        try:
            status["open_threads"] = get_db().count_open_threads()
        except sqlite3.Error as e:
            logger.error("Health Check Store Error", [
                ("Error", str(e)[:100]),
            ])
            status["status"] = "degraded"
            return web.json_response(status, status=503)

        logger.debug("Health Check", [("Status", status["status"])])
        return web.json_response(status)

    # =========================================================================
    # Lifecycle Management
    # =========================================================================

    async def start(self) -> None:
        """
        Start the health check server.

        DESIGN:
            Non-blocking startup using aiohttp's AppRunner.
            Binds to all interfaces (0.0.0.0) for external access.
            Logs success with tree format for visibility.
        """
        try:
            self.runner = web.AppRunner(self.app)
            await self.runner.setup()
            site = web.TCPSite(self.runner, "0.0.0.0", self.port)
            await site.start()

            logger.tree("Health Server Started", [
                ("Port", str(self.port)),
                ("Endpoint", f"http://0.0.0.0:{self.port}/health"),
            ], emoji="🏥")

        except Exception as e:
            logger.error("Health Server Startup Failed", [
                ("Port", str(self.port)),
                ("Error", str(e)[:100]),
            ])

    async def stop(self) -> None:
        """
        Stop the health check server gracefully.

        DESIGN:
            Cleans up runner resources on shutdown.
            Safe to call even if server never started.
        """
        if self.runner:
            await self.runner.cleanup()
            logger.info("Health check server stopped")


# =============================================================================
# Module Export
# =============================================================================

__all__ = ["HealthCheckServer"]
